"""Exception hierarchy for specbridge.

All exceptions inherit from :class:`SpecbridgeError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`specbridge.exit_codes`.
The top-level error handler in :func:`specbridge.app.main` catches
``SpecbridgeError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

The transformation engine itself raises only for whole-document problems.
Per-operation failures are recorded in result objects instead (parser
``warnings``, importer ``errors``).

Subclass hierarchy::

    SpecbridgeError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- FetchError          (exit 6)
    |   +-- FetchTimeoutError (exit 6)
    +-- SpecParseError      (exit 7)
    |   +-- RefResolutionError (exit 7)
    +-- SyncConflictError   (exit 8)
    +-- GenerationError     (exit 1)
    +-- DuplicateSpecError  (exit 1)
    +-- ConfigError         (exit 1)
"""

from __future__ import annotations

from typing import Optional

from specbridge.exit_codes import (
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_SPEC_PARSE_ERROR,
    EXIT_SYNC_CONFLICT,
)


class SpecbridgeError(Exception):
    """Base exception for all specbridge errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`specbridge.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(SpecbridgeError):
    """Raised for invalid CLI arguments or unusable option combinations."""

    exit_code = EXIT_INVALID_USAGE


class FetchError(SpecbridgeError):
    """Raised when a remote OpenAPI document cannot be fetched.

    Args:
        message: Human-readable error description.
        url: The URL that was being fetched.
        status_code: HTTP status of the response, when one was received.
    """

    exit_code = EXIT_CONNECTION_ERROR

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class FetchTimeoutError(FetchError):
    """Raised when fetching a remote document exceeds the configured timeout."""


class SpecParseError(SpecbridgeError):
    """Raised when the OpenAPI document cannot be loaded or parsed as a whole."""

    exit_code = EXIT_SPEC_PARSE_ERROR


class RefResolutionError(SpecParseError):
    """Raised when a chain of ``$ref`` pointers loops back on itself."""


class GenerationError(SpecbridgeError):
    """Raised when schema-to-code generation cannot produce output."""


class DuplicateSpecError(SpecbridgeError):
    """Raised when a registry already holds a spec with the same key."""


class SyncConflictError(SpecbridgeError):
    """Raised by strict validation when canonical specs drift from the source."""

    exit_code = EXIT_SYNC_CONFLICT


class ConfigError(SpecbridgeError):
    """Raised for configuration problems (invalid JSON, unknown keys, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE
