"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~specbridge.exceptions.SpecbridgeError` subclass.
CI scripts can inspect the exit code of ``specbridge validate --strict`` to
tell drift apart from a broken document without parsing stderr.

Example::

    $ specbridge validate contracts.yaml openapi.json --strict
    $ echo $?
    8   # EXIT_SYNC_CONFLICT -- the registry drifted from the document
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_CONNECTION_ERROR = 6
"""A remote document could not be fetched (non-2xx, timeout, DNS failure)."""

EXIT_SPEC_PARSE_ERROR = 7
"""The OpenAPI document could not be parsed or a reference loop was found."""

EXIT_SYNC_CONFLICT = 8
"""Drift was detected between canonical specs and the OpenAPI source."""
