"""Shared test fixtures for specbridge.

Provides reusable fixtures for loading OpenAPI fixture documents, building
canonical specs, creating isolated config environments, managing output
state, and running CLI commands. These fixtures are automatically
discovered by pytest and available to all test modules without explicit
imports.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
import yaml

from specbridge.contracts import (
    OperationIO,
    OperationMeta,
    OperationSpec,
    OperationTransport,
    OpKind,
    RestTransport,
    SchemaModel,
)
from specbridge.models import ParseResult
from specbridge.output import OutputFormat, OutputManager, reset_output, set_output


FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Raw document fixtures (plain dicts loaded from fixture files)
# ---------------------------------------------------------------------------


@pytest.fixture
def petstore_30_path() -> Path:
    return FIXTURES_DIR / "petstore_3.0.json"


@pytest.fixture
def tree_31_path() -> Path:
    return FIXTURES_DIR / "tree_3.1.yaml"


@pytest.fixture
def petstore_30_raw(petstore_30_path: Path) -> dict[str, Any]:
    """Load raw petstore 3.0 document dict."""
    with open(petstore_30_path, encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def tree_31_raw(tree_31_path: Path) -> dict[str, Any]:
    """Load raw 3.1 document with a self-referencing schema."""
    with open(tree_31_path, encoding="utf-8") as f:
        return yaml.safe_load(f)


# ---------------------------------------------------------------------------
# Parsed document fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def petstore_result(petstore_30_raw: dict[str, Any]) -> ParseResult:
    """Parsed petstore 3.0 document."""
    from specbridge.parser import parse_openapi_document

    return parse_openapi_document(petstore_30_raw)


@pytest.fixture
def tree_result(tree_31_raw: dict[str, Any]) -> ParseResult:
    """Parsed 3.1 tree document."""
    from specbridge.parser import parse_openapi_document

    return parse_openapi_document(tree_31_raw)


# ---------------------------------------------------------------------------
# Canonical spec factory
# ---------------------------------------------------------------------------


def make_operation_spec(
    name: str = "pets.get",
    version: int = 1,
    kind: OpKind = OpKind.QUERY,
    input_model: SchemaModel | None = None,
    output_model: SchemaModel | None = None,
    method: str | None = None,
    path: str | None = None,
    **meta: Any,
) -> OperationSpec:
    """Build an :class:`OperationSpec` with sensible defaults for tests."""
    transport = None
    if method or path:
        transport = OperationTransport(rest=RestTransport(method=method, path=path))
    return OperationSpec(
        meta=OperationMeta(name=name, version=version, kind=kind, **meta),
        io=OperationIO(input=input_model, output=output_model),
        transport=transport,
    )


@pytest.fixture
def spec_factory():
    """Return :func:`make_operation_spec` for tests that build specs inline."""
    return make_operation_spec


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path so that tests never touch real user
    config. Clears all SPECBRIDGE_* environment variables and changes
    the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("specbridge.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "SPECBRIDGE_SCHEMA_FORMAT",
        "SPECBRIDGE_OUTPUT_DIR",
        "SPECBRIDGE_TIMEOUT",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
