"""Validate command -- check a canonical registry against an OpenAPI document.

Each operation spec is paired with the document operation that carries the
same ``x-contractspec`` identity, the same exported operationId, or the same
method and path.  Drift is printed per spec; ``--strict`` turns any drift
into exit code 8 for CI.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from specbridge.contracts import OperationSpec
from specbridge.models import ParsedOperation
from specbridge.output import get_output, info, success


def find_operation(
    spec: OperationSpec,
    operations: list[ParsedOperation],
) -> Optional[ParsedOperation]:
    """Return the parsed operation that corresponds to *spec*, if any."""
    from specbridge.exporter import http_method_for, http_path_for, operation_id_for

    for operation in operations:
        meta = operation.contract_spec_meta or {}
        if meta.get("name") == spec.meta.name and int(meta.get("version", 1)) == spec.meta.version:
            return operation

    operation_id = operation_id_for(spec)
    for operation in operations:
        if operation.operation_id == operation_id:
            return operation

    method = http_method_for(spec).lower()
    path = http_path_for(spec)
    for operation in operations:
        if operation.method.value == method and operation.path == path:
            return operation
    return None


def validate_command(
    registry_file: Path = typer.Argument(help="JSON or YAML file holding the canonical registries."),
    source: str = typer.Argument(help="OpenAPI document: URL, file path, or '-' for stdin."),
    strict: bool = typer.Option(False, "--strict", help="Exit with code 8 when drift is found."),
    ignore_descriptions: bool = typer.Option(
        False, "--ignore-descriptions", help="Ignore description changes."
    ),
    ignore_tags: bool = typer.Option(False, "--ignore-tags", help="Ignore tag changes."),
) -> None:
    """Report drift between REGISTRY_FILE and SOURCE.

    Example::

        specbridge validate contracts.yaml openapi.json --strict
    """
    from specbridge.commands.common import load_source
    from specbridge.contracts import load_registries
    from specbridge.differ import diff_spec_vs_operation, format_diff_changes
    from specbridge.exceptions import SyncConflictError
    from specbridge.models import DiffOptions

    registries = load_registries(registry_file)
    result = load_source(source)
    options = DiffOptions(ignore_descriptions=ignore_descriptions, ignore_tags=ignore_tags)

    specs = registries.operations.list_specs() if registries.operations else []
    if not specs:
        info(f"No operations in {registry_file}")
        return

    output = get_output()
    drifted = 0
    for spec in specs:
        operation = find_operation(spec, result.operations)
        if operation is None:
            drifted += 1
            output.print_diff(f"{spec.key}\n  - : Operation not found in {source}")
            continue
        changes = diff_spec_vs_operation(spec, operation, options)
        if changes:
            drifted += 1
            lines = format_diff_changes(changes).splitlines()
            output.print_diff("\n".join([spec.key, *(f"  {line}" for line in lines)]))

    if drifted == 0:
        success(f"All {len(specs)} operation(s) match {source}")
        return

    message = f"{drifted} of {len(specs)} operation(s) drifted from {source}"
    if strict:
        raise SyncConflictError(message)
    info(message)
