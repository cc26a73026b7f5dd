"""Inspect commands -- examine an OpenAPI document before importing it.

Provides the ``specbridge inspect`` sub-command group with read-only
commands for viewing the operations and component schemas of a document,
as the parser sees them (generated operationIds included).
"""

from __future__ import annotations

import typer

from specbridge.output import get_output, info, warning


inspect_app = typer.Typer(no_args_is_help=True)


@inspect_app.command("paths")
def inspect_paths(
    source: str = typer.Argument(help="OpenAPI document: URL, file path, or '-' for stdin."),
) -> None:
    """List all operations with their operationId and success response.

    Example::

        specbridge inspect paths openapi.yaml
        specbridge --json inspect paths https://api.example.com/openapi.json
    """
    from specbridge.commands.common import load_source
    from specbridge.parser import select_success_response

    result = load_source(source)

    rows: list[list[str]] = []
    for op in result.operations:
        selected = select_success_response(op.responses)
        rows.append([
            op.method.value.upper(),
            op.path,
            op.operation_id,
            selected[0] if selected else "-",
            "Yes" if op.deprecated else "",
        ])

    get_output().print_table(
        ["Method", "Path", "Operation", "Response", "Deprecated"],
        rows,
        title=f"{result.info.title} -- Paths ({len(rows)})",
    )


@inspect_app.command("schemas")
def inspect_schemas(
    source: str = typer.Argument(help="OpenAPI document: URL, file path, or '-' for stdin."),
) -> None:
    """List ``components.schemas`` with their type and first property names.

    Example::

        specbridge inspect schemas openapi.yaml
    """
    from specbridge.commands.common import load_source
    from specbridge.schema.converter import schema_type

    result = load_source(source)
    if not result.schemas:
        info("No schemas defined in this document.")
        return

    rows: list[list[str]] = []
    for name, schema in sorted(result.schemas.items()):
        if not isinstance(schema, dict):
            warning(f"Schema {name} is not an object")
            continue
        if "$ref" in schema:
            rows.append([name, "$ref", schema["$ref"]])
            continue
        type_name, nullable = schema_type(schema)
        type_label = (type_name or "object") + (" | null" if nullable else "")
        prop_names = list((schema.get("properties") or {}).keys())
        props = ", ".join(prop_names[:5])
        if len(prop_names) > 5:
            props += "..."
        rows.append([name, type_label, props])

    get_output().print_table(["Schema", "Type", "Properties"], rows, title=f"Schemas ({len(rows)})")
