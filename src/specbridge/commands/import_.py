"""Import command -- turn an OpenAPI document into generated operation files.

Operation files are written to ``<out>/<conventions.operations>/`` and one
model file per ``components.schemas`` entry to ``<out>/<conventions.models>/``.
With ``--dry-run`` nothing is written; the planned files are listed instead.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from specbridge.output import get_output, info, success, suggest, warning


def import_command(
    ctx: typer.Context,
    source: str = typer.Argument(help="OpenAPI document: URL, file path, or '-' for stdin."),
    out: Optional[str] = typer.Option(
        None, "--out", "-o", help="Output directory (default from config)."
    ),
    schema_format: Optional[str] = typer.Option(
        None, "--format", "-F", help="Schema format: contractspec, zod, json-schema, graphql."
    ),
    prefix: Optional[str] = typer.Option(None, "--prefix", help="Spec name prefix."),
    tags: Optional[list[str]] = typer.Option(None, "--tag", "-t", help="Only import operations with this tag."),
    include: Optional[list[str]] = typer.Option(None, "--include", help="Only import this operationId."),
    exclude: Optional[list[str]] = typer.Option(None, "--exclude", help="Skip this operationId."),
    include_deprecated: bool = typer.Option(
        False, "--include-deprecated", help="Also import deprecated operations."
    ),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="List files without writing."),
) -> None:
    """Import every operation of an OpenAPI document.

    Example::

        specbridge import https://petstore3.swagger.io/api/v3/openapi.json --prefix petstore
        specbridge import openapi.yaml --format zod --tag pets --dry-run
    """
    from specbridge.commands.common import load_source
    from specbridge.config import resolve_config, write_text_atomic
    from specbridge.importer import generate_component_models, import_from_openapi
    from specbridge.models import ImportOptions
    from specbridge.naming import to_file_name

    config = resolve_config(cli_schema_format=schema_format, cli_output_dir=out)
    result = load_source(source, config)

    defaults = config.import_defaults
    options = ImportOptions(
        prefix=prefix if prefix is not None else defaults.prefix,
        tags=tags or None,
        include=include or None,
        exclude=exclude or [],
        include_deprecated=include_deprecated,
        default_stability=defaults.default_stability,
        default_owners=defaults.default_owners,
        default_auth=defaults.default_auth,
        schema_format=config.schema_format,
        source_url=source if source.startswith(("http://", "https://")) else None,
        source_file=None if source.startswith(("http://", "https://")) else source,
    )
    imported = import_from_openapi(result, options)
    models = generate_component_models(result, options)

    root = Path(config.output_dir)
    planned: list[tuple[Path, str]] = [
        (root / config.conventions.operations / spec.file_name, spec.code)
        for spec in imported.specs
    ]
    planned.extend(
        (root / config.conventions.models / to_file_name(model.name), model.code)
        for model in models
    )

    for skipped in imported.skipped:
        info(f"Skipped {skipped.source_id}: {skipped.reason}")
    for failure in imported.errors:
        warning(f"Failed {failure.source_id}: {failure.error}")

    dry_run = dry_run or bool(ctx.obj and ctx.obj.get("dry_run"))
    output = get_output()
    if dry_run:
        output.print_table(
            ["File", "Bytes"],
            [[str(path), str(len(code.encode()))] for path, code in planned],
            title=f"Planned files ({len(planned)})",
        )
        return

    for path, code in planned:
        write_text_atomic(path, code)

    summary = imported.summary
    success(
        f"Imported {summary.imported}/{summary.total} operation(s) "
        f"({summary.skipped} skipped, {summary.errors} failed) into {root}"
    )
    if summary.imported:
        suggest(f"Review the generated files under {root / config.conventions.operations}")
