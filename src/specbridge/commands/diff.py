"""Diff command -- import two OpenAPI documents and print the sync report."""

from __future__ import annotations

from typing import Optional

import typer

from specbridge.output import get_output


def diff_command(
    old: str = typer.Argument(help="Previous OpenAPI document (URL or path)."),
    new: str = typer.Argument(help="Current OpenAPI document (URL or path)."),
    prefix: Optional[str] = typer.Option(None, "--prefix", help="Spec name prefix for both imports."),
    ignore_descriptions: bool = typer.Option(
        False, "--ignore-descriptions", help="Ignore description, goal and context changes."
    ),
    ignore_tags: bool = typer.Option(False, "--ignore-tags", help="Ignore tag changes."),
    ignore_transport: bool = typer.Option(
        False, "--ignore-transport", help="Ignore method and path changes."
    ),
    match: str = typer.Option("exact", "--match", help="Matching policy: exact or contains."),
) -> None:
    """Compare two documents operation by operation.

    Every operation of OLD is imported as the existing registry and every
    operation of NEW as the incoming side.  Prints added, updated,
    unchanged and conflicting specs.

    Example::

        specbridge diff openapi-v1.json openapi-v2.json
        specbridge --json diff old.yaml new.yaml
    """
    from specbridge.commands.common import load_source
    from specbridge.config import resolve_config
    from specbridge.differ import build_sync_result, diff_all, format_sync_result
    from specbridge.exceptions import InvalidUsageError
    from specbridge.importer import import_from_openapi
    from specbridge.models import DiffOptions, ImportOptions, MatchPolicy
    from specbridge.output import OutputFormat

    try:
        policy = MatchPolicy(match)
    except ValueError:
        raise InvalidUsageError(f"Unknown match policy {match!r} (choose: exact, contains)") from None

    config = resolve_config()
    options = ImportOptions(
        prefix=prefix if prefix is not None else config.import_defaults.prefix,
        include_deprecated=True,
    )
    existing_result = import_from_openapi(load_source(old, config), options)
    incoming_result = import_from_openapi(load_source(new, config), options)

    existing = {
        spec.operation_spec.key: spec.operation_spec
        for spec in existing_result.specs
        if spec.operation_spec is not None
    }
    diffs = diff_all(
        existing,
        incoming_result.specs,
        DiffOptions(
            ignore_descriptions=ignore_descriptions,
            ignore_tags=ignore_tags,
            ignore_transport=ignore_transport,
            match=policy,
        ),
    )
    result = build_sync_result(diffs)

    output = get_output()
    if output.format == OutputFormat.JSON:
        # conflicts carry full spec objects; keep the report to ids and changes
        data = result.model_dump(
            mode="json",
            exclude={"conflicts": {"__all__": {"existing", "incoming"}}},
        )
        output.print_json(data)
    else:
        output.print_diff(format_sync_result(result))
