"""Export command -- canonical registry file to OpenAPI 3.1."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from specbridge.output import get_output, success


def export_command(
    registry_file: Path = typer.Argument(help="JSON or YAML file holding the canonical registries."),
    output_file: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the document here instead of stdout."
    ),
    as_yaml: bool = typer.Option(False, "--yaml", help="Serialise the document as YAML."),
    title: str = typer.Option("ContractSpec API", "--title", help="info.title of the document."),
    api_version: str = typer.Option("1.0.0", "--version", help="info.version of the document."),
    description: Optional[str] = typer.Option(None, "--description", help="info.description."),
    servers: Optional[list[str]] = typer.Option(None, "--server", help="Server URL (repeatable)."),
    registry_code: Optional[Path] = typer.Option(
        None, "--registry-code", help="Also write generated registry files to this directory."
    ),
) -> None:
    """Export operations (and other surfaces) as an OpenAPI document.

    Example::

        specbridge export contracts.yaml -o openapi.json
        specbridge export contracts.yaml --yaml --server https://api.example.com
    """
    from specbridge.config import resolve_config, write_text_atomic
    from specbridge.contracts import load_registries
    from specbridge.exporter import (
        export_contract_spec,
        generate_registry_code,
        openapi_to_json,
        openapi_to_yaml,
    )
    from specbridge.models import ExportOptions, ServerInfo

    registries = load_registries(registry_file)
    options = ExportOptions(
        title=title,
        version=api_version,
        description=description,
        servers=[ServerInfo(url=url) for url in servers or []],
        include_registry_code=False,
    )
    result = export_contract_spec(registries, options)

    if registry_code is not None:
        conventions = resolve_config().conventions
        files = generate_registry_code(registries, conventions)
        for generated in files:
            write_text_atomic(registry_code / generated.file_name, generated.code)
        success(f"Wrote {len(files)} registry file(s) to {registry_code}")

    text = openapi_to_yaml(result.openapi) if as_yaml else openapi_to_json(result.openapi)
    if output_file is not None:
        write_text_atomic(output_file, text)
        success(f"Wrote {len(result.openapi['paths'])} path(s) to {output_file}")
    elif as_yaml:
        get_output().print_code(text, "yaml")
    else:
        get_output().print_json(result.openapi)
