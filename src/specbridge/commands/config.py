"""Config commands -- view and modify configuration.

Provides the ``specbridge config`` sub-command group for reading, updating
and resetting the user's global configuration
(:class:`~specbridge.models.GlobalConfig`) and for creating a project-local
``specbridge.json``.
"""

from __future__ import annotations

from typing import Optional

import typer

from specbridge.output import get_output, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(
    resolved: bool = typer.Option(
        False, "--resolved", help="Show the effective config after precedence resolution."
    ),
) -> None:
    """Show current configuration.

    Example::

        specbridge config show
        specbridge --json config show --resolved
    """
    from specbridge.config import get_config_dir, load_global_config, resolve_config

    info(f"Config directory: {get_config_dir()}")
    if resolved:
        get_output().print_json(resolve_config().model_dump(mode="json"))
    else:
        get_output().print_json(load_global_config().model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key (dot notation, e.g. 'cache.enabled')."),
    value: str = typer.Argument(help="Value to set (JSON literals keep their type)."),
) -> None:
    """Set a global configuration value.

    Example::

        specbridge config set schema_format zod
        specbridge config set cache.enabled true
        specbridge config set request.timeout 10
    """
    from specbridge.config import set_global_config_value

    set_global_config_value(key, value)
    success(f"Set {key} = {value}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Reset global configuration to defaults."""
    from specbridge.config import save_global_config
    from specbridge.models import GlobalConfig

    if not force and not typer.confirm("Reset all config to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")


@config_app.command("init")
def config_init(
    output_dir: Optional[str] = typer.Option(None, "--output-dir", help="Directory for generated files."),
    schema_format: Optional[str] = typer.Option(None, "--format", "-F", help="Default schema format."),
    prefix: Optional[str] = typer.Option(None, "--prefix", help="Default spec name prefix."),
    owners: Optional[list[str]] = typer.Option(None, "--owner", help="Default owner (repeatable)."),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file."),
) -> None:
    """Create ``specbridge.json`` in the current directory.

    Example::

        specbridge config init --output-dir src/contracts --prefix petstore
    """
    from specbridge.config import project_config_path, save_project_config
    from specbridge.exceptions import ConfigError, InvalidUsageError
    from specbridge.models import ProjectConfig

    path = project_config_path()
    if path.exists() and not force:
        raise InvalidUsageError(f"{path} already exists (use --force to overwrite)")

    try:
        config = ProjectConfig(
            output_dir=output_dir,
            schema_format=schema_format,
            prefix=prefix,
            default_owners=owners or None,
        )
    except ValueError as exc:
        raise ConfigError(f"Invalid project config: {exc}") from exc

    success(f"Wrote {save_project_config(config)}")
