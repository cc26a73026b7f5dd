"""Built-in CLI sub-commands for specbridge.

This package groups the Typer command modules that form the CLI:

* :mod:`~specbridge.commands.import_` -- import an OpenAPI document into
  generated operation files.
* :mod:`~specbridge.commands.export` -- export a canonical registry file to
  an OpenAPI 3.1 document.
* :mod:`~specbridge.commands.diff` -- compare two OpenAPI documents and print
  a sync report.
* :mod:`~specbridge.commands.validate` -- check a registry against a
  document for drift.
* :mod:`~specbridge.commands.inspect` -- examine paths and schemas.
* :mod:`~specbridge.commands.config` -- view and modify configuration.

Single commands are plain callback functions registered on the root app;
groups (``inspect``, ``config``) export a :class:`typer.Typer`.
"""
