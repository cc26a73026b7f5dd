"""Jinja2 rendering of whole generated source files.

Model snippets are assembled by the schema generators; this module renders
the files that embed them (operation spec files, registry files) from the
templates shipped in ``specbridge/templates/``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from specbridge.schema.generators import js_string

TEMPLATE_DIR = Path(__file__).parent / "templates"
"""Path to the Jinja2 template directory (``specbridge/templates/``)."""

_ENV: Environment | None = None


def create_jinja_env() -> Environment:
    """Create the Jinja2 environment for code templates.

    Autoescape is disabled for ``.ts.j2`` templates (they produce
    TypeScript, not HTML).  Two filters are registered: ``js`` renders a
    single-quoted string literal and ``json`` a JSON literal.

    Returns:
        A configured :class:`~jinja2.Environment` instance.
    """
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(disabled_extensions=("ts.j2",)),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    env.filters["js"] = js_string
    env.filters["json"] = json.dumps
    return env


def render(template_name: str, **context: Any) -> str:
    """Render *template_name* with *context* using a shared environment."""
    global _ENV
    if _ENV is None:
        _ENV = create_jinja_env()
    return _ENV.get_template(template_name).render(**context)
