"""Helpers shared by the command modules."""

from __future__ import annotations

from typing import Optional

from specbridge.models import ParseResult, ResolvedConfig
from specbridge.output import debug, warning


def load_source(source: str, config: Optional[ResolvedConfig] = None) -> ParseResult:
    """Parse *source* with the resolved timeout and document cache.

    Parser warnings are forwarded to stderr.

    Raises:
        FetchError: If a URL cannot be fetched.
        SpecParseError: If the document cannot be parsed.
    """
    from specbridge.cache import DocumentCache
    from specbridge.config import get_cache_dir, resolve_config
    from specbridge.parser import parse_openapi

    config = config or resolve_config()
    cache = DocumentCache(get_cache_dir(), config.cache) if config.cache.enabled else None
    try:
        debug(f"Loading {source} (timeout {config.timeout:g}s)")
        result = parse_openapi(source, timeout=config.timeout, cache=cache)
    finally:
        if cache is not None:
            cache.close()

    for message in result.warnings:
        warning(message)
    debug(f"Parsed OpenAPI {result.version}: {len(result.operations)} operation(s)")
    return result
