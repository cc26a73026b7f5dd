"""Disk-based caching of fetched OpenAPI documents.

This package provides :class:`DocumentCache`, a transparent caching layer
that stores the raw text of remote OpenAPI documents on disk using
:mod:`diskcache`.  Entries are keyed by URL with a configurable TTL.

The cache is consumed by :func:`~specbridge.parser.loader.parse_openapi`
and is controlled by the ``cache`` section of the global configuration
(:class:`~specbridge.models.CacheConfig`).
"""

from specbridge.cache.cache import DocumentCache

__all__ = ["DocumentCache"]
