"""Disk-based cache for remote OpenAPI documents.

Uses :mod:`diskcache` to persist fetched document text on the filesystem
with a configurable time-to-live (TTL).  Only successfully fetched documents
are stored; local files are never cached because reading them is cheap and
they change under the user's hands.

Cache keys are SHA-256 hashes of the URL so that arbitrarily long URLs map
to fixed-size keys.

See Also:
    :class:`~specbridge.models.CacheConfig` -- the Pydantic model that
    controls ``enabled`` and ``ttl_seconds``.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Any, Optional

import diskcache

from specbridge.models import CacheConfig


class DocumentCache:
    """Disk-backed cache for fetched OpenAPI document text.

    Args:
        cache_dir: Root directory for the cache.  A ``documents/``
            subdirectory is created inside it.
        config: Cache configuration (``enabled`` flag and ``ttl_seconds``).

    Example::

        from specbridge.cache import DocumentCache
        from specbridge.models import CacheConfig

        cache = DocumentCache("/tmp/specbridge-cache", CacheConfig(enabled=True))
        cache.set("https://api.example.com/openapi.json", text)
        hit = cache.get("https://api.example.com/openapi.json")
    """

    def __init__(self, cache_dir: str | Path, config: CacheConfig) -> None:
        self._config = config
        self._cache: Optional[diskcache.Cache] = None
        self._cache_dir = Path(cache_dir)
        if config.enabled:
            self._cache = diskcache.Cache(str(self._cache_dir / "documents"))

    @property
    def enabled(self) -> bool:
        return self._cache is not None

    def get(self, url: str) -> Optional[str]:
        """Return the cached document text for *url*, or ``None`` on a miss."""
        if self._cache is None:
            return None
        return self._cache.get(self._make_key(url))

    def set(self, url: str, content: str) -> None:
        """Store *content* for *url*.  Empty documents are not cached."""
        if self._cache is None or not content.strip():
            return
        self._cache.set(self._make_key(url), content, expire=self._config.ttl_seconds)

    def invalidate(self, url: str) -> None:
        if self._cache is None:
            return
        self._cache.delete(self._make_key(url))

    def clear(self) -> None:
        """Remove all entries from the cache."""
        if self._cache is not None:
            self._cache.clear()

    def stats(self) -> dict[str, Any]:
        """Return cache statistics.

        Returns:
            A ``dict`` with ``enabled`` (bool), and when enabled:
            ``size`` (number of entries), ``directory`` (str path), and
            ``ttl_seconds`` (int).
        """
        if self._cache is None:
            return {"enabled": False}
        return {
            "enabled": True,
            "size": len(self._cache),
            "directory": str(self._cache_dir / "documents"),
            "ttl_seconds": self._config.ttl_seconds,
        }

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        if self._cache is not None:
            self._cache.close()

    def _make_key(self, url: str) -> str:
        return hashlib.sha256(url.encode()).hexdigest()
