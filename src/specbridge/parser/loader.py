"""Load OpenAPI documents from a URL, local file, or stdin.

This module handles all I/O for fetching raw OpenAPI documents and converting
them into Python dictionaries.  It supports both JSON and YAML with format
detection by extension (``.json``, ``.yaml``, ``.yml``) or, failing that, by
sniffing the first non-whitespace character of the content.

I/O is adapter based so that callers (and tests) can swap the transport:

* ``fetch(url, timeout) -> str`` -- defaults to :class:`HttpxFetcher`.
* ``read_file(path) -> str`` -- defaults to :func:`read_text_file`.

Public functions:

* :func:`detect_format` / :func:`parse_openapi_string` -- pure text parsing.
* :func:`load_document` / :func:`load_document_async` -- text from any source.
* :func:`parse_openapi` / :func:`parse_openapi_async` -- load and hand the
  document to :func:`~specbridge.parser.extractor.parse_openapi_document`.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import httpx
import yaml

from specbridge.cache import DocumentCache
from specbridge.exceptions import FetchError, FetchTimeoutError, SpecParseError
from specbridge.models import ParseResult
from specbridge.parser.extractor import parse_openapi_document

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

FetchFn = Callable[[str, float], str]
AsyncFetchFn = Callable[[str, float], Awaitable[str]]
ReadFileFn = Callable[[str], str]


def detect_format(content: str) -> str:
    """Return ``"json"`` when *content* starts with ``{`` or ``[``, else ``"yaml"``."""
    trimmed = content.lstrip()
    if trimmed.startswith(("{", "[")):
        return "json"
    return "yaml"


def _format_from_source(source: str) -> Optional[str]:
    lowered = source.lower().split("?", 1)[0]
    if lowered.endswith((".yaml", ".yml")):
        return "yaml"
    if lowered.endswith(".json"):
        return "json"
    return None


def parse_openapi_string(content: str, fmt: str = "json") -> dict[str, Any]:
    """Parse document text as JSON or YAML.

    Args:
        content: The raw document text.
        fmt: ``"json"`` or ``"yaml"``.

    Returns:
        The parsed document dictionary.

    Raises:
        SpecParseError: If the content is not valid in the given format or
            does not contain a mapping at the top level.
    """
    try:
        if fmt == "yaml":
            result = yaml.safe_load(content)
        else:
            result = json.loads(content)
    except json.JSONDecodeError as exc:
        raise SpecParseError(f"Invalid JSON: {exc}") from exc
    except yaml.YAMLError as exc:
        raise SpecParseError(f"Invalid YAML: {exc}") from exc

    if not isinstance(result, dict):
        raise SpecParseError(
            "OpenAPI document must be a JSON/YAML object (got "
            f"{type(result).__name__ if result is not None else 'empty document'})"
        )
    return result


# --- I/O adapters ---


class HttpxFetcher:
    """Default ``fetch`` adapter backed by :class:`httpx.Client`.

    Args:
        client: Optional pre-configured client (e.g. with a
            ``httpx.MockTransport`` in tests).  When omitted, a short-lived
            client is created per call.
    """

    def __init__(self, client: Optional[httpx.Client] = None) -> None:
        self._client = client

    def __call__(self, url: str, timeout: float = DEFAULT_TIMEOUT) -> str:
        """Fetch *url* and return the response body as text.

        Raises:
            FetchTimeoutError: If the request exceeds *timeout* seconds.
            FetchError: On a non-2xx response or transport failure.
        """
        try:
            if self._client is not None:
                response = self._client.get(url, timeout=timeout, follow_redirects=True)
            else:
                with httpx.Client(follow_redirects=True) as client:
                    response = client.get(url, timeout=timeout)
        except httpx.TimeoutException as exc:
            raise FetchTimeoutError(
                f"Timed out after {timeout:g}s fetching {url}", url=url
            ) from exc
        except httpx.RequestError as exc:
            raise FetchError(f"Failed to fetch {url}: {exc}", url=url) from exc

        _raise_for_status(response, url)
        return response.text


class AsyncHttpxFetcher:
    """Async ``fetch`` adapter backed by :class:`httpx.AsyncClient`."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None) -> None:
        self._client = client

    async def __call__(self, url: str, timeout: float = DEFAULT_TIMEOUT) -> str:
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=timeout, follow_redirects=True)
            else:
                async with httpx.AsyncClient(follow_redirects=True) as client:
                    response = await client.get(url, timeout=timeout)
        except httpx.TimeoutException as exc:
            raise FetchTimeoutError(
                f"Timed out after {timeout:g}s fetching {url}", url=url
            ) from exc
        except httpx.RequestError as exc:
            raise FetchError(f"Failed to fetch {url}: {exc}", url=url) from exc

        _raise_for_status(response, url)
        return response.text


def _raise_for_status(response: httpx.Response, url: str) -> None:
    if not response.is_success:
        raise FetchError(
            f"HTTP {response.status_code}: {response.reason_phrase} fetching {url}",
            url=url,
            status_code=response.status_code,
        )


def read_text_file(path: str) -> str:
    """Default ``read_file`` adapter: read a UTF-8 file, or stdin for ``-``.

    Raises:
        SpecParseError: If the file does not exist or cannot be read.
    """
    if path == "-":
        return sys.stdin.read()

    file_path = Path(path)
    if not file_path.is_file():
        raise SpecParseError(f"OpenAPI file not found: {path}")
    try:
        return file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SpecParseError(f"Failed to read OpenAPI file {path}: {exc}") from exc


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def _to_document(source: str, content: str) -> dict[str, Any]:
    if not content.strip():
        raise SpecParseError(f"OpenAPI document is empty: {source}")
    fmt = _format_from_source(source) or detect_format(content)
    return parse_openapi_string(content, fmt)


# --- Loading ---


def load_document(
    source: str,
    fetch: Optional[FetchFn] = None,
    read_file: Optional[ReadFileFn] = None,
    timeout: float = DEFAULT_TIMEOUT,
    cache: Optional[DocumentCache] = None,
) -> dict[str, Any]:
    """Load an OpenAPI document from URL, file path, or stdin (``-``).

    Args:
        source: An ``http(s)`` URL, a file path, or ``-`` for stdin.
        fetch: Fetch adapter for URLs.  Defaults to :class:`HttpxFetcher`.
        read_file: Read adapter for paths.  Defaults to :func:`read_text_file`.
        timeout: Fetch timeout in seconds.
        cache: Optional :class:`~specbridge.cache.DocumentCache` consulted
            before fetching a URL.

    Returns:
        The parsed document dictionary.

    Raises:
        FetchError: If a URL cannot be fetched.
        FetchTimeoutError: If fetching exceeds *timeout*.
        SpecParseError: If the content cannot be parsed.
    """
    if _is_url(source):
        content = cache.get(source) if cache is not None else None
        if content is None:
            logger.debug("Fetching %s (timeout %ss)", source, timeout)
            content = (fetch or HttpxFetcher())(source, timeout)
            if cache is not None:
                cache.set(source, content)
        else:
            logger.debug("Using cached document for %s", source)
    else:
        content = (read_file or read_text_file)(source)

    return _to_document(source, content)


async def load_document_async(
    source: str,
    fetch: Optional[AsyncFetchFn] = None,
    read_file: Optional[ReadFileFn] = None,
    timeout: float = DEFAULT_TIMEOUT,
    cache: Optional[DocumentCache] = None,
) -> dict[str, Any]:
    """Async variant of :func:`load_document`.

    The fetch is wrapped in :func:`asyncio.wait_for`, so a slow adapter is
    cancelled after *timeout* seconds and :class:`FetchTimeoutError` is
    raised instead of hanging.
    """
    if _is_url(source):
        content = cache.get(source) if cache is not None else None
        if content is None:
            fetch_fn = fetch or AsyncHttpxFetcher()
            try:
                content = await asyncio.wait_for(fetch_fn(source, timeout), timeout=timeout)
            except asyncio.TimeoutError as exc:
                raise FetchTimeoutError(
                    f"Timed out after {timeout:g}s fetching {source}", url=source
                ) from exc
            if cache is not None:
                cache.set(source, content)
    else:
        content = (read_file or read_text_file)(source)

    return _to_document(source, content)


def parse_openapi(
    source: str,
    fetch: Optional[FetchFn] = None,
    read_file: Optional[ReadFileFn] = None,
    timeout: float = DEFAULT_TIMEOUT,
    cache: Optional[DocumentCache] = None,
) -> ParseResult:
    """Load *source* and parse it into a :class:`~specbridge.models.ParseResult`.

    Example::

        result = parse_openapi("https://petstore3.swagger.io/api/v3/openapi.json")
        print(result.info.title, len(result.operations))
    """
    document = load_document(source, fetch=fetch, read_file=read_file, timeout=timeout, cache=cache)
    return parse_openapi_document(document)


async def parse_openapi_async(
    source: str,
    fetch: Optional[AsyncFetchFn] = None,
    read_file: Optional[ReadFileFn] = None,
    timeout: float = DEFAULT_TIMEOUT,
    cache: Optional[DocumentCache] = None,
) -> ParseResult:
    """Async variant of :func:`parse_openapi`."""
    document = await load_document_async(
        source, fetch=fetch, read_file=read_file, timeout=timeout, cache=cache
    )
    return parse_openapi_document(document)
