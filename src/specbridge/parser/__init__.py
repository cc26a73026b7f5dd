"""OpenAPI document parser -- load, resolve ``$ref`` pointers, and extract operations.

This sub-package is responsible for the first stage of the inbound pipeline:
turning a raw OpenAPI 3.x document (JSON or YAML, local file or remote URL)
into a :class:`~specbridge.models.ParseResult` that the importer can consume.

Typical usage::

    from specbridge.parser import parse_openapi

    result = parse_openapi("https://petstore3.swagger.io/api/v3/openapi.json")
    for warning in result.warnings:
        print(warning)

Sub-modules:

* :mod:`~specbridge.parser.loader` -- I/O adapters (URL, file, stdin) plus
  format detection.
* :mod:`~specbridge.parser.resolver` -- Lazy local ``$ref`` resolution with
  loop detection.
* :mod:`~specbridge.parser.extractor` -- Walks the document and produces
  :class:`~specbridge.models.ParseResult` containing
  :class:`~specbridge.models.ParsedOperation` objects.
"""

from specbridge.parser.extractor import (
    detect_version,
    generate_operation_id,
    parse_openapi_document,
    select_success_response,
    validate_openapi_version,
)
from specbridge.parser.loader import (
    AsyncHttpxFetcher,
    HttpxFetcher,
    detect_format,
    load_document,
    load_document_async,
    parse_openapi,
    parse_openapi_async,
    parse_openapi_string,
)
from specbridge.parser.resolver import is_reference, ref_name, resolve_pointer, resolve_ref

__all__ = [
    "AsyncHttpxFetcher",
    "HttpxFetcher",
    "detect_format",
    "detect_version",
    "generate_operation_id",
    "is_reference",
    "load_document",
    "load_document_async",
    "parse_openapi",
    "parse_openapi_async",
    "parse_openapi_document",
    "parse_openapi_string",
    "ref_name",
    "resolve_pointer",
    "resolve_ref",
    "select_success_response",
    "validate_openapi_version",
]
