"""Extract operations, parameters, and component schemas from OpenAPI documents.

This module walks an OpenAPI 3.0/3.1 document dictionary and builds a
:class:`~specbridge.models.ParseResult` containing every API operation,
parameter, request body, response definition, server, and component schema
declared in the document.

The public entry point is :func:`parse_openapi_document`.  Internally it
delegates to private helpers that each handle one section of the OpenAPI
structure:

* ``_extract_info`` -- the ``info`` object (title, version, description).
* ``_extract_servers`` -- the ``servers`` array.
* ``_extract_operation`` -- one path + HTTP method combination.
* ``_extract_schemas`` -- the ``components/schemas`` map.

Parameter merging follows the OpenAPI specification: path-level parameters
provide defaults, and operation-level parameters override them when they share
the same ``name`` and ``in`` values.

Parsing is fail-soft: a path item that is not a mapping, or an operation that
raises while being extracted, is recorded in ``ParseResult.warnings`` and
skipped, so that one broken path item never blocks the rest of the document.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from specbridge.exceptions import SpecParseError
from specbridge.models import (
    APIInfo,
    HTTPMethod,
    ParameterLocation,
    ParsedOperation,
    ParsedParameter,
    ParseResult,
    RequestBodyInfo,
    ResponseInfo,
    ServerInfo,
)
from specbridge.naming import to_pascal_case
from specbridge.parser.resolver import is_reference, resolve_ref

logger = logging.getLogger(__name__)

# Success statuses in the order they are preferred for output inference.
SUCCESS_STATUS_PRIORITY = ("200", "201", "202", "204")


def validate_openapi_version(document: dict[str, Any]) -> str:
    """Validate and return the OpenAPI version string.

    Supports OpenAPI 3.0.x and 3.1.x.  Future 3.x versions are accepted.

    Args:
        document: The parsed document dictionary.

    Returns:
        The OpenAPI version string (e.g., ``'3.0.3'``, ``'3.1.0'``).

    Raises:
        SpecParseError: If the version is missing, unsupported, or indicates
            Swagger 2.x.
    """
    if "swagger" in document:
        swagger_ver = str(document["swagger"])
        raise SpecParseError(
            f"Swagger {swagger_ver} is not supported. "
            "Only OpenAPI 3.0.x and 3.1.x are supported. "
            "Consider converting with https://converter.swagger.io"
        )

    openapi_version = document.get("openapi")
    if openapi_version is None:
        raise SpecParseError(
            "Missing 'openapi' field. Is this an OpenAPI 3.x document?"
        )

    version_str = str(openapi_version)
    if version_str.startswith("3."):
        return version_str

    raise SpecParseError(
        f"Unsupported OpenAPI version: {version_str}. "
        "Only OpenAPI 3.0.x and 3.1.x are supported."
    )


def detect_version(document: dict[str, Any]) -> str:
    """Return ``"3.1"`` for 3.1.x documents and ``"3.0"`` for everything else 3.x.

    Raises:
        SpecParseError: Propagated from :func:`validate_openapi_version`.
    """
    version_str = validate_openapi_version(document)
    return "3.1" if version_str.startswith("3.1") else "3.0"


def generate_operation_id(method: str, path: str) -> str:
    """Build a stable operationId from an HTTP method and path template.

    Each path segment is PascalCased; ``{param}`` segments become
    ``By{Param}``.

    Example::

        >>> generate_operation_id("get", "/widgets/{id}")
        'getWidgetsById'
        >>> generate_operation_id("post", "/user-profiles")
        'postUserProfiles'
    """
    parts: list[str] = []
    for segment in path.split("/"):
        if not segment:
            continue
        if segment.startswith("{") and segment.endswith("}"):
            parts.append("By" + to_pascal_case(segment[1:-1]))
        else:
            parts.append(to_pascal_case(segment))
    return method.lower() + "".join(parts)


def select_success_response(
    responses: dict[str, ResponseInfo],
) -> Optional[tuple[str, ResponseInfo]]:
    """Pick the response whose schema describes the operation's output.

    Statuses ``200``, ``201``, ``202`` and ``204`` are tried in that order;
    otherwise the first ``2xx`` response (in document order) that carries a
    schema wins.

    Returns:
        A ``(status, response)`` tuple, or ``None`` when no success response
        declares a schema.
    """
    for status in SUCCESS_STATUS_PRIORITY:
        response = responses.get(status)
        if response is not None and response.schema_ is not None:
            return status, response

    for status, response in responses.items():
        if status.startswith("2") and response.schema_ is not None:
            return status, response
    return None


def parse_openapi_document(document: dict[str, Any]) -> ParseResult:
    """Extract a :class:`~specbridge.models.ParseResult` from a document dict.

    Args:
        document: The OpenAPI document as returned by
            :func:`~specbridge.parser.loader.parse_openapi_string`.

    Returns:
        A frozen :class:`~specbridge.models.ParseResult`.  Operations appear
        in document order (paths, then methods in
        :class:`~specbridge.models.HTTPMethod` order).

    Raises:
        SpecParseError: If the document is not an OpenAPI 3.x document.

    Example::

        result = parse_openapi_document(yaml.safe_load(text))
        for op in result.operations:
            print(f"{op.method.value.upper()} {op.path}")
    """
    if not isinstance(document, dict):
        raise SpecParseError(
            f"OpenAPI document must be a mapping (got {type(document).__name__})"
        )

    version = detect_version(document)
    warnings: list[str] = []
    operations: list[ParsedOperation] = []
    seen_ids: dict[str, int] = {}

    paths = document.get("paths") or {}
    if not isinstance(paths, dict):
        warnings.append("'paths' is not a mapping; no operations extracted")
        paths = {}

    for path, path_item in paths.items():
        if not isinstance(path_item, dict):
            _warn(warnings, f"Skipping path item {path}: expected a mapping")
            continue

        path_params = path_item.get("parameters") or []

        for method in HTTPMethod:
            operation = path_item.get(method.value)
            if operation is None:
                continue
            try:
                parsed = _extract_operation(
                    document, method, str(path), operation, path_params, warnings
                )
            except Exception as exc:  # noqa: BLE001
                _warn(warnings, f"Failed to parse {method.value.upper()} {path}: {exc}")
                continue

            # operationIds must be unique within one run
            count = seen_ids.get(parsed.operation_id, 0) + 1
            seen_ids[parsed.operation_id] = count
            if count > 1:
                unique_id = f"{parsed.operation_id}_{count}"
                _warn(
                    warnings,
                    f"Duplicate operationId '{parsed.operation_id}' at "
                    f"{method.value.upper()} {path}; renamed to '{unique_id}'",
                )
                parsed = parsed.model_copy(update={"operation_id": unique_id})
            operations.append(parsed)

    return ParseResult(
        document=document,
        version=version,
        info=_extract_info(document),
        operations=operations,
        schemas=_extract_schemas(document),
        servers=_extract_servers(document),
        warnings=warnings,
    )


def _warn(warnings: list[str], message: str) -> None:
    logger.warning(message)
    warnings.append(message)


def _extract_info(document: dict[str, Any]) -> APIInfo:
    info = document.get("info") or {}
    return APIInfo(
        title=str(info.get("title", "Untitled API")),
        version=str(info.get("version", "0.0.0")),
        description=info.get("description"),
    )


def _extract_servers(document: dict[str, Any]) -> list[ServerInfo]:
    servers = document.get("servers") or []
    return [
        ServerInfo(
            url=server.get("url", "/"),
            description=server.get("description"),
            variables=server.get("variables"),
        )
        for server in servers
        if isinstance(server, dict)
    ]


def _extract_schemas(document: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Return ``components.schemas`` as-is; nested refs are resolved on demand."""
    components = document.get("components") or {}
    schemas = components.get("schemas") or {}
    return {
        str(name): schema for name, schema in schemas.items() if isinstance(schema, dict)
    }


def _extract_operation(
    document: dict[str, Any],
    method: HTTPMethod,
    path: str,
    operation: Any,
    path_params: list[Any],
    warnings: list[str],
) -> ParsedOperation:
    """Build one :class:`~specbridge.models.ParsedOperation`.

    Raises:
        SpecParseError: If the operation object is not a mapping.
        RefResolutionError: If one of its refs loops.
    """
    if not isinstance(operation, dict):
        raise SpecParseError("operation object must be a mapping")

    merged = _merge_parameters(
        [resolve_ref(document, p) for p in path_params],
        [resolve_ref(document, p) for p in operation.get("parameters") or []],
    )
    buckets = _extract_parameters(document, merged, f"{method.value.upper()} {path}", warnings)

    contract_spec_meta = operation.get("x-contractspec")
    return ParsedOperation(
        operation_id=operation.get("operationId") or generate_operation_id(method.value, path),
        method=method,
        path=path,
        summary=operation.get("summary"),
        description=operation.get("description"),
        tags=[str(tag) for tag in operation.get("tags") or []],
        path_params=buckets[ParameterLocation.PATH],
        query_params=buckets[ParameterLocation.QUERY],
        header_params=buckets[ParameterLocation.HEADER],
        cookie_params=buckets[ParameterLocation.COOKIE],
        request_body=_extract_request_body(document, operation.get("requestBody")),
        responses=_extract_responses(document, operation.get("responses") or {}),
        deprecated=bool(operation.get("deprecated", False)),
        security=operation.get("security"),
        contract_spec_meta=contract_spec_meta if isinstance(contract_spec_meta, dict) else None,
    )


def _merge_parameters(
    path_params: list[Any],
    op_params: list[Any],
) -> list[Any]:
    """Merge path-level and operation-level parameters.

    Operation-level parameters override path-level parameters with the same
    name and location (``in`` field), per the OpenAPI spec.  Unresolved
    ``$ref`` parameters are kept so the caller can report them.
    """
    def key(param: Any) -> tuple[str, str]:
        if not isinstance(param, dict):
            return ("", "")
        return (str(param.get("name", "")), str(param.get("in", "")))

    op_keys = {key(param) for param in op_params if not is_reference(param)}
    merged = [
        param for param in path_params
        if is_reference(param) or key(param) not in op_keys
    ]
    merged.extend(op_params)
    return merged


def _extract_parameters(
    document: dict[str, Any],
    params: list[Any],
    label: str,
    warnings: list[str],
) -> dict[ParameterLocation, list[ParsedParameter]]:
    """Bucket parameters by location.

    Path parameters are always required regardless of the declared flag.
    Unresolvable references and unknown ``in`` values are dropped with a
    warning.
    """
    buckets: dict[ParameterLocation, list[ParsedParameter]] = {
        location: [] for location in ParameterLocation
    }

    for param in params:
        if is_reference(param):
            _warn(warnings, f"{label}: unresolved parameter reference {param['$ref']}")
            continue
        if not isinstance(param, dict):
            _warn(warnings, f"{label}: ignoring malformed parameter")
            continue

        try:
            location = ParameterLocation(param.get("in"))
        except ValueError:
            _warn(warnings, f"{label}: ignoring parameter '{param.get('name')}' "
                            f"with unknown location '{param.get('in')}'")
            continue

        schema = param.get("schema")
        buckets[location].append(
            ParsedParameter(
                name=str(param.get("name", "")),
                location=location,
                required=location == ParameterLocation.PATH or bool(param.get("required", False)),
                description=param.get("description"),
                schema=_resolve_schema(document, schema),
                deprecated=bool(param.get("deprecated", False)),
            )
        )

    return buckets


def _resolve_schema(document: dict[str, Any], schema: Any) -> Optional[dict[str, Any]]:
    """Resolve a media or parameter schema one ref-chain deep.

    Nested ``$ref`` properties are left for the schema converter.
    """
    if not isinstance(schema, dict):
        return None
    resolved = resolve_ref(document, schema)
    return resolved if isinstance(resolved, dict) else schema


def _first_media(content: Any) -> tuple[Optional[str], Optional[dict[str, Any]]]:
    if not isinstance(content, dict) or not content:
        return None, None
    content_type = next(iter(content))
    media = content[content_type]
    return str(content_type), media if isinstance(media, dict) else None


def _extract_request_body(document: dict[str, Any], body: Any) -> Optional[RequestBodyInfo]:
    """Extract the request body using its first declared content type."""
    if body is None:
        return None
    body = resolve_ref(document, body)
    if not isinstance(body, dict) or is_reference(body):
        return None

    content_type, media = _first_media(body.get("content"))
    if media is None or "schema" not in media:
        return None

    return RequestBodyInfo(
        required=bool(body.get("required", False)),
        content_type=content_type or "application/json",
        schema=_resolve_schema(document, media["schema"]),
    )


def _extract_responses(document: dict[str, Any], responses: Any) -> dict[str, ResponseInfo]:
    """Extract response metadata keyed by status code, in document order."""
    result: dict[str, ResponseInfo] = {}
    if not isinstance(responses, dict):
        return result

    for status_code, response in responses.items():
        response = resolve_ref(document, response)
        if not isinstance(response, dict) or is_reference(response):
            continue

        content_type, media = _first_media(response.get("content"))
        schema = media.get("schema") if media is not None else None
        result[str(status_code)] = ResponseInfo(
            description=response.get("description"),
            content_type=content_type,
            schema=_resolve_schema(document, schema),
        )

    return result
