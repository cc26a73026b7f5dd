"""Import OpenAPI operations as canonical contract specs.

The importer drives the parser output through the schema generators, one
operation at a time:

1. **Filter** -- tag allow-list, include list (which, when present, replaces
   the exclude list), exclude list, deprecation.  The first rule that
   rejects an operation records a reason in ``skipped``.
2. **Input schema** -- path parameters (always required), then query
   parameters, then header parameters (minus transport-reserved headers),
   then request body properties are merged into one synthetic object
   schema.  A request body that is still a ``$ref`` becomes a single
   ``body`` field.
3. **Output schema** -- the success response chosen by
   :func:`~specbridge.parser.extractor.select_success_response`.
4. **Code** -- both models are generated in the configured
   :class:`~specbridge.models.SchemaFormat` and embedded in an operation
   spec file rendered from ``operation_spec.ts.j2``.
5. **Live spec** -- unless disabled, a canonical
   :class:`~specbridge.contracts.OperationSpec` with the same meta, io,
   policy and transport is built alongside the code.

Failures while generating one operation are caught and recorded in
``errors`` with the operation id; the batch always completes.  The importer
performs no I/O.

Example::

    result = import_from_openapi(parse_openapi("openapi.yaml"), ImportOptions(prefix="petstore"))
    for spec in result.specs:
        print(spec.file_name, spec.transport_hints.rest.method)
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from specbridge.contracts import (
    AuthLevel,
    OperationIO,
    OperationMeta,
    OperationPolicy,
    OperationSpec,
    OperationTransport,
    OpKind,
    RestTransport,
    Stability,
)
from specbridge.exceptions import GenerationError
from specbridge.models import (
    GeneratedCode,
    ImportedOperationSpec,
    ImportFailure,
    ImportOptions,
    ImportResult,
    ImportSummary,
    ParsedOperation,
    ParseResult,
    RestParams,
    RestTransportHints,
    SkippedOperation,
    SpecSource,
    SpecSourceType,
    TransportHints,
)
from specbridge.naming import to_export_name, to_file_name, to_pascal_case, to_spec_name
from specbridge.parser.extractor import select_success_response
from specbridge.parser.resolver import is_reference
from specbridge.rendering import render
from specbridge.schema.converter import schema_model_from_json_schema
from specbridge.schema.generators import SchemaGenerator, create_schema_generator

logger = logging.getLogger(__name__)

COMMAND_METHODS = frozenset({"post", "put", "delete", "patch"})

# Headers carried by the transport itself, never part of an operation's input.
EXCLUDED_HEADERS = frozenset({"authorization", "content-type", "accept", "user-agent"})


def infer_op_kind(method: str) -> OpKind:
    """State-changing methods are commands; everything else is a query."""
    return OpKind.COMMAND if method.lower() in COMMAND_METHODS else OpKind.QUERY


def infer_auth_level(operation: ParsedOperation, default_auth: AuthLevel) -> AuthLevel:
    """Derive the auth policy from the operation's security requirements.

    An empty requirement object (``{}``) anywhere in the list means the
    operation may be called anonymously; any other requirement means a user
    is needed.  Without a security list the configured default applies.
    """
    if not operation.security:
        return default_auth
    if any(len(requirement) == 0 for requirement in operation.security):
        return AuthLevel.ANONYMOUS
    return AuthLevel.USER


def build_input_schema(operation: ParsedOperation) -> Optional[dict[str, Any]]:
    """Merge every parameter source into one synthetic object schema.

    Later sources overwrite earlier ones on a name collision, but a name
    stays required if any source required it.

    Returns:
        ``{"type": "object", "properties": ..., "required": [...]}`` or
        ``None`` when the operation takes no input at all.
    """
    fields: list[tuple[str, dict[str, Any], bool]] = []

    for param in operation.path_params:
        fields.append((param.name, param.schema_ or {}, True))
    for param in operation.query_params:
        fields.append((param.name, param.schema_ or {}, param.required))
    for param in operation.header_params:
        if param.name.lower() not in EXCLUDED_HEADERS:
            fields.append((param.name, param.schema_ or {}, param.required))

    body = operation.request_body
    if body is not None and body.schema_ is not None:
        body_schema = body.schema_
        if is_reference(body_schema):
            fields.append(("body", body_schema, body.required))
        else:
            required = set(body_schema.get("required") or [])
            for prop, prop_schema in (body_schema.get("properties") or {}).items():
                fields.append((str(prop), prop_schema, prop in required))

    if not fields:
        return None

    properties: dict[str, Any] = {}
    required_names: list[str] = []
    for name, schema, required in fields:
        properties[name] = schema
        if required and name not in required_names:
            required_names.append(name)

    return {"type": "object", "properties": properties, "required": required_names}


def get_output_schema(operation: ParsedOperation) -> Optional[dict[str, Any]]:
    selected = select_success_response(operation.responses)
    return selected[1].schema_ if selected is not None else None


def build_transport_hints(operation: ParsedOperation) -> TransportHints:
    return TransportHints(
        rest=RestTransportHints(
            method=operation.method.value.upper(),
            path=operation.path,
            params=RestParams(
                path=[p.name for p in operation.path_params],
                query=[p.name for p in operation.query_params],
                header=[p.name for p in operation.header_params],
                cookie=[p.name for p in operation.cookie_params],
            ),
        )
    )


def _filter_reason(operation: ParsedOperation, options: ImportOptions) -> Optional[str]:
    if options.tags:
        if not any(tag in options.tags for tag in operation.tags):
            return f"No matching tags (has: {', '.join(operation.tags)})"

    if options.include:
        if operation.operation_id not in options.include:
            return "Not in include list"
    elif operation.operation_id in options.exclude:
        return "In exclude list"

    if (
        operation.deprecated
        and not options.include_deprecated
        and options.default_stability != Stability.DEPRECATED
    ):
        return "Deprecated operation"
    return None


def _stability(operation: ParsedOperation, options: ImportOptions) -> Stability:
    if operation.deprecated:
        return Stability.DEPRECATED
    return options.default_stability


def spec_identity(operation: ParsedOperation, options: ImportOptions) -> tuple[str, int, OpKind]:
    """Return the canonical ``(name, version, kind)`` of an operation.

    ``x-contractspec`` metadata on the operation (as written by the
    exporter) wins over the derived values, so an exported document imports
    back under its original identity.
    """
    extension = operation.contract_spec_meta or {}
    name = str(extension.get("name") or to_spec_name(operation.operation_id, options.prefix))
    try:
        version = int(extension.get("version") or 1)
    except (TypeError, ValueError):
        version = 1
    if extension.get("kind") in ("command", "query"):
        kind = OpKind(extension["kind"])
    else:
        kind = infer_op_kind(operation.method.value)
    return name, version, kind


def _meta_values(operation: ParsedOperation) -> dict[str, str]:
    method = operation.method.value.upper()
    return {
        "description": operation.summary or operation.operation_id,
        "goal": operation.description or "Imported from OpenAPI",
        "context": f"Imported from OpenAPI: {method} {operation.path}",
    }


def _generate_model(generator: SchemaGenerator, schema: dict[str, Any], name: str) -> GeneratedCode:
    try:
        return generator.generate_model(schema, name)
    except Exception as exc:  # noqa: BLE001
        raise GenerationError(f"Cannot generate model {name}: {exc}") from exc


def _generate_models(
    operation: ParsedOperation,
    generator: SchemaGenerator,
) -> tuple[Optional[dict[str, Any]], Optional[GeneratedCode], Optional[dict[str, Any]], Optional[GeneratedCode]]:
    input_schema = build_input_schema(operation)
    input_model = (
        _generate_model(generator, input_schema, f"{operation.operation_id}Input")
        if input_schema is not None
        else None
    )
    output_schema = get_output_schema(operation)
    output_model = (
        _generate_model(generator, output_schema, f"{operation.operation_id}Output")
        if output_schema is not None
        else None
    )
    return input_schema, input_model, output_schema, output_model


def generate_spec_code(
    operation: ParsedOperation,
    options: ImportOptions,
    input_model: Optional[GeneratedCode],
    output_model: Optional[GeneratedCode],
) -> str:
    """Render the operation spec file for one operation."""
    name, version, kind = spec_identity(operation, options)
    imports: list[str] = []
    for model in (input_model, output_model):
        if model is None:
            continue
        for line in model.imports:
            if line not in imports:
                imports.append(line)

    meta = _meta_values(operation)
    return render(
        "operation_spec.ts.j2",
        imports=imports,
        input_model=input_model,
        output_model=output_model,
        summary=operation.summary or operation.operation_id,
        description=operation.description,
        method=operation.method.value.upper(),
        path=operation.path,
        export_name=to_export_name(name, version),
        define_func="defineCommand" if kind == OpKind.COMMAND else "defineQuery",
        spec_name=name,
        version=version,
        stability=_stability(operation, options).value,
        owners=options.default_owners,
        tags=operation.tags,
        meta_description=meta["description"],
        goal=meta["goal"],
        context=meta["context"],
        auth=infer_auth_level(operation, options.default_auth).value,
    )


def build_operation_spec(
    operation: ParsedOperation,
    options: ImportOptions,
    document: Optional[dict[str, Any]] = None,
    input_schema: Optional[dict[str, Any]] = None,
    output_schema: Optional[dict[str, Any]] = None,
) -> OperationSpec:
    """Build the live canonical spec matching the generated code.

    *input_schema* / *output_schema* default to the schemas the importer
    derives from *operation*; ``$ref`` properties are resolved against
    *document*.
    """
    if input_schema is None:
        input_schema = build_input_schema(operation)
    if output_schema is None:
        output_schema = get_output_schema(operation)

    name, version, kind = spec_identity(operation, options)

    model_base = to_pascal_case(operation.operation_id)
    meta = _meta_values(operation)
    return OperationSpec(
        meta=OperationMeta(
            name=name,
            version=version,
            kind=kind,
            stability=_stability(operation, options),
            owners=list(options.default_owners),
            tags=list(operation.tags),
            description=meta["description"],
            goal=meta["goal"],
            context=meta["context"],
        ),
        io=OperationIO(
            input=(
                schema_model_from_json_schema(input_schema, f"{model_base}Input", document)
                if input_schema is not None
                else None
            ),
            output=(
                schema_model_from_json_schema(output_schema, f"{model_base}Output", document)
                if output_schema is not None
                else None
            ),
        ),
        policy=OperationPolicy(auth=infer_auth_level(operation, options.default_auth)),
        transport=OperationTransport(
            rest=RestTransport(method=operation.method.value.upper(), path=operation.path)
        ),
    )


def import_operation(operation: ParsedOperation, options: Optional[ImportOptions] = None) -> str:
    """Import a single operation and return only its generated code."""
    options = options or ImportOptions()
    generator = create_schema_generator(options.schema_format)
    _, input_model, _, output_model = _generate_models(operation, generator)
    return generate_spec_code(operation, options, input_model, output_model)


def import_from_openapi(
    parse_result: ParseResult,
    options: Optional[ImportOptions] = None,
) -> ImportResult:
    """Import every operation of *parse_result*.

    Args:
        parse_result: Output of :func:`~specbridge.parser.parse_openapi`.
        options: Filters, naming and defaults.  See
            :class:`~specbridge.models.ImportOptions`.

    Returns:
        A frozen :class:`~specbridge.models.ImportResult` whose ``specs``,
        ``skipped`` and ``errors`` follow document order.
    """
    options = options or ImportOptions()
    generator = create_schema_generator(options.schema_format)

    specs: list[ImportedOperationSpec] = []
    skipped: list[SkippedOperation] = []
    errors: list[ImportFailure] = []

    for operation in parse_result.operations:
        reason = _filter_reason(operation, options)
        if reason is not None:
            logger.debug("Skipping %s: %s", operation.operation_id, reason)
            skipped.append(SkippedOperation(source_id=operation.operation_id, reason=reason))
            continue

        try:
            input_schema, input_model, output_schema, output_model = _generate_models(
                operation, generator
            )
            code = generate_spec_code(operation, options, input_model, output_model)
            operation_spec = (
                build_operation_spec(
                    operation, options, parse_result.document, input_schema, output_schema
                )
                if options.build_specs
                else None
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to import %s: %s", operation.operation_id, exc)
            errors.append(ImportFailure(source_id=operation.operation_id, error=str(exc)))
            continue

        spec_name, _, _ = spec_identity(operation, options)
        specs.append(
            ImportedOperationSpec(
                code=code,
                file_name=to_file_name(spec_name),
                operation_spec=operation_spec,
                transport_hints=build_transport_hints(operation),
                source=SpecSource(
                    type=SpecSourceType.OPENAPI,
                    source_id=operation.operation_id,
                    operation_id=operation.operation_id,
                    url=options.source_url,
                    file=options.source_file,
                    openapi_version=parse_result.version,
                ),
            )
        )

    return ImportResult(
        specs=specs,
        skipped=skipped,
        errors=errors,
        summary=ImportSummary(
            total=len(parse_result.operations),
            imported=len(specs),
            skipped=len(skipped),
            errors=len(errors),
        ),
    )


def generate_component_models(
    parse_result: ParseResult,
    options: Optional[ImportOptions] = None,
) -> list[GeneratedCode]:
    """Generate one model file per ``components.schemas`` entry.

    Operation files import referenced components from the models
    directory; this produces those files.  A component whose generator
    fails raises :class:`~specbridge.exceptions.GenerationError`, which is
    logged and the component skipped.
    """
    options = options or ImportOptions()
    generator = create_schema_generator(options.schema_format)
    models: list[GeneratedCode] = []
    for name, schema in parse_result.schemas.items():
        try:
            models.append(_generate_model(generator, schema, name))
        except GenerationError as exc:
            logger.warning("Skipping component: %s", exc)
    return models
