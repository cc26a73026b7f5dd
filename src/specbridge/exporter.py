"""Export canonical contract registries to an OpenAPI 3.1 document.

This is the inverse of :mod:`specbridge.importer`.  Every
:class:`~specbridge.contracts.OperationSpec` becomes one OpenAPI operation:

* ``operationId`` -- ``name`` with ``.`` replaced by ``_``, suffixed
  ``_v{version}``.
* HTTP method -- ``transport.rest.method`` when set, else ``POST`` for
  commands and ``GET`` for queries.
* Path -- ``transport.rest.path`` when set, else
  ``/{name with dots as slashes}/v{version}``.
* Schemas -- ``io.input`` / ``io.output`` are emitted as the component
  schemas ``Input_{operationId}`` / ``Output_{operationId}``.  Fields named
  in the path template become path parameters; for ``GET``/``DELETE``/
  ``HEAD`` the remaining input fields become query parameters, otherwise a
  JSON request body references the input schema.  A ``ref`` field becomes a
  component named after the model it refers to; a ref with no known model
  is emitted as ``{}``, so every ``$ref`` in the document resolves.
* ``x-contractspec`` -- ``{name, version, kind}`` on every operation.

Non-REST surfaces (events, features, presentations, forms, data views,
workflows) are never folded into ``paths``; each present registry is
attached as a root-level vendor extension.  Registry source code is
generated for every registry present.  Absent registries are silently
omitted; the exporter never raises.

Example::

    registries = load_registries("contracts.yaml")
    result = export_contract_spec(registries, ExportOptions(title="Pet Store"))
    Path("openapi.json").write_text(openapi_to_json(result.openapi))
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterator, Optional

import yaml

from specbridge.contracts import (
    AuthLevel,
    ContractRegistries,
    OperationSpec,
    OpKind,
    SchemaModel,
    SpecRegistry,
    Stability,
)
from specbridge.models import ConventionsConfig, ExportOptions, ExportResult, GeneratedFile
from specbridge.naming import to_export_name, to_file_name, to_kebab_case
from specbridge.rendering import render

logger = logging.getLogger(__name__)

OPENAPI_VERSION = "3.1.0"

# Methods whose input travels in the query string rather than a body.
_QUERY_INPUT_METHODS = frozenset({"GET", "DELETE", "HEAD"})

_PATH_PARAM_RE = re.compile(r"\{([^}/]+)\}")

_BEARER_SCHEME = "bearerAuth"

_COMPONENT_REF_PREFIX = "#/components/schemas/"

# surface -> (vendor extension, registry class, registry variable)
_SURFACES: dict[str, tuple[str, str, str]] = {
    "events": ("x-contractspec-events", "EventRegistry", "eventsRegistry"),
    "features": ("x-contractspec-features", "FeatureRegistry", "featuresRegistry"),
    "presentations": ("x-contractspec-presentations", "PresentationRegistry", "presentationsRegistry"),
    "forms": ("x-contractspec-forms", "FormRegistry", "formsRegistry"),
    "data_views": ("x-contractspec-dataviews", "DataViewRegistry", "dataViewsRegistry"),
    "workflows": ("x-contractspec-workflows", "WorkflowRegistry", "workflowsRegistry"),
}


def operation_id_for(spec: OperationSpec) -> str:
    """Deterministic operationId: ``pets.list`` v2 -> ``pets_list_v2``."""
    return f"{spec.meta.name.replace('.', '_')}_v{spec.meta.version}"


def http_method_for(spec: OperationSpec) -> str:
    """Explicit REST method, else ``POST`` for commands and ``GET`` for queries."""
    rest = spec.transport.rest if spec.transport else None
    if rest is not None and rest.method:
        return rest.method.upper()
    return "POST" if spec.meta.kind == OpKind.COMMAND else "GET"


def http_path_for(spec: OperationSpec) -> str:
    """Explicit REST path, else ``/{name-with-slashes}/v{version}``."""
    rest = spec.transport.rest if spec.transport else None
    if rest is not None and rest.path:
        return rest.path
    return f"/{spec.meta.name.replace('.', '/')}/v{spec.meta.version}"


def _operation_object(
    spec: OperationSpec,
    method: str,
    path: str,
    schemas: dict[str, Any],
) -> dict[str, Any]:
    operation_id = operation_id_for(spec)
    operation: dict[str, Any] = {"operationId": operation_id}
    if spec.meta.description:
        operation["summary"] = spec.meta.description
    if spec.meta.goal:
        operation["description"] = spec.meta.goal
    if spec.meta.tags:
        operation["tags"] = list(spec.meta.tags)

    input_model = spec.io.input
    parameters: list[dict[str, Any]] = []
    path_names = _PATH_PARAM_RE.findall(path)
    input_fields = input_model.fields if input_model is not None else {}

    for name in path_names:
        field = input_fields.get(name)
        parameters.append({
            "name": name,
            "in": "path",
            "required": True,
            "schema": field.to_json_schema() if field is not None else {"type": "string"},
        })

    if input_model is not None:
        schemas[f"Input_{operation_id}"] = input_model.to_json_schema()
        if method in _QUERY_INPUT_METHODS:
            for name, field in input_fields.items():
                if name in path_names:
                    continue
                parameters.append({
                    "name": name,
                    "in": "query",
                    "required": not field.is_optional,
                    "schema": field.to_json_schema(),
                })
        else:
            operation["requestBody"] = {
                "required": True,
                "content": {
                    "application/json": {
                        "schema": {"$ref": f"#/components/schemas/Input_{operation_id}"}
                    }
                },
            }

    if parameters:
        operation["parameters"] = parameters

    response: dict[str, Any] = {"description": "Success"}
    if spec.io.output is not None:
        schemas[f"Output_{operation_id}"] = spec.io.output.to_json_schema()
        response["content"] = {
            "application/json": {
                "schema": {"$ref": f"#/components/schemas/Output_{operation_id}"}
            }
        }
    operation["responses"] = {"200": response}

    if spec.policy.auth == AuthLevel.ANONYMOUS:
        operation["security"] = [{}]
    else:
        operation["security"] = [{_BEARER_SCHEME: []}]

    if spec.meta.stability == Stability.DEPRECATED:
        operation["deprecated"] = True

    operation["x-contractspec"] = {
        "name": spec.meta.name,
        "version": spec.meta.version,
        "kind": spec.meta.kind.value,
    }
    return operation


# --- Named references ---


def _collect_models(model: Optional[SchemaModel], catalog: dict[str, SchemaModel]) -> None:
    """Index *model* and every nested model by name (first occurrence wins)."""
    if model is None:
        return
    catalog.setdefault(model.name, model)
    for field in model.fields.values():
        _collect_models(field.model, catalog)


def _ref_nodes(node: Any) -> Iterator[dict[str, Any]]:
    if isinstance(node, dict):
        if "$ref" in node:
            yield node
            return
        for value in list(node.values()):
            yield from _ref_nodes(value)
    elif isinstance(node, list):
        for item in list(node):
            yield from _ref_nodes(item)


def _resolve_named_refs(
    paths: dict[str, Any],
    schemas: dict[str, Any],
    catalog: dict[str, SchemaModel],
) -> None:
    """Emit a component for every named reference, or blank the reference.

    Ref fields point at models that were expanded elsewhere in the same
    spec (a self-referencing schema keeps its expanded copy one level up).
    Those copies become components of their own; references with no known
    model degrade to ``{}``.
    """
    pending: list[Any] = [paths, *schemas.values()]
    while pending:
        for node in _ref_nodes(pending.pop()):
            target = node["$ref"]
            name = (
                target[len(_COMPONENT_REF_PREFIX):]
                if isinstance(target, str) and target.startswith(_COMPONENT_REF_PREFIX)
                else None
            )
            if name is not None and name in schemas:
                continue
            model = catalog.get(name) if name is not None else None
            if model is None:
                logger.warning("Dropping unresolvable schema reference %s", target)
                node.clear()
                continue
            schemas[name] = model.to_json_schema()
            pending.append(schemas[name])


def openapi_for_registry(
    registry: SpecRegistry[OperationSpec],
    options: Optional[ExportOptions] = None,
) -> dict[str, Any]:
    """Build the OpenAPI document for an operation registry.

    Operations are emitted in key order.  When two specs resolve to the
    same method and path, the first one wins and the collision is logged.
    """
    options = options or ExportOptions()
    info: dict[str, Any] = {"title": options.title, "version": options.version}
    if options.description:
        info["description"] = options.description

    document: dict[str, Any] = {"openapi": OPENAPI_VERSION, "info": info}
    if options.servers:
        document["servers"] = [
            server.model_dump(exclude_none=True) for server in options.servers
        ]

    paths: dict[str, dict[str, Any]] = {}
    schemas: dict[str, Any] = {}
    catalog: dict[str, SchemaModel] = {}
    needs_bearer = False

    for spec in registry.list_specs():
        method = http_method_for(spec)
        path = http_path_for(spec)
        path_item = paths.setdefault(path, {})
        if method.lower() in path_item:
            logger.warning(
                "Skipping %s: %s %s is already exported by %s",
                spec.key, method, path, path_item[method.lower()]["operationId"],
            )
            continue
        path_item[method.lower()] = _operation_object(spec, method, path, schemas)
        needs_bearer = needs_bearer or spec.policy.auth != AuthLevel.ANONYMOUS
        _collect_models(spec.io.input, catalog)
        _collect_models(spec.io.output, catalog)

    _resolve_named_refs(paths, schemas, catalog)
    document["paths"] = paths
    components: dict[str, Any] = {"schemas": schemas}
    if needs_bearer:
        components["securitySchemes"] = {
            _BEARER_SCHEME: {"type": "http", "scheme": "bearer"}
        }
    document["components"] = components
    return document


def export_contract_spec(
    registries: ContractRegistries,
    options: Optional[ExportOptions] = None,
) -> ExportResult:
    """Export every registry present in *registries*.

    Returns:
        A frozen :class:`~specbridge.models.ExportResult` holding the OpenAPI
        document and, when ``options.include_registry_code`` is set, the
        generated registry files.
    """
    options = options or ExportOptions()
    document = openapi_for_registry(registries.operations or SpecRegistry(), options)

    for surface, (extension, _, _) in _SURFACES.items():
        registry: Optional[SpecRegistry] = getattr(registries, surface)
        if registry is None:
            continue
        document[extension] = [
            spec.model_dump(mode="json", exclude_none=True) for spec in registry.list_specs()
        ]

    files = generate_registry_code(registries) if options.include_registry_code else None
    return ExportResult(openapi=document, registries=files)


def generate_registry_code(
    registries: ContractRegistries,
    conventions: Optional[ConventionsConfig] = None,
) -> list[GeneratedFile]:
    """Generate one registry source file per registry present."""
    conventions = conventions or ConventionsConfig()
    directories = {
        "operations": conventions.operations,
        "events": conventions.events,
    }
    surfaces: dict[str, tuple[str, str]] = {
        "operations": ("OperationSpecRegistry", "operationsRegistry"),
        **{surface: (cls, var) for surface, (_, cls, var) in _SURFACES.items()},
    }

    files: list[GeneratedFile] = []
    for surface, (registry_class, variable) in surfaces.items():
        registry: Optional[SpecRegistry] = getattr(registries, surface)
        if registry is None:
            continue
        directory = directories.get(surface, to_kebab_case(surface))
        entries = [
            {
                "symbol": to_export_name(spec.meta.name, spec.meta.version),
                "module": f"./{directory}/{to_file_name(spec.meta.name, extension='')}",
            }
            for spec in registry.list_specs()
        ]
        code = render(
            "registry.ts.j2",
            title=f"{registry_class} with {len(entries)} spec(s)",
            registry_class=registry_class,
            variable=variable,
            entries=entries,
        )
        files.append(GeneratedFile(file_name=to_file_name(f"{surface}Registry"), code=code))
    return files


def openapi_to_json(document: dict[str, Any]) -> str:
    return json.dumps(document, indent=2) + "\n"


def openapi_to_yaml(document: dict[str, Any]) -> str:
    return yaml.safe_dump(document, sort_keys=False, allow_unicode=True)
