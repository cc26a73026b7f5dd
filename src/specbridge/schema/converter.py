"""Convert JSON Schema nodes into the canonical field model.

Two views of the same conversion live here:

* The **code-generation view** used by the generators in
  :mod:`specbridge.schema.generators`: :func:`json_schema_to_type`,
  :func:`get_scalar_type`, :func:`json_schema_to_field` and
  :func:`generate_imports` describe a schema node as a
  :class:`~specbridge.models.TypeRef` / :class:`~specbridge.models.SchemaField`.
* The **canonical view** used by the importer and the differ:
  :func:`schema_model_from_json_schema` builds a live
  :class:`~specbridge.contracts.SchemaModel`, following ``$ref`` pointers
  against the source document.  :meth:`SchemaModel.to_json_schema` is the
  inverse direction used by the exporter.

Shapes that cannot be mapped never fail the conversion; they degrade to an
``unknown`` type (``ScalarType.UNKNOWN`` in the canonical view).
"""

from __future__ import annotations

from typing import Any, Optional

from specbridge.contracts import FieldSpec, ScalarType, SchemaModel
from specbridge.models import ConventionsConfig, SchemaField, TypeRef
from specbridge.naming import to_kebab_case, to_pascal_case
from specbridge.parser.resolver import is_reference, ref_name, resolve_ref

# Keyed by ``type`` or ``type:format``; lookups fall back to plain ``type``.
SCALAR_MAP: dict[str, ScalarType] = {
    "string": ScalarType.STRING,
    "integer": ScalarType.INT,
    "number": ScalarType.FLOAT,
    "boolean": ScalarType.BOOLEAN,
    "string:date": ScalarType.DATE,
    "string:date-time": ScalarType.DATE_TIME,
    "string:email": ScalarType.EMAIL,
    "string:uri": ScalarType.URL,
    "string:uuid": ScalarType.ID,
}

SCHEMA_LIBRARY = "@lssm/lib.schema"


def scalar_code(scalar: ScalarType) -> str:
    """Return the generated-code constructor expression for *scalar*."""
    return f"ScalarTypeEnum.{scalar.value}"


def schema_type(schema: Any) -> tuple[Optional[str], bool]:
    """Return ``(type, nullable)`` for a schema node.

    OpenAPI 3.1 type arrays (``["string", "null"]``) yield their first
    non-null entry; 3.0 ``nullable: true`` and a ``"null"`` entry both set
    the nullable flag.
    """
    if not isinstance(schema, dict):
        return None, False
    nullable = bool(schema.get("nullable", False))
    type_value = schema.get("type")
    if isinstance(type_value, list):
        nullable = nullable or "null" in type_value
        non_null = [t for t in type_value if t != "null"]
        return (str(non_null[0]) if non_null else None), nullable
    return (str(type_value) if type_value is not None else None), nullable


def lookup_scalar(type_name: Optional[str], fmt: Optional[str]) -> Optional[ScalarType]:
    if type_name is None:
        return None
    if fmt:
        scalar = SCALAR_MAP.get(f"{type_name}:{fmt}")
        if scalar is not None:
            return scalar
    return SCALAR_MAP.get(type_name)


def get_scalar_type(schema: Any) -> Optional[ScalarType]:
    """Return the scalar for a primitive schema (or an array of primitives)."""
    if not isinstance(schema, dict) or is_reference(schema):
        return None
    type_name, _ = schema_type(schema)
    if type_name == "array":
        items = schema.get("items")
        return get_scalar_type(items) if items is not None else None
    if schema.get("enum"):
        return None
    return lookup_scalar(type_name, schema.get("format"))


def json_schema_to_type(schema: Any, name: Optional[str] = None) -> TypeRef:
    """Describe *schema* as a :class:`~specbridge.models.TypeRef`.

    Args:
        schema: A JSON Schema node.
        name: Field or model name, used to name inline objects and enums.
    """
    if is_reference(schema):
        return TypeRef(
            type=to_pascal_case(ref_name(schema["$ref"])),
            is_reference=True,
        )
    if not isinstance(schema, dict):
        return TypeRef(type="unknown")

    type_name, nullable = schema_type(schema)

    if type_name == "array":
        items = schema.get("items")
        if isinstance(items, dict):
            item_type = json_schema_to_type(items, name)
            return item_type.model_copy(update={"array": True, "optional": nullable})
        return TypeRef(type="unknown", array=True, optional=nullable)

    if type_name == "object" or "properties" in schema:
        return TypeRef(
            type=to_pascal_case(name) if name else "Record<string, unknown>",
            optional=nullable,
        )

    if schema.get("enum"):
        return TypeRef(type=to_pascal_case(name) if name else "string", optional=nullable)

    if type_name == "string":
        return TypeRef(type="string", optional=nullable, primitive=True)
    if type_name in ("integer", "number"):
        return TypeRef(type="number", optional=nullable, primitive=True)
    if type_name == "boolean":
        return TypeRef(type="boolean", optional=nullable, primitive=True)

    return TypeRef(type="unknown", optional=nullable)


def json_schema_to_field(schema: Any, field_name: str, required: bool) -> SchemaField:
    """Describe one property as a :class:`~specbridge.models.SchemaField`.

    The field is optional when it is not required or when the schema is
    nullable.  Nested objects are *not* hoisted here; generators that need
    named nested models do that themselves.
    """
    type_ref = json_schema_to_type(schema, field_name)
    enum_values: Optional[list[str]] = None
    description: Optional[str] = None
    if isinstance(schema, dict) and not is_reference(schema):
        if schema.get("enum"):
            enum_values = [str(value) for value in schema["enum"]]
        description = schema.get("description")

    return SchemaField(
        name=field_name,
        type=type_ref.model_copy(
            update={
                "optional": not required or type_ref.optional,
                "description": description,
            }
        ),
        scalar_type=_scalar_value(get_scalar_type(schema)),
        enum_values=enum_values,
    )


def _scalar_value(scalar: Optional[ScalarType]) -> Optional[str]:
    return scalar_code(scalar) if scalar is not None else None


def generate_imports(
    fields: list[SchemaField],
    conventions: Optional[ConventionsConfig] = None,
    same_directory: bool = True,
) -> list[str]:
    """Import statements needed by a model's fields.

    Referenced models are imported from their kebab-cased file, either in
    the same directory (model-to-model) or from the configured models
    directory (operation files).

    Returns:
        Import lines, de-duplicated, library import first.
    """
    conventions = conventions or ConventionsConfig()
    models_dir = "." if same_directory else f"../{conventions.models}"
    imports = [f"import {{ defineSchemaModel, ScalarTypeEnum, EnumType }} from '{SCHEMA_LIBRARY}';"]

    for field in fields:
        if (
            field.type.is_reference
            and not field.type.primitive
            and field.enum_values is None
            and field.scalar_type is None
            and field.nested_model is None
        ):
            model_name = field.type.type
            line = f"import {{ {model_name} }} from '{models_dir}/{to_kebab_case(model_name)}';"
            if line not in imports:
                imports.append(line)
    return imports


# --- Canonical view ---


def schema_model_from_json_schema(
    schema: dict[str, Any],
    name: str,
    document: Optional[dict[str, Any]] = None,
) -> SchemaModel:
    """Build a canonical :class:`~specbridge.contracts.SchemaModel`.

    Nested object properties become nested models named
    ``<Parent><PropertyName>``.  ``$ref`` properties are resolved against
    *document* and become nested models named after the component; a
    reference back to a component that is already being expanded is kept as
    a named ``ref`` field instead.  Top-level primitives become a single
    ``value`` field and top-level arrays a single ``items`` field.

    Raises:
        RefResolutionError: If a ``$ref`` chain loops on itself.

    Example::

        model = schema_model_from_json_schema(
            {"type": "object", "properties": {"id": {"type": "string"}}, "required": ["id"]},
            "Widget",
        )
        model.fields["id"].is_optional  # False
    """
    return _ModelBuilder(document or {}).build(schema, to_pascal_case(name) or name)


class _ModelBuilder:
    def __init__(self, document: dict[str, Any]) -> None:
        self._document = document
        self._expanding: list[str] = []

    def build(self, schema: Any, name: str) -> SchemaModel:
        schema, component = self._deref(schema)
        if component is not None:
            self._expanding.append(component)
        try:
            return self._build_model(schema, name)
        finally:
            if component is not None:
                self._expanding.pop()

    def _deref(self, schema: Any) -> tuple[Any, Optional[str]]:
        if not is_reference(schema):
            return schema, None
        target = resolve_ref(self._document, schema)
        if is_reference(target):
            return target, None
        return target, ref_name(schema["$ref"])

    def _build_model(self, schema: Any, name: str) -> SchemaModel:
        if not isinstance(schema, dict):
            return SchemaModel(name=name)

        description = schema.get("description")
        type_name, _ = schema_type(schema)
        properties = schema.get("properties")

        if isinstance(properties, dict):
            required = set(schema.get("required") or [])
            fields = {
                str(prop): self._field(prop_schema, str(prop), prop in required, name)
                for prop, prop_schema in properties.items()
            }
            return SchemaModel(name=name, description=description, fields=fields)

        if type_name == "object" or (type_name is None and not schema.get("enum")):
            return SchemaModel(name=name, description=description)

        # primitives, enums and arrays are wrapped in a single field
        field_name = "items" if type_name == "array" else "value"
        field = self._field(schema, field_name, True, name)
        return SchemaModel(
            name=name,
            description=description,
            fields={field_name: field.model_copy(update={"description": None})},
        )

    def _field(self, schema: Any, prop: str, required: bool, parent: str) -> FieldSpec:
        ref_target: Optional[str] = None
        if is_reference(schema):
            ref_target = ref_name(schema["$ref"])
            schema, component = self._deref(schema)
            if component is None or component in self._expanding:
                return FieldSpec(ref=to_pascal_case(ref_target), is_optional=not required)

        if not isinstance(schema, dict):
            return FieldSpec(scalar=ScalarType.UNKNOWN, is_optional=not required)

        type_name, nullable = schema_type(schema)
        optional = not required or nullable
        description = schema.get("description")

        if type_name == "array":
            items = schema.get("items")
            item = (
                self._field(items, prop, True, parent)
                if items is not None
                else FieldSpec(scalar=ScalarType.UNKNOWN)
            )
            if item.is_array:
                item = FieldSpec(scalar=ScalarType.JSON)
            return item.model_copy(
                update={"is_array": True, "is_optional": optional, "description": description}
            )

        if schema.get("enum"):
            return FieldSpec(
                enum_values=[str(value) for value in schema["enum"]],
                is_optional=optional,
                description=description,
            )

        if isinstance(schema.get("properties"), dict):
            model_name = (
                to_pascal_case(ref_target) if ref_target else parent + to_pascal_case(prop)
            )
            if ref_target:
                self._expanding.append(ref_target)
            try:
                nested = self._build_model(schema, model_name)
            finally:
                if ref_target:
                    self._expanding.pop()
            return FieldSpec(model=nested, is_optional=optional, description=description)

        if type_name == "object" or schema.get("additionalProperties"):
            return FieldSpec(scalar=ScalarType.JSON_OBJECT, is_optional=optional, description=description)

        scalar = lookup_scalar(type_name, schema.get("format")) or ScalarType.UNKNOWN
        return FieldSpec(scalar=scalar, is_optional=optional, description=description)
