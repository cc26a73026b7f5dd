"""Schema generator factory for multi-format code generation.

One JSON-Schema-shaped input, four independent output dialects.  Every
dialect implements :class:`SchemaGenerator`; callers obtain one through
:func:`create_schema_generator` keyed by
:class:`~specbridge.models.SchemaFormat` and never branch on the format
themselves.

==================  =========================================================
Format              Output
==================  =========================================================
``contractspec``    ``defineSchemaModel`` declarations.  Nested objects are
                    **hoisted** into separately named models
                    (``<Parent><Property>``) placed before their parent.
``zod``             A ``z.object`` schema, a ``ZodSchemaType`` wrapper and an
                    inferred type.  Nested objects stay **inline**.
``json-schema``     A draft 2020-12 schema constant and ``JsonSchemaType``
                    wrapper.
``graphql``         An SDL ``type`` definition constant and
                    ``GraphQLSchemaType`` wrapper.
==================  =========================================================

Unknown schema shapes never abort generation: they degrade to an unknown /
``JSONObject`` type marked with a ``TODO`` in the generated code.

Example::

    generator = create_schema_generator(SchemaFormat.ZOD)
    result = generator.generate_model(schema, "User")
    print("\\n".join(result.imports))
    print(result.code)
"""

from __future__ import annotations

import abc
import json
from typing import Any, Optional, Union

from specbridge.models import (
    ConventionsConfig,
    GeneratedCode,
    GeneratedFieldCode,
    GeneratedModel,
    SchemaField,
    SchemaFormat,
)
from specbridge.naming import is_identifier, to_kebab_case, to_pascal_case, to_valid_identifier
from specbridge.parser.resolver import is_reference, ref_name
from specbridge.schema.converter import (
    SCHEMA_LIBRARY,
    generate_imports,
    json_schema_to_field,
    lookup_scalar,
    scalar_code,
    schema_type,
)


def js_string(value: Any) -> str:
    """Render *value* as a single-quoted JavaScript string literal."""
    text = str(value).replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")
    return f"'{text}'"


def js_key(name: str) -> str:
    """Object key: bare when it is a valid identifier, quoted otherwise."""
    return name if is_identifier(name) else js_string(name)


def _model_name(name: str) -> str:
    return to_pascal_case(to_valid_identifier(name)) or "_"


class SchemaGenerator(abc.ABC):
    """Interface of every format-specific generator.

    Args:
        conventions: Directory conventions used to build import paths of
            referenced models.
    """

    format: SchemaFormat

    def __init__(self, conventions: Optional[ConventionsConfig] = None) -> None:
        self.conventions = conventions or ConventionsConfig()

    @abc.abstractmethod
    def generate_model(
        self,
        schema: dict[str, Any],
        name: str,
        description: Optional[str] = None,
    ) -> GeneratedCode:
        """Generate code for a complete named model."""

    @abc.abstractmethod
    def generate_field(
        self,
        schema: dict[str, Any],
        field_name: str,
        required: bool,
    ) -> GeneratedFieldCode:
        """Generate code for a single field."""

    @abc.abstractmethod
    def base_imports(self) -> list[str]:
        """Import statements every file of this format needs."""

    def _ref_import(self, model_name: str, suffix: str = "") -> str:
        symbol = f"{model_name}{suffix}"
        return (
            f"import {{ {symbol} }} from "
            f"'../{self.conventions.models}/{to_kebab_case(model_name)}';"
        )


def create_schema_generator(
    format: Union[SchemaFormat, str, None] = None,
    conventions: Optional[ConventionsConfig] = None,
) -> SchemaGenerator:
    """Return the generator for *format*; unknown values fall back to ``contractspec``.

    Example::

        generator = create_schema_generator("graphql")
        generator.format  # SchemaFormat.GRAPHQL
    """
    try:
        schema_format = SchemaFormat(format) if format is not None else SchemaFormat.CONTRACTSPEC
    except ValueError:
        schema_format = SchemaFormat.CONTRACTSPEC

    generator_cls = _GENERATORS.get(schema_format, ContractSpecSchemaGenerator)
    return generator_cls(conventions)


# ------------------------------------------------------------------ #
# ContractSpec (default)
# ------------------------------------------------------------------ #


class ContractSpecSchemaGenerator(SchemaGenerator):
    """Declarative ``defineSchemaModel`` output with hoisted nested models."""

    format = SchemaFormat.CONTRACTSPEC

    def generate_model(
        self,
        schema: dict[str, Any],
        name: str,
        description: Optional[str] = None,
    ) -> GeneratedCode:
        model = self.build_model(schema, name, description)
        imports = self.base_imports()
        for line in generate_imports(_all_fields(model), self.conventions, same_directory=False):
            if line not in imports:
                imports.append(line)
        return GeneratedCode(
            code=model.code,
            file_name=f"{to_kebab_case(name)}.ts",
            imports=imports,
            name=model.name,
        )

    def generate_field(
        self,
        schema: dict[str, Any],
        field_name: str,
        required: bool,
    ) -> GeneratedFieldCode:
        field = self._convert_field(schema, field_name, required)
        return GeneratedFieldCode(
            code=f"{field.scalar_type}()" if field.scalar_type else "ScalarTypeEnum.String_unsecure()",
            type_ref=field.type.type,
            is_optional=field.type.optional,
            is_array=field.type.array,
        )

    def base_imports(self) -> list[str]:
        return [f"import {{ defineSchemaModel, ScalarTypeEnum, EnumType }} from '{SCHEMA_LIBRARY}';"]

    def build_model(
        self,
        schema: Any,
        model_name: str,
        description: Optional[str] = None,
    ) -> GeneratedModel:
        """Build the :class:`~specbridge.models.GeneratedModel` for one schema.

        Dispatches on the schema's shape: ``$ref`` -> reference comment,
        enum -> ``EnumType``, primitive -> single-``value`` alias,
        dictionary -> ``JSONObject``, no properties -> empty model, and
        otherwise a full model with its nested models hoisted in front.
        """
        if is_reference(schema):
            return GeneratedModel(
                name=to_pascal_case(ref_name(schema["$ref"])),
                code=f"// Reference to {schema['$ref']}",
            )
        if not isinstance(schema, dict):
            schema = {}

        safe_name = _model_name(model_name)
        description = description or schema.get("description")
        properties = schema.get("properties")
        enum_values = schema.get("enum")
        type_name, _ = schema_type(schema)

        if enum_values:
            lines = ["/**", f" * Enum type: {safe_name}"]
            if description:
                lines.append(f" * {description}")
            lines.append(" */")
            values = ", ".join(js_string(v) for v in enum_values)
            lines.append(f"export const {safe_name} = new EnumType({js_string(safe_name)}, [{values}]);")
            return GeneratedModel(name=safe_name, description=description, code="\n".join(lines))

        if type_name and not isinstance(properties, dict):
            scalar = lookup_scalar(type_name, schema.get("format"))
            if scalar is not None:
                lines = ["/**", f" * Type alias: {safe_name}"]
                if description:
                    lines.append(f" * {description}")
                lines += [
                    f" * Underlying type: {scalar_code(scalar)}",
                    " */",
                    f"export const {safe_name} = defineSchemaModel({{",
                    f"  name: {js_string(safe_name)},",
                ]
                if description:
                    lines.append(f"  description: {json.dumps(description)},")
                lines += [
                    "  fields: {",
                    "    value: {",
                    f"      type: {scalar_code(scalar)}(),",
                    "      isOptional: false,",
                    "    },",
                    "  },",
                    "});",
                ]
                return GeneratedModel(name=safe_name, description=description, code="\n".join(lines))

        if type_name == "array" and not isinstance(properties, dict):
            wrapped = {
                "type": "object",
                "properties": {"items": schema},
                "required": ["items"],
            }
            if description:
                wrapped["description"] = description
            return self.build_model(wrapped, model_name)

        if schema.get("additionalProperties") and not isinstance(properties, dict):
            lines = ["/**", f" * Dictionary/Record type: {safe_name}"]
            if description:
                lines.append(f" * {description}")
            lines += [
                " * Use as: Record<string, unknown> - access via record[key]",
                " */",
                f"export const {safe_name} = ScalarTypeEnum.JSONObject();",
            ]
            return GeneratedModel(name=safe_name, description=description, code="\n".join(lines))

        if not isinstance(properties, dict):
            lines = [
                f"export const {safe_name} = defineSchemaModel({{",
                f"  name: {js_string(safe_name)},",
            ]
            if description:
                lines.append(f"  description: {json.dumps(description)},")
            lines += ["  fields: {},", "});"]
            return GeneratedModel(name=safe_name, description=description, code="\n".join(lines))

        required = set(schema.get("required") or [])
        fields = [
            self._convert_field(prop_schema, str(prop), prop in required, safe_name)
            for prop, prop_schema in properties.items()
        ]

        lines = []
        for field in fields:
            if field.nested_model is not None:
                lines += [field.nested_model.code, ""]

        lines += [
            f"export const {safe_name} = defineSchemaModel({{",
            f"  name: {js_string(safe_name)},",
        ]
        if description:
            lines.append(f"  description: {json.dumps(description)},")
        lines.append("  fields: {")
        lines += [self._field_code(field, indent=2) for field in fields]
        lines += ["  },", "});"]

        return GeneratedModel(
            name=safe_name,
            description=description,
            fields=fields,
            code="\n".join(lines),
        )

    def _convert_field(
        self,
        schema: Any,
        field_name: str,
        required: bool,
        parent_name: str = "",
    ) -> SchemaField:
        field = json_schema_to_field(schema, field_name, required)
        if not isinstance(schema, dict) or is_reference(schema):
            return field

        # arrays of objects hoist their item schema
        target = schema
        type_name, _ = schema_type(schema)
        if type_name == "array" and isinstance(schema.get("items"), dict):
            target = schema["items"]

        target_type, _ = schema_type(target)
        if (
            isinstance(target.get("properties"), dict)
            and target_type in ("object", None)
            and field.scalar_type is None
            and field.enum_values is None
        ):
            nested = self.build_model(target, parent_name + to_pascal_case(field_name))
            field = field.model_copy(
                update={
                    "nested_model": nested,
                    "type": field.type.model_copy(update={"type": nested.name, "is_reference": True}),
                }
            )
        return field

    def _field_code(self, field: SchemaField, indent: int) -> str:
        spaces = "  " * indent
        lines = [f"{spaces}{js_key(field.name)}: {{"]

        if field.enum_values is not None:
            enum_name = to_pascal_case(field.name) + "Enum"
            values = ", ".join(js_string(v) for v in field.enum_values)
            lines.append(f"{spaces}  type: new EnumType({js_string(enum_name)}, [{values}]),")
        elif field.scalar_type:
            lines.append(f"{spaces}  type: {field.scalar_type}(),")
        elif field.nested_model is not None:
            lines.append(f"{spaces}  type: {field.nested_model.name},")
        elif field.type.primitive:
            fallback = {
                "number": "ScalarTypeEnum.Float_unsecure",
                "boolean": "ScalarTypeEnum.Boolean",
            }.get(field.type.type, "ScalarTypeEnum.String_unsecure")
            lines.append(f"{spaces}  type: {fallback}(),")
        elif field.type.is_reference:
            lines.append(f"{spaces}  type: {field.type.type},")
        elif field.type.type != "unknown":
            lines.append(f"{spaces}  type: ScalarTypeEnum.JSONObject(),")
        else:
            lines.append(
                f"{spaces}  type: ScalarTypeEnum.JSONObject(), "
                f"// TODO: Define nested model for {field.name}"
            )

        lines.append(f"{spaces}  isOptional: {'true' if field.type.optional else 'false'},")
        if field.type.array:
            lines.append(f"{spaces}  isArray: true,")
        lines.append(f"{spaces}}},")
        return "\n".join(lines)


def _all_fields(model: GeneratedModel) -> list[SchemaField]:
    fields: list[SchemaField] = []
    for field in model.fields:
        fields.append(field)
        if field.nested_model is not None:
            fields.extend(_all_fields(field.nested_model))
    return fields


# ------------------------------------------------------------------ #
# Zod
# ------------------------------------------------------------------ #


class ZodSchemaGenerator(SchemaGenerator):
    """Runtime-validation output; nested objects are rendered inline."""

    format = SchemaFormat.ZOD

    def __init__(self, conventions: Optional[ConventionsConfig] = None) -> None:
        super().__init__(conventions)
        self._refs: list[str] = []

    def generate_model(
        self,
        schema: dict[str, Any],
        name: str,
        description: Optional[str] = None,
    ) -> GeneratedCode:
        self._refs = []
        safe_name = _model_name(name)
        description = description or (schema.get("description") if isinstance(schema, dict) else None)

        lines: list[str] = []
        if description:
            lines += ["/**", f" * {description}", " */"]

        schema_name = f"{safe_name}Schema"
        if isinstance(schema, dict) and isinstance(schema.get("properties"), dict):
            schema_code = self._zod_object(schema)
        elif isinstance(schema, dict) and (schema.get("type") or is_reference(schema)):
            schema_code = self.generate_field(schema, "value", True).code
        else:
            schema_code = "z.object({})"

        lines += [
            f"export const {schema_name} = {schema_code};",
            "",
            f"export const {safe_name} = new ZodSchemaType({schema_name}, "
            f"{{ name: {js_string(safe_name)}, description: {json.dumps(description)} }});",
            "",
            f"export type {safe_name} = z.infer<typeof {schema_name}>;",
        ]

        imports = self.base_imports()
        for ref in self._refs:
            line = self._ref_import(ref, "Schema")
            if line not in imports:
                imports.append(line)

        return GeneratedCode(
            code="\n".join(lines),
            file_name=f"{to_kebab_case(name)}.ts",
            imports=imports,
            name=safe_name,
        )

    def generate_field(
        self,
        schema: dict[str, Any],
        field_name: str,
        required: bool,
    ) -> GeneratedFieldCode:
        if is_reference(schema):
            target = to_pascal_case(ref_name(schema["$ref"]))
            if target not in self._refs:
                self._refs.append(target)
            code = f"z.lazy(() => {target}Schema)"
            if not required:
                code += ".optional()"
            return GeneratedFieldCode(code=code, type_ref=target, is_optional=not required, is_array=False)

        schema = schema if isinstance(schema, dict) else {}
        type_name, nullable = schema_type(schema)

        if type_name == "object" and isinstance(schema.get("properties"), dict):
            zod_type = self._zod_object(schema)
        elif schema.get("enum"):
            zod_type = f"z.enum([{', '.join(js_string(v) for v in schema['enum'])}])"
        elif type_name == "array":
            items = schema.get("items")
            if isinstance(items, dict):
                item_code = self.generate_field(items, "item", True).code
                zod_type = f"z.array({item_code})"
            else:
                zod_type = "z.array(z.unknown())"
        else:
            zod_type = self._map_type(type_name, schema.get("format"))

        zod_type += self._constraints(schema, type_name)

        if "default" in schema:
            zod_type += f".default({json.dumps(schema['default'])})"
        if not required or nullable:
            zod_type += ".optional()"

        return GeneratedFieldCode(
            code=zod_type,
            type_ref=type_name or "unknown",
            is_optional=not required or nullable,
            is_array=type_name == "array",
        )

    def base_imports(self) -> list[str]:
        return [
            "import * as z from 'zod';",
            f"import {{ ZodSchemaType }} from '{SCHEMA_LIBRARY}';",
        ]

    def _zod_object(self, schema: dict[str, Any]) -> str:
        required = set(schema.get("required") or [])
        lines = ["z.object({"]
        for prop, prop_schema in schema["properties"].items():
            field = self.generate_field(prop_schema, str(prop), prop in required)
            lines.append(f"  {js_key(str(prop))}: {field.code},")
        lines.append("})")
        return "\n".join(lines)

    @staticmethod
    def _constraints(schema: dict[str, Any], type_name: Optional[str]) -> str:
        parts: list[str] = []
        if type_name == "string":
            if "minLength" in schema:
                parts.append(f".min({schema['minLength']})")
            if "maxLength" in schema:
                parts.append(f".max({schema['maxLength']})")
            if "pattern" in schema:
                parts.append(f".regex(/{schema['pattern']}/)")
        elif type_name in ("integer", "number"):
            exclusive_min = schema.get("exclusiveMinimum")
            exclusive_max = schema.get("exclusiveMaximum")
            if "minimum" in schema:
                op = "gt" if exclusive_min is True else "min"
                parts.append(f".{op}({schema['minimum']})")
            elif isinstance(exclusive_min, (int, float)) and not isinstance(exclusive_min, bool):
                parts.append(f".gt({exclusive_min})")
            if "maximum" in schema:
                op = "lt" if exclusive_max is True else "max"
                parts.append(f".{op}({schema['maximum']})")
            elif isinstance(exclusive_max, (int, float)) and not isinstance(exclusive_max, bool):
                parts.append(f".lt({exclusive_max})")
            if "multipleOf" in schema:
                parts.append(f".step({schema['multipleOf']})")
        elif type_name == "array":
            if "minItems" in schema:
                parts.append(f".min({schema['minItems']})")
            if "maxItems" in schema:
                parts.append(f".max({schema['maxItems']})")
        return "".join(parts)

    @staticmethod
    def _map_type(type_name: Optional[str], fmt: Optional[str]) -> str:
        format_map = {
            "date-time": "z.string().datetime()",
            "date": "z.string().date()",
            "email": "z.string().email()",
            "uri": "z.string().url()",
            "url": "z.string().url()",
            "uuid": "z.string().uuid()",
        }
        if fmt in format_map:
            return format_map[fmt]
        return {
            "string": "z.string()",
            "integer": "z.number().int()",
            "number": "z.number()",
            "boolean": "z.boolean()",
            "object": "z.record(z.string(), z.unknown())",
            "null": "z.null()",
        }.get(type_name or "", "z.unknown()")


# ------------------------------------------------------------------ #
# JSON Schema
# ------------------------------------------------------------------ #


class JsonSchemaGenerator(SchemaGenerator):
    format = SchemaFormat.JSON_SCHEMA

    def generate_model(
        self,
        schema: dict[str, Any],
        name: str,
        description: Optional[str] = None,
    ) -> GeneratedCode:
        safe_name = _model_name(name)
        schema = schema if isinstance(schema, dict) else {}
        description = description or schema.get("description")

        json_schema: dict[str, Any] = {
            "$schema": "https://json-schema.org/draft/2020-12/schema",
            "title": safe_name,
            **schema,
        }
        if description:
            json_schema["description"] = description

        lines = ["/**", f" * JSON Schema: {safe_name}"]
        if description:
            lines.append(f" * {description}")
        schema_name = f"{safe_name}Schema"
        lines += [
            " */",
            f"export const {schema_name} = {json.dumps(json_schema, indent=2)} as const;",
            "",
            f"export const {safe_name} = new JsonSchemaType({schema_name});",
            "",
            f"export type {safe_name} = unknown; // JSON Schema type inference not fully supported",
        ]
        return GeneratedCode(
            code="\n".join(lines),
            file_name=f"{to_kebab_case(name)}.ts",
            imports=self.base_imports(),
            name=safe_name,
        )

    def generate_field(
        self,
        schema: dict[str, Any],
        field_name: str,
        required: bool,
    ) -> GeneratedFieldCode:
        type_name, nullable = schema_type(schema)
        return GeneratedFieldCode(
            code=json.dumps(schema),
            type_ref=type_name or "unknown",
            is_optional=not required or nullable,
            is_array=type_name == "array",
        )

    def base_imports(self) -> list[str]:
        return [f"import {{ JsonSchemaType }} from '{SCHEMA_LIBRARY}';"]


# ------------------------------------------------------------------ #
# GraphQL
# ------------------------------------------------------------------ #


class GraphQLSchemaGenerator(SchemaGenerator):
    format = SchemaFormat.GRAPHQL

    def generate_model(
        self,
        schema: dict[str, Any],
        name: str,
        description: Optional[str] = None,
    ) -> GeneratedCode:
        safe_name = _model_name(name)
        schema = schema if isinstance(schema, dict) else {}
        description = description or schema.get("description")
        properties = schema.get("properties")
        required = set(schema.get("required") or [])

        sdl: list[str] = []
        if description:
            sdl.append(f'"""{description}"""')
        sdl.append(f"type {safe_name} {{")
        if isinstance(properties, dict):
            for prop, prop_schema in properties.items():
                field = self.generate_field(prop_schema, str(prop), prop in required)
                marker = "!" if prop in required else ""
                sdl.append(f"  {prop}: {field.type_ref}{marker}")
        sdl.append("}")

        type_def = "\n".join(sdl).replace("`", "\\`")
        lines = [
            "/**",
            f" * GraphQL type definition: {safe_name}",
            " */",
            f"export const {safe_name}TypeDef = `{type_def}`;",
            "",
            f"export const {safe_name} = new GraphQLSchemaType({safe_name}TypeDef, {js_string(safe_name)});",
        ]
        return GeneratedCode(
            code="\n".join(lines),
            file_name=f"{to_kebab_case(name)}.ts",
            imports=self.base_imports(),
            name=safe_name,
        )

    def generate_field(
        self,
        schema: dict[str, Any],
        field_name: str,
        required: bool,
    ) -> GeneratedFieldCode:
        if is_reference(schema):
            gql_type = to_pascal_case(ref_name(schema["$ref"]))
            return GeneratedFieldCode(
                code=gql_type, type_ref=gql_type, is_optional=not required, is_array=False
            )

        type_name, nullable = schema_type(schema)
        if type_name == "array" and isinstance(schema.get("items"), dict):
            gql_type = f"[{self.generate_field(schema['items'], 'item', True).type_ref}]"
        else:
            gql_type = self._map_type(type_name, schema.get("format") if isinstance(schema, dict) else None)

        return GeneratedFieldCode(
            code=gql_type,
            type_ref=gql_type,
            is_optional=not required or nullable,
            is_array=type_name == "array",
        )

    def base_imports(self) -> list[str]:
        return [f"import {{ GraphQLSchemaType }} from '{SCHEMA_LIBRARY}';"]

    @staticmethod
    def _map_type(type_name: Optional[str], fmt: Optional[str]) -> str:
        format_map = {
            "date-time": "DateTime",
            "date": "Date",
            "email": "String",
            "uri": "String",
            "url": "String",
            "uuid": "ID",
        }
        if fmt in format_map:
            return format_map[fmt]
        return {
            "string": "String",
            "integer": "Int",
            "number": "Float",
            "boolean": "Boolean",
            "object": "JSON",
            "array": "[JSON]",
        }.get(type_name or "", "JSON")


_GENERATORS: dict[SchemaFormat, type[SchemaGenerator]] = {
    SchemaFormat.CONTRACTSPEC: ContractSpecSchemaGenerator,
    SchemaFormat.ZOD: ZodSchemaGenerator,
    SchemaFormat.JSON_SCHEMA: JsonSchemaGenerator,
    SchemaFormat.GRAPHQL: GraphQLSchemaGenerator,
}
