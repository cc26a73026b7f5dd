"""Schema conversion and multi-format code generation.

* :mod:`~specbridge.schema.converter` -- JSON Schema to canonical field
  model (and, via :meth:`SchemaModel.to_json_schema`, back).
* :mod:`~specbridge.schema.generators` -- the
  :class:`~specbridge.schema.generators.SchemaGenerator` interface, its four
  dialects and the :func:`create_schema_generator` factory.
"""

from specbridge.schema.converter import (
    SCALAR_MAP,
    generate_imports,
    get_scalar_type,
    json_schema_to_field,
    json_schema_to_type,
    schema_model_from_json_schema,
)
from specbridge.schema.generators import (
    ContractSpecSchemaGenerator,
    GraphQLSchemaGenerator,
    JsonSchemaGenerator,
    SchemaGenerator,
    ZodSchemaGenerator,
    create_schema_generator,
)

__all__ = [
    "SCALAR_MAP",
    "ContractSpecSchemaGenerator",
    "GraphQLSchemaGenerator",
    "JsonSchemaGenerator",
    "SchemaGenerator",
    "ZodSchemaGenerator",
    "create_schema_generator",
    "generate_imports",
    "get_scalar_type",
    "json_schema_to_field",
    "json_schema_to_type",
    "schema_model_from_json_schema",
]
