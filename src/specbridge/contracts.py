"""Canonical contract model -- the format-agnostic side of every transformation.

An :class:`OperationSpec` describes one API operation independently of any
wire format: its metadata, its input/output :class:`SchemaModel`, its auth
policy and, optionally, transport overrides. The importer builds these from
OpenAPI operations; the exporter turns them back into OpenAPI paths.

Non-operation surfaces (events, features, presentations, forms, data views,
workflows) share the :class:`SpecMeta` header and are kept in their own
:class:`SpecRegistry`. :class:`ContractRegistries` bundles one registry per
surface and can be loaded from a JSON or YAML file.

Example::

    registries = load_registries("contracts.yaml")
    for spec in registries.operations.list_specs():
        print(spec.key, spec.meta.kind.value)
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, Iterable, Iterator, Optional, TypeVar

import yaml
from pydantic import BaseModel, Field, ValidationError

from specbridge.exceptions import ConfigError, DuplicateSpecError


class ScalarType(str, enum.Enum):
    """Scalar field types understood by the canonical schema layer."""

    STRING = "String_unsecure"
    INT = "Int_unsecure"
    FLOAT = "Float_unsecure"
    BOOLEAN = "Boolean"
    DATE = "Date"
    DATE_TIME = "DateTime"
    EMAIL = "EmailAddress"
    URL = "URL"
    ID = "ID"
    JSON = "JSON"
    JSON_OBJECT = "JSONObject"
    UNKNOWN = "Unknown"


# JSON Schema projection of each scalar, used by SchemaModel.to_json_schema().
_SCALAR_JSON_SCHEMA: dict[ScalarType, dict[str, Any]] = {
    ScalarType.STRING: {"type": "string"},
    ScalarType.INT: {"type": "integer"},
    ScalarType.FLOAT: {"type": "number"},
    ScalarType.BOOLEAN: {"type": "boolean"},
    ScalarType.DATE: {"type": "string", "format": "date"},
    ScalarType.DATE_TIME: {"type": "string", "format": "date-time"},
    ScalarType.EMAIL: {"type": "string", "format": "email"},
    ScalarType.URL: {"type": "string", "format": "uri"},
    ScalarType.ID: {"type": "string", "format": "uuid"},
    ScalarType.JSON: {},
    ScalarType.JSON_OBJECT: {"type": "object", "additionalProperties": True},
    ScalarType.UNKNOWN: {},
}


class OpKind(str, enum.Enum):
    """Operation kind. Commands change state, queries only read it."""

    COMMAND = "command"
    QUERY = "query"


class Stability(str, enum.Enum):
    EXPERIMENTAL = "experimental"
    BETA = "beta"
    STABLE = "stable"
    DEPRECATED = "deprecated"


class AuthLevel(str, enum.Enum):
    ANONYMOUS = "anonymous"
    USER = "user"
    ADMIN = "admin"


# --- Schema models ---


class FieldSpec(BaseModel):
    """One field of a :class:`SchemaModel`.

    Exactly one of ``scalar``, ``enum_values``, ``model`` or ``ref`` describes
    the field's type. ``ref`` names a component schema that could not be
    inlined (for example because it refers back to one of its ancestors).
    """

    scalar: Optional[ScalarType] = None
    enum_values: Optional[list[str]] = None
    model: Optional[SchemaModel] = None
    ref: Optional[str] = None
    is_optional: bool = False
    is_array: bool = False
    description: Optional[str] = None

    def to_json_schema(self) -> dict[str, Any]:
        """Project this field back to a JSON Schema node."""
        if self.model is not None:
            node = self.model.to_json_schema()
        elif self.enum_values is not None:
            node = {"type": "string", "enum": list(self.enum_values)}
        elif self.ref is not None:
            node = {"$ref": f"#/components/schemas/{self.ref}"}
        else:
            node = dict(_SCALAR_JSON_SCHEMA[self.scalar or ScalarType.UNKNOWN])

        if self.is_array:
            node = {"type": "array", "items": node}
        if self.description and "$ref" not in node:
            node["description"] = self.description
        return node


class SchemaModel(BaseModel):
    """A named, ordered set of fields -- the canonical form of an object schema."""

    name: str
    description: Optional[str] = None
    fields: dict[str, FieldSpec] = Field(default_factory=dict)

    def to_json_schema(self) -> dict[str, Any]:
        """Convert the model to an (inline) JSON Schema object.

        Required fields are every field that is not ``is_optional``; the
        ``required`` key is omitted when no field is required.
        """
        schema: dict[str, Any] = {"type": "object"}
        if self.description:
            schema["description"] = self.description
        schema["properties"] = {
            name: field.to_json_schema() for name, field in self.fields.items()
        }
        required = [name for name, field in self.fields.items() if not field.is_optional]
        if required:
            schema["required"] = required
        return schema


FieldSpec.model_rebuild()


# --- Spec metadata ---


class SpecMeta(BaseModel):
    """Header shared by every canonical spec."""

    name: str
    version: int = 1
    stability: Stability = Stability.STABLE
    owners: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    description: Optional[str] = None


class OperationMeta(SpecMeta):
    kind: OpKind = OpKind.COMMAND
    goal: Optional[str] = None
    context: Optional[str] = None


class OperationIO(BaseModel):
    input: Optional[SchemaModel] = None
    output: Optional[SchemaModel] = None


class OperationPolicy(BaseModel):
    auth: AuthLevel = AuthLevel.USER


class RestTransport(BaseModel):
    """Explicit REST overrides; unset fields fall back to kind-based defaults."""

    method: Optional[str] = None
    path: Optional[str] = None


class GraphQLTransport(BaseModel):
    type: str = Field(description="query or mutation")
    field_name: str


class OperationTransport(BaseModel):
    rest: Optional[RestTransport] = None
    graphql: Optional[GraphQLTransport] = None


class _KeyedSpec(BaseModel):
    meta: SpecMeta

    @property
    def key(self) -> str:
        """Registry key: ``{name}.v{version}``."""
        return f"{self.meta.name}.v{self.meta.version}"


class OperationSpec(_KeyedSpec):
    """Canonical command or query definition."""

    meta: OperationMeta
    io: OperationIO = Field(default_factory=OperationIO)
    policy: OperationPolicy = Field(default_factory=OperationPolicy)
    transport: Optional[OperationTransport] = None


class EventSpec(_KeyedSpec):
    payload: Optional[SchemaModel] = None


class FeatureSpec(_KeyedSpec):
    """A product feature grouping operations, events and presentations by key."""

    operations: list[str] = Field(default_factory=list)
    events: list[str] = Field(default_factory=list)
    presentations: list[str] = Field(default_factory=list)


class PresentationSpec(_KeyedSpec):
    target: str = Field(default="web_component", description="web_component, markdown or data")
    props: Optional[SchemaModel] = None


class FormSpec(_KeyedSpec):
    model: Optional[SchemaModel] = None
    submit_operation: Optional[str] = None


class DataViewSpec(_KeyedSpec):
    view: str = Field(default="list", description="list, table, detail or grid")
    source_operation: Optional[str] = None
    fields: list[str] = Field(default_factory=list)


class WorkflowStep(BaseModel):
    id: str
    operation: Optional[str] = None
    next: list[str] = Field(default_factory=list)


class WorkflowSpec(_KeyedSpec):
    steps: list[WorkflowStep] = Field(default_factory=list)


# --- Registries ---

SpecT = TypeVar("SpecT", bound=_KeyedSpec)


class SpecRegistry(Generic[SpecT]):
    """Ordered, key-unique collection of canonical specs of one surface.

    Args:
        specs: Optional initial specs, registered in order.

    Raises:
        DuplicateSpecError: If two specs share the same ``name`` + ``version``.
    """

    def __init__(self, specs: Iterable[SpecT] = ()) -> None:
        self._specs: dict[str, SpecT] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: SpecT) -> SpecT:
        if spec.key in self._specs:
            raise DuplicateSpecError(f"Spec '{spec.key}' is already registered")
        self._specs[spec.key] = spec
        return spec

    def get(self, name: str, version: Optional[int] = None) -> Optional[SpecT]:
        """Look up a spec by name, returning the highest version when *version* is omitted."""
        if version is not None:
            return self._specs.get(f"{name}.v{version}")
        matches = [s for s in self._specs.values() if s.meta.name == name]
        if not matches:
            return None
        return max(matches, key=lambda s: s.meta.version)

    def list_specs(self) -> list[SpecT]:
        """Return all specs sorted by key."""
        return [self._specs[k] for k in sorted(self._specs)]

    def __len__(self) -> int:
        return len(self._specs)

    def __iter__(self) -> Iterator[SpecT]:
        return iter(self.list_specs())

    def __contains__(self, key: object) -> bool:
        return key in self._specs


@dataclass
class ContractRegistries:
    """One optional registry per canonical surface.

    A registry left as ``None`` is absent: the exporter emits neither its
    vendor extension nor its registry code.
    """

    operations: Optional[SpecRegistry[OperationSpec]] = None
    events: Optional[SpecRegistry[EventSpec]] = None
    features: Optional[SpecRegistry[FeatureSpec]] = None
    presentations: Optional[SpecRegistry[PresentationSpec]] = None
    forms: Optional[SpecRegistry[FormSpec]] = None
    data_views: Optional[SpecRegistry[DataViewSpec]] = None
    workflows: Optional[SpecRegistry[WorkflowSpec]] = None


_SURFACE_TYPES: dict[str, type[_KeyedSpec]] = {
    "operations": OperationSpec,
    "events": EventSpec,
    "features": FeatureSpec,
    "presentations": PresentationSpec,
    "forms": FormSpec,
    "data_views": DataViewSpec,
    "workflows": WorkflowSpec,
}


def registries_from_dict(data: dict[str, Any]) -> ContractRegistries:
    """Build :class:`ContractRegistries` from a plain mapping of surface lists.

    Keys are surface names (``operations``, ``events``, ``data_views`` ...);
    ``dataViews`` is accepted as an alias. Surfaces not present stay ``None``.

    Raises:
        ConfigError: If an entry fails validation.
        DuplicateSpecError: If a surface declares the same key twice.
    """
    if "dataViews" in data and "data_views" not in data:
        data = {**data, "data_views": data["dataViews"]}

    registries: dict[str, SpecRegistry] = {}
    for surface, spec_type in _SURFACE_TYPES.items():
        entries = data.get(surface)
        if entries is None:
            continue
        try:
            specs = [spec_type.model_validate(entry) for entry in entries]
        except ValidationError as exc:
            raise ConfigError(f"Invalid {surface} entry: {exc}") from exc
        registries[surface] = SpecRegistry(specs)
    return ContractRegistries(**registries)


def load_registries(path: str | Path) -> ContractRegistries:
    """Load canonical registries from a JSON or YAML file.

    Raises:
        ConfigError: If the file is missing, unparseable or invalid.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise ConfigError(f"Registry file not found: {path}")
    text = file_path.read_text(encoding="utf-8")
    try:
        if file_path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot parse registry file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Registry file {path} must contain a mapping of surfaces")
    return registries_from_dict(data)
