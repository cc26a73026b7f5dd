"""Canonical Pydantic models shared across all specbridge modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The canonical
*contract* model (operation specs, schema models, registries) lives in
:mod:`specbridge.contracts`; this module holds everything around it:

**Configuration models** -- serialised as JSON in the user's config directory
or the project root:
    :class:`OutputConfig`, :class:`CacheConfig`, :class:`RequestConfig`,
    :class:`ImportDefaults`, :class:`GlobalConfig`, :class:`ConventionsConfig`
    and :class:`ProjectConfig`.

**Parser output models** -- produced by :mod:`specbridge.parser`:
    :class:`HTTPMethod`, :class:`ParameterLocation`, :class:`ParsedParameter`,
    :class:`RequestBodyInfo`, :class:`ResponseInfo`, :class:`ParsedOperation`,
    :class:`APIInfo`, :class:`ServerInfo` and :class:`ParseResult`.

**Import / generation models** -- produced by :mod:`specbridge.importer` and
:mod:`specbridge.schema`:
    :class:`TransportHints`, :class:`SpecSource`,
    :class:`ImportedOperationSpec`, :class:`ImportResult`,
    :class:`SchemaField`, :class:`GeneratedModel`, :class:`GeneratedCode`.

**Diff / export models** -- produced by :mod:`specbridge.differ` and
:mod:`specbridge.exporter`:
    :class:`DiffChange`, :class:`SpecDiff`, :class:`SyncResult`,
    :class:`ExportResult`.

Result objects are frozen: once the engine hands them out they are
immutable value objects.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from specbridge.contracts import AuthLevel, OperationSpec, Stability


class SchemaFormat(str, enum.Enum):
    """Output dialects of the schema generator factory."""

    CONTRACTSPEC = "contractspec"
    ZOD = "zod"
    JSON_SCHEMA = "json-schema"
    GRAPHQL = "graphql"


# --- Configuration ---


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class CacheConfig(BaseModel):
    """Remote document cache settings stored in :class:`GlobalConfig`."""

    enabled: bool = Field(default=False, description="Cache fetched OpenAPI documents")
    ttl_seconds: int = Field(default=300, description="Cache TTL in seconds")


class RequestConfig(BaseModel):
    """Settings applied when fetching remote OpenAPI documents."""

    timeout: float = Field(default=30.0, description="Fetch timeout in seconds")


class ImportDefaults(BaseModel):
    """Defaults applied to imported specs unless overridden per run."""

    prefix: Optional[str] = None
    default_owners: list[str] = Field(default_factory=list)
    default_stability: Stability = Stability.STABLE
    default_auth: AuthLevel = AuthLevel.USER


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/specbridge/config.json``.

    Loaded and saved by :func:`~specbridge.config.load_global_config` and
    :func:`~specbridge.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by project config, environment
    variables, or CLI flags. See :func:`~specbridge.config.resolve_config`
    for the full precedence chain.
    """

    schema_format: SchemaFormat = SchemaFormat.CONTRACTSPEC
    output: OutputConfig = Field(default_factory=OutputConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
    import_defaults: ImportDefaults = Field(default_factory=ImportDefaults)


class ConventionsConfig(BaseModel):
    """Sub-directory names used when writing generated files."""

    operations: str = "operations"
    models: str = "models"
    events: str = "events"


class ProjectConfig(BaseModel):
    """Project-local configuration read from ``./specbridge.json``.

    Every field is optional; unset fields fall through to
    :class:`GlobalConfig`. Unknown keys are preserved in ``model_extra``.
    """

    model_config = ConfigDict(extra="allow")

    output_dir: Optional[str] = None
    schema_format: Optional[SchemaFormat] = None
    conventions: ConventionsConfig = Field(default_factory=ConventionsConfig)
    prefix: Optional[str] = None
    default_owners: Optional[list[str]] = None
    default_stability: Optional[Stability] = None
    default_auth: Optional[AuthLevel] = None


class ResolvedConfig(BaseModel):
    """Effective configuration after :func:`~specbridge.config.resolve_config`."""

    schema_format: SchemaFormat
    output_dir: str
    conventions: ConventionsConfig
    timeout: float
    cache: CacheConfig
    import_defaults: ImportDefaults


# --- Parser output ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods recognised by OpenAPI 3.x path-item objects, in document order."""

    GET = "get"
    POST = "post"
    PUT = "put"
    DELETE = "delete"
    PATCH = "patch"
    HEAD = "head"
    OPTIONS = "options"
    TRACE = "trace"


class ParameterLocation(str, enum.Enum):
    """Locations where an API parameter can appear, per OpenAPI ``in`` field."""

    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    COOKIE = "cookie"


class ParsedParameter(BaseModel):
    """A single parameter after ``$ref`` resolution.

    ``schema`` is kept as the raw JSON Schema node so that the schema
    converter sees exactly what the document declared.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    location: ParameterLocation
    required: bool = False
    description: Optional[str] = None
    schema_: Optional[dict[str, Any]] = Field(default=None, alias="schema")
    deprecated: bool = False


class RequestBodyInfo(BaseModel):
    """Request body of an operation: the first declared content type and its schema."""

    model_config = ConfigDict(populate_by_name=True)

    required: bool = False
    content_type: str = "application/json"
    schema_: Optional[dict[str, Any]] = Field(default=None, alias="schema")


class ResponseInfo(BaseModel):
    """Parsed response metadata for a single HTTP status code."""

    model_config = ConfigDict(populate_by_name=True)

    description: Optional[str] = None
    content_type: Optional[str] = None
    schema_: Optional[dict[str, Any]] = Field(default=None, alias="schema")


class ParsedOperation(BaseModel):
    """One HTTP operation (path + method) extracted from the document.

    Parameters are bucketed by location. ``operation_id`` is generated from
    the method and path when the document omits it.
    """

    operation_id: str
    method: HTTPMethod
    path: str
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    path_params: list[ParsedParameter] = Field(default_factory=list)
    query_params: list[ParsedParameter] = Field(default_factory=list)
    header_params: list[ParsedParameter] = Field(default_factory=list)
    cookie_params: list[ParsedParameter] = Field(default_factory=list)
    request_body: Optional[RequestBodyInfo] = None
    responses: dict[str, ResponseInfo] = Field(default_factory=dict)
    deprecated: bool = False
    security: Optional[list[dict[str, list[str]]]] = None
    contract_spec_meta: Optional[dict[str, Any]] = Field(
        default=None, description="Value of the operation's x-contractspec extension"
    )


class APIInfo(BaseModel):
    """API metadata extracted from the document's *Info Object*."""

    title: str
    version: str
    description: Optional[str] = None


class ServerInfo(BaseModel):
    """A server entry from the document's ``servers`` array."""

    url: str
    description: Optional[str] = None
    variables: Optional[dict[str, Any]] = None


class ParseResult(BaseModel):
    """Complete parsed representation of an OpenAPI document.

    ``schemas`` holds the raw ``components.schemas`` entries (refs untouched);
    ``document`` keeps the original dict so later stages can resolve
    pointers lazily.
    """

    model_config = ConfigDict(frozen=True)

    document: dict[str, Any]
    version: str = Field(description="Major.minor version: '3.0' or '3.1'")
    info: APIInfo
    operations: list[ParsedOperation] = Field(default_factory=list)
    schemas: dict[str, dict[str, Any]] = Field(default_factory=dict)
    servers: list[ServerInfo] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# --- Transport hints & provenance ---


class RestParams(BaseModel):
    path: list[str] = Field(default_factory=list)
    query: list[str] = Field(default_factory=list)
    header: list[str] = Field(default_factory=list)
    cookie: list[str] = Field(default_factory=list)


class RestTransportHints(BaseModel):
    method: str
    path: str
    params: RestParams = Field(default_factory=RestParams)


class GraphQLTransportHints(BaseModel):
    type: str
    field_name: str


class TransportHints(BaseModel):
    """Wire-format details the canonical model does not store natively."""

    rest: Optional[RestTransportHints] = None
    graphql: Optional[GraphQLTransportHints] = None


class SpecSourceType(str, enum.Enum):
    """Source formats. Only ``openapi`` has an importer today."""

    OPENAPI = "openapi"
    GRAPHQL = "graphql"
    ASYNCAPI = "asyncapi"
    PROTOBUF = "protobuf"


class SpecSource(BaseModel):
    """Provenance of one imported definition."""

    model_config = ConfigDict(frozen=True)

    type: SpecSourceType = SpecSourceType.OPENAPI
    source_id: str
    operation_id: Optional[str] = None
    url: Optional[str] = None
    file: Optional[str] = None
    openapi_version: Optional[str] = None
    imported_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# --- Import ---


class ImportOptions(BaseModel):
    """Options for :func:`~specbridge.importer.import_from_openapi`.

    ``include``, when non-empty, replaces ``exclude`` entirely. Deprecated
    operations are skipped unless ``include_deprecated`` is set or
    ``default_stability`` is ``deprecated``.
    """

    prefix: Optional[str] = None
    tags: Optional[list[str]] = None
    include: Optional[list[str]] = None
    exclude: list[str] = Field(default_factory=list)
    include_deprecated: bool = False
    default_stability: Stability = Stability.STABLE
    default_owners: list[str] = Field(default_factory=list)
    default_auth: AuthLevel = AuthLevel.USER
    schema_format: SchemaFormat = SchemaFormat.CONTRACTSPEC
    build_specs: bool = Field(
        default=True, description="Also build a live OperationSpec per operation"
    )
    source_url: Optional[str] = None
    source_file: Optional[str] = None


class SkippedOperation(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_id: str
    reason: str


class ImportFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_id: str
    error: str


class ImportSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int
    imported: int
    skipped: int
    errors: int


class ImportedOperationSpec(BaseModel):
    """Output of importing one operation.

    ``operation_spec`` is ``None`` when only code was generated; the differ
    then falls back to a code-only comparison.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    file_name: str
    operation_spec: Optional[OperationSpec] = None
    transport_hints: TransportHints
    source: SpecSource


class ImportResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    specs: list[ImportedOperationSpec] = Field(default_factory=list)
    skipped: list[SkippedOperation] = Field(default_factory=list)
    errors: list[ImportFailure] = Field(default_factory=list)
    summary: ImportSummary


# --- Schema generation ---


class TypeRef(BaseModel):
    """Type of a generated field, as seen by the code generators."""

    type: str
    optional: bool = False
    array: bool = False
    primitive: bool = False
    description: Optional[str] = None
    is_reference: bool = False


class SchemaField(BaseModel):
    name: str
    type: TypeRef
    scalar_type: Optional[str] = None
    enum_values: Optional[list[str]] = None
    nested_model: Optional[GeneratedModel] = None


class GeneratedModel(BaseModel):
    """Declarative model produced from one named schema.

    ``code`` already contains the code of every hoisted nested model, placed
    before the model that uses it.
    """

    name: str
    description: Optional[str] = None
    fields: list[SchemaField] = Field(default_factory=list)
    code: str
    imports: list[str] = Field(default_factory=list)


SchemaField.model_rebuild()


class GeneratedCode(BaseModel):
    """Output of :meth:`~specbridge.schema.generators.SchemaGenerator.generate_model`."""

    code: str
    file_name: str
    imports: list[str] = Field(default_factory=list)
    name: str


class GeneratedFieldCode(BaseModel):
    code: str
    type_ref: str
    is_optional: bool
    is_array: bool


# --- Diff ---


class DiffChangeType(str, enum.Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"
    TYPE_CHANGED = "type_changed"
    REQUIRED_CHANGED = "required_changed"


class DiffChange(BaseModel):
    """One detected difference at a dotted path."""

    model_config = ConfigDict(frozen=True)

    path: str
    type: DiffChangeType
    old_value: Any = None
    new_value: Any = None
    description: str


class MatchPolicy(str, enum.Enum):
    """How :func:`~specbridge.differ.diff_all` pairs imported and existing specs."""

    EXACT = "exact"
    CONTAINS = "contains"


class DiffOptions(BaseModel):
    ignore_descriptions: bool = False
    ignore_tags: bool = False
    ignore_transport: bool = False
    ignore_paths: list[str] = Field(default_factory=list)
    match: MatchPolicy = MatchPolicy.EXACT


class Resolution(str, enum.Enum):
    """User decision for a diff in the sync workflow."""

    KEEP_EXISTING = "keep_existing"
    USE_INCOMING = "use_incoming"
    MERGE = "merge"
    SKIP = "skip"


class SpecDiff(BaseModel):
    """Diff between one existing canonical spec and one incoming spec.

    ``incoming`` is ``None`` for an existing spec that no longer appears
    upstream; ``existing`` is ``None`` for a newly added one.
    """

    model_config = ConfigDict(frozen=True)

    operation_id: str
    existing: Optional[OperationSpec] = None
    incoming: Optional[ImportedOperationSpec] = None
    changes: list[DiffChange] = Field(default_factory=list)
    resolution: Optional[Resolution] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_equivalent(self) -> bool:
        return len(self.changes) == 0


class SyncSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int
    added: int
    updated: int
    unchanged: int
    conflicts: int


class SyncResult(BaseModel):
    """Batch reconciliation outcome; every spec lands in exactly one bucket."""

    model_config = ConfigDict(frozen=True)

    added: list[str] = Field(default_factory=list)
    updated: list[str] = Field(default_factory=list)
    unchanged: list[str] = Field(default_factory=list)
    conflicts: list[SpecDiff] = Field(default_factory=list)
    summary: SyncSummary


# --- Export ---


class ExportOptions(BaseModel):
    title: str = "ContractSpec API"
    version: str = "1.0.0"
    description: Optional[str] = None
    servers: list[ServerInfo] = Field(default_factory=list)
    include_registry_code: bool = Field(
        default=True, description="Also generate registry source artifacts"
    )


class GeneratedFile(BaseModel):
    file_name: str
    code: str


class ExportResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    openapi: dict[str, Any]
    registries: Optional[list[GeneratedFile]] = None
