"""Tests for specbridge.importer."""

from __future__ import annotations

import pytest

import specbridge.importer as importer_module
from specbridge.contracts import AuthLevel, OpKind, ScalarType, Stability
from specbridge.exceptions import GenerationError
from specbridge.importer import (
    build_input_schema,
    build_operation_spec,
    generate_component_models,
    get_output_schema,
    import_from_openapi,
    import_operation,
    infer_auth_level,
    infer_op_kind,
    spec_identity,
)
from specbridge.models import (
    HTTPMethod,
    ImportOptions,
    ParameterLocation,
    ParsedOperation,
    ParsedParameter,
    ParseResult,
    RequestBodyInfo,
    SchemaFormat,
)


def _operation(**kwargs) -> ParsedOperation:
    defaults = {"operation_id": "doThing", "method": HTTPMethod.POST, "path": "/things"}
    defaults.update(kwargs)
    return ParsedOperation(**defaults)


def _by_source(result, source_id: str):
    return next(spec for spec in result.specs if spec.source.source_id == source_id)


# ---------------------------------------------------------------------------
# Inference helpers
# ---------------------------------------------------------------------------


class TestInferOpKind:
    @pytest.mark.parametrize("method", ["post", "PUT", "delete", "patch"])
    def test_commands(self, method: str) -> None:
        assert infer_op_kind(method) == OpKind.COMMAND

    @pytest.mark.parametrize("method", ["get", "head", "options", "trace"])
    def test_queries(self, method: str) -> None:
        assert infer_op_kind(method) == OpKind.QUERY


class TestInferAuthLevel:
    def test_no_security_uses_default(self) -> None:
        assert infer_auth_level(_operation(), AuthLevel.ADMIN) == AuthLevel.ADMIN

    def test_empty_requirement_is_anonymous(self) -> None:
        op = _operation(security=[{"bearerAuth": []}, {}])
        assert infer_auth_level(op, AuthLevel.USER) == AuthLevel.ANONYMOUS

    def test_requirement_means_user(self) -> None:
        op = _operation(security=[{"apiKey": []}])
        assert infer_auth_level(op, AuthLevel.ANONYMOUS) == AuthLevel.USER


# ---------------------------------------------------------------------------
# Input / output schemas
# ---------------------------------------------------------------------------


class TestBuildInputSchema:
    def test_no_input(self) -> None:
        assert build_input_schema(_operation(method=HTTPMethod.GET)) is None

    def test_merge_order_and_required(self) -> None:
        op = _operation(
            path_params=[ParsedParameter(name="id", location=ParameterLocation.PATH, schema={"type": "string"})],
            query_params=[
                ParsedParameter(name="verbose", location=ParameterLocation.QUERY, schema={"type": "boolean"})
            ],
            header_params=[
                ParsedParameter(
                    name="X-Tenant", location=ParameterLocation.HEADER, required=True, schema={"type": "string"}
                )
            ],
            request_body=RequestBodyInfo(
                schema={
                    "type": "object",
                    "required": ["title"],
                    "properties": {"title": {"type": "string"}, "body": {"type": "string"}},
                }
            ),
        )
        schema = build_input_schema(op)
        assert list(schema["properties"]) == ["id", "verbose", "X-Tenant", "title", "body"]
        assert schema["required"] == ["id", "X-Tenant", "title"]

    def test_path_params_always_required(self) -> None:
        op = _operation(path_params=[ParsedParameter(name="id", location=ParameterLocation.PATH, required=False)])
        schema = build_input_schema(op)
        assert schema["required"] == ["id"]
        assert schema["properties"]["id"] == {}

    @pytest.mark.parametrize("header", ["Authorization", "content-type", "Accept", "User-Agent"])
    def test_transport_headers_excluded(self, header: str) -> None:
        op = _operation(header_params=[ParsedParameter(name=header, location=ParameterLocation.HEADER)])
        assert build_input_schema(op) is None

    def test_collision_later_schema_wins_required_sticks(self) -> None:
        op = _operation(
            path_params=[ParsedParameter(name="id", location=ParameterLocation.PATH, schema={"type": "string"})],
            request_body=RequestBodyInfo(
                schema={"type": "object", "properties": {"id": {"type": "integer"}}}
            ),
        )
        schema = build_input_schema(op)
        assert schema["properties"]["id"] == {"type": "integer"}
        assert schema["required"] == ["id"]

    def test_unresolved_body_ref_becomes_body_field(self) -> None:
        op = _operation(
            request_body=RequestBodyInfo(required=True, schema={"$ref": "other.yaml#/Thing"})
        )
        schema = build_input_schema(op)
        assert schema["properties"] == {"body": {"$ref": "other.yaml#/Thing"}}
        assert schema["required"] == ["body"]


class TestGetOutputSchema:
    def test_success_response(self, petstore_result: ParseResult) -> None:
        show = petstore_result.operations[2]
        assert get_output_schema(show)["required"] == ["id", "name"]

    def test_no_schema(self, petstore_result: ParseResult) -> None:
        delete = petstore_result.operations[3]
        assert get_output_schema(delete) is None


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class TestSpecIdentity:
    def test_derived(self) -> None:
        op = _operation(operation_id="listPets", method=HTTPMethod.GET)
        assert spec_identity(op, ImportOptions(prefix="petstore")) == ("petstore.listPets", 1, OpKind.QUERY)

    def test_extension_wins(self) -> None:
        op = _operation(contract_spec_meta={"name": "pets.list", "version": 3, "kind": "query"})
        assert spec_identity(op, ImportOptions(prefix="ignored")) == ("pets.list", 3, OpKind.QUERY)

    def test_bad_extension_values_ignored(self) -> None:
        op = _operation(contract_spec_meta={"version": "abc", "kind": "mutation"})
        assert spec_identity(op, ImportOptions()) == ("doThing", 1, OpKind.COMMAND)


# ---------------------------------------------------------------------------
# Batch import
# ---------------------------------------------------------------------------


class TestImportPetstore:
    def test_summary(self, petstore_result: ParseResult) -> None:
        result = import_from_openapi(petstore_result)
        assert [s.source.source_id for s in result.specs] == [
            "listPets",
            "createPet",
            "showPetById",
            "getStoreInventory",
        ]
        assert result.summary.model_dump() == {"total": 5, "imported": 4, "skipped": 1, "errors": 0}
        assert result.skipped[0].source_id == "deletePet"
        assert result.skipped[0].reason == "Deprecated operation"

    def test_file_names_follow_prefix(self, petstore_result: ParseResult) -> None:
        result = import_from_openapi(petstore_result, ImportOptions(prefix="petstore"))
        assert result.specs[0].file_name == "petstore-list-pets.ts"
        assert "export const PetstoreListPetsSpec = defineQuery({" in result.specs[0].code
        assert "    name: 'petstore.listPets'," in result.specs[0].code

    def test_query_code(self, petstore_result: ParseResult) -> None:
        code = _by_source(import_from_openapi(petstore_result), "listPets").code
        assert code.startswith("import { defineCommand, defineQuery } from '@lssm/lib.contracts';\n")
        assert "import { defineSchemaModel, ScalarTypeEnum, EnumType } from '@lssm/lib.schema';" in code
        assert "import { Pet } from '../models/pet';" in code
        assert "export const ListPetsInput = defineSchemaModel({" in code
        assert "'X-Request-Id': {" in code
        assert "Authorization" not in code
        assert " * @source OpenAPI: GET /pets" in code
        assert "    stability: 'stable'," in code
        assert "    tags: ['pets']," in code
        assert '    description: "List all pets",' in code
        assert '    goal: "Returns every pet in the store.",' in code
        assert "    context: 'Imported from OpenAPI: GET /pets'," in code
        assert "    input: ListPetsInput," in code
        assert "    output: ListPetsOutput," in code
        assert "    auth: 'user'," in code
        assert "      method: 'GET',\n      path: '/pets'," in code

    def test_command_code(self, petstore_result: ParseResult) -> None:
        code = _by_source(import_from_openapi(petstore_result), "createPet").code
        assert "export const CreatePetSpec = defineCommand({" in code
        assert '    goal: "Imported from OpenAPI",' in code
        assert "export const CreatePetOutput = defineSchemaModel({" in code
        assert "      type: Owner," in code

    def test_no_input_and_anonymous(self, petstore_result: ParseResult) -> None:
        code = _by_source(import_from_openapi(petstore_result), "getStoreInventory").code
        assert "    input: null," in code
        assert "export const GetStoreInventoryOutput = ScalarTypeEnum.JSONObject();" in code
        assert "    auth: 'anonymous'," in code

    def test_transport_hints_and_source(self, petstore_result: ParseResult) -> None:
        result = import_from_openapi(petstore_result, ImportOptions(source_file="petstore.json"))
        spec = _by_source(result, "listPets")
        rest = spec.transport_hints.rest
        assert (rest.method, rest.path) == ("GET", "/pets")
        assert rest.params.query == ["limit"]
        assert rest.params.header == ["X-Request-Id", "Authorization"]
        assert spec.source.operation_id == "listPets"
        assert spec.source.file == "petstore.json"
        assert spec.source.openapi_version == "3.0"

    def test_deterministic_code(self, petstore_result: ParseResult) -> None:
        first = import_from_openapi(petstore_result)
        second = import_from_openapi(petstore_result)
        assert [s.code for s in first.specs] == [s.code for s in second.specs]


WIDGETS = {
    "openapi": "3.1.0",
    "info": {"title": "Widgets", "version": "1"},
    "paths": {
        "/widgets/{id}": {
            "get": {
                "parameters": [{"name": "id", "in": "path", "schema": {"type": "string"}}],
                "responses": {
                    "200": {
                        "description": "ok",
                        "content": {
                            "application/json": {
                                "schema": {
                                    "type": "object",
                                    "properties": {"id": {"type": "string"}},
                                }
                            }
                        },
                    }
                },
            }
        }
    },
}


class TestMinimalDocument:
    def test_single_get_operation(self) -> None:
        from specbridge.parser import parse_openapi_document

        result = import_from_openapi(parse_openapi_document(WIDGETS))
        assert len(result.specs) == 1
        rest = result.specs[0].transport_hints.rest
        assert (rest.method, rest.path) == ("GET", "/widgets/{id}")
        assert rest.params.path == ["id"]
        assert result.specs[0].operation_spec.io.input.fields["id"].is_optional is False

    def test_importing_twice_is_unchanged(self) -> None:
        from specbridge.differ import build_sync_result, diff_all
        from specbridge.parser import parse_openapi_document

        first = import_from_openapi(parse_openapi_document(WIDGETS))
        second = import_from_openapi(parse_openapi_document(WIDGETS))
        existing = {s.operation_spec.key: s.operation_spec for s in first.specs}
        sync = build_sync_result(diff_all(existing, second.specs))
        assert len(sync.unchanged) == 1
        assert (sync.added, sync.updated, sync.conflicts) == ([], [], [])


class TestFilters:
    def test_tags(self, petstore_result: ParseResult) -> None:
        result = import_from_openapi(petstore_result, ImportOptions(tags=["store"]))
        assert [s.source.source_id for s in result.specs] == ["getStoreInventory"]
        assert result.skipped[0].reason == "No matching tags (has: pets)"

    def test_include_replaces_exclude(self, petstore_result: ParseResult) -> None:
        options = ImportOptions(include=["listPets"], exclude=["listPets"])
        result = import_from_openapi(petstore_result, options)
        assert [s.source.source_id for s in result.specs] == ["listPets"]
        assert {s.reason for s in result.skipped} == {"Not in include list"}

    def test_exclude(self, petstore_result: ParseResult) -> None:
        result = import_from_openapi(petstore_result, ImportOptions(exclude=["createPet"]))
        skipped = {s.source_id: s.reason for s in result.skipped}
        assert skipped["createPet"] == "In exclude list"

    def test_include_deprecated(self, petstore_result: ParseResult) -> None:
        result = import_from_openapi(petstore_result, ImportOptions(include_deprecated=True))
        assert result.summary.imported == 5
        delete = _by_source(result, "deletePet")
        assert "export const DeletePetSpec = defineCommand({" in delete.code
        assert "    stability: 'deprecated'," in delete.code
        assert "    output: null, // TODO: Define output schema" in delete.code
        assert delete.operation_spec.meta.stability == Stability.DEPRECATED

    def test_deprecated_default_stability_imports_everything(self, petstore_result: ParseResult) -> None:
        options = ImportOptions(default_stability=Stability.DEPRECATED)
        result = import_from_openapi(petstore_result, options)
        assert result.summary.skipped == 0
        assert {s.operation_spec.meta.stability for s in result.specs} == {Stability.DEPRECATED}


class TestErrors:
    def test_failure_recorded_and_batch_continues(
        self, petstore_result: ParseResult, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        original = importer_module.build_operation_spec

        def flaky(operation, *args, **kwargs):
            if operation.operation_id == "createPet":
                raise ValueError("boom")
            return original(operation, *args, **kwargs)

        monkeypatch.setattr(importer_module, "build_operation_spec", flaky)
        result = import_from_openapi(petstore_result)
        assert result.summary.imported == 3
        assert result.summary.errors == 1
        assert result.errors[0].source_id == "createPet"
        assert result.errors[0].error == "boom"

    def test_generator_failure_names_the_model(
        self, petstore_result: ParseResult, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        generator_class = type(importer_module.create_schema_generator())
        original = generator_class.generate_model

        def flaky(self, schema, name, *args, **kwargs):
            if name == "createPetInput":
                raise KeyError("type")
            return original(self, schema, name, *args, **kwargs)

        monkeypatch.setattr(generator_class, "generate_model", flaky)
        result = import_from_openapi(petstore_result)
        assert [e.source_id for e in result.errors] == ["createPet"]
        assert result.errors[0].error.startswith("Cannot generate model createPetInput")


class TestOptions:
    def test_code_only(self, petstore_result: ParseResult) -> None:
        result = import_from_openapi(petstore_result, ImportOptions(build_specs=False))
        assert all(spec.operation_spec is None for spec in result.specs)

    def test_owners_rendered(self, petstore_result: ParseResult) -> None:
        result = import_from_openapi(petstore_result, ImportOptions(default_owners=["team-pets"]))
        assert "    owners: ['team-pets']," in result.specs[0].code
        assert result.specs[0].operation_spec.meta.owners == ["team-pets"]

    def test_zod_format(self, petstore_result: ParseResult) -> None:
        result = import_from_openapi(petstore_result, ImportOptions(schema_format=SchemaFormat.ZOD))
        code = _by_source(result, "showPetById").code
        assert "import * as z from 'zod';" in code
        assert "export const ShowPetByIdInputSchema = z.object({" in code
        assert "    input: ShowPetByIdInput," in code


# ---------------------------------------------------------------------------
# Live specs
# ---------------------------------------------------------------------------


class TestBuildOperationSpec:
    def test_meta_and_transport(self, petstore_result: ParseResult) -> None:
        show = petstore_result.operations[2]
        spec = build_operation_spec(show, ImportOptions(), petstore_result.document)
        assert spec.key == "showPetById.v1"
        assert spec.meta.kind == OpKind.QUERY
        assert spec.meta.description == "Info for a specific pet"
        assert spec.meta.goal == "Imported from OpenAPI"
        assert spec.meta.context == "Imported from OpenAPI: GET /pets/{petId}"
        assert spec.meta.tags == ["pets"]
        assert spec.policy.auth == AuthLevel.USER
        assert (spec.transport.rest.method, spec.transport.rest.path) == ("GET", "/pets/{petId}")

    def test_io_models(self, petstore_result: ParseResult) -> None:
        show = petstore_result.operations[2]
        spec = build_operation_spec(show, ImportOptions(), petstore_result.document)
        assert spec.io.input.name == "ShowPetByIdInput"
        assert spec.io.input.fields["petId"].is_optional is False
        output = spec.io.output
        assert output.name == "ShowPetByIdOutput"
        assert output.fields["id"].scalar == ScalarType.INT
        assert output.fields["status"].enum_values == ["available", "pending", "sold"]
        owner = output.fields["owner"].model
        assert owner.name == "Owner"
        assert owner.fields["email"].scalar == ScalarType.EMAIL

    def test_self_referencing_output(self, tree_result: ParseResult) -> None:
        get_node = tree_result.operations[1]
        spec = build_operation_spec(get_node, ImportOptions(), tree_result.document)
        children = spec.io.output.fields["children"]
        assert children.is_array is True
        assert children.model.fields["children"].ref == "Node"

    def test_nullable_body_field(self, tree_result: ParseResult) -> None:
        spec = build_operation_spec(tree_result.operations[0], ImportOptions(), tree_result.document)
        fields = spec.io.input.fields
        assert fields["label"].is_optional is False
        assert fields["note"].is_optional is True
        assert fields["parentId"].scalar == ScalarType.ID


class TestImportOperation:
    def test_returns_code(self, tree_result: ParseResult) -> None:
        code = import_operation(tree_result.operations[0])
        assert "export const CreateNodeSpec = defineCommand({" in code
        assert "    label: {\n      type: ScalarTypeEnum.String_unsecure(),\n      isOptional: false," in code


class TestGenerateComponentModels:
    def test_one_file_per_component(self, petstore_result: ParseResult) -> None:
        models = generate_component_models(petstore_result)
        assert [m.file_name for m in models] == ["pet.ts", "owner.ts", "new-pet.ts", "error.ts"]
        pet = models[0]
        assert "import { Owner } from '../models/owner';" in pet.imports

    def test_failing_component_is_skipped(
        self, petstore_result: ParseResult, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        generator_class = type(importer_module.create_schema_generator())
        original = generator_class.generate_model

        def flaky(self, schema, name, *args, **kwargs):
            if name == "Owner":
                raise ValueError("unsupported")
            return original(self, schema, name, *args, **kwargs)

        monkeypatch.setattr(generator_class, "generate_model", flaky)
        with caplog.at_level("WARNING", logger="specbridge.importer"):
            models = generate_component_models(petstore_result)
        assert [m.file_name for m in models] == ["pet.ts", "new-pet.ts", "error.ts"]
        assert "Cannot generate model Owner: unsupported" in caplog.text

    def test_generation_error_wraps_cause(self, monkeypatch: pytest.MonkeyPatch) -> None:
        generator = importer_module.create_schema_generator()

        def broken(schema, name, *args, **kwargs):
            raise RecursionError("too deep")

        monkeypatch.setattr(generator, "generate_model", broken)
        with pytest.raises(GenerationError, match="Cannot generate model Tree") as excinfo:
            importer_module._generate_model(generator, {"type": "object"}, "Tree")
        assert isinstance(excinfo.value.__cause__, RecursionError)
