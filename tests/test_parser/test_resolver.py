"""Tests for specbridge.parser.resolver."""

from __future__ import annotations

from typing import Any

import pytest

from specbridge.exceptions import RefResolutionError, SpecParseError
from specbridge.parser.resolver import is_reference, ref_name, resolve_pointer, resolve_ref


@pytest.fixture
def document() -> dict[str, Any]:
    return {
        "components": {
            "schemas": {
                "Pet": {"type": "object", "properties": {"name": {"type": "string"}}},
                "PetAlias": {"$ref": "#/components/schemas/Pet"},
                "AliasOfAlias": {"$ref": "#/components/schemas/PetAlias"},
                "Dangling": {"$ref": "#/components/schemas/Missing"},
            },
        },
        "paths": {
            "/pets/{id}": {"get": {"operationId": "getPet"}},
        },
        "servers": [{"url": "https://a.example.com"}, {"url": "https://b.example.com"}],
    }


class TestIsReference:
    def test_ref_node(self) -> None:
        assert is_reference({"$ref": "#/components/schemas/Pet"})

    def test_plain_mapping(self) -> None:
        assert not is_reference({"type": "string"})

    def test_non_string_ref(self) -> None:
        assert not is_reference({"$ref": 42})

    def test_non_mapping(self) -> None:
        assert not is_reference("#/components/schemas/Pet")
        assert not is_reference(None)


class TestResolvePointer:
    def test_resolves_component(self, document: dict[str, Any]) -> None:
        target = resolve_pointer(document, "#/components/schemas/Pet")
        assert target["type"] == "object"

    def test_unescapes_slash(self, document: dict[str, Any]) -> None:
        target = resolve_pointer(document, "#/paths/~1pets~1{id}/get")
        assert target == {"operationId": "getPet"}

    def test_list_index(self, document: dict[str, Any]) -> None:
        assert resolve_pointer(document, "#/servers/1/url") == "https://b.example.com"

    def test_bad_list_index(self, document: dict[str, Any]) -> None:
        assert resolve_pointer(document, "#/servers/9") is None
        assert resolve_pointer(document, "#/servers/first") is None

    def test_missing_segment(self, document: dict[str, Any]) -> None:
        assert resolve_pointer(document, "#/components/schemas/Nope") is None

    def test_external_ref_not_resolved(self, document: dict[str, Any]) -> None:
        assert resolve_pointer(document, "other.yaml#/components/schemas/Pet") is None

    def test_walks_into_scalar(self, document: dict[str, Any]) -> None:
        assert resolve_pointer(document, "#/servers/0/url/deeper") is None


class TestResolveRef:
    def test_non_reference_returned_unchanged(self, document: dict[str, Any]) -> None:
        node = {"type": "string"}
        assert resolve_ref(document, node) is node

    def test_follows_chain(self, document: dict[str, Any]) -> None:
        target = resolve_ref(document, {"$ref": "#/components/schemas/AliasOfAlias"})
        assert target is document["components"]["schemas"]["Pet"]

    def test_unresolvable_returns_last_ref(self, document: dict[str, Any]) -> None:
        target = resolve_ref(document, {"$ref": "#/components/schemas/Dangling"})
        assert target == {"$ref": "#/components/schemas/Missing"}

    def test_external_ref_passes_through(self, document: dict[str, Any]) -> None:
        node = {"$ref": "https://example.com/schemas.json#/Pet"}
        assert resolve_ref(document, node) == node

    def test_loop_raises(self) -> None:
        doc = {"a": {"$ref": "#/b"}, "b": {"$ref": "#/a"}}
        with pytest.raises(RefResolutionError, match="Circular \\$ref chain: #/a -> #/b -> #/a"):
            resolve_ref(doc, {"$ref": "#/a"})

    def test_self_loop_raises(self) -> None:
        doc = {"components": {"schemas": {"A": {"$ref": "#/components/schemas/A"}}}}
        with pytest.raises(RefResolutionError):
            resolve_ref(doc, {"$ref": "#/components/schemas/A"})

    def test_loop_error_is_parse_error(self) -> None:
        assert issubclass(RefResolutionError, SpecParseError)
        assert RefResolutionError("x").exit_code == 7

    def test_self_referencing_schema_is_not_a_loop(self) -> None:
        doc = {
            "components": {
                "schemas": {
                    "Node": {
                        "type": "object",
                        "properties": {"next": {"$ref": "#/components/schemas/Node"}},
                    }
                }
            }
        }
        target = resolve_ref(doc, {"$ref": "#/components/schemas/Node"})
        assert target["properties"]["next"] == {"$ref": "#/components/schemas/Node"}


class TestRefName:
    def test_last_segment(self) -> None:
        assert ref_name("#/components/schemas/Pet") == "Pet"

    def test_unescapes(self) -> None:
        assert ref_name("#/components/schemas/a~1b") == "a/b"
