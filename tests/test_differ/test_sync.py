"""Tests for batch diffing, sync bucketing and text rendering in specbridge.differ."""

from __future__ import annotations

from typing import Optional

import pytest

from specbridge.contracts import FieldSpec, OperationSpec, ScalarType, SchemaModel
from specbridge.differ import (
    build_sync_result,
    create_spec_diff,
    diff_all,
    format_diff_changes,
    format_sync_result,
    resolve_diff,
)
from specbridge.models import (
    DiffChange,
    DiffChangeType,
    DiffOptions,
    ImportedOperationSpec,
    MatchPolicy,
    Resolution,
    SpecDiff,
    SpecSource,
    TransportHints,
)
from specbridge.naming import to_file_name


def _incoming(
    source_id: str,
    spec: Optional[OperationSpec] = None,
    file_name: Optional[str] = None,
) -> ImportedOperationSpec:
    return ImportedOperationSpec(
        code="// generated",
        file_name=file_name or to_file_name(spec.meta.name if spec else source_id),
        operation_spec=spec,
        transport_hints=TransportHints(),
        source=SpecSource(source_id=source_id),
    )


def _change(change_type: DiffChangeType, path: str = "meta.description") -> DiffChange:
    return DiffChange(path=path, type=change_type, old_value="a", new_value="b", description="d")


def _diff(
    spec_factory,
    changes: list[DiffChange],
    existing: bool = True,
    incoming: bool = True,
    live: bool = True,
) -> SpecDiff:
    spec = spec_factory()
    return SpecDiff(
        operation_id="op",
        existing=spec if existing else None,
        incoming=_incoming("op", spec if live else None) if incoming else None,
        changes=changes,
    )


# ---------------------------------------------------------------------------
# create_spec_diff
# ---------------------------------------------------------------------------


class TestCreateSpecDiff:
    def test_new_spec(self, spec_factory) -> None:
        spec = spec_factory("pets.list")
        diff = create_spec_diff("listPets", None, _incoming("listPets", spec))
        assert diff.is_equivalent is False
        assert [(c.path, c.type) for c in diff.changes] == [("", DiffChangeType.ADDED)]
        assert diff.changes[0].new_value["meta"]["name"] == "pets.list"

    def test_new_code_only_spec(self) -> None:
        diff = create_spec_diff("listPets", None, _incoming("listPets"))
        assert diff.changes[0].new_value == "// generated"

    def test_code_only_comparison(self, spec_factory) -> None:
        existing = spec_factory("pets.list")
        diff = create_spec_diff("listPets", existing, _incoming("listPets", file_name="pets-list.ts"))
        change = diff.changes[0]
        assert (change.path, change.type) == ("", DiffChangeType.MODIFIED)
        assert (change.old_value, change.new_value) == ("pets.list.v1", "pets-list.ts")

    def test_live_comparison(self, spec_factory) -> None:
        existing = spec_factory("pets.list", description="old")
        incoming = _incoming("listPets", spec_factory("pets.list", description="new"))
        diff = create_spec_diff("listPets", existing, incoming)
        assert [c.path for c in diff.changes] == ["meta.description"]

    def test_equivalent(self, spec_factory) -> None:
        spec = spec_factory("pets.list")
        diff = create_spec_diff("listPets", spec, _incoming("listPets", spec))
        assert diff.is_equivalent is True
        assert diff.resolution is None

    def test_options_forwarded(self, spec_factory) -> None:
        existing = spec_factory("pets.list", tags=["a"])
        incoming = _incoming("listPets", spec_factory("pets.list", tags=["b"]))
        assert create_spec_diff("listPets", existing, incoming, DiffOptions(ignore_tags=True)).is_equivalent


# ---------------------------------------------------------------------------
# diff_all
# ---------------------------------------------------------------------------


class TestDiffAllMatching:
    def test_by_name(self, spec_factory) -> None:
        existing = {"pets.list.v1": spec_factory("pets.list")}
        diffs = diff_all(existing, [_incoming("listPets", spec_factory("pets.list"))])
        assert len(diffs) == 1
        assert diffs[0].operation_id == "listPets"
        assert diffs[0].is_equivalent

    def test_by_registry_key(self, spec_factory) -> None:
        existing = {"listPets": spec_factory("pets.list")}
        diffs = diff_all(existing, [_incoming("listPets", spec_factory("other.name"))])
        assert len(diffs) == 1
        assert diffs[0].existing is existing["listPets"]

    def test_by_spec_key(self, spec_factory) -> None:
        existing = {"a": spec_factory("pets.list")}
        diffs = diff_all(existing, [_incoming("pets.list.v1", spec_factory("renamed"))])
        assert diffs[0].existing is not None

    def test_code_only_by_file_name(self, spec_factory) -> None:
        existing = {"pets.list.v1": spec_factory("pets.list")}
        diffs = diff_all(existing, [_incoming("listPets", file_name="pets-list.ts")])
        assert len(diffs) == 1
        assert diffs[0].changes[0].type == DiffChangeType.MODIFIED

    def test_exact_does_not_match_substrings(self, spec_factory) -> None:
        existing = {"pets.listAll.v1": spec_factory("pets.listAll")}
        diffs = diff_all(existing, [_incoming("listAll", spec_factory("listAll"))])
        assert [d.changes[0].type for d in diffs] == [DiffChangeType.ADDED, DiffChangeType.REMOVED]

    def test_contains_matches_substrings(self, spec_factory) -> None:
        existing = {"pets.listAll.v1": spec_factory("pets.listAll")}
        options = DiffOptions(match=MatchPolicy.CONTAINS)
        diffs = diff_all(existing, [_incoming("listAll", spec_factory("listAll"))], options)
        assert len(diffs) == 1
        assert diffs[0].existing is not None

    def test_existing_matched_at_most_once(self, spec_factory) -> None:
        existing = {"pets.list.v1": spec_factory("pets.list")}
        imported = [
            _incoming("listPets", spec_factory("pets.list")),
            _incoming("listPetsAgain", spec_factory("pets.list")),
        ]
        diffs = diff_all(existing, imported)
        assert diffs[0].existing is not None
        assert diffs[1].existing is None

    def test_unmatched_existing_reported_removed(self, spec_factory) -> None:
        existing = {
            "pets.list.v1": spec_factory("pets.list"),
            "pets.gone.v1": spec_factory("pets.gone"),
        }
        diffs = diff_all(existing, [_incoming("listPets", spec_factory("pets.list"))])
        removed = diffs[-1]
        assert removed.operation_id == "pets.gone.v1"
        assert removed.incoming is None
        assert removed.changes[0].type == DiffChangeType.REMOVED
        assert removed.changes[0].old_value == "pets.gone.v1"

    def test_result_count(self, spec_factory) -> None:
        existing = {f"e{i}": spec_factory(f"existing.e{i}") for i in range(3)}
        imported = [_incoming("e0", spec_factory("x")), _incoming("new", spec_factory("brand.new"))]
        # one match: 3 + 2 - 1
        assert len(diff_all(existing, imported)) == 4

    def test_empty_inputs(self) -> None:
        assert diff_all({}, []) == []


# ---------------------------------------------------------------------------
# Sync buckets
# ---------------------------------------------------------------------------


class TestBuildSyncResult:
    def test_added(self, spec_factory) -> None:
        result = build_sync_result([_diff(spec_factory, [_change(DiffChangeType.ADDED, "")], existing=False)])
        assert result.added == ["op"]

    def test_equivalent_is_unchanged(self, spec_factory) -> None:
        assert build_sync_result([_diff(spec_factory, [])]).unchanged == ["op"]

    @pytest.mark.parametrize("change_type", [DiffChangeType.MODIFIED, DiffChangeType.ADDED])
    def test_non_breaking_is_updated(self, spec_factory, change_type) -> None:
        assert build_sync_result([_diff(spec_factory, [_change(change_type)])]).updated == ["op"]

    @pytest.mark.parametrize(
        "change_type",
        [DiffChangeType.REMOVED, DiffChangeType.TYPE_CHANGED, DiffChangeType.REQUIRED_CHANGED],
    )
    def test_breaking_is_conflict(self, spec_factory, change_type) -> None:
        diff = _diff(spec_factory, [_change(DiffChangeType.MODIFIED), _change(change_type)])
        result = build_sync_result([diff])
        assert result.conflicts == [diff]
        assert result.updated == []

    def test_removed_upstream_is_conflict(self, spec_factory) -> None:
        diff = _diff(spec_factory, [_change(DiffChangeType.REMOVED, "")], incoming=False)
        assert build_sync_result([diff]).summary.conflicts == 1

    def test_code_only_is_conflict(self, spec_factory) -> None:
        diff = _diff(spec_factory, [_change(DiffChangeType.MODIFIED, "")], live=False)
        assert build_sync_result([diff]).summary.conflicts == 1

    @pytest.mark.parametrize(
        ("resolution", "bucket"),
        [
            (Resolution.KEEP_EXISTING, "unchanged"),
            (Resolution.SKIP, "unchanged"),
            (Resolution.USE_INCOMING, "updated"),
            (Resolution.MERGE, "updated"),
        ],
    )
    def test_resolution_overrides_classification(self, spec_factory, resolution, bucket) -> None:
        diff = resolve_diff(_diff(spec_factory, [_change(DiffChangeType.TYPE_CHANGED)]), resolution)
        result = build_sync_result([diff])
        assert getattr(result, bucket) == ["op"]
        assert result.conflicts == []

    def test_resolution_does_not_hide_additions(self, spec_factory) -> None:
        diff = resolve_diff(
            _diff(spec_factory, [_change(DiffChangeType.ADDED, "")], existing=False),
            Resolution.SKIP,
        )
        assert build_sync_result([diff]).added == ["op"]

    def test_every_diff_in_exactly_one_bucket(self, spec_factory) -> None:
        diffs = [
            _diff(spec_factory, [_change(DiffChangeType.ADDED, "")], existing=False),
            _diff(spec_factory, []),
            _diff(spec_factory, [_change(DiffChangeType.MODIFIED)]),
            _diff(spec_factory, [_change(DiffChangeType.TYPE_CHANGED)]),
        ]
        summary = build_sync_result(diffs).summary
        assert summary.model_dump() == {"total": 4, "added": 1, "updated": 1, "unchanged": 1, "conflicts": 1}
        assert summary.added + summary.updated + summary.unchanged + summary.conflicts == summary.total


class TestResolveDiff:
    def test_returns_copy(self, spec_factory) -> None:
        diff = _diff(spec_factory, [])
        resolved = resolve_diff(diff, Resolution.MERGE)
        assert resolved.resolution == Resolution.MERGE
        assert diff.resolution is None


class TestSyncWorkflow:
    def test_end_to_end(self, spec_factory) -> None:
        pet = SchemaModel(name="Pet", fields={"id": FieldSpec(scalar=ScalarType.STRING)})
        relaxed = SchemaModel(
            name="Pet", fields={"id": FieldSpec(scalar=ScalarType.STRING, is_optional=True)}
        )
        existing = {
            "pets.get.v1": spec_factory("pets.get", output_model=pet),
            "pets.list.v1": spec_factory("pets.list", description="List"),
            "pets.old.v1": spec_factory("pets.old"),
        }
        imported = [
            _incoming("getPet", spec_factory("pets.get", output_model=relaxed)),
            _incoming("listPets", spec_factory("pets.list", description="List all")),
            _incoming("createPet", spec_factory("pets.create")),
        ]
        result = build_sync_result(diff_all(existing, imported))
        assert result.added == ["createPet"]
        assert result.updated == ["listPets"]
        assert [d.operation_id for d in result.conflicts] == ["getPet", "pets.old.v1"]


# ---------------------------------------------------------------------------
# Text rendering
# ---------------------------------------------------------------------------


class TestFormatDiffChanges:
    def test_no_changes(self) -> None:
        assert format_diff_changes([]) == "No changes detected"

    def test_modified(self) -> None:
        change = DiffChange(
            path="meta.description",
            type=DiffChangeType.MODIFIED,
            old_value="a",
            new_value="b",
            description="Changed meta.description",
        )
        assert format_diff_changes([change]) == (
            '~ meta.description: Changed meta.description\n    old: "a"\n    new: "b"'
        )

    def test_prefixes_and_detail_lines(self) -> None:
        changes = [
            DiffChange(path="a", type=DiffChangeType.ADDED, new_value=1, description="Added a"),
            DiffChange(path="b", type=DiffChangeType.REMOVED, old_value="x", description="Removed b"),
            DiffChange(path="c", type=DiffChangeType.TYPE_CHANGED, old_value="1", new_value=1, description="c"),
            DiffChange(
                path="io.input.required",
                type=DiffChangeType.REQUIRED_CHANGED,
                old_value=["id"],
                new_value=[],
                description="Required fields changed at io.input.required",
            ),
        ]
        assert format_diff_changes(changes).splitlines() == [
            "+ a: Added a",
            "    value: 1",
            "- b: Removed b",
            '    was: "x"',
            "! c: c",
            '    old: "1"',
            "    new: 1",
            "? io.input.required: Required fields changed at io.input.required",
            '    old: ["id"]',
            "    new: []",
        ]


class TestFormatSyncResult:
    def test_report(self, spec_factory) -> None:
        existing = {"pets.gone.v1": spec_factory("pets.gone"), "pets.list.v1": spec_factory("pets.list")}
        imported = [
            _incoming("listPets", spec_factory("pets.list", description="List")),
            _incoming("createPet", spec_factory("pets.create")),
        ]
        text = format_sync_result(build_sync_result(diff_all(existing, imported)))
        assert text.splitlines() == [
            "Total: 3  added: 1  updated: 1  unchanged: 0  conflicts: 1",
            "Added: createPet",
            "Updated: listPets",
            "Conflict: pets.gone.v1",
            "  - : Spec no longer exists in OpenAPI source",
            '      was: "pets.gone.v1"',
        ]

    def test_empty(self) -> None:
        assert format_sync_result(build_sync_result([])) == (
            "Total: 0  added: 0  updated: 0  unchanged: 0  conflicts: 0"
        )
