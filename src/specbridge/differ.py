"""Structural diff between canonical specs and imported operations.

The differ answers one question for the sync workflow: *what changed
upstream?*  It works on plain JSON-like trees so that any two specs can be
compared regardless of how they were produced.

* :func:`diff_objects` is the recursive walker.  It visits the union of keys
  (old keys first, new keys appended), skips any path starting with an
  ``ignore_paths`` prefix and classifies each difference as ``added``,
  ``removed``, ``type_changed`` or ``modified``.  A ``required`` list is
  compared as a set and reported as ``required_changed``.
* :func:`diff_specs` compares two :class:`~specbridge.contracts.OperationSpec`
  objects; :func:`diff_spec_vs_operation` compares a spec with a freshly
  parsed operation.
* :func:`diff_all` pairs an existing registry with a list of imported specs
  and :func:`build_sync_result` buckets the resulting diffs.

Example::

    diffs = diff_all(existing, imported.specs)
    print(format_sync_result(build_sync_result(diffs)))
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional, Sequence

from specbridge.contracts import OperationSpec, OpKind, Stability
from specbridge.models import (
    DiffChange,
    DiffChangeType,
    DiffOptions,
    ImportedOperationSpec,
    MatchPolicy,
    ParsedOperation,
    Resolution,
    SpecDiff,
    SyncResult,
    SyncSummary,
)
from specbridge.naming import to_file_name

logger = logging.getLogger(__name__)

BREAKING_CHANGES = frozenset({
    DiffChangeType.REMOVED,
    DiffChangeType.TYPE_CHANGED,
    DiffChangeType.REQUIRED_CHANGED,
})

_DESCRIPTION_PATHS = ("meta.description", "meta.goal", "meta.context")

_PREFIXES = {
    DiffChangeType.ADDED: "+",
    DiffChangeType.REMOVED: "-",
    DiffChangeType.MODIFIED: "~",
    DiffChangeType.TYPE_CHANGED: "!",
    DiffChangeType.REQUIRED_CHANGED: "?",
}


# --- Structural diff ---


def _value_kind(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _same_value(old_value: Any, new_value: Any) -> bool:
    """Deep equality that never equates values of different kinds (``0`` vs ``False``)."""
    kind = _value_kind(old_value)
    if kind != _value_kind(new_value):
        return False
    if kind == "array":
        return len(old_value) == len(new_value) and all(
            _same_value(a, b) for a, b in zip(old_value, new_value)
        )
    if kind == "object":
        return old_value.keys() == new_value.keys() and all(
            _same_value(old_value[key], new_value[key]) for key in old_value
        )
    return old_value == new_value


def compare_values(
    path: str,
    old_value: Any,
    new_value: Any,
    description: str,
) -> Optional[DiffChange]:
    """Classify the difference between two leaf values, or return None."""
    if _same_value(old_value, new_value):
        return None
    if old_value is None:
        change_type = DiffChangeType.ADDED
    elif new_value is None:
        change_type = DiffChangeType.REMOVED
    elif _value_kind(old_value) != _value_kind(new_value):
        change_type = DiffChangeType.TYPE_CHANGED
    else:
        change_type = DiffChangeType.MODIFIED
    return DiffChange(
        path=path,
        type=change_type,
        old_value=old_value,
        new_value=new_value,
        description=description,
    )


def _is_ignored(path: str, ignore_paths: Sequence[str]) -> bool:
    return any(path.startswith(prefix) for prefix in ignore_paths)


def _is_name_list(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value)


def _required_change(path: str, old_value: Any, new_value: Any) -> Optional[DiffChange]:
    old_set = set(old_value or [])
    new_set = set(new_value or [])
    if old_set == new_set:
        return None
    return DiffChange(
        path=path,
        type=DiffChangeType.REQUIRED_CHANGED,
        old_value=sorted(old_set),
        new_value=sorted(new_set),
        description=f"Required fields changed at {path}",
    )


def diff_objects(
    path: str,
    old: Optional[Mapping[str, Any]],
    new: Optional[Mapping[str, Any]],
    ignore_paths: Sequence[str] = (),
    ignore_descriptions: bool = False,
) -> list[DiffChange]:
    """Recursively diff two JSON-like mappings rooted at *path*.

    Lists are compared as whole values, except ``required`` lists of names
    which are compared as sets.  With *ignore_descriptions*, every ``description``
    key is skipped.
    """
    if old is None and new is None:
        return []
    if old is None:
        return [DiffChange(path=path, type=DiffChangeType.ADDED, new_value=new, description=f"Added {path}")]
    if new is None:
        return [DiffChange(path=path, type=DiffChangeType.REMOVED, old_value=old, description=f"Removed {path}")]

    changes: list[DiffChange] = []
    keys = list(old)
    keys.extend(key for key in new if key not in old)

    for key in keys:
        key_path = f"{path}.{key}" if path else str(key)
        if _is_ignored(key_path, ignore_paths):
            continue
        if ignore_descriptions and key == "description":
            continue

        old_value = old.get(key)
        new_value = new.get(key)

        if key == "required" and _is_name_list(old_value or []) and _is_name_list(new_value or []):
            change = _required_change(key_path, old_value, new_value)
        elif isinstance(old_value, dict) and isinstance(new_value, dict):
            changes.extend(
                diff_objects(key_path, old_value, new_value, ignore_paths, ignore_descriptions)
            )
            continue
        else:
            change = compare_values(key_path, old_value, new_value, f"Changed {key_path}")

        if change is not None:
            changes.append(change)
    return changes


# --- Spec comparisons ---


def _dump(model: Any) -> Optional[dict[str, Any]]:
    if model is None:
        return None
    return model.model_dump(mode="json", exclude_none=True)


def _io_tree(spec: OperationSpec) -> dict[str, Any]:
    tree: dict[str, Any] = {}
    if spec.io.input is not None:
        tree["input"] = spec.io.input.to_json_schema()
    if spec.io.output is not None:
        tree["output"] = spec.io.output.to_json_schema()
    return tree


def diff_specs(
    old: OperationSpec,
    new: OperationSpec,
    options: Optional[DiffOptions] = None,
) -> list[DiffChange]:
    """Compare two canonical operation specs.

    ``meta``, ``io`` (as JSON Schema), ``transport`` and ``policy`` are
    compared in that order.  ``diff_specs(a, a)`` is always empty.
    """
    options = options or DiffOptions()
    ignore = list(options.ignore_paths)
    if options.ignore_descriptions:
        ignore.extend(_DESCRIPTION_PATHS)
    if options.ignore_tags:
        ignore.append("meta.tags")

    changes = diff_objects(
        "meta", _dump(old.meta), _dump(new.meta), ignore, options.ignore_descriptions
    )
    changes.extend(
        diff_objects("io", _io_tree(old), _io_tree(new), ignore, options.ignore_descriptions)
    )
    if not options.ignore_transport:
        changes.extend(
            diff_objects("transport", _dump(old.transport), _dump(new.transport), ignore)
        )
    changes.extend(diff_objects("policy", _dump(old.policy), _dump(new.policy), ignore))
    return changes


def _resolved_method(spec: OperationSpec) -> str:
    rest = spec.transport.rest if spec.transport else None
    if rest is not None and rest.method:
        return rest.method.upper()
    return "GET" if spec.meta.kind == OpKind.QUERY else "POST"


def diff_spec_vs_operation(
    spec: OperationSpec,
    operation: ParsedOperation,
    options: Optional[DiffOptions] = None,
) -> list[DiffChange]:
    """Compare a canonical spec with a parsed OpenAPI operation.

    The method is compared against the spec's resolved method (explicit or
    kind-based), the path only when the spec declares one, and deprecation
    through the spec's stability.
    """
    options = options or DiffOptions()
    changes: list[DiffChange] = []

    if not options.ignore_descriptions:
        change = compare_values(
            "meta.description",
            spec.meta.description,
            operation.summary or operation.description,
            "Description changed",
        )
        if change is not None:
            changes.append(change)

    if not options.ignore_tags:
        old_tags = sorted(spec.meta.tags)
        new_tags = sorted(operation.tags)
        if old_tags != new_tags:
            changes.append(DiffChange(
                path="meta.tags",
                type=DiffChangeType.MODIFIED,
                old_value=old_tags,
                new_value=new_tags,
                description="Tags changed",
            ))

    if not options.ignore_transport:
        spec_method = _resolved_method(spec)
        operation_method = operation.method.value.upper()
        if spec_method != operation_method:
            changes.append(DiffChange(
                path="transport.rest.method",
                type=DiffChangeType.MODIFIED,
                old_value=spec_method,
                new_value=operation_method,
                description="HTTP method changed",
            ))

        rest = spec.transport.rest if spec.transport else None
        if rest is not None and rest.path and rest.path != operation.path:
            changes.append(DiffChange(
                path="transport.rest.path",
                type=DiffChangeType.MODIFIED,
                old_value=rest.path,
                new_value=operation.path,
                description="Path changed",
            ))

    spec_deprecated = spec.meta.stability == Stability.DEPRECATED
    if spec_deprecated != operation.deprecated:
        changes.append(DiffChange(
            path="meta.stability",
            type=DiffChangeType.MODIFIED,
            old_value=spec.meta.stability.value,
            new_value=Stability.DEPRECATED.value if operation.deprecated else Stability.STABLE.value,
            description="Deprecation status changed",
        ))

    return [c for c in changes if not _is_ignored(c.path, options.ignore_paths)]


def create_spec_diff(
    operation_id: str,
    existing: Optional[OperationSpec],
    incoming: ImportedOperationSpec,
    options: Optional[DiffOptions] = None,
) -> SpecDiff:
    """Build the :class:`~specbridge.models.SpecDiff` for one imported spec.

    Without an existing spec the diff is a single ``added`` change.  When
    the incoming side has no live spec the comparison degrades to a single
    code-only ``modified`` change.
    """
    if existing is None:
        changes = [DiffChange(
            path="",
            type=DiffChangeType.ADDED,
            new_value=_dump(incoming.operation_spec) or incoming.code,
            description="New spec imported from OpenAPI",
        )]
    elif incoming.operation_spec is None:
        changes = [DiffChange(
            path="",
            type=DiffChangeType.MODIFIED,
            old_value=existing.key,
            new_value=incoming.file_name,
            description="Spec code imported from OpenAPI (runtime comparison not available)",
        )]
    else:
        changes = diff_specs(existing, incoming.operation_spec, options)

    return SpecDiff(
        operation_id=operation_id,
        existing=existing,
        incoming=incoming,
        changes=changes,
    )


def _matches(
    key: str,
    spec: OperationSpec,
    incoming: ImportedOperationSpec,
    match: MatchPolicy,
) -> bool:
    source_id = incoming.source.source_id
    if key == source_id or spec.key == source_id:
        return True
    if incoming.operation_spec is not None:
        if incoming.operation_spec.meta.name == spec.meta.name:
            return True
    elif incoming.file_name == to_file_name(spec.meta.name):
        return True
    return match == MatchPolicy.CONTAINS and source_id in spec.meta.name


def diff_all(
    existing: Mapping[str, OperationSpec],
    imported: Sequence[ImportedOperationSpec],
    options: Optional[DiffOptions] = None,
) -> list[SpecDiff]:
    """Diff every imported spec against the existing registry.

    Each existing spec is matched at most once.  Existing specs left
    unmatched are reported as ``removed`` so that the result always holds
    ``len(existing) + len(imported) - matched`` diffs.

    Args:
        existing: Existing specs keyed by registry key (or any id).
        imported: Specs from :func:`~specbridge.importer.import_from_openapi`.
        options: Diff options; ``options.match`` selects the pairing policy.
    """
    options = options or DiffOptions()
    matched: set[str] = set()
    diffs: list[SpecDiff] = []

    for incoming in imported:
        operation_id = incoming.source.source_id
        found: Optional[OperationSpec] = None
        for key, spec in existing.items():
            if key in matched:
                continue
            if _matches(key, spec, incoming, options.match):
                found = spec
                matched.add(key)
                break
        if found is None:
            logger.debug("No existing spec matches %s", operation_id)
        diffs.append(create_spec_diff(operation_id, found, incoming, options))

    for key, spec in existing.items():
        if key in matched:
            continue
        diffs.append(SpecDiff(
            operation_id=key,
            existing=spec,
            incoming=None,
            changes=[DiffChange(
                path="",
                type=DiffChangeType.REMOVED,
                old_value=spec.key,
                description="Spec no longer exists in OpenAPI source",
            )],
        ))
    return diffs


# --- Sync ---


def resolve_diff(diff: SpecDiff, resolution: Resolution) -> SpecDiff:
    """Return a copy of *diff* carrying the user's *resolution*."""
    return diff.model_copy(update={"resolution": resolution})


def _is_code_only(diff: SpecDiff) -> bool:
    return (
        diff.existing is not None
        and diff.incoming is not None
        and diff.incoming.operation_spec is None
    )


def build_sync_result(diffs: Sequence[SpecDiff]) -> SyncResult:
    """Bucket diffs into a :class:`~specbridge.models.SyncResult`.

    * ``added`` -- no existing spec.
    * ``unchanged`` -- equivalent, or resolved ``keep_existing`` / ``skip``.
    * ``updated`` -- non-breaking changes, or resolved ``use_incoming`` /
      ``merge``.
    * ``conflicts`` -- unresolved breaking changes, code-only comparisons
      and specs removed upstream.
    """
    added: list[str] = []
    updated: list[str] = []
    unchanged: list[str] = []
    conflicts: list[SpecDiff] = []

    for diff in diffs:
        if diff.existing is None:
            added.append(diff.operation_id)
        elif diff.resolution in (Resolution.KEEP_EXISTING, Resolution.SKIP):
            unchanged.append(diff.operation_id)
        elif diff.resolution in (Resolution.USE_INCOMING, Resolution.MERGE):
            updated.append(diff.operation_id)
        elif diff.is_equivalent:
            unchanged.append(diff.operation_id)
        elif (
            diff.incoming is None
            or _is_code_only(diff)
            or any(change.type in BREAKING_CHANGES for change in diff.changes)
        ):
            conflicts.append(diff)
        else:
            updated.append(diff.operation_id)

    return SyncResult(
        added=added,
        updated=updated,
        unchanged=unchanged,
        conflicts=conflicts,
        summary=SyncSummary(
            total=len(diffs),
            added=len(added),
            updated=len(updated),
            unchanged=len(unchanged),
            conflicts=len(conflicts),
        ),
    )


# --- Text rendering ---


def _json(value: Any) -> str:
    return json.dumps(value, default=str)


def format_diff_changes(changes: Sequence[DiffChange]) -> str:
    """Render changes one per line with a per-type prefix (``+ - ~ ! ?``)."""
    if not changes:
        return "No changes detected"

    lines: list[str] = []
    for change in changes:
        lines.append(f"{_PREFIXES[change.type]} {change.path}: {change.description}")
        if change.type in (
            DiffChangeType.MODIFIED,
            DiffChangeType.TYPE_CHANGED,
            DiffChangeType.REQUIRED_CHANGED,
        ):
            lines.append(f"    old: {_json(change.old_value)}")
            lines.append(f"    new: {_json(change.new_value)}")
        elif change.type == DiffChangeType.ADDED:
            lines.append(f"    value: {_json(change.new_value)}")
        elif change.type == DiffChangeType.REMOVED:
            lines.append(f"    was: {_json(change.old_value)}")
    return "\n".join(lines)


def format_sync_result(result: SyncResult) -> str:
    summary = result.summary
    lines = [
        f"Total: {summary.total}  added: {summary.added}  updated: {summary.updated}  "
        f"unchanged: {summary.unchanged}  conflicts: {summary.conflicts}",
    ]
    for label, ids in (("Added", result.added), ("Updated", result.updated)):
        for operation_id in ids:
            lines.append(f"{label}: {operation_id}")
    for diff in result.conflicts:
        lines.append(f"Conflict: {diff.operation_id}")
        lines.extend(f"  {line}" for line in format_diff_changes(diff.changes).splitlines())
    return "\n".join(lines)
