"""Resolve local ``$ref`` JSON Reference pointers in OpenAPI documents.

OpenAPI documents commonly use ``$ref`` pointers (e.g.,
``{"$ref": "#/components/schemas/Pet"}``) to avoid repetition.  Instead of
inlining every pointer up front, the document is treated as an immutable
lookup table: callers resolve a pointer only at the moment they need the
target, and keep the ``$ref`` node otherwise.  This keeps self-referencing
schemas (trees, linked lists) representable without any special casing.

Only **local** references (those starting with ``#/``) are resolved.
External file or URL references, and local pointers whose target does not
exist, are passed through unchanged so that downstream stages can treat them
as opaque types.

A chain of references that points back at itself (``A -> B -> A``) can never
produce a schema and raises :class:`~specbridge.exceptions.RefResolutionError`.

Public functions:

* :func:`is_reference` -- Is this node a ``$ref`` node?
* :func:`resolve_pointer` -- Walk a single ``#/a/b/c`` pointer.
* :func:`resolve_ref` -- Follow a node's ``$ref`` chain to a concrete node.
* :func:`ref_name` -- Last segment of a pointer (the component name).
"""

from __future__ import annotations

from typing import Any, Optional

from specbridge.exceptions import RefResolutionError


def is_reference(node: Any) -> bool:
    """Return True when *node* is a ``{"$ref": "..."}`` mapping."""
    return isinstance(node, dict) and isinstance(node.get("$ref"), str)


def resolve_pointer(document: dict[str, Any], ref: str) -> Optional[Any]:
    """Resolve a single local JSON pointer against *document*.

    Handles RFC 6901 escaping (``~1`` for ``/``, ``~0`` for ``~``) and list
    indices.

    Args:
        document: The root OpenAPI document.
        ref: The pointer, e.g. ``"#/components/schemas/Pet"``.

    Returns:
        The value at the pointer, or ``None`` when the pointer is external or
        any segment is missing.
    """
    if not ref.startswith("#/"):
        return None

    current: Any = document
    for segment in ref[2:].split("/"):
        segment = segment.replace("~1", "/").replace("~0", "~")
        if isinstance(current, dict):
            if segment not in current:
                return None
            current = current[segment]
        elif isinstance(current, list):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                return None
        else:
            return None
    return current


def resolve_ref(document: dict[str, Any], node: Any) -> Any:
    """Follow *node*'s ``$ref`` chain until a non-reference node is reached.

    Args:
        document: The root OpenAPI document.
        node: Any node; non-reference nodes are returned unchanged.

    Returns:
        The concrete target node.  When a pointer in the chain cannot be
        resolved, the last ``$ref`` node is returned as-is.

    Raises:
        RefResolutionError: If the chain revisits a pointer it already
            followed.

    Example::

        schema = resolve_ref(doc, {"$ref": "#/components/schemas/Pet"})
        schema["properties"]["name"]
    """
    seen: list[str] = []
    current = node
    while is_reference(current):
        ref = current["$ref"]
        if ref in seen:
            chain = " -> ".join(seen + [ref])
            raise RefResolutionError(f"Circular $ref chain: {chain}")
        seen.append(ref)
        target = resolve_pointer(document, ref)
        if target is None:
            return current
        current = target
    return current


def ref_name(ref: str) -> str:
    """Return the last segment of a pointer (``#/components/schemas/Pet`` -> ``Pet``)."""
    return ref.rsplit("/", 1)[-1].replace("~1", "/").replace("~0", "~")
