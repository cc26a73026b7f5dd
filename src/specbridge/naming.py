"""Identifier and file-name helpers shared by the importer, exporter and generators.

All functions are pure and deterministic so that repeated generation runs
produce byte-identical names (and therefore diffable files on disk).
"""

from __future__ import annotations

import re

_WORD_SPLIT_RE = re.compile(r"[^A-Za-z0-9]+")
_CAMEL_BOUNDARY_RE = re.compile(r"([a-z0-9])([A-Z])")
_ACRONYM_BOUNDARY_RE = re.compile(r"([A-Z]+)([A-Z][a-z])")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

_RESERVED_WORDS = frozenset({
    "break", "case", "catch", "class", "const", "continue", "debugger",
    "default", "delete", "do", "else", "enum", "export", "extends", "false",
    "finally", "for", "function", "if", "import", "in", "instanceof", "new",
    "null", "return", "super", "switch", "this", "throw", "true", "try",
    "typeof", "var", "void", "while", "with", "yield", "let", "static",
    "implements", "interface", "package", "private", "protected", "public",
})


def _words(value: str) -> list[str]:
    """Split *value* into words on separators and camelCase boundaries."""
    value = _ACRONYM_BOUNDARY_RE.sub(r"\1 \2", value)
    value = _CAMEL_BOUNDARY_RE.sub(r"\1 \2", value)
    return [w for w in _WORD_SPLIT_RE.split(value) if w]


def to_pascal_case(value: str) -> str:
    """Convert *value* to PascalCase, keeping existing inner capitals.

    Example::

        >>> to_pascal_case("get_user-by id")
        'GetUserById'
        >>> to_pascal_case("listPets")
        'ListPets'
    """
    return "".join(w[:1].upper() + w[1:] for w in _words(value))


def to_camel_case(value: str) -> str:
    """Convert *value* to camelCase."""
    pascal = to_pascal_case(value)
    return pascal[:1].lower() + pascal[1:]


def to_kebab_case(value: str) -> str:
    """Convert *value* to kebab-case (``listPets`` -> ``list-pets``)."""
    return "-".join(w.lower() for w in _words(value))


def is_identifier(value: str) -> bool:
    """Return True when *value* can be used unquoted as an object key."""
    return bool(_IDENTIFIER_RE.match(value))


def to_valid_identifier(value: str) -> str:
    """Make *value* usable as a generated-code identifier.

    Invalid characters become ``_``, a leading digit gets a ``_`` prefix and
    reserved words get a ``_`` suffix.
    """
    cleaned = re.sub(r"[^A-Za-z0-9_$]", "_", value)
    if not cleaned:
        return "_"
    if cleaned[0].isdigit():
        cleaned = f"_{cleaned}"
    if cleaned in _RESERVED_WORDS:
        cleaned = f"{cleaned}_"
    return cleaned


def to_spec_name(operation_id: str, prefix: str | None = None) -> str:
    """Build a canonical spec name from an operationId and optional prefix.

    Example::

        >>> to_spec_name("listPets", "petstore")
        'petstore.listPets'
    """
    if prefix:
        return f"{prefix}.{operation_id}"
    return operation_id


def to_file_name(spec_name: str, extension: str = ".ts") -> str:
    """Derive the deterministic file name for a spec (kebab-case + extension)."""
    return f"{to_kebab_case(spec_name)}{extension}"


def to_export_name(spec_name: str, version: int = 1) -> str:
    """Exported symbol of a spec file (``petstore.listPets`` -> ``PetstoreListPetsSpec``).

    Versions after the first get a ``V{n}`` infix so that several versions
    can be registered side by side.
    """
    base = to_valid_identifier(to_pascal_case(spec_name))
    if version != 1:
        base = f"{base}V{version}"
    return f"{base}Spec"
