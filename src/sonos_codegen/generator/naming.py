"""Identifier rules for generated Python names.

Vendor names are mapped to Python identifiers by fixed rules so that the
generated module is stable across runs:

1. The plural acronyms ``URIs``, ``UUIDs`` and ``IDs`` are folded to
   ``Uris``, ``Uuids`` and ``Ids`` so they split as one word.
2. The name is split into words at case boundaries (``AddURIToQueue`` ->
   ``Add URI To Queue``) and at every character that is not an ASCII letter
   or digit. Non-ASCII letters such as ``ä`` are separators too.
3. Words are joined per style: ``snake`` (fields, parameters, methods),
   ``pascal`` (classes) or ``constant`` (enum members).
4. A name starting with a digit gets a ``v_`` (``V_`` for constants,
   ``V`` for classes) prefix.
5. A name equal to a Python keyword or soft keyword, or to a reserved name
   of its scope (``self``, BaseModel attributes, the builtin type names
   used in annotations), gets a trailing ``_``.

A name with no ASCII letters or digits has no mapping and raises EmitError, as
does a scope in which two vendor names map to the same identifier.
"""

import keyword
import re

from pydantic import BaseModel

from sonos_codegen.errors import EmitError

_ACRONYM_FIXUPS = (("URIs", "Uris"), ("UUIDs", "Uuids"), ("IDs", "Ids"))

_WORD_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")

# Fixed rather than keyword.softkwlist, which differs between interpreters.
SOFT_KEYWORDS = frozenset({"_", "case", "match", "type"})

# Names used in generated annotations.
_ANNOTATION_NAMES = frozenset({"str", "int", "float", "bool", "enum"})

# Attribute names a pydantic field must not shadow.
MODEL_RESERVED = frozenset(name for name in dir(BaseModel) if not name.startswith("_")) | _ANNOTATION_NAMES
PARAM_RESERVED = frozenset({"self"}) | _ANNOTATION_NAMES


def split_words(name: str) -> list[str]:
    for before, after in _ACRONYM_FIXUPS:
        name = name.replace(before, after)
    words = []
    for chunk in re.split(r"[^0-9A-Za-z]+", name):
        words.extend(_WORD_RE.findall(chunk))
    return words


def _finish(ident: str, reserved: frozenset[str]) -> str:
    if keyword.iskeyword(ident) or ident in SOFT_KEYWORDS or ident in reserved:
        return ident + "_"
    return ident


def snake_case(name: str, reserved: frozenset[str] = frozenset(), entity: str | None = None) -> str:
    words = split_words(name)
    if not words:
        raise EmitError(f"cannot map {name!r} to an identifier", entity=entity or name)
    ident = "_".join(w.lower() for w in words)
    if ident[0].isdigit():
        ident = "v_" + ident
    return _finish(ident, reserved)


def pascal_case(name: str, entity: str | None = None) -> str:
    words = split_words(name)
    if not words:
        raise EmitError(f"cannot map {name!r} to an identifier", entity=entity or name)
    ident = "".join(w[0].upper() + w[1:] for w in words)
    if ident[0].isdigit():
        ident = "V" + ident
    return _finish(ident, frozenset())


def constant_case(name: str, entity: str | None = None) -> str:
    words = split_words(name)
    if not words:
        raise EmitError(f"cannot map {name!r} to an identifier", entity=entity or name)
    ident = "_".join(w.upper() for w in words)
    if ident[0].isdigit():
        ident = "V_" + ident
    return _finish(ident, frozenset())


def unique_names(names: list[str], style, entity: str, **kwargs) -> list[str]:
    """Map ``names`` with ``style``, failing if two land on the same identifier."""
    result = []
    seen: dict[str, str] = {}
    for name in names:
        ident = style(name, entity=f"{entity}.{name}", **kwargs)
        if ident in seen:
            raise EmitError(f"{seen[ident]!r} and {name!r} both map to identifier {ident!r}", entity=entity)
        seen[ident] = name
        result.append(ident)
    return result
