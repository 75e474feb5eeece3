"""Layout and registry errors."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class LayoutErrorKind(Enum):
    UNKNOWN_TYPE = "UnknownType"
    INCOMPLETE_TYPE = "IncompleteType"
    CYCLIC_TYPEDEF = "CyclicTypedef"
    DUPLICATE_DECLARATION = "DuplicateDeclaration"
    ALREADY_DEFINED = "AlreadyDefined"
    UNKNOWN_FIELD_TYPE = "UnknownFieldType"
    UNKNOWN_FIELD = "UnknownField"
    INVALID_ARRAY_SIZE = "InvalidArraySize"

    def __str__(self) -> str:
        return self.value


_MESSAGES = {
    LayoutErrorKind.UNKNOWN_TYPE: "unknown type name '{name}'",
    LayoutErrorKind.INCOMPLETE_TYPE: "incomplete type '{name}'",
    LayoutErrorKind.CYCLIC_TYPEDEF: "typedef '{name}' refers to itself",
    LayoutErrorKind.DUPLICATE_DECLARATION: "conflicting declaration of '{name}'",
    LayoutErrorKind.ALREADY_DEFINED: "redefinition of '{name}'",
    LayoutErrorKind.UNKNOWN_FIELD_TYPE: "unknown type name '{name}'",
    LayoutErrorKind.UNKNOWN_FIELD: "no member named '{field}' in '{name}'",
    LayoutErrorKind.INVALID_ARRAY_SIZE: "array '{name}' has negative size",
}


class LayoutError(Exception):
    """A compile-time layout failure.

    ``name`` is the offending type; ``field`` is set when the failure is
    attributable to one struct member.
    """

    def __init__(self, kind: LayoutErrorKind, name: str, field: Optional[str] = None, detail: Optional[str] = None):
        self.kind = kind
        self.name = name
        self.field = field
        msg = _MESSAGES[kind].format(name=name, field=field)
        if field is not None and kind is not LayoutErrorKind.UNKNOWN_FIELD:
            msg += f" (member '{field}')"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)

    @property
    def message(self) -> str:
        return str(self)
