"""
Declaration records for the layout analyzer

The parser stage reduces C declarations and ``sizeof``/``_Alignof``/
``offsetof`` operands to these records; the analyzer consumes them in source
order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union

from typelayout.types import TypeExpr


@dataclass
class Member:
    """Struct member declaration"""
    name: str
    type: TypeExpr
    line: int = 0


@dataclass
class StructDecl:
    """Structure declaration"""
    name: str
    members: Optional[List[Member]] = None  # None if only name (forward decl)
    line: int = 0


@dataclass
class TypedefDecl:
    """Typedef declaration"""
    name: str
    type: TypeExpr
    line: int = 0


@dataclass
class SizeOf:
    """sizeof(type-name)"""
    type: TypeExpr
    line: int = 0


@dataclass
class AlignOf:
    """_Alignof(type-name)"""
    type: TypeExpr
    line: int = 0


@dataclass
class OffsetOf:
    """offsetof(struct-or-typedef, member)"""
    type_name: str
    member: str
    line: int = 0


Declaration = Union[StructDecl, TypedefDecl]
Query = Union[SizeOf, AlignOf, OffsetOf]


@dataclass
class TranslationUnit:
    """Root record: everything one source file declares and asks, in order."""
    items: List[Union[Declaration, Query]] = field(default_factory=list)

    def add(self, item: Union[Declaration, Query]) -> TranslationUnit:
        self.items.append(item)
        return self


def _declarator(ty: TypeExpr, name: str) -> str:
    dims = "".join(f"[{d}]" for d in ty.array_dims)
    return f"{ty.base_name} {'*' * ty.pointer_depth}{name}{dims}"


def describe(item: Union[Declaration, Query]) -> str:
    """One-line rendering of a record, C-like."""
    if isinstance(item, StructDecl):
        if item.members is None:
            return f"struct {item.name};"
        body = " ".join(f"{_declarator(m.type, m.name)};" for m in item.members)
        return f"struct {item.name} {{ {body} }};"
    if isinstance(item, TypedefDecl):
        return f"typedef {_declarator(item.type, item.name)};"
    if isinstance(item, SizeOf):
        return f"sizeof({item.type})"
    if isinstance(item, AlignOf):
        return f"_Alignof({item.type})"
    if isinstance(item, OffsetOf):
        return f"offsetof({item.type_name}, {item.member})"
    return item.__class__.__name__
