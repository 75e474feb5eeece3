"""typelayout.registry

Type Registry: maps type names to their declared type nodes for one
translation unit.

Names are spelled the way the parser normalizes them: primitives by any of
their C spellings ("unsigned", "unsigned int"), struct tags as
"struct tag", typedef names bare. Cross-type references are TypeRefs
(name-keyed), never direct node pointers, so a struct may mention another
struct that is declared but not yet complete.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

from typelayout.errors import LayoutError, LayoutErrorKind
from typelayout.target import SPELLINGS
from typelayout.types import (
    Array,
    Field,
    Pointer,
    Primitive,
    Struct,
    TypedefAlias,
    TypeExpr,
    TypeNode,
    TypeRef,
)

logger = logging.getLogger(__name__)

KIND_PRIMITIVE = "primitive"
KIND_STRUCT = "struct"
KIND_TYPEDEF = "typedef"


def _kind_of(node: TypeNode) -> str:
    if isinstance(node, Primitive):
        return KIND_PRIMITIVE
    if isinstance(node, Struct):
        return KIND_STRUCT
    if isinstance(node, TypedefAlias):
        return KIND_TYPEDEF
    raise TypeError(f"registry entries are named types, got {type(node).__name__}")


class TypeRegistry:
    """Named types of one translation unit."""

    def __init__(self):
        self._entries: Dict[str, TypeNode] = {}
        # name -> revision; bumped on every change to that entry
        self._revisions: Dict[str, int] = {}
        self._clock = 0
        # bumped whenever a definition is withdrawn
        self.epoch = 0
        for spelling, kind in SPELLINGS.items():
            self._put(spelling, Primitive(kind))

    def _put(self, name: str, node: TypeNode) -> None:
        self._clock += 1
        self._entries[name] = node
        self._revisions[name] = self._clock

    # -----------------
    # Queries
    # -----------------

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def get(self, name: str) -> Optional[TypeNode]:
        return self._entries.get(name)

    def kind(self, name: str) -> Optional[str]:
        node = self._entries.get(name)
        return None if node is None else _kind_of(node)

    def revision(self, name: str) -> int:
        return self._revisions.get(name, 0)

    def structs(self) -> List[str]:
        return [n for n, node in self._entries.items() if isinstance(node, Struct)]

    def typedefs(self) -> List[str]:
        return [n for n, node in self._entries.items() if isinstance(node, TypedefAlias)]

    # -----------------
    # Declarations
    # -----------------

    def declare(self, name: str, kind: str = KIND_STRUCT) -> TypeRef:
        """Register ``name`` as an incomplete struct.

        Re-declaring a known struct is a no-op (``struct foo;`` may appear
        any number of times, before or after the definition).
        """
        if kind != KIND_STRUCT:
            raise ValueError(f"only structs can be forward-declared, not {kind}")
        prev = self._entries.get(name)
        if prev is not None:
            if not isinstance(prev, Struct):
                raise LayoutError(LayoutErrorKind.DUPLICATE_DECLARATION, name,
                                  detail=f"already declared as {_kind_of(prev)}")
            return TypeRef(name)
        self._put(name, Struct(name))
        logger.debug("declared %s", name)
        return TypeRef(name)

    def define(self, name: str, fields: Sequence[Tuple[str, TypeExpr]]) -> TypeRef:
        """Attach the member list to struct ``name``, all at once.

        Every member is validated before anything is attached, so a failed
        definition leaves the struct exactly as it was.
        """
        prev = self._entries.get(name)
        if prev is not None:
            if not isinstance(prev, Struct):
                raise LayoutError(LayoutErrorKind.DUPLICATE_DECLARATION, name,
                                  detail=f"already declared as {_kind_of(prev)}")
            if prev.is_defined:
                raise LayoutError(LayoutErrorKind.ALREADY_DEFINED, name)

        members: List[Field] = []
        seen: Set[str] = set()
        for field_name, expr in fields:
            if field_name in seen:
                raise LayoutError(LayoutErrorKind.DUPLICATE_DECLARATION, name, field=field_name,
                                  detail="duplicate member")
            seen.add(field_name)
            # The struct's own tag is in scope inside its body.
            if expr.base_name not in self._entries and expr.base_name != name:
                raise LayoutError(LayoutErrorKind.UNKNOWN_FIELD_TYPE, expr.base_name, field=field_name)
            self._check_dims(str(expr), expr.array_dims)
            members.append(Field(field_name, TypeRef(expr.base_name, expr.pointer_depth, tuple(expr.array_dims))))

        self._put(name, Struct(name, tuple(members)))
        logger.debug("defined %s with %d member(s)", name, len(members))
        return TypeRef(name)

    def undefine(self, name: str) -> None:
        """Withdraw the member list of struct ``name``; the tag stays declared.

        Layouts computed while the definition was attached are invalidated.
        """
        node = self._entries.get(name)
        if not isinstance(node, Struct):
            raise LayoutError(LayoutErrorKind.UNKNOWN_TYPE, name, detail="not a struct")
        if not node.is_defined:
            return
        self._put(name, Struct(name))
        self.epoch += 1
        logger.debug("withdrew definition of %s", name)

    def typedef(self, name: str, underlying: TypeExpr) -> TypeRef:
        """Register ``name`` as an alias of ``underlying``.

        The underlying type is resolved lazily; an identical redefinition is
        accepted.
        """
        self._check_dims(name, underlying.array_dims)
        target = TypeRef(underlying.base_name, underlying.pointer_depth, tuple(underlying.array_dims))
        prev = self._entries.get(name)
        if prev is not None:
            if isinstance(prev, TypedefAlias) and prev.underlying == target:
                return TypeRef(name)
            raise LayoutError(LayoutErrorKind.DUPLICATE_DECLARATION, name,
                              detail=f"already declared as {_kind_of(prev)}")
        self._put(name, TypedefAlias(name, target))
        logger.debug("typedef %s = %s", name, target)
        return TypeRef(name)

    # -----------------
    # Resolution
    # -----------------

    def lookup(self, expr: TypeExpr) -> TypeRef:
        if expr.base_name not in self._entries:
            raise LayoutError(LayoutErrorKind.UNKNOWN_TYPE, expr.base_name)
        self._check_dims(str(expr), expr.array_dims)
        return TypeRef(expr.base_name, expr.pointer_depth, tuple(expr.array_dims))

    def resolve(self, ref: TypeRef) -> TypeNode:
        """One derivation step: outermost array, then pointer, then the named entry."""
        if ref.array_dims:
            return Array(ref.strip_array(), ref.array_dims[0])
        if ref.pointer_depth:
            return Pointer(ref.strip_pointer())
        node = self._entries.get(ref.base_name)
        if node is None:
            raise LayoutError(LayoutErrorKind.UNKNOWN_TYPE, ref.base_name)
        return node

    def resolve_typedef(self, name: str) -> TypeNode:
        """Follow an alias chain to the first node that is not a typedef."""
        visited: Set[str] = set()
        node = self.resolve(TypeRef(name))
        while isinstance(node, TypedefAlias):
            if node.name in visited:
                raise LayoutError(LayoutErrorKind.CYCLIC_TYPEDEF, node.name,
                                  detail=" -> ".join(self._chain(name)))
            visited.add(node.name)
            node = self.resolve(node.underlying)
        return node

    def _chain(self, start: str) -> List[str]:
        names = [start]
        node = self._entries.get(start)
        while isinstance(node, TypedefAlias) and node.underlying.is_named:
            nxt = node.underlying.base_name
            names.append(nxt)
            if nxt in names[:-1]:
                break
            node = self._entries.get(nxt)
        return names

    @staticmethod
    def _check_dims(name: str, dims: Sequence[int]) -> None:
        for d in dims:
            if d < 0:
                raise LayoutError(LayoutErrorKind.INVALID_ARRAY_SIZE, name, detail=f"dimension {d}")
