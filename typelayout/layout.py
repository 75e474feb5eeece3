"""typelayout.layout

Layout Engine: computes (size, alignment) for any type reference and the
member offsets of structs, for one registry and one target.

Rules:
- primitives come from the target descriptor; ``void`` is incomplete
- pointers are ``(pointer_size, pointer_align)`` and never look at the pointee
- arrays are ``count * element size`` with the element's alignment
- structs place each member at the next multiple of its alignment and pad
  the total to the largest member alignment; an empty struct is size 0,
  alignment 1
- typedefs are transparent

Results for named types are memoized per registry entry revision. A failed
computation leaves nothing in the cache. Before a type is laid out, the named
types it contains by value are laid out first, dependencies before
dependents, so arbitrarily long typedef chains and nesting never recurse
deeply.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Set, Tuple

from typelayout.errors import LayoutError, LayoutErrorKind
from typelayout.registry import TypeRegistry
from typelayout.target import PrimitiveKind, TargetDescriptor, default_target
from typelayout.types import (
    Array,
    Pointer,
    Primitive,
    Struct,
    TypedefAlias,
    TypeExpr,
    TypeLike,
    TypeNode,
    TypeRef,
    struct_name,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayoutResult:
    size: int
    align: int
    # Struct members only, in declaration order. Read-only views.
    field_offsets: Mapping[str, int] = field(default_factory=dict)
    field_sizes: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "field_offsets", MappingProxyType(dict(self.field_offsets)))
        object.__setattr__(self, "field_sizes", MappingProxyType(dict(self.field_sizes)))

    @property
    def alignment(self) -> int:
        return self.align

    @property
    def field_order(self) -> List[str]:
        return list(self.field_offsets)


def align_up(n: int, align: int) -> int:
    if n % align != 0:
        n += align - (n % align)
    return n


class LayoutEngine:
    """Size/alignment oracle over a TypeRegistry."""

    def __init__(self, registry: TypeRegistry, target: Optional[TargetDescriptor] = None):
        self.registry = registry
        self.target = target if target is not None else default_target()
        # name -> (entry revision, result)
        self._cache: Dict[str, Tuple[int, LayoutResult]] = {}
        # named types currently being laid out
        self._active: Set[str] = set()
        # failures seen during the current top-level call
        self._failed: Dict[str, LayoutError] = {}
        self._epoch = registry.epoch

    # -----------------
    # Entry points
    # -----------------

    def layout(self, ty: TypeLike) -> LayoutResult:
        ref = self._as_ref(ty)
        if self.registry.epoch != self._epoch:
            self._cache.clear()
            self._epoch = self.registry.epoch
        try:
            for name in self._dependencies(ref):
                try:
                    self._layout_ref(TypeRef(name))
                except LayoutError as e:
                    # Dependents re-raise this instead of walking down again.
                    self._failed[name] = e
            return self._layout_ref(ref)
        finally:
            self._failed.clear()

    def size_of(self, ty: TypeLike) -> int:
        return self.layout(ty).size

    def align_of(self, ty: TypeLike) -> int:
        return self.layout(ty).align

    def field_offset(self, struct: str, member: str) -> int:
        name = struct if struct in self.registry else struct_name(struct)
        node = self.registry.resolve_typedef(name) if name in self.registry else None
        if node is None:
            raise LayoutError(LayoutErrorKind.UNKNOWN_TYPE, name)
        if not isinstance(node, Struct):
            raise LayoutError(LayoutErrorKind.UNKNOWN_FIELD, name, field=member, detail="not a struct")
        result = self.layout(TypeRef(node.name))
        if member not in result.field_offsets:
            raise LayoutError(LayoutErrorKind.UNKNOWN_FIELD, node.name, field=member)
        return result.field_offsets[member]

    def is_complete(self, ty: TypeLike) -> bool:
        try:
            self.layout(ty)
        except LayoutError as e:
            if e.kind is LayoutErrorKind.INCOMPLETE_TYPE:
                return False
            raise
        return True

    def format_layout(self, ty: TypeLike) -> str:
        """Member table for a struct (or a one-line summary for anything else)."""
        ref = self._as_ref(ty)
        result = self.layout(ref)
        lines = [f"{ref}: size {result.size}, align {result.align}"]
        node = self.registry.resolve_typedef(ref.base_name) if ref.is_named else None
        if isinstance(node, Struct):
            cursor = 0
            for member in node.fields:
                off = result.field_offsets[member.name]
                if off > cursor:
                    lines.append(f"  {'':>6}  /* {off - cursor} padding */")
                lines.append(f"  {off:>6}  {member.type} {member.name}; /* size {result.field_sizes[member.name]} */")
                cursor = off + result.field_sizes[member.name]
            if result.size > cursor:
                lines.append(f"  {'':>6}  /* {result.size - cursor} trailing padding */")
        return "\n".join(lines)

    # -----------------
    # Internals
    # -----------------

    def _as_ref(self, ty: TypeLike) -> TypeRef:
        if isinstance(ty, TypeRef):
            return ty
        if isinstance(ty, str):
            ty = TypeExpr(ty)
        if isinstance(ty, TypeExpr):
            return self.registry.lookup(ty)
        raise TypeError(f"expected TypeRef, TypeExpr or str, got {type(ty).__name__}")

    def _cached(self, name: str) -> bool:
        cached = self._cache.get(name)
        return cached is not None and cached[0] == self.registry.revision(name)

    def _value_deps(self, name: str) -> Iterator[str]:
        node = self.registry.get(name)
        if isinstance(node, Struct) and node.fields:
            refs = [f.type for f in node.fields]
        elif isinstance(node, TypedefAlias):
            refs = [node.underlying]
        else:
            refs = []
        return iter([r.base_name for r in refs if not r.pointer_depth])

    def _dependencies(self, ref: TypeRef) -> List[str]:
        """Named types ``ref`` holds by value, transitively, dependencies first."""
        if ref.pointer_depth or self._cached(ref.base_name):
            return []
        order: List[str] = []
        done: Set[str] = set()
        on_path = {ref.base_name}
        stack = [(ref.base_name, self._value_deps(ref.base_name))]
        while stack:
            name, deps = stack[-1]
            for dep in deps:
                if dep in done or dep in on_path or dep not in self.registry or self._cached(dep):
                    continue
                on_path.add(dep)
                stack.append((dep, self._value_deps(dep)))
                break
            else:
                stack.pop()
                on_path.discard(name)
                done.add(name)
                order.append(name)
        return order

    def _layout_ref(self, ref: TypeRef) -> LayoutResult:
        if not ref.is_named:
            return self._layout_node(ref, self.registry.resolve(ref))

        name = ref.base_name
        if name in self._failed:
            raise self._failed[name].with_traceback(None)
        rev = self.registry.revision(name)
        cached = self._cache.get(name)
        if cached is not None:
            if cached[0] == rev:
                return cached[1]
            del self._cache[name]

        node = self.registry.resolve(ref)
        if isinstance(node, Primitive):
            return self._layout_node(ref, node)

        if name in self._active:
            if isinstance(node, TypedefAlias):
                raise LayoutError(LayoutErrorKind.CYCLIC_TYPEDEF, name)
            # A struct is incomplete inside its own body.
            raise LayoutError(LayoutErrorKind.INCOMPLETE_TYPE, name, detail="contains itself")
        self._active.add(name)
        try:
            result = self._layout_node(ref, node)
        finally:
            self._active.discard(name)

        self._cache[name] = (rev, result)
        logger.debug("layout %s: size=%d align=%d", name, result.size, result.align)
        return result

    def _layout_node(self, ref: TypeRef, node: TypeNode) -> LayoutResult:
        if isinstance(node, Primitive):
            if node.kind is PrimitiveKind.VOID:
                raise LayoutError(LayoutErrorKind.INCOMPLETE_TYPE, str(ref))
            return LayoutResult(self.target.size_of(node.kind), self.target.align_of(node.kind))

        if isinstance(node, Pointer):
            return LayoutResult(self.target.pointer_size, self.target.pointer_align)

        if isinstance(node, Array):
            elem = self._layout_ref(node.element)
            return LayoutResult(elem.size * node.count, elem.align)

        if isinstance(node, Struct):
            return self._layout_struct(node)

        if isinstance(node, TypedefAlias):
            inner = self._layout_ref(node.underlying)
            return LayoutResult(inner.size, inner.align, inner.field_offsets, inner.field_sizes)

        raise TypeError(f"unhandled type node {type(node).__name__}")

    def _layout_struct(self, node: Struct) -> LayoutResult:
        if node.fields is None:
            raise LayoutError(LayoutErrorKind.INCOMPLETE_TYPE, node.name)

        offsets: Dict[str, int] = {}
        sizes: Dict[str, int] = {}
        off = 0
        max_align = 1
        for member in node.fields:
            try:
                sub = self._layout_ref(member.type)
            except LayoutError as e:
                if e.kind is LayoutErrorKind.INCOMPLETE_TYPE and e.field is None:
                    raise LayoutError(LayoutErrorKind.INCOMPLETE_TYPE, e.name, field=member.name,
                                      detail=f"in '{node.name}'") from e
                raise
            max_align = max(max_align, sub.align)
            off = align_up(off, sub.align)
            offsets[member.name] = off
            sizes[member.name] = sub.size
            off += sub.size

        size = align_up(off, max_align)
        return LayoutResult(size, max_align, offsets, sizes)
