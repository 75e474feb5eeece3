"""
Type Representation

Type expressions as handed over by the parser, the name-keyed references the
registry hands back, and the closed set of type nodes the layout engine
dispatches on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from typelayout.target import PrimitiveKind


def spell(base_name: str, pointer_depth: int, array_dims: Tuple[int, ...]) -> str:
    """Render a normalized type as a C abstract declarator, e.g. 'struct foo *[3]'."""
    result = base_name
    if pointer_depth:
        result += " " + "*" * pointer_depth
    for d in array_dims:
        result += f"[{d}]"
    return result


@dataclass(frozen=True)
class TypeExpr:
    """Normalized type expression: a base name, then pointers, then arrays.

    ``TypeExpr("int", 1, (2, 3))`` is ``int *[2][3]``: an array of 2 arrays
    of 3 pointers to int. Struct tags are spelled ``"struct tag"``.
    """
    base_name: str
    pointer_depth: int = 0
    array_dims: Tuple[int, ...] = ()

    def __post_init__(self):
        # Accept lists for convenience; keep the frozen instance hashable.
        if not isinstance(self.array_dims, tuple):
            object.__setattr__(self, "array_dims", tuple(self.array_dims))

    def __str__(self) -> str:
        return spell(self.base_name, self.pointer_depth, self.array_dims)


@dataclass(frozen=True)
class TypeRef:
    """A validated reference into a registry; resolved lazily by name."""
    base_name: str
    pointer_depth: int = 0
    array_dims: Tuple[int, ...] = ()

    def __str__(self) -> str:
        return spell(self.base_name, self.pointer_depth, self.array_dims)

    @property
    def is_named(self) -> bool:
        return self.pointer_depth == 0 and not self.array_dims

    def strip_array(self) -> TypeRef:
        return TypeRef(self.base_name, self.pointer_depth, self.array_dims[1:])

    def strip_pointer(self) -> TypeRef:
        return TypeRef(self.base_name, self.pointer_depth - 1)


TypeLike = Union[TypeRef, TypeExpr, str]


# ============== Type Nodes ==============

@dataclass(frozen=True)
class Primitive:
    kind: PrimitiveKind

    def __str__(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class Pointer:
    pointee: TypeRef

    def __str__(self) -> str:
        return f"{self.pointee} *" if self.pointee.is_named else f"({self.pointee}) *"


@dataclass(frozen=True)
class Array:
    element: TypeRef
    count: int

    def __str__(self) -> str:
        return f"{self.element}[{self.count}]"


@dataclass(frozen=True)
class Field:
    name: str
    type: TypeRef


@dataclass(frozen=True)
class Struct:
    """A struct; ``fields`` is None until the struct is defined."""
    name: str
    fields: Optional[Tuple[Field, ...]] = None

    @property
    def is_defined(self) -> bool:
        return self.fields is not None

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class TypedefAlias:
    name: str
    underlying: TypeRef

    def __str__(self) -> str:
        return self.name


TypeNode = Union[Primitive, Pointer, Array, Struct, TypedefAlias]


def struct_name(tag: str) -> str:
    """Registry key of a struct tag."""
    return tag if tag.startswith("struct ") else f"struct {tag}"
