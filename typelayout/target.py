"""typelayout.target

Target descriptors: the size and natural alignment of every scalar kind on a
given machine, plus the pointer size/alignment.

A descriptor is plain data. Two presets are provided:

- ``word``: the word-addressed reference machine; every scalar and every
  pointer occupies exactly one addressable unit.
- ``x86_64``: LP64 System V sizes, in bytes.

The default target is taken from ``TYPELAYOUT_TARGET`` when set.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Tuple


class PrimitiveKind(Enum):
    VOID = "void"
    BOOL = "_Bool"
    CHAR = "char"
    SCHAR = "signed char"
    UCHAR = "unsigned char"
    SHORT = "short"
    USHORT = "unsigned short"
    INT = "int"
    UINT = "unsigned int"
    LONG = "long"
    ULONG = "unsigned long"
    LONGLONG = "long long"
    ULONGLONG = "unsigned long long"
    FLOAT = "float"
    DOUBLE = "double"
    LONGDOUBLE = "long double"

    def __str__(self) -> str:
        return self.value


# Accepted C spellings for each kind. The canonical spelling (the enum value)
# is always included.
SPELLINGS: Dict[str, PrimitiveKind] = {k.value: k for k in PrimitiveKind}
SPELLINGS.update({
    "signed": PrimitiveKind.INT,
    "signed int": PrimitiveKind.INT,
    "unsigned": PrimitiveKind.UINT,
    "short int": PrimitiveKind.SHORT,
    "signed short": PrimitiveKind.SHORT,
    "signed short int": PrimitiveKind.SHORT,
    "unsigned short int": PrimitiveKind.USHORT,
    "long int": PrimitiveKind.LONG,
    "signed long": PrimitiveKind.LONG,
    "signed long int": PrimitiveKind.LONG,
    "unsigned long int": PrimitiveKind.ULONG,
    "long long int": PrimitiveKind.LONGLONG,
    "signed long long": PrimitiveKind.LONGLONG,
    "signed long long int": PrimitiveKind.LONGLONG,
    "unsigned long long int": PrimitiveKind.ULONGLONG,
})


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


@dataclass(frozen=True)
class TargetDescriptor:
    """Scalar sizes/alignments for one target, in the target's address unit."""
    name: str
    scalars: Mapping[PrimitiveKind, Tuple[int, int]]
    pointer_size: int
    pointer_align: int

    def __post_init__(self):
        if PrimitiveKind.VOID in self.scalars:
            raise ValueError(f"target {self.name}: void has no size")
        missing = [k.value for k in PrimitiveKind
                   if k is not PrimitiveKind.VOID and k not in self.scalars]
        if missing:
            raise ValueError(f"target {self.name}: missing scalar kinds: {', '.join(missing)}")
        entries = list(self.scalars.items()) + [("pointer", (self.pointer_size, self.pointer_align))]
        for kind, (size, align) in entries:
            if size <= 0:
                raise ValueError(f"target {self.name}: size of {kind} must be positive, got {size}")
            if not is_power_of_two(align):
                raise ValueError(f"target {self.name}: alignment of {kind} must be a power of two, got {align}")

    def size_of(self, kind: PrimitiveKind) -> int:
        return self.scalars[kind][0]

    def align_of(self, kind: PrimitiveKind) -> int:
        return self.scalars[kind][1]


WORD = TargetDescriptor(
    name="word",
    scalars={k: (1, 1) for k in PrimitiveKind if k is not PrimitiveKind.VOID},
    pointer_size=1,
    pointer_align=1,
)

X86_64 = TargetDescriptor(
    name="x86_64",
    scalars={
        PrimitiveKind.BOOL: (1, 1),
        PrimitiveKind.CHAR: (1, 1),
        PrimitiveKind.SCHAR: (1, 1),
        PrimitiveKind.UCHAR: (1, 1),
        PrimitiveKind.SHORT: (2, 2),
        PrimitiveKind.USHORT: (2, 2),
        PrimitiveKind.INT: (4, 4),
        PrimitiveKind.UINT: (4, 4),
        PrimitiveKind.LONG: (8, 8),
        PrimitiveKind.ULONG: (8, 8),
        PrimitiveKind.LONGLONG: (8, 8),
        PrimitiveKind.ULONGLONG: (8, 8),
        PrimitiveKind.FLOAT: (4, 4),
        PrimitiveKind.DOUBLE: (8, 8),
        PrimitiveKind.LONGDOUBLE: (16, 16),
    },
    pointer_size=8,
    pointer_align=8,
)

TARGETS: Dict[str, TargetDescriptor] = {t.name: t for t in (WORD, X86_64)}

DEFAULT_TARGET = "x86_64"


def get_target(name: str) -> TargetDescriptor:
    try:
        return TARGETS[name]
    except KeyError:
        raise KeyError(f"unknown target '{name}' (known: {', '.join(sorted(TARGETS))})") from None


def default_target() -> TargetDescriptor:
    """Target named by $TYPELAYOUT_TARGET, or x86_64."""
    return get_target(os.environ.get("TYPELAYOUT_TARGET", DEFAULT_TARGET))
