"""typelayout.analyzer

Translation-unit driver for the layout engine.

Walks the declaration records of one unit in source order, feeding the
registry and answering ``sizeof``/``_Alignof``/``offsetof`` queries. A
failing declaration or query is recorded as a diagnostic and the walk
continues with the next record, so one bad type does not hide errors (or
results) in unrelated declarations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from typelayout.declarations import (
    AlignOf,
    Declaration,
    OffsetOf,
    Query,
    SizeOf,
    StructDecl,
    TranslationUnit,
    TypedefDecl,
    describe,
)
from typelayout.errors import LayoutError
from typelayout.layout import LayoutEngine, LayoutResult
from typelayout.registry import KIND_STRUCT, TypeRegistry
from typelayout.target import TargetDescriptor, default_target
from typelayout.types import struct_name

logger = logging.getLogger(__name__)


@dataclass
class Diagnostic:
    line: int
    error: LayoutError
    source: str = ""

    def __str__(self) -> str:
        where = f"line {self.line}: " if self.line else ""
        return f"{where}{self.error}"


@dataclass
class AnalysisResult:
    """Result of analyzing one translation unit"""
    success: bool
    # One entry per query, in order; None where the query failed.
    values: List[Optional[int]] = field(default_factory=list)
    errors: List[Diagnostic] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    # key: registry name ("struct foo", typedef names)
    layouts: Dict[str, LayoutResult] = field(default_factory=dict)

    def raise_for_errors(self) -> None:
        if self.errors:
            raise self.errors[0].error


class LayoutAnalyzer:
    """Layout analysis for one translation unit.

    Each analyzer owns its registry and layout cache; independent units must
    use independent analyzers.
    """

    def __init__(self, target: Optional[TargetDescriptor] = None):
        self.target = target if target is not None else default_target()
        self.registry = TypeRegistry()
        self.engine = LayoutEngine(self.registry, self.target)
        self.errors: List[Diagnostic] = []
        self.warnings: List[str] = []

    def analyze(self, unit: TranslationUnit) -> AnalysisResult:
        self.errors = []
        self.warnings = []
        values: List[Optional[int]] = []

        for item in unit.items:
            if isinstance(item, (SizeOf, AlignOf, OffsetOf)):
                values.append(self._guard(item, self._evaluate))
            elif isinstance(item, (StructDecl, TypedefDecl)):
                self._guard(item, self._declare)
            else:
                raise TypeError(f"unexpected record {type(item).__name__}")

        layouts: Dict[str, LayoutResult] = {}
        for name in self.registry.structs() + self.registry.typedefs():
            try:
                layouts[name] = self.engine.layout(name)
            except LayoutError:
                # incomplete or broken types have no layout to report
                continue

        logger.info("analyzed %d record(s) for target %s: %d error(s), %d warning(s)",
                    len(unit.items), self.target.name, len(self.errors), len(self.warnings))
        return AnalysisResult(
            success=not self.errors,
            values=values,
            errors=list(self.errors),
            warnings=list(self.warnings),
            layouts=layouts,
        )

    def _guard(self, item: Union[Declaration, Query], fn):
        try:
            return fn(item)
        except LayoutError as e:
            self.errors.append(Diagnostic(line=item.line, error=e, source=describe(item)))
            logger.debug("%s: %s", describe(item), e)
            return None

    # -----------------
    # Declarations
    # -----------------

    def _declare(self, decl: Declaration) -> None:
        if isinstance(decl, TypedefDecl):
            self._mention(decl.type.base_name)
            # Unknown base names are an error at the typedef, not at first use.
            self.registry.lookup(decl.type)
            self.registry.typedef(decl.name, decl.type)
            return

        name = struct_name(decl.name)
        if decl.members is None:
            self.registry.declare(name, KIND_STRUCT)
            return

        for m in decl.members:
            if m.type.base_name != name:
                self._mention(m.type.base_name)

        self.registry.define(name, [(m.name, m.type) for m in decl.members])
        # Lay out now so incomplete members are reported at the definition.
        try:
            self.engine.layout(name)
        except LayoutError:
            # A rejected definition leaves the tag declared but incomplete.
            self.registry.undefine(name)
            raise
        if not decl.members:
            self._warn(decl.line, f"struct {decl.name} has no members")

    def _mention(self, base: str) -> None:
        # Mentioning a struct tag declares it.
        if base.startswith("struct ") and base not in self.registry:
            self.registry.declare(base, KIND_STRUCT)

    def _warn(self, line: int, msg: str) -> None:
        text = f"line {line}: {msg}" if line else msg
        self.warnings.append(text)
        logger.warning(text)

    # -----------------
    # Queries
    # -----------------

    def _evaluate(self, query: Query) -> int:
        if isinstance(query, SizeOf):
            return self.engine.size_of(query.type)
        if isinstance(query, AlignOf):
            return self.engine.align_of(query.type)
        return self.engine.field_offset(query.type_name, query.member)
