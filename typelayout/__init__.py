"""
typelayout - Type layout engine for a C front end

Computes sizeof/_Alignof for C type expressions and lays out structs,
arrays, pointers and typedefs for a configurable target descriptor.
"""

__version__ = "0.1.0"
__author__ = "TypeLayout Contributors"
__license__ = "MIT"

from .target import PrimitiveKind, TargetDescriptor, WORD, X86_64, get_target, default_target
from .types import TypeExpr, TypeRef
from .errors import LayoutError, LayoutErrorKind
from .registry import TypeRegistry
from .layout import LayoutEngine, LayoutResult
from .analyzer import LayoutAnalyzer, AnalysisResult, Diagnostic

__all__ = [
    'PrimitiveKind',
    'TargetDescriptor',
    'WORD',
    'X86_64',
    'get_target',
    'default_target',
    'TypeExpr',
    'TypeRef',
    'LayoutError',
    'LayoutErrorKind',
    'TypeRegistry',
    'LayoutEngine',
    'LayoutResult',
    'LayoutAnalyzer',
    'AnalysisResult',
    'Diagnostic',
]
