import pytest

from typelayout.errors import LayoutError, LayoutErrorKind
from typelayout.layout import LayoutEngine
from typelayout.registry import TypeRegistry
from typelayout.target import WORD, X86_64
from typelayout.types import TypeExpr


def _engine(target=X86_64):
    return LayoutEngine(TypeRegistry(), target)


def test_typedef_is_transparent():
    eng = _engine()
    eng.registry.define("struct s", [("c", TypeExpr("char")), ("d", TypeExpr("double"))])
    eng.registry.typedef("s_t", TypeExpr("struct s"))
    for base in ("int", "char", "double", "struct s"):
        name = base.replace(" ", "_") + "_alias"
        eng.registry.typedef(name, TypeExpr(base))
        assert eng.size_of(name) == eng.size_of(base)
        assert eng.align_of(name) == eng.align_of(base)
    assert eng.layout("s_t").field_offsets == {"c": 0, "d": 8}


def test_array_typedef():
    # typedef int baz[3];
    for target, expected in ((X86_64, 12), (WORD, 3)):
        eng = _engine(target)
        eng.registry.typedef("baz", TypeExpr("int", 0, (3,)))
        assert eng.size_of("baz") == expected


def test_array_of_typedef_array():
    eng = _engine()
    eng.registry.typedef("row", TypeExpr("int", 0, (3,)))
    assert eng.size_of(TypeExpr("row", 0, (2,))) == 24
    assert eng.size_of(TypeExpr("row", 1)) == 8


def test_typedef_chain_through_pointer():
    eng = _engine()
    eng.registry.typedef("a_t", TypeExpr("int"))
    eng.registry.typedef("b_t", TypeExpr("a_t", 1))
    eng.registry.typedef("c_t", TypeExpr("b_t", 0, (4,)))
    assert eng.size_of("c_t") == 32


def test_typedef_to_incomplete_struct_completes_later():
    eng = _engine()
    eng.registry.declare("struct later")
    eng.registry.typedef("later_t", TypeExpr("struct later"))
    assert not eng.is_complete("later_t")
    eng.registry.define("struct later", [("x", TypeExpr("long"))])
    assert eng.size_of("later_t") == 8


def test_field_offset_through_typedef():
    eng = _engine()
    eng.registry.define("struct s", [("c", TypeExpr("char")), ("i", TypeExpr("int"))])
    eng.registry.typedef("s_t", TypeExpr("struct s"))
    assert eng.field_offset("s_t", "i") == 4


def test_cyclic_alias_layout():
    eng = _engine()
    eng.registry.typedef("a_t", TypeExpr("b_t"))
    eng.registry.typedef("b_t", TypeExpr("a_t"))
    with pytest.raises(LayoutError) as ei:
        eng.size_of("a_t")
    assert ei.value.kind is LayoutErrorKind.CYCLIC_TYPEDEF


def test_cyclic_alias_through_arrays():
    eng = _engine()
    eng.registry.typedef("a_t", TypeExpr("b_t", 0, (2,)))
    eng.registry.typedef("b_t", TypeExpr("a_t", 0, (2,)))
    with pytest.raises(LayoutError) as ei:
        eng.size_of("b_t")
    assert ei.value.kind is LayoutErrorKind.CYCLIC_TYPEDEF


def test_alias_cycle_through_pointer_is_fine():
    eng = _engine()
    eng.registry.typedef("a_t", TypeExpr("b_t", 1))
    eng.registry.typedef("b_t", TypeExpr("a_t", 1))
    assert eng.size_of("a_t") == 8
    assert eng.size_of("b_t") == 8


def test_long_typedef_chain():
    eng = _engine()
    eng.registry.typedef("t0", TypeExpr("int"))
    for i in range(1, 600):
        eng.registry.typedef(f"t{i}", TypeExpr(f"t{i - 1}"))
    assert eng.size_of("t599") == 4
    assert eng.align_of(TypeExpr("t599", 0, (2,))) == 4


def test_long_array_typedef_chain():
    eng = _engine()
    eng.registry.typedef("a0", TypeExpr("char"))
    for i in range(1, 1000):
        eng.registry.typedef(f"a{i}", TypeExpr(f"a{i - 1}", 0, (1,)))
    assert eng.size_of("a999") == 1
