import pytest

from typelayout.errors import LayoutError, LayoutErrorKind
from typelayout.layout import LayoutEngine
from typelayout.registry import TypeRegistry
from typelayout.target import X86_64
from typelayout.types import TypeExpr


def _engine():
    eng = LayoutEngine(TypeRegistry(), X86_64)
    eng.registry.declare("struct incomplete")
    return eng


def _fails_incomplete(eng, ty) -> LayoutError:
    with pytest.raises(LayoutError) as ei:
        eng.size_of(ty)
    assert ei.value.kind is LayoutErrorKind.INCOMPLETE_TYPE
    return ei.value


def test_incomplete_by_value():
    eng = _engine()
    err = _fails_incomplete(eng, "struct incomplete")
    assert err.name == "struct incomplete"


def test_incomplete_through_pointer():
    eng = _engine()
    assert eng.size_of(TypeExpr("struct incomplete", 1)) == 8
    assert eng.is_complete(TypeExpr("struct incomplete", 1))


def test_array_of_incomplete():
    eng = _engine()
    _fails_incomplete(eng, TypeExpr("struct incomplete", 0, (4,)))
    _fails_incomplete(eng, TypeExpr("void", 0, (4,)))
    # an array of pointers to it is fine
    assert eng.size_of(TypeExpr("struct incomplete", 1, (4,))) == 32


def test_completeness_is_transitive():
    eng = _engine()
    eng.registry.define("struct mid", [("x", TypeExpr("struct incomplete"))])
    eng.registry.define("struct top", [("a", TypeExpr("int")), ("m", TypeExpr("struct mid"))])
    err = _fails_incomplete(eng, "struct top")
    assert err.field == "x"
    assert "struct mid" in str(err)
    assert eng.size_of(TypeExpr("struct top", 1)) == 8


def test_failed_layout_is_not_cached():
    eng = _engine()
    eng.registry.define("struct user", [("p", TypeExpr("struct incomplete"))])
    _fails_incomplete(eng, "struct user")
    eng.registry.define("struct incomplete", [("v", TypeExpr("short", 0, (3,)))])
    res = eng.layout("struct user")
    assert (res.size, res.align) == (6, 2)


def test_layout_is_memoized():
    eng = _engine()
    eng.registry.define("struct s", [("a", TypeExpr("int"))])
    first = eng.layout("struct s")
    assert eng.layout("struct s") is first


def test_withdrawn_definition_invalidates_layouts():
    eng = _engine()
    eng.registry.define("struct s", [("a", TypeExpr("int"))])
    eng.registry.define("struct outer", [("c", TypeExpr("char")), ("s", TypeExpr("struct s"))])
    assert eng.size_of("struct s") == 4
    assert eng.size_of("struct outer") == 8
    eng.registry.undefine("struct s")
    _fails_incomplete(eng, "struct s")
    err = _fails_incomplete(eng, "struct outer")
    assert err.field == "s"
    eng.registry.define("struct s", [("a", TypeExpr("long"))])
    assert eng.size_of("struct s") == 8
    assert eng.layout("struct outer").field_offsets == {"c": 0, "s": 8}
    assert eng.size_of("struct outer") == 16


def test_deep_nesting_ending_in_incomplete():
    eng = _engine()
    prev = "struct incomplete"
    for i in range(800):
        eng.registry.define(f"struct n{i}", [("inner", TypeExpr(prev))])
        prev = f"struct n{i}"
    err = _fails_incomplete(eng, prev)
    assert err.name == "struct incomplete"
    assert err.field == "inner"
    assert not eng.is_complete("struct n0")
