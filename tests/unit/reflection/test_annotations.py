"""Value-aware equality and per-declaration storage of annotations."""

from __future__ import annotations

import math

import pytest
from hypothesis import given
from hypothesis import strategies as st

from mirrorkit.reflection import (
    Annotation,
    annotation,
    annotation_values,
    declared_annotations,
    get_inherited_annotations,
    value_hash,
    values_equal,
)
from mirrorkit.reflection.annotations import find_annotation


@annotation
class Tag(Annotation):
    name: str
    weight: float = 1.0


@annotation
class Route(Annotation):
    path: str
    methods: tuple[str, ...] = ("GET",)


@annotation
class Weights(Annotation):
    table: dict[object, str]


@annotation
class Other(Annotation):
    name: str
    weight: float = 1.0


@Route("/users", methods=("GET", "POST"))
@Tag("controller")
class UserController:
    @Tag("handler")
    def index(self) -> None:
        return None


class AdminController(UserController):
    pass


@Tag("admin")
class SuperAdminController(AdminController):
    pass


def test_nan_members_compare_equal() -> None:
    assert Tag("x", math.nan) == Tag("x", math.nan)
    assert hash(Tag("x", math.nan)) == hash(Tag("x", math.nan))


def test_signed_zero_members_are_distinct() -> None:
    assert Tag("x", 0.0) != Tag("x", -0.0)


def test_equality_requires_same_annotation_type() -> None:
    assert Tag("x") != Other("x")
    assert Tag("x") == Tag("x", 1.0)


def test_nested_collections_compare_by_value() -> None:
    assert values_equal({"a": [1.0, math.nan]}, {"a": (1.0, math.nan)})
    assert values_equal({1, 2}, frozenset({2, 1}))
    assert not values_equal([0.0], [-0.0])
    assert not values_equal(True, 1)
    assert not values_equal("a", b"a")


def test_decorators_keep_source_order_and_do_not_inherit() -> None:
    declared = declared_annotations(UserController)

    assert [type(item) for item in declared] == [Route, Tag]
    assert declared_annotations(AdminController) == ()
    assert find_annotation(declared, Route) == Route("/users", ("GET", "POST"))


def test_method_annotations_are_stored_on_the_function() -> None:
    assert declared_annotations(UserController.index) == (Tag("handler"),)


def test_inherited_annotations_walk_nearest_first() -> None:
    names = [item.name for item in get_inherited_annotations(SuperAdminController, Tag)]

    assert names == ["admin", "controller"]


def test_annotation_decorator_rejects_non_annotation_classes() -> None:
    with pytest.raises(TypeError):
        annotation(int)  # type: ignore[type-var]


def test_annotation_values_follow_declaration_order() -> None:
    assert list(annotation_values(Route("/"))) == ["path", "methods"]
    assert repr(Tag("x")) == "@Tag(name='x', weight=1.0)"


_scalars = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(),
    st.floats(allow_nan=True, allow_infinity=True),
    st.text(max_size=5),
)
_keys = st.one_of(
    st.text(max_size=3),
    st.integers(min_value=-2, max_value=2),
    st.sampled_from([0.0, -0.0, 1.5]),
)
_values = st.recursive(
    _scalars,
    lambda children: st.one_of(
        st.lists(children, max_size=3),
        st.dictionaries(_keys, children, max_size=3),
    ),
    max_leaves=10,
)


@given(_values)
def test_values_equal_is_reflexive(value: object) -> None:
    assert values_equal(value, value)


@given(_values, _values)
def test_equal_values_share_a_hash(left: object, right: object) -> None:
    if values_equal(left, right):
        assert value_hash(left) == value_hash(right)


def test_signed_zero_keys_distinguish_mapping_members() -> None:
    positive = Weights({0.0: "a"})
    negative = Weights({-0.0: "a"})

    assert positive != negative
    assert positive == Weights({0: "a"})
    assert hash(positive) == hash(Weights({0: "a"}))
    assert values_equal({-0.0: 1, "k": [math.nan]}, {"k": [math.nan], -0.0: 1})


@given(st.text(max_size=8), st.floats(allow_nan=True))
def test_annotation_equality_matches_hash(name: str, weight: float) -> None:
    first = Tag(name, weight)
    second = Tag(name, weight)

    assert first == second
    assert hash(first) == hash(second)
