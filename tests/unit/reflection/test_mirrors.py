"""Member discovery, modifiers and access rules of the mirror layer."""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass
from typing import Annotated, ClassVar, Final

import pytest

from mirrorkit.reflection import (
    DEFAULT_CONSTRUCTOR,
    Annotation,
    ClassMirror,
    IllegalAccessError,
    IllegalArgumentTypeError,
    MethodKind,
    Modifier,
    NoSuchConstructorError,
    NoSuchFieldError,
    NoSuchMethodError,
    annotation,
)


@annotation
class Column(Annotation):
    name: str


class Shape(abc.ABC):
    SIDES: ClassVar[int] = 0
    UNITS: Final = "cm"

    @abc.abstractmethod
    def area(self) -> float: ...

    def describe(self) -> str:
        return f"{type(self).__name__} with area {self.area()}"


@dataclass
class Rect(Shape):
    width: Annotated[float, Column("w")]
    height: float = 1.0
    _cache: int = 0

    def area(self) -> float:
        return self.width * self.height

    @property
    def is_square(self) -> bool:
        return self.width == self.height

    @staticmethod
    def unit() -> str:
        return "cm"

    @classmethod
    def square(cls, side: float) -> Rect:
        return cls(side, side)

    def _internal(self) -> None:
        return None


@dataclass(frozen=True)
class FrozenPoint:
    x: int
    y: int = 0


class Color(enum.Enum):
    RED = 1
    GREEN = 2


def test_declared_methods_cover_every_kind() -> None:
    methods = ClassMirror(Rect).get_declared_methods()

    assert methods["area"].kind is MethodKind.INSTANCE
    assert methods["is_square"].kind is MethodKind.PROPERTY
    assert methods["unit"].kind is MethodKind.STATIC
    assert methods["square"].kind is MethodKind.CLASS
    assert methods["_internal"].is_private
    assert "describe" not in methods


def test_properties_report_getter_and_setter() -> None:
    class Thermostat:
        def __init__(self) -> None:
            self._target = 20.0

        @property
        def target(self) -> float:
            return self._target

        @target.setter
        def target(self, value: float) -> None:
            self._target = value

        @property
        def reading(self) -> float:
            return 19.5

    methods = ClassMirror(Thermostat).get_declared_methods()

    assert methods["target"].is_getter and methods["target"].is_setter
    assert methods["reading"].is_getter and not methods["reading"].is_setter
    assert "__init__" not in methods


def test_inherited_methods_prefer_the_most_derived_declaration() -> None:
    methods = ClassMirror(Rect).get_methods()

    assert methods["describe"].owner is Shape
    assert methods["area"].owner is Rect
    assert not methods["area"].is_abstract
    assert ClassMirror(Shape).get_method("area").is_abstract


def test_method_parameters_and_return_type() -> None:
    square = ClassMirror(Rect).get_method("square")

    assert [param.name for param in square.parameters] == ["side"]
    assert square.parameters[0].type is float
    assert square.return_type is Rect
    assert Modifier.STATIC in square.modifiers


def test_method_invoke_checks_the_receiver() -> None:
    area = ClassMirror(Rect).get_method("area")

    assert area.invoke(Rect(2.0, 3.0)) == 6.0
    assert ClassMirror(Rect).get_method("unit").invoke(None) == "cm"
    with pytest.raises(IllegalArgumentTypeError):
        area.invoke(object())


def test_fields_report_types_modifiers_and_metadata() -> None:
    fields = ClassMirror(Rect).get_fields()

    width = fields["width"]
    assert width.type is float
    assert width.get_annotation(Column) == Column("w")
    assert fields["height"].default == 1.0
    assert fields["_cache"].is_private
    assert fields["UNITS"].is_const and fields["UNITS"].is_static
    assert fields["UNITS"].owner is Shape
    assert fields["SIDES"].owner is Shape
    assert fields["SIDES"].is_static


def test_private_fields_require_set_accessible() -> None:
    rect = Rect(1.0)
    cache = ClassMirror(Rect).get_field("_cache")

    with pytest.raises(IllegalAccessError):
        cache.get(rect)
    cache.set_accessible(True)
    cache.set(rect, 5)
    assert cache.get(rect) == 5


def test_final_fields_reject_writes() -> None:
    x = ClassMirror(FrozenPoint).get_field("x")

    assert x.is_final
    with pytest.raises(IllegalAccessError):
        x.set(FrozenPoint(1), 2)
    with pytest.raises(IllegalAccessError):
        ClassMirror(Rect).get_field("UNITS").set(None, "mm")


def test_enum_members_are_constant_fields() -> None:
    fields = ClassMirror(Color).get_declared_fields()

    assert list(fields) == ["RED", "GREEN"]
    assert fields["RED"].is_const
    assert fields["RED"].get() is Color.RED


def test_constructors_include_default_and_factories() -> None:
    constructors = ClassMirror(Rect).get_constructors()

    assert set(constructors) == {DEFAULT_CONSTRUCTOR, "square"}
    default = constructors[DEFAULT_CONSTRUCTOR]
    assert [param.name for param in default.parameters] == ["width", "height", "_cache"]
    assert default.parameters[0].is_required
    assert default.parameters[1].is_optional
    assert constructors["square"].is_factory


def test_targeted_lookups_raise_typed_errors() -> None:
    mirror = ClassMirror(Rect)

    with pytest.raises(NoSuchMethodError, match="missing"):
        mirror.get_method("missing")
    with pytest.raises(NoSuchFieldError):
        mirror.get_field("depth")
    with pytest.raises(NoSuchConstructorError):
        mirror.get_constructor("circle")


def test_class_flags_and_hierarchy() -> None:
    shape = ClassMirror(Shape)
    rect = ClassMirror(Rect)

    assert shape.is_abstract and shape.is_interface is False
    assert not rect.is_abstract
    assert rect.superclass == shape
    assert rect.is_subclass_of(Shape)
    assert shape.is_assignable_from(rect)
    assert ClassMirror(Color).is_enum
    assert Modifier.ABSTRACT in shape.modifiers


def test_mirror_rejects_non_classes() -> None:
    with pytest.raises(IllegalArgumentTypeError):
        ClassMirror(42)


def test_mirror_equality_follows_reflected_type() -> None:
    assert ClassMirror(Rect) == ClassMirror(Rect)
    assert ClassMirror(list[int]) != ClassMirror(list[str])
    assert ClassMirror(list[int]).origin is list
    assert hash(ClassMirror(dict[str, int])) == hash(ClassMirror(dict[str, int]))
