"""
mirrorkit — the ``Class`` facade.

File: src/mirrorkit/reflection/klass.py
Last updated: 2026-10-18

Purpose
- Present one object per runtime type that unifies the mirror layer:
  construction, hierarchy navigation, member access, generic type arguments
  and descriptor strings.

Functional requirements
- ``new_instance``, ``new_instance_named`` and ``new_instance_with_fields``
  refuse abstract classes and report missing constructors or fields with
  typed errors.
- Type arguments drop ``Any``, ``None`` and unbound type variables.
- Equality and hashing follow the mirrored type handle, never ``T``.
"""

from __future__ import annotations

import abc
import typing
from typing import TYPE_CHECKING, Any, Final, Generic, TypeVar

from mirrorkit.reflection.exceptions import (
    AbstractClassInstantiationError,
    ClassInstantiationError,
    IllegalAccessError,
    IllegalArgumentTypeError,
    NoSuchFieldError,
    ReflectionError,
)
from mirrorkit.reflection.mirrors import DEFAULT_CONSTRUCTOR, ClassMirror, reflect_class
from mirrorkit.reflection.utils import component_type, is_array_type, type_descriptor

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from mirrorkit.loader.class_loader import ClassLoader
    from mirrorkit.reflection.annotations import Annotation
    from mirrorkit.reflection.mirrors import ConstructorMirror, FieldMirror, MethodMirror

T = TypeVar("T")
A = TypeVar("A", bound="Annotation")

_MAP_KEYS: Final[tuple[str, str]] = ("K", "V")


class Class(abc.ABC, Generic[T]):
    """Runtime handle for a type.

    Instances are cheap to create and compare by the underlying type handle, so
    two ``Class`` objects reached through different paths for the same type are
    equal.
    """

    @property
    @abc.abstractmethod
    def mirror(self) -> ClassMirror:
        """Mirror backing this class."""

    @abc.abstractmethod
    def get_loader(self) -> ClassLoader | None:
        """Loader that produced this class, when it came from a loader."""

    # factories

    @staticmethod
    def of(reflected: type[T] | Any, *, loader: ClassLoader | None = None) -> Class[T]:
        return RuntimeClass(ClassMirror(reflected), loader=loader)

    @staticmethod
    def for_object(instance: T) -> Class[T]:
        return RuntimeClass(reflect_class(instance))

    @staticmethod
    async def for_name(name: str, loader: ClassLoader | None = None) -> Class[Any]:
        if loader is None:
            from mirrorkit.loader.system import get_system_class_loader

            loader = get_system_class_loader()
        return await loader.load_class(name)

    # naming and flags

    @property
    def simple_name(self) -> str:
        return self.mirror.simple_name

    @property
    def qualified_name(self) -> str:
        return self.mirror.qualified_name

    @property
    def reflected_type(self) -> Any:
        return self.mirror.reflected_type

    @property
    def origin(self) -> type:
        return self.mirror.origin

    @property
    def is_abstract(self) -> bool:
        return self.mirror.is_abstract

    @property
    def is_interface(self) -> bool:
        return self.mirror.is_interface

    @property
    def is_enum(self) -> bool:
        return self.mirror.is_enum

    @property
    def is_private(self) -> bool:
        return self.mirror.is_private

    @property
    def is_generic(self) -> bool:
        return self.mirror.is_generic

    # instantiation

    def new_instance(
        self, args: Sequence[object] = (), named: Mapping[str, object] | None = None
    ) -> T:
        """Construct through the default constructor."""

        return self.new_instance_named(DEFAULT_CONSTRUCTOR, args, named)

    def new_instance_named(
        self,
        name: str,
        args: Sequence[object] = (),
        named: Mapping[str, object] | None = None,
    ) -> T:
        """Construct through a named factory constructor (``""`` is the default one)."""

        self._require_concrete()
        ctor = self.mirror.get_constructor(name)
        return _invoke_constructor(self.qualified_name, ctor, tuple(args), dict(named or {}))

    def new_instance_with_fields(self, fields: Mapping[str, object]) -> T:
        """Create an instance without running any constructor, then assign ``fields``."""

        self._require_concrete()
        known = self.mirror.get_fields()
        for name in fields:
            mirror = known.get(name)
            if mirror is None:
                raise NoSuchFieldError(name, self.qualified_name)
            if mirror.is_static:
                raise IllegalAccessError(f"{self.qualified_name}.{name} is a static field")
        origin = self.mirror.origin
        try:
            instance = origin.__new__(origin)
        except TypeError as exc:
            raise ClassInstantiationError(self.qualified_name, str(exc)) from exc
        for name, value in fields.items():
            object.__setattr__(instance, name, value)
        return typing.cast("T", instance)

    def _require_concrete(self) -> None:
        if self.mirror.is_abstract:
            raise AbstractClassInstantiationError(self.qualified_name)

    # generics

    def get_type_arguments(self) -> list[Class[Any]]:
        resolved: list[Class[Any]] = []
        for argument in self.mirror.type_arguments:
            if _is_bottom_type(argument):
                continue
            try:
                resolved.append(RuntimeClass(ClassMirror(argument)))
            except IllegalArgumentTypeError:
                continue
        return resolved

    def get_type_arguments_as_map(self) -> dict[str, Class[Any]]:
        """Name type arguments by convention: ``K``/``V`` for two, ``T`` for one."""

        arguments = self.get_type_arguments()
        if len(arguments) == 2:
            return dict(zip(_MAP_KEYS, arguments, strict=True))
        if len(arguments) == 1:
            return {"T": arguments[0]}
        return {f"T{index}": argument for index, argument in enumerate(arguments)}

    def is_array(self) -> bool:
        return is_array_type(self.mirror.reflected_type)

    def get_component_type(self) -> Class[Any] | None:
        component = component_type(self.mirror.reflected_type)
        if component is None or _is_bottom_type(component):
            return None
        try:
            return RuntimeClass(ClassMirror(component))
        except IllegalArgumentTypeError:
            return None

    def descriptor_string(self) -> str:
        return type_descriptor(self.mirror.reflected_type)

    def get_enum_values(self) -> list[T]:
        if not self.is_enum:
            return []
        return list(self.mirror.origin)  # type: ignore[call-overload]

    # hierarchy

    def get_superclass(self) -> Class[Any] | None:
        parent = self.mirror.superclass
        return None if parent is None else RuntimeClass(parent)

    def get_interfaces(self) -> list[Class[Any]]:
        return [RuntimeClass(item) for item in self.mirror.superinterfaces]

    def is_subclass_of(self, other: Class[Any] | type) -> bool:
        return self.mirror.is_subclass_of(_mirror_or_type(other))

    def is_assignable_from(self, other: Class[Any] | type) -> bool:
        return self.mirror.is_assignable_from(_mirror_or_type(other))

    def is_instance(self, instance: object) -> bool:
        return self.mirror.is_instance(instance)

    def cast(self, instance: object) -> T:
        if not self.is_instance(instance):
            raise IllegalArgumentTypeError(
                f"cannot cast {type(instance).__qualname__} to {self.qualified_name}"
            )
        return typing.cast("T", instance)

    # members

    def get_methods(self) -> Mapping[str, MethodMirror]:
        return self.mirror.get_methods()

    def get_declared_methods(self) -> Mapping[str, MethodMirror]:
        return self.mirror.get_declared_methods()

    def get_method(self, name: str) -> MethodMirror:
        return self.mirror.get_method(name)

    def get_fields(self) -> Mapping[str, FieldMirror]:
        return self.mirror.get_fields()

    def get_declared_fields(self) -> Mapping[str, FieldMirror]:
        return self.mirror.get_declared_fields()

    def get_field(self, name: str) -> FieldMirror:
        return self.mirror.get_field(name)

    def get_constructors(self) -> Mapping[str, ConstructorMirror]:
        return self.mirror.get_constructors()

    def get_constructor(self, name: str = DEFAULT_CONSTRUCTOR) -> ConstructorMirror:
        return self.mirror.get_constructor(name)

    def get_annotations(self) -> tuple[Annotation, ...]:
        return self.mirror.get_annotations()

    def get_annotation(self, kind: type[A]) -> A | None:
        return self.mirror.get_annotation(kind)

    def get_annotations_by_type(self, kind: type[A]) -> list[A]:
        return self.mirror.get_annotations_by_type(kind)

    def has_annotation(self, kind: type[Annotation]) -> bool:
        return self.mirror.has_annotation(kind)

    def clear_cache(self) -> None:
        self.mirror.clear_cache()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Class):
            return NotImplemented
        return self.mirror == other.mirror

    def __hash__(self) -> int:
        return hash(self.mirror)

    def __repr__(self) -> str:
        return f"Class<{self.qualified_name}>"


class RuntimeClass(Class[T]):
    """``Class`` backed directly by a live :class:`ClassMirror`."""

    __slots__ = ("_loader", "_mirror")

    def __init__(self, mirror: ClassMirror, *, loader: ClassLoader | None = None) -> None:
        self._mirror = mirror
        self._loader = loader

    @property
    def mirror(self) -> ClassMirror:
        return self._mirror

    def get_loader(self) -> ClassLoader | None:
        return self._loader


def _invoke_constructor(
    class_name: str,
    ctor: ConstructorMirror,
    args: tuple[object, ...],
    named: dict[str, object],
) -> Any:
    try:
        ctor.bind(*args, **named)
    except TypeError as exc:
        raise ClassInstantiationError(class_name, f"argument mismatch: {exc}") from exc
    try:
        return ctor.new_instance(*args, **named)
    except ReflectionError:
        raise
    except Exception as exc:
        raise ClassInstantiationError(class_name, f"{type(exc).__name__}: {exc}") from exc


def _is_bottom_type(argument: object) -> bool:
    return (
        argument is Any
        or argument is None
        or argument is type(None)
        or argument is Ellipsis
        or isinstance(argument, TypeVar)
    )


def _mirror_or_type(other: Class[Any] | type) -> ClassMirror | type:
    if isinstance(other, Class):
        return other.mirror
    return other


__all__ = ["Class", "RuntimeClass"]
