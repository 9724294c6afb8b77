"""Reflection helpers that walk hierarchies or encode types."""

from __future__ import annotations

import collections
import collections.abc
import typing
from typing import TYPE_CHECKING, Any, Final, TypeVar

from mirrorkit.reflection.annotations import Annotation, declared_annotations
from mirrorkit.reflection.mirrors import ClassMirror

if TYPE_CHECKING:
    from mirrorkit.reflection.mirrors import FieldMirror, MethodMirror

A = TypeVar("A", bound=Annotation)

OBJECT_DESCRIPTOR: Final[str] = "Ljava/lang/Object;"

_PRIMITIVE_DESCRIPTORS: Final[dict[type, str]] = {
    bool: "Z",
    int: "I",
    float: "D",
    str: "Ljava/lang/String;",
    type(None): "V",
}

_ARRAY_BASES: Final[tuple[type, ...]] = (
    list,
    tuple,
    set,
    frozenset,
    collections.deque,
    collections.abc.Sequence,
    collections.abc.Set,
)
_NON_ARRAY_SEQUENCES: Final[tuple[type, ...]] = (str, bytes, bytearray, memoryview, range)


def get_inherited_annotations(cls: type, kind: type[A] | None = None) -> list[Annotation]:
    """Collect annotations from ``cls`` and then each superclass, nearest first.

    Only the superclass chain is walked (first non-marker base at each step),
    matching the single-inheritance view exposed by ``ClassMirror.superclass``.
    """

    collected: list[Annotation] = []
    mirror: ClassMirror | None = ClassMirror(cls)
    while mirror is not None:
        for item in declared_annotations(mirror.origin):
            if kind is None or type(item) is kind:
                collected.append(item)
        mirror = mirror.superclass
    return collected


def find_methods_annotated_with(cls: type, kind: type[Annotation]) -> list[MethodMirror]:
    return [m for m in ClassMirror(cls).get_methods().values() if m.has_annotation(kind)]


def find_fields_annotated_with(cls: type, kind: type[Annotation]) -> list[FieldMirror]:
    return [f for f in ClassMirror(cls).get_fields().values() if f.has_annotation(kind)]


def is_array_type(reflected: object) -> bool:
    origin = typing.get_origin(reflected) or reflected
    if not isinstance(origin, type):
        return False
    if issubclass(origin, _NON_ARRAY_SEQUENCES):
        return False
    return issubclass(origin, _ARRAY_BASES)


def component_type(reflected: object) -> Any | None:
    """Element type of an array-like type, or ``None`` when it is unknown or mixed."""

    if not is_array_type(reflected):
        return None
    args = typing.get_args(reflected)
    if len(args) == 1:
        return args[0]
    if len(args) == 2 and args[1] is Ellipsis:
        return args[0]
    return None


def type_descriptor(reflected: object) -> str:
    """Encode a type as a JVM-style descriptor string.

    ``bool`` -> ``Z``, ``int`` -> ``I``, ``float`` -> ``D``, ``str`` ->
    ``Ljava/lang/String;``, ``None`` -> ``V``; array-like types are ``[``
    followed by the component descriptor; anything else is
    ``L<module/path/QualName>;``.
    """

    if reflected is None or reflected is Any:
        return "V" if reflected is None else OBJECT_DESCRIPTOR
    if typing.get_origin(reflected) is typing.Annotated:
        reflected = reflected.__origin__  # type: ignore[attr-defined]
    origin = typing.get_origin(reflected) or reflected
    if not isinstance(origin, type):
        return OBJECT_DESCRIPTOR
    # bool before int: bool is an int subclass.
    for primitive, code in _PRIMITIVE_DESCRIPTORS.items():
        if origin is primitive:
            return code
    if is_array_type(reflected):
        component = component_type(reflected)
        if component is None:
            return "[" + OBJECT_DESCRIPTOR
        return "[" + type_descriptor(component)
    qualified = f"{origin.__module__}.{origin.__qualname__}"
    return "L" + qualified.replace(".", "/") + ";"


__all__ = [
    "OBJECT_DESCRIPTOR",
    "component_type",
    "find_fields_annotated_with",
    "find_methods_annotated_with",
    "get_inherited_annotations",
    "is_array_type",
    "type_descriptor",
]
