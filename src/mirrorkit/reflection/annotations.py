"""Immutable declaration metadata with structural, value-aware equality.

Annotations are plain frozen dataclasses deriving from :class:`Annotation`.
An instance attaches itself when called on a class, function, classmethod,
staticmethod or property::

    @annotation
    class Route(Annotation):
        path: str
        methods: tuple[str, ...] = ("GET",)

    @Route("/users")
    class UserController: ...

Storage is strictly per declaration: a subclass does not see the annotations
of its bases unless :func:`mirrorkit.reflection.utils.get_inherited_annotations`
is used. Field and parameter annotations are read from ``typing.Annotated``
metadata instead.
"""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Mapping, Set
from typing import TYPE_CHECKING, Any, Final, TypeVar, overload

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

A = TypeVar("A", bound="Annotation")
T = TypeVar("T")

ANNOTATIONS_ATTR: Final[str] = "__mirrorkit_annotations__"

_NAN_HASH: Final[int] = hash(("mirrorkit.nan",))


class Annotation:
    """Base class for metadata attached to declarations.

    Equality requires the same runtime type and pairwise-equal member values
    under :func:`values_equal`. Hashing accumulates :func:`value_hash` over the
    same members so equal annotations always share a hash.
    """

    __slots__ = ()

    def __call__(self, target: T) -> T:
        attach_annotation(target, self)
        return target

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Annotation):
            return NotImplemented
        if type(self) is not type(other):
            return False
        mine = annotation_values(self)
        theirs = annotation_values(other)
        if mine.keys() != theirs.keys():
            return False
        return all(values_equal(mine[key], theirs[key]) for key in mine)

    def __hash__(self) -> int:
        accumulated = hash(type(self))
        for key, value in annotation_values(self).items():
            accumulated = hash((accumulated, key, value_hash(value)))
        return accumulated

    def __repr__(self) -> str:
        rendered = ", ".join(f"{key}={value!r}" for key, value in annotation_values(self).items())
        return f"@{type(self).__name__}({rendered})"


@overload
def annotation(cls: type[A], /) -> type[A]: ...


@overload
def annotation(
    cls: None = None, /, **dataclass_options: Any
) -> Callable[[type[A]], type[A]]: ...


def annotation(
    cls: type[A] | None = None, /, **dataclass_options: Any
) -> type[A] | Callable[[type[A]], type[A]]:
    """Turn an :class:`Annotation` subclass into a frozen dataclass.

    ``eq`` is always disabled so the value-aware ``__eq__``/``__hash__`` of the
    base class stay in effect; ``repr`` defaults to the base class rendering.
    """

    def wrap(target: type[A]) -> type[A]:
        if not (isinstance(target, type) and issubclass(target, Annotation)):
            raise TypeError(f"@annotation requires an Annotation subclass, got {target!r}")
        options = {"repr": False, **dataclass_options, "frozen": True, "eq": False}
        return dataclasses.dataclass(**options)(target)

    if cls is None:
        return wrap
    return wrap(cls)


def annotation_values(instance: Annotation) -> dict[str, Any]:
    """Return the member values of ``instance`` in declaration order."""

    if dataclasses.is_dataclass(instance):
        return {item.name: getattr(instance, item.name) for item in dataclasses.fields(instance)}
    state = getattr(instance, "__dict__", {})
    return {key: state[key] for key in sorted(state) if not key.startswith("_")}


def values_equal(left: object, right: object) -> bool:
    """Compare member values by value, treating ``NaN == NaN`` and ``0.0 != -0.0``."""

    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    if _is_number(left) and _is_number(right):
        return _numbers_equal(left, right)  # type: ignore[arg-type]
    if isinstance(left, Annotation) or isinstance(right, Annotation):
        return left == right
    if isinstance(left, (str, bytes)) or isinstance(right, (str, bytes)):
        return type(left) is type(right) and left == right
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        return _mappings_equal(left, right)
    if isinstance(left, Set) and isinstance(right, Set):
        return _sets_equal(left, right)
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        if len(left) != len(right):
            return False
        return all(values_equal(a, b) for a, b in zip(left, right, strict=True))
    return bool(left == right)


def value_hash(value: object) -> int:
    """Hash consistent with :func:`values_equal`."""

    if isinstance(value, bool):
        return hash(("bool", value))
    if _is_number(value):
        if isinstance(value, float) and math.isnan(value):
            return _NAN_HASH
        if value == 0:
            return hash(("zero", math.copysign(1.0, value)))  # type: ignore[arg-type]
        return hash(value)
    if isinstance(value, (str, bytes, Annotation)):
        return hash(value)
    if isinstance(value, Mapping):
        return hash(("map", frozenset((value_hash(k), value_hash(v)) for k, v in value.items())))
    if isinstance(value, Set):
        return hash(("set", frozenset(value_hash(item) for item in value)))
    if isinstance(value, (list, tuple)):
        return hash(("seq", tuple(value_hash(item) for item in value)))
    try:
        return hash(value)
    except TypeError:
        return hash(type(value).__qualname__)


def attach_annotation(target: object, instance: Annotation) -> None:
    """Record ``instance`` on ``target`` without touching its bases."""

    holder = _unwrap_declaration(target)
    existing = declared_annotations(holder)
    # Decorators apply bottom-up; prepending keeps source order.
    updated = (instance, *existing)
    try:
        setattr(holder, ANNOTATIONS_ATTR, updated)
    except (AttributeError, TypeError) as exc:
        raise TypeError(f"cannot annotate {target!r}: {exc}") from exc


def declared_annotations(target: object) -> tuple[Annotation, ...]:
    """Return annotations declared directly on ``target`` (never inherited)."""

    holder = _unwrap_declaration(target)
    namespace = getattr(holder, "__dict__", None)
    if not isinstance(namespace, Mapping):
        return ()
    stored = namespace.get(ANNOTATIONS_ATTR, ())
    return tuple(item for item in stored if isinstance(item, Annotation))


def annotations_from_metadata(metadata: Iterable[object]) -> tuple[Annotation, ...]:
    """Pick annotation instances out of ``typing.Annotated`` metadata."""

    return tuple(item for item in metadata if isinstance(item, Annotation))


def find_annotation(annotations: Iterable[Annotation], kind: type[A]) -> A | None:
    for item in annotations:
        if type(item) is kind:
            return item  # type: ignore[return-value]
    return None


def find_annotations_by_type(annotations: Iterable[Annotation], kind: type[A]) -> list[A]:
    return [item for item in annotations if type(item) is kind]  # type: ignore[misc]


def _unwrap_declaration(target: object) -> object:
    if isinstance(target, (classmethod, staticmethod)):
        return target.__func__
    if isinstance(target, property):
        return target.fget
    return target


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _numbers_equal(left: float, right: float) -> bool:
    left_nan = isinstance(left, float) and math.isnan(left)
    right_nan = isinstance(right, float) and math.isnan(right)
    if left_nan or right_nan:
        return left_nan and right_nan
    if left != right:
        return False
    if left == 0:
        return math.copysign(1.0, left) == math.copysign(1.0, right)
    return True


def _mappings_equal(left: Mapping[Any, Any], right: Mapping[Any, Any]) -> bool:
    if len(left) != len(right):
        return False
    # Keys match under values_equal, so 0.0 and -0.0 stay distinct keys.
    remaining = list(right.items())
    for key, value in left.items():
        for index, (other_key, other_value) in enumerate(remaining):
            if values_equal(key, other_key):
                if not values_equal(value, other_value):
                    return False
                del remaining[index]
                break
        else:
            return False
    return True


def _sets_equal(left: Set[Any], right: Set[Any]) -> bool:
    if len(left) != len(right):
        return False
    remaining = list(right)
    for item in left:
        for index, candidate in enumerate(remaining):
            if values_equal(item, candidate):
                del remaining[index]
                break
        else:
            return False
    return True


__all__ = [
    "ANNOTATIONS_ATTR",
    "Annotation",
    "annotation",
    "annotation_values",
    "annotations_from_metadata",
    "attach_annotation",
    "declared_annotations",
    "find_annotation",
    "find_annotations_by_type",
    "value_hash",
    "values_equal",
]
