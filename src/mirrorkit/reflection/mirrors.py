"""
mirrorkit — declaration mirrors over ``inspect`` and ``typing``.

File: src/mirrorkit/reflection/mirrors.py
Last updated: 2026-10-18

Purpose
- Wrap classes and their members in small, cacheable mirror objects that
  expose names, modifiers, parameters, types and annotations.

What should be included in this file
- ``Modifier`` flags and the five mirror types (class, method, field,
  constructor, parameter).
- Declared vs. inherited member discovery with most-derived-wins merging.
- Tolerant subtype predicates.

Functional requirements
- Targeted lookups raise typed not-found errors naming member and class.
- Bulk lookups degrade to empty mappings when introspection fails.
- Per-instance memoization, reset through ``ClassMirror.clear_cache``.

Non-functional requirements
- No global caches; a mirror owns everything it memoizes.
"""

from __future__ import annotations

import dataclasses
import enum
import functools
import inspect
import logging
import types
import typing
from typing import TYPE_CHECKING, Any, Final, Generic, Protocol, TypeVar

from mirrorkit.reflection.annotations import (
    Annotation,
    annotations_from_metadata,
    declared_annotations,
    find_annotation,
    find_annotations_by_type,
)
from mirrorkit.reflection.exceptions import (
    IllegalAccessError,
    IllegalArgumentTypeError,
    NoSuchConstructorError,
    NoSuchFieldError,
    NoSuchMethodError,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

logger = logging.getLogger(__name__)

A = TypeVar("A", bound=Annotation)

DEFAULT_CONSTRUCTOR: Final[str] = ""

# Base classes contributed by the runtime itself; their members are not part of
# a user type's inherited surface.
_HOST_MODULES: Final[frozenset[str]] = frozenset(
    {"builtins", "typing", "typing_extensions", "abc", "enum", "collections.abc"}
)
_MARKER_BASES: Final[tuple[object, ...]] = (object, Generic, Protocol)
_RUNTIME_ATTRS: Final[frozenset[str]] = frozenset(
    {"_abc_impl", "_is_protocol", "_is_runtime_protocol"}
)


class Modifier(enum.IntFlag):
    """Declaration modifier bits."""

    NONE = 0
    PRIVATE = 0x2
    STATIC = 0x8
    FINAL = 0x10
    ABSTRACT = 0x400
    CONST = 0x1000


class MethodKind(enum.StrEnum):
    INSTANCE = "instance"
    STATIC = "static"
    CLASS = "class"
    PROPERTY = "property"


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "<missing>"


MISSING: Final[_Missing] = _Missing()


@dataclasses.dataclass(frozen=True, slots=True)
class _ResolvedHint:
    type: Any
    metadata: tuple[object, ...] = ()
    is_class_var: bool = False
    is_final: bool = False


@dataclasses.dataclass(frozen=True, slots=True)
class ParameterMirror:
    """One parameter of a method or constructor."""

    name: str
    index: int
    type: Any
    kind: inspect._ParameterKind
    default: object = MISSING
    annotations: tuple[Annotation, ...] = ()

    @property
    def is_var_args(self) -> bool:
        return self.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)

    @property
    def is_named(self) -> bool:
        return self.kind is inspect.Parameter.KEYWORD_ONLY

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    @property
    def is_optional(self) -> bool:
        return self.has_default or self.is_var_args

    @property
    def is_required(self) -> bool:
        return not self.is_optional

    @property
    def default_value(self) -> object:
        return None if self.default is MISSING else self.default

    def get_annotation(self, kind: type[A]) -> A | None:
        return find_annotation(self.annotations, kind)

    def has_annotation(self, kind: type[Annotation]) -> bool:
        return find_annotation(self.annotations, kind) is not None


class MethodMirror:
    """A method, static method, class method or property getter declared on a class."""

    __slots__ = ("_annotations", "_parameters", "function", "kind", "name", "owner", "return_type")

    def __init__(
        self, owner: type, name: str, function: Callable[..., Any], kind: MethodKind
    ) -> None:
        self.owner = owner
        self.name = name
        self.function = function
        self.kind = kind
        skip_first = kind in (MethodKind.INSTANCE, MethodKind.CLASS, MethodKind.PROPERTY)
        self._parameters, self.return_type = _describe_callable(function, skip_first=skip_first)
        self._annotations = declared_annotations(function)

    @property
    def modifiers(self) -> Modifier:
        flags = Modifier.NONE
        if self.kind in (MethodKind.STATIC, MethodKind.CLASS):
            flags |= Modifier.STATIC
        if getattr(self.function, "__isabstractmethod__", False):
            flags |= Modifier.ABSTRACT
        if _is_private_name(self.name):
            flags |= Modifier.PRIVATE
        return flags

    @property
    def is_static(self) -> bool:
        return Modifier.STATIC in self.modifiers

    @property
    def is_abstract(self) -> bool:
        return Modifier.ABSTRACT in self.modifiers

    @property
    def is_private(self) -> bool:
        return Modifier.PRIVATE in self.modifiers

    @property
    def is_getter(self) -> bool:
        return self.kind is MethodKind.PROPERTY

    @property
    def is_setter(self) -> bool:
        """True for a property that also accepts assignment."""

        if self.kind is not MethodKind.PROPERTY:
            return False
        descriptor = inspect.getattr_static(self.owner, self.name, None)
        return isinstance(descriptor, property) and descriptor.fset is not None

    @property
    def parameters(self) -> tuple[ParameterMirror, ...]:
        return self._parameters

    @property
    def annotations(self) -> tuple[Annotation, ...]:
        return self._annotations

    def get_annotation(self, kind: type[A]) -> A | None:
        return find_annotation(self._annotations, kind)

    def get_annotations_by_type(self, kind: type[A]) -> list[A]:
        return find_annotations_by_type(self._annotations, kind)

    def has_annotation(self, kind: type[Annotation]) -> bool:
        return find_annotation(self._annotations, kind) is not None

    def invoke(self, instance: object, *args: Any, **kwargs: Any) -> Any:
        """Call the method; ``instance`` is ignored for static and class methods."""

        if self.kind is MethodKind.STATIC:
            return self.function(*args, **kwargs)
        if self.kind is MethodKind.CLASS:
            return self.function(self.owner, *args, **kwargs)
        if not isinstance(instance, self.owner):
            raise IllegalArgumentTypeError(
                f"{self.owner.__qualname__}.{self.name} requires an instance of "
                f"{self.owner.__qualname__}, got {type(instance).__name__}"
            )
        return self.function(instance, *args, **kwargs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MethodMirror):
            return NotImplemented
        return self.owner is other.owner and self.name == other.name

    def __hash__(self) -> int:
        return hash((MethodMirror, self.owner, self.name))

    def __repr__(self) -> str:
        return f"MethodMirror({self.owner.__qualname__}.{self.name}, kind={self.kind.value})"


class FieldMirror:
    """A field declared through a class annotation, a class attribute or an enum member."""

    def __init__(
        self,
        owner: type,
        name: str,
        *,
        field_type: Any,
        modifiers: Modifier,
        annotations: tuple[Annotation, ...] = (),
        default: object = MISSING,
    ) -> None:
        self.owner = owner
        self.name = name
        self.type = field_type
        self.modifiers = modifiers
        self.annotations = annotations
        self.default = default
        self._accessible = False

    @property
    def is_static(self) -> bool:
        return Modifier.STATIC in self.modifiers

    @property
    def is_final(self) -> bool:
        return Modifier.FINAL in self.modifiers

    @property
    def is_const(self) -> bool:
        return Modifier.CONST in self.modifiers

    @property
    def is_private(self) -> bool:
        return Modifier.PRIVATE in self.modifiers

    @property
    def is_accessible(self) -> bool:
        return self._accessible

    def set_accessible(self, flag: bool) -> None:
        self._accessible = flag

    def can_access(self) -> bool:
        return self._accessible or not self.is_private

    def get(self, instance: object = None) -> Any:
        self._check_access("read")
        if self.is_static:
            return getattr(self.owner, self.name)
        return getattr(self._require_instance(instance), self.name)

    def set(self, instance: object, value: object) -> None:
        self._check_access("write")
        if self.is_final or self.is_const:
            raise IllegalAccessError(
                f"cannot set final field {self.owner.__qualname__}.{self.name}"
            )
        if self.is_static:
            setattr(self.owner, self.name, value)
            return
        setattr(self._require_instance(instance), self.name, value)

    def get_annotation(self, kind: type[A]) -> A | None:
        return find_annotation(self.annotations, kind)

    def get_annotations_by_type(self, kind: type[A]) -> list[A]:
        return find_annotations_by_type(self.annotations, kind)

    def has_annotation(self, kind: type[Annotation]) -> bool:
        return find_annotation(self.annotations, kind) is not None

    def _check_access(self, action: str) -> None:
        if not self.can_access():
            raise IllegalAccessError(
                f"cannot {action} private field {self.owner.__qualname__}.{self.name}; "
                "call set_accessible(True) first"
            )

    def _require_instance(self, instance: object) -> object:
        if not isinstance(instance, self.owner):
            raise IllegalArgumentTypeError(
                f"field {self.owner.__qualname__}.{self.name} requires an instance of "
                f"{self.owner.__qualname__}, got {type(instance).__name__}"
            )
        return instance

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FieldMirror):
            return NotImplemented
        return self.owner is other.owner and self.name == other.name

    def __hash__(self) -> int:
        return hash((FieldMirror, self.owner, self.name))

    def __repr__(self) -> str:
        return f"FieldMirror({self.owner.__qualname__}.{self.name}, modifiers={self.modifiers!r})"


class ConstructorMirror:
    """The default constructor (``__init__``) or a named factory classmethod."""

    def __init__(
        self,
        owner: type,
        name: str,
        *,
        target: Callable[..., Any],
        signature: inspect.Signature | None,
        parameters: tuple[ParameterMirror, ...],
        annotations: tuple[Annotation, ...] = (),
    ) -> None:
        self.owner = owner
        self.name = name
        self.target = target
        self.signature = signature
        self.parameters = parameters
        self.annotations = annotations

    @property
    def is_default(self) -> bool:
        return self.name == DEFAULT_CONSTRUCTOR

    @property
    def is_factory(self) -> bool:
        return not self.is_default

    def bind(self, *args: Any, **kwargs: Any) -> inspect.BoundArguments | None:
        """Check arguments against the signature; raises ``TypeError`` on mismatch."""

        if self.signature is None:
            return None
        return self.signature.bind(*args, **kwargs)

    def new_instance(self, *args: Any, **kwargs: Any) -> Any:
        return self.target(*args, **kwargs)

    def get_annotation(self, kind: type[A]) -> A | None:
        return find_annotation(self.annotations, kind)

    def has_annotation(self, kind: type[Annotation]) -> bool:
        return find_annotation(self.annotations, kind) is not None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConstructorMirror):
            return NotImplemented
        return self.owner is other.owner and self.name == other.name

    def __hash__(self) -> int:
        return hash((ConstructorMirror, self.owner, self.name))

    def __repr__(self) -> str:
        label = self.name or "<default>"
        return f"ConstructorMirror({self.owner.__qualname__}.{label})"


class ClassMirror:
    """Reflective view of one class or parameterized generic alias."""

    def __init__(self, reflected: object) -> None:
        if reflected is None:
            reflected = type(None)
        if typing.get_origin(reflected) is typing.Annotated:
            reflected = reflected.__origin__  # type: ignore[attr-defined]
        origin = typing.get_origin(reflected) or reflected
        if not isinstance(origin, type):
            raise IllegalArgumentTypeError(f"not a class: {reflected!r}")
        self.reflected_type: Any = reflected
        self.origin: type = origin
        self._cache: dict[str, Any] = {}

    # names and flags

    @property
    def simple_name(self) -> str:
        return self.origin.__name__

    @property
    def qualified_name(self) -> str:
        return f"{self.origin.__module__}.{self.origin.__qualname__}"

    @property
    def module_name(self) -> str:
        return self.origin.__module__

    @property
    def type_arguments(self) -> tuple[Any, ...]:
        if self.reflected_type is self.origin:
            return ()
        return typing.get_args(self.reflected_type)

    @property
    def is_generic(self) -> bool:
        return bool(self.type_arguments) or bool(getattr(self.origin, "__parameters__", ()))

    @property
    def is_abstract(self) -> bool:
        return inspect.isabstract(self.origin) or _is_protocol(self.origin)

    @property
    def is_interface(self) -> bool:
        if _is_protocol(self.origin):
            return True
        if not inspect.isabstract(self.origin):
            return False
        public = [m for m in self.get_declared_methods().values() if not m.is_private]
        return bool(public) and all(m.is_abstract for m in public)

    @property
    def is_enum(self) -> bool:
        return issubclass(self.origin, enum.Enum)

    @property
    def is_private(self) -> bool:
        return _is_private_name(self.simple_name)

    @property
    def modifiers(self) -> Modifier:
        flags = Modifier.NONE
        if self.is_abstract:
            flags |= Modifier.ABSTRACT
        if self.is_private:
            flags |= Modifier.PRIVATE
        return flags

    # hierarchy

    @property
    def superclass(self) -> ClassMirror | None:
        bases = self._bases()
        return ClassMirror(bases[0]) if bases else None

    @property
    def superinterfaces(self) -> tuple[ClassMirror, ...]:
        return tuple(ClassMirror(base) for base in self._bases()[1:])

    def _bases(self) -> list[Any]:
        def compute() -> list[Any]:
            raw = self.origin.__dict__.get("__orig_bases__", self.origin.__bases__)
            kept: list[Any] = []
            for base in raw:
                base_origin = typing.get_origin(base) or base
                if any(base_origin is marker for marker in _MARKER_BASES):
                    continue
                if isinstance(base_origin, type):
                    kept.append(base)
            return kept

        return self._memo("bases", compute)

    def is_subclass_of(self, other: ClassMirror | type) -> bool:
        try:
            return issubclass(self.origin, _origin_of(other))
        except TypeError:
            return False

    def is_assignable_from(self, other: ClassMirror | type) -> bool:
        try:
            return issubclass(_origin_of(other), self.origin)
        except TypeError:
            return False

    def is_instance(self, instance: object) -> bool:
        try:
            return isinstance(instance, self.origin)
        except TypeError:
            return False

    # annotations

    def get_annotations(self) -> tuple[Annotation, ...]:
        return self._memo("annotations", lambda: declared_annotations(self.origin), default=())

    def get_annotation(self, kind: type[A]) -> A | None:
        return find_annotation(self.get_annotations(), kind)

    def get_annotations_by_type(self, kind: type[A]) -> list[A]:
        return find_annotations_by_type(self.get_annotations(), kind)

    def has_annotation(self, kind: type[Annotation]) -> bool:
        return find_annotation(self.get_annotations(), kind) is not None

    # methods

    def get_declared_methods(self) -> Mapping[str, MethodMirror]:
        return self._memo("declared_methods", lambda: _declared_methods(self.origin), default={})

    def get_methods(self) -> Mapping[str, MethodMirror]:
        def compute() -> dict[str, MethodMirror]:
            merged = dict(self.get_declared_methods())
            for base in self._inherited_types():
                for name, method in _declared_methods(base).items():
                    merged.setdefault(name, method)
            return merged

        return self._memo("methods", compute, default={})

    def get_method(self, name: str) -> MethodMirror:
        method = self.get_methods().get(name)
        if method is None:
            raise NoSuchMethodError(name, self.qualified_name)
        return method

    def get_declared_method(self, name: str) -> MethodMirror:
        method = self.get_declared_methods().get(name)
        if method is None:
            raise NoSuchMethodError(name, self.qualified_name)
        return method

    # fields

    def get_declared_fields(self) -> Mapping[str, FieldMirror]:
        return self._memo("declared_fields", lambda: _declared_fields(self.origin), default={})

    def get_fields(self) -> Mapping[str, FieldMirror]:
        def compute() -> dict[str, FieldMirror]:
            merged = dict(self.get_declared_fields())
            for base in self._inherited_types():
                for name, mirror in _declared_fields(base).items():
                    merged.setdefault(name, mirror)
            return merged

        return self._memo("fields", compute, default={})

    def get_field(self, name: str) -> FieldMirror:
        mirror = self.get_fields().get(name)
        if mirror is None:
            raise NoSuchFieldError(name, self.qualified_name)
        return mirror

    def get_declared_field(self, name: str) -> FieldMirror:
        mirror = self.get_declared_fields().get(name)
        if mirror is None:
            raise NoSuchFieldError(name, self.qualified_name)
        return mirror

    # constructors

    def get_constructors(self) -> Mapping[str, ConstructorMirror]:
        return self._memo("constructors", lambda: _constructors(self), default={})

    def get_constructor(self, name: str = DEFAULT_CONSTRUCTOR) -> ConstructorMirror:
        ctor = self.get_constructors().get(name)
        if ctor is None:
            raise NoSuchConstructorError(name, self.qualified_name)
        return ctor

    def get_default_constructor(self) -> ConstructorMirror:
        return self.get_constructor(DEFAULT_CONSTRUCTOR)

    def clear_cache(self) -> None:
        self._cache.clear()

    def _inherited_types(self) -> list[type]:
        return [
            base
            for base in self.origin.__mro__[1:]
            if base.__module__ not in _HOST_MODULES
        ]

    def _memo(self, key: str, factory: Callable[[], Any], *, default: Any = None) -> Any:
        if key in self._cache:
            return self._cache[key]
        try:
            value = factory()
        except Exception:
            if default is None:
                raise
            logger.debug(
                "introspection of %s failed while computing %s",
                self.qualified_name,
                key,
                exc_info=True,
            )
            value = default
        self._cache[key] = value
        return value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ClassMirror):
            return NotImplemented
        return self.reflected_type == other.reflected_type

    def __hash__(self) -> int:
        return hash(self.reflected_type)

    def __repr__(self) -> str:
        return f"ClassMirror({_render_type(self.reflected_type)})"


def reflect_class(reflected: object) -> ClassMirror:
    """Mirror a class, a generic alias or, for anything else, the object's class."""

    if isinstance(reflected, type) or typing.get_origin(reflected) is not None:
        return ClassMirror(reflected)
    return ClassMirror(getattr(reflected, "__orig_class__", type(reflected)))


def _declared_methods(owner: type) -> dict[str, MethodMirror]:
    methods: dict[str, MethodMirror] = {}
    for name, raw in owner.__dict__.items():
        if _is_dunder(name):
            continue
        mirror: MethodMirror | None = None
        if isinstance(raw, staticmethod):
            mirror = MethodMirror(owner, name, raw.__func__, MethodKind.STATIC)
        elif isinstance(raw, classmethod):
            mirror = MethodMirror(owner, name, raw.__func__, MethodKind.CLASS)
        elif isinstance(raw, property) and raw.fget is not None:
            mirror = MethodMirror(owner, name, raw.fget, MethodKind.PROPERTY)
        elif isinstance(raw, functools.cached_property):
            mirror = MethodMirror(owner, name, raw.func, MethodKind.PROPERTY)
        elif inspect.isfunction(raw):
            mirror = MethodMirror(owner, name, raw, MethodKind.INSTANCE)
        if mirror is not None:
            methods[name] = mirror
    return methods


def _declared_fields(owner: type) -> dict[str, FieldMirror]:
    fields: dict[str, FieldMirror] = {}
    namespace = owner.__dict__

    if issubclass(owner, enum.Enum):
        for member in owner.__members__.values():
            fields[member.name] = FieldMirror(
                owner,
                member.name,
                field_type=owner,
                modifiers=Modifier.STATIC | Modifier.FINAL | Modifier.CONST,
                default=member,
            )
        return fields

    raw_annotations = inspect.get_annotations(owner)
    try:
        hints = typing.get_type_hints(owner, include_extras=True)
    except Exception:
        logger.debug("unresolved type hints on %s", owner.__qualname__, exc_info=True)
        hints = {}

    is_dataclass = dataclasses.is_dataclass(owner)
    params = getattr(owner, "__dataclass_params__", None)
    frozen = is_dataclass and params is not None and params.frozen
    dataclass_fields = {item.name for item in dataclasses.fields(owner)} if is_dataclass else set()

    for name, raw in raw_annotations.items():
        resolved = _resolve_hint(hints.get(name, raw))
        modifiers = Modifier.NONE
        has_value = name in namespace and not inspect.ismemberdescriptor(namespace[name])
        if resolved.is_class_var:
            modifiers |= Modifier.STATIC
        if resolved.is_final or (frozen and name in dataclass_fields):
            modifiers |= Modifier.FINAL
        if resolved.is_final and has_value and name not in dataclass_fields:
            modifiers |= Modifier.STATIC | Modifier.CONST
        if _is_private_name(name):
            modifiers |= Modifier.PRIVATE
        default = namespace[name] if has_value else MISSING
        if isinstance(default, dataclasses.Field):
            default = default.default
        fields[name] = FieldMirror(
            owner,
            name,
            field_type=resolved.type,
            modifiers=modifiers,
            annotations=annotations_from_metadata(resolved.metadata),
            default=default,
        )

    for name, value in namespace.items():
        if name in fields or _is_dunder(name) or name in _RUNTIME_ATTRS:
            continue
        if not _is_plain_value(value):
            continue
        modifiers = Modifier.STATIC
        if _is_private_name(name):
            modifiers |= Modifier.PRIVATE
        fields[name] = FieldMirror(
            owner, name, field_type=type(value), modifiers=modifiers, default=value
        )
    return fields


def _constructors(mirror: ClassMirror) -> dict[str, ConstructorMirror]:
    owner = mirror.origin
    target: Callable[..., Any] = mirror.reflected_type
    try:
        signature: inspect.Signature | None = inspect.signature(owner)
    except (TypeError, ValueError):
        signature = None

    init = owner.__dict__.get("__init__")
    if init is not None and inspect.isfunction(init):
        parameters, _ = _describe_callable(init, skip_first=True)
    elif signature is not None:
        parameters = _parameters_from_signature(signature, hints={})
    else:
        parameters = ()

    constructors = {
        DEFAULT_CONSTRUCTOR: ConstructorMirror(
            owner,
            DEFAULT_CONSTRUCTOR,
            target=target,
            signature=signature,
            parameters=parameters,
            annotations=declared_annotations(init) if init is not None else (),
        )
    }

    for name, raw in owner.__dict__.items():
        if not isinstance(raw, classmethod) or _is_private_name(name) or _is_dunder(name):
            continue
        if not _returns_owner(raw.__func__, owner):
            continue
        bound = getattr(owner, name)
        try:
            factory_signature: inspect.Signature | None = inspect.signature(bound)
        except (TypeError, ValueError):
            factory_signature = None
        factory_parameters, _ = _describe_callable(raw.__func__, skip_first=True)
        constructors[name] = ConstructorMirror(
            owner,
            name,
            target=bound,
            signature=factory_signature,
            parameters=factory_parameters,
            annotations=declared_annotations(raw.__func__),
        )
    return constructors


def _describe_callable(
    function: Callable[..., Any], *, skip_first: bool
) -> tuple[tuple[ParameterMirror, ...], Any]:
    try:
        signature = inspect.signature(function)
    except (TypeError, ValueError):
        return (), Any
    try:
        hints = typing.get_type_hints(function, include_extras=True)
    except Exception:
        hints = {}
    parameters = _parameters_from_signature(signature, hints=hints, skip_first=skip_first)
    return_hint = hints.get("return", signature.return_annotation)
    if return_hint is inspect.Signature.empty:
        return_hint = Any
    return parameters, _resolve_hint(return_hint).type


def _parameters_from_signature(
    signature: inspect.Signature,
    *,
    hints: Mapping[str, Any],
    skip_first: bool = False,
) -> tuple[ParameterMirror, ...]:
    items = list(signature.parameters.values())
    if skip_first and items and items[0].kind in (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    ):
        items = items[1:]
    mirrors: list[ParameterMirror] = []
    for index, parameter in enumerate(items):
        raw = hints.get(parameter.name, parameter.annotation)
        if raw is inspect.Parameter.empty:
            raw = Any
        resolved = _resolve_hint(raw)
        default = MISSING if parameter.default is inspect.Parameter.empty else parameter.default
        mirrors.append(
            ParameterMirror(
                name=parameter.name,
                index=index,
                type=resolved.type,
                kind=parameter.kind,
                default=default,
                annotations=annotations_from_metadata(resolved.metadata),
            )
        )
    return tuple(mirrors)


def _resolve_hint(hint: Any) -> _ResolvedHint:
    metadata: list[object] = []
    is_class_var = False
    is_final = False
    current = hint
    while True:
        if current is typing.ClassVar:
            is_class_var, current = True, Any
            continue
        if current is typing.Final:
            is_final, current = True, Any
            continue
        origin = typing.get_origin(current)
        if origin is typing.Annotated:
            metadata.extend(current.__metadata__)
            current = current.__origin__
        elif origin is typing.ClassVar:
            is_class_var = True
            current = typing.get_args(current)[0]
        elif origin is typing.Final:
            is_final = True
            current = typing.get_args(current)[0]
        else:
            break
    return _ResolvedHint(
        type=current, metadata=tuple(metadata), is_class_var=is_class_var, is_final=is_final
    )


def _returns_owner(function: Callable[..., Any], owner: type) -> bool:
    raw = inspect.get_annotations(function).get("return")
    if raw is None:
        return False
    if isinstance(raw, str):
        return raw in {owner.__name__, owner.__qualname__, "Self", "typing.Self"}
    return raw is owner or raw is typing.Self


def _is_plain_value(value: object) -> bool:
    if isinstance(value, (staticmethod, classmethod, property, functools.cached_property, type)):
        return False
    if inspect.isroutine(value) or inspect.ismemberdescriptor(value):
        return False
    return not isinstance(value, (types.ModuleType, dataclasses.Field))


def _is_protocol(origin: type) -> bool:
    return bool(origin.__dict__.get("_is_protocol", False))


def _is_dunder(name: str) -> bool:
    return len(name) > 4 and name.startswith("__") and name.endswith("__")


def _is_private_name(name: str) -> bool:
    return name.startswith("_") and not _is_dunder(name)


def _origin_of(other: ClassMirror | type) -> type:
    if isinstance(other, ClassMirror):
        return other.origin
    return typing.get_origin(other) or other


def _render_type(reflected: object) -> str:
    if isinstance(reflected, type):
        return f"{reflected.__module__}.{reflected.__qualname__}"
    return repr(reflected)


__all__ = [
    "DEFAULT_CONSTRUCTOR",
    "MISSING",
    "ClassMirror",
    "ConstructorMirror",
    "FieldMirror",
    "MethodKind",
    "MethodMirror",
    "Modifier",
    "ParameterMirror",
    "reflect_class",
]
