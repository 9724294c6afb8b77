"""
mirrorkit — reflection error taxonomy.

File: src/mirrorkit/reflection/exceptions.py
Last updated: 2026-10-18

Purpose
- Give every failure raised by mirrors, the class facade and class loaders a
  typed home so callers can distinguish not-found, instantiation, access,
  format and duplicate-definition failures.

Functional requirements
- Not-found errors subclass ``LookupError`` and carry the missing member and
  the declaring class.
- Access errors subclass ``PermissionError``; argument type errors subclass
  ``TypeError``; duplicate definitions subclass ``ValueError``.
"""

from __future__ import annotations


class ReflectionError(Exception):
    """Base class for all reflection and class-loading failures."""


class ClassNotFoundError(ReflectionError, LookupError):
    """Raised when no loader in the delegation chain can produce a class."""

    def __init__(self, class_name: str, message: str | None = None) -> None:
        self.class_name = class_name
        super().__init__(message or f"class not found: {class_name}")


class _NoSuchMemberError(ReflectionError, LookupError):
    member_kind = "member"

    def __init__(self, member_name: str, declaring_class: str) -> None:
        self.member_name = member_name
        self.declaring_class = declaring_class
        rendered = member_name or "<default>"
        super().__init__(f"no {self.member_kind} {rendered!r} declared on {declaring_class}")


class NoSuchMethodError(_NoSuchMemberError):
    """Raised when a named method does not exist on a class."""

    member_kind = "method"


class NoSuchFieldError(_NoSuchMemberError):
    """Raised when a named field does not exist on a class."""

    member_kind = "field"


class NoSuchConstructorError(_NoSuchMemberError):
    """Raised when a named or default constructor does not exist on a class."""

    member_kind = "constructor"


class AbstractClassInstantiationError(ReflectionError):
    """Raised when instantiating an abstract class or interface."""

    def __init__(self, class_name: str) -> None:
        self.class_name = class_name
        super().__init__(f"cannot instantiate abstract class {class_name}")


class ClassInstantiationError(ReflectionError):
    """Raised when a constructor rejects its arguments or fails while running."""

    def __init__(self, class_name: str, reason: str) -> None:
        self.class_name = class_name
        self.reason = reason
        super().__init__(f"failed to instantiate {class_name}: {reason}")


class IllegalAccessError(ReflectionError, PermissionError):
    """Raised when reading or mutating a member that is not accessible."""


class IllegalArgumentTypeError(ReflectionError, TypeError):
    """Raised when a reflective call receives a value of the wrong type."""


class DuplicateDefinitionError(ReflectionError, ValueError):
    """Raised when a loader is asked to define a name it already owns."""

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"{kind} already defined: {name}")


class ClassFormatError(ReflectionError):
    """Reserved for malformed class definitions; loading from raw bytes is unsupported."""


__all__ = [
    "AbstractClassInstantiationError",
    "ClassFormatError",
    "ClassInstantiationError",
    "ClassNotFoundError",
    "DuplicateDefinitionError",
    "IllegalAccessError",
    "IllegalArgumentTypeError",
    "NoSuchConstructorError",
    "NoSuchFieldError",
    "NoSuchMethodError",
    "ReflectionError",
]
