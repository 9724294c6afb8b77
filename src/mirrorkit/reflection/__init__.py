"""Public reflection API: mirrors, annotations, the ``Class`` facade and errors."""

from mirrorkit.reflection.annotations import (
    Annotation,
    annotation,
    annotation_values,
    declared_annotations,
    value_hash,
    values_equal,
)
from mirrorkit.reflection.exceptions import (
    AbstractClassInstantiationError,
    ClassFormatError,
    ClassInstantiationError,
    ClassNotFoundError,
    DuplicateDefinitionError,
    IllegalAccessError,
    IllegalArgumentTypeError,
    NoSuchConstructorError,
    NoSuchFieldError,
    NoSuchMethodError,
    ReflectionError,
)
from mirrorkit.reflection.klass import Class, RuntimeClass
from mirrorkit.reflection.mirrors import (
    DEFAULT_CONSTRUCTOR,
    ClassMirror,
    ConstructorMirror,
    FieldMirror,
    MethodKind,
    MethodMirror,
    Modifier,
    ParameterMirror,
    reflect_class,
)
from mirrorkit.reflection.utils import (
    find_fields_annotated_with,
    find_methods_annotated_with,
    get_inherited_annotations,
    type_descriptor,
)

__all__ = [
    "DEFAULT_CONSTRUCTOR",
    "AbstractClassInstantiationError",
    "Annotation",
    "Class",
    "ClassFormatError",
    "ClassInstantiationError",
    "ClassMirror",
    "ClassNotFoundError",
    "ConstructorMirror",
    "DuplicateDefinitionError",
    "FieldMirror",
    "IllegalAccessError",
    "IllegalArgumentTypeError",
    "MethodKind",
    "MethodMirror",
    "Modifier",
    "NoSuchConstructorError",
    "NoSuchFieldError",
    "NoSuchMethodError",
    "ParameterMirror",
    "ReflectionError",
    "RuntimeClass",
    "annotation",
    "annotation_values",
    "declared_annotations",
    "find_fields_annotated_with",
    "find_methods_annotated_with",
    "get_inherited_annotations",
    "reflect_class",
    "type_descriptor",
    "value_hash",
    "values_equal",
]
