"""
mirrorkit — reflection mirrors and hierarchical class loading.

File: src/mirrorkit/__init__.py
Last updated: 2026-10-18

Purpose
- Package root. Exposes the version and the handful of entry points most
  callers need; everything else lives in the subpackages.

Functional requirements
- Must not have side effects at import time (no config loading, no logging
  init, no system loader construction).
"""

from mirrorkit.loader import (
    ClassLoader,
    ResourceResolver,
    get_system_class_loader,
    reset_system_class_loader,
)
from mirrorkit.reflection import Annotation, Class, ClassNotFoundError, annotation

__version__ = "0.1.0"

__all__ = [
    "Annotation",
    "Class",
    "ClassLoader",
    "ClassNotFoundError",
    "ResourceResolver",
    "__version__",
    "annotation",
    "get_system_class_loader",
    "reset_system_class_loader",
]
