"""
mirrorkit — the root class loader backed by the import system.

File: src/mirrorkit/loader/system.py
Last updated: 2026-10-18

Purpose
- Resolve class names against importable modules and own the process-wide
  root loader instance.

What should be included in this file
- ``SystemClassLoader`` accepting ``python:<module>#<Class>``,
  ``package:<pkg>/<module path>/<Class>``, dotted ``module.Class`` and bare
  simple names (searched among already-imported modules).
- ``get_system_class_loader`` / ``reset_system_class_loader``: a lazily
  created singleton with an explicit reset hook for tests.

Functional requirements
- After a development-mode invalidation the defining module is re-imported so
  the next load yields a fresh type object.
- Import failures surface as ``ClassNotFoundError`` (missing module or
  attribute) or ``ClassFormatError`` (module raised while executing).
"""

from __future__ import annotations

import importlib
import logging
import sys
import threading
from typing import TYPE_CHECKING, Any, Final

from mirrorkit.constants import MEMBER_SEPARATOR
from mirrorkit.loader.class_loader import ClassLoader
from mirrorkit.loader.resources import CORE_SCHEME, PACKAGE_SCHEME, split_scheme
from mirrorkit.reflection.exceptions import ClassFormatError, ClassNotFoundError

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import ModuleType

    from mirrorkit.reflection.klass import Class

logger = logging.getLogger(__name__)

# Modules searched first for bare simple names.
_PRIORITY_MODULES: Final[tuple[str, ...]] = ("builtins", "__main__")


class SystemClassLoader(ClassLoader):
    """Root loader; never has a parent."""

    def __init__(self, *, name: str = "system", **options: Any) -> None:
        self._reload_targets: dict[str, tuple[str, str, type]] = {}
        super().__init__(None, name=name, **options)

    async def find_class(self, name: str) -> Class[Any]:
        target = self._reload_targets.pop(name, None)
        if target is not None:
            module_name, qualname, stale = target
            # Skip the re-import when someone already replaced the stale type.
            current = sys.modules.get(module_name)
            reload = current is not None and _qualname_lookup(current, qualname) is stale
            module = _import(name, module_name, reload=reload)
            return self._from_module(name, module, qualname)

        scheme, rest = split_scheme(name)
        if scheme == CORE_SCHEME:
            module_name, separator, qualname = rest.partition(MEMBER_SEPARATOR)
            if not separator or not module_name or not qualname:
                raise ClassNotFoundError(name, f"expected python:<module>#<Class>, got {name!r}")
            return self._from_module(name, _import(name, module_name), qualname)
        if scheme == PACKAGE_SCHEME:
            module_name, qualname = _split_package_name(name, rest)
            return self._from_module(name, _import(name, module_name), qualname)
        if scheme is not None:
            raise ClassNotFoundError(name, f"{scheme}: names do not denote classes")
        if "." in name:
            return self._find_dotted(name)
        return self._find_simple(name)

    def _on_invalidate(self, name: str, previous: Class[Any]) -> None:
        origin = previous.origin
        module_name = getattr(origin, "__module__", None)
        if module_name and module_name != "builtins":
            self._reload_targets[name] = (module_name, origin.__qualname__, origin)

    def _find_dotted(self, name: str) -> Class[Any]:
        parts = name.split(".")
        for split in range(len(parts) - 1, 0, -1):
            module_name = ".".join(parts[:split])
            try:
                module = _import(name, module_name)
            except ClassNotFoundError:
                continue
            try:
                return self._from_module(name, module, ".".join(parts[split:]))
            except ClassNotFoundError:
                continue
        raise ClassNotFoundError(name)

    def _find_simple(self, name: str) -> Class[Any]:
        modules = dict.fromkeys(_PRIORITY_MODULES)
        modules.update(dict.fromkeys(list(sys.modules)))
        for module_name in modules:
            module = sys.modules.get(module_name)
            if module is None:
                continue
            candidate = getattr(module, name, None)
            if isinstance(candidate, type) and candidate.__name__ == name:
                return self.define(candidate)
        raise ClassNotFoundError(name)

    def _from_module(self, name: str, module: ModuleType, qualname: str) -> Class[Any]:
        candidate = _qualname_lookup(module, qualname)
        if candidate is None:
            raise ClassNotFoundError(name, f"{module.__name__} has no class {qualname}")
        if not isinstance(candidate, type):
            raise ClassNotFoundError(
                name, f"{module.__name__}.{qualname} is a {type(candidate).__name__}, not a class"
            )
        return self.define(candidate)


def _import(name: str, module_name: str, *, reload: bool = False) -> ModuleType:
    try:
        existing = sys.modules.get(module_name)
        if reload and existing is not None:
            logger.info("re-importing %s for %s", module_name, name)
            return importlib.reload(existing)
        return importlib.import_module(module_name)
    except ModuleNotFoundError as exc:
        raise ClassNotFoundError(name, f"module not found: {exc.name or module_name}") from exc
    except ImportError as exc:
        raise ClassNotFoundError(name, f"cannot import {module_name}: {exc}") from exc
    except Exception as exc:
        raise ClassFormatError(f"importing {module_name} for {name} failed: {exc}") from exc


def _qualname_lookup(module: ModuleType, qualname: str) -> object | None:
    candidate: object = module
    for part in qualname.split("."):
        candidate = getattr(candidate, part, None)
        if candidate is None:
            return None
    return candidate


def _split_package_name(name: str, rest: str) -> tuple[str, str]:
    package, _, path = rest.partition("/")
    module_path, _, class_name = path.rpartition("/")
    if not package or not class_name:
        raise ClassNotFoundError(
            name, f"expected package:<pkg>/<module path>/<Class>, got {name!r}"
        )
    if module_path.endswith(".py"):
        module_path = module_path[: -len(".py")]
    segments = [package, *(segment for segment in module_path.split("/") if segment)]
    return ".".join(segments), class_name


_SYSTEM_LOADER: SystemClassLoader | None = None
_SYSTEM_LOADER_LOCK = threading.Lock()


def get_system_class_loader(config: Mapping[str, Any] | None = None) -> SystemClassLoader:
    """Return the process-wide root loader, creating it on first use.

    ``config`` is only consulted when the loader is created.
    """

    global _SYSTEM_LOADER
    with _SYSTEM_LOADER_LOCK:
        if _SYSTEM_LOADER is None:
            if config is None:
                _SYSTEM_LOADER = SystemClassLoader()
            else:
                _SYSTEM_LOADER = SystemClassLoader.from_config(config)
            logger.debug("created system class loader")
        return _SYSTEM_LOADER


def reset_system_class_loader() -> None:
    """Drop the singleton so the next call builds a fresh one."""

    global _SYSTEM_LOADER
    with _SYSTEM_LOADER_LOCK:
        _SYSTEM_LOADER = None


__all__ = [
    "MEMBER_SEPARATOR",
    "SystemClassLoader",
    "get_system_class_loader",
    "reset_system_class_loader",
]
