"""
mirrorkit — package-scanning class loader.

File: src/mirrorkit/loader/scanning.py
Last updated: 2026-10-18

Purpose
- Index every class defined under a set of base packages so they can be
  looked up by simple or qualified name, by annotation and by supertype.

What should be included in this file
- ``ScanningClassLoader.scan_packages`` walking base packages with
  ``pkgutil``; modules that fail to import are logged and skipped.
- A dependency graph built from base classes, with dependents queries.
- ``hot_reload_class`` (development mode only) re-importing the class'
  module and the modules of its dependents, then reloading every affected
  cached class so ``HotReloadPlugin`` hooks fire.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import pkgutil
import sys
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from mirrorkit.loader.class_loader import SYSTEM_PARENT, ClassLoader
from mirrorkit.reflection.annotations import declared_annotations, find_annotation
from mirrorkit.reflection.exceptions import ClassNotFoundError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from types import ModuleType

    from mirrorkit.loader.class_loader import _SystemParent
    from mirrorkit.reflection.annotations import Annotation
    from mirrorkit.reflection.klass import Class

logger = logging.getLogger(__name__)


class ScanningClassLoader(ClassLoader):
    """Loader that serves classes discovered under ``base_packages``."""

    def __init__(
        self,
        base_packages: Iterable[str],
        parent: ClassLoader | _SystemParent | None = SYSTEM_PARENT,
        **options: Any,
    ) -> None:
        packages = tuple(dict.fromkeys(name.strip() for name in base_packages if name.strip()))
        if not packages:
            raise ValueError("at least one base package is required")
        self.base_packages = packages
        self._index: dict[str, type] = {}
        self._by_simple_name: dict[str, set[str]] = defaultdict(set)
        self._dependencies: dict[str, set[str]] = {}
        self._scanned = False
        self.scan_errors: dict[str, str] = {}
        super().__init__(parent, **options)

    # scanning

    async def scan_packages(self) -> int:
        """(Re)build the class index; returns the number of indexed classes."""

        self._index.clear()
        self._by_simple_name.clear()
        self.scan_errors.clear()
        for module in self._iter_modules():
            self._index_module(module)
        self._rebuild_dependencies()
        self._scanned = True
        logger.info(
            "scanned %s: %d classes, %d modules skipped",
            ", ".join(self.base_packages),
            len(self._index),
            len(self.scan_errors),
        )
        return len(self._index)

    def get_scanned_classes(self) -> list[str]:
        return sorted(self._index)

    async def find_class(self, name: str) -> Class[Any]:
        if not self._scanned:
            await self.scan_packages()
        return self.define(self._index[self._qualify(name)])

    async def get_classes_annotated_with(self, kind: type[Annotation]) -> list[Class[Any]]:
        await self._ensure_scanned()
        return [
            self.define(cls)
            for _, cls in sorted(self._index.items())
            if find_annotation(declared_annotations(cls), kind) is not None
        ]

    async def get_subtypes_of(self, supertype: Class[Any] | type) -> list[Class[Any]]:
        """Indexed classes that are strict subclasses of ``supertype``."""

        await self._ensure_scanned()
        target = supertype if isinstance(supertype, type) else supertype.origin
        found: list[Class[Any]] = []
        for _, cls in sorted(self._index.items()):
            if cls is target:
                continue
            try:
                if issubclass(cls, target):
                    found.append(self.define(cls))
            except TypeError:
                continue
        return found

    # dependencies

    def get_dependencies(self, name: str) -> list[str]:
        return sorted(self._dependencies.get(self._qualify(name), ()))

    def get_dependents(self, name: str, *, transitive: bool = False) -> list[str]:
        qualified = self._qualify(name)
        if not transitive:
            return sorted(
                other for other, deps in self._dependencies.items() if qualified in deps
            )
        return sorted(self._transitive_dependents(qualified))

    def get_dependency_info(self, name: str | None = None) -> dict[str, Any]:
        """Dependency view of one class, or of the whole index when ``name`` is omitted."""

        if name is not None:
            qualified = self._qualify(name)
            return {
                "class": qualified,
                "dependencies": self.get_dependencies(qualified),
                "dependents": self.get_dependents(qualified),
                "transitive_dependents": self.get_dependents(qualified, transitive=True),
            }
        return {
            "total_classes": len(self._index),
            "classes_with_dependencies": sum(1 for deps in self._dependencies.values() if deps),
            "hot_reloadable_classes": sorted(
                qualified for qualified, cls in self._index.items() if _has_source(cls)
            ),
            "dependency_graph": {
                qualified: sorted(deps) for qualified, deps in sorted(self._dependencies.items())
            },
        }

    # hot reload

    async def hot_reload_class(self, name: str) -> Class[Any]:
        """Re-import ``name`` and its dependents and reload their cached classes."""

        if not self.is_development_mode:
            raise RuntimeError("hot reload requires development mode")
        await self._ensure_scanned()
        qualified = self._qualify(name)
        affected = [qualified, *sorted(self._transitive_dependents(qualified))]
        modules = dict.fromkeys(self._index[item].__module__ for item in affected)
        for module_name in modules:
            module = sys.modules.get(module_name)
            if module is None:
                continue
            logger.info("hot reloading module %s", module_name)
            self._index_module(importlib.reload(module))
        self._rebuild_dependencies()

        stale = [
            key for key, cls in self.get_loaded_classes().items() if cls.qualified_name in affected
        ]
        for key in stale:
            self.mark_modified(key)
        if name not in stale:
            self.mark_modified(name)
        reloaded = await self.load_class(name)
        for key in stale:
            if key != name:
                await self.load_class(key)
        return reloaded

    # internals

    async def _ensure_scanned(self) -> None:
        if not self._scanned:
            await self.scan_packages()

    def _iter_modules(self) -> Iterator[ModuleType]:
        for package_name in self.base_packages:
            package = self._import(package_name)
            if package is None:
                continue
            yield package
            search_path = getattr(package, "__path__", None)
            if search_path is None:
                continue
            for info in pkgutil.walk_packages(search_path, prefix=f"{package_name}."):
                module = self._import(info.name)
                if module is not None:
                    yield module

    def _import(self, module_name: str) -> ModuleType | None:
        try:
            return importlib.import_module(module_name)
        except Exception as exc:
            self.scan_errors[module_name] = f"{type(exc).__name__}: {exc}"
            logger.warning("skipping %s during scan: %s", module_name, exc)
            return None

    def _index_module(self, module: ModuleType) -> None:
        defined_here = [q for q, cls in self._index.items() if cls.__module__ == module.__name__]
        for qualified in defined_here:
            del self._index[qualified]
            self._by_simple_name[qualified.rpartition(".")[2]].discard(qualified)
        for value in vars(module).values():
            if isinstance(value, type) and value.__module__ == module.__name__:
                qualified = f"{module.__name__}.{value.__qualname__}"
                self._index[qualified] = value
                self._by_simple_name[value.__name__].add(qualified)

    def _rebuild_dependencies(self) -> None:
        by_type = {cls: qualified for qualified, cls in self._index.items()}
        self._dependencies = {
            qualified: {by_type[base] for base in cls.__bases__ if base in by_type}
            for qualified, cls in self._index.items()
        }

    def _transitive_dependents(self, qualified: str) -> set[str]:
        found: set[str] = set()
        frontier = [qualified]
        while frontier:
            current = frontier.pop()
            for other, deps in self._dependencies.items():
                if current in deps and other not in found:
                    found.add(other)
                    frontier.append(other)
        found.discard(qualified)
        return found

    def _qualify(self, name: str) -> str:
        if name in self._index:
            return name
        candidates = self._by_simple_name.get(name, set())
        if len(candidates) == 1:
            return next(iter(candidates))
        if candidates:
            raise ClassNotFoundError(
                name, f"ambiguous simple name {name!r}: {', '.join(sorted(candidates))}"
            )
        raise ClassNotFoundError(name)


def _has_source(cls: type) -> bool:
    try:
        return inspect.getsourcefile(cls) is not None
    except TypeError:
        return False


__all__ = ["ScanningClassLoader"]
