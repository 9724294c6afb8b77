"""
mirrorkit — parent-delegating class loader.

File: src/mirrorkit/loader/class_loader.py
Last updated: 2026-10-18

Purpose
- Produce ``Class`` handles by name through a tree of loaders, caching what
  each loader resolved and keeping at most one resolution in flight per name.

What should be included in this file
- ``ClassLoader`` with parent-first delegation, a keyed single-flight lock,
  class/package/resource caches, development-mode hot reload, plugin hooks,
  package registration and resource content readers.
- ``ClassLoaderResource`` cache entries with expiry.

Functional requirements
- ``load_class``: ``before_class_load`` hooks, then under the per-name lock
  the dev-mode staleness check and cache check, parent delegation (parent
  not-found is swallowed and the parent cache is never written), own
  ``find_class``, caching, metrics, ``after_class_load`` hooks. Failures are recorded in
  metrics and re-raised unchanged.
- Invalidating a class produced by an ancestor also makes that ancestor
  drop it, so the next delegated lookup resolves a fresh type.
- Plugins run synchronously in registration order and may abort a load.
- ``define_package`` rejects a second definition of the same name.
- Resource readers return ``None`` instead of raising.

Non-functional requirements
- No cross-loader locking; each loader owns its lock and cache namespace.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import os
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final, Self

import yaml

from mirrorkit.loader.metrics import ClassLoaderMetrics
from mirrorkit.loader.packages import PackageInfo
from mirrorkit.loader.plugins import HotReloadPlugin
from mirrorkit.loader.resources import ResolverSettings, ResourceResolver
from mirrorkit.observability.logging import correlation_scope
from mirrorkit.reflection.exceptions import (
    ClassNotFoundError,
    DuplicateDefinitionError,
    IllegalArgumentTypeError,
)
from mirrorkit.reflection.klass import Class, RuntimeClass
from mirrorkit.reflection.mirrors import ClassMirror
from mirrorkit.utils.concurrency import KeyedLock, gather_bounded

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from mirrorkit.loader.plugins import ClassLoaderPlugin
    from mirrorkit.utils.concurrency import CancellationToken

logger = logging.getLogger(__name__)

DEFAULT_RESOURCE_TTL_SECONDS: Final[float] = 300.0
DEFAULT_PRELOAD_CONCURRENCY: Final[int] = 8

BOOTSTRAP_CLASSES: Final[Mapping[str, type]] = {
    "object": object,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "bytes": bytes,
    "list": list,
    "dict": dict,
    "set": set,
    "tuple": tuple,
    "NoneType": type(None),
}


class _SystemParent:
    __slots__ = ()

    def __repr__(self) -> str:
        return "<system class loader>"


SYSTEM_PARENT: Final[_SystemParent] = _SystemParent()


@dataclass(frozen=True, slots=True)
class ClassLoaderResource:
    """A resolved resource URI and when it was resolved; never authoritative."""

    uri: str
    timestamp: float
    ttl_seconds: float = DEFAULT_RESOURCE_TTL_SECONDS

    @property
    def expires_at(self) -> float:
        return self.timestamp + self.ttl_seconds

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class ClassLoader:
    """Loads classes by name, asking its parent first.

    Subclasses customise :meth:`find_class`. The default parent is the
    process-wide system loader; pass ``parent=None`` for a root loader.
    """

    def __init__(
        self,
        parent: ClassLoader | _SystemParent | None = SYSTEM_PARENT,
        *,
        name: str | None = None,
        resolver: ResourceResolver | None = None,
        metrics: ClassLoaderMetrics | None = None,
        development_mode: bool = False,
        resource_ttl_seconds: float = DEFAULT_RESOURCE_TTL_SECONDS,
        preload_concurrency: int = DEFAULT_PRELOAD_CONCURRENCY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if isinstance(parent, _SystemParent):
            from mirrorkit.loader.system import get_system_class_loader

            parent = get_system_class_loader()
        if resource_ttl_seconds <= 0:
            raise ValueError("resource_ttl_seconds must be > 0")
        if preload_concurrency <= 0:
            raise ValueError("preload_concurrency must be > 0")
        self._parent: ClassLoader | None = parent
        self.name = name or type(self).__name__
        self._resolver = resolver or ResourceResolver()
        self._metrics = metrics or ClassLoaderMetrics()
        self._resource_ttl = resource_ttl_seconds
        self._preload_concurrency = preload_concurrency
        self._clock = clock

        self._classes: dict[str, Class[Any]] = {}
        self._packages: dict[str, PackageInfo] = {}
        self._locks = KeyedLock()
        self._resources: dict[str, ClassLoaderResource] = {}
        self._plugins: list[ClassLoaderPlugin] = []
        self._timestamps: dict[str, float] = {}
        self._modified: set[str] = set()
        self._development_mode = False
        if development_mode:
            self.enable_development_mode()

    @classmethod
    def from_config(cls, config: Mapping[str, Any], **kwargs: Any) -> Self:
        """Build a loader from an effective config (see ``mirrorkit.config``)."""

        loader_section = config.get("loader", {})
        metrics_section = config.get("metrics", {})
        kwargs.setdefault("resolver", ResourceResolver(ResolverSettings.from_config(config)))
        kwargs.setdefault(
            "metrics",
            ClassLoaderMetrics(
                detailed_tracking=bool(metrics_section.get("detailed_tracking", False)),
                max_recent_events=int(metrics_section.get("max_recent_events", 1000)),
            ),
        )
        kwargs.setdefault("development_mode", bool(loader_section.get("development_mode", False)))
        kwargs.setdefault(
            "resource_ttl_seconds",
            float(loader_section.get("resource_cache_ttl_seconds", DEFAULT_RESOURCE_TTL_SECONDS)),
        )
        kwargs.setdefault(
            "preload_concurrency",
            int(loader_section.get("preload_concurrency", DEFAULT_PRELOAD_CONCURRENCY)),
        )
        return cls(**kwargs)

    @property
    def parent(self) -> ClassLoader | None:
        return self._parent

    @property
    def resolver(self) -> ResourceResolver:
        return self._resolver

    def get_metrics(self) -> ClassLoaderMetrics:
        return self._metrics

    # class loading

    async def load_class(self, name: str) -> Class[Any]:
        """Return the class for ``name``, loading it on first request."""

        class_name = _validate_class_name(name)
        with correlation_scope(loader=self.name, class_name=class_name):
            try:
                for plugin in tuple(self._plugins):
                    plugin.before_class_load(class_name)
                cls, reloaded = await self._load_locked(class_name)
                for plugin in tuple(self._plugins):
                    plugin.after_class_load(class_name, cls)
                if reloaded:
                    for plugin in tuple(self._plugins):
                        if isinstance(plugin, HotReloadPlugin):
                            plugin.on_class_reloaded(class_name, cls)
            except Exception as exc:
                self._metrics.record_error(class_name, exc)
                raise
        return cls

    async def find_class(self, name: str) -> Class[Any]:
        """Resolve ``name`` locally; called only after the parent chain failed."""

        raise ClassNotFoundError(name)

    async def find_system_class(self, name: str) -> Class[Any]:
        from mirrorkit.loader.system import get_system_class_loader

        return await get_system_class_loader().load_class(name)

    def find_loaded_class(self, name: str) -> Class[Any] | None:
        return self._classes.get(name)

    def is_class_loaded(self, name: str) -> bool:
        return name in self._classes

    def get_loaded_classes(self) -> dict[str, Class[Any]]:
        return dict(self._classes)

    async def preload_classes(self, names: Iterable[str]) -> list[Class[Any]]:
        """Load ``names`` with bounded concurrency; failures are logged and skipped."""

        results = await gather_bounded(
            (self._try_load(name) for name in names), self._preload_concurrency
        )
        return [cls for cls in results if cls is not None]

    def define(self, reflected: object) -> Class[Any]:
        """Wrap a type as a ``Class`` owned by this loader (helper for ``find_class``)."""

        return RuntimeClass(ClassMirror(reflected), loader=self)

    async def _try_load(self, name: str) -> Class[Any] | None:
        try:
            return await self.load_class(name)
        except Exception as exc:
            logger.warning("preloading %s failed: %s", name, exc)
            return None

    async def _load_locked(self, name: str) -> tuple[Class[Any], bool]:
        cached = self._classes.get(name)
        if cached is not None and not self._development_mode:
            self._metrics.record_cache_hit(name)
            return cached, False

        async with self._locks.hold(name):
            reloaded = False
            cached = self._classes.get(name)
            if cached is not None and self._development_mode:
                if await self._should_reload(name, cached):
                    self._invalidate(name)
                    cached = None
                    reloaded = True
            if cached is not None:
                self._metrics.record_cache_hit(name)
                return cached, False

            started = time.perf_counter()
            try:
                cls = await self._delegate_then_find(name)
            except Exception:
                self._metrics.record_class_load(
                    name, time.perf_counter() - started, success=False
                )
                raise
            elapsed = time.perf_counter() - started
            self._classes[name] = cls
            self._modified.discard(name)
            if self._development_mode:
                self._timestamps[name] = await self._load_timestamp(cls)
            self._metrics.record_class_load(name, elapsed, success=True)
            logger.debug("loaded %s as %s in %.6fs", name, cls.qualified_name, elapsed)
            return cls, reloaded

    async def _delegate_then_find(self, name: str) -> Class[Any]:
        if self._parent is not None:
            try:
                return await self._parent._lookup(name)
            except ClassNotFoundError:
                pass
        else:
            bootstrap = BOOTSTRAP_CLASSES.get(name)
            if bootstrap is not None:
                return self.define(bootstrap)
        return await self.find_class(name)

    async def _lookup(self, name: str) -> Class[Any]:
        # Delegated lookups read this loader's cache but never fill it.
        cached = self._classes.get(name)
        if cached is not None:
            return cached
        return await self._delegate_then_find(name)

    # development mode

    @property
    def is_development_mode(self) -> bool:
        return self._development_mode

    def enable_development_mode(self) -> None:
        self._development_mode = True
        self._metrics.enable_detailed_tracking()
        now = time.time()
        for name in self._classes:
            self._timestamps.setdefault(name, now)
        logger.info("development mode enabled for %s", self.name)

    def disable_development_mode(self) -> None:
        self._development_mode = False
        self._metrics.disable_detailed_tracking()
        self._timestamps.clear()
        self._modified.clear()
        logger.info("development mode disabled for %s", self.name)

    def mark_modified(self, name: str) -> None:
        """Flag ``name`` as changed so the next dev-mode load reloads it."""

        self._modified.add(name)

    async def _should_reload(self, name: str, cached: Class[Any]) -> bool:
        if name in self._modified:
            return True
        loaded_at = self._timestamps.get(name)
        if loaded_at is None:
            return False
        modified_at = await asyncio.to_thread(_source_mtime, cached.origin)
        return modified_at is not None and modified_at > loaded_at

    async def _load_timestamp(self, cls: Class[Any]) -> float:
        # A source stamped in the future must not look stale right after loading it.
        modified_at = await asyncio.to_thread(_source_mtime, cls.origin)
        return max(time.time(), modified_at or 0.0)

    def _invalidate(self, name: str) -> None:
        previous = self._classes.pop(name, None)
        self._timestamps.pop(name, None)
        self._modified.discard(name)
        self._metrics.record_class_reload(name)
        if previous is not None:
            self._on_invalidate(name, previous)
            owner = previous.get_loader()
            if owner is not None and owner is not self:
                owner._forget(name, previous)
        logger.info("invalidated %s for reload", name)

    def _forget(self, name: str, previous: Class[Any]) -> None:
        """Drop ``previous`` after a descendant invalidated the class this loader produced."""

        if self._classes.get(name) is previous:
            del self._classes[name]
            self._timestamps.pop(name, None)
        self._on_invalidate(name, previous)

    def _on_invalidate(self, name: str, previous: Class[Any]) -> None:
        """Hook for subclasses that must drop state tied to a reloaded class."""

    # plugins

    def add_plugin(self, plugin: ClassLoaderPlugin) -> None:
        plugin.initialize(self)
        self._plugins.append(plugin)

    def remove_plugin(self, plugin: ClassLoaderPlugin) -> bool:
        if plugin not in self._plugins:
            return False
        self._plugins.remove(plugin)
        plugin.dispose()
        return True

    def get_plugins(self) -> tuple[ClassLoaderPlugin, ...]:
        return tuple(self._plugins)

    # packages

    def define_package(
        self,
        name: str,
        *,
        spec_title: str | None = None,
        spec_version: str | None = None,
        spec_vendor: str | None = None,
        impl_title: str | None = None,
        impl_version: str | None = None,
        impl_vendor: str | None = None,
        seal_base: str | None = None,
    ) -> PackageInfo:
        if name in self._packages:
            raise DuplicateDefinitionError("package", name)
        info = PackageInfo(
            name=name,
            spec_title=spec_title,
            spec_version=spec_version,
            spec_vendor=spec_vendor,
            impl_title=impl_title,
            impl_version=impl_version,
            impl_vendor=impl_vendor,
            seal_base=seal_base,
        )
        self._packages[name] = info
        return info

    def get_package(self, name: str) -> PackageInfo | None:
        info = self._packages.get(name)
        if info is None and self._parent is not None:
            return self._parent.get_package(name)
        return info

    def get_packages(self) -> list[PackageInfo]:
        merged: dict[str, PackageInfo] = {}
        if self._parent is not None:
            merged.update((info.name, info) for info in self._parent.get_packages())
        merged.update(self._packages)
        return [merged[name] for name in sorted(merged)]

    # resources

    async def find_resource(
        self, name: str, *, cancel_token: CancellationToken | None = None
    ) -> str | None:
        """Resolve ``name`` through this loader's resolver, cached with expiry."""

        now = self._clock()
        entry = self._resources.get(name)
        if entry is not None:
            if not entry.is_expired(now):
                return entry.uri
            del self._resources[name]
            self._resolver.forget(name)
        uri = await self._resolver.resolve(name, cancel_token=cancel_token)
        if uri is not None:
            self._resources[name] = ClassLoaderResource(uri, now, self._resource_ttl)
        return uri

    async def get_resource(
        self, name: str, *, cancel_token: CancellationToken | None = None
    ) -> str | None:
        if self._parent is not None:
            uri = await self._parent.get_resource(name, cancel_token=cancel_token)
            if uri is not None:
                return uri
        return await self.find_resource(name, cancel_token=cancel_token)

    async def find_resources(
        self, name: str, *, cancel_token: CancellationToken | None = None
    ) -> list[str]:
        return await self._resolver.resolve_all(name, cancel_token=cancel_token)

    async def get_resources(
        self, name: str, *, cancel_token: CancellationToken | None = None
    ) -> list[str]:
        found: dict[str, None] = {}
        if self._parent is not None:
            for uri in await self._parent.get_resources(name, cancel_token=cancel_token):
                found.setdefault(uri, None)
        for uri in await self.find_resources(name, cancel_token=cancel_token):
            found.setdefault(uri, None)
        return list(found)

    async def get_resource_as_bytes(
        self, name: str, *, cancel_token: CancellationToken | None = None
    ) -> bytes | None:
        uri = await self.get_resource(name, cancel_token=cancel_token)
        if uri is None:
            return None
        return await self._resolver.load_bytes(uri, cancel_token=cancel_token)

    async def get_resource_as_string(
        self,
        name: str,
        *,
        encoding: str = "utf-8",
        cancel_token: CancellationToken | None = None,
    ) -> str | None:
        uri = await self.get_resource(name, cancel_token=cancel_token)
        if uri is None:
            return None
        return await self._resolver.load_string(uri, encoding=encoding, cancel_token=cancel_token)

    async def get_resource_as_json(
        self, name: str, *, cancel_token: CancellationToken | None = None
    ) -> dict[str, Any] | None:
        """Decode a UTF-8 JSON object; other top-level values and malformed text give ``None``."""

        text = await self.get_resource_as_string(name, cancel_token=cancel_token)
        if text is None:
            return None
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning("resource %s is not valid JSON: %s", name, exc)
            return None
        return decoded if isinstance(decoded, dict) else None

    async def get_resource_as_yaml(
        self, name: str, *, cancel_token: CancellationToken | None = None
    ) -> dict[str, Any] | None:
        text = await self.get_resource_as_string(name, cancel_token=cancel_token)
        if text is None:
            return None
        try:
            decoded = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            logger.warning("resource %s is not valid YAML: %s", name, exc)
            return None
        return decoded if isinstance(decoded, dict) else None

    # cache management

    def optimize_cache(self) -> int:
        """Purge expired resource entries and idle locks; return how many entries went."""

        now = self._clock()
        expired = [name for name, entry in self._resources.items() if entry.is_expired(now)]
        for name in expired:
            del self._resources[name]
            self._resolver.forget(name)
        purged = len(expired) + self._resolver.purge_expired()
        self._locks.evict_idle()
        if purged:
            logger.debug("optimize_cache purged %d entries from %s", purged, self.name)
        return purged

    def clear_cache(self) -> None:
        self._classes.clear()
        self._timestamps.clear()
        self._modified.clear()
        self._resources.clear()
        self._resolver.clear_cache()
        self._locks.evict_idle()

    def __repr__(self) -> str:
        parent = self._parent.name if self._parent is not None else None
        return f"{type(self).__name__}(name={self.name!r}, parent={parent!r})"


def _validate_class_name(name: object) -> str:
    if not isinstance(name, str):
        raise IllegalArgumentTypeError(f"class name must be a string, got {type(name).__name__}")
    normalized = name.strip()
    if not normalized:
        raise IllegalArgumentTypeError("class name must not be empty")
    return normalized


def _source_mtime(origin: type) -> float | None:
    try:
        source = inspect.getsourcefile(origin)
    except TypeError:
        return None
    if source is None:
        return None
    try:
        return os.stat(source).st_mtime
    except OSError:
        return None


__all__ = [
    "BOOTSTRAP_CLASSES",
    "DEFAULT_RESOURCE_TTL_SECONDS",
    "SYSTEM_PARENT",
    "ClassLoader",
    "ClassLoaderResource",
]
