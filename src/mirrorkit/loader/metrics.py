"""
mirrorkit — class-loading metrics.

File: src/mirrorkit/loader/metrics.py
Last updated: 2026-10-18

Purpose
- Count loads, cache hits/misses, reloads and errors per class name and time
  every real load, on top of the shared ``MetricsRegistry``.

What should be included in this file
- ``ClassLoaderMetrics`` with a diagnostics summary and per-class views.
- Optional retention of individual load events (detailed tracking).

Functional requirements
- Only loads that actually ran the find sequence count as loads; cache hits
  are tracked separately so N concurrent requests for one name report one load.
- ``get_summary`` exposes total_loads, cache_hit_ratio, average_load_time
  (seconds), reload_count and error_count.
"""

from __future__ import annotations

import hashlib
from collections import deque
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Final, Literal

from mirrorkit.observability.metrics import LABEL_VALUE_MAX_LEN, JSONValue, MetricsRegistry

DEFAULT_MAX_RECENT_EVENTS: Final[int] = 1000
MAX_ERRORS_PER_CLASS: Final[int] = 10

LOADS: Final[str] = "class_loads"
CACHE_HITS: Final[str] = "class_cache_hits"
CACHE_MISSES: Final[str] = "class_cache_misses"
RELOADS: Final[str] = "class_reloads"
ERRORS: Final[str] = "class_load_errors"
LOAD_SECONDS: Final[str] = "class_load_seconds"

_CLASS_LABEL: Final[str] = "class"

EventKind = Literal["load", "cache_hit", "reload", "error"]


@dataclass(frozen=True, slots=True)
class ClassLoadEvent:
    """One retained observation, kept only while detailed tracking is on."""

    class_name: str
    kind: EventKind
    timestamp: datetime
    duration_seconds: float = 0.0
    success: bool = True
    message: str | None = None


@dataclass(frozen=True, slots=True)
class ClassLoadStats:
    class_name: str
    load_count: int
    error_count: int
    reload_count: int
    cache_hits: int
    total_load_time: float
    errors: tuple[str, ...] = ()

    @property
    def average_load_time(self) -> float:
        return self.total_load_time / self.load_count if self.load_count else 0.0


class ClassLoaderMetrics:
    """Load statistics for one class loader."""

    def __init__(
        self,
        registry: MetricsRegistry | None = None,
        *,
        detailed_tracking: bool = False,
        max_recent_events: int = DEFAULT_MAX_RECENT_EVENTS,
    ) -> None:
        if max_recent_events <= 0:
            raise ValueError("max_recent_events must be > 0")
        self.registry = registry or MetricsRegistry()
        self._detailed = detailed_tracking
        self._events: deque[ClassLoadEvent] = deque(maxlen=max_recent_events)
        self._errors: dict[str, deque[str]] = {}

    @property
    def detailed_tracking(self) -> bool:
        return self._detailed

    def enable_detailed_tracking(self) -> None:
        self._detailed = True

    def disable_detailed_tracking(self) -> None:
        self._detailed = False
        self._events.clear()

    # recording

    def record_class_load(
        self,
        class_name: str,
        duration_seconds: float,
        *,
        success: bool = True,
        from_cache: bool = False,
    ) -> None:
        if from_cache:
            self.record_cache_hit(class_name)
            return
        labels = _labels(class_name)
        self.registry.inc(CACHE_MISSES, labels=labels)
        self.registry.inc(LOADS, labels=labels)
        self.registry.observe(LOAD_SECONDS, max(duration_seconds, 0.0), labels=labels)
        self._remember(
            ClassLoadEvent(
                class_name=class_name,
                kind="load",
                timestamp=_now(),
                duration_seconds=duration_seconds,
                success=success,
            )
        )

    def record_cache_hit(self, class_name: str) -> None:
        self.registry.inc(CACHE_HITS, labels=_labels(class_name))
        self._remember(ClassLoadEvent(class_name=class_name, kind="cache_hit", timestamp=_now()))

    def record_cache_miss(self, class_name: str) -> None:
        self.registry.inc(CACHE_MISSES, labels=_labels(class_name))

    def record_class_reload(self, class_name: str) -> None:
        self.registry.inc(RELOADS, labels=_labels(class_name))
        self._remember(ClassLoadEvent(class_name=class_name, kind="reload", timestamp=_now()))

    def record_error(self, class_name: str, error: BaseException | str) -> None:
        message = error if isinstance(error, str) else f"{type(error).__name__}: {error}"
        self.registry.inc(ERRORS, labels=_labels(class_name))
        bucket = self._errors.setdefault(
            class_label(class_name), deque(maxlen=MAX_ERRORS_PER_CLASS)
        )
        bucket.append(message)
        self._remember(
            ClassLoadEvent(
                class_name=class_name,
                kind="error",
                timestamp=_now(),
                success=False,
                message=message,
            )
        )

    # queries

    def get_summary(self) -> dict[str, JSONValue]:
        total_loads = int(self.registry.sum_counter(LOADS))
        hits = self.registry.sum_counter(CACHE_HITS)
        misses = self.registry.sum_counter(CACHE_MISSES)
        _, total_time = self.registry.sum_distribution(LOAD_SECONDS)
        lookups = hits + misses
        return {
            "total_loads": total_loads,
            "cache_hit_ratio": hits / lookups if lookups else 0.0,
            "average_load_time": total_time / total_loads if total_loads else 0.0,
            "reload_count": int(self.registry.sum_counter(RELOADS)),
            "error_count": int(self.registry.sum_counter(ERRORS)),
            "unique_classes": len(self._class_names()),
            "detailed_tracking": self._detailed,
        }

    def get_class_stats(self, class_name: str) -> ClassLoadStats:
        labels = _labels(class_name)
        distribution = self.registry.get_distribution(LOAD_SECONDS, labels=labels) or {}
        total = distribution.get("sum", 0.0)
        return ClassLoadStats(
            class_name=class_name,
            load_count=int(self.registry.get_counter(LOADS, labels=labels)),
            error_count=int(self.registry.get_counter(ERRORS, labels=labels)),
            reload_count=int(self.registry.get_counter(RELOADS, labels=labels)),
            cache_hits=int(self.registry.get_counter(CACHE_HITS, labels=labels)),
            total_load_time=float(total) if isinstance(total, (int, float)) else 0.0,
            errors=tuple(self._errors.get(class_label(class_name), ())),
        )

    def get_all_class_stats(self) -> list[ClassLoadStats]:
        return [self.get_class_stats(name) for name in sorted(self._class_names())]

    def get_slowest_classes(self, limit: int = 10) -> list[ClassLoadStats]:
        loaded = [stats for stats in self.get_all_class_stats() if stats.load_count]
        loaded.sort(key=lambda stats: (-stats.average_load_time, stats.class_name))
        return loaded[:limit]

    def get_most_loaded_classes(self, limit: int = 10) -> list[ClassLoadStats]:
        loaded = [stats for stats in self.get_all_class_stats() if stats.load_count]
        loaded.sort(key=lambda stats: (-stats.load_count, stats.class_name))
        return loaded[:limit]

    def get_classes_with_errors(self) -> list[ClassLoadStats]:
        return [stats for stats in self.get_all_class_stats() if stats.error_count]

    def get_recent_events(self, limit: int | None = None) -> list[ClassLoadEvent]:
        events = list(self._events)
        if limit is None:
            return events
        return events[-limit:] if limit > 0 else []

    def reset(self) -> None:
        self.registry.reset()
        self._events.clear()
        self._errors.clear()

    def report(self) -> str:
        """Render a plain-text report for diagnostics output."""

        summary = self.get_summary()
        lines = [
            "Class loader metrics",
            f"  total loads:        {summary['total_loads']}",
            f"  cache hit ratio:    {float(summary['cache_hit_ratio'] or 0.0):.2%}",
            f"  average load time:  {float(summary['average_load_time'] or 0.0) * 1000:.3f} ms",
            f"  reloads:            {summary['reload_count']}",
            f"  errors:             {summary['error_count']}",
            f"  unique classes:     {summary['unique_classes']}",
        ]
        slowest = self.get_slowest_classes(5)
        if slowest:
            lines.append("  slowest classes:")
            lines.extend(
                f"    {stats.class_name}: {stats.average_load_time * 1000:.3f} ms"
                for stats in slowest
            )
        failing = self.get_classes_with_errors()
        if failing:
            lines.append("  classes with errors:")
            lines.extend(f"    {stats.class_name}: {stats.error_count}" for stats in failing)
        return "\n".join(lines)

    def _class_names(self) -> set[str]:
        names: set[str] = set()
        for metric in (LOADS, CACHE_HITS, RELOADS, ERRORS):
            names.update(self.registry.counters_by_label(metric, _CLASS_LABEL))
        return names

    def _remember(self, event: ClassLoadEvent) -> None:
        if self._detailed:
            self._events.append(event)


def class_label(class_name: str) -> str:
    """Registry label for ``class_name``; over-long names keep a prefix plus a digest."""

    if len(class_name) <= LABEL_VALUE_MAX_LEN:
        return class_name
    digest = hashlib.sha256(class_name.encode("utf-8")).hexdigest()[:16]
    return f"{class_name[: LABEL_VALUE_MAX_LEN - len(digest) - 1]}~{digest}"


def _labels(class_name: str) -> dict[str, str]:
    return {_CLASS_LABEL: class_label(class_name)}


def _now() -> datetime:
    return datetime.now(tz=UTC)


__all__ = [
    "DEFAULT_MAX_RECENT_EVENTS",
    "ClassLoadEvent",
    "ClassLoadStats",
    "ClassLoaderMetrics",
    "class_label",
]
