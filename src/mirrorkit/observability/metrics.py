"""Thread-safe registry of labelled counters and timing distributions.

Class loaders record one sample per load under the ``class`` label; the
aggregate helpers fold a metric over every label set so loader summaries do
not need to track totals separately.
"""

from __future__ import annotations

import json
import math
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final, TypeVar

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

_Labels = tuple[tuple[str, str], ...]
_T = TypeVar("_T")

_NAME_MAX_LEN: Final[int] = 128
LABEL_VALUE_MAX_LEN: Final[int] = 512


@dataclass(frozen=True, order=True, slots=True)
class _MetricKey:
    name: str
    labels: _Labels

    def label(self, key: str) -> str | None:
        for name, value in self.labels:
            if name == key:
                return value
        return None

    def render(self) -> str:
        if not self.labels:
            return self.name
        rendered = ",".join(f"{name}={value}" for name, value in self.labels)
        return f"{self.name}{{{rendered}}}"


@dataclass(slots=True)
class _Distribution:
    count: int = 0
    total: float = 0.0
    minimum: float | None = None
    maximum: float | None = None

    def observe(self, value: float) -> None:
        self.count += 1
        self.total += value
        self.minimum = value if self.minimum is None else min(self.minimum, value)
        self.maximum = value if self.maximum is None else max(self.maximum, value)

    def as_dict(self) -> dict[str, JSONValue]:
        return {
            "count": self.count,
            "sum": self.total,
            "min": self.minimum,
            "max": self.maximum,
            "avg": self.total / self.count if self.count else 0.0,
        }


class MetricsRegistry:
    """In-memory metrics store keyed by name plus a sorted label set."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._started_at = datetime.now(tz=UTC)
        self._counters: dict[_MetricKey, float] = {}
        self._distributions: dict[_MetricKey, _Distribution] = {}

    def inc(
        self,
        name: str,
        amount: float = 1.0,
        *,
        labels: Mapping[str, str] | None = None,
    ) -> None:
        """Increment a counter; negative amounts are rejected."""

        delta = _finite(amount, "amount")
        if delta < 0:
            raise ValueError("counter increment amount must be >= 0")
        key = _key(name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0.0) + delta

    def observe(
        self,
        name: str,
        value: float,
        *,
        labels: Mapping[str, str] | None = None,
    ) -> None:
        key = _key(name, labels)
        sample = _finite(value, "value")
        with self._lock:
            self._distributions.setdefault(key, _Distribution()).observe(sample)

    def get_counter(self, name: str, *, labels: Mapping[str, str] | None = None) -> float:
        key = _key(name, labels)
        with self._lock:
            return self._counters.get(key, 0.0)

    def get_distribution(
        self,
        name: str,
        *,
        labels: Mapping[str, str] | None = None,
    ) -> dict[str, JSONValue] | None:
        key = _key(name, labels)
        with self._lock:
            state = self._distributions.get(key)
            return None if state is None else state.as_dict()

    # aggregates over every label set

    def sum_counter(self, name: str) -> float:
        return sum(value for _, value in self._matching(self._counters, name))

    def counters_by_label(self, name: str, label: str) -> dict[str, float]:
        """Counter ``name`` broken down by the value of ``label``."""

        out: dict[str, float] = {}
        for key, value in self._matching(self._counters, name):
            label_value = key.label(label)
            if label_value is not None:
                out[label_value] = out.get(label_value, 0.0) + value
        return out

    def distributions_by_label(self, name: str, label: str) -> dict[str, dict[str, JSONValue]]:
        out: dict[str, dict[str, JSONValue]] = {}
        for key, state in self._matching(self._distributions, name):
            label_value = key.label(label)
            if label_value is not None:
                out[label_value] = state.as_dict()
        return out

    def sum_distribution(self, name: str) -> tuple[int, float]:
        """Sample count and sum of distribution ``name`` across label sets."""

        count = 0
        total = 0.0
        for _, state in self._matching(self._distributions, name):
            count += state.count
            total += state.total
        return count, total

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._distributions.clear()
            self._started_at = datetime.now(tz=UTC)

    def snapshot(self) -> dict[str, JSONValue]:
        """Return every metric with stable key ordering."""

        with self._lock:
            started_at = self._started_at
            counters = sorted(self._counters.items())
            distributions = [
                (key, state.as_dict()) for key, state in sorted(self._distributions.items())
            ]
        return {
            "started_at": started_at.isoformat(timespec="seconds").replace("+00:00", "Z"),
            "counters": {key.render(): value for key, value in counters},
            "distributions": {key.render(): value for key, value in distributions},
        }

    def to_json(self, *, indent: int | None = None) -> str:
        return json.dumps(self.snapshot(), sort_keys=True, indent=indent, ensure_ascii=False)

    def _matching(
        self, store: Mapping[_MetricKey, _T], name: str
    ) -> Iterator[tuple[_MetricKey, _T]]:
        wanted = _validate_name(name)
        with self._lock:
            items = [(key, value) for key, value in store.items() if key.name == wanted]
        return iter(items)


def _key(name: str, labels: Mapping[str, str] | None) -> _MetricKey:
    return _MetricKey(name=_validate_name(name), labels=_normalize_labels(labels))


def _validate_name(name: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValueError("metric name must be a non-empty string")
    normalized = name.strip()
    if len(normalized) > _NAME_MAX_LEN:
        raise ValueError(f"metric name must be <= {_NAME_MAX_LEN} characters")
    return normalized


def _normalize_labels(labels: Mapping[str, str] | None) -> _Labels:
    if not labels:
        return ()
    out: list[tuple[str, str]] = []
    for key, value in labels.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise ValueError(f"label {key!r} must map a string key to a string value")
        key_name = key.strip()
        label_value = value.strip()
        if not key_name or not label_value:
            raise ValueError(f"label {key!r} must have a non-empty key and value")
        if len(label_value) > LABEL_VALUE_MAX_LEN:
            raise ValueError(f"label value for {key!r} exceeds {LABEL_VALUE_MAX_LEN} characters")
        out.append((key_name, label_value))
    return tuple(sorted(out))


def _finite(value: float, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{path} must be numeric, got {type(value).__name__}")
    parsed = float(value)
    if not math.isfinite(parsed):
        raise ValueError(f"{path} must be finite")
    return parsed


__all__ = ["LABEL_VALUE_MAX_LEN", "JSONScalar", "JSONValue", "MetricsRegistry"]
