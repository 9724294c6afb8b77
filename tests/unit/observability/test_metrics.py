"""
mirrorkit — unit tests for the metrics registry

File: tests/unit/observability/test_metrics.py
Last updated: 2026-10-18

Purpose
- Verify thread-safe metric updates, label aggregation and deterministic
  snapshot/export behavior.

What this test file should cover
- Thread-safe counter increments.
- Aggregation across label sets.
- Deterministic snapshot key stability.

Functional requirements
- Offline operation.

Non-functional requirements
- Deterministic outputs.
"""

from __future__ import annotations

import json
import math
import threading

import pytest

from mirrorkit.observability.metrics import MetricsRegistry


def test_thread_safe_counter_increments() -> None:
    registry = MetricsRegistry()

    def worker() -> None:
        for _ in range(2000):
            registry.inc("class_loads", 1, labels={"class": "a.A"})

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert registry.get_counter("class_loads", labels={"class": "a.A"}) == 12_000.0


def test_distributions_track_count_sum_and_bounds() -> None:
    registry = MetricsRegistry()
    for value in (0.3, 0.1, 0.2):
        registry.observe("class_load_seconds", value)

    distribution = registry.get_distribution("class_load_seconds")

    assert distribution is not None
    assert distribution["count"] == 3
    assert distribution["min"] == 0.1
    assert distribution["max"] == 0.3
    assert distribution["avg"] == pytest.approx(0.2)
    assert registry.get_distribution("never_observed") is None


def test_aggregates_fold_every_label_set() -> None:
    registry = MetricsRegistry()
    registry.inc("class_loads", labels={"class": "a.A"})
    registry.inc("class_loads", 2, labels={"class": "b.B"})
    registry.inc("class_loads", 4)
    registry.observe("class_load_seconds", 1.0, labels={"class": "a.A"})
    registry.observe("class_load_seconds", 3.0, labels={"class": "b.B"})

    assert registry.sum_counter("class_loads") == 7.0
    assert registry.counters_by_label("class_loads", "class") == {"a.A": 1.0, "b.B": 2.0}
    assert registry.sum_distribution("class_load_seconds") == (2, 4.0)
    by_class = registry.distributions_by_label("class_load_seconds", "class")
    assert sorted(by_class) == ["a.A", "b.B"]
    assert by_class["b.B"]["max"] == 3.0


def test_snapshot_is_deterministic_and_json_serializable() -> None:
    registry = MetricsRegistry()
    registry.inc("class_load_errors", 2, labels={"z": "9", "a": "1"})
    registry.observe("class_load_seconds", 10)
    registry.observe("class_load_seconds", 20)

    first = registry.snapshot()
    second = registry.snapshot()

    assert first == second
    assert first["counters"] == {"class_load_errors{a=1,z=9}": 2.0}
    assert isinstance(first["started_at"], str) and first["started_at"].endswith("Z")
    decoded = json.loads(registry.to_json(indent=2))
    assert decoded["distributions"]["class_load_seconds"]["avg"] == 15.0


def test_reset_clears_everything() -> None:
    registry = MetricsRegistry()
    registry.inc("class_loads")
    registry.observe("class_load_seconds", 1.0)

    registry.reset()

    assert registry.snapshot()["counters"] == {}
    assert registry.snapshot()["distributions"] == {}


@pytest.mark.parametrize(
    ("name", "amount", "labels"),
    [
        ("", 1, None),
        ("x" * 129, 1, None),
        ("class_loads", -1, None),
        ("class_loads", math.inf, None),
        ("class_loads", True, None),
        ("class_loads", 1, {"class": " "}),
        ("class_loads", 1, {"class": "x" * 513}),
    ],
)
def test_invalid_updates_are_rejected(
    name: str, amount: float, labels: dict[str, str] | None
) -> None:
    registry = MetricsRegistry()

    with pytest.raises(ValueError):
        registry.inc(name, amount, labels=labels)
