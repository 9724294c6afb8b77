"""Utility exports for concurrency helpers."""

from mirrorkit.utils.concurrency import (
    CancellationToken,
    KeyedLock,
    gather_bounded,
    run_with_timeout,
)

__all__ = [
    "CancellationToken",
    "KeyedLock",
    "gather_bounded",
    "run_with_timeout",
]
