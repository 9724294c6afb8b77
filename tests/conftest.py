"""Shared fixtures for the mirrorkit test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from mirrorkit.loader import reset_system_class_loader
from mirrorkit.observability import shutdown_logging

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture(autouse=True)
def _fresh_process_state() -> Iterator[None]:
    reset_system_class_loader()
    yield
    shutdown_logging()
    reset_system_class_loader()
