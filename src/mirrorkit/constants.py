"""Stable constants shared across mirrorkit packages."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

PROJECT_NAME: Final[str] = "mirrorkit"

# Schema version of mirrorkit.toml.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Default runtime paths (relative to the config file unless overridden).
DEFAULT_LOG_DIR: Final[PurePosixPath] = PurePosixPath(".mirrorkit/logs")

# Separates module and class in python: class names.
MEMBER_SEPARATOR: Final[str] = "#"

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_LOG_DIR",
    "MEMBER_SEPARATOR",
    "PROJECT_NAME",
]
