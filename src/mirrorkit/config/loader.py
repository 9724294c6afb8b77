"""
mirrorkit — runtime config loader.

File: src/mirrorkit/config/loader.py
Last updated: 2026-10-18

Purpose
- Load effective runtime config from defaults, TOML file, env vars and CLI
  overrides.

What should be included in this file
- Precedence logic: CLI > env (MIRRORKIT_) > file > defaults.
- TOML loading via ``tomllib``.
- Environment variables MIRRORKIT_<SECTION>_<SETTING> coerced by the type of
  the setting they replace; array settings accept comma-separated values.
  Keyed tables are file-only.
- CLI overrides as dotted keys or whole section tables.
- Path normalization relative to the config file location.

Functional requirements
- Reject invalid config via schema validation.
- Support profile overlays selected by argument, CLI or MIRRORKIT_PROFILE.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from mirrorkit.config.schema import (
    PATH_FIELDS,
    SETTINGS_SECTIONS,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "mirrorkit.toml"
ENV_PREFIX: Final[str] = "MIRRORKIT_"

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})


class ConfigLoadError(ValueError):
    """Raised when config cannot be loaded or overrides cannot be coerced."""


def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Load effective config with precedence CLI > env > file > defaults."""

    source = (
        Path.cwd() / DEFAULT_CONFIG_FILE
        if config_path is None
        else Path(config_path).expanduser()
    ).resolve()
    env_map = os.environ if environ is None else environ
    overrides = dict(cli_overrides or {})
    active_profile = _select_profile(profile, overrides.pop("profile", None), env_map)

    config = assert_valid_config(
        merge_config(default_config(), _read_toml(source, required=config_path is not None))
    )
    if active_profile is not None:
        config = apply_profile_overlay(config, active_profile)
    config = merge_config(config, _collect_env_overrides(config, env_map))
    config = merge_config(config, _materialize_cli_overrides(overrides))
    config = assert_valid_config(config, active_profile=active_profile)
    return normalize_paths(config, base_dir=source.parent)


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Make configured paths absolute relative to ``base_dir``."""

    materialized = merge_config({}, config)
    for section, setting in PATH_FIELDS:
        table = materialized.get(section)
        if isinstance(table, dict) and isinstance(table.get(setting), str):
            table[setting] = _absolute_posix(table[setting], base_dir)

    resources = materialized.get("resources")
    if isinstance(resources, dict) and isinstance(resources.get("package_roots"), dict):
        resources["package_roots"] = {
            name: _absolute_posix(root, base_dir)
            for name, root in sorted(resources["package_roots"].items())
            if isinstance(root, str)
        }
    return materialized


def dump_effective_config(config: Mapping[str, object]) -> str:
    """Return a deterministic JSON dump of ``config`` without profile overlays."""

    effective = {key: value for key, value in config.items() if key != "profiles"}
    return json.dumps(effective, sort_keys=True, indent=2, ensure_ascii=False)


def _read_toml(path: Path, *, required: bool) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except FileNotFoundError:
        if required:
            raise ConfigLoadError(f"config file not found: {path}") from None
        return {}
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _select_profile(
    argument: str | None, from_cli: object, environ: Mapping[str, str]
) -> str | None:
    if from_cli is not None and not isinstance(from_cli, str):
        raise ConfigLoadError("cli override 'profile' must be a string")
    candidates: tuple[str | None, ...] = (
        argument,
        from_cli if isinstance(from_cli, str) else None,
        environ.get(f"{ENV_PREFIX}PROFILE"),
    )
    for candidate in candidates:
        if candidate is not None:
            return candidate.strip() or None
    return None


def _collect_env_overrides(
    config: Mapping[str, object], environ: Mapping[str, str]
) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for section in SETTINGS_SECTIONS:
        settings = config.get(section)
        if not isinstance(settings, Mapping):
            continue
        for key in sorted(settings):
            current = settings[key]
            if isinstance(current, Mapping):
                # Keyed tables such as resources.package_roots are file-only.
                continue
            env_name = f"{ENV_PREFIX}{section}_{key}".upper()
            raw = environ.get(env_name)
            if raw is not None:
                value = _coerce_setting(raw.strip(), current, env_name)
                overrides.setdefault(section, {})[key] = value
    return overrides


def _coerce_setting(value: str, current: object, env_name: str) -> object:
    """Parse ``value`` into the type of the setting it replaces."""

    if isinstance(current, bool):
        lowered = value.lower()
        if lowered in _BOOLEAN_TRUE or lowered in _BOOLEAN_FALSE:
            return lowered in _BOOLEAN_TRUE
        raise ConfigLoadError(f"{env_name} must be a boolean (true/false/1/0/yes/no/on/off)")
    if isinstance(current, list):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(current, int | float):
        parse, noun = (int, "an integer") if isinstance(current, int) else (float, "a number")
        try:
            return parse(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} must be {noun}") from exc
    return value


def _materialize_cli_overrides(cli_overrides: Mapping[str, object]) -> dict[str, Any]:
    """Expand dotted ``section.setting`` keys; whole sections may be given as tables."""

    payload: dict[str, Any] = {}
    for key, value in sorted(cli_overrides.items()):
        parts = [part for part in key.split(".") if part]
        if not parts:
            raise ConfigLoadError(f"invalid CLI override key {key!r}")
        override: dict[str, Any] = {parts[-1]: value}
        for part in reversed(parts[:-1]):
            override = {part: override}
        payload = merge_config(payload, override)
    return payload


def _absolute_posix(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(str(candidate))).as_posix()


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ConfigLoadError",
    "dump_effective_config",
    "load_config",
    "normalize_paths",
]
