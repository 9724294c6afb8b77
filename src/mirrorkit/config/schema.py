"""
mirrorkit — configuration schema and validation.

File: src/mirrorkit/config/schema.py
Last updated: 2026-10-18

Purpose
- Define configuration defaults and strict validation rules for
  ``mirrorkit.toml``.

What should be included in this file
- Schema versioning and migration guidance.
- Validation rules for required fields, types, enums and numeric bounds.
- Profile overlay validation and deterministic deep-merge helpers.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Support ``dev`` and ``prod`` profile overlays plus user-defined profiles.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, NotRequired, TypedDict

from mirrorkit.constants import CONFIG_SCHEMA_VERSION, DEFAULT_LOG_DIR

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
BUILTIN_PROFILE_NAMES: Final[tuple[str, ...]] = ("dev", "prod")
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")

_PROFILE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")
_PACKAGE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")

# Config paths normalized relative to the config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("resources", "base_dir"),
    ("observability", "log_dir"),
)

SETTINGS_SECTIONS: Final[tuple[str, ...]] = ("loader", "resources", "metrics", "observability")


class MetaConfig(TypedDict):
    schema_version: int


class LoaderConfig(TypedDict):
    development_mode: bool
    resource_cache_ttl_seconds: float
    preload_concurrency: int


class ResourcesConfig(TypedDict):
    base_dir: str
    search_roots: list[str]
    package_roots: dict[str, str]
    timeout_seconds: float
    content_cache_ttl_seconds: float


class MetricsConfig(TypedDict):
    detailed_tracking: bool
    max_recent_events: int


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_dir: str
    log_to_stdout: bool


class ProfileOverlay(TypedDict, total=False):
    loader: dict[str, object]
    resources: dict[str, object]
    metrics: dict[str, object]
    observability: dict[str, object]


class MirrorkitConfig(TypedDict):
    meta: MetaConfig
    loader: LoaderConfig
    resources: ResourcesConfig
    metrics: MetricsConfig
    observability: ObservabilityConfig
    profiles: NotRequired[dict[str, ProfileOverlay]]


DEFAULT_CONFIG: Final[MirrorkitConfig] = {
    "meta": {"schema_version": ConfigSchemaVersion},
    "loader": {
        "development_mode": False,
        "resource_cache_ttl_seconds": 300.0,
        "preload_concurrency": 8,
    },
    "resources": {
        "base_dir": ".",
        "search_roots": ["resources", "assets", "static"],
        "package_roots": {},
        "timeout_seconds": 10.0,
        "content_cache_ttl_seconds": 600.0,
    },
    "metrics": {
        "detailed_tracking": False,
        "max_recent_events": 1000,
    },
    "observability": {
        "log_level": "INFO",
        "log_dir": DEFAULT_LOG_DIR.as_posix(),
        "log_to_stdout": False,
    },
    "profiles": {
        "dev": {
            "loader": {"development_mode": True},
            "metrics": {"detailed_tracking": True},
            "observability": {"log_level": "DEBUG"},
        },
        "prod": {
            "loader": {"development_mode": False},
            "metrics": {"detailed_tracking": False},
            "observability": {"log_level": "WARNING"},
        },
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


_SectionValidator = Callable[[Mapping[str, object], str, _IssueCollector, bool], dict[str, Any]]


def default_config() -> MirrorkitConfig:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade mirrorkit.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade mirrorkit"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto ``base``; mappings merge, everything else replaces."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def apply_profile_overlay(config: Mapping[str, object], profile: str | None) -> dict[str, Any]:
    """Apply a named profile overlay and re-validate the result."""

    materialized = _deep_copy_mapping(config)
    selected = profile.strip() if profile is not None else ""
    if not selected:
        return materialized

    profiles = materialized.get("profiles")
    overlay = profiles.get(selected) if isinstance(profiles, Mapping) else None
    if overlay is None:
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", f"profile {selected!r} is not defined"),)
        )
    if not isinstance(overlay, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue(f"profiles.{selected}", "profile overlay must be an object"),)
        )
    return assert_valid_config(merge_config(materialized, overlay), active_profile=selected)


def validate_config(
    config: Mapping[str, object] | object,
    *,
    active_profile: str | None = None,
) -> ConfigValidationResult:
    """Validate config and return structured issues with dotted paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, issues)

    selected = active_profile.strip() if isinstance(active_profile, str) else None
    if selected:
        profiles = normalized.get("profiles", {})
        if selected not in profiles:
            issues.add("profiles", f"profile {selected!r} is not defined")

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(
    config: Mapping[str, object] | object,
    *,
    active_profile: str | None = None,
) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config, active_profile=active_profile)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    allowed = {"meta", *SETTINGS_SECTIONS, "profiles"}
    _reject_unknown_keys(payload, allowed, "", issues)
    _require_keys(payload, {"meta", *SETTINGS_SECTIONS}, "", issues)

    out: dict[str, Any] = {}
    meta = payload.get("meta")
    if meta is not None:
        meta_obj = _as_object(meta, "meta", issues)
        if meta_obj is not None:
            out["meta"] = _validate_meta(meta_obj, "meta", issues)

    for section in SETTINGS_SECTIONS:
        raw = payload.get(section)
        if raw is None:
            continue
        section_obj = _as_object(raw, section, issues)
        if section_obj is not None:
            out[section] = _VALIDATORS[section](section_obj, section, issues, False)

    profiles = payload.get("profiles")
    if profiles is not None:
        profiles_obj = _as_object(profiles, "profiles", issues)
        if profiles_obj is not None:
            out["profiles"] = _validate_profiles(profiles_obj, "profiles", issues)
    return out


def _validate_meta(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    _require_keys(payload, {"schema_version"}, path, issues)
    out: dict[str, Any] = {}
    if "schema_version" in payload:
        version_path = _join(path, "schema_version")
        parsed = _as_int(payload["schema_version"], version_path, issues, minimum=1)
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != ConfigSchemaVersion:
                issues.add(version_path, migration_guidance(parsed))
    return out


def _validate_loader(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, partial: bool
) -> dict[str, Any]:
    allowed = {"development_mode", "resource_cache_ttl_seconds", "preload_concurrency"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "development_mode" in payload:
        field_path = _join(path, "development_mode")
        _store(out, "development_mode", _as_bool(payload["development_mode"], field_path, issues))
    if "resource_cache_ttl_seconds" in payload:
        ttl_path = _join(path, "resource_cache_ttl_seconds")
        ttl = _as_float(payload["resource_cache_ttl_seconds"], ttl_path, issues, minimum=0.0)
        if ttl is not None and ttl == 0.0:
            issues.add(ttl_path, "must be > 0")
            ttl = None
        _store(out, "resource_cache_ttl_seconds", ttl)
    if "preload_concurrency" in payload:
        _store(
            out,
            "preload_concurrency",
            _as_int(
                payload["preload_concurrency"],
                _join(path, "preload_concurrency"),
                issues,
                minimum=1,
            ),
        )
    return out


def _validate_resources(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, partial: bool
) -> dict[str, Any]:
    allowed = {
        "base_dir",
        "search_roots",
        "package_roots",
        "timeout_seconds",
        "content_cache_ttl_seconds",
    }
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "base_dir" in payload:
        field_path = _join(path, "base_dir")
        _store(out, "base_dir", _as_path_text(payload["base_dir"], field_path, issues))

    if "search_roots" in payload:
        roots_path = _join(path, "search_roots")
        raw_roots = payload["search_roots"]
        if isinstance(raw_roots, str) or not isinstance(raw_roots, Sequence):
            issues.add(roots_path, f"expected array of strings, got {type(raw_roots).__name__}")
        else:
            roots = [
                _as_path_text(item, f"{roots_path}[{index}]", issues)
                for index, item in enumerate(raw_roots)
            ]
            if all(root is not None for root in roots):
                out["search_roots"] = list(dict.fromkeys(root for root in roots if root))

    if "package_roots" in payload:
        package_path = _join(path, "package_roots")
        raw_packages = _as_object(payload["package_roots"], package_path, issues)
        if raw_packages is not None:
            packages: dict[str, str] = {}
            for name in sorted(raw_packages):
                entry_path = _join(package_path, name)
                if not _PACKAGE_NAME_PATTERN.fullmatch(name):
                    issues.add(entry_path, "must be an importable package name")
                    continue
                root = _as_path_text(raw_packages[name], entry_path, issues)
                if root is not None:
                    packages[name] = root
            out["package_roots"] = packages

    if "timeout_seconds" in payload:
        timeout_path = _join(path, "timeout_seconds")
        timeout = _as_float(payload["timeout_seconds"], timeout_path, issues, minimum=0.0)
        if timeout is not None and timeout == 0.0:
            issues.add(timeout_path, "must be > 0")
            timeout = None
        _store(out, "timeout_seconds", timeout)

    if "content_cache_ttl_seconds" in payload:
        _store(
            out,
            "content_cache_ttl_seconds",
            _as_float(
                payload["content_cache_ttl_seconds"],
                _join(path, "content_cache_ttl_seconds"),
                issues,
                minimum=0.0,
            ),
        )
    return out


def _validate_metrics(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, partial: bool
) -> dict[str, Any]:
    allowed = {"detailed_tracking", "max_recent_events"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "detailed_tracking" in payload:
        tracking = _as_bool(payload["detailed_tracking"], _join(path, "detailed_tracking"), issues)
        _store(out, "detailed_tracking", tracking)
    if "max_recent_events" in payload:
        _store(
            out,
            "max_recent_events",
            _as_int(
                payload["max_recent_events"], _join(path, "max_recent_events"), issues, minimum=1
            ),
        )
    return out


def _validate_observability(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, partial: bool
) -> dict[str, Any]:
    allowed = {"log_level", "log_dir", "log_to_stdout"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "log_level" in payload:
        raw_level = payload["log_level"]
        level = raw_level.upper() if isinstance(raw_level, str) else raw_level
        field_path = _join(path, "log_level")
        _store(out, "log_level", _as_enum(level, field_path, issues, allowed_values=LOG_LEVELS))
    if "log_dir" in payload:
        _store(out, "log_dir", _as_path_text(payload["log_dir"], _join(path, "log_dir"), issues))
    if "log_to_stdout" in payload:
        field_path = _join(path, "log_to_stdout")
        _store(out, "log_to_stdout", _as_bool(payload["log_to_stdout"], field_path, issues))
    return out


_VALIDATORS: Final[dict[str, _SectionValidator]] = {
    "loader": _validate_loader,
    "resources": _validate_resources,
    "metrics": _validate_metrics,
    "observability": _validate_observability,
}


def _validate_profiles(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for profile_name in sorted(payload):
        profile_path = _join(path, profile_name)
        if not _PROFILE_NAME_PATTERN.fullmatch(profile_name):
            issues.add(profile_path, "profile name must match ^[a-z][a-z0-9_-]*$")
            continue
        profile_obj = _as_object(payload[profile_name], profile_path, issues)
        if profile_obj is None:
            continue
        _reject_unknown_keys(profile_obj, set(SETTINGS_SECTIONS), profile_path, issues)
        overlay: dict[str, Any] = {}
        for section in SETTINGS_SECTIONS:
            raw = profile_obj.get(section)
            if raw is None:
                continue
            section_path = _join(profile_path, section)
            section_obj = _as_object(raw, section_path, issues)
            if section_obj is not None:
                overlay[section] = _VALIDATORS[section](section_obj, section_path, issues, True)
        out[profile_name] = overlay
    return out


def _store(out: dict[str, Any], key: str, value: object | None) -> None:
    if value is not None:
        out[key] = value


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            nested = existing if isinstance(existing, dict) else {}
            if isinstance(existing, Mapping) and not isinstance(existing, dict):
                nested = _deep_copy_mapping(existing)
            _merge_into(nested, value)
            target[key] = nested
        else:
            target[key] = _deep_copy_value(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    return {key: _deep_copy_value(value[key]) for key in sorted(value)}


def _deep_copy_value(value: object) -> Any:
    if isinstance(value, Mapping):
        return {key: _deep_copy_value(item) for key, item in value.items() if isinstance(key, str)}
    if isinstance(value, list):
        return [_deep_copy_value(item) for item in value]
    if isinstance(value, tuple):
        return tuple(_deep_copy_value(item) for item in value)
    return copy.deepcopy(value)


__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "DEFAULT_CONFIG",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "SETTINGS_SECTIONS",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "MirrorkitConfig",
    "ProfileOverlay",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
