"""
mirrorkit — unit tests for config schema validation

File: tests/unit/config/test_config_schema.py
Last updated: 2026-10-18

Purpose
- Validate structured issues, profile overlays and merge helpers.
"""

from __future__ import annotations

import pytest

from mirrorkit.config import (
    BUILTIN_PROFILE_NAMES,
    DEFAULT_CONFIG,
    ConfigSchemaVersion,
    ConfigValidationError,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    validate_config,
)


def _issues(payload: object) -> dict[str, str]:
    result = validate_config(payload)
    assert not result.is_valid
    return {issue.path: issue.message for issue in result.issues}


def test_defaults_are_valid_and_copied() -> None:
    config = default_config()

    assert validate_config(config).is_valid
    config["loader"]["preload_concurrency"] = 99
    assert DEFAULT_CONFIG["loader"]["preload_concurrency"] == 8
    assert set(BUILTIN_PROFILE_NAMES) <= set(config["profiles"])


def test_non_object_root_is_rejected() -> None:
    assert _issues(["not", "a", "mapping"]) == {"<root>": "expected object, got list"}


def test_missing_and_unknown_fields_are_reported_with_paths() -> None:
    config = default_config()
    del config["metrics"]["max_recent_events"]
    payload = merge_config(config, {"loader": {"eager": True}, "extras": {}})

    issues = _issues(payload)

    assert issues["metrics.max_recent_events"] == "missing required field"
    assert issues["loader.eager"] == "unknown field"
    assert issues["extras"] == "unknown field"


@pytest.mark.parametrize(
    ("overlay", "path", "message"),
    [
        (
            {"loader": {"development_mode": "yes"}},
            "loader.development_mode",
            "expected boolean",
        ),
        (
            {"loader": {"preload_concurrency": 0}},
            "loader.preload_concurrency",
            "must be >= 1",
        ),
        (
            {"loader": {"resource_cache_ttl_seconds": 0}},
            "loader.resource_cache_ttl_seconds",
            "must be > 0",
        ),
        (
            {"resources": {"timeout_seconds": float("nan")}},
            "resources.timeout_seconds",
            "must be finite",
        ),
        (
            {"resources": {"search_roots": "resources"}},
            "resources.search_roots",
            "expected array",
        ),
        (
            {"resources": {"base_dir": "  "}},
            "resources.base_dir",
            "must not be empty",
        ),
        (
            {"resources": {"package_roots": {"not-a-package": "x"}}},
            "resources.package_roots.not-a-package",
            "importable package name",
        ),
        (
            {"metrics": {"max_recent_events": True}},
            "metrics.max_recent_events",
            "expected integer",
        ),
        (
            {"observability": {"log_level": "LOUD"}},
            "observability.log_level",
            "invalid value 'LOUD'",
        ),
    ],
)
def test_field_rules(overlay: dict[str, object], path: str, message: str) -> None:
    issues = _issues(merge_config(default_config(), overlay))

    assert message in issues[path]


def test_log_level_is_case_insensitive() -> None:
    overlay = {"observability": {"log_level": "debug"}}
    config = assert_valid_config(merge_config(default_config(), overlay))

    assert config["observability"]["log_level"] == "DEBUG"


def test_schema_version_mismatch_gives_migration_guidance() -> None:
    payload = merge_config(default_config(), {"meta": {"schema_version": ConfigSchemaVersion + 1}})

    issues = _issues(payload)

    assert "newer than supported" in issues["meta.schema_version"]
    assert "older than supported" in migration_guidance(0)
    assert migration_guidance(ConfigSchemaVersion) == "schema version is current"


def test_profile_names_and_overlays_are_validated() -> None:
    payload = merge_config(
        default_config(),
        {
            "profiles": {
                "Bad Name": {},
                "ci": {"loader": {"preload_concurrency": -1}, "network": {}},
            }
        },
    )

    issues = _issues(payload)

    assert "profile name must match" in issues["profiles.Bad Name"]
    assert issues["profiles.ci.loader.preload_concurrency"] == "must be >= 1"
    assert issues["profiles.ci.network"] == "unknown field"


def test_profile_overlay_merges_partial_sections() -> None:
    config = apply_profile_overlay(default_config(), "dev")

    assert config["loader"]["development_mode"] is True
    assert config["loader"]["preload_concurrency"] == 8
    assert config["observability"]["log_level"] == "DEBUG"
    assert apply_profile_overlay(config, None) == config
    assert apply_profile_overlay(config, "  ") == config


def test_unknown_profile_overlay_raises() -> None:
    with pytest.raises(ConfigValidationError) as excinfo:
        apply_profile_overlay(default_config(), "staging")

    assert excinfo.value.issues[0].path == "profiles"
    assert "invalid config:" in str(excinfo.value)


def test_active_profile_must_exist() -> None:
    result = validate_config(default_config(), active_profile="qa")

    assert not result.is_valid
    assert result.issues[0].message == "profile 'qa' is not defined"


def test_merge_config_deep_merges_and_does_not_alias() -> None:
    base = {"a": {"b": 1, "c": [1, 2]}, "d": 1}
    overlay = {"a": {"b": 2}, "e": {"f": 3}}

    merged = merge_config(base, overlay)
    merged["a"]["c"].append(3)

    assert merged == {"a": {"b": 2, "c": [1, 2, 3]}, "d": 1, "e": {"f": 3}}
    assert base["a"]["c"] == [1, 2]
