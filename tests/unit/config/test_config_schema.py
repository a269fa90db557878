"""
sandbox-integrity — unit tests for config schema validation

File: tests/unit/config/test_config_schema.py
Last updated: 2026-10-17

Purpose
- Validate defaults, structured issues, and deterministic merging.
"""

from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from sandbox_integrity.config.schema import (
    ConfigSchemaVersion,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    validate_config,
)


def _issue_paths(config: object) -> list[str]:
    return [issue.path for issue in validate_config(config).issues]


def test_default_config_is_valid_and_copied() -> None:
    first = default_config()
    first["repair"]["reserved_names"].append("EXTRA.txt")

    assert validate_config(default_config()).is_valid
    assert "EXTRA.txt" not in default_config()["repair"]["reserved_names"]


def test_missing_sections_and_unknown_root_keys_are_reported() -> None:
    config = default_config()
    del config["report"]  # type: ignore[misc]
    payload = dict(config, profiles={})

    paths = _issue_paths(payload)

    assert "report" in paths
    assert "profiles" in paths


def test_type_and_range_errors_carry_dotted_paths() -> None:
    config = merge_config(
        default_config(),
        {
            "manifest": {"ancestor_levels": -1, "filenames": ["nested/manifest.json"]},
            "resolver": {"max_entries": 0, "markers": ["bin", 3]},
            "observability": {"log_level": "TRACE", "log_to_stdout": "yes"},
        },
    )

    paths = _issue_paths(config)

    assert "manifest.ancestor_levels" in paths
    assert "manifest.filenames[0]" in paths
    assert "resolver.max_entries" in paths
    assert "resolver.markers[1]" in paths
    assert "observability.log_level" in paths
    assert "observability.log_to_stdout" in paths


def test_alias_keys_are_validated_and_lowercased() -> None:
    good = merge_config(default_config(), {"resolver": {"aliases": {"Maps": "OOS.Maps"}}})
    bad = merge_config(default_config(), {"resolver": {"aliases": {"bad name": "x"}}})

    assert assert_valid_config(good)["resolver"]["aliases"]["maps"] == "OOS.Maps"
    assert "resolver.aliases.bad name" in _issue_paths(bad)


def test_schema_version_mismatch_includes_migration_guidance() -> None:
    config = merge_config(default_config(), {"meta": {"schema_version": ConfigSchemaVersion + 1}})

    (issue,) = validate_config(config).issues

    assert issue.path == "meta.schema_version"
    assert "upgrade the sandbox-integrity runtime" in issue.message
    assert migration_guidance(ConfigSchemaVersion) == "schema version is current"


def test_non_mapping_root_is_rejected() -> None:
    result = validate_config(["not", "a", "table"])

    assert result.is_valid is False
    assert result.issues[0].path == "<root>"


@settings(max_examples=50, deadline=None)
@given(
    levels=st.integers(min_value=0, max_value=20),
    verify=st.booleans(),
    description=st.text(alphabet="abcdefghij ", min_size=1, max_size=20),
)
def test_property_merge_then_validate_keeps_overlay_values(
    levels: int, verify: bool, description: str
) -> None:
    overlay = {
        "manifest": {"ancestor_levels": levels},
        "repair": {"verify_integrity": verify, "shortcut_description": description},
    }

    merged = assert_valid_config(merge_config(default_config(), overlay))

    assert merged["manifest"]["ancestor_levels"] == levels
    assert merged["repair"]["verify_integrity"] is verify
    assert merged["repair"]["shortcut_description"] == description.strip()
    assert merged["manifest"]["filenames"] == default_config()["manifest"]["filenames"]
