"""
sandbox-integrity — configuration schema and validation.

File: src/sandbox_integrity/config/schema.py
Last updated: 2026-10-17

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Schema versioning and migration guidance.
- Validation rules for required fields, types, enums, and numeric constraints.
- Deterministic deep-merge helpers.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Reject unknown keys so typos in ``integrity.toml`` fail loudly.

Non-functional requirements
- Keep rules deterministic and easy to audit.
- Preserve backwards compatibility through explicit migration messages.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from sandbox_integrity.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_EXECUTABLE_ALIASES,
    DEFAULT_SANDBOX_DIRNAME,
    DEFAULT_SHORTCUT_DESCRIPTION,
    LOG_DIR,
    MANIFEST_ANCESTOR_LEVELS,
    MANIFEST_FILENAMES,
    RESERVED_FILENAMES,
    RESOLVER_ANCESTOR_LEVELS,
    RESOLVER_MARKERS,
    RESOLVER_MAX_DEPTH,
    RESOLVER_MAX_ENTRIES,
    RESOLVER_SUBFOLDERS,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("paths", "sandbox_root"),
    ("paths", "install_root"),
    ("resolver", "ceiling"),
    ("observability", "log_dir"),
    ("report", "output_dir"),
)
PATH_LIST_FIELDS: Final[tuple[tuple[str, ...], ...]] = (("manifest", "hints"),)

_ALIAS_KEY_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class MetaConfig(TypedDict):
    schema_version: int


class PathsConfig(TypedDict):
    sandbox_root: str
    install_root: str


class ManifestConfig(TypedDict):
    filenames: list[str]
    ancestor_levels: int
    hints: list[str]


class ResolverConfig(TypedDict, total=False):
    ancestor_levels: int
    max_depth: int
    max_entries: int
    subfolders: list[str]
    markers: list[str]
    ceiling: str
    aliases: dict[str, str]


class RepairConfig(TypedDict):
    reserved_names: list[str]
    shortcut_description: str
    verify_integrity: bool


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_dir: str
    log_to_stdout: bool


class ReportConfig(TypedDict):
    output_dir: str
    write_file: bool


class IntegrityConfig(TypedDict):
    meta: MetaConfig
    paths: PathsConfig
    manifest: ManifestConfig
    resolver: ResolverConfig
    repair: RepairConfig
    observability: ObservabilityConfig
    report: ReportConfig


DEFAULT_CONFIG: Final[IntegrityConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "paths": {
        "sandbox_root": f"~/Desktop/{DEFAULT_SANDBOX_DIRNAME}",
        "install_root": ".",
    },
    "manifest": {
        "filenames": list(MANIFEST_FILENAMES),
        "ancestor_levels": MANIFEST_ANCESTOR_LEVELS,
        "hints": [],
    },
    "resolver": {
        "ancestor_levels": RESOLVER_ANCESTOR_LEVELS,
        "max_depth": RESOLVER_MAX_DEPTH,
        "max_entries": RESOLVER_MAX_ENTRIES,
        "subfolders": [str(item) for item in RESOLVER_SUBFOLDERS],
        "markers": list(RESOLVER_MARKERS),
        "aliases": dict(DEFAULT_EXECUTABLE_ALIASES),
    },
    "repair": {
        "reserved_names": list(RESERVED_FILENAMES),
        "shortcut_description": DEFAULT_SHORTCUT_DESCRIPTION,
        "verify_integrity": True,
    },
    "observability": {
        "log_level": "INFO",
        "log_dir": str(LOG_DIR),
        "log_to_stdout": False,
    },
    "report": {
        "output_dir": "reports",
        "write_file": False,
    },
}

_REQUIRED_SECTIONS: Final[frozenset[str]] = frozenset(
    {"meta", "paths", "manifest", "resolver", "repair", "observability", "report"}
)


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


def default_config() -> IntegrityConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Return deterministic migration guidance for schema version mismatch."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade integrity.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the sandbox-integrity runtime"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, "", issues)
    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_root(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    _reject_unknown_keys(payload, set(_REQUIRED_SECTIONS), path, issues)
    _require_keys(payload, set(_REQUIRED_SECTIONS), path, issues)

    validators: dict[str, Callable[[dict[str, object], str, _IssueCollector], dict[str, Any]]] = {
        "meta": _validate_meta,
        "paths": _validate_paths,
        "manifest": _validate_manifest,
        "resolver": _validate_resolver,
        "repair": _validate_repair,
        "observability": _validate_observability,
        "report": _validate_report,
    }

    out: dict[str, Any] = {}
    for key in sorted(validators):
        _section(payload, key=key, path=path, issues=issues, validator=validators[key], out=out)
    return out


def _section(
    payload: Mapping[str, object],
    *,
    key: str,
    path: str,
    issues: _IssueCollector,
    validator: Callable[[dict[str, object], str, _IssueCollector], dict[str, Any]],
    out: dict[str, Any],
) -> None:
    raw = payload.get(key)
    if raw is None:
        return
    section_path = _join(path, key)
    section_obj = _as_object(raw, section_path, issues)
    if section_obj is None:
        return
    out[key] = validator(section_obj, section_path, issues)


def _validate_meta(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    allowed = {"schema_version"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "schema_version" in payload:
        parsed = _as_int(
            payload["schema_version"], _join(path, "schema_version"), issues, minimum=1
        )
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != ConfigSchemaVersion:
                issues.add(_join(path, "schema_version"), migration_guidance(parsed))
    return out


def _validate_paths(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    allowed = {"sandbox_root", "install_root"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    for key in sorted(allowed):
        if key in payload:
            parsed = _as_path_text(payload[key], _join(path, key), issues)
            if parsed is not None:
                out[key] = parsed
    return out


def _validate_manifest(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    allowed = {"filenames", "ancestor_levels", "hints"}
    _reject_unknown_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "filenames" in payload:
        filenames = _as_str_list(payload["filenames"], _join(path, "filenames"), issues)
        if filenames is not None:
            if not filenames:
                issues.add(_join(path, "filenames"), "must not be empty")
            for index, name in enumerate(filenames):
                if "/" in name or "\\" in name:
                    issues.add(f"{_join(path, 'filenames')}[{index}]", "must be a bare file name")
            out["filenames"] = filenames
    if "ancestor_levels" in payload:
        parsed = _as_int(
            payload["ancestor_levels"], _join(path, "ancestor_levels"), issues, minimum=0
        )
        if parsed is not None:
            out["ancestor_levels"] = parsed
    if "hints" in payload:
        hints = _as_str_list(payload["hints"], _join(path, "hints"), issues)
        if hints is not None:
            out["hints"] = hints
    return out


def _validate_resolver(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    allowed = {
        "ancestor_levels",
        "max_depth",
        "max_entries",
        "subfolders",
        "markers",
        "ceiling",
        "aliases",
    }
    _reject_unknown_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    for key, minimum in (("ancestor_levels", 0), ("max_depth", 0), ("max_entries", 1)):
        if key in payload:
            parsed = _as_int(payload[key], _join(path, key), issues, minimum=minimum)
            if parsed is not None:
                out[key] = parsed

    for key in ("subfolders", "markers"):
        if key in payload:
            parsed_list = _as_str_list(payload[key], _join(path, key), issues)
            if parsed_list is not None:
                out[key] = parsed_list

    if "ceiling" in payload:
        parsed_ceiling = _as_path_text(payload["ceiling"], _join(path, "ceiling"), issues)
        if parsed_ceiling is not None:
            out["ceiling"] = parsed_ceiling

    if "aliases" in payload:
        aliases_path = _join(path, "aliases")
        aliases_obj = _as_object(payload["aliases"], aliases_path, issues)
        if aliases_obj is not None:
            aliases: dict[str, str] = {}
            for key in sorted(aliases_obj):
                key_path = _join(aliases_path, key)
                if not _ALIAS_KEY_PATTERN.fullmatch(key):
                    issues.add(key_path, "alias name must be alphanumeric (with _ . -)")
                    continue
                value = _as_str(aliases_obj[key], key_path, issues)
                if value is not None:
                    aliases[key.lower()] = value
            out["aliases"] = aliases
    return out


def _validate_repair(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    allowed = {"reserved_names", "shortcut_description", "verify_integrity"}
    _reject_unknown_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "reserved_names" in payload:
        names = _as_str_list(payload["reserved_names"], _join(path, "reserved_names"), issues)
        if names is not None:
            out["reserved_names"] = names
    if "shortcut_description" in payload:
        value = payload["shortcut_description"]
        if isinstance(value, str):
            out["shortcut_description"] = value.strip()
        else:
            issues.add(
                _join(path, "shortcut_description"),
                f"expected string, got {type(value).__name__}",
            )
    if "verify_integrity" in payload:
        parsed = _as_bool(payload["verify_integrity"], _join(path, "verify_integrity"), issues)
        if parsed is not None:
            out["verify_integrity"] = parsed
    return out


def _validate_observability(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    allowed = {"log_level", "log_dir", "log_to_stdout"}
    _reject_unknown_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}

    if "log_level" in payload:
        parsed_log_level = _as_enum(
            payload["log_level"],
            _join(path, "log_level"),
            issues,
            allowed_values=("DEBUG", "INFO", "WARNING", "ERROR"),
        )
        if parsed_log_level is not None:
            out["log_level"] = parsed_log_level

    if "log_dir" in payload:
        parsed_log_dir = _as_path_text(payload["log_dir"], _join(path, "log_dir"), issues)
        if parsed_log_dir is not None:
            out["log_dir"] = parsed_log_dir

    if "log_to_stdout" in payload:
        parsed_stdout = _as_bool(payload["log_to_stdout"], _join(path, "log_to_stdout"), issues)
        if parsed_stdout is not None:
            out["log_to_stdout"] = parsed_stdout

    return out


def _validate_report(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    allowed = {"output_dir", "write_file"}
    _reject_unknown_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "output_dir" in payload:
        parsed_dir = _as_path_text(payload["output_dir"], _join(path, "output_dir"), issues)
        if parsed_dir is not None:
            out["output_dir"] = parsed_dir
    if "write_file" in payload:
        parsed_write = _as_bool(payload["write_file"], _join(path, "write_file"), issues)
        if parsed_write is not None:
            out["write_file"] = parsed_write
    return out


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


def _as_str_list(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if not isinstance(value, (list, tuple)):
        issues.add(path, f"expected array of strings, got {type(value).__name__}")
        return None
    out: list[str] = []
    for index, item in enumerate(value):
        parsed = _as_str(item, f"{path}[{index}]", issues)
        if parsed is not None:
            out.append(parsed)
    return out


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
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = _deep_copy_value(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value):
        out[key] = _deep_copy_value(value[key])
    return out


def _deep_copy_value(value: object) -> Any:
    if isinstance(value, Mapping):
        return {key: _deep_copy_value(item) for key, item in value.items() if isinstance(key, str)}
    if isinstance(value, list):
        return [_deep_copy_value(item) for item in value]
    if isinstance(value, tuple):
        return tuple(_deep_copy_value(item) for item in value)
    return copy.deepcopy(value)


__all__ = [
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "IntegrityConfig",
    "PATH_FIELDS",
    "PATH_LIST_FIELDS",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
