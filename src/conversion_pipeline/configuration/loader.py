"""Configuration loader service."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import yaml

from .runtime_settings import (
    BackendSettings,
    LayoutRule,
    ProjectSettings,
    SourceLayout,
    TargetRoots,
)

DEFAULT_OUTPUT_ROOT = "output"
_TARGET_ROOT_NAMES = ("api", "ui", "shared")


class ConfigurationError(Exception):
    """Raised when the configuration file is invalid."""


def load_project_settings(config_path: Path | str | None) -> ProjectSettings:
    """Load and validate the project configuration file.

    The file is JSON; YAML is accepted as well since the parser reads both.
    Without a path, built-in defaults are returned with paths relative to the
    current working directory.
    """
    if config_path is None:
        return _settings_from_mapping({}, base_path=Path.cwd(), path=None)

    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    text = path.read_text(encoding="utf-8")
    try:
        parsed = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse configuration file: {exc}") from exc

    if parsed is None:
        parsed = {}

    if not isinstance(parsed, Mapping):
        raise ConfigurationError("Configuration root must be a mapping.")

    return _settings_from_mapping(parsed, base_path=path.resolve().parent, path=path)


def _settings_from_mapping(
    parsed: Mapping[str, Any], *, base_path: Path, path: Path | None
) -> ProjectSettings:
    source_root_raw = _optional_string(parsed.get("source_root"), "source_root")
    output_root_raw = _optional_string(parsed.get("output_root"), "output_root")
    prompt_dir_raw = _optional_string(parsed.get("prompt_directory"), "prompt_directory")
    return ProjectSettings(
        path=path,
        source_root=_resolve_path(base_path, source_root_raw) if source_root_raw else None,
        source_layout=_parse_source_paths(parsed.get("source_paths")),
        target_roots=_parse_target_roots(parsed.get("target_roots"), base_path),
        output_root=_resolve_path(base_path, output_root_raw or DEFAULT_OUTPUT_ROOT),
        backend=_parse_backend_section(parsed.get("backend")),
        prompt_directory=_resolve_path(base_path, prompt_dir_raw) if prompt_dir_raw else None,
        layout_rules=_parse_layout_section(parsed.get("layout")),
    )


def _parse_source_paths(value: Any) -> SourceLayout:
    if value is None:
        return SourceLayout()
    section = _require_mapping(value, "source_paths")
    defaults = SourceLayout()
    return SourceLayout(
        forms=_optional_string(section.get("forms"), "source_paths.forms") or defaults.forms,
        business_objects=_optional_string(
            section.get("business_objects"), "source_paths.business_objects"
        )
        or defaults.business_objects,
        business_objects_base=_optional_string(
            section.get("business_objects_base"), "source_paths.business_objects_base"
        )
        or defaults.business_objects_base,
        lists=_optional_string(section.get("lists"), "source_paths.lists") or defaults.lists,
    )


def _parse_target_roots(value: Any, base_path: Path) -> TargetRoots:
    if value is None:
        return TargetRoots(api=None, ui=None, shared=None)
    section = _require_mapping(value, "target_roots")
    unknown = sorted(set(section) - set(_TARGET_ROOT_NAMES))
    if unknown:
        raise ConfigurationError(f"Unknown target root(s): {', '.join(map(str, unknown))}")
    resolved: dict[str, Path | None] = {}
    for name in _TARGET_ROOT_NAMES:
        raw = _optional_string(section.get(name), f"target_roots.{name}")
        resolved[name] = _resolve_path(base_path, raw) if raw else None
    return TargetRoots(**resolved)


def _parse_backend_section(value: Any) -> BackendSettings:
    if value is None:
        return BackendSettings()
    section = _require_mapping(value, "backend")
    defaults = BackendSettings()
    command = _normalize_command(section.get("command"), defaults.command)
    timeout_seconds = _require_positive_int(
        section.get("timeout_seconds", defaults.timeout_seconds), "backend.timeout_seconds"
    )
    extra_args = _normalize_string_sequence(section.get("extra_args"), "backend.extra_args")
    return BackendSettings(command=command, timeout_seconds=timeout_seconds, extra_args=extra_args)


def _parse_layout_section(value: Any) -> tuple[LayoutRule, ...]:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise ConfigurationError("layout must be a list of mappings.")
    rules: list[LayoutRule] = []
    for index, item in enumerate(value):
        label = f"layout[{index}]"
        entry = _require_mapping(item, label)
        target_root = _require_non_empty_string(entry.get("target_root"), f"{label}.target_root")
        if target_root not in _TARGET_ROOT_NAMES:
            raise ConfigurationError(
                f"{label}.target_root must be one of {', '.join(_TARGET_ROOT_NAMES)}."
            )
        rules.append(
            LayoutRule(
                source=_require_non_empty_string(entry.get("source"), f"{label}.source").strip("/"),
                target_root=target_root,
                target_path=(
                    _optional_string(entry.get("target_path"), f"{label}.target_path") or ""
                ).strip("/"),
                entity_subdirectory=bool(entry.get("entity_subdirectory", False)),
            )
        )
    return tuple(rules)


def _normalize_command(value: Any, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    if isinstance(value, str):
        parts = tuple(part for part in value.split() if part)
    else:
        parts = _normalize_string_sequence(value, "backend.command")
    if not parts:
        raise ConfigurationError("backend.command must not be empty.")
    return parts


def _normalize_string_sequence(value: Any, field_name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        stripped = value.strip()
        return (stripped,) if stripped else ()
    if isinstance(value, Sequence):
        normalized = []
        for item in value:
            if not isinstance(item, str):
                raise ConfigurationError(f"{field_name} entries must be strings.")
            stripped = item.strip()
            if stripped:
                normalized.append(stripped)
        return tuple(normalized)
    raise ConfigurationError(f"{field_name} must be a string or list of strings.")


def _resolve_path(base_path: Path, raw_path: str) -> Path:
    candidate = Path(raw_path).expanduser()
    if not candidate.is_absolute():
        return (base_path / candidate).resolve()
    return candidate


def _require_mapping(value: Any, section_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"Configuration section '{section_name}' must be a mapping.")
    return value


def _require_non_empty_string(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise ConfigurationError(f"{field_name} must be a string.")
    stripped = value.strip()
    if not stripped:
        raise ConfigurationError(f"{field_name} must not be empty.")
    return stripped


def _optional_string(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"{field_name} must be a string.")
    stripped = value.strip()
    return stripped or None


def _require_positive_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{field_name} must be an integer.")
    if not isinstance(value, int):
        raise ConfigurationError(f"{field_name} must be an integer.")
    if value <= 0:
        raise ConfigurationError(f"{field_name} must be greater than zero.")
    return value
