"""Maps generated template files onto target project paths."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from conversion_pipeline.configuration.runtime_settings import LayoutRule, ProjectSettings

DEFAULT_LAYOUT_RULES: tuple[LayoutRule, ...] = (
    LayoutRule(source="shared", target_root="shared"),
    LayoutRule(
        source="api/Controllers", target_root="api", target_path="src/Admin.Api/Controllers"
    ),
    LayoutRule(
        source="api/Repositories",
        target_root="api",
        target_path="src/Admin.Infrastructure/Repositories",
    ),
    LayoutRule(
        source="api/Services", target_root="api", target_path="src/Admin.Infrastructure/Services"
    ),
    LayoutRule(
        source="api/Mapping", target_root="api", target_path="src/Admin.Infrastructure/Mapping"
    ),
    LayoutRule(source="ui/Controllers", target_root="ui", target_path="Controllers"),
    LayoutRule(source="ui/Services", target_root="ui", target_path="Services"),
    LayoutRule(source="ui/ViewModels", target_root="ui", target_path="ViewModels"),
    LayoutRule(source="ui/wwwroot", target_root="ui", target_path="wwwroot"),
    LayoutRule(source="ui/Views", target_root="ui", target_path="Views", entity_subdirectory=True),
)


class TargetLayoutError(Exception):
    """Raised when a mapped target root is not configured or does not exist."""


@dataclass(frozen=True)
class MappedTarget:
    """A generated file and the target file it corresponds to."""

    generated_path: Path
    relative_path: PurePosixPath
    root_name: str
    target_path: Path


def layout_rules(settings: ProjectSettings) -> tuple[LayoutRule, ...]:
    return settings.layout_rules or DEFAULT_LAYOUT_RULES


def list_generated_files(templates_dir: Path) -> list[Path]:
    """Every regular file under the templates directory, sorted by relative path."""
    if not templates_dir.is_dir():
        return []
    return sorted(
        (path for path in templates_dir.rglob("*") if path.is_file()),
        key=lambda path: path.relative_to(templates_dir).as_posix(),
    )


def match_rule(relative_path: PurePosixPath, rules: tuple[LayoutRule, ...]) -> LayoutRule | None:
    """The rule with the longest source prefix covering `relative_path`."""
    best: LayoutRule | None = None
    best_length = -1
    for rule in rules:
        source_parts = PurePosixPath(rule.source).parts
        covers = relative_path.parts[: len(source_parts)] == source_parts
        if covers and len(relative_path.parts) > len(source_parts):
            if len(source_parts) > best_length:
                best, best_length = rule, len(source_parts)
    return best


def require_target_root(root_name: str, settings: ProjectSettings) -> Path:
    root = settings.target_roots.get(root_name)
    if root is None:
        raise TargetLayoutError(f"Target root '{root_name}' is not configured.")
    if not root.is_dir():
        raise TargetLayoutError(f"Target root '{root_name}' does not exist: {root}")
    return root


def map_generated_file(
    generated_path: Path, templates_dir: Path, *, entity: str, settings: ProjectSettings
) -> MappedTarget | None:
    """Map one generated file; None when no layout rule covers it.

    Raises:
      TargetLayoutError: If the rule's target root is missing.
    """
    relative_path = PurePosixPath(generated_path.relative_to(templates_dir).as_posix())
    rule = match_rule(relative_path, layout_rules(settings))
    if rule is None:
        return None
    remainder = relative_path.parts[len(PurePosixPath(rule.source).parts) :]
    if rule.entity_subdirectory and len(remainder) == 1:
        remainder = (entity, *remainder)
    root = require_target_root(rule.target_root, settings)
    target_path = root.joinpath(*PurePosixPath(rule.target_path).parts, *remainder)
    return MappedTarget(
        generated_path=generated_path,
        relative_path=relative_path,
        root_name=rule.target_root,
        target_path=target_path,
    )
