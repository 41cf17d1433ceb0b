"""Target layout exports."""

from .layout_mapping import (
    DEFAULT_LAYOUT_RULES,
    MappedTarget,
    TargetLayoutError,
    layout_rules,
    list_generated_files,
    map_generated_file,
    match_rule,
    require_target_root,
)

__all__ = [
    "DEFAULT_LAYOUT_RULES",
    "MappedTarget",
    "TargetLayoutError",
    "layout_rules",
    "list_generated_files",
    "map_generated_file",
    "match_rule",
    "require_target_root",
]
