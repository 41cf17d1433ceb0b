"""Configuration domain exports."""

from .config_scaffold_builder import (
    DEFAULT_CONFIG_FILENAME,
    build_placeholder_configuration,
    write_placeholder_configuration,
)
from .loader import ConfigurationError, load_project_settings
from .run_config_builder import RunFlags, RunFlagsError, build_run_config, parse_skip_steps
from .runtime_settings import (
    BackendSettings,
    ConflictStrategy,
    LayoutRule,
    ProjectSettings,
    RunConfig,
    RunMode,
    RunSelection,
    SourceLayout,
    TargetRoots,
)

__all__ = [
    "BackendSettings",
    "ConflictStrategy",
    "LayoutRule",
    "ProjectSettings",
    "RunConfig",
    "RunMode",
    "RunSelection",
    "SourceLayout",
    "TargetRoots",
    "ConfigurationError",
    "load_project_settings",
    "RunFlags",
    "RunFlagsError",
    "build_run_config",
    "parse_skip_steps",
    "DEFAULT_CONFIG_FILENAME",
    "build_placeholder_configuration",
    "write_placeholder_configuration",
]
