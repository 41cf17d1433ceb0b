"""Configuration domain entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class RunMode(str, Enum):
    """How the merge engine resolves members."""

    INTERACTIVE = "interactive"
    AUTO = "auto"
    DRY_RUN = "dry-run"


class ConflictStrategy(str, Enum):
    """How changed members are resolved."""

    PROMPT = "prompt"
    KEEP_EXISTING = "keep-existing"
    USE_GENERATED = "use-generated"


class RunSelection(str, Enum):
    """Which steps the orchestrator attempts."""

    FRESH = "fresh"
    RESUME = "resume"
    RERUN_FAILED = "rerun-failed"


@dataclass(frozen=True)
class SourceLayout:
    """Sub-paths of the legacy source tree, relative to the source root."""

    forms: str = "Forms"
    business_objects: str = "BusinessObjects"
    business_objects_base: str = "BusinessObjects/Base"
    lists: str = "Lists"


@dataclass(frozen=True)
class TargetRoots:
    """Root directories of the target projects."""

    api: Path | None
    ui: Path | None
    shared: Path | None

    def get(self, name: str) -> Path | None:
        return {"api": self.api, "ui": self.ui, "shared": self.shared}.get(name)


@dataclass(frozen=True)
class LayoutRule:
    """Maps a generated template sub-directory onto a target root."""

    source: str
    target_root: str
    target_path: str = ""
    entity_subdirectory: bool = False


@dataclass(frozen=True)
class BackendSettings:
    """Generation backend invocation settings."""

    command: tuple[str, ...] = ("claude",)
    timeout_seconds: int = 900
    extra_args: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProjectSettings:  # pylint: disable=too-many-instance-attributes
    """Settings loaded from the project configuration file."""

    path: Path | None
    source_root: Path | None
    source_layout: SourceLayout
    target_roots: TargetRoots
    output_root: Path
    backend: BackendSettings
    prompt_directory: Path | None = None
    layout_rules: tuple[LayoutRule, ...] = ()


@dataclass(frozen=True)
class RunConfig:  # pylint: disable=too-many-instance-attributes
    """Immutable per-invocation configuration built from flags and the config file."""

    entity: str
    form_name: str | None
    single_form: bool
    settings: ProjectSettings
    output_dir: Path
    mode: RunMode = RunMode.INTERACTIVE
    conflict_strategy: ConflictStrategy = ConflictStrategy.PROMPT
    selection: RunSelection = RunSelection.FRESH
    skip_steps: frozenset[str] = field(default_factory=frozenset)
    dry_run: bool = False

    @property
    def source_root(self) -> Path | None:
        return self.settings.source_root

    @property
    def target_roots(self) -> TargetRoots:
        return self.settings.target_roots

    @property
    def templates_dir(self) -> Path:
        return self.output_dir / "templates"
