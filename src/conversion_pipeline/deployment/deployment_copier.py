"""Copies generated files that do not yet exist in the target projects."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath

from conversion_pipeline.configuration.runtime_settings import RunConfig
from conversion_pipeline.target_layout import (
    TargetLayoutError,
    list_generated_files,
    map_generated_file,
)

logger = logging.getLogger(__name__)


class DeploymentError(Exception):
    """Raised when deployment cannot start at all."""


class DeploymentAction(str, Enum):
    COPY = "copy"
    SKIP_EXISTING = "skip-existing"
    UNMAPPED = "unmapped"


@dataclass(frozen=True)
class DeploymentEntry:
    relative_path: PurePosixPath
    source_path: Path
    target_path: Path | None
    action: DeploymentAction


@dataclass(frozen=True)
class DeploymentPlan:
    entries: tuple[DeploymentEntry, ...]

    def with_action(self, action: DeploymentAction) -> tuple[DeploymentEntry, ...]:
        return tuple(entry for entry in self.entries if entry.action is action)


@dataclass(frozen=True)
class DeploymentFailure:
    entry: DeploymentEntry
    message: str


@dataclass(frozen=True)
class DeploymentReport:
    """Result of executing (or previewing) a deployment plan."""

    plan: DeploymentPlan
    copied: tuple[DeploymentEntry, ...]
    failures: tuple[DeploymentFailure, ...]
    dry_run: bool

    @property
    def skipped_existing(self) -> tuple[DeploymentEntry, ...]:
        return self.plan.with_action(DeploymentAction.SKIP_EXISTING)

    @property
    def unmapped(self) -> tuple[DeploymentEntry, ...]:
        return self.plan.with_action(DeploymentAction.UNMAPPED)


def plan_deployment(config: RunConfig) -> DeploymentPlan:
    """Map every generated template to its target and decide copy or skip.

    Raises:
      DeploymentError: If there are no generated templates or a target root is missing.
    """
    templates_dir = config.templates_dir
    generated_files = list_generated_files(templates_dir)
    if not generated_files:
        raise DeploymentError(f"No generated templates found under {templates_dir}")

    entries = []
    for source_path in generated_files:
        relative_path = PurePosixPath(source_path.relative_to(templates_dir).as_posix())
        try:
            mapped = map_generated_file(
                source_path, templates_dir, entity=config.entity, settings=config.settings
            )
        except TargetLayoutError as exc:
            raise DeploymentError(str(exc)) from exc
        if mapped is None:
            entries.append(
                DeploymentEntry(relative_path, source_path, None, DeploymentAction.UNMAPPED)
            )
        elif mapped.target_path.exists():
            entries.append(
                DeploymentEntry(
                    relative_path, source_path, mapped.target_path, DeploymentAction.SKIP_EXISTING
                )
            )
        else:
            entries.append(
                DeploymentEntry(
                    relative_path, source_path, mapped.target_path, DeploymentAction.COPY
                )
            )
    return DeploymentPlan(entries=tuple(entries))


def execute_deployment(plan: DeploymentPlan, *, dry_run: bool = False) -> DeploymentReport:
    """Copy planned files; a failed copy is recorded and the rest continue."""
    copied = []
    failures = []
    for entry in plan.with_action(DeploymentAction.COPY):
        if dry_run or entry.target_path is None:
            continue
        try:
            entry.target_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(entry.source_path, entry.target_path)
        except OSError as exc:
            logger.warning("copy failed for %s: %s", entry.relative_path, exc)
            failures.append(DeploymentFailure(entry=entry, message=str(exc)))
            continue
        copied.append(entry)
    return DeploymentReport(
        plan=plan, copied=tuple(copied), failures=tuple(failures), dry_run=dry_run
    )


def deploy_entity(config: RunConfig, *, dry_run: bool = False) -> DeploymentReport:
    return execute_deployment(plan_deployment(config), dry_run=dry_run)
