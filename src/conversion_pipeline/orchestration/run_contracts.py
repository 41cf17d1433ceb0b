"""Orchestration entities."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from conversion_pipeline.run_status.status_models import RunManifest, RunState, StepStatus
from conversion_pipeline.step_execution.step_catalog import StepDefinition


class PlanAction(str, Enum):
    """What the orchestrator does with one step in this run."""

    ATTEMPT = "attempt"
    SKIP = "skip"
    REUSE = "reuse"


@dataclass(frozen=True)
class StepPlanEntry:
    """One line of the execution plan."""

    step: StepDefinition
    action: PlanAction
    reason: str


@dataclass(frozen=True)
class RunOutcome:
    """Output contract for one orchestrated run."""

    manifest: RunManifest
    plan: tuple[StepPlanEntry, ...]
    attempted: tuple[str, ...]
    dry_run: bool = False

    @property
    def succeeded(self) -> bool:
        if self.dry_run:
            return True
        return self.manifest.run_state is RunState.COMPLETED

    @property
    def failed_steps(self) -> tuple[StepStatus, ...]:
        return self.manifest.failed_steps
