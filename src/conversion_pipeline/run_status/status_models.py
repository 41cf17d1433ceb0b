"""Run status entities persisted in the manifest."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from conversion_pipeline.error_kinds import ErrorKind


class StepState(str, Enum):
    """Lifecycle of one step."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RunState(str, Enum):
    """Lifecycle of one entity run."""

    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    COMPLETED_WITH_FAILURES = "completed-with-failures"
    ABORTED = "aborted"


@dataclass(frozen=True)
class StepStatus:  # pylint: disable=too-many-instance-attributes
    """Stored state of one step."""

    step_id: str
    number: int
    state: StepState = StepState.PENDING
    started_at: datetime | None = None
    finished_at: datetime | None = None
    error_kind: ErrorKind | None = None
    error_message: str | None = None
    artifact: str | None = None
    skipped: bool = False


@dataclass(frozen=True)
class RunManifest:  # pylint: disable=too-many-instance-attributes
    """Per-entity record of step statuses and the overall run state."""

    entity: str
    form_name: str | None
    single_form: bool
    run_state: RunState
    steps: tuple[StepStatus, ...]
    started_at: datetime | None = None
    updated_at: datetime | None = None

    def status_of(self, step_id: str) -> StepStatus | None:
        return next((status for status in self.steps if status.step_id == step_id), None)

    def with_step(self, status: StepStatus, *, updated_at: datetime | None = None) -> RunManifest:
        steps = tuple(
            status if current.step_id == status.step_id else current for current in self.steps
        )
        return replace(self, steps=steps, updated_at=updated_at or self.updated_at)

    @property
    def failed_steps(self) -> tuple[StepStatus, ...]:
        return tuple(status for status in self.steps if status.state is StepState.FAILED)

    @property
    def all_succeeded(self) -> bool:
        return all(status.state is StepState.SUCCEEDED for status in self.steps)
