"""Runs the ordered steps for one entity and keeps the manifest current."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import UTC, datetime

from conversion_pipeline.configuration.runtime_settings import RunConfig, RunSelection
from conversion_pipeline.error_kinds import ErrorKind
from conversion_pipeline.generation_backend import GenerationBackend
from conversion_pipeline.run_status import (
    EntityRunLock,
    RunManifest,
    RunState,
    StepState,
    StepStatus,
    load_manifest,
    new_manifest,
    reconcile_manifest,
    save_manifest,
)
from conversion_pipeline.step_execution import (
    StepDefinition,
    StepExecutionError,
    default_steps,
    run_step,
)

from .cancellation import CancellationToken
from .run_contracts import PlanAction, RunOutcome, StepPlanEntry

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
ProgressReporter = Callable[[str], None]


class PipelineUsageError(Exception):
    """Raised when run flags name steps that do not exist."""


def run_pipeline(
    config: RunConfig,
    backend: GenerationBackend,
    *,
    steps: Sequence[StepDefinition] | None = None,
    cancellation: CancellationToken | None = None,
    clock: Clock | None = None,
    progress: ProgressReporter | None = None,
) -> RunOutcome:
    """Execute one entity run and return its final manifest.

    Step failures are recorded in the manifest and never raised. In dry-run
    mode only the plan is computed; nothing is written and no lock is taken.

    Raises:
      PipelineUsageError: If --skip-steps names an unknown step.
      RunLockError: If another run holds the entity lock.
      ManifestError: If the stored manifest cannot be read or written.
    """
    if steps is None:
        steps = default_steps(config.single_form, config.form_name)
    steps = tuple(steps)
    clock = clock or (lambda: datetime.now(UTC))
    cancellation = cancellation or CancellationToken()
    progress = progress or (lambda _message: None)

    skip_keys = resolve_skip_keys(steps, config.skip_steps)
    manifest = _starting_manifest(config, steps)
    plan = build_plan(steps, manifest, config.selection, skip_keys)

    if config.dry_run:
        return RunOutcome(manifest=manifest, plan=plan, attempted=(), dry_run=True)

    with EntityRunLock(config.output_dir):
        return _execute_plan(
            config,
            backend,
            steps=steps,
            plan=plan,
            manifest=manifest,
            cancellation=cancellation,
            clock=clock,
            progress=progress,
        )


def resolve_skip_keys(
    steps: Sequence[StepDefinition], identifiers: frozenset[str]
) -> frozenset[str]:
    """Translate --skip-steps numbers or keys into step keys."""
    keys = set()
    for identifier in sorted(identifiers):
        step = next((candidate for candidate in steps if candidate.matches(identifier)), None)
        if step is None:
            known = ", ".join(f"{candidate.number}={candidate.key}" for candidate in steps)
            raise PipelineUsageError(
                f"Unknown step '{identifier}' in --skip-steps. Known steps: {known}"
            )
        keys.add(step.key)
    return frozenset(keys)


def build_plan(
    steps: Sequence[StepDefinition],
    manifest: RunManifest,
    selection: RunSelection,
    skip_keys: frozenset[str],
) -> tuple[StepPlanEntry, ...]:
    """Decide per step whether to attempt, skip or reuse it; skip always wins."""
    plan = []
    for step in steps:
        status = manifest.status_of(step.key)
        state = status.state if status else StepState.PENDING
        if step.key in skip_keys:
            plan.append(StepPlanEntry(step, PlanAction.SKIP, "listed in --skip-steps"))
        elif selection is RunSelection.FRESH:
            plan.append(StepPlanEntry(step, PlanAction.ATTEMPT, "fresh run"))
        elif selection is RunSelection.RESUME:
            if state is StepState.SUCCEEDED:
                plan.append(StepPlanEntry(step, PlanAction.REUSE, "already succeeded"))
            else:
                plan.append(StepPlanEntry(step, PlanAction.ATTEMPT, f"resuming {state.value} step"))
        elif state is StepState.FAILED:
            plan.append(StepPlanEntry(step, PlanAction.ATTEMPT, "previously failed"))
        else:
            plan.append(StepPlanEntry(step, PlanAction.REUSE, f"not failed ({state.value})"))
    return tuple(plan)


def _starting_manifest(config: RunConfig, steps: Sequence[StepDefinition]) -> RunManifest:
    fresh = new_manifest(
        config.entity, steps, form_name=config.form_name, single_form=config.single_form
    )
    if config.selection is RunSelection.FRESH:
        return fresh
    stored = load_manifest(config.output_dir)
    if stored is None:
        logger.info("no stored run status for %s; starting from pending steps", config.entity)
        return fresh
    return reconcile_manifest(stored, steps)


# pylint: disable=too-many-arguments
def _execute_plan(
    config: RunConfig,
    backend: GenerationBackend,
    *,
    steps: Sequence[StepDefinition],
    plan: Sequence[StepPlanEntry],
    manifest: RunManifest,
    cancellation: CancellationToken,
    clock: Clock,
    progress: ProgressReporter,
) -> RunOutcome:
    now = clock()
    manifest = replace(manifest, run_state=RunState.IN_PROGRESS, started_at=now, updated_at=now)
    save_manifest(config.output_dir, manifest)

    attempted: list[str] = []
    total = len(plan)
    for entry in plan:
        if cancellation.cancelled:
            break
        step = entry.step
        label = f"[{step.number}/{total}] {step.title}"

        if entry.action is PlanAction.REUSE:
            progress(f"{label}: reused ({entry.reason})")
            continue

        status = manifest.status_of(step.key) or StepStatus(step_id=step.key, number=step.number)
        if entry.action is PlanAction.SKIP:
            manifest = _persist(
                config,
                manifest,
                replace(
                    status,
                    state=StepState.SUCCEEDED,
                    skipped=True,
                    error_kind=None,
                    error_message=None,
                    finished_at=clock(),
                ),
                clock,
            )
            progress(f"{label}: skipped")
            continue

        failed_dependency = _first_failed_dependency(step, manifest)
        if failed_dependency:
            manifest = _persist(
                config,
                manifest,
                replace(
                    status,
                    state=StepState.FAILED,
                    skipped=False,
                    error_kind=ErrorKind.MISSING_DEPENDENCY,
                    error_message=f"Dependency '{failed_dependency}' failed.",
                    finished_at=clock(),
                ),
                clock,
            )
            progress(f"{label}: failed (dependency {failed_dependency} failed)")
            continue

        attempted.append(step.key)
        running = replace(
            status,
            state=StepState.RUNNING,
            skipped=False,
            started_at=clock(),
            finished_at=None,
            error_kind=None,
            error_message=None,
        )
        manifest = _persist(config, manifest, running, clock)
        progress(f"{label}: running")
        try:
            artifact = run_step(step, config, backend, steps=steps, clock=clock)
        except StepExecutionError as exc:
            logger.warning("step %s failed: %s (%s)", step.key, exc.message, exc.kind.value)
            finished = replace(
                running,
                state=StepState.FAILED,
                error_kind=exc.kind,
                error_message=exc.message,
                finished_at=clock(),
            )
            progress(f"{label}: failed ({exc.kind.value})")
        else:
            finished = replace(
                running,
                state=StepState.SUCCEEDED,
                artifact=artifact.path.name,
                finished_at=clock(),
            )
            progress(f"{label}: succeeded")
        manifest = _persist(config, manifest, finished, clock)

    if cancellation.cancelled:
        final_state = RunState.ABORTED
    elif manifest.all_succeeded:
        final_state = RunState.COMPLETED
    else:
        final_state = RunState.COMPLETED_WITH_FAILURES
    manifest = replace(manifest, run_state=final_state, updated_at=clock())
    save_manifest(config.output_dir, manifest)
    return RunOutcome(manifest=manifest, plan=tuple(plan), attempted=tuple(attempted))


def _persist(
    config: RunConfig, manifest: RunManifest, status: StepStatus, clock: Clock
) -> RunManifest:
    updated = manifest.with_step(status, updated_at=clock())
    save_manifest(config.output_dir, updated)
    return updated


def _first_failed_dependency(step: StepDefinition, manifest: RunManifest) -> str | None:
    for dependency_key in step.depends_on:
        status = manifest.status_of(dependency_key)
        if status is not None and status.state is StepState.FAILED:
            return dependency_key
    return None
