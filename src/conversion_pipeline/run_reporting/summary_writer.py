"""Human-readable summaries printed at the end of each command."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from conversion_pipeline.deployment import DeploymentAction, DeploymentReport
from conversion_pipeline.orchestration import PlanAction, RunOutcome, StepPlanEntry
from conversion_pipeline.run_status import RunManifest, StepState
from conversion_pipeline.template_generation import TemplateGenerationReport
from conversion_pipeline.template_merge import (
    FileMergeStatus,
    MergeReport,
    RollbackReport,
    RollbackStatus,
)


def render_plan(entity: str, plan: Sequence[StepPlanEntry]) -> str:
    lines = [f"Execution plan for {entity} (dry run, nothing written):"]
    for entry in plan:
        lines.append(
            f"  {entry.step.number:>2}. {entry.step.key:<24} {entry.action.value:<8} {entry.reason}"
        )
    attempts = sum(1 for entry in plan if entry.action is PlanAction.ATTEMPT)
    lines.append(f"{attempts} of {len(plan)} steps would run.")
    return "\n".join(lines)


def render_run_summary(outcome: RunOutcome) -> str:
    if outcome.dry_run:
        return render_plan(outcome.manifest.entity, outcome.plan)
    manifest = outcome.manifest
    succeeded = sum(1 for status in manifest.steps if status.state is StepState.SUCCEEDED)
    lines = [
        f"Run {manifest.run_state.value} for {manifest.entity}: "
        f"{succeeded}/{len(manifest.steps)} steps succeeded, "
        f"{len(outcome.attempted)} attempted."
    ]
    for status in outcome.failed_steps:
        kind = status.error_kind.value if status.error_kind else "Unknown"
        message = status.error_message or ""
        lines.append(f"  FAILED {status.number}. {status.step_id} [{kind}] {message}".rstrip())
    return "\n".join(lines)


def render_manifest(manifest: RunManifest) -> str:
    lines = [f"Entity: {manifest.entity}", f"Run state: {manifest.run_state.value}"]
    if manifest.form_name:
        suffix = " (single form)" if manifest.single_form else ""
        lines.append(f"Form: {manifest.form_name}{suffix}")
    if manifest.updated_at:
        lines.append(f"Updated: {manifest.updated_at.isoformat()}")
    for status in manifest.steps:
        detail = ""
        if status.skipped:
            detail = " (skipped)"
        elif status.state is StepState.FAILED and status.error_kind:
            detail = f" [{status.error_kind.value}] {status.error_message or ''}".rstrip()
        lines.append(f"  {status.number:>2}. {status.step_id:<24} {status.state.value}{detail}")
    return "\n".join(lines)


def render_merge_report(report: MergeReport) -> str:
    lines = []
    for result in report.results:
        target = result.target_path or result.generated_path
        line = f"  {result.status.value:<10} {target}"
        details = []
        if result.added:
            details.append(f"added {', '.join(result.added)}")
        if result.replaced:
            details.append(f"replaced {', '.join(result.replaced)}")
        if result.kept_existing:
            details.append(f"kept {', '.join(result.kept_existing)}")
        if result.message:
            details.append(result.message)
        if details:
            line = f"{line} ({'; '.join(details)})"
        lines.append(line)
        lines.extend(f"      {conflict}" for conflict in result.conflicts)
    counts = ", ".join(
        f"{report.count(status)} {status.value}"
        for status in FileMergeStatus
        if report.count(status)
    )
    header = f"Merge ({report.mode.value}): {counts or 'no generated files'}"
    if report.cancelled:
        header += " [cancelled]"
    return "\n".join([header, *lines])


def render_rollback_report(report: RollbackReport) -> str:
    verb = "would restore" if report.dry_run else "restored"
    restored_status = RollbackStatus.WOULD_RESTORE if report.dry_run else RollbackStatus.RESTORED
    restored = report.count(restored_status)
    lines = [
        f"Rollback: {restored} {verb}, {report.count(RollbackStatus.NO_BACKUP)} without backup, "
        f"{report.count(RollbackStatus.ERROR)} errors"
    ]
    for entry in report.entries:
        suffix = f" ({entry.message})" if entry.message else ""
        lines.append(f"  {entry.status.value:<13} {entry.target_path}{suffix}")
    return "\n".join(lines)


def render_deployment_report(report: DeploymentReport) -> str:
    lines = []
    for entry in report.plan.entries:
        target = entry.target_path or "(no layout rule)"
        lines.append(f"  {entry.action.value:<13} {entry.relative_path} -> {target}")
    for failure in report.failures:
        lines.append(f"  error         {failure.entry.relative_path}: {failure.message}")
    skipped = len(report.skipped_existing)
    unmapped = len(report.unmapped)
    if report.dry_run:
        to_copy = len(report.plan.with_action(DeploymentAction.COPY))
        header = (
            f"Deployment plan (dry run): {to_copy} to copy, {skipped} skipped-existing, "
            f"{unmapped} unmapped"
        )
    else:
        header = (
            f"Deployment: {len(report.copied)} copied, {skipped} skipped-existing, "
            f"{unmapped} unmapped, {len(report.failures)} errors"
        )
    return "\n".join([header, *lines])


def render_template_generation_report(
    report: TemplateGenerationReport, templates_dir: Path
) -> str:
    failed = sum(1 for result in report.results if not result.succeeded)
    written = sum(len(result.written) for result in report.results)
    header = f"Templates: {written} files written, {failed} targets failed"
    if report.cancelled:
        header += " [cancelled]"
    lines = [header]
    for result in report.results:
        if not result.succeeded:
            kind = result.error_kind.value if result.error_kind else "error"
            lines.append(f"  {result.target.value:<4} failed [{kind}] {result.error_message}")
            continue
        lines.append(f"  {result.target.value:<4} wrote {len(result.written)} files")
        lines.extend(
            f"      {path.relative_to(templates_dir).as_posix()}" for path in result.written
        )
    return "\n".join(lines)
