"""Orchestration exports."""

from .cancellation import CancellationToken, sigint_cancellation
from .pipeline_orchestrator import PipelineUsageError, build_plan, resolve_skip_keys, run_pipeline
from .run_contracts import PlanAction, RunOutcome, StepPlanEntry

__all__ = [
    "CancellationToken",
    "PipelineUsageError",
    "PlanAction",
    "RunOutcome",
    "StepPlanEntry",
    "build_plan",
    "resolve_skip_keys",
    "run_pipeline",
    "sigint_cancellation",
]
