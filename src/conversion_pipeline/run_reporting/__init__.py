"""Run reporting exports."""

from .summary_writer import (
    render_deployment_report,
    render_manifest,
    render_merge_report,
    render_plan,
    render_rollback_report,
    render_run_summary,
    render_template_generation_report,
)

__all__ = [
    "render_deployment_report",
    "render_manifest",
    "render_merge_report",
    "render_plan",
    "render_rollback_report",
    "render_run_summary",
    "render_template_generation_report",
]
