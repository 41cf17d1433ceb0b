"""Merges command-line flags with project settings into a RunConfig."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .runtime_settings import (
    ConflictStrategy,
    ProjectSettings,
    RunConfig,
    RunMode,
    RunSelection,
)


class RunFlagsError(Exception):
    """Raised when flags are missing, malformed, or contradict each other."""


@dataclass(frozen=True)
class RunFlags:  # pylint: disable=too-many-instance-attributes
    """Raw flag values as parsed by the CLI layer."""

    output_dir: str | None = None
    skip_steps: str | None = None
    resume: bool = False
    rerun_failed: bool = False
    mode: str | None = None
    conflict_strategy: str | None = None
    dry_run: bool = False


def build_run_config(
    flags: RunFlags,
    settings: ProjectSettings,
    *,
    entity: str,
    form_name: str | None = None,
    single_form: bool = False,
) -> RunConfig:
    """Build the immutable run configuration; CLI values override the config file."""
    if flags.resume and flags.rerun_failed:
        raise RunFlagsError("--resume and --rerun-failed cannot be combined.")

    mode = _parse_mode(flags.mode)
    if flags.dry_run:
        if mode not in (None, RunMode.DRY_RUN):
            raise RunFlagsError(f"--dry-run cannot be combined with --mode {mode.value}.")
        mode = RunMode.DRY_RUN

    selection = RunSelection.FRESH
    if flags.resume:
        selection = RunSelection.RESUME
    elif flags.rerun_failed:
        selection = RunSelection.RERUN_FAILED

    output_dir = (
        Path(flags.output_dir).expanduser().resolve()
        if flags.output_dir
        else settings.output_root / entity
    )
    return RunConfig(
        entity=entity,
        form_name=form_name,
        single_form=single_form,
        settings=settings,
        output_dir=output_dir,
        mode=mode or RunMode.INTERACTIVE,
        conflict_strategy=_parse_conflict_strategy(flags.conflict_strategy),
        selection=selection,
        skip_steps=parse_skip_steps(flags.skip_steps),
        dry_run=mode is RunMode.DRY_RUN,
    )


def parse_skip_steps(raw_value: str | None) -> frozenset[str]:
    """Split a comma-separated list of step numbers or keys."""
    if not raw_value:
        return frozenset()
    return frozenset(item.strip() for item in raw_value.split(",") if item.strip())


def _parse_mode(value: str | None) -> RunMode | None:
    if value is None:
        return None
    try:
        return RunMode(value.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(mode.value for mode in RunMode)
        raise RunFlagsError(f"--mode must be one of: {allowed}.") from exc


def _parse_conflict_strategy(value: str | None) -> ConflictStrategy:
    if value is None:
        return ConflictStrategy.PROMPT
    try:
        return ConflictStrategy(value.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(strategy.value for strategy in ConflictStrategy)
        raise RunFlagsError(f"--conflict-strategy must be one of: {allowed}.") from exc
