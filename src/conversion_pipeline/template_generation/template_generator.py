"""Generates the entity's code templates under `templates/api|shared|ui`."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from functools import partial
from pathlib import Path, PurePosixPath
from typing import Any

from conversion_pipeline.configuration.runtime_settings import RunConfig
from conversion_pipeline.error_kinds import ErrorKind
from conversion_pipeline.generation_backend import GenerationBackend
from conversion_pipeline.orchestration.cancellation import CancellationToken
from conversion_pipeline.step_execution import (
    StepDefinition,
    StepExecutionError,
    default_steps,
    number_steps,
    run_step,
)

logger = logging.getLogger(__name__)

TEMPLATES_SCHEMA = "generated-templates"


class TemplateTarget(str, Enum):
    """Which half of the target system a template step generates."""

    API = "api"
    UI = "ui"

    @property
    def areas(self) -> tuple[str, ...]:
        """Top-level directories under `templates/` this target may write."""
        return ("api", "shared") if self is TemplateTarget.API else ("ui",)

    @property
    def step_key(self) -> str:
        return f"templates-{self.value}"


@dataclass(frozen=True)
class TemplateGenerationResult:
    target: TemplateTarget
    step_key: str
    written: tuple[Path, ...] = ()
    error_kind: ErrorKind | None = None
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error_kind is None


@dataclass(frozen=True)
class TemplateGenerationReport:
    results: tuple[TemplateGenerationResult, ...]
    cancelled: bool = False

    @property
    def has_failures(self) -> bool:
        return any(not result.succeeded for result in self.results)


def template_steps(analysis_steps: Sequence[StepDefinition]) -> tuple[StepDefinition, ...]:
    """Template steps numbered after the analysis steps they depend on."""
    analysis_keys = tuple(step.key for step in analysis_steps)
    generated = [
        StepDefinition(
            number=0,
            key=target.step_key,
            title="API and Shared Templates" if target is TemplateTarget.API else "UI Templates",
            prompt_template=target.step_key,
            output_name=f"{target.step_key}.json",
            depends_on=analysis_keys,
            schema_name=TEMPLATES_SCHEMA,
        )
        for target in TemplateTarget
    ]
    return number_steps([*analysis_steps, *generated])[len(analysis_steps) :]


def template_file_problems(data: Mapping[str, Any], *, areas: Sequence[str]) -> list[str]:
    """Reasons the `files` list of a templates reply cannot be written as-is."""
    problems = []
    seen: set[PurePosixPath] = set()
    for index, entry in enumerate(data.get("files", ())):
        label = f"files[{index}]"
        if not isinstance(entry, Mapping):
            problems.append(f"{label}: expected an object with 'path' and 'content'")
            continue
        path, content = entry.get("path"), entry.get("content")
        if not isinstance(path, str) or not path.strip():
            problems.append(f"{label}: 'path' must be a non-empty string")
            continue
        if not isinstance(content, str):
            problems.append(f"{label}: 'content' must be a string")
        relative = PurePosixPath(path.replace("\\", "/"))
        escapes = relative.is_absolute() or ".." in relative.parts
        if escapes or not relative.parts or ":" in relative.parts[0]:
            problems.append(f"{label}: path '{path}' must stay inside the templates directory")
        elif len(relative.parts) < 2 or relative.parts[0] not in areas:
            problems.append(f"{label}: path '{path}' must start with {' or '.join(areas)}/")
        elif relative in seen:
            problems.append(f"{label}: duplicate path '{path}'")
        seen.add(relative)
    return problems


def write_template_files(
    templates_dir: Path, files: Sequence[Mapping[str, str]]
) -> tuple[Path, ...]:
    """Write checked template entries, replacing files generated earlier.

    Raises:
      StepExecutionError: If a file cannot be written.
    """
    written = []
    for entry in files:
        relative = PurePosixPath(entry["path"].replace("\\", "/"))
        path = templates_dir.joinpath(*relative.parts)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(entry["content"], encoding="utf-8", newline="")
        except OSError as exc:
            raise StepExecutionError(
                ErrorKind.MALFORMED_OUTPUT, f"Unable to write template {relative}: {exc}"
            ) from exc
        written.append(path)
    return tuple(written)


def generate_templates(
    config: RunConfig,
    backend: GenerationBackend,
    *,
    targets: Sequence[TemplateTarget] = tuple(TemplateTarget),
    cancellation: CancellationToken | None = None,
    clock: Callable[[], datetime] | None = None,
    progress: Callable[[str], None] | None = None,
) -> TemplateGenerationReport:
    """Run the template step of each target and write the returned files.

    Each target needs every analysis artifact of the entity. A failing target
    is reported and the next one still runs.
    """
    cancellation = cancellation or CancellationToken()
    progress = progress or (lambda message: None)
    analysis = default_steps(config.single_form, config.form_name)
    generation = template_steps(analysis)
    steps = (*analysis, *generation)
    results = []
    for target in targets:
        if cancellation.cancelled:
            break
        step = next(step for step in generation if step.key == target.step_key)
        label = f"[{step.number}] {step.title}"
        progress(f"{label}: running")
        try:
            artifact = run_step(
                step,
                config,
                backend,
                steps=steps,
                clock=clock,
                check=partial(template_file_problems, areas=target.areas),
            )
            written = write_template_files(config.templates_dir, (artifact.data or {})["files"])
        except StepExecutionError as exc:
            logger.warning("template step %s failed: %s", step.key, exc.message)
            progress(f"{label}: failed ({exc.kind.value})")
            results.append(
                TemplateGenerationResult(
                    target=target,
                    step_key=step.key,
                    error_kind=exc.kind,
                    error_message=exc.message,
                )
            )
            continue
        progress(f"{label}: wrote {len(written)} files")
        results.append(
            TemplateGenerationResult(target=target, step_key=step.key, written=written)
        )
    return TemplateGenerationReport(results=tuple(results), cancelled=cancellation.cancelled)
