"""Executes one pipeline step: inputs, prompt, backend call, validation, artifact."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from conversion_pipeline.configuration.runtime_settings import RunConfig
from conversion_pipeline.error_kinds import ErrorKind
from conversion_pipeline.generation_backend import BackendError, GenerationBackend

from .artifact_io import GeneratedArtifact, artifact_path, read_artifact, write_artifact
from .artifact_schemas import ArtifactValidationError, schema_for
from .prompt_assembly import build_prompt
from .step_catalog import ArtifactFormat, StepDefinition

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json|JSON)?[ \t]*\r?\n(.*?)```", re.DOTALL)


class StepExecutionError(Exception):
    """Raised when a step cannot produce a valid artifact."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


def run_step(
    step: StepDefinition,
    config: RunConfig,
    backend: GenerationBackend,
    *,
    steps: Sequence[StepDefinition],
    clock: Callable[[], datetime] | None = None,
    check: Callable[[dict[str, Any]], Sequence[str]] | None = None,
) -> GeneratedArtifact:
    """Run one step and write its artifact; no retries happen here.

    Dependencies and required source files are checked before the backend is
    called, so a missing input never costs a generation call. `check` adds
    problems of its own to the schema check of a JSON reply.

    Raises:
      StepExecutionError: With kind MissingDependency, BackendFailure or MalformedOutput.
    """
    clock = clock or (lambda: datetime.now(UTC))
    prior_artifacts = load_dependency_artifacts(step, config.output_dir, steps)
    source_files = read_source_inputs(step, config)
    payload = build_prompt(
        step, config, source_files=source_files, prior_artifacts=prior_artifacts
    )

    logger.info("running step %s for %s", step.key, config.entity)
    try:
        response = backend.generate(payload)
    except BackendError as exc:
        raise StepExecutionError(ErrorKind.BACKEND_FAILURE, str(exc)) from exc

    if step.artifact_format is ArtifactFormat.MARKDOWN:
        text = strip_markdown_fence(response)
        if not text.strip():
            raise StepExecutionError(ErrorKind.MALFORMED_OUTPUT, "Backend returned empty text.")
        return _store_artifact(config, step, generated_at=clock(), text=text)

    data = extract_json_object(response)
    problems = schema_for(step.artifact_schema_name).problems(data)
    if not problems and check is not None:
        problems = list(check(data))
    if problems:
        raise StepExecutionError(ErrorKind.MALFORMED_OUTPUT, "; ".join(problems))
    return _store_artifact(config, step, generated_at=clock(), data=data)


def load_dependency_artifacts(
    step: StepDefinition, output_dir: Path, steps: Sequence[StepDefinition]
) -> list[GeneratedArtifact]:
    steps_by_key = {candidate.key: candidate for candidate in steps}
    artifacts = []
    for dependency_key in step.depends_on:
        dependency = steps_by_key.get(dependency_key)
        if dependency is None:
            raise StepExecutionError(
                ErrorKind.MISSING_DEPENDENCY, f"Unknown dependency step '{dependency_key}'."
            )
        path = artifact_path(output_dir, dependency)
        if not path.is_file():
            raise StepExecutionError(
                ErrorKind.MISSING_DEPENDENCY,
                f"Artifact of step '{dependency_key}' not found: {path}",
            )
        try:
            artifacts.append(read_artifact(output_dir, dependency))
        except ArtifactValidationError as exc:
            raise StepExecutionError(ErrorKind.MALFORMED_OUTPUT, str(exc)) from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise StepExecutionError(
                ErrorKind.MALFORMED_OUTPUT,
                f"Artifact of step '{dependency_key}' is unreadable: {path} ({exc})",
            ) from exc
    return artifacts


def read_source_inputs(step: StepDefinition, config: RunConfig) -> list[tuple[Path, str]]:
    source_files = []
    for source_input in step.source_inputs:
        path = source_input.resolve(config)
        if path is None:
            if source_input.required:
                raise StepExecutionError(
                    ErrorKind.MISSING_DEPENDENCY,
                    "source_root is not configured; cannot read legacy sources.",
                )
            continue
        if not path.is_file():
            if source_input.required:
                raise StepExecutionError(
                    ErrorKind.MISSING_DEPENDENCY, f"Required source file not found: {path}"
                )
            logger.debug("optional source file missing: %s", path)
            continue
        try:
            source_files.append((path, path.read_text(encoding="utf-8", errors="replace")))
        except OSError as exc:
            raise StepExecutionError(
                ErrorKind.MISSING_DEPENDENCY, f"Unable to read source file {path}: {exc}"
            ) from exc
    return source_files


def extract_json_object(response: str) -> dict[str, Any]:
    """Parse the first JSON object from a reply, fenced or bare."""
    candidates = [match.group(1) for match in _FENCED_BLOCK.finditer(response)]
    stripped = response.strip()
    candidates.append(stripped)
    first_brace, last_brace = stripped.find("{"), stripped.rfind("}")
    if 0 <= first_brace < last_brace:
        candidates.append(stripped[first_brace : last_brace + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    raise StepExecutionError(ErrorKind.MALFORMED_OUTPUT, "Backend reply is not a JSON object.")


def strip_markdown_fence(response: str) -> str:
    stripped = response.strip()
    match = re.fullmatch(r"```(?:markdown|md)?[ \t]*\r?\n(.*?)```", stripped, re.DOTALL)
    return match.group(1) if match else stripped


def _store_artifact(
    config: RunConfig, step: StepDefinition, *, generated_at: datetime, **content: Any
) -> GeneratedArtifact:
    try:
        return write_artifact(
            config.output_dir, step, entity=config.entity, generated_at=generated_at, **content
        )
    except OSError as exc:
        raise StepExecutionError(
            ErrorKind.MALFORMED_OUTPUT, f"Unable to write artifact of step '{step.key}': {exc}"
        ) from exc
