"""Reading and writing step artifacts in the entity output directory."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from .artifact_schemas import (
    ArtifactValidationError,
    build_envelope,
    schema_for,
    validate_envelope,
)
from .step_catalog import ArtifactFormat, StepDefinition


@dataclass(frozen=True)
class GeneratedArtifact:
    """A step's validated output as stored on disk."""

    step_key: str
    path: Path
    artifact_format: ArtifactFormat
    generated_at: datetime | None
    data: Mapping[str, Any] | None = None
    text: str | None = None

    def prompt_text(self) -> str:
        if self.artifact_format is ArtifactFormat.MARKDOWN:
            return self.text or ""
        return json.dumps(self.data, indent=2, ensure_ascii=False)


def artifact_path(output_dir: Path, step: StepDefinition) -> Path:
    return output_dir / step.output_name


def write_artifact(
    output_dir: Path,
    step: StepDefinition,
    *,
    entity: str,
    generated_at: datetime,
    data: Mapping[str, Any] | None = None,
    text: str | None = None,
) -> GeneratedArtifact:
    """Write a step artifact wholesale, replacing any previous version."""
    output_dir.mkdir(parents=True, exist_ok=True)
    path = artifact_path(output_dir, step)
    if step.artifact_format is ArtifactFormat.MARKDOWN:
        content = (text or "").rstrip() + "\n"
    else:
        envelope = build_envelope(
            schema_for(step.artifact_schema_name),
            entity=entity,
            step_id=step.key,
            generated_at=generated_at.isoformat(),
            data=data or {},
        )
        content = json.dumps(envelope, indent=2, ensure_ascii=False) + "\n"
    path.write_text(content, encoding="utf-8")
    return GeneratedArtifact(
        step_key=step.key,
        path=path,
        artifact_format=step.artifact_format,
        generated_at=generated_at,
        data=data,
        text=text,
    )


def read_artifact(output_dir: Path, step: StepDefinition) -> GeneratedArtifact:
    """Load a stored artifact and validate it against its schema.

    Raises:
      FileNotFoundError: If the artifact file does not exist.
      ArtifactValidationError: If the artifact is empty, not JSON, or fails its schema.
    """
    path = artifact_path(output_dir, step)
    raw_text = path.read_text(encoding="utf-8")
    if step.artifact_format is ArtifactFormat.MARKDOWN:
        if not raw_text.strip():
            raise ArtifactValidationError(f"Artifact is empty: {path}")
        return GeneratedArtifact(
            step_key=step.key,
            path=path,
            artifact_format=step.artifact_format,
            generated_at=None,
            text=raw_text,
        )
    try:
        document = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise ArtifactValidationError(f"Artifact is not valid JSON: {path} ({exc})") from exc
    data = validate_envelope(document, schema_for(step.artifact_schema_name))
    return GeneratedArtifact(
        step_key=step.key,
        path=path,
        artifact_format=step.artifact_format,
        generated_at=_parse_timestamp(document.get("generatedAt")),
        data=data,
    )


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None
