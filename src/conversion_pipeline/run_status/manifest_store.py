"""JSON persistence for the per-entity run manifest."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any

from conversion_pipeline.error_kinds import ErrorKind
from conversion_pipeline.step_execution.step_catalog import StepDefinition

from .status_models import RunManifest, RunState, StepState, StepStatus

MANIFEST_FILENAME = "conversion-status.json"


class ManifestError(Exception):
    """Raised when a stored manifest cannot be read or written."""


def manifest_path(output_dir: Path) -> Path:
    return output_dir / MANIFEST_FILENAME


def new_manifest(
    entity: str,
    steps: Sequence[StepDefinition],
    *,
    form_name: str | None = None,
    single_form: bool = False,
) -> RunManifest:
    """Build a manifest with every step pending."""
    return RunManifest(
        entity=entity,
        form_name=form_name,
        single_form=single_form,
        run_state=RunState.NOT_STARTED,
        steps=tuple(StepStatus(step_id=step.key, number=step.number) for step in steps),
    )


def reconcile_manifest(manifest: RunManifest, steps: Sequence[StepDefinition]) -> RunManifest:
    """Align stored statuses with the current step list.

    Known steps keep their state, new steps start pending, and statuses for
    steps no longer in the list are dropped.
    """
    stored = {status.step_id: status for status in manifest.steps}
    reconciled = []
    for step in steps:
        status = stored.get(step.key)
        if status is None:
            reconciled.append(StepStatus(step_id=step.key, number=step.number))
        else:
            reconciled.append(replace(status, number=step.number))
    return replace(manifest, steps=tuple(reconciled))


def load_manifest(output_dir: Path) -> RunManifest | None:
    """Load the stored manifest, or None when the entity has never run."""
    path = manifest_path(output_dir)
    if not path.exists():
        return None
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ManifestError(f"Unable to read run status {path}: {exc}") from exc
    try:
        return _manifest_from_document(document)
    except (KeyError, TypeError, ValueError) as exc:
        raise ManifestError(f"Run status file is malformed: {path} ({exc})") from exc


def save_manifest(output_dir: Path, manifest: RunManifest) -> Path:
    """Write the manifest atomically so a crash never leaves a partial file."""
    path = manifest_path(output_dir)
    temporary_path = path.with_name(f"{path.name}.tmp")
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        temporary_path.write_text(
            json.dumps(_manifest_to_document(manifest), indent=2) + "\n", encoding="utf-8"
        )
        os.replace(temporary_path, path)
    except OSError as exc:
        raise ManifestError(f"Unable to write run status {path}: {exc}") from exc
    return path


def _manifest_to_document(manifest: RunManifest) -> dict[str, Any]:
    return {
        "entity": manifest.entity,
        "formName": manifest.form_name,
        "singleForm": manifest.single_form,
        "runState": manifest.run_state.value,
        "startedAt": _format_timestamp(manifest.started_at),
        "updatedAt": _format_timestamp(manifest.updated_at),
        "steps": [
            {
                "id": status.step_id,
                "number": status.number,
                "state": status.state.value,
                "startedAt": _format_timestamp(status.started_at),
                "finishedAt": _format_timestamp(status.finished_at),
                "errorKind": status.error_kind.value if status.error_kind else None,
                "errorMessage": status.error_message,
                "artifact": status.artifact,
                "skipped": status.skipped,
            }
            for status in manifest.steps
        ],
    }


def _manifest_from_document(document: Mapping[str, Any]) -> RunManifest:
    steps = tuple(
        StepStatus(
            step_id=str(entry["id"]),
            number=int(entry["number"]),
            state=StepState(entry["state"]),
            started_at=_parse_timestamp(entry.get("startedAt")),
            finished_at=_parse_timestamp(entry.get("finishedAt")),
            error_kind=ErrorKind(entry["errorKind"]) if entry.get("errorKind") else None,
            error_message=entry.get("errorMessage"),
            artifact=entry.get("artifact"),
            skipped=bool(entry.get("skipped", False)),
        )
        for entry in document["steps"]
    )
    return RunManifest(
        entity=str(document["entity"]),
        form_name=document.get("formName"),
        single_form=bool(document.get("singleForm", False)),
        run_state=RunState(document["runState"]),
        steps=steps,
        started_at=_parse_timestamp(document.get("startedAt")),
        updated_at=_parse_timestamp(document.get("updatedAt")),
    )


def _format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(str(value))
