"""Step runner tests."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest
from conversion_pipeline.configuration import (
    BackendSettings,
    ProjectSettings,
    RunConfig,
    SourceLayout,
    TargetRoots,
)
from conversion_pipeline.error_kinds import ErrorKind
from conversion_pipeline.generation_backend import BackendError, PromptPayload
from conversion_pipeline.step_execution import (
    ArtifactFormat,
    SourceInput,
    StepDefinition,
    StepExecutionError,
    extract_json_object,
    number_steps,
    run_step,
)
from conversion_pipeline.step_execution.step_runner import strip_markdown_fence

FIXED_NOW = datetime(2026, 3, 1, 9, 30, tzinfo=UTC)


class _ScriptedBackend:
    def __init__(self, reply: str | Exception) -> None:
        self.reply = reply
        self.payloads: list[PromptPayload] = []

    def generate(self, payload: PromptPayload) -> str:
        self.payloads.append(payload)
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


def _config(tmp_path: Path) -> RunConfig:
    settings = ProjectSettings(
        path=None,
        source_root=tmp_path / "legacy",
        source_layout=SourceLayout(),
        target_roots=TargetRoots(api=None, ui=None, shared=None),
        output_root=tmp_path / "output",
        backend=BackendSettings(),
    )
    return RunConfig(
        entity="Facility",
        form_name=None,
        single_form=False,
        settings=settings,
        output_dir=tmp_path / "output" / "Facility",
    )


def _steps() -> tuple[StepDefinition, ...]:
    return number_steps(
        [
            StepDefinition(
                number=0,
                key="business-logic",
                title="Business Logic",
                prompt_template="business-logic",
                output_name="business-logic.json",
                source_inputs=(
                    SourceInput("{business_objects}/{entity}Location.vb"),
                    SourceInput("{business_objects}/{entity}Extra.vb", required=False),
                ),
            ),
            StepDefinition(
                number=0,
                key="validation",
                title="Validation Rules",
                prompt_template="validation",
                output_name="validation.json",
                depends_on=("business-logic",),
            ),
            StepDefinition(
                number=0,
                key="conversion-plan",
                title="Conversion Plan",
                prompt_template="conversion-plan",
                output_name="conversion-plan.md",
                artifact_format=ArtifactFormat.MARKDOWN,
                depends_on=("validation",),
            ),
        ]
    )


def _write_business_object(tmp_path: Path) -> Path:
    path = tmp_path / "legacy" / "BusinessObjects" / "FacilityLocation.vb"
    path.parent.mkdir(parents=True)
    path.write_text("Public Class FacilityLocation\nEnd Class\n", encoding="utf-8")
    return path


_BUSINESS_LOGIC_REPLY = (
    "Here is the analysis:\n```json\n"
    + json.dumps({"properties": ["Name"], "businessRules": [], "methods": []})
    + "\n```\n"
)


def test_run_step_writes_validated_artifact(tmp_path: Path) -> None:
    _write_business_object(tmp_path)
    config = _config(tmp_path)
    steps = _steps()
    backend = _ScriptedBackend(_BUSINESS_LOGIC_REPLY)

    artifact = run_step(steps[0], config, backend, steps=steps, clock=lambda: FIXED_NOW)

    assert artifact.path == config.output_dir / "business-logic.json"
    assert artifact.data == {"properties": ["Name"], "businessRules": [], "methods": []}
    document = json.loads(artifact.path.read_text(encoding="utf-8"))
    assert document["generatedAt"] == FIXED_NOW.isoformat()
    assert len(backend.payloads) == 1
    assert "Public Class FacilityLocation" in backend.payloads[0].user_prompt


def test_missing_required_source_fails_before_backend_call(tmp_path: Path) -> None:
    steps = _steps()
    backend = _ScriptedBackend(_BUSINESS_LOGIC_REPLY)

    with pytest.raises(StepExecutionError) as exc_info:
        run_step(steps[0], _config(tmp_path), backend, steps=steps)

    assert exc_info.value.kind is ErrorKind.MISSING_DEPENDENCY
    assert "FacilityLocation.vb" in exc_info.value.message
    assert backend.payloads == []


def test_missing_dependency_artifact_fails_before_backend_call(tmp_path: Path) -> None:
    steps = _steps()
    backend = _ScriptedBackend("{}")

    with pytest.raises(StepExecutionError) as exc_info:
        run_step(steps[1], _config(tmp_path), backend, steps=steps)

    assert exc_info.value.kind is ErrorKind.MISSING_DEPENDENCY
    assert "business-logic" in exc_info.value.message
    assert backend.payloads == []


def test_invalid_dependency_artifact_is_malformed_output(tmp_path: Path) -> None:
    config = _config(tmp_path)
    config.output_dir.mkdir(parents=True)
    (config.output_dir / "business-logic.json").write_text("[]", encoding="utf-8")
    steps = _steps()

    with pytest.raises(StepExecutionError) as exc_info:
        run_step(steps[1], config, _ScriptedBackend("{}"), steps=steps)

    assert exc_info.value.kind is ErrorKind.MALFORMED_OUTPUT


def test_undecodable_dependency_artifact_is_malformed_output(tmp_path: Path) -> None:
    config = _config(tmp_path)
    config.output_dir.mkdir(parents=True)
    (config.output_dir / "business-logic.json").write_bytes(b"\xff\xfe{\x00}")
    steps = _steps()
    backend = _ScriptedBackend("{}")

    with pytest.raises(StepExecutionError) as exc_info:
        run_step(steps[1], config, backend, steps=steps)

    assert exc_info.value.kind is ErrorKind.MALFORMED_OUTPUT
    assert "unreadable" in exc_info.value.message
    assert backend.payloads == []


def test_unwritable_artifact_path_is_a_step_failure(tmp_path: Path) -> None:
    _write_business_object(tmp_path)
    config = _config(tmp_path)
    (config.output_dir / "business-logic.json").mkdir(parents=True)
    steps = _steps()

    with pytest.raises(StepExecutionError) as exc_info:
        run_step(steps[0], config, _ScriptedBackend(_BUSINESS_LOGIC_REPLY), steps=steps)

    assert exc_info.value.kind is ErrorKind.MALFORMED_OUTPUT
    assert "Unable to write artifact of step 'business-logic'" in exc_info.value.message


def test_unreadable_source_file_is_a_missing_dependency(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    source = _write_business_object(tmp_path)
    original_read_text = Path.read_text

    def _read_text(path: Path, *args, **kwargs) -> str:
        if path == source:
            raise PermissionError(13, "Permission denied", str(path))
        return original_read_text(path, *args, **kwargs)

    monkeypatch.setattr(Path, "read_text", _read_text)
    steps = _steps()
    backend = _ScriptedBackend(_BUSINESS_LOGIC_REPLY)

    with pytest.raises(StepExecutionError) as exc_info:
        run_step(steps[0], _config(tmp_path), backend, steps=steps)

    assert exc_info.value.kind is ErrorKind.MISSING_DEPENDENCY
    assert "Unable to read source file" in exc_info.value.message
    assert backend.payloads == []


def test_backend_error_becomes_backend_failure(tmp_path: Path) -> None:
    _write_business_object(tmp_path)
    steps = _steps()

    with pytest.raises(StepExecutionError) as exc_info:
        run_step(
            steps[0],
            _config(tmp_path),
            _ScriptedBackend(BackendError("Backend timed out after 900s")),
            steps=steps,
        )

    assert exc_info.value.kind is ErrorKind.BACKEND_FAILURE
    assert exc_info.value.message == "Backend timed out after 900s"


def test_reply_missing_required_fields_is_malformed_and_not_written(tmp_path: Path) -> None:
    _write_business_object(tmp_path)
    config = _config(tmp_path)
    steps = _steps()

    with pytest.raises(StepExecutionError) as exc_info:
        run_step(steps[0], config, _ScriptedBackend('{"properties": []}'), steps=steps)

    assert exc_info.value.kind is ErrorKind.MALFORMED_OUTPUT
    assert "businessRules" in exc_info.value.message
    assert not (config.output_dir / "business-logic.json").exists()


def test_markdown_step_strips_fence_and_embeds_prior_analysis(tmp_path: Path) -> None:
    _write_business_object(tmp_path)
    config = _config(tmp_path)
    steps = _steps()
    run_step(steps[0], config, _ScriptedBackend(_BUSINESS_LOGIC_REPLY), steps=steps)
    run_step(steps[1], config, _ScriptedBackend('{"validationRules": []}'), steps=steps)
    backend = _ScriptedBackend("```markdown\n# Facility plan\n\n1. API\n```")

    artifact = run_step(steps[2], config, backend, steps=steps)

    assert artifact.path.read_text(encoding="utf-8") == "# Facility plan\n\n1. API\n"
    assert "### validation (validation.json)" in backend.payloads[0].user_prompt


def test_empty_markdown_reply_is_malformed(tmp_path: Path) -> None:
    step = StepDefinition(
        number=1,
        key="notes",
        title="Notes",
        prompt_template="notes",
        output_name="notes.md",
        artifact_format=ArtifactFormat.MARKDOWN,
    )

    with pytest.raises(StepExecutionError) as exc_info:
        run_step(step, _config(tmp_path), _ScriptedBackend("```\n\n```"), steps=(step,))

    assert exc_info.value.kind is ErrorKind.MALFORMED_OUTPUT


@pytest.mark.parametrize(
    ("reply", "expected"),
    [
        ('{"a": 1}', {"a": 1}),
        ('Sure!\n```json\n{"a": 2}\n```\nDone.', {"a": 2}),
        ('```\n{"a": 3}\n```', {"a": 3}),
        ('The result is {"a": {"b": 4}} as requested.', {"a": {"b": 4}}),
        ('```json\nnot json\n```\n```json\n{"a": 5}\n```', {"a": 5}),
    ],
)
def test_extract_json_object(reply: str, expected: dict) -> None:
    assert extract_json_object(reply) == expected


@pytest.mark.parametrize("reply", ["no json here", "[1, 2, 3]", "{broken"])
def test_extract_json_object_rejects_non_objects(reply: str) -> None:
    with pytest.raises(StepExecutionError) as exc_info:
        extract_json_object(reply)

    assert exc_info.value.kind is ErrorKind.MALFORMED_OUTPUT


def test_strip_markdown_fence_leaves_plain_text() -> None:
    assert strip_markdown_fence("  # Title\n") == "# Title"
    assert strip_markdown_fence("```md\n# Title\n```") == "# Title\n"
