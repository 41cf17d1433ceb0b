"""Pipeline orchestrator tests."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest
from conversion_pipeline.configuration import (
    BackendSettings,
    ProjectSettings,
    RunConfig,
    RunSelection,
    SourceLayout,
    TargetRoots,
)
from conversion_pipeline.error_kinds import ErrorKind
from conversion_pipeline.generation_backend import BackendError, PromptPayload
from conversion_pipeline.orchestration import (
    CancellationToken,
    PipelineUsageError,
    PlanAction,
    run_pipeline,
)
from conversion_pipeline.run_status import (
    LOCK_FILENAME,
    MANIFEST_FILENAME,
    EntityRunLock,
    RunLockError,
    RunState,
    StepState,
    load_manifest,
)
from conversion_pipeline.step_execution import StepDefinition, number_steps

FIXED_NOW = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)


class _FakeBackend:
    """Answers every step with a JSON object unless told to fail it."""

    def __init__(self, failing: set[str] | None = None, on_call=None) -> None:
        self.failing = failing or set()
        self.on_call = on_call
        self.calls: list[str] = []

    def generate(self, payload: PromptPayload) -> str:
        self.calls.append(payload.step_key)
        if self.on_call is not None:
            self.on_call(payload.step_key)
        if payload.step_key in self.failing:
            raise BackendError(f"backend unavailable for {payload.step_key}")
        return json.dumps({"step": payload.step_key})


def _step(key: str, *depends_on: str) -> StepDefinition:
    return StepDefinition(
        number=0,
        key=key,
        title=key.replace("-", " ").title(),
        prompt_template=key,
        output_name=f"{key}.json",
        depends_on=depends_on,
    )


def _chain() -> tuple[StepDefinition, ...]:
    return number_steps([_step("one"), _step("two", "one"), _step("three", "two")])


def _config(tmp_path: Path, **overrides) -> RunConfig:
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
        **overrides,
    )


def _states(outcome) -> dict[str, StepState]:
    return {status.step_id: status.state for status in outcome.manifest.steps}


def test_fresh_run_executes_steps_in_order_and_completes(tmp_path: Path) -> None:
    config = _config(tmp_path)
    backend = _FakeBackend()
    messages: list[str] = []

    outcome = run_pipeline(
        config, backend, steps=_chain(), clock=lambda: FIXED_NOW, progress=messages.append
    )

    assert backend.calls == ["one", "two", "three"]
    assert outcome.succeeded is True
    assert outcome.attempted == ("one", "two", "three")
    assert outcome.manifest.run_state is RunState.COMPLETED
    assert outcome.manifest.status_of("two").artifact == "two.json"
    assert outcome.manifest.status_of("two").finished_at == FIXED_NOW
    assert (config.output_dir / "three.json").is_file()
    assert load_manifest(config.output_dir) == outcome.manifest
    assert not (config.output_dir / LOCK_FILENAME).exists()
    assert messages[0] == "[1/3] One: running"
    assert messages[-1] == "[3/3] Three: succeeded"


def test_manifest_is_persisted_before_each_backend_call(tmp_path: Path) -> None:
    config = _config(tmp_path)
    observed: list[tuple[str, str]] = []

    def _inspect(step_key: str) -> None:
        stored = load_manifest(config.output_dir)
        observed.append((step_key, stored.status_of(step_key).state.value))

    run_pipeline(config, _FakeBackend(on_call=_inspect), steps=_chain())

    assert observed == [("one", "running"), ("two", "running"), ("three", "running")]


def test_resume_after_complete_run_makes_no_backend_calls(tmp_path: Path) -> None:
    run_pipeline(_config(tmp_path), _FakeBackend(), steps=_chain())
    backend = _FakeBackend()

    outcome = run_pipeline(
        _config(tmp_path, selection=RunSelection.RESUME), backend, steps=_chain()
    )

    assert backend.calls == []
    assert outcome.attempted == ()
    assert {entry.action for entry in outcome.plan} == {PlanAction.REUSE}
    assert outcome.manifest.run_state is RunState.COMPLETED


def test_failed_dependency_propagates_without_backend_call(tmp_path: Path) -> None:
    backend = _FakeBackend(failing={"two"})

    outcome = run_pipeline(_config(tmp_path), backend, steps=_chain())

    assert backend.calls == ["one", "two"]
    assert _states(outcome) == {
        "one": StepState.SUCCEEDED,
        "two": StepState.FAILED,
        "three": StepState.FAILED,
    }
    assert outcome.manifest.status_of("two").error_kind is ErrorKind.BACKEND_FAILURE
    assert outcome.manifest.status_of("three").error_kind is ErrorKind.MISSING_DEPENDENCY
    assert outcome.manifest.run_state is RunState.COMPLETED_WITH_FAILURES
    assert outcome.succeeded is False
    assert [status.step_id for status in outcome.failed_steps] == ["two", "three"]


def test_resume_attempts_only_steps_that_did_not_succeed(tmp_path: Path) -> None:
    run_pipeline(_config(tmp_path), _FakeBackend(failing={"two"}), steps=_chain())
    backend = _FakeBackend()

    outcome = run_pipeline(
        _config(tmp_path, selection=RunSelection.RESUME), backend, steps=_chain()
    )

    assert backend.calls == ["two", "three"]
    assert outcome.manifest.run_state is RunState.COMPLETED
    assert outcome.manifest.status_of("two").error_kind is None


def test_rerun_failed_leaves_pending_and_succeeded_steps_alone(tmp_path: Path) -> None:
    steps = number_steps([_step("one"), _step("two"), _step("three")])
    cancellation = CancellationToken()

    def _cancel_after_two(step_key: str) -> None:
        if step_key == "two":
            cancellation.cancel()

    run_pipeline(
        _config(tmp_path),
        _FakeBackend(failing={"two"}, on_call=_cancel_after_two),
        steps=steps,
        cancellation=cancellation,
    )
    backend = _FakeBackend()

    outcome = run_pipeline(
        _config(tmp_path, selection=RunSelection.RERUN_FAILED), backend, steps=steps
    )

    assert backend.calls == ["two"]
    assert _states(outcome) == {
        "one": StepState.SUCCEEDED,
        "two": StepState.SUCCEEDED,
        "three": StepState.PENDING,
    }
    assert outcome.manifest.run_state is RunState.COMPLETED_WITH_FAILURES


def test_unreadable_dependency_artifact_is_recorded_not_raised(tmp_path: Path) -> None:
    run_pipeline(_config(tmp_path), _FakeBackend(failing={"two"}), steps=_chain())
    config = _config(tmp_path, selection=RunSelection.RERUN_FAILED)
    (config.output_dir / "one.json").write_bytes(b"\xff\xfe not utf-8")
    backend = _FakeBackend()

    outcome = run_pipeline(config, backend, steps=_chain())

    assert backend.calls == []
    assert _states(outcome) == {
        "one": StepState.SUCCEEDED,
        "two": StepState.FAILED,
        "three": StepState.FAILED,
    }
    assert outcome.manifest.status_of("two").error_kind is ErrorKind.MALFORMED_OUTPUT
    assert outcome.manifest.run_state is RunState.COMPLETED_WITH_FAILURES
    assert load_manifest(config.output_dir) == outcome.manifest


def test_artifact_write_failure_is_recorded_and_the_run_finishes(tmp_path: Path) -> None:
    config = _config(tmp_path)
    (config.output_dir / "two.json").mkdir(parents=True)

    outcome = run_pipeline(config, _FakeBackend(), steps=_chain())

    assert _states(outcome) == {
        "one": StepState.SUCCEEDED,
        "two": StepState.FAILED,
        "three": StepState.FAILED,
    }
    assert outcome.manifest.status_of("two").error_kind is ErrorKind.MALFORMED_OUTPUT
    stored = load_manifest(config.output_dir)
    assert stored.run_state is RunState.COMPLETED_WITH_FAILURES
    assert StepState.RUNNING not in {status.state for status in stored.steps}


def test_skipped_step_without_artifact_fails_its_dependent(tmp_path: Path) -> None:
    steps = number_steps(
        [
            _step("s1"),
            _step("s2"),
            _step("s3"),
            _step("s4"),
            _step("s5"),
            _step("s6", "s5"),
        ]
    )
    backend = _FakeBackend()

    outcome = run_pipeline(
        _config(tmp_path, skip_steps=frozenset({"2", "5"})), backend, steps=steps
    )

    assert backend.calls == ["s1", "s3", "s4"]
    assert outcome.manifest.status_of("s2").skipped is True
    assert outcome.manifest.status_of("s5").state is StepState.SUCCEEDED
    s6 = outcome.manifest.status_of("s6")
    assert s6.state is StepState.FAILED
    assert s6.error_kind is ErrorKind.MISSING_DEPENDENCY
    assert outcome.manifest.run_state is RunState.COMPLETED_WITH_FAILURES


def test_skip_accepts_step_keys(tmp_path: Path) -> None:
    backend = _FakeBackend()

    outcome = run_pipeline(
        _config(tmp_path, skip_steps=frozenset({"three"})), backend, steps=_chain()
    )

    assert backend.calls == ["one", "two"]
    assert outcome.manifest.run_state is RunState.COMPLETED


def test_unknown_skip_step_is_a_usage_error(tmp_path: Path) -> None:
    config = _config(tmp_path, skip_steps=frozenset({"42"}))

    with pytest.raises(PipelineUsageError, match="Unknown step '42'"):
        run_pipeline(config, _FakeBackend(), steps=_chain())

    assert not config.output_dir.exists()


def test_cancellation_stops_after_the_current_step(tmp_path: Path) -> None:
    cancellation = CancellationToken()

    def _cancel_during_one(step_key: str) -> None:
        if step_key == "one":
            cancellation.cancel()

    backend = _FakeBackend(on_call=_cancel_during_one)

    outcome = run_pipeline(
        _config(tmp_path), backend, steps=_chain(), cancellation=cancellation
    )

    assert backend.calls == ["one"]
    assert outcome.manifest.run_state is RunState.ABORTED
    assert _states(outcome) == {
        "one": StepState.SUCCEEDED,
        "two": StepState.PENDING,
        "three": StepState.PENDING,
    }
    assert load_manifest(_config(tmp_path).output_dir).run_state is RunState.ABORTED


def test_dry_run_plans_without_writing_anything(tmp_path: Path) -> None:
    config = _config(tmp_path, dry_run=True, skip_steps=frozenset({"2"}))
    backend = _FakeBackend()

    outcome = run_pipeline(config, backend, steps=_chain())

    assert backend.calls == []
    assert outcome.dry_run is True
    assert outcome.succeeded is True
    assert [entry.action for entry in outcome.plan] == [
        PlanAction.ATTEMPT,
        PlanAction.SKIP,
        PlanAction.ATTEMPT,
    ]
    assert not config.output_dir.exists()


def test_dry_run_resume_reports_reuse_and_leaves_files_untouched(tmp_path: Path) -> None:
    run_pipeline(_config(tmp_path), _FakeBackend(failing={"three"}), steps=_chain())
    manifest_file = _config(tmp_path).output_dir / MANIFEST_FILENAME
    before = manifest_file.read_bytes()

    outcome = run_pipeline(
        _config(tmp_path, dry_run=True, selection=RunSelection.RESUME),
        _FakeBackend(),
        steps=_chain(),
    )

    assert [entry.action for entry in outcome.plan] == [
        PlanAction.REUSE,
        PlanAction.REUSE,
        PlanAction.ATTEMPT,
    ]
    assert manifest_file.read_bytes() == before


def test_concurrent_run_on_same_entity_is_refused(tmp_path: Path) -> None:
    config = _config(tmp_path)
    backend = _FakeBackend()

    with EntityRunLock(config.output_dir):
        with pytest.raises(RunLockError):
            run_pipeline(config, backend, steps=_chain())

    assert backend.calls == []


def test_default_step_list_is_used_when_none_is_given(tmp_path: Path) -> None:
    outcome = run_pipeline(_config(tmp_path, dry_run=True), _FakeBackend())

    assert len(outcome.plan) == 11
    assert outcome.plan[0].step.key == "form-structure-search"
