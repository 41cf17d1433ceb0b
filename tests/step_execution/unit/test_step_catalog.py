"""Step catalog tests."""

from __future__ import annotations

from pathlib import Path

from conversion_pipeline.configuration import (
    BackendSettings,
    ProjectSettings,
    RunConfig,
    SourceLayout,
    TargetRoots,
)
from conversion_pipeline.step_execution import (
    ArtifactFormat,
    SourceInput,
    StepDefinition,
    default_steps,
    find_step,
    number_steps,
)


def _config(tmp_path: Path, *, form_name: str | None = None, single_form: bool = False):
    settings = ProjectSettings(
        path=None,
        source_root=tmp_path / "legacy",
        source_layout=SourceLayout(forms="UI/Forms"),
        target_roots=TargetRoots(api=None, ui=None, shared=None),
        output_root=tmp_path / "output",
        backend=BackendSettings(),
    )
    return RunConfig(
        entity="Facility",
        form_name=form_name,
        single_form=single_form,
        settings=settings,
        output_dir=tmp_path / "output" / "Facility",
    )


def test_paired_forms_produce_eleven_ordered_steps() -> None:
    steps = default_steps(single_form=False)

    assert [step.key for step in steps] == [
        "form-structure-search",
        "form-structure-detail",
        "business-logic",
        "data-access",
        "security",
        "ui-mapping",
        "workflow",
        "tabs",
        "validation",
        "related-entities",
        "conversion-plan",
    ]
    assert [step.number for step in steps] == list(range(1, 12))


def test_single_form_replaces_form_steps_and_drops_tabs() -> None:
    steps = default_steps(single_form=True, form_name="frmBoatStatus")

    keys = [step.key for step in steps]
    assert keys[0] == "form-structure"
    assert "tabs" not in keys
    assert "form-structure-search" not in keys
    assert len(steps) == 9
    assert steps[0].title == "Form Structure (frmBoatStatus)"
    assert find_step(steps, "ui-mapping").depends_on == ("form-structure",)


def test_dependencies_always_point_at_earlier_steps() -> None:
    for single_form in (False, True):
        steps = default_steps(single_form=single_form)
        seen: set[str] = set()
        for step in steps:
            assert set(step.depends_on) <= seen, step.key
            seen.add(step.key)


def test_conversion_plan_is_markdown_and_depends_on_all_analysis() -> None:
    steps = default_steps(single_form=False)
    plan = steps[-1]

    assert plan.artifact_format is ArtifactFormat.MARKDOWN
    assert plan.output_name == "conversion-plan.md"
    assert set(plan.depends_on) == {step.key for step in steps[:-1]}


def test_form_structure_steps_share_one_schema() -> None:
    steps = default_steps(single_form=False)

    assert find_step(steps, "1").artifact_schema_name == "form-structure"
    assert find_step(steps, "form-structure-detail").artifact_schema_name == "form-structure"
    assert find_step(steps, "security").artifact_schema_name == "security"


def test_find_step_matches_number_or_key() -> None:
    steps = default_steps(single_form=False)

    assert find_step(steps, " 3 ").key == "business-logic"
    assert find_step(steps, "Security").number == 5
    assert find_step(steps, "99") is None


def test_source_input_placeholders_resolve_against_layout(tmp_path: Path) -> None:
    config = _config(tmp_path)

    resolved = SourceInput("{forms}/frm{entity}Search.vb").resolve(config)

    assert resolved == tmp_path / "legacy" / "UI" / "Forms" / "frmFacilitySearch.vb"


def test_single_form_source_uses_form_name(tmp_path: Path) -> None:
    config = _config(tmp_path, form_name="frmBoatStatus", single_form=True)
    step = default_steps(single_form=True, form_name="frmBoatStatus")[0]

    resolved = step.source_inputs[0].resolve(config)

    assert resolved.name == "frmBoatStatus.vb"
    assert step.source_inputs[0].required is True
    assert step.source_inputs[1].required is False


def test_number_steps_renumbers_in_declared_order() -> None:
    steps = number_steps(
        [
            StepDefinition(number=7, key="b", title="B", prompt_template="b", output_name="b.json"),
            StepDefinition(number=3, key="a", title="A", prompt_template="a", output_name="a.json"),
        ]
    )

    assert [(step.number, step.key) for step in steps] == [(1, "b"), (2, "a")]
