"""Ordered analysis steps for one entity conversion."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from conversion_pipeline.configuration.runtime_settings import RunConfig


class ArtifactFormat(str, Enum):
    """Serialization of a step artifact."""

    JSON = "json"
    MARKDOWN = "markdown"


@dataclass(frozen=True)
class SourceInput:
    """Legacy source file read by a step.

    `pattern` is relative to the source root and may use the placeholders
    `{forms}`, `{business_objects}`, `{business_objects_base}`, `{lists}`,
    `{entity}` and `{form_name}`.
    """

    pattern: str
    required: bool = True

    def resolve(self, config: RunConfig) -> Path | None:
        if config.source_root is None:
            return None
        layout = config.settings.source_layout
        relative = self.pattern.format(
            forms=layout.forms,
            business_objects=layout.business_objects,
            business_objects_base=layout.business_objects_base,
            lists=layout.lists,
            entity=config.entity,
            form_name=config.form_name or f"frm{config.entity}",
        )
        return config.source_root / relative


@dataclass(frozen=True)
class StepDefinition:  # pylint: disable=too-many-instance-attributes
    """One named unit of pipeline work producing one artifact."""

    number: int
    key: str
    title: str
    prompt_template: str
    output_name: str
    artifact_format: ArtifactFormat = ArtifactFormat.JSON
    depends_on: tuple[str, ...] = ()
    source_inputs: tuple[SourceInput, ...] = ()
    schema_name: str = ""
    prompt_context: tuple[tuple[str, str], ...] = ()

    @property
    def artifact_schema_name(self) -> str:
        return self.schema_name or self.key

    def matches(self, identifier: str) -> bool:
        """True when `identifier` is this step's 1-based number or its key."""
        value = identifier.strip().lower()
        return value == str(self.number) or value == self.key


def default_steps(single_form: bool, form_name: str | None = None) -> tuple[StepDefinition, ...]:
    """Build the default step list for a Search/Detail pair or a single form."""
    if single_form:
        form_steps = [
            _form_structure_step(
                "form-structure",
                f"Form Structure ({form_name})" if form_name else "Form Structure",
                "{forms}/{form_name}",
                form_kind="single",
            )
        ]
    else:
        form_steps = [
            _form_structure_step(
                "form-structure-search",
                "Form Structure (Search)",
                "{forms}/frm{entity}Search",
                form_kind="Search",
            ),
            _form_structure_step(
                "form-structure-detail",
                "Form Structure (Detail)",
                "{forms}/frm{entity}Detail",
                form_kind="Detail",
            ),
        ]
    form_keys = tuple(step.key for step in form_steps)
    form_sources = tuple(
        SourceInput(step.source_inputs[0].pattern, required=False) for step in form_steps
    )

    analysis_steps = [
        _json_step(
            "business-logic",
            "Business Logic",
            source_inputs=(
                SourceInput("{business_objects}/{entity}Location.vb", required=False),
                SourceInput("{business_objects_base}/{entity}LocationBase.vb", required=False),
            ),
        ),
        _json_step(
            "data-access",
            "Data Access Patterns",
            source_inputs=(
                SourceInput("{lists}/{entity}LocationSearch.vb", required=False),
                SourceInput("{business_objects_base}/{entity}LocationBase.vb", required=False),
            ),
        ),
        _json_step("security", "Security and Authorization", source_inputs=form_sources),
        _json_step("ui-mapping", "UI Component Mapping", depends_on=form_keys),
        _json_step("workflow", "Form Workflow", depends_on=form_keys, source_inputs=form_sources),
    ]
    if not single_form:
        analysis_steps.append(
            _json_step("tabs", "Detail Form Tabs", depends_on=("form-structure-detail",))
        )
    analysis_steps.extend(
        [
            _json_step("validation", "Validation Rules", depends_on=("business-logic",)),
            _json_step("related-entities", "Related Entities", depends_on=("data-access",)),
        ]
    )
    analysis_keys = tuple(step.key for step in (*form_steps, *analysis_steps))
    plan_step = StepDefinition(
        number=0,
        key="conversion-plan",
        title="Conversion Plan",
        prompt_template="conversion-plan",
        output_name="conversion-plan.md",
        artifact_format=ArtifactFormat.MARKDOWN,
        depends_on=analysis_keys,
    )
    return number_steps([*form_steps, *analysis_steps, plan_step])


def number_steps(steps: Iterable[StepDefinition]) -> tuple[StepDefinition, ...]:
    """Assign 1-based positions in declared order."""
    numbered = []
    for position, step in enumerate(steps, start=1):
        numbered.append(
            StepDefinition(
                number=position,
                key=step.key,
                title=step.title,
                prompt_template=step.prompt_template,
                output_name=step.output_name,
                artifact_format=step.artifact_format,
                depends_on=step.depends_on,
                source_inputs=step.source_inputs,
                schema_name=step.schema_name,
                prompt_context=step.prompt_context,
            )
        )
    return tuple(numbered)


def find_step(steps: Sequence[StepDefinition], identifier: str) -> StepDefinition | None:
    return next((step for step in steps if step.matches(identifier)), None)


def _json_step(
    key: str,
    title: str,
    *,
    depends_on: tuple[str, ...] = (),
    source_inputs: tuple[SourceInput, ...] = (),
) -> StepDefinition:
    return StepDefinition(
        number=0,
        key=key,
        title=title,
        prompt_template=key,
        output_name=f"{key}.json",
        depends_on=depends_on,
        source_inputs=source_inputs,
    )


def _form_structure_step(key: str, title: str, stem: str, *, form_kind: str) -> StepDefinition:
    return StepDefinition(
        number=0,
        key=key,
        title=title,
        prompt_template="form-structure",
        output_name=f"{key}.json",
        source_inputs=(
            SourceInput(f"{stem}.vb"),
            SourceInput(f"{stem}.Designer.vb", required=False),
        ),
        schema_name="form-structure",
        prompt_context=(("form_kind", form_kind),),
    )
