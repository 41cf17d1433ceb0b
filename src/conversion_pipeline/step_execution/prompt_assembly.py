"""Builds the backend prompt for one step."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from conversion_pipeline.configuration.runtime_settings import RunConfig
from conversion_pipeline.generation_backend import PromptPayload

from .artifact_io import GeneratedArtifact
from .artifact_schemas import schema_for
from .prompt_templates import SYSTEM_PROMPT, load_prompt_template
from .step_catalog import ArtifactFormat, StepDefinition


def build_prompt(
    step: StepDefinition,
    config: RunConfig,
    *,
    source_files: Sequence[tuple[Path, str]],
    prior_artifacts: Sequence[GeneratedArtifact],
) -> PromptPayload:
    """Assemble template text, entity context, inputs and the output-shape instruction."""
    template = load_prompt_template(step.prompt_template, config.settings.prompt_directory)
    context = dict(step.prompt_context)
    form_kind = context.get("form_kind", "")
    task_text = template.safe_substitute(
        entity=config.entity,
        form_name=config.form_name or "",
        form_kind=form_kind,
        form_label=_form_label(config, form_kind),
        step_title=step.title,
        step_key=step.key,
    )
    sections = [
        task_text.strip(),
        f"ENTITY: {config.entity}",
        _render_source_files(source_files),
        _render_prior_artifacts(prior_artifacts),
        output_instruction(step),
    ]
    return PromptPayload(
        step_key=step.key,
        system_prompt=SYSTEM_PROMPT,
        user_prompt="\n\n".join(section for section in sections if section),
        working_directory=config.source_root,
        environment={
            "ENTITY_NAME": config.entity,
            "FORM_TYPE": "Single" if config.single_form else form_kind,
            "OUTPUT_PATH": str(config.output_dir),
        },
    )


def output_instruction(step: StepDefinition) -> str:
    if step.artifact_format is ArtifactFormat.MARKDOWN:
        return "OUTPUT: Reply with a single Markdown document."
    schema = schema_for(step.artifact_schema_name)
    if not schema.required_fields:
        return "OUTPUT: Reply with a single JSON object."
    fields = ", ".join(
        f"{name} ({expected_type.__name__})"
        for name, expected_type in schema.required_fields.items()
    )
    return (
        "OUTPUT: Reply with a single JSON object inside a ```json fenced block. "
        f"It must contain these top-level fields: {fields}."
    )


def _form_label(config: RunConfig, form_kind: str) -> str:
    if config.single_form or form_kind == "single":
        return config.form_name or f"frm{config.entity}"
    return f"frm{config.entity}{form_kind}"


def _render_source_files(source_files: Sequence[tuple[Path, str]]) -> str:
    if not source_files:
        return ""
    blocks = ["SOURCE FILES:"]
    for path, content in source_files:
        blocks.append(f"### {path.name}\n```vb\n{content.rstrip()}\n```")
    return "\n\n".join(blocks)


def _render_prior_artifacts(prior_artifacts: Sequence[GeneratedArtifact]) -> str:
    if not prior_artifacts:
        return ""
    blocks = ["PRIOR ANALYSIS:"]
    for artifact in prior_artifacts:
        fence = "markdown" if artifact.artifact_format is ArtifactFormat.MARKDOWN else "json"
        blocks.append(
            f"### {artifact.step_key} ({artifact.path.name})\n"
            f"```{fence}\n{artifact.prompt_text().rstrip()}\n```"
        )
    return "\n\n".join(blocks)
