"""Step execution exports."""

from .artifact_io import GeneratedArtifact, artifact_path, read_artifact, write_artifact
from .artifact_schemas import ArtifactSchema, ArtifactValidationError, schema_for
from .prompt_assembly import build_prompt
from .step_catalog import (
    ArtifactFormat,
    SourceInput,
    StepDefinition,
    default_steps,
    find_step,
    number_steps,
)
from .step_runner import StepExecutionError, extract_json_object, run_step

__all__ = [
    "ArtifactFormat",
    "ArtifactSchema",
    "ArtifactValidationError",
    "GeneratedArtifact",
    "SourceInput",
    "StepDefinition",
    "StepExecutionError",
    "artifact_path",
    "build_prompt",
    "default_steps",
    "extract_json_object",
    "find_step",
    "number_steps",
    "read_artifact",
    "run_step",
    "schema_for",
    "write_artifact",
]
