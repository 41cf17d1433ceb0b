"""Template generation exports."""

from .template_generator import (
    TemplateGenerationReport,
    TemplateGenerationResult,
    TemplateTarget,
    generate_templates,
    template_file_problems,
    template_steps,
    write_template_files,
)

__all__ = [
    "TemplateGenerationReport",
    "TemplateGenerationResult",
    "TemplateTarget",
    "generate_templates",
    "template_file_problems",
    "template_steps",
    "write_template_files",
]
