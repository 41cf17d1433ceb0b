"""Built-in prompt templates, overridable per project by `<prompt_directory>/<id>.md`."""

from __future__ import annotations

from pathlib import Path
from string import Template

SYSTEM_PROMPT = (
    "You are analysing a legacy VB.NET WinForms application that is being converted to "
    "an ASP.NET Core API and MVC admin UI. Work only from the source files and prior "
    "analysis results included in the request. Do not modify any files. Reply with the "
    "requested document only, without commentary."
)

_GENERIC_TEMPLATE = "TASK: $step_title for entity $entity."
_TEMPLATE_FILES_SHAPE = (
    "\nEach entry of `files` is an object with `path`, relative to the templates "
    "directory (for example api/Controllers/${entity}Controller.cs), and `content`, the "
    "complete file text."
)

_BUILT_IN_TEMPLATES = {
    "form-structure": (
        "TASK: Extract the complete form structure of $form_label for entity $entity.\n"
        "Capture every control (text boxes, drop-downs, grids, buttons) with its type, "
        "label, data binding and layout container, the grid column definitions, and the "
        "event handlers wired to each control.\n"
        "Form kind: $form_kind"
    ),
    "business-logic": (
        "TASK: Extract the business logic of the $entity business object: its properties "
        "with types, the business rules enforced on save or change, and public methods "
        "with their purpose."
    ),
    "data-access": (
        "TASK: Describe how $entity data is read and written: search queries with their "
        "filters, stored procedures with parameters, and any paging or sorting behaviour."
    ),
    "security": (
        "TASK: Extract the permissions and authorization checks that guard the $entity "
        "forms, including which controls are disabled or hidden for which roles."
    ),
    "ui-mapping": (
        "TASK: Map every legacy control of the $entity forms to its target MVC component "
        "(Razor input, select, DataTables grid column) using the form structure analysis."
    ),
    "workflow": (
        "TASK: Describe the user workflows of the $entity forms: search, open detail, "
        "create, edit, save, cancel and delete, with the events and validations involved."
    ),
    "tabs": (
        "TASK: Describe every tab page of the $entity detail form with the controls and "
        "child grids it contains."
    ),
    "validation": (
        "TASK: Extract every validation rule for $entity (required fields, lengths, "
        "ranges, cross-field checks) with the error message shown to the user."
    ),
    "related-entities": (
        "TASK: Identify the entities related to $entity (lookups, child collections, "
        "parents) and how each relationship is loaded and saved."
    ),
    "conversion-plan": (
        "TASK: Write the conversion plan for $entity as a Markdown document: the target "
        "API endpoints, DTOs, repository and service methods, MVC controllers, view "
        "models and views to create, in implementation order, based on all prior analysis."
    ),
    "templates-api": (
        "TASK: Generate the Shared DTOs and the API controller, repository interface and "
        "implementation, and service interface and implementation for $entity, following "
        "the conversion plan and prior analysis.\n"
        "Put every file under shared/ (shared/Dto/...) or api/ (api/Controllers, "
        "api/Repositories, api/Services, api/Mapping). Do not generate UI files."
        + _TEMPLATE_FILES_SHAPE
    ),
    "templates-ui": (
        "TASK: Generate the MVC UI for $entity following the conversion plan and prior "
        "analysis: controllers, UI services, view models, Razor views and page scripts.\n"
        "Put every file under ui/ (ui/Controllers, ui/Services, ui/ViewModels, "
        "ui/Views, ui/wwwroot). Do not generate API or Shared files."
        + _TEMPLATE_FILES_SHAPE
    ),
}


def load_prompt_template(template_id: str, prompt_directory: Path | None = None) -> Template:
    """Return the project override when present, otherwise the built-in template."""
    if prompt_directory is not None:
        override = prompt_directory / f"{template_id}.md"
        if override.is_file():
            return Template(override.read_text(encoding="utf-8"))
    return Template(_BUILT_IN_TEMPLATES.get(template_id, _GENERIC_TEMPLATE))


def built_in_template_ids() -> tuple[str, ...]:
    return tuple(_BUILT_IN_TEMPLATES)
