"""Entity selection exports."""

from .form_discovery import (
    EntitySelection,
    EntitySelectionError,
    discover_form_names,
    forms_directory,
    parse_entity_from_form_name,
    pick_form_from_answer,
    resolve_entity,
)

__all__ = [
    "EntitySelection",
    "EntitySelectionError",
    "discover_form_names",
    "forms_directory",
    "parse_entity_from_form_name",
    "pick_form_from_answer",
    "resolve_entity",
]
