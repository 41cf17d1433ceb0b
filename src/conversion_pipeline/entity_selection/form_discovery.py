"""Legacy form discovery and entity name resolution."""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from conversion_pipeline.configuration.runtime_settings import ProjectSettings

_PAIRED_FORM_NAME = re.compile(r"^frm(?P<entity>.+?)(?P<kind>Search|Detail)$", re.IGNORECASE)
_FORM_FILE = re.compile(r"^frm.+?(Search|Detail)\.vb$", re.IGNORECASE)

FormChooser = Callable[[Sequence[str]], str | None]


class EntitySelectionError(Exception):
    """Raised when no entity can be resolved from the supplied names."""


@dataclass(frozen=True)
class EntitySelection:
    """Resolved entity plus the form it was derived from."""

    entity: str
    form_name: str | None
    single_form: bool


def parse_entity_from_form_name(form_name: str) -> str | None:
    """Return the entity of a Search/Detail form name, e.g. frmFacilitySearch -> Facility."""
    match = _PAIRED_FORM_NAME.match(form_name.strip())
    if match:
        return match.group("entity")
    return None


def forms_directory(settings: ProjectSettings) -> Path | None:
    if settings.source_root is None:
        return None
    return settings.source_root / settings.source_layout.forms


def discover_form_names(settings: ProjectSettings) -> list[str]:
    """List Search/Detail form names found in the legacy forms directory."""
    directory = forms_directory(settings)
    if directory is None or not directory.is_dir():
        return []
    names = [
        candidate.name[: -len(".vb")]
        for candidate in directory.iterdir()
        if candidate.is_file()
        and not candidate.name.lower().endswith(".designer.vb")
        and _FORM_FILE.match(candidate.name)
    ]
    return sorted(names)


def resolve_entity(
    *,
    entity: str | None,
    form_name: str | None,
    settings: ProjectSettings,
    interactive: bool,
    choose_form: FormChooser | None = None,
) -> EntitySelection:
    """Resolve the entity to convert from the supplied flags.

    Falls back to an interactive form picker when neither flag is given and a
    chooser is available on an interactive terminal.
    """
    entity = (entity or "").strip() or None
    form_name = (form_name or "").strip() or None

    if entity and not form_name:
        return EntitySelection(entity=entity, form_name=None, single_form=False)

    if form_name:
        derived_entity, single_form = _entity_from_form(form_name)
        return EntitySelection(
            entity=entity or derived_entity,
            form_name=form_name,
            single_form=single_form,
        )

    if not interactive or choose_form is None:
        raise EntitySelectionError("Either --entity or --form-name is required.")

    candidates = discover_form_names(settings)
    if not candidates:
        raise EntitySelectionError(
            f"No forms found in the forms directory: {forms_directory(settings)}"
        )
    selected = choose_form(candidates)
    if not selected:
        raise EntitySelectionError("No form selected.")
    derived_entity, single_form = _entity_from_form(selected)
    return EntitySelection(entity=derived_entity, form_name=selected, single_form=single_form)


def pick_form_from_answer(answer: str, candidates: Sequence[str]) -> str | None:
    """Interpret a picker answer as a 1-based index or an exact form name."""
    value = answer.strip()
    if value.isdigit():
        index = int(value)
        if 1 <= index <= len(candidates):
            return candidates[index - 1]
        return None
    return value if value in candidates else None


def _entity_from_form(form_name: str) -> tuple[str, bool]:
    paired_entity = parse_entity_from_form_name(form_name)
    if paired_entity:
        return paired_entity, False
    if form_name.lower().startswith("frm") and len(form_name) > 3:
        return form_name[3:], True
    raise EntitySelectionError(
        f"Could not parse entity name from form name '{form_name}'. "
        "Expected frm{Entity}Search, frm{Entity}Detail, or frm{Entity}."
    )
