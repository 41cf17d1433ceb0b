"""Versioned schemas for JSON step artifacts."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

ENVELOPE_FIELDS = ("schema", "schemaVersion", "entity", "stepId", "generatedAt", "data")


class ArtifactValidationError(Exception):
    """Raised when an artifact document does not match its declared schema."""


@dataclass(frozen=True)
class ArtifactSchema:
    """Required top-level fields of one artifact's `data` object."""

    name: str
    version: int
    required_fields: Mapping[str, type] = field(default_factory=dict)

    def problems(self, data: Any) -> list[str]:
        """List every reason `data` fails this schema; empty when valid."""
        if not isinstance(data, Mapping):
            return [f"{self.name}: expected a JSON object, got {type(data).__name__}"]
        problems = []
        for field_name, expected_type in self.required_fields.items():
            if field_name not in data:
                problems.append(f"{self.name}: missing required field '{field_name}'")
                continue
            value = data[field_name]
            wrong_bool = isinstance(value, bool) and expected_type is not bool
            if wrong_bool or not isinstance(value, expected_type):
                problems.append(
                    f"{self.name}: field '{field_name}' must be {_json_type_name(expected_type)}"
                )
        return problems

    def validate(self, data: Any) -> None:
        problems = self.problems(data)
        if problems:
            raise ArtifactValidationError("; ".join(problems))


_SCHEMAS = {
    schema.name: schema
    for schema in (
        ArtifactSchema(
            "form-structure",
            1,
            {"formName": str, "formType": str, "controls": list, "eventHandlers": list},
        ),
        ArtifactSchema(
            "business-logic",
            1,
            {"properties": list, "businessRules": list, "methods": list},
        ),
        ArtifactSchema("data-access", 1, {"queries": list, "storedProcedures": list}),
        ArtifactSchema("security", 1, {"permissions": list, "authorizationChecks": list}),
        ArtifactSchema("ui-mapping", 1, {"componentMappings": list}),
        ArtifactSchema("workflow", 1, {"workflows": list}),
        ArtifactSchema("tabs", 1, {"tabs": list}),
        ArtifactSchema("validation", 1, {"validationRules": list}),
        ArtifactSchema("related-entities", 1, {"relatedEntities": list}),
        ArtifactSchema("generated-templates", 1, {"files": list}),
    )
}


def schema_for(name: str) -> ArtifactSchema:
    """Return the registered schema, or a permissive object schema for unknown names."""
    return _SCHEMAS.get(name) or ArtifactSchema(name, 1)


def build_envelope(
    schema: ArtifactSchema,
    *,
    entity: str,
    step_id: str,
    generated_at: str,
    data: Mapping[str, Any],
) -> dict[str, Any]:
    return {
        "schema": schema.name,
        "schemaVersion": schema.version,
        "entity": entity,
        "stepId": step_id,
        "generatedAt": generated_at,
        "data": dict(data),
    }


def validate_envelope(document: Any, schema: ArtifactSchema) -> Mapping[str, Any]:
    """Check envelope shape, schema identity and version, then the data payload."""
    if not isinstance(document, Mapping):
        raise ArtifactValidationError("Artifact must be a JSON object.")
    missing = [name for name in ENVELOPE_FIELDS if name not in document]
    if missing:
        raise ArtifactValidationError(f"Artifact envelope is missing: {', '.join(missing)}")
    if document["schema"] != schema.name:
        raise ArtifactValidationError(
            f"Artifact schema is '{document['schema']}', expected '{schema.name}'."
        )
    if document["schemaVersion"] != schema.version:
        raise ArtifactValidationError(
            f"Artifact schema version {document['schemaVersion']} is not supported "
            f"(expected {schema.version})."
        )
    schema.validate(document["data"])
    return document["data"]


def _json_type_name(expected_type: type) -> str:
    return {
        str: "a string",
        list: "an array",
        dict: "an object",
        int: "an integer",
        float: "a number",
        bool: "a boolean",
    }.get(expected_type, expected_type.__name__)
