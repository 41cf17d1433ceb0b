"""Generation backend contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol


class BackendError(Exception):
    """Raised when the generation backend fails, times out, or reports an error."""


@dataclass(frozen=True)
class PromptPayload:
    """Everything the backend needs for one generation call."""

    step_key: str
    system_prompt: str
    user_prompt: str
    working_directory: Path | None = None
    environment: dict[str, str] = field(default_factory=dict)


class GenerationBackend(Protocol):  # pylint: disable=too-few-public-methods
    """Black-box text generator used by every step."""

    def generate(self, payload: PromptPayload) -> str: ...
