"""Generation backend exports."""

from .backend_contracts import BackendError, GenerationBackend, PromptPayload
from .claude_cli_backend import ClaudeCliBackend, build_backend_command, extract_result_text

__all__ = [
    "BackendError",
    "GenerationBackend",
    "PromptPayload",
    "ClaudeCliBackend",
    "build_backend_command",
    "extract_result_text",
]
