"""Generation backend that shells out to the claude CLI in print mode."""

from __future__ import annotations

import json
import logging
import os
import subprocess
from collections.abc import Callable, Mapping
from pathlib import Path

from conversion_pipeline.configuration.runtime_settings import BackendSettings

from .backend_contracts import BackendError, PromptPayload

logger = logging.getLogger(__name__)

CommandRunner = Callable[[tuple[str, ...], Path | None, Mapping[str, str], int], str]


class ClaudeCliBackend:  # pylint: disable=too-few-public-methods
    """Runs one non-interactive CLI invocation per prompt and returns the result text."""

    def __init__(
        self, settings: BackendSettings, *, run_command: CommandRunner | None = None
    ) -> None:
        self._settings = settings
        self._run_command = run_command or _run_checked_command

    def generate(self, payload: PromptPayload) -> str:
        command = build_backend_command(self._settings, payload)
        logger.debug(
            "invoking backend %s for step %s (timeout %ss)",
            command[0],
            payload.step_key,
            self._settings.timeout_seconds,
        )
        stdout = self._run_command(
            command,
            payload.working_directory,
            payload.environment,
            self._settings.timeout_seconds,
        )
        return extract_result_text(stdout)


def build_backend_command(settings: BackendSettings, payload: PromptPayload) -> tuple[str, ...]:
    """Assemble argv for print mode with JSON output; the user prompt goes last."""
    command = [*settings.command, "--print", "--output-format", "json"]
    if payload.system_prompt:
        command.extend(["--append-system-prompt", payload.system_prompt])
    command.extend(settings.extra_args)
    command.append(payload.user_prompt)
    return tuple(command)


def extract_result_text(stdout: str) -> str:
    """Unwrap the CLI's JSON result envelope; plain text passes through unchanged."""
    text = stdout.strip()
    if not text:
        raise BackendError("Backend returned no output.")
    try:
        envelope = json.loads(text)
    except json.JSONDecodeError:
        return text
    if not isinstance(envelope, Mapping) or "result" not in envelope:
        return text
    if envelope.get("is_error"):
        detail = envelope.get("result") or envelope.get("subtype") or "unknown error"
        raise BackendError(f"Backend reported an error: {detail}")
    result = envelope["result"]
    if not isinstance(result, str):
        raise BackendError("Backend result field is not text.")
    return result


def _run_checked_command(
    command: tuple[str, ...],
    cwd: Path | None,
    environment: Mapping[str, str],
    timeout_seconds: int,
) -> str:
    """Run one backend command and wrap subprocess errors with domain-friendly messages."""
    try:
        completed = subprocess.run(
            list(command),
            cwd=cwd,
            env={**os.environ, **environment},
            capture_output=True,
            text=True,
            timeout=timeout_seconds,
            check=True,
        )
    except FileNotFoundError as exc:
        raise BackendError(f"Backend command not found: {command[0]}") from exc
    except subprocess.TimeoutExpired as exc:
        raise BackendError(f"Backend timed out after {timeout_seconds}s") from exc
    except subprocess.CalledProcessError as exc:
        stderr_tail = (exc.stderr or "").strip().splitlines()[-1:] or [""]
        raise BackendError(
            f"Backend command failed with exit code {exc.returncode}: {stderr_tail[0]}".rstrip(": ")
        ) from exc
    return completed.stdout
