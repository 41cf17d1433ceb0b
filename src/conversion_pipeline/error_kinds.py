"""Error kinds shared by the pipeline, merge engine, and CLI."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification attached to every reported failure."""

    USAGE_ERROR = "UsageError"
    MISSING_DEPENDENCY = "MissingDependency"
    BACKEND_FAILURE = "BackendFailure"
    MALFORMED_OUTPUT = "MalformedOutput"
    PARSE_AMBIGUITY = "ParseAmbiguity"
    NO_BACKUP_FOUND = "NoBackupFound"
