"""Run status exports."""

from .manifest_store import (
    MANIFEST_FILENAME,
    ManifestError,
    load_manifest,
    manifest_path,
    new_manifest,
    reconcile_manifest,
    save_manifest,
)
from .run_lock import LOCK_FILENAME, EntityRunLock, RunLockError
from .status_models import RunManifest, RunState, StepState, StepStatus

__all__ = [
    "LOCK_FILENAME",
    "MANIFEST_FILENAME",
    "EntityRunLock",
    "ManifestError",
    "RunLockError",
    "RunManifest",
    "RunState",
    "StepState",
    "StepStatus",
    "load_manifest",
    "manifest_path",
    "new_manifest",
    "reconcile_manifest",
    "save_manifest",
]
