"""Advisory per-entity lock file."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from types import TracebackType

LOCK_FILENAME = ".conversion.lock"

logger = logging.getLogger(__name__)


class RunLockError(Exception):
    """Raised when another process already holds the entity lock."""


class EntityRunLock:
    """Exclusive lock file held for the duration of a run or merge."""

    def __init__(self, output_dir: Path) -> None:
        self.path = output_dir / LOCK_FILENAME
        self._held = False

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            descriptor = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as exc:
            raise RunLockError(
                f"Another run appears to be active for this entity (lock file {self.path}). "
                "Remove the lock file if no other run is in progress."
            ) from exc
        with os.fdopen(descriptor, "w", encoding="utf-8") as handle:
            handle.write(f"{os.getpid()}\n")
        self._held = True
        logger.debug("acquired lock %s", self.path)

    def release(self) -> None:
        if self._held:
            self.path.unlink(missing_ok=True)
            self._held = False
            logger.debug("released lock %s", self.path)

    def __enter__(self) -> EntityRunLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.release()
