"""Backup siblings for merged target files and entity rollback."""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from conversion_pipeline.configuration.runtime_settings import RunConfig
from conversion_pipeline.error_kinds import ErrorKind
from conversion_pipeline.target_layout import list_generated_files, map_generated_file

BACKUP_SUFFIX = ".backup"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackupRecord:
    original_path: Path
    backup_path: Path
    created_at: datetime


class RollbackStatus(str, Enum):
    RESTORED = "restored"
    WOULD_RESTORE = "would-restore"
    NO_BACKUP = "no-backup"
    ERROR = "error"


@dataclass(frozen=True)
class RollbackEntry:
    target_path: Path
    status: RollbackStatus
    error_kind: ErrorKind | None = None
    message: str | None = None


@dataclass(frozen=True)
class RollbackReport:
    """Per-file outcome of a rollback."""

    entries: tuple[RollbackEntry, ...]
    dry_run: bool = False

    def count(self, status: RollbackStatus) -> int:
        return sum(1 for entry in self.entries if entry.status is status)

    @property
    def has_errors(self) -> bool:
        return self.count(RollbackStatus.ERROR) > 0


def backup_path_for(target_path: Path) -> Path:
    return target_path.with_name(target_path.name + BACKUP_SUFFIX)


def create_backup(target_path: Path, *, created_at: datetime | None = None) -> BackupRecord:
    """Copy `target_path` to its `.backup` sibling, replacing an older backup."""
    backup_path = backup_path_for(target_path)
    shutil.copy2(target_path, backup_path)
    logger.debug("backed up %s", target_path)
    return BackupRecord(
        original_path=target_path,
        backup_path=backup_path,
        created_at=created_at or datetime.now(UTC),
    )


def restore_backups(target_paths: Iterable[Path], *, dry_run: bool = False) -> RollbackReport:
    """Restore each target from its backup and delete the backup.

    A missing backup is reported as NoBackupFound and the rollback continues.
    """
    entries = []
    for target_path in target_paths:
        backup_path = backup_path_for(target_path)
        if not backup_path.is_file():
            entries.append(
                RollbackEntry(
                    target_path=target_path,
                    status=RollbackStatus.NO_BACKUP,
                    error_kind=ErrorKind.NO_BACKUP_FOUND,
                    message="no backup found",
                )
            )
            continue
        if dry_run:
            entries.append(
                RollbackEntry(target_path=target_path, status=RollbackStatus.WOULD_RESTORE)
            )
            continue
        try:
            os.replace(backup_path, target_path)
        except OSError as exc:
            entries.append(
                RollbackEntry(
                    target_path=target_path, status=RollbackStatus.ERROR, message=str(exc)
                )
            )
            continue
        entries.append(RollbackEntry(target_path=target_path, status=RollbackStatus.RESTORED))
    return RollbackReport(entries=tuple(entries), dry_run=dry_run)


def rollback_entity(config: RunConfig, *, dry_run: bool = False) -> RollbackReport:
    """Roll back every known target location of the entity's generated files.

    Raises:
      TargetLayoutError: If a mapped target root is missing.
    """
    targets = []
    for generated_path in list_generated_files(config.templates_dir):
        mapped = map_generated_file(
            generated_path, config.templates_dir, entity=config.entity, settings=config.settings
        )
        if mapped is not None:
            targets.append(mapped.target_path)
    return restore_backups(dict.fromkeys(targets), dry_run=dry_run)
