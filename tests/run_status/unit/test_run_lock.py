"""Entity lock tests."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from conversion_pipeline.run_status import LOCK_FILENAME, EntityRunLock, RunLockError


def test_lock_file_holds_pid_and_is_removed_on_exit(tmp_path: Path) -> None:
    output_dir = tmp_path / "output" / "Facility"

    with EntityRunLock(output_dir) as lock:
        assert lock.path == output_dir / LOCK_FILENAME
        assert lock.path.read_text(encoding="utf-8").strip() == str(os.getpid())

    assert not (output_dir / LOCK_FILENAME).exists()


def test_second_lock_on_same_entity_is_refused(tmp_path: Path) -> None:
    with EntityRunLock(tmp_path):
        with pytest.raises(RunLockError, match="Another run appears to be active"):
            EntityRunLock(tmp_path).acquire()

    assert not (tmp_path / LOCK_FILENAME).exists()


def test_refused_lock_does_not_remove_the_holders_file(tmp_path: Path) -> None:
    holder = EntityRunLock(tmp_path)
    holder.acquire()
    contender = EntityRunLock(tmp_path)

    with pytest.raises(RunLockError):
        contender.acquire()
    contender.release()

    assert (tmp_path / LOCK_FILENAME).exists()
    holder.release()
    assert not (tmp_path / LOCK_FILENAME).exists()


def test_lock_is_released_when_the_body_raises(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError):
        with EntityRunLock(tmp_path):
            raise RuntimeError("boom")

    assert not (tmp_path / LOCK_FILENAME).exists()
