"""
Directory backup service — snapshot and restore a project tree.

``create`` copies the project into the backup path; ``restore``
empties the project directory and copies the snapshot back. Copies
run on a worker thread so the caller can bound them with a timeout.
"""

from __future__ import annotations

import logging
import shutil
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from pathlib import Path
from typing import Callable

from dnacomposer.adapters.base import BackupError, BackupService

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 600


def _run_bounded(fn: Callable[[], None], timeout: float | None, what: str) -> None:
    # The copy keeps running after a timeout; the caller just stops waiting.
    pool = ThreadPoolExecutor(max_workers=1)
    try:
        pool.submit(fn).result(timeout=timeout or DEFAULT_TIMEOUT_S)
    except FutureTimeout as e:
        raise BackupError(f"{what} timed out after {timeout or DEFAULT_TIMEOUT_S}s") from e
    except OSError as e:
        raise BackupError(f"{what} failed: {e}") from e
    finally:
        pool.shutdown(wait=False)


def _clear_directory(path: Path) -> None:
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


class DirectoryBackupService(BackupService):
    """Full-tree copy backups with ``shutil.copytree``."""

    @property
    def name(self) -> str:
        return "directory"

    def create(self, project_path: str, backup_path: str, timeout: float | None = None) -> None:
        src = Path(project_path)
        dst = Path(backup_path)
        if not src.is_dir():
            raise BackupError(f"Project path does not exist: {src}")
        if dst.exists() and any(dst.iterdir()):
            raise BackupError(f"Backup path is not empty: {dst}")

        logger.info("Backing up %s → %s", src, dst)
        _run_bounded(
            lambda: shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True),
            timeout,
            f"Backup of {src}",
        )

    def restore(self, backup_path: str, project_path: str, timeout: float | None = None) -> None:
        src = Path(backup_path)
        dst = Path(project_path)
        if not src.is_dir():
            raise BackupError(f"Backup not found: {src}")

        def _restore() -> None:
            dst.mkdir(parents=True, exist_ok=True)
            _clear_directory(dst)
            shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True)

        logger.info("Restoring %s from %s", dst, src)
        _run_bounded(_restore, timeout, f"Restore of {dst}")
