from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable

from confvault.settings.errors import BackupCopyError

logger = logging.getLogger(__name__)

BACKUP_EXTENSION = ".backup"
# Existing quarantine files on disk use this spelling.
QUARANTINE_PREFIX = "currupted-"

Clock = Callable[[], datetime]


def backup_path_for(path: Path) -> Path:
    return path.with_suffix(BACKUP_EXTENSION)


def quarantine_path_for(path: Path, now: datetime, sequence: int = 0) -> Path:
    stamp = "%04d%02d%02d-%02d%02d%02d-%03d" % (
        now.year,
        now.month,
        now.day,
        now.hour,
        now.minute,
        now.second,
        now.microsecond // 1000,
    )
    if sequence:
        stamp = f"{stamp}-{sequence}"
    return path.with_suffix(f".{QUARANTINE_PREFIX}{stamp}")


class BackupManager:
    def __init__(self, clock: Clock = datetime.now) -> None:
        self._clock = clock

    def has_backup(self, path: Path) -> bool:
        return backup_path_for(path).exists()

    def create_backup(self, path: Path) -> None:
        """Replace the backup of ``path`` with a copy of its current contents."""
        if not path.exists():
            return
        backup_path = backup_path_for(path)
        try:
            backup_path.unlink(missing_ok=True)
        except OSError as exc:
            raise BackupCopyError(f"Unable to remove old backup file {backup_path}: {exc}") from exc
        try:
            shutil.copyfile(path, backup_path)
        except OSError as exc:
            raise BackupCopyError(f"Unable to create backup file for {path}: {exc}") from exc
        logger.info("Backup for '%s' successfully created", path)

    def remove_backup(self, path: Path) -> bool:
        backup_path = backup_path_for(path)
        try:
            backup_path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.error("Unable to remove old backup file %s (%s)", backup_path, exc)
            return False
        return True

    def restore_backup(self, path: Path) -> Path | None:
        """Put the backup in place of ``path``.

        A file already at ``path`` is copied to a timestamped quarantine name
        first and then removed. Returns the quarantine path, if one was made.
        """
        quarantine_path = None
        if path.exists():
            now = self._clock()
            candidate = quarantine_path_for(path, now)
            sequence = 0
            # Same-millisecond restores get a numbered name.
            while candidate.exists():
                sequence += 1
                candidate = quarantine_path_for(path, now, sequence)
            try:
                shutil.copyfile(path, candidate)
            except OSError as exc:
                logger.error("Unable to quarantine corrupted file %s (%s)", path, exc)
            else:
                quarantine_path = candidate
                logger.info("Copy of the corrupted file is stored to: %s", candidate)
            try:
                path.unlink()
            except OSError as exc:
                raise BackupCopyError(f"Unable to remove corrupted file {path}: {exc}") from exc

        try:
            shutil.copyfile(backup_path_for(path), path)
        except OSError as exc:
            raise BackupCopyError(f"Unable to restore backup file for {path}: {exc}") from exc
        logger.info("Backup for '%s' successfully restored", path)
        return quarantine_path
