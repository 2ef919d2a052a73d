"""Hierarchical settings persisted as a JSON document.

A settings file is read into a FlatStore on construction and written back on
``flush``. Every successful read of a non-empty file leaves a sibling backup
behind and every write refreshes it, so a damaged or emptied file can be
replaced from the backup the next time the settings are synced. The damaged
file is kept under a timestamped quarantine name.
"""

from __future__ import annotations

import contextlib
import logging
import os
import stat
import tempfile
import weakref
from pathlib import Path
from typing import List, Optional, Tuple

from confvault.config import DEFAULT_MAX_FILE_SIZE, StoreConfig
from confvault.settings.backup import BackupManager
from confvault.settings.errors import (
    READ_ERRORS,
    WRITE_ERRORS,
    BackupCopyError,
    DecryptError,
    DirectoryCreateError,
    EncryptError,
    NotAFileError,
    ReadIOError,
    TooLargeError,
    WriteIOError,
)
from confvault.settings.flat_store import FlatStore, KeyLike, SettingValue
from confvault.settings.tree import export_tree, import_tree, parse_document
from confvault.storage.encryption import Cipher, CipherError, FernetCipher
from confvault.storage.paths import (
    DirectoryResolver,
    PlatformDirectoryResolver,
    Scope,
    current_exec_dir,
    scope_dir,
)

logger = logging.getLogger(__name__)

SETTINGS_EXTENSION = ".json"
MAX_SYNC_ATTEMPTS = 3


def read_settings_file(
    path: Path,
    store: FlatStore,
    cipher: Optional[Cipher] = None,
    *,
    max_size: int = DEFAULT_MAX_FILE_SIZE,
) -> None:
    """Replace the contents of ``store`` with the settings stored at ``path``.

    A missing file is not an error: an empty settings file is written in its
    place. A zero-byte file reads as empty.
    """
    store.clear()
    try:
        status = path.stat()
    except FileNotFoundError:
        try:
            write_settings_file(path, store, cipher)
        except WRITE_ERRORS as exc:
            logger.warning("Unable to create settings file '%s': %s", path, exc)
        return
    except OSError as exc:
        raise ReadIOError(f"Unable to stat settings file '{path}': {exc}") from exc

    if not stat.S_ISREG(status.st_mode):
        raise NotAFileError(f"Specified settings file is not a file: '{path}'")
    if status.st_size == 0:
        return
    if status.st_size > max_size:
        raise TooLargeError(f"Too big settings file: '{path}' ({status.st_size} bytes)")

    try:
        payload = path.read_bytes()
    except OSError as exc:
        raise ReadIOError(f"Failed to read settings file '{path}': {exc}") from exc

    if cipher is not None:
        try:
            payload = cipher.decrypt(payload)
        except CipherError as exc:
            raise DecryptError(f"Failed to decrypt settings file '{path}'") from exc

    import_tree(parse_document(payload), store)


def write_settings_file(path: Path, store: FlatStore, cipher: Optional[Cipher] = None) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DirectoryCreateError(f"Unable to create directory '{path.parent}': {exc}") from exc

    payload = export_tree(store).payload
    if cipher is not None:
        try:
            payload = cipher.encrypt(payload)
        except CipherError as exc:
            raise EncryptError(f"Failed to encrypt settings file '{path}'") from exc

    tmp_path = path.with_name(path.name + ".tmp")
    try:
        tmp_path.write_bytes(payload)
        os.replace(tmp_path, path)
    except OSError as exc:
        with contextlib.suppress(OSError):
            tmp_path.unlink(missing_ok=True)
        raise WriteIOError(f"Failed to write settings file '{path}': {exc}") from exc


class _SettingsFile:
    """What an unflushed engine needs to write itself out.

    Kept apart from JsonSettings so the finalizer that flushes at garbage
    collection or interpreter exit holds no reference to the engine.
    """

    def __init__(self, path: Optional[Path], cipher: Optional[Cipher], backups: BackupManager) -> None:
        self.path = path
        self.cipher = cipher
        self.backups = backups
        self.changed = False
        self.store = FlatStore(on_change=self.mark_changed)

    def mark_changed(self) -> None:
        self.changed = True

    def create_backup(self) -> None:
        try:
            self.backups.create_backup(self.path)
        except BackupCopyError as exc:
            logger.error("%s", exc)

    def flush(self) -> bool:
        if not self.changed:
            return True
        if self.path is None:
            logger.error("Settings have no file path; changes cannot be written")
            return False

        self.create_backup()
        try:
            write_settings_file(self.path, self.store, self.cipher)
        except WRITE_ERRORS as exc:
            logger.error("%s", exc)
            return False

        self.changed = False
        return True


def _has_file_name(path: Optional[Path]) -> bool:
    return path is not None and bool(Path(path).name)


class JsonSettings:
    def __init__(
        self,
        path: Optional[Path],
        *,
        encrypted: bool = False,
        cipher: Optional[Cipher] = None,
        backups: Optional[BackupManager] = None,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        config: Optional[StoreConfig] = None,
    ) -> None:
        resolved = Path(path).with_suffix(SETTINGS_EXTENSION) if _has_file_name(path) else None
        self._file = _SettingsFile(resolved, cipher, backups or BackupManager())
        self._max_file_size = max_file_size
        self._encrypted = encrypted or cipher is not None
        self._finalizer = weakref.finalize(self, self._file.flush)

        if resolved is None:
            logger.warning("Settings path could not be resolved; settings will not be persisted")
            return

        if self._encrypted and cipher is None:
            try:
                config = config or StoreConfig.from_env()
                self._file.cipher = FernetCipher.from_key_file(config.key_file)
            except (CipherError, OSError, ValueError) as exc:
                logger.error("Unable to load settings encryption key: %s", exc)
                self._file.path = None
                return

        self.sync()

    @classmethod
    def from_file_name(cls, file_name: str, **kwargs) -> "JsonSettings":
        return cls(cls.file_path(file_name), **kwargs)

    @classmethod
    def for_scope(
        cls,
        scope: Scope,
        application_name: str,
        file_name: str,
        *,
        resolver: Optional[DirectoryResolver] = None,
        **kwargs,
    ) -> "JsonSettings":
        return cls(cls.scoped_file_path(scope, application_name, file_name, resolver), **kwargs)

    @staticmethod
    def file_path(file_name: str, exec_dir: Optional[Path] = None) -> Optional[Path]:
        if not file_name:
            return None
        base = exec_dir or current_exec_dir()
        return (base / file_name).with_suffix(SETTINGS_EXTENSION)

    @staticmethod
    def scoped_file_path(
        scope: Scope,
        application_name: str,
        file_name: str,
        resolver: Optional[DirectoryResolver] = None,
    ) -> Optional[Path]:
        if not application_name or not file_name:
            return None
        base = scope_dir(scope, resolver or PlatformDirectoryResolver())
        if base is None:
            return None
        return (base / application_name / file_name).with_suffix(SETTINGS_EXTENSION)

    @property
    def path(self) -> Optional[Path]:
        return self._file.path

    @property
    def is_enabled(self) -> bool:
        return self._file.path is not None

    @property
    def is_encrypted(self) -> bool:
        return self._encrypted

    @property
    def is_changed(self) -> bool:
        return self._file.changed

    @property
    def store(self) -> FlatStore:
        return self._file.store

    def get(self, key: KeyLike, default: Optional[SettingValue] = None) -> Optional[SettingValue]:
        value = self.store.get(key)
        return default if value is None else value

    def get_text(self, key: KeyLike, default: str = "") -> str:
        value = self.store.get(key)
        if value is None:
            return default
        return str(value)

    def get_integer(self, key: KeyLike, default: int = 0) -> int:
        value = self.store.get(key)
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            # Older files store numbers as decimal strings.
            try:
                return int(value.strip())
            except ValueError:
                return default
        return default

    def set(self, key: KeyLike, value: SettingValue) -> None:
        self.store.insert(key, value)

    def remove(self, key: KeyLike) -> bool:
        return self.store.remove(key)

    def contains(self, key: KeyLike) -> bool:
        return key in self.store

    def keys(self, prefix: Optional[KeyLike] = None) -> List[str]:
        return [key for key, _ in self.store.ordered_entries(prefix)]

    def items(self, prefix: Optional[KeyLike] = None) -> List[Tuple[str, SettingValue]]:
        return list(self.store.ordered_entries(prefix))

    def __len__(self) -> int:
        return len(self.store)

    def has_backup(self) -> bool:
        return self.path is not None and self._file.backups.has_backup(self.path)

    def is_writable(self) -> bool:
        path = self.path
        if path is None:
            return False
        if path.exists():
            try:
                with path.open("ab"):
                    return True
            except OSError:
                return False
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(dir=path.parent, prefix=path.stem, suffix=".tmp"):
                return True
        except OSError:
            return False

    def sync(self) -> None:
        """Reload the settings from disk, restoring the backup when needed.

        Read failures never propagate: the store is left empty when neither
        the file nor its backup can be read. The change flag is always reset.
        """
        path = self.path
        if path is None:
            self._file.changed = False
            return

        for _ in range(MAX_SYNC_ATTEMPTS):
            try:
                read_settings_file(path, self.store, self._file.cipher, max_size=self._max_file_size)
            except READ_ERRORS as exc:
                logger.error("%s", exc)
                logger.warning("Settings file '%s' is corrupted. Attempt to restore from a backup...", path)
                if self._restore_backup():
                    continue
                break

            if len(self.store):
                if not self._file.backups.has_backup(path):
                    self._file.create_backup()
                break

            logger.warning(
                "Settings file '%s' is empty or missing. Attempt to restore from a backup...", path
            )
            if self._restore_backup():
                continue
            break

        self._file.changed = False

    def flush(self) -> bool:
        return self._file.flush()

    def close(self) -> bool:
        """Flush pending changes; later garbage collection will not flush again."""
        if not self._finalizer.alive:
            return True
        return self._finalizer()

    def __enter__(self) -> "JsonSettings":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _restore_backup(self) -> bool:
        backups = self._file.backups
        if not backups.has_backup(self.path):
            logger.warning("Backup file for '%s' does not exist", self.path)
            return False
        try:
            backups.restore_backup(self.path)
        except BackupCopyError as exc:
            logger.error("%s", exc)
            return False
        return True
