from __future__ import annotations

import base64
import binascii
import logging
import os
from pathlib import Path
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

KEY_ENV_VAR = "CONFVAULT_ENCRYPTION_KEY"


class CipherError(Exception):
    pass


class Cipher(Protocol):
    def encrypt(self, data: bytes) -> bytes:
        ...

    def decrypt(self, data: bytes) -> bytes:
        ...


def _load_key_from_env() -> bytes | None:
    raw = os.getenv(KEY_ENV_VAR)
    if not raw:
        return None
    try:
        return base64.urlsafe_b64decode(raw)
    except (binascii.Error, ValueError):
        return raw.encode("utf-8")


def _load_or_create_key_file(path: Path) -> bytes:
    if path.exists():
        return path.read_bytes().strip()
    path.parent.mkdir(parents=True, exist_ok=True)
    key = Fernet.generate_key()
    path.write_bytes(key)
    os.chmod(path, 0o600)
    logger.info("Created settings encryption key at %s", path)
    return key


def load_encryption_key(key_file: Path) -> bytes:
    key = _load_key_from_env()
    if key:
        return base64.urlsafe_b64encode(key) if len(key) == 32 else key
    return _load_or_create_key_file(key_file)


class FernetCipher:
    def __init__(self, key: bytes) -> None:
        try:
            self._fernet = Fernet(key)
        except (binascii.Error, ValueError) as exc:
            raise CipherError(f"Invalid encryption key: {exc}") from exc

    @classmethod
    def from_key_file(cls, key_file: Path) -> "FernetCipher":
        return cls(load_encryption_key(key_file))

    def encrypt(self, data: bytes) -> bytes:
        return self._fernet.encrypt(data)

    def decrypt(self, data: bytes) -> bytes:
        try:
            return self._fernet.decrypt(data.strip())
        except InvalidToken as exc:
            raise CipherError("Settings payload could not be decrypted") from exc
