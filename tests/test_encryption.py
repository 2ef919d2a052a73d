import base64
import os
from pathlib import Path

import pytest
from cryptography.fernet import Fernet

from confvault.storage.encryption import CipherError, FernetCipher, load_encryption_key


def test_fernet_cipher_round_trip():
    cipher = FernetCipher(Fernet.generate_key())
    token = cipher.encrypt(b'{"a": "1"}')
    assert token != b'{"a": "1"}'
    assert cipher.decrypt(token) == b'{"a": "1"}'


def test_decrypt_with_wrong_key_raises_cipher_error():
    token = FernetCipher(Fernet.generate_key()).encrypt(b"secret")
    with pytest.raises(CipherError):
        FernetCipher(Fernet.generate_key()).decrypt(token)


def test_invalid_key_raises_cipher_error():
    with pytest.raises(CipherError):
        FernetCipher(b"not-a-key")


def test_key_file_is_created_once(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("CONFVAULT_ENCRYPTION_KEY", raising=False)
    key_file = tmp_path / "keys" / "settings.key"

    first = load_encryption_key(key_file)
    second = load_encryption_key(key_file)

    assert first == second
    assert key_file.exists()
    if os.name == "posix":
        assert key_file.stat().st_mode & 0o777 == 0o600


def test_key_from_environment(tmp_path: Path, monkeypatch):
    key = Fernet.generate_key()
    monkeypatch.setenv("CONFVAULT_ENCRYPTION_KEY", key.decode("ascii"))
    assert load_encryption_key(tmp_path / "unused.key") == key
    assert not (tmp_path / "unused.key").exists()

    raw = os.urandom(32)
    monkeypatch.setenv("CONFVAULT_ENCRYPTION_KEY", base64.urlsafe_b64encode(raw).decode("ascii"))
    assert load_encryption_key(tmp_path / "unused.key") == base64.urlsafe_b64encode(raw)
