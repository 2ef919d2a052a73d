from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from confvault.storage.paths import PlatformDirectoryResolver, Scope

DEFAULT_MAX_FILE_SIZE = 5 * 1024 * 1024


def _default_key_file() -> Path:
    base = PlatformDirectoryResolver().user_app_data() or Path.home()
    return base / "confvault" / "settings.key"


@dataclass(frozen=True)
class StoreConfig:
    log_level: str
    max_file_size: int
    key_file: Path

    api_scope: Scope
    api_application: str
    api_file_name: str
    api_encrypted: bool

    @staticmethod
    def from_env() -> "StoreConfig":
        key_file = os.getenv("CONFVAULT_KEY_FILE")
        return StoreConfig(
            log_level=os.getenv("CONFVAULT_LOG_LEVEL", "INFO").upper(),
            max_file_size=int(os.getenv("CONFVAULT_MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE)),
            key_file=Path(key_file).expanduser() if key_file else _default_key_file(),
            api_scope=Scope(os.getenv("CONFVAULT_API_SCOPE", "user").lower()),
            api_application=os.getenv("CONFVAULT_API_APPLICATION", "confvault"),
            api_file_name=os.getenv("CONFVAULT_API_FILE", "settings"),
            api_encrypted=os.getenv("CONFVAULT_API_ENCRYPTED", "false").lower() == "true",
        )
