from __future__ import annotations

import enum
import os
import sys
from pathlib import Path
from typing import Optional, Protocol


class Scope(str, enum.Enum):
    USER = "user"
    SYSTEM = "system"


class DirectoryResolver(Protocol):
    def user_app_data(self) -> Optional[Path]:
        ...

    def common_app_data(self) -> Optional[Path]:
        ...


def _env_path(name: str) -> Optional[Path]:
    raw = os.getenv(name)
    if not raw:
        return None
    return Path(raw).expanduser()


class PlatformDirectoryResolver:
    """Per-user and machine-wide application data roots for this platform."""

    def user_app_data(self) -> Optional[Path]:
        override = _env_path("CONFVAULT_USER_DIR")
        if override:
            return override
        if sys.platform == "win32":
            return _env_path("APPDATA")
        if sys.platform == "darwin":
            return Path.home() / "Library" / "Application Support"
        return _env_path("XDG_CONFIG_HOME") or Path.home() / ".config"

    def common_app_data(self) -> Optional[Path]:
        override = _env_path("CONFVAULT_SYSTEM_DIR")
        if override:
            return override
        if sys.platform == "win32":
            return _env_path("PROGRAMDATA")
        if sys.platform == "darwin":
            return Path("/Library/Application Support")
        return Path("/etc")


def scope_dir(scope: Scope, resolver: DirectoryResolver) -> Optional[Path]:
    scope = Scope(scope)
    if scope is Scope.USER:
        return resolver.user_app_data()
    return resolver.common_app_data()


def current_exec_dir() -> Path:
    override = _env_path("CONFVAULT_EXEC_DIR")
    if override:
        return override
    if sys.argv and sys.argv[0]:
        return Path(sys.argv[0]).resolve().parent
    return Path.cwd()
