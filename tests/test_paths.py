from pathlib import Path

from confvault.settings.json_settings import JsonSettings
from confvault.storage.paths import PlatformDirectoryResolver, Scope, current_exec_dir, scope_dir


class FixedResolver:
    def __init__(self, user, system):
        self._user = user
        self._system = system

    def user_app_data(self):
        return self._user

    def common_app_data(self):
        return self._system


def test_scope_dir_selects_resolver_root(tmp_path: Path):
    resolver = FixedResolver(tmp_path / "user", tmp_path / "system")
    assert scope_dir(Scope.USER, resolver) == tmp_path / "user"
    assert scope_dir(Scope.SYSTEM, resolver) == tmp_path / "system"


def test_platform_resolver_overrides(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("CONFVAULT_USER_DIR", str(tmp_path / "u"))
    monkeypatch.setenv("CONFVAULT_SYSTEM_DIR", str(tmp_path / "s"))
    resolver = PlatformDirectoryResolver()
    assert resolver.user_app_data() == tmp_path / "u"
    assert resolver.common_app_data() == tmp_path / "s"


def test_exec_dir_override(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("CONFVAULT_EXEC_DIR", str(tmp_path))
    assert current_exec_dir() == tmp_path


def test_file_path_forces_settings_extension(tmp_path: Path):
    assert JsonSettings.file_path("router", tmp_path) == tmp_path / "router.json"
    assert JsonSettings.file_path("router.ini", tmp_path) == tmp_path / "router.json"
    assert JsonSettings.file_path("", tmp_path) is None


def test_scoped_file_path(tmp_path: Path):
    resolver = FixedResolver(tmp_path / "user", None)
    assert JsonSettings.scoped_file_path(Scope.USER, "app", "host.cfg", resolver) == (
        tmp_path / "user" / "app" / "host.json"
    )
    assert JsonSettings.scoped_file_path(Scope.SYSTEM, "app", "host", resolver) is None
    assert JsonSettings.scoped_file_path(Scope.USER, "", "host", resolver) is None
    assert JsonSettings.scoped_file_path(Scope.USER, "app", "", resolver) is None
