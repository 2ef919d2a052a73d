from __future__ import annotations


class SettingsError(Exception):
    """Base class for settings file failures."""


class PathUnresolvedError(SettingsError):
    pass


class NotAFileError(SettingsError):
    pass


class TooLargeError(SettingsError):
    pass


class ReadIOError(SettingsError):
    pass


class DecryptError(SettingsError):
    pass


class ParseError(SettingsError):
    pass


class WriteIOError(SettingsError):
    pass


class EncryptError(SettingsError):
    pass


class BackupCopyError(SettingsError):
    pass


class DirectoryCreateError(SettingsError):
    pass


class ExportError(SettingsError):
    pass


class KeyConflictError(SettingsError, ValueError):
    """A key would be both a leaf and a branch of the settings tree."""


READ_ERRORS = (NotAFileError, TooLargeError, ReadIOError, DecryptError, ParseError)
WRITE_ERRORS = (WriteIOError, EncryptError, DirectoryCreateError, ExportError)
