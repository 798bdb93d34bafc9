"""Project-specific exception types."""

from __future__ import annotations


class RDCtlError(RuntimeError):
    """Base error for domain-level rdctl failures."""


class SettingsError(RDCtlError, ValueError):
    """Raised when command-line settings cannot be applied."""


class UnexpectedArgumentError(SettingsError):
    """An argument does not start with ``--``."""


class NoSuchEntryError(SettingsError):
    """An option names a path that is not in the current settings."""


class StructuralOverwriteError(SettingsError):
    """An option names a nested group instead of a single value."""


class MissingValueError(SettingsError):
    """A non-boolean option was given no value."""


class CoercionError(SettingsError):
    """A value cannot be converted to the type of the current setting."""


class TypeMismatchError(CoercionError):
    """A value parses cleanly, but as a different type than the setting."""


class ServerNotRunningError(RDCtlError):
    """Raised when the background server cannot be reached."""


class AppNotFoundError(RDCtlError):
    """Raised when the application executable cannot be located."""
