"""Custom exceptions for the ClaudIn desktop bootstrap."""


class ClaudinError(Exception):
    """Base exception for all bootstrap errors."""


class ConfigurationError(ClaudinError):
    """Per-user locations cannot be determined. Fatal, never retried."""


class NoHomeDirectoryError(ConfigurationError):
    """The OS could not report a home directory."""

    def __init__(self, message: str = "Could not determine the home directory"):
        super().__init__(message)


class NoConfigDirectoryError(ConfigurationError):
    """The OS could not report a configuration directory."""

    def __init__(self, message: str = "Could not determine the config directory"):
        super().__init__(message)


class InvalidNamespaceError(ConfigurationError):
    """Application namespace would place files outside the per-user roots."""


class SyncError(ClaudinError):
    """Extension files could not be materialized."""


class CannotCreateDestinationError(SyncError):
    """The destination directory could not be created."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to create extension directory {path}: {reason}")


class CopyFailedError(SyncError):
    """A single file copy failed; the whole sync is aborted."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to copy {path}: {reason}")


class LaunchError(ClaudinError):
    """An external process could not be started. Never fatal to the app."""


class SpawnFailedError(LaunchError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class UnsupportedPlatformError(LaunchError):
    def __init__(self, platform: str, action: str = "this action"):
        self.platform = platform
        super().__init__(f"{action} is not supported on platform {platform!r}")


class SetupStateError(ClaudinError):
    """The setup-complete sentinel could not be read or written."""
