"""Data models for the desktop bootstrap."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional


class RuntimeMode(str, Enum):
    DEVELOPMENT = "development"
    PACKAGED = "packaged"


@dataclass(frozen=True)
class ResolvedPaths:
    """Absolute locations the bootstrap reads from and writes to.

    ``backend_entry`` and ``extension_source`` are read-only inputs shipped
    with the application. ``extension_destination`` and ``config_dir`` are
    the only locations ever written, and always live below ``home_dir`` or
    the platform config directory.
    """

    home_dir: Path
    backend_entry: Path
    extension_source: Path
    extension_destination: Path
    config_dir: Path

    def as_dict(self) -> dict[str, str]:
        return {
            "backend_entry": str(self.backend_entry),
            "extension_source": str(self.extension_source),
            "extension_destination": str(self.extension_destination),
            "config_dir": str(self.config_dir),
        }


class BackendState(str, Enum):
    NOT_STARTED = "not_started"
    LAUNCHING = "launching"
    RUNNING = "running"
    FAILED = "failed"


@dataclass
class BackendProcessHandle:
    """Identity of the launched backend.

    The process is detached and unsupervised: once ``RUNNING`` there is no
    transition back, the OS reaps it when the application exits.
    """

    state: BackendState = BackendState.NOT_STARTED
    pid: Optional[int] = None
    command: list[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    error: Optional[str] = None


class LaunchKind(str, Enum):
    OPEN_FOLDER = "open_folder"
    OPEN_BROWSER = "open_browser"


@dataclass(frozen=True)
class ExternalLaunchSpec:
    """A command prefix; the folder path or URL is appended as the last arg."""

    argv_prefix: tuple[str, ...]
    label: str = ""

    @property
    def executable(self) -> str:
        return self.argv_prefix[0]

    def build(self, target: str) -> list[str]:
        return [*self.argv_prefix, target]


@dataclass
class CommandResult:
    """Result of an exposed bootstrap operation.

    ``error`` is a human-readable message meant for display, not branching.
    """

    success: bool
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> CommandResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, data: Any = None) -> CommandResult:
        return cls(success=False, data=data, error=error)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
