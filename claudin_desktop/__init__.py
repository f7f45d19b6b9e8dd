"""ClaudIn desktop bootstrap - backend launch and extension setup."""

from claudin_desktop.assets import AssetSynchronizer
from claudin_desktop.bootstrap import DesktopBootstrap
from claudin_desktop.config import Config
from claudin_desktop.models import (
    BackendProcessHandle,
    BackendState,
    CommandResult,
    ResolvedPaths,
    RuntimeMode,
)
from claudin_desktop.paths import PathResolver
from claudin_desktop.supervisor import ProcessSupervisor

__version__ = "0.1.0"
__all__ = [
    "AssetSynchronizer",
    "DesktopBootstrap",
    "Config",
    "BackendProcessHandle",
    "BackendState",
    "CommandResult",
    "ResolvedPaths",
    "RuntimeMode",
    "PathResolver",
    "ProcessSupervisor",
]
