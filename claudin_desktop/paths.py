"""Path resolution for both development checkouts and packaged builds.

``PathResolver.resolve`` is a pure function of its inputs. Everything that
depends on the running process (home directory, config directory, working
directory, PyInstaller resource directory) is looked up once by the helpers
at the bottom of this module and passed in explicitly.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path, PurePath
from typing import Mapping, Optional

from claudin_desktop.exceptions import (
    InvalidNamespaceError,
    NoConfigDirectoryError,
    NoHomeDirectoryError,
)
from claudin_desktop.models import ResolvedPaths, RuntimeMode

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "claudin"
EXTENSION_DIR_NAME = "extension"


def _normalize(path: Path) -> Path:
    # Lexical only: symlinks in the user's home must not change where we write.
    return Path(os.path.normpath(path))


def _is_descendant(path: Path, root: Path) -> bool:
    return path != root and root in path.parents


class PathResolver:
    """Compute where the backend, extension bundle and user state live."""

    def __init__(self, namespace: str = DEFAULT_NAMESPACE):
        self.namespace = self._validate_namespace(namespace)

    @staticmethod
    def _validate_namespace(namespace: str) -> str:
        parts = PurePath(namespace).parts
        if (
            not namespace
            or not parts
            or PurePath(namespace).is_absolute()
            or PurePath(namespace).drive
            or any(part in ("..", ".") for part in parts)
        ):
            raise InvalidNamespaceError(
                f"Application namespace {namespace!r} must be a relative name "
                "inside the user's home and config directories"
            )
        return namespace

    def resolve(
        self,
        mode: RuntimeMode,
        home_dir: Optional[Path],
        config_dir: Optional[Path],
        *,
        cwd: Path,
        resource_dir: Path,
    ) -> ResolvedPaths:
        if home_dir is None:
            raise NoHomeDirectoryError()
        if config_dir is None:
            raise NoConfigDirectoryError()

        home = _normalize(Path(home_dir))
        config_base = _normalize(Path(config_dir))

        destination = _normalize(home / self.namespace / EXTENSION_DIR_NAME)
        app_config_dir = _normalize(config_base / self.namespace)

        if not _is_descendant(destination, home):
            raise InvalidNamespaceError(
                f"Extension directory {destination} is outside {home}"
            )
        if not _is_descendant(app_config_dir, config_base):
            raise InvalidNamespaceError(
                f"Config directory {app_config_dir} is outside {config_base}"
            )

        if mode is RuntimeMode.DEVELOPMENT:
            # apps/desktop/src-tauri -> apps/
            apps_root = Path(cwd).parent.parent
            backend_entry = apps_root / "server" / "src" / "index.ts"
            extension_source = apps_root / "extension" / "dist"
        else:
            backend_entry = Path(resource_dir) / "server" / "index.js"
            extension_source = Path(resource_dir) / EXTENSION_DIR_NAME

        backend_entry = _normalize(backend_entry)
        extension_source = _normalize(extension_source)
        for label, path in (
            ("backend entry", backend_entry),
            ("extension source", extension_source),
        ):
            if not (_is_descendant(path, home) or _is_descendant(path, config_base)):
                logger.debug("Read-only %s %s is outside %s and %s", label, path, home, config_base)

        return ResolvedPaths(
            home_dir=home,
            backend_entry=backend_entry,
            extension_source=extension_source,
            extension_destination=destination,
            config_dir=app_config_dir,
        )


# ── Platform discovery ────────────────────────────────────────────────────────


def platform_home_dir() -> Optional[Path]:
    """Return the user's home directory, or None when the OS cannot tell."""
    try:
        home = Path.home()
    except (RuntimeError, KeyError) as exc:
        logger.error("Home directory lookup failed: %s", exc)
        return None
    return home if home.is_absolute() else None


def platform_config_dir(
    platform: str = sys.platform,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Optional[Path]:
    """Return the OS per-user configuration directory.

    Windows uses ``%APPDATA%``, macOS ``~/Library/Application Support`` and
    every other POSIX system ``$XDG_CONFIG_HOME`` or ``~/.config``.
    """
    env = os.environ if env is None else env
    if home is None:
        home = platform_home_dir()

    if platform == "win32":
        appdata = env.get("APPDATA")
        if appdata and Path(appdata).is_absolute():
            return Path(appdata)
        return home / "AppData" / "Roaming" if home else None

    if home is None:
        return None

    if platform == "darwin":
        return home / "Library" / "Application Support"

    xdg = env.get("XDG_CONFIG_HOME")
    # The XDG spec says relative values must be ignored.
    if xdg and Path(xdg).is_absolute():
        return Path(xdg)
    return home / ".config"


def default_resource_dir() -> Path:
    """Resolve the resource directory for both frozen and dev modes."""
    return Path(getattr(sys, "_MEIPASS", Path(__file__).resolve().parents[1]))


def detect_runtime_mode() -> RuntimeMode:
    if getattr(sys, "frozen", False):
        return RuntimeMode.PACKAGED
    return RuntimeMode.DEVELOPMENT
