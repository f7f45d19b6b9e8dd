"""Open folders and URLs with the platform's own applications.

One dispatch table keyed by platform replaces per-OS branches. Each entry is
an ordered list of candidate commands; the first one whose executable is on
PATH and that spawns without error wins.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from typing import Callable, Optional

from claudin_desktop.exceptions import SpawnFailedError, UnsupportedPlatformError
from claudin_desktop.models import ExternalLaunchSpec, LaunchKind

logger = logging.getLogger(__name__)

CHROME_EXTENSIONS_URL = "chrome://extensions"

DISPATCH_TABLE: dict[str, dict[LaunchKind, tuple[ExternalLaunchSpec, ...]]] = {
    "darwin": {
        LaunchKind.OPEN_FOLDER: (ExternalLaunchSpec(("open",), "Finder"),),
        LaunchKind.OPEN_BROWSER: (
            ExternalLaunchSpec(("open", "-a", "Google Chrome"), "Google Chrome"),
            ExternalLaunchSpec(("open",), "default browser"),
        ),
    },
    "windows": {
        LaunchKind.OPEN_FOLDER: (ExternalLaunchSpec(("explorer",), "Explorer"),),
        LaunchKind.OPEN_BROWSER: (
            ExternalLaunchSpec(("cmd", "/c", "start", "", "chrome"), "Google Chrome"),
            ExternalLaunchSpec(("cmd", "/c", "start", "", "msedge"), "Microsoft Edge"),
        ),
    },
    "linux": {
        LaunchKind.OPEN_FOLDER: (ExternalLaunchSpec(("xdg-open",), "file manager"),),
        LaunchKind.OPEN_BROWSER: (
            ExternalLaunchSpec(("google-chrome",), "Google Chrome"),
            ExternalLaunchSpec(("chromium",), "Chromium"),
            ExternalLaunchSpec(("chromium-browser",), "Chromium"),
        ),
    },
}


def normalize_platform(platform: str = sys.platform) -> Optional[str]:
    """Map ``sys.platform`` onto a dispatch table key."""
    if platform == "darwin":
        return "darwin"
    if platform in ("win32", "cygwin"):
        return "windows"
    if platform.startswith("linux"):
        return "linux"
    return None


def detached_popen_kwargs(platform: str = sys.platform) -> dict:
    """Popen arguments that detach the child from this process."""
    kwargs = {
        "stdin": subprocess.DEVNULL,
        "stdout": subprocess.DEVNULL,
        "stderr": subprocess.DEVNULL,
        "close_fds": True,
    }
    if platform == "win32":
        kwargs["creationflags"] = (
            getattr(subprocess, "DETACHED_PROCESS", 0x00000008)
            | getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0x00000200)
        )
    else:
        kwargs["start_new_session"] = True
    return kwargs


def _spawn(argv: list[str]) -> subprocess.Popen:
    return subprocess.Popen(argv, **detached_popen_kwargs())


def resolve_specs(kind: LaunchKind, platform: str = sys.platform) -> tuple[ExternalLaunchSpec, ...]:
    key = normalize_platform(platform)
    specs = DISPATCH_TABLE.get(key, {}).get(kind) if key else None
    if not specs:
        raise UnsupportedPlatformError(platform, action=kind.value.replace("_", " "))
    return specs


def launch_external(
    kind: LaunchKind,
    target: str,
    *,
    platform: str = sys.platform,
    spawner: Callable[[list[str]], object] = _spawn,
    which: Optional[Callable[[str], Optional[str]]] = None,
) -> ExternalLaunchSpec:
    """Launch ``target`` with the first usable command; return that command.

    Fire-and-forget: the spawned process is never waited on.
    """
    which = which or shutil.which
    failures = []
    for spec in resolve_specs(kind, platform):
        if which(spec.executable) is None:
            failures.append(f"{spec.executable}: not found")
            logger.debug("%s not on PATH, trying next candidate", spec.executable)
            continue
        argv = spec.build(target)
        try:
            spawner(argv)
        except OSError as exc:
            failures.append(f"{spec.executable}: {exc}")
            logger.warning("Launching %s failed: %s", spec.label or spec.executable, exc)
            continue
        logger.info("Opened %s with %s", target, spec.label or spec.executable)
        return spec

    raise SpawnFailedError(
        f"Could not open {target}: " + "; ".join(failures)
    )
