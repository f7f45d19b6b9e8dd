"""Backend process launch and first-run setup state."""

from __future__ import annotations

import http.client
import logging
import os
import shutil
import subprocess
import sys
import time
import urllib.request
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Mapping, Optional

from dotenv import dotenv_values

from claudin_desktop.exceptions import SetupStateError, SpawnFailedError
from claudin_desktop.external import detached_popen_kwargs
from claudin_desktop.models import BackendProcessHandle, BackendState, ResolvedPaths

logger = logging.getLogger(__name__)

SETUP_MARKER_NAME = ".setup_complete"


def clean_env(environ: Optional[Mapping[str, str]] = None) -> dict:
    """Return the environment without DYLD_* keys.

    A PyInstaller bundle sets DYLD_LIBRARY_PATH / DYLD_FRAMEWORK_PATH to its
    own libraries; an external interpreter started with them loads the wrong
    dylibs.
    """
    environ = os.environ if environ is None else environ
    return {k: v for k, v in environ.items() if not k.startswith("DYLD_")}


def inject_dotenv(env: dict, dotenv_path: Path) -> int:
    """Merge KEY=VALUE pairs from a .env file into env without overriding.

    Returns the number of keys added. An unreadable or undecodable file is
    skipped with a warning.
    """
    if not dotenv_path.is_file():
        return 0
    try:
        values = dotenv_values(dotenv_path)
    except (OSError, ValueError) as exc:
        logger.warning("Failed to load .env from %s: %s", dotenv_path, exc)
        return 0
    added = 0
    for key, value in values.items():
        if key and value is not None and key not in env:
            env[key] = value
            added += 1
    logger.info("Loaded %d key(s) from %s", added, dotenv_path)
    return added


class ProcessSupervisor:
    """Own the backend process handle and the setup-complete sentinel.

    The backend is launched detached and left unsupervised: this class never
    signals or terminates it.
    """

    def __init__(
        self,
        runtime_command: Iterable[str],
        *,
        env_files: Iterable[Path] = (),
        extra_env: Optional[Mapping[str, str]] = None,
        platform: str = sys.platform,
        spawner: Callable[..., subprocess.Popen] = subprocess.Popen,
        which: Optional[Callable[[str], Optional[str]]] = None,
    ):
        self.runtime_command = list(runtime_command)
        if not self.runtime_command:
            raise ValueError("runtime_command must name an interpreter")
        self.env_files = [Path(p) for p in env_files]
        self.extra_env = dict(extra_env or {})
        self.platform = platform
        self._spawner = spawner
        self._which = which or shutil.which
        self._handle = BackendProcessHandle()
        self._process: Optional[subprocess.Popen] = None

    # ------------------------------------------------------------------
    # Backend process
    # ------------------------------------------------------------------

    @property
    def handle(self) -> BackendProcessHandle:
        return self._handle

    def is_alive(self) -> bool:
        if self._process is None:
            return False
        return self._process.poll() is None

    def build_command(self, paths: ResolvedPaths) -> list[str]:
        return [*self.runtime_command, str(paths.backend_entry)]

    def build_env(self) -> dict:
        env = clean_env()
        for dotenv_path in self.env_files:
            inject_dotenv(env, dotenv_path)
        env.update(self.extra_env)
        return env

    def launch_backend(self, paths: ResolvedPaths) -> BackendProcessHandle:
        """Start the backend detached and return its handle.

        Raises SpawnFailedError when the interpreter is missing or the OS
        refuses the spawn; the handle is left in FAILED state.
        """
        if self._handle.state is BackendState.RUNNING and self.is_alive():
            logger.info("Backend already running (pid=%s)", self._handle.pid)
            return self._handle

        command = self.build_command(paths)
        self._handle = BackendProcessHandle(state=BackendState.LAUNCHING, command=command)
        logger.info("Starting backend: %s", " ".join(command))

        interpreter = self._which(command[0])
        if interpreter is None:
            raise self._fail(f"Backend runtime {command[0]!r} not found on PATH")

        if not paths.backend_entry.exists():
            logger.warning("Backend entry point %s does not exist", paths.backend_entry)

        cwd = paths.backend_entry.parent
        kwargs = detached_popen_kwargs(self.platform)
        try:
            process = self._spawner(
                [interpreter, *command[1:]],
                env=self.build_env(),
                cwd=str(cwd) if cwd.is_dir() else None,
                **kwargs,
            )
        except OSError as exc:
            raise self._fail(f"Failed to start backend: {exc}") from exc

        self._process = process
        self._handle.pid = process.pid
        self._handle.started_at = datetime.now(timezone.utc)
        self._handle.state = BackendState.RUNNING
        logger.info("Backend started with PID %s", process.pid)
        return self._handle

    def _fail(self, reason: str) -> SpawnFailedError:
        self._handle.state = BackendState.FAILED
        self._handle.error = reason
        logger.error(reason)
        return SpawnFailedError(reason)

    @staticmethod
    def wait_until_ready(url: str, timeout: float = 30.0, interval: float = 0.3) -> bool:
        """Poll the backend's HTTP endpoint until it answers 200 or timeout."""
        deadline = time.time() + timeout
        while time.time() < deadline:
            try:
                with urllib.request.urlopen(url, timeout=1) as resp:
                    if resp.status == 200:
                        return True
            except (OSError, http.client.HTTPException):
                pass
            time.sleep(interval)
        logger.warning("Backend did not answer at %s within %.0f s", url, timeout)
        return False

    # ------------------------------------------------------------------
    # Setup-complete sentinel
    # ------------------------------------------------------------------

    @staticmethod
    def setup_marker_path(paths: ResolvedPaths) -> Path:
        return paths.config_dir / SETUP_MARKER_NAME

    def mark_setup_complete(self, paths: ResolvedPaths) -> Path:
        marker = self.setup_marker_path(paths)
        try:
            paths.config_dir.mkdir(parents=True, exist_ok=True)
            marker.write_text(datetime.now(timezone.utc).isoformat() + "\n")
        except OSError as exc:
            raise SetupStateError(f"Failed to mark setup complete: {exc}") from exc
        logger.info("Setup complete, marker written to %s", marker)
        return marker

    def is_setup_complete(self, paths: ResolvedPaths) -> bool:
        marker = self.setup_marker_path(paths)
        try:
            return marker.exists()
        except OSError as exc:
            raise SetupStateError(f"Failed to read setup state: {exc}") from exc
