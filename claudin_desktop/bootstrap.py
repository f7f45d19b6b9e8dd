"""Startup orchestration and the operations exposed to the desktop shell.

Every public method returns a ``CommandResult`` whose ``error`` is a plain
message: the UI only shows or logs it. Slow work (spawning, copying) belongs
on the worker pool: use ``start()`` and ``submit()`` from the UI thread.
"""

from __future__ import annotations

import logging
import os
import sys
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional

from claudin_desktop.assets import AssetSynchronizer
from claudin_desktop.config import Config
from claudin_desktop.exceptions import ClaudinError
from claudin_desktop.external import launch_external
from claudin_desktop.models import CommandResult, LaunchKind, ResolvedPaths, RuntimeMode
from claudin_desktop.paths import (
    PathResolver,
    default_resource_dir,
    detect_runtime_mode,
    platform_config_dir,
    platform_home_dir,
)
from claudin_desktop.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)


class DesktopBootstrap:
    """Compose path resolution, asset sync and process supervision.

    Coordinates:
    - PathResolver: where the backend, bundle and user state live
    - AssetSynchronizer: extension extraction into the user's home
    - ProcessSupervisor: backend launch and the setup-complete sentinel
    - launch_external: folder / browser launches per platform
    """

    def __init__(
        self,
        config: Config,
        paths: ResolvedPaths,
        mode: RuntimeMode,
        *,
        supervisor: Optional[ProcessSupervisor] = None,
        synchronizer: Optional[AssetSynchronizer] = None,
        platform: str = sys.platform,
        launcher: Callable[..., object] = launch_external,
        max_workers: int = 2,
    ):
        self.config = config
        self.paths = paths
        self.mode = mode
        self.platform = platform
        self._launcher = launcher

        namespace_dir = paths.home_dir / config.app.namespace
        env_files = [namespace_dir / name for name in config.backend.env_files]
        env_files += [paths.home_dir / name for name in config.backend.env_files]

        self.supervisor = supervisor or ProcessSupervisor(
            config.runtime_command(mode),
            env_files=env_files,
            extra_env={"PORT": str(config.backend.port)},
            platform=platform,
        )
        self.synchronizer = synchronizer or AssetSynchronizer(
            manifest_name=config.extension.manifest_name,
        )
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="claudin-bootstrap"
        )

    @classmethod
    def from_environment(
        cls,
        config: Optional[Config] = None,
        *,
        cwd: Optional[Path] = None,
        **kwargs,
    ) -> DesktopBootstrap:
        """Resolve paths from the running process. ConfigurationError is fatal."""
        config = config or Config.load()
        mode = config.runtime.mode or detect_runtime_mode()
        resource_dir = (
            Path(config.runtime.resource_dir)
            if config.runtime.resource_dir
            else default_resource_dir()
        )
        home = platform_home_dir()
        paths = PathResolver(config.app.namespace).resolve(
            mode,
            home,
            platform_config_dir(home=home),
            cwd=cwd or Path(os.getcwd()),
            resource_dir=resource_dir,
        )
        logger.info("Bootstrap paths resolved (%s mode): %s", mode.value, paths.as_dict())
        return cls(config, paths, mode, **kwargs)

    # ------------------------------------------------------------------
    # Background execution
    # ------------------------------------------------------------------

    def submit(self, fn: Callable[..., CommandResult], *args, **kwargs) -> Future:
        """Run a boundary operation on the worker pool."""
        return self._executor.submit(fn, *args, **kwargs)

    def start(self) -> Future:
        """Launch the backend off the calling thread; never blocks."""
        return self.submit(self.launch_backend)

    def shutdown(self, wait: bool = False) -> None:
        # The backend is detached; only the worker pool is stopped.
        self._executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Exposed operations
    # ------------------------------------------------------------------

    def launch_backend(self) -> CommandResult:
        try:
            handle = self.supervisor.launch_backend(self.paths)
        except ClaudinError as exc:
            logger.error("Backend failed to start: %s", exc)
            return CommandResult.fail(str(exc), data=self.supervisor.handle)
        return CommandResult.ok(handle)

    def wait_for_backend(self, timeout: Optional[float] = None) -> CommandResult:
        timeout = timeout or self.config.backend.ready_timeout_seconds
        url = self.config.backend.health_url
        if self.supervisor.wait_until_ready(url, timeout=timeout):
            return CommandResult.ok(url)
        return CommandResult.fail(f"Backend did not respond at {url} within {timeout:.0f}s")

    def get_extension_path(self) -> str:
        return str(self.synchronizer.destination_path(self.paths))

    def is_extension_extracted(self) -> bool:
        return self.synchronizer.is_synced(self.paths)

    def extract_extension(self, force: bool = False) -> CommandResult:
        try:
            destination = self.synchronizer.ensure_assets(self.paths, force=force)
        except ClaudinError as exc:
            logger.error("Extension extraction failed: %s", exc)
            return CommandResult.fail(str(exc))
        return CommandResult.ok(str(destination))

    def open_extension_folder(self) -> CommandResult:
        return self._open(LaunchKind.OPEN_FOLDER, self.get_extension_path())

    def open_chrome_extensions_page(self) -> CommandResult:
        return self._open(LaunchKind.OPEN_BROWSER, self.config.browser.extensions_url)

    def open_url(self, url: str) -> CommandResult:
        return self._open(LaunchKind.OPEN_BROWSER, url)

    def mark_setup_complete(self) -> CommandResult:
        try:
            marker = self.supervisor.mark_setup_complete(self.paths)
        except ClaudinError as exc:
            logger.warning("%s", exc)
            return CommandResult.fail(str(exc))
        return CommandResult.ok(str(marker))

    def is_setup_complete(self) -> CommandResult:
        try:
            done = self.supervisor.is_setup_complete(self.paths)
        except ClaudinError as exc:
            logger.warning("%s", exc)
            return CommandResult.fail(str(exc), data=False)
        return CommandResult.ok(done)

    def _open(self, kind: LaunchKind, target: str) -> CommandResult:
        try:
            self._launcher(kind, target, platform=self.platform)
        except ClaudinError as exc:
            logger.warning("Could not open %s: %s", target, exc)
            return CommandResult.fail(str(exc))
        return CommandResult.ok(target)
