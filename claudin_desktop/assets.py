"""Materialize the bundled Chrome extension into the per-user directory."""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tempfile
from pathlib import Path

from claudin_desktop.exceptions import CannotCreateDestinationError, CopyFailedError
from claudin_desktop.models import ResolvedPaths

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST = "manifest.json"


class AssetSynchronizer:
    """Idempotently copy the extension bundle to a stable, writable location.

    The bundle counts as synced iff the manifest exists at the destination.
    The manifest is always the last file written (atomically, via a temp file
    and ``os.replace``) so a crash mid-copy leaves a manifest-less tree that
    the next call copies again in full.

    Callers must not run two ``ensure_assets`` calls against the same
    destination concurrently; the application does it once per session.
    """

    def __init__(self, manifest_name: str = DEFAULT_MANIFEST):
        self.manifest_name = manifest_name
        self.last_copy_count = 0

    def destination_path(self, paths: ResolvedPaths) -> Path:
        return paths.extension_destination

    def manifest_path(self, paths: ResolvedPaths) -> Path:
        return paths.extension_destination / self.manifest_name

    def is_synced(self, paths: ResolvedPaths) -> bool:
        return self.manifest_path(paths).is_file()

    def ensure_assets(self, paths: ResolvedPaths, force: bool = False) -> Path:
        """Copy the bundle unless already present; return the destination.

        A missing source directory is not an error: the destination is
        created empty and the bundle stays "not extracted".
        """
        destination = paths.extension_destination
        source = paths.extension_source
        self.last_copy_count = 0

        if not force and self.is_synced(paths):
            logger.debug("Extension already extracted at %s", destination)
            return destination

        if force and destination.exists():
            logger.info("Removing existing extension at %s for reinstall", destination)
            try:
                shutil.rmtree(destination)
            except OSError as exc:
                raise CannotCreateDestinationError(destination, str(exc)) from exc

        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CannotCreateDestinationError(destination, str(exc)) from exc

        if not source.is_dir():
            logger.warning("Bundled extension not found at %s, nothing to copy", source)
            return destination

        logger.info("Extracting extension %s → %s", source, destination)
        rel_dirs, rel_files = self._scan(source)
        manifest_rel = Path(self.manifest_name)

        for rel_dir in rel_dirs:
            try:
                (destination / rel_dir).mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise CopyFailedError(source / rel_dir, str(exc)) from exc

        for rel in rel_files:
            if rel == manifest_rel:
                continue
            self._copy_file(source / rel, destination / rel)

        if manifest_rel in rel_files:
            self._install_manifest(source / manifest_rel, destination / manifest_rel)
        else:
            logger.warning(
                "Bundled extension at %s has no %s; it will not count as extracted",
                source,
                self.manifest_name,
            )

        logger.info(
            "Extension extracted: %d file(s) copied to %s",
            self.last_copy_count,
            destination,
        )
        return destination

    # ------------------------------------------------------------------
    # Copy helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _scan(source: Path) -> tuple[list[Path], list[Path]]:
        """Return (directories, regular files) relative to ``source``, sorted.

        Symlinks and special files are skipped with a warning. A directory
        that cannot be listed raises CopyFailedError.
        """

        def _walk_error(exc: OSError) -> None:
            raise CopyFailedError(Path(exc.filename or source), str(exc)) from exc

        rel_dirs: list[Path] = []
        rel_files: list[Path] = []
        for root, dirs, files in os.walk(source, onerror=_walk_error, followlinks=False):
            root_path = Path(root)
            rel_root = root_path.relative_to(source)

            kept = []
            for name in sorted(dirs):
                if (root_path / name).is_symlink():
                    logger.warning("Skipping symlinked directory %s", root_path / name)
                    continue
                kept.append(name)
                rel_dirs.append(rel_root / name)
            dirs[:] = kept

            for name in sorted(files):
                src_file = root_path / name
                try:
                    mode = os.lstat(src_file).st_mode
                except OSError as exc:
                    raise CopyFailedError(src_file, str(exc)) from exc
                if not stat.S_ISREG(mode):
                    logger.warning("Skipping non-regular file %s", src_file)
                    continue
                rel_files.append(rel_root / name)
        return rel_dirs, rel_files

    def _copy_file(self, src: Path, dst: Path) -> None:
        try:
            shutil.copy2(src, dst)
        except OSError as exc:
            raise CopyFailedError(src, str(exc)) from exc
        self.last_copy_count += 1

    def _install_manifest(self, src: Path, dst: Path) -> None:
        tmp = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.manifest_name}.", suffix=".tmp", dir=dst.parent
            )
            os.close(fd)
            tmp = Path(tmp_name)
            shutil.copy2(src, tmp)
            os.replace(tmp, dst)
        except OSError as exc:
            if tmp is not None:
                tmp.unlink(missing_ok=True)
            raise CopyFailedError(src, str(exc)) from exc
        self.last_copy_count += 1
