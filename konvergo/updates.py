"""Finding and staging downloaded application updates."""

from __future__ import annotations

import enum
import logging
import os
import shutil
import tarfile
from pathlib import Path

from konvergo import paths

log = logging.getLogger(__name__)

READY_FILE = "_readyToApply"
PACKAGES_DIR = "packages"
OE_UPDATE_DIR = "/storage/.update"


class UpdateAction(enum.Enum):
    """What the application has to do after an update was staged."""

    NONE = "none"
    RESTART_APPLICATION = "restart_application"
    REBOOT = "reboot"


class UpdateManager:
    """Locate downloaded updates below the updates cache directory."""

    def __init__(self, root: str | os.PathLike[str] | None = None) -> None:
        self.root = Path(root) if root is not None else Path(paths.cache_dir("updates"))

    def get_path(self, file: str, version: str, package: bool) -> str:
        """Return the path of ``file`` for ``version``, inside ``packages/`` if ``package``."""
        file_path = f"{PACKAGES_DIR}/{file}" if package else file
        return f"{self.root}/{version}/{file_path}"

    def have_update(self) -> str | None:
        """Return the newest version that is ready to apply, or None.

        Package directories of versions that are not ready are removed on the way.
        """
        if not self.root.is_dir():
            log.debug("No Update directory found, exiting")
            return None

        candidates = sorted(
            (entry for entry in self.root.iterdir() if entry.is_dir()),
            key=lambda entry: entry.stat().st_mtime,
            reverse=True,
        )
        for directory in candidates:
            version = directory.name
            ready_file = Path(self.get_path(READY_FILE, version, False))
            package_dir = Path(self.get_path(PACKAGES_DIR, version, False))
            log.debug("Checking for: %s", ready_file)

            if ready_file.exists():
                log.debug("%s is not applied", version)
                return version
            if package_dir.is_dir():
                log.debug("Removing old update packages in dir: %s", version)
                try:
                    shutil.rmtree(package_dir)
                except OSError:
                    log.warning("Failed to remove old update packages in dir: %s", version)

        log.debug("No valid/applicable update found.")
        return None


class OEUpdateManager(UpdateManager):
    """Updates for the embedded system image, staged as tar archives."""

    def have_update(self) -> str | None:
        """System image updates are never applied at start-up."""
        return None

    def is_mini_update_archive(self, archive_path: str | os.PathLike[str]) -> bool:
        """Return whether the archive only replaces the application binary."""
        needle = "bin/" + paths.main_name()
        try:
            with tarfile.open(archive_path) as archive:
                return any(needle in name for name in archive.getnames())
        except (OSError, tarfile.TarError) as exc:
            log.error("Unable to list update archive files : %s", exc)
            return False

    def stage_update(
        self, version: str, update_dir: str | os.PathLike[str] = OE_UPDATE_DIR
    ) -> UpdateAction:
        """Move the newest archive of ``version`` into ``update_dir``.

        Other downloaded versions are removed. Returns whether the application
        must restart, the system must reboot, or nothing was staged.
        """
        package_dir = Path(self.get_path("", version, True))
        version_dir = Path(self.get_path("", version, False))

        update_files: list[Path] = []
        if package_dir.is_dir():
            update_files = sorted(
                (f for f in package_dir.glob("*.tar") if f.is_file()),
                key=lambda f: f.stat().st_mtime,
                reverse=True,
            )

        if self.root.is_dir():
            for entry in self.root.iterdir():
                if entry.is_dir() and entry.resolve() != version_dir.resolve():
                    try:
                        shutil.rmtree(entry)
                    except OSError:
                        log.error("Failed to remove directory %s", entry)

        if not update_files:
            return UpdateAction.NONE

        destination = Path(update_dir) / update_files[0].name
        try:
            Path(update_dir).mkdir(parents=True, exist_ok=True)
            shutil.move(str(update_files[0]), str(destination))
        except OSError as exc:
            log.error("Failed to move update %s: %s", update_files[0], exc)
            return UpdateAction.NONE

        if self.is_mini_update_archive(destination):
            log.debug("Exiting to apply application update %s", destination)
            return UpdateAction.RESTART_APPLICATION

        try:
            shutil.rmtree(version_dir)
        except OSError:
            log.error("Failed to remove directory %s", version_dir)
        log.debug("Rebooting to apply system update %s", destination)
        return UpdateAction.REBOOT