"""Hotfolder picker.

Scans the hotfolder for package directories and claims one per call by moving
it into the importing folder, so ownership of a package leaves the hotfolder
before any processing starts and a drained hotfolder is empty.
"""

import logging
import os
import time
from pathlib import Path
from typing import Callable

from importer.file_ops import FileRelocator, quarantine_target
from types_models import WorkPackage

logger = logging.getLogger(__name__)


class HotfolderPicker:
    """Hands out ready package directories from the hotfolder, oldest name first."""

    def __init__(
        self,
        hotfolder: Path,
        importing_folder: Path,
        error_folder: Path,
        *,
        relocator: FileRelocator | None = None,
        min_age_seconds: float = 0.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__()
        self._hotfolder = hotfolder
        self._importing_folder = importing_folder
        self._error_folder = error_folder
        self._relocator = relocator or FileRelocator()
        self._min_age_seconds = min_age_seconds
        self._clock = clock
        # Names that could not be claimed during the current pass.
        self._unclaimable: set[str] = set()

    def next(self) -> WorkPackage | None:
        for candidate in self._candidates():
            if candidate.name in self._unclaimable:
                continue
            if not self._is_ready(candidate):
                logger.debug("Package %s is still being written, skipping", candidate.name)
                continue
            claimed = self._claim(candidate)
            if claimed is not None:
                return WorkPackage(path=claimed)

        # A pass ends here; retry previously unclaimable packages next time.
        self._unclaimable.clear()
        return None

    def _candidates(self) -> list[Path]:
        """Visible, non-symlink directories directly below the hotfolder."""
        try:
            entries = sorted(self._hotfolder.iterdir())
        except FileNotFoundError:
            logger.warning("⚠️ Hotfolder does not exist: %s", self._hotfolder)
            return []
        except OSError as exc:
            logger.error("❌ Cannot access hotfolder %s: %s", self._hotfolder, exc)
            return []

        candidates: list[Path] = []
        for entry in entries:
            if entry.name.startswith(".") or entry.is_symlink():
                continue
            if not entry.is_dir():
                logger.debug("Ignoring file outside of a package folder: %s", entry.name)
                continue
            candidates.append(entry)
        return candidates

    def _is_ready(self, package_dir: Path) -> bool:
        """A package is ready once nothing inside it changed for min_age_seconds."""
        if self._min_age_seconds <= 0:
            return True
        try:
            newest = package_dir.stat().st_mtime
            for dirpath, _dirnames, filenames in os.walk(package_dir):
                newest = max(newest, os.stat(dirpath).st_mtime)
                for fname in filenames:
                    newest = max(newest, os.stat(os.path.join(dirpath, fname)).st_mtime)
        except OSError:
            # Files vanishing mid-walk means the producer is still busy.
            return False
        return self._clock() - newest >= self._min_age_seconds

    def _claim(self, package_dir: Path) -> Path | None:
        target = self._importing_folder / package_dir.name
        if target.exists():
            # Left over from an interrupted pass; never merge two packages.
            quarantined = quarantine_target(self._error_folder, package_dir.name)
            logger.error(
                "Package %s is already being imported, moving the new copy to %s",
                package_dir.name,
                quarantined,
            )
            try:
                self._relocator.move(package_dir, quarantined)
            except OSError as exc:
                logger.error("❌ Could not quarantine %s: %s", package_dir.name, exc)
                self._unclaimable.add(package_dir.name)
            return None

        try:
            self._relocator.move(package_dir, target)
        except OSError as exc:
            logger.error("❌ Could not claim package %s: %s", package_dir.name, exc)
            self._unclaimable.add(package_dir.name)
            return None

        logger.debug("Claimed package %s into %s", package_dir.name, target)
        return target


__all__ = ["HotfolderPicker"]
