"""Filesystem primitives used to claim, relocate, quarantine and purge packages."""

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


class FileRelocator:
    """Moves files and directories without ever overwriting an existing target."""

    def move(self, src: Path, dst: Path) -> None:
        if not src.exists() and not src.is_symlink():
            raise FileNotFoundError(f"Source does not exist: {src}")
        if dst.exists() or dst.is_symlink():
            raise FileExistsError(f"Target already exists: {dst}")
        dst.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("Moving %s -> %s", src, dst)
        _ = shutil.move(str(src), str(dst))


class FileDeleter:
    """Recursive delete that treats a missing path as already deleted."""

    def delete(self, path: Path) -> None:
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.is_dir():
            shutil.rmtree(path)
        else:
            logger.debug("Nothing to delete at %s", path)
            return
        logger.debug("Deleted %s", path)


def quarantine_target(error_root: Path, name: str) -> Path:
    """Return `<error_root>/<name>`, suffixed with a UTC timestamp if already taken."""
    target = error_root / name
    if not target.exists():
        return target
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
    return error_root / f"{name}.{stamp}"


__all__ = ["FileRelocator", "FileDeleter", "quarantine_target"]
