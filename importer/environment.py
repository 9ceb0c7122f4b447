"""Process-wide setup for the importer: logging and the shared context.

`EnvironmentManager.apply()` configures logging once per process;
`initialize()` builds the collaborators for one configuration and caches the
resulting `ImporterContext` so scheduled passes share the same repository
connection.
"""

from __future__ import annotations

import logging

from importer.conflict_checker import IdentifierConflictChecker
from importer.file_ops import FileDeleter, FileRelocator
from importer.metadata_reader import MetsMetadataReader
from importer.models import ImporterContext
from importer.package_picker import HotfolderPicker
from importer.validation import default_validation
from importer.work_repository import SqliteWorkRepository
from types_models import ImporterConfig

logger = logging.getLogger(__name__)


def build_context(cfg: ImporterConfig) -> ImporterContext:
    """Create folders and wire the default collaborators for `cfg`."""
    cfg.ensure_directories()

    relocator = FileRelocator()
    repository = SqliteWorkRepository(cfg.db_path, retry_attempts=cfg.persist_retry_attempts)
    picker = HotfolderPicker(
        cfg.hotfolder_path,
        cfg.importing_folder_path,
        cfg.error_folder_path,
        relocator=relocator,
        min_age_seconds=cfg.min_package_age_seconds,
    )
    return ImporterContext(
        config=cfg,
        picker=picker,
        reader=MetsMetadataReader(),
        validator=default_validation(),
        checker=IdentifierConflictChecker(repository),
        repository=repository,
        relocator=relocator,
        cleaner=FileDeleter(),
    )


class EnvironmentManager:
    """Apply importer logging and create the shared context."""

    def __init__(self, cfg: ImporterConfig) -> None:
        super().__init__()
        self._cfg = cfg
        self._context: ImporterContext | None = None

    def apply(self, *, verbose: bool = False) -> None:
        """Mirror logs to stderr and to the configured log file."""
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            format="%(asctime)s - %(levelname)s - %(message)s",
            handlers=[
                logging.StreamHandler(),
                logging.FileHandler(self._cfg.log_file, encoding="utf-8"),
            ],
            force=True,
        )
        # Library chatter is only useful when debugging.
        for logger_name in ["sqlite_utils", "tenacity"]:
            logging.getLogger(logger_name).setLevel(
                logging.DEBUG if verbose else logging.WARNING
            )

    def initialize(self) -> ImporterContext:
        """Instantiate the importer context once and reuse it for every pass."""
        if self._context is not None:
            return self._context

        self._context = build_context(self._cfg)
        logger.info(
            "Importer ready: hotfolder=%s works=%s db=%s",
            self._cfg.hotfolder_path,
            self._cfg.work_files_path,
            self._cfg.db_path,
        )
        return self._context


__all__ = ["EnvironmentManager", "build_context"]
