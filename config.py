# ======================================
# Config for the hotfolder importer
# Values come from settings.toml ([importer] table); defaults below
# ======================================

import os
import tomllib
from pathlib import Path
from typing import Any

from types_models import ImporterConfig

# Settings file location, overridable for cron/systemd deployments.
SETTINGS_FILE: Path = Path(os.environ.get("IMPORTER_SETTINGS", "settings.toml"))


def load_settings(settings_file: Path | None = None) -> ImporterConfig:
    """Read the [importer] table from a TOML file into an ImporterConfig.

    A missing file yields the defaults so a fresh checkout runs without setup.
    """
    path = settings_file if settings_file is not None else SETTINGS_FILE
    if not path.exists():
        return ImporterConfig()

    with open(path, "rb") as handle:
        data: dict[str, Any] = tomllib.load(handle)

    section = data.get("importer", data)
    if not isinstance(section, dict):
        raise ValueError(f"[importer] in {path} must be a table")
    return ImporterConfig.model_validate(section)


def validate_config(cfg: ImporterConfig) -> None:
    """Validate cross-field constraints pydantic cannot express per field."""
    folders = cfg.folders()

    # Every working folder must be distinct, otherwise moves would clobber each other.
    seen: dict[Path, str] = {}
    for name, folder in folders.items():
        if folder in seen:
            raise ValueError(f"{name} and {seen[folder]} must differ, both are {folder}")
        seen[folder] = name

    # The hotfolder is drained to empty, so nothing else may live below it.
    for name, folder in folders.items():
        if name == "hotfolder_path":
            continue
        if folder.is_relative_to(cfg.hotfolder_path):
            raise ValueError(
                f"{name} ({folder}) must not be inside hotfolder_path ({cfg.hotfolder_path})"
            )

    if cfg.db_path.is_relative_to(cfg.hotfolder_path):
        raise ValueError("db_path must not be inside hotfolder_path")

    if not cfg.log_file.strip():
        raise ValueError("log_file must be a non-empty string")


CONFIG: ImporterConfig = load_settings()

HOTFOLDER_PATH: Path = CONFIG.hotfolder_path
IMPORTING_FOLDER_PATH: Path = CONFIG.importing_folder_path
WORK_FILES_PATH: Path = CONFIG.work_files_path
TEMP_WORK_FOLDER_PATH: Path = CONFIG.temp_work_folder_path
ERROR_FOLDER_PATH: Path = CONFIG.error_folder_path
CACHE_PATH: Path = CONFIG.cache_path
DB_PATH: Path = CONFIG.db_path
LOG_FILE: str = CONFIG.log_file
SCHEDULE_INTERVAL_SECONDS: float = CONFIG.schedule_interval_seconds

# Validate on import
validate_config(CONFIG)
