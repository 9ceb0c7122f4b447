"""
Type definitions and Pydantic models for the hotfolder importer.

This module provides validated definitions for the records that flow through
the import pipeline: the persisted `Work`, the transient `WorkPackage` picked
from the hotfolder, and the immutable `ImporterConfig` handed to the driver.
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WorkIdentifier(BaseModel):
    """External identifier (URN, DOI, PPN, ...) attached to a work."""

    type: str = Field(min_length=1, description="Identifier scheme, e.g. 'urn'")
    identifier: str = Field(min_length=1, description="Identifier value")

    model_config = ConfigDict(frozen=True)


class Work(BaseModel):
    """Durable record of one digital object."""

    id: str = Field(min_length=1, description="Stable external identifier")
    path: str = Field(
        default="", description="Absolute path to the production files of the work"
    )
    enabled: bool = Field(
        default=True, description="Visibility flag, survives re-imports of the same id"
    )
    title: str | None = Field(default=None, description="Main title")
    host_id: str | None = Field(
        default=None, description="Record identifier of the parent (host) work"
    )
    identifiers: list[WorkIdentifier] = Field(
        default_factory=list, description="External identifiers of the work"
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional descriptive metadata passed through from the metadata document",
    )

    model_config = ConfigDict(validate_assignment=True)

    @field_validator("id")
    @classmethod
    def _strip_id(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("work id must not be blank")
        return stripped


class WorkPackage(BaseModel):
    """A package directory holding a metadata document plus payload files."""

    path: Path = Field(description="Current location of the package directory")

    model_config = ConfigDict(frozen=True)

    @property
    def name(self) -> str:
        return self.path.name

    def metadata_file(self, suffix: str = ".xml") -> Path:
        """Expected metadata document, named after the package directory."""
        return self.path / f"{self.path.name}{suffix}"


class ImporterConfig(BaseModel):
    """Configuration for one importer instance with full validation."""

    hotfolder_path: Path = Field(
        default=Path("hotfolder"), description="Staging area new packages arrive in"
    )
    importing_folder_path: Path = Field(
        default=Path("importing"),
        description="In-progress area a package is claimed into before processing",
    )
    work_files_path: Path = Field(
        default=Path("works"), description="Production root for work files"
    )
    temp_work_folder_path: Path = Field(
        default=Path("temp"),
        description="Holding area for the files of a work being replaced",
    )
    error_folder_path: Path = Field(
        default=Path("error"), description="Quarantine for packages that failed"
    )
    cache_path: Path = Field(
        default=Path("cache"), description="Cache root of the file server"
    )
    db_path: Path = Field(
        default=Path("works.db"), description="SQLite database holding work records"
    )
    metadata_suffix: str = Field(
        default=".xml", description="Suffix of the metadata document"
    )
    min_package_age_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="Packages modified more recently than this are not picked yet",
    )
    schedule_interval_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="Seconds between scheduled passes (0 = run once)",
    )
    log_file: str = Field(default="importer.log", description="Log file mirror")
    persist_retry_attempts: int = Field(
        default=3, ge=1, description="Attempts for repository writes"
    )

    # Defaults go through the validators too, so default folders are absolute as well.
    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    @field_validator(
        "hotfolder_path",
        "importing_folder_path",
        "work_files_path",
        "temp_work_folder_path",
        "error_folder_path",
        "cache_path",
        "db_path",
    )
    @classmethod
    def _absolute_path(cls, v: Path) -> Path:
        """Anchor relative paths at the working directory."""
        return v.expanduser().resolve()

    @field_validator("metadata_suffix")
    @classmethod
    def _dotted_suffix(cls, v: str) -> str:
        if not v.startswith(".") or len(v) < 2:
            raise ValueError(f"metadata_suffix must look like '.xml', got: {v!r}")
        return v

    def folders(self) -> dict[str, Path]:
        """Return the configured working folders keyed by setting name."""
        return {
            "hotfolder_path": self.hotfolder_path,
            "importing_folder_path": self.importing_folder_path,
            "work_files_path": self.work_files_path,
            "temp_work_folder_path": self.temp_work_folder_path,
            "error_folder_path": self.error_folder_path,
            "cache_path": self.cache_path,
        }

    def ensure_directories(self) -> None:
        """Create every working folder and the database parent if missing."""
        for folder in self.folders().values():
            folder.mkdir(parents=True, exist_ok=True)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)


def importer_config_to_dict(config: ImporterConfig) -> dict[str, Any]:
    """Convert ImporterConfig to a JSON-friendly dict for display."""
    return config.model_dump(mode="json")
