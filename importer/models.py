from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Protocol, cast, runtime_checkable

from pydantic import BaseModel, ConfigDict

from importer.errors import ErrorKind, ImporterError, RollbackError
from types_models import ImporterConfig, Work, WorkPackage


@runtime_checkable
class PackagePicker(Protocol):
    """Hands out one ready package per call, or None once the hotfolder is drained.

    Implementations decide what "ready" means (complete copy, minimum age) and
    take ownership of the returned directory away from the hotfolder.
    """

    def next(self) -> WorkPackage | None: ...


@runtime_checkable
class MetadataReader(Protocol):
    """Parses a metadata document into a `Work`; raises on malformed input."""

    def read(self, metadata_file: Path) -> Work: ...


@runtime_checkable
class ImportValidator(Protocol):
    """Checks a parsed work against its metadata document; raises without side effects."""

    def validate(self, work: Work, metadata_file: Path) -> None: ...


@runtime_checkable
class ConflictChecker(Protocol):
    """Returns the already persisted work sharing the identity of `work`, if any."""

    def check(self, work: Work) -> Work | None: ...


@runtime_checkable
class WorkRepository(Protocol):
    """Durable store for work records.

    `upsert` must be safe to call twice with the same record: the flow control
    uses it both for the import and for restoring the previous record.
    """

    def upsert(self, work: Work) -> None: ...

    def get(self, work_id: str) -> Work | None: ...


@runtime_checkable
class FileRelocator(Protocol):
    def move(self, src: Path, dst: Path) -> None: ...


@runtime_checkable
class Cleaner(Protocol):
    """Recursive delete, tolerant of a missing path."""

    def delete(self, path: Path) -> None: ...


_UNSET: Any = object()


class ImporterContext(BaseModel):
    """Validated container for the configuration and collaborators of one importer."""

    config: ImporterConfig
    picker: PackagePicker
    reader: MetadataReader
    validator: ImportValidator
    checker: ConflictChecker
    repository: WorkRepository
    relocator: FileRelocator
    cleaner: Cleaner

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid", frozen=True)

    def with_collaborators(
        self,
        *,
        picker: PackagePicker | object = _UNSET,
        reader: MetadataReader | object = _UNSET,
        validator: ImportValidator | object = _UNSET,
        checker: ConflictChecker | object = _UNSET,
        repository: WorkRepository | object = _UNSET,
        relocator: FileRelocator | object = _UNSET,
        cleaner: Cleaner | object = _UNSET,
    ) -> "ImporterContext":
        """Return a copy with the supplied collaborators swapped in."""
        supplied = {
            "picker": picker,
            "reader": reader,
            "validator": validator,
            "checker": checker,
            "repository": repository,
            "relocator": relocator,
            "cleaner": cleaner,
        }
        update = {key: value for key, value in supplied.items() if value is not _UNSET}
        # Re-validate so a swapped collaborator still has to satisfy its protocol.
        merged = {**dict(self), **update}
        return cast("ImporterContext", ImporterContext.model_validate(merged))


class ImportStage(str, Enum):
    """States of the per-package pipeline, in order."""

    LOCATE = "locate"
    PARSE = "parse"
    VALIDATE = "validate"
    RENAME = "rename"
    CONFLICT_CHECK = "conflict_check"
    RELOCATE = "relocate"
    PERSIST = "persist"
    CLEANUP = "cleanup"
    COMPLETED = "completed"
    ROLLBACK = "rollback"
    QUARANTINED = "quarantined"


class ImportStatus(str, Enum):
    IMPORTED = "imported"
    REPLACED = "replaced"
    QUARANTINED = "quarantined"
    FAILED = "failed"


@dataclass
class ConflictContext:
    """Per-package state threaded through the pipeline and handed to rollback.

    `package_dir` always points at wherever the package currently lives: the
    claimed hotfolder copy, its renamed sibling, or the production path.
    """

    package_dir: Path
    stage: ImportStage = ImportStage.LOCATE
    new_work: Work | None = None
    present_work: Work | None = None
    temp_old_work_files: Path | None = None
    staging_dir: Path | None = None
    relocation_started: bool = False
    relocated: bool = False


@dataclass
class PackageOutcome:
    """Result of processing one package."""

    package_name: str
    status: ImportStatus
    work_id: str | None = None
    final_path: Path | None = None
    error: Exception | None = None
    rollback_errors: list[RollbackError] = field(default_factory=list)

    @property
    def error_kind(self) -> ErrorKind | None:
        if isinstance(self.error, ImporterError):
            return self.error.kind
        return None

    @property
    def succeeded(self) -> bool:
        return self.status in {ImportStatus.IMPORTED, ImportStatus.REPLACED}


@dataclass
class ImportSummary:
    """Outcomes of one drain of the hotfolder."""

    outcomes: list[PackageOutcome] = field(default_factory=list)
    skipped: bool = False

    def record(self, outcome: PackageOutcome) -> None:
        self.outcomes.append(outcome)

    def count(self, status: ImportStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)

    @property
    def imported(self) -> int:
        return self.count(ImportStatus.IMPORTED)

    @property
    def replaced(self) -> int:
        return self.count(ImportStatus.REPLACED)

    @property
    def quarantined(self) -> int:
        return self.count(ImportStatus.QUARANTINED)

    @property
    def failed(self) -> int:
        return self.count(ImportStatus.FAILED)

    def error_breakdown(self) -> dict[str, int]:
        """Count failures per error kind for summary output."""
        breakdown: dict[str, int] = {}
        for outcome in self.outcomes:
            if outcome.succeeded:
                continue
            kind = outcome.error_kind
            label = kind.value if kind is not None else "unexpected"
            breakdown[label] = breakdown.get(label, 0) + 1
        return breakdown


__all__ = [
    "PackagePicker",
    "MetadataReader",
    "ImportValidator",
    "ConflictChecker",
    "WorkRepository",
    "FileRelocator",
    "Cleaner",
    "ImporterContext",
    "ImportStage",
    "ImportStatus",
    "ConflictContext",
    "PackageOutcome",
    "ImportSummary",
]
