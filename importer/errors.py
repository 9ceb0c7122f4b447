"""
Importer error hierarchy.

Every failure inside the per-package pipeline surfaces as an `ImporterError`
subclass whose `kind` tells the flow control whether the package can go
straight to the error folder or whether production state has to be rolled
back first. None of these errors is fatal to the import loop.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Discriminator for pipeline failures."""

    METADATA_NOT_FOUND = "metadata_not_found"
    PARSE = "parse"
    VALIDATION = "validation"
    RENAME = "rename"
    CONFLICT_RESOLUTION = "conflict_resolution"
    RELOCATION = "relocation"
    PERSISTENCE = "persistence"
    ROLLBACK = "rollback"

    @property
    def requires_rollback(self) -> bool:
        """True when the failing step may already have touched production state."""
        return self in {
            ErrorKind.CONFLICT_RESOLUTION,
            ErrorKind.RELOCATION,
            ErrorKind.PERSISTENCE,
        }


class ImporterError(Exception):
    """Base exception for import pipeline failures."""

    kind: ErrorKind


class MetadataNotFoundError(ImporterError):
    """The package holds no metadata document named after its directory."""

    kind = ErrorKind.METADATA_NOT_FOUND


class MetadataParseError(ImporterError):
    """The metadata document is unreadable or malformed."""

    kind = ErrorKind.PARSE


class ImportValidationError(ImporterError):
    """The parsed work is semantically invalid."""

    kind = ErrorKind.VALIDATION


class RenameError(ImporterError):
    """Renaming the metadata document or package directory to the work id failed."""

    kind = ErrorKind.RENAME


class ConflictResolutionError(ImporterError):
    """Identity lookup, cache purge or temp holding move failed during a replace."""

    kind = ErrorKind.CONFLICT_RESOLUTION


class RelocationError(ImporterError):
    """Moving the package into production storage failed."""

    kind = ErrorKind.RELOCATION


class PersistenceError(ImporterError):
    """The work repository could not store the record."""

    kind = ErrorKind.PERSISTENCE


class RollbackError(ImporterError):
    """A compensation step failed. Logged and recorded, never raised out of rollback."""

    kind = ErrorKind.ROLLBACK

    def __init__(self, message: str, *, step: str) -> None:
        super().__init__(message)
        self.step = step


__all__ = [
    "ErrorKind",
    "ImporterError",
    "MetadataNotFoundError",
    "MetadataParseError",
    "ImportValidationError",
    "RenameError",
    "ConflictResolutionError",
    "RelocationError",
    "PersistenceError",
    "RollbackError",
]
