"""Import validation rules applied to a parsed work before anything is moved."""

import logging
from pathlib import Path
from typing import Protocol, Sequence
from urllib.parse import unquote, urlparse

from importer.errors import ImportValidationError
from types_models import Work

logger = logging.getLogger(__name__)

_REMOTE_SCHEMES = {"http", "https", "ftp"}


class ValidationRule(Protocol):
    def validate(self, work: Work, metadata_file: Path) -> None: ...


class WorkIdValidation:
    """The work id becomes a directory name, so it must be one safe path segment."""

    def validate(self, work: Work, metadata_file: Path) -> None:
        work_id = work.id
        if work_id in {".", ".."} or work_id.startswith("."):
            raise ImportValidationError(f"Work id {work_id!r} must not start with a dot")
        if "/" in work_id or "\\" in work_id or "\x00" in work_id:
            raise ImportValidationError(
                f"Work id {work_id!r} must not contain path separators"
            )


class FileReferenceValidation:
    """Every local file referenced by the metadata must be present in the package."""

    def validate(self, work: Work, metadata_file: Path) -> None:
        package_dir = metadata_file.parent.resolve()
        references = work.metadata.get("files", [])
        missing: list[str] = []

        for href in references:
            parsed = urlparse(str(href))
            if parsed.scheme in _REMOTE_SCHEMES:
                continue
            local = unquote(parsed.path) if parsed.scheme == "file" else str(href)
            candidate = (package_dir / local).resolve()
            if not candidate.is_relative_to(package_dir):
                raise ImportValidationError(
                    f"File reference {href!r} points outside the package {package_dir.name}"
                )
            if not candidate.is_file():
                missing.append(str(href))

        if missing:
            shown = ", ".join(missing[:5])
            more = f" (+ {len(missing) - 5} more)" if len(missing) > 5 else ""
            raise ImportValidationError(
                f"{len(missing)} referenced files missing from package {package_dir.name}: {shown}{more}"
            )


class CompositeValidation:
    """Runs rules in order; the first failing rule aborts validation."""

    def __init__(self, rules: Sequence[ValidationRule]) -> None:
        super().__init__()
        self._rules = list(rules)

    def validate(self, work: Work, metadata_file: Path) -> None:
        for rule in self._rules:
            rule.validate(work, metadata_file)
        logger.debug("Work %s passed %s validation rules", work.id, len(self._rules))


def default_validation() -> CompositeValidation:
    return CompositeValidation([WorkIdValidation(), FileReferenceValidation()])


__all__ = [
    "ValidationRule",
    "WorkIdValidation",
    "FileReferenceValidation",
    "CompositeValidation",
    "default_validation",
]
