"""Flow control for the hotfolder importer.

One pass drains the hotfolder: packages are taken one at a time and driven
through locate -> parse -> validate -> rename -> conflict check -> relocate ->
persist -> cleanup. The steps from the conflict check onwards change
production state (cache, work files, database), so a failure there is
compensated in a fixed order before the package is quarantined:

  1. restore the previous database record, if a work was being replaced;
  2. withdraw the new files from production (or delete a partial copy left
     by an interrupted move) and move the previous work's files back from
     the temp holding folder;
  3. move whatever is left of the package to the error folder.

Compensation is best-effort and not transactional. A crash between two
steps can leave files and records out of step; operators resolve those
from the log and the error folder.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator

from importer.errors import (
    ConflictResolutionError,
    ImporterError,
    ImportValidationError,
    MetadataNotFoundError,
    MetadataParseError,
    PersistenceError,
    RelocationError,
    RenameError,
    RollbackError,
)
from importer.file_ops import quarantine_target
from importer.models import (
    ConflictContext,
    ImporterContext,
    ImportStage,
    ImportStatus,
    ImportSummary,
    PackageOutcome,
)
from types_models import Work, WorkPackage

logger = logging.getLogger(__name__)


class ImporterFlowControl:
    """Drains the hotfolder and imports each package, rolling back on failure."""

    def __init__(self, ctx: ImporterContext) -> None:
        super().__init__()
        self._ctx = ctx
        self._cfg = ctx.config
        self._run_lock = threading.Lock()

    def run_once(self) -> ImportSummary:
        """Import every ready package, then return.

        A trigger arriving while a pass is still draining is skipped so two
        passes never work on the production tree at the same time.
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Import pass already running, skipping this trigger")
            return ImportSummary(skipped=True)
        try:
            return self._drain()
        finally:
            self._run_lock.release()

    def _drain(self) -> ImportSummary:
        summary = ImportSummary()
        while (package := self._ctx.picker.next()) is not None:
            try:
                outcome = self.process_package(package)
            except Exception as exc:
                # Last-resort guard; the package stays where it is for inspection.
                logger.exception("Unexpected failure importing %s", package.name)
                outcome = PackageOutcome(
                    package_name=package.name, status=ImportStatus.FAILED, error=exc
                )
            summary.record(outcome)

        logger.info(
            "Import pass finished: %s imported, %s replaced, %s quarantined, %s failed",
            summary.imported,
            summary.replaced,
            summary.quarantined,
            summary.failed,
        )
        return summary

    def process_package(self, package: WorkPackage) -> PackageOutcome:
        """Run one package through the pipeline to success or quarantine."""
        logger.info("Starting import of work %s", package.name)
        state = ConflictContext(package_dir=package.path)

        try:
            new_work = self._import(state)
        except ImporterError as error:
            return self._fail(package, state, error)

        status = ImportStatus.REPLACED if state.present_work else ImportStatus.IMPORTED
        logger.info("Finished import of work %s (%s)", new_work.id, status.value)
        return PackageOutcome(
            package_name=package.name,
            status=status,
            work_id=new_work.id,
            final_path=state.package_dir,
        )

    @contextmanager
    def _stage(
        self,
        state: ConflictContext,
        stage: ImportStage,
        error_cls: type[ImporterError],
        message: str,
    ) -> Iterator[None]:
        """Enter a pipeline stage and map collaborator failures onto its error kind."""
        state.stage = stage
        try:
            yield
        except ImporterError:
            raise
        except Exception as exc:
            raise error_cls(f"{message}: {exc}") from exc

    def _import(self, state: ConflictContext) -> Work:
        ctx = self._ctx
        suffix = self._cfg.metadata_suffix

        with self._stage(state, ImportStage.LOCATE, MetadataNotFoundError, "Cannot access package"):
            metadata_file = state.package_dir / f"{state.package_dir.name}{suffix}"
            if not metadata_file.is_file():
                raise MetadataNotFoundError(
                    f"Metadata file not found, expected at {metadata_file}"
                )

        with self._stage(
            state, ImportStage.PARSE, MetadataParseError, f"Cannot read {metadata_file.name}"
        ):
            new_work = ctx.reader.read(metadata_file)
            new_work.path = str(self._cfg.work_files_path / new_work.id)
        state.new_work = new_work

        with self._stage(
            state, ImportStage.VALIDATE, ImportValidationError, f"Work {new_work.id} is invalid"
        ):
            ctx.validator.validate(new_work, metadata_file)

        # The parsed id is authoritative: directory and metadata document follow it.
        if new_work.id != state.package_dir.name:
            logger.info(
                "Id of work to import: %s is different from the package name %s, renaming",
                new_work.id,
                state.package_dir.name,
            )
            with self._stage(
                state, ImportStage.RENAME, RenameError, f"Cannot rename package to {new_work.id}"
            ):
                # File first: its lookup goes through the old directory path.
                ctx.relocator.move(metadata_file, metadata_file.with_name(f"{new_work.id}{suffix}"))
                renamed_dir = state.package_dir.with_name(new_work.id)
                ctx.relocator.move(state.package_dir, renamed_dir)
                state.package_dir = renamed_dir

        with self._stage(
            state,
            ImportStage.CONFLICT_CHECK,
            ConflictResolutionError,
            f"Cannot replace present work {new_work.id}",
        ):
            state.present_work = ctx.checker.check(new_work)
            if state.present_work is not None:
                self._set_aside_present_work(state, new_work, state.present_work)

        production_dir = Path(new_work.path)
        with self._stage(
            state,
            ImportStage.RELOCATE,
            RelocationError,
            f"Cannot move work {new_work.id} to {production_dir}",
        ):
            if production_dir.exists():
                raise RelocationError(f"Production path {production_dir} is already occupied")
            state.staging_dir = state.package_dir
            state.relocation_started = True
            ctx.relocator.move(state.package_dir, production_dir)
            state.package_dir = production_dir
            state.relocated = True

        # Files are in place before the record is written, so a failing write
        # can still be compensated by moving files back.
        with self._stage(
            state, ImportStage.PERSIST, PersistenceError, f"Cannot store work {new_work.id}"
        ):
            ctx.repository.upsert(new_work)

        if state.temp_old_work_files is not None:
            state.stage = ImportStage.CLEANUP
            try:
                ctx.cleaner.delete(state.temp_old_work_files)
            except Exception as exc:
                # Past the commit point: the import stands, the leftovers need an operator.
                logger.warning(
                    "⚠️ Could not delete previous files of work %s at %s: %s",
                    new_work.id,
                    state.temp_old_work_files,
                    exc,
                )

        state.stage = ImportStage.COMPLETED
        return new_work

    def _set_aside_present_work(
        self, state: ConflictContext, new_work: Work, present: Work
    ) -> None:
        """Purge cached derivatives and move the present work's files to temp holding."""
        logger.info("Work %s already present, replacing", new_work.id)

        new_work.enabled = present.enabled

        # Cache goes first so stale derivatives are never served against new files.
        self._ctx.cleaner.delete(self._cfg.cache_path / new_work.id)

        if not present.path:
            raise ConflictResolutionError(f"Present work {present.id} has no file path")

        temp_dir = self._cfg.temp_work_folder_path / present.id
        self._ctx.relocator.move(Path(present.path), temp_dir)
        state.temp_old_work_files = temp_dir

    def _fail(
        self, package: WorkPackage, state: ConflictContext, error: ImporterError
    ) -> PackageOutcome:
        logger.error(
            "An error occurred importing work %s during %s, moving all files to the error folder. Error: %s",
            package.name,
            state.stage.value,
            error,
            exc_info=error,
        )

        rollback_errors: list[RollbackError] = []
        if error.kind.requires_rollback:
            rollback_errors.extend(self._rollback(state))
        final_path = self._quarantine(state, rollback_errors)

        if rollback_errors:
            logger.error(
                "Rollback for %s was incomplete (%s failed steps), manual cleanup required",
                package.name,
                len(rollback_errors),
            )

        return PackageOutcome(
            package_name=package.name,
            status=ImportStatus.QUARANTINED,
            work_id=state.new_work.id if state.new_work else None,
            final_path=final_path,
            error=error,
            rollback_errors=rollback_errors,
        )

    def _rollback(self, state: ConflictContext) -> list[RollbackError]:
        """Undo production changes of a failed replace or relocation."""
        state.stage = ImportStage.ROLLBACK
        errors: list[RollbackError] = []
        present = state.present_work
        relocator = self._ctx.relocator

        if present is not None:
            _ = self._compensate(
                errors,
                "restore_record",
                f"restore database record of work {present.id}",
                lambda: self._ctx.repository.upsert(present),
            )

        if state.relocated and state.staging_dir is not None:
            staging_dir = state.staging_dir

            def _withdraw() -> None:
                relocator.move(state.package_dir, staging_dir)
                state.package_dir = staging_dir
                state.relocated = False

            _ = self._compensate(
                errors,
                "withdraw_files",
                f"withdraw files of the failed import from {state.package_dir}",
                _withdraw,
            )

        if (
            state.relocation_started
            and not state.relocated
            and state.new_work is not None
            and state.staging_dir is not None
            and state.staging_dir.exists()
        ):
            # An interrupted cross-device move leaves a partial copy in production.
            partial_dir = Path(state.new_work.path)
            if partial_dir.exists():
                _ = self._compensate(
                    errors,
                    "discard_partial",
                    f"delete partial copy of work {state.new_work.id} at {partial_dir}",
                    lambda: self._ctx.cleaner.delete(partial_dir),
                )

        if present is not None and state.temp_old_work_files is not None:
            temp_dir = state.temp_old_work_files
            _ = self._compensate(
                errors,
                "restore_files",
                f"move files of work {present.id} back from {temp_dir}",
                lambda: relocator.move(temp_dir, Path(present.path)),
            )

        return errors

    def _quarantine(
        self, state: ConflictContext, errors: list[RollbackError]
    ) -> Path | None:
        """Move whatever remains of the package into the error folder."""
        source = state.package_dir
        if not source.exists():
            logger.warning("Nothing left of package %s to move to the error folder", source.name)
            return None

        target = quarantine_target(self._cfg.error_folder_path, source.name)
        moved = self._compensate(
            errors,
            "quarantine",
            f"move {source} to the error folder",
            lambda: self._ctx.relocator.move(source, target),
        )
        if not moved:
            return None

        state.package_dir = target
        state.stage = ImportStage.QUARANTINED
        logger.info("Moved package %s to error folder %s", source.name, target)
        return target

    @staticmethod
    def _compensate(
        errors: list[RollbackError],
        step: str,
        description: str,
        action: Callable[[], None],
    ) -> bool:
        """Run one compensation step; record a failure instead of raising it."""
        try:
            action()
        except Exception as exc:
            error = RollbackError(f"Could not {description}: {exc}", step=step)
            error.__cause__ = exc
            logger.error("Rollback step %s failed: %s", step, error, exc_info=exc)
            errors.append(error)
            return False
        return True


__all__ = ["ImporterFlowControl"]
