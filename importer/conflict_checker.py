import logging

from importer.errors import ConflictResolutionError
from importer.work_repository import SqliteWorkRepository
from types_models import Work

logger = logging.getLogger(__name__)


class IdentifierConflictChecker:
    """Finds the persisted work a new import would replace.

    A work is "present" when a record with the same id exists. An external
    identifier already owned by a work with a different id cannot be resolved
    by replacing anything and fails the import instead.
    """

    def __init__(self, repository: SqliteWorkRepository) -> None:
        super().__init__()
        self._repository = repository

    def check(self, work: Work) -> Work | None:
        for ident in work.identifiers:
            owner = self._repository.find_by_identifier(ident.type, ident.identifier)
            if owner is not None and owner != work.id:
                raise ConflictResolutionError(
                    f"Identifier {ident.type}:{ident.identifier} of work {work.id} "
                    + f"is already assigned to work {owner}"
                )

        present = self._repository.get(work.id)
        if present is not None:
            logger.debug("Work %s already present at %s", present.id, present.path)
        return present


__all__ = ["IdentifierConflictChecker"]
