"""SQLite-backed work repository.

Work records live in a `works` table keyed by work id; external identifiers
live in an `identifiers` table keyed by (type, identifier) so the conflict
checker can detect an identifier that is already claimed by another work.
`upsert` rewrites both the work row and its identifier rows, which makes it
safe to repeat with the same record: the flow control relies on that when it
restores the previous record during rollback.
"""

import json
import logging
import sqlite3
from collections.abc import Iterable, Mapping
from datetime import datetime
from pathlib import Path
from typing import Any, TypedDict, cast

import sqlite_utils
from sqlite_utils.db import NotFoundError, Table
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from importer.errors import PersistenceError
from types_models import Work, WorkIdentifier

logger = logging.getLogger(__name__)

_UPSERT_WORK_SQL = """
INSERT INTO works (id, path, enabled, title, host_id, metadata, updated_at)
VALUES (:id, :path, :enabled, :title, :host_id, :metadata, :updated_at)
ON CONFLICT(id) DO UPDATE SET
    path = excluded.path,
    enabled = excluded.enabled,
    title = excluded.title,
    host_id = excluded.host_id,
    metadata = excluded.metadata,
    updated_at = excluded.updated_at
"""


class WorkRecord(TypedDict):
    """Raw row layout persisted to SQLite for each work."""

    id: str
    path: str
    enabled: bool
    title: str | None
    host_id: str | None
    metadata: str
    updated_at: str


class SqliteWorkRepository:
    """Stores `Work` records with sqlite-utils."""

    def __init__(self, db_path: Path, *, retry_attempts: int = 3) -> None:
        super().__init__()
        self._db_path = db_path
        self._retry_attempts = retry_attempts
        self._db = sqlite_utils.Database(str(db_path))
        self._ensure_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _works(self) -> Table:
        return cast(Table, self._db["works"])

    def _identifiers(self) -> Table:
        return cast(Table, self._db["identifiers"])

    def _ensure_schema(self) -> None:
        table_names = self._db.table_names()
        if "works" not in table_names:
            _ = self._works().create(
                {
                    "id": str,
                    "path": str,
                    "enabled": bool,
                    "title": str,
                    "host_id": str,
                    "metadata": str,
                    "updated_at": str,
                },
                pk="id",
            )
        if "identifiers" not in table_names:
            identifiers = self._identifiers()
            _ = identifiers.create(
                {"type": str, "identifier": str, "work_id": str},
                pk=("type", "identifier"),
            )
            # Rewrites on upsert and restore look identifiers up by owning work.
            _ = identifiers.create_index(["work_id"])

    def upsert(self, work: Work) -> None:
        """Insert or replace the work and its identifiers."""
        record: WorkRecord = {
            "id": work.id,
            "path": work.path,
            "enabled": work.enabled,
            "title": work.title,
            "host_id": work.host_id,
            "metadata": json.dumps(work.metadata, default=str, sort_keys=True),
            "updated_at": datetime.now().isoformat(),
        }
        identifier_rows = [
            {"type": ident.type, "identifier": ident.identifier, "work_id": work.id}
            for ident in work.identifiers
        ]

        @retry(
            retry=retry_if_exception_type(sqlite3.OperationalError),
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=5),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        def _write() -> None:
            # Locked databases (another reader holding a write lock) are transient; retry those.
            # One transaction per attempt: the work row and its identifiers change together.
            with self._db.conn:
                _ = self._db.execute(_UPSERT_WORK_SQL, cast(dict[str, Any], record))
                _ = self._db.execute("DELETE FROM identifiers WHERE work_id = ?", [work.id])
                _ = self._db.conn.executemany(
                    "INSERT OR REPLACE INTO identifiers (type, identifier, work_id) "
                    + "VALUES (:type, :identifier, :work_id)",
                    identifier_rows,
                )

        try:
            _write()
        except Exception as exc:
            raise PersistenceError(f"Could not store work {work.id}: {exc}") from exc
        logger.debug("Stored work %s (%s identifiers)", work.id, len(identifier_rows))

    def get(self, work_id: str) -> Work | None:
        """Load a work by id, or None if it was never imported."""
        try:
            row = cast(Mapping[str, Any], self._works().get(work_id))
        except NotFoundError:
            return None
        return self._to_work(row)

    def find_by_identifier(self, id_type: str, identifier: str) -> str | None:
        """Return the id of the work owning an external identifier."""
        rows = cast(
            Iterable[Mapping[str, Any]],
            self._identifiers().rows_where(
                "type = ? and identifier = ?", [id_type, identifier], limit=1
            ),
        )
        for row in rows:
            return str(row["work_id"])
        return None

    def all_ids(self) -> list[str]:
        rows = cast(
            Iterable[Mapping[str, Any]],
            self._works().rows_where(select="id", order_by="id"),
        )
        return [str(row["id"]) for row in rows]

    def _to_work(self, row: Mapping[str, Any]) -> Work:
        identifier_rows = cast(
            Iterable[Mapping[str, Any]],
            self._identifiers().rows_where(
                "work_id = ?", [row["id"]], order_by="type, identifier"
            ),
        )
        raw_metadata = row["metadata"]
        try:
            metadata = json.loads(raw_metadata) if raw_metadata else {}
        except json.JSONDecodeError:
            logger.warning("⚠️ Unreadable metadata column for work %s", row["id"])
            metadata = {}
        return Work(
            id=str(row["id"]),
            path=str(row["path"] or ""),
            enabled=bool(row["enabled"]),
            title=row["title"],
            host_id=row["host_id"],
            identifiers=[
                WorkIdentifier(type=str(r["type"]), identifier=str(r["identifier"]))
                for r in identifier_rows
            ],
            metadata=metadata,
        )


__all__ = ["WorkRecord", "SqliteWorkRepository"]
