from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import Any

import psycopg2

from bulk_reconcile.models.directory_record import RECORD_COLUMNS, DirectoryRecord
from bulk_reconcile.models.processing_result import UploadBatch
from bulk_reconcile.models.staging_item import EDITABLE_FIELDS, STAGING_COLUMNS, StagingItem, StagingStatus
from bulk_reconcile.models.validation import LogEntry, Severity

from .batch_insert import BatchInsertError, BatchMetrics, batch_delete, batch_upsert

"""Directory store: where accepted records, staging items and batch metadata live.

Tables (PostgreSQL):
- toilets         live directory rows (DirectoryRecord)
- toilets_bulk    staging items awaiting review (StagingItem)
- upload_history  one row per processed file (UploadBatch)

Every write method is one statement + COMMIT, so a caller writing in chunks gets
exactly the chunks that returned without raising.
"""

__all__ = [
    "InsertStats",
    "DirectoryStore",
    "InMemoryDirectoryStore",
    "PostgresDirectoryStore",
    "RECORDS_TABLE",
    "STAGING_TABLE",
    "HISTORY_TABLE",
]

logger = logging.getLogger(__name__)

RECORDS_TABLE = "toilets"
STAGING_TABLE = "toilets_bulk"
HISTORY_TABLE = "upload_history"

HISTORY_COLUMNS: tuple[str, ...] = (
    "id", "file_name", "uploaded_at", "total_count", "success_count", "review_count",
    "reject_count", "duplicate_count", "fixed_count", "uploaded_record_ids", "logs", "voided",
)

# update_staging_item 에서 변경 가능한 열
_UPDATABLE_STAGING = EDITABLE_FIELDS | {"status", "reason"}


@dataclass(frozen=True)
class InsertStats:
    inserted: int = 0
    updated: int = 0


class DirectoryStore:
    """Persistence interface consumed by the orchestrator and the review service."""

    def bulk_insert_records(self, records: Sequence[DirectoryRecord]) -> InsertStats:
        raise NotImplementedError

    def bulk_delete_records(self, ids: Sequence[str]) -> int:
        raise NotImplementedError

    def persist_staging_items(self, items: Sequence[StagingItem]) -> None:
        raise NotImplementedError

    def persist_batch_metadata(self, batch: UploadBatch) -> None:
        raise NotImplementedError

    def get_batch(self, upload_id: str) -> UploadBatch | None:
        raise NotImplementedError

    def void_batch(self, upload_id: str) -> None:
        raise NotImplementedError

    def get_staging_item(self, item_id: str) -> StagingItem | None:
        raise NotImplementedError

    def update_staging_item(self, item_id: str, **fields: Any) -> StagingItem:
        raise NotImplementedError

    def delete_staging_item(self, item_id: str) -> bool:
        raise NotImplementedError

    def list_staging_items(
        self, upload_id: str | None = None, status: StagingStatus | None = None
    ) -> list[StagingItem]:
        raise NotImplementedError


def _check_staging_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - _UPDATABLE_STAGING
    if unknown:
        raise ValueError(f"staging fields not updatable: {sorted(unknown)}")


class InMemoryDirectoryStore(DirectoryStore):
    """Dict-backed store for mock mode (DISABLE_DB_CONNECT=1) and tests."""

    def __init__(self) -> None:
        self.records: dict[str, DirectoryRecord] = {}
        self.staging: dict[str, StagingItem] = {}
        self.batches: dict[str, UploadBatch] = {}
        self.write_calls = 0

    def bulk_insert_records(self, records: Sequence[DirectoryRecord]) -> InsertStats:
        self.write_calls += 1
        inserted = updated = 0
        for rec in records:
            if rec.id in self.records:
                updated += 1
            else:
                inserted += 1
            self.records[rec.id] = rec
        return InsertStats(inserted=inserted, updated=updated)

    def bulk_delete_records(self, ids: Sequence[str]) -> int:
        self.write_calls += 1
        deleted = 0
        for rid in ids:
            if self.records.pop(rid, None) is not None:
                deleted += 1
        return deleted

    def persist_staging_items(self, items: Sequence[StagingItem]) -> None:
        self.write_calls += 1
        for item in items:
            self.staging[item.id] = item

    def persist_batch_metadata(self, batch: UploadBatch) -> None:
        self.write_calls += 1
        self.batches[batch.id] = batch

    def get_batch(self, upload_id: str) -> UploadBatch | None:
        return self.batches.get(upload_id)

    def void_batch(self, upload_id: str) -> None:
        batch = self.batches.get(upload_id)
        if batch is not None:
            self.batches[upload_id] = replace(batch, voided=True)

    def get_staging_item(self, item_id: str) -> StagingItem | None:
        return self.staging.get(item_id)

    def update_staging_item(self, item_id: str, **fields: Any) -> StagingItem:
        _check_staging_fields(fields)
        item = self.staging.get(item_id)
        if item is None:
            raise KeyError(item_id)
        updated = item.updated(**fields)
        self.staging[item_id] = updated
        return updated

    def delete_staging_item(self, item_id: str) -> bool:
        return self.staging.pop(item_id, None) is not None

    def list_staging_items(
        self, upload_id: str | None = None, status: StagingStatus | None = None
    ) -> list[StagingItem]:
        return [
            item for item in self.staging.values()
            if (upload_id is None or item.upload_id == upload_id)
            and (status is None or item.status is status)
        ]


def _staging_from_row(row: Sequence[Any]) -> StagingItem:
    data = dict(zip(STAGING_COLUMNS, row, strict=False))
    raw_logs = data.get("logs") or []
    if isinstance(raw_logs, str):
        raw_logs = json.loads(raw_logs)
    logs = tuple(LogEntry(e.get("message", ""), Severity(e.get("type", "info"))) for e in raw_logs)
    return StagingItem(
        id=data["id"],
        upload_id=data["upload_id"],
        name_raw=data["name_raw"] or "",
        address_raw=data["address_raw"] or "",
        lat_raw=float(data["lat_raw"] or 0),
        lng_raw=float(data["lng_raw"] or 0),
        name=data["name"] or "",
        address=data["address"] or "",
        lat=float(data["lat"] or 0),
        lng=float(data["lng"] or 0),
        floor=int(data["floor"] if data["floor"] is not None else 1),
        status=StagingStatus(data["status"]),
        reason=data["reason"] or "",
        logs=logs,
    )


def _batch_to_row(batch: UploadBatch) -> tuple[Any, ...]:
    return (
        batch.id, batch.file_name, batch.uploaded_at, batch.total_count, batch.success_count,
        batch.review_count, batch.reject_count, batch.duplicate_count, batch.fixed_count,
        list(batch.uploaded_record_ids), json.dumps(list(batch.logs), ensure_ascii=False), batch.voided,
    )


def _batch_from_row(row: Sequence[Any]) -> UploadBatch:
    data = dict(zip(HISTORY_COLUMNS, row, strict=False))
    logs = data.get("logs") or []
    if isinstance(logs, str):
        logs = json.loads(logs)
    uploaded_at = data["uploaded_at"]
    if hasattr(uploaded_at, "isoformat"):
        uploaded_at = uploaded_at.isoformat()
    return UploadBatch(
        id=data["id"],
        file_name=data["file_name"],
        uploaded_at=str(uploaded_at),
        total_count=data["total_count"],
        success_count=data["success_count"],
        review_count=data["review_count"],
        reject_count=data["reject_count"],
        duplicate_count=data["duplicate_count"] or 0,
        fixed_count=data["fixed_count"] or 0,
        uploaded_record_ids=tuple(data["uploaded_record_ids"] or ()),
        logs=tuple(logs),
        voided=bool(data["voided"]),
    )


class PostgresDirectoryStore(DirectoryStore):
    """psycopg2-backed store. Commits after every write statement."""

    def __init__(
        self,
        cursor: Any,
        page_size: int = 1000,
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> None:
        self.cursor = cursor
        self.page_size = page_size
        self.metrics_callback = metrics_callback

    def _commit(self) -> None:
        self.cursor.execute("COMMIT")

    def _rollback(self) -> None:
        try:
            self.cursor.execute("ROLLBACK")
        except psycopg2.Error:  # pragma: no cover
            logger.debug("rollback failed", exc_info=True)

    def _write(self, fn: Callable[[], Any]) -> Any:
        try:
            result = fn()
            self._commit()
        except BatchInsertError:
            self._rollback()
            raise
        except psycopg2.Error as e:
            self._rollback()
            raise BatchInsertError(str(e)) from e
        return result

    def _query(self, sql: str, params: tuple[Any, ...]) -> list[tuple[Any, ...]]:
        try:
            self.cursor.execute(sql, params)
            return list(self.cursor.fetchall())
        except psycopg2.Error as e:
            self._rollback()
            raise BatchInsertError(str(e)) from e

    def bulk_insert_records(self, records: Sequence[DirectoryRecord]) -> InsertStats:
        result = self._write(lambda: batch_upsert(
            self.cursor, RECORDS_TABLE, RECORD_COLUMNS, [r.to_row() for r in records],
            page_size=self.page_size, metrics_callback=self.metrics_callback,
        ))
        return InsertStats(inserted=result.inserted_rows, updated=result.updated_rows)

    def bulk_delete_records(self, ids: Sequence[str]) -> int:
        return self._write(lambda: batch_delete(
            self.cursor, RECORDS_TABLE, ids, metrics_callback=self.metrics_callback,
        ))

    def persist_staging_items(self, items: Sequence[StagingItem]) -> None:
        self._write(lambda: batch_upsert(
            self.cursor, STAGING_TABLE, STAGING_COLUMNS, [i.to_row() for i in items],
            page_size=self.page_size, metrics_callback=self.metrics_callback,
        ))

    def persist_batch_metadata(self, batch: UploadBatch) -> None:
        self._write(lambda: batch_upsert(self.cursor, HISTORY_TABLE, HISTORY_COLUMNS, [_batch_to_row(batch)]))

    def get_batch(self, upload_id: str) -> UploadBatch | None:
        cols = ",".join(f'"{c}"' for c in HISTORY_COLUMNS)
        rows = self._query(f"SELECT {cols} FROM {HISTORY_TABLE} WHERE id = %s", (upload_id,))
        return _batch_from_row(rows[0]) if rows else None

    def void_batch(self, upload_id: str) -> None:
        self._write(lambda: self.cursor.execute(
            f"UPDATE {HISTORY_TABLE} SET voided = TRUE WHERE id = %s", (upload_id,)
        ))

    def get_staging_item(self, item_id: str) -> StagingItem | None:
        cols = ",".join(f'"{c}"' for c in STAGING_COLUMNS)
        rows = self._query(f"SELECT {cols} FROM {STAGING_TABLE} WHERE id = %s", (item_id,))
        return _staging_from_row(rows[0]) if rows else None

    def update_staging_item(self, item_id: str, **fields: Any) -> StagingItem:
        _check_staging_fields(fields)
        values = [v.value if isinstance(v, StagingStatus) else v for v in fields.values()]
        assignments = ",".join(f'"{k}" = %s' for k in fields)
        self._write(lambda: self.cursor.execute(
            f"UPDATE {STAGING_TABLE} SET {assignments} WHERE id = %s", (*values, item_id)
        ))
        item = self.get_staging_item(item_id)
        if item is None:
            raise KeyError(item_id)
        return item

    def delete_staging_item(self, item_id: str) -> bool:
        deleted = self._write(lambda: batch_delete(self.cursor, STAGING_TABLE, [item_id]))
        return deleted > 0

    def list_staging_items(
        self, upload_id: str | None = None, status: StagingStatus | None = None
    ) -> list[StagingItem]:
        cols = ",".join(f'"{c}"' for c in STAGING_COLUMNS)
        clauses: list[str] = []
        params: list[Any] = []
        if upload_id is not None:
            clauses.append("upload_id = %s")
            params.append(upload_id)
        if status is not None:
            clauses.append("status = %s")
            params.append(status.value)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._query(f"SELECT {cols} FROM {STAGING_TABLE}{where} ORDER BY id", tuple(params))
        return [_staging_from_row(r) for r in rows]
