from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import psycopg2
from psycopg2.extras import execute_values

"""Batched upsert / delete helpers on a psycopg2 cursor.

Upserts use psycopg2.extras.execute_values with `ON CONFLICT (<key>) DO UPDATE`;
`RETURNING (xmax = 0)` tells freshly inserted rows apart from updated ones.
Transaction boundaries (COMMIT / ROLLBACK) belong to the caller.
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "batch_upsert",
    "batch_delete",
]


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Metrics data for a single batch write."""
    batch_size: int  # Number of rows in this batch
    elapsed_seconds: float  # Time spent on the statement
    start_time: float  # Start timestamp (time.time())
    end_time: float  # End timestamp (time.time())


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    updated_rows: int = 0


def _emit(callback: Callable[[BatchMetrics], None] | None, size: int, start: float) -> None:
    if callback is None:
        return
    end = time.time()
    callback(BatchMetrics(batch_size=size, elapsed_seconds=end - start, start_time=start, end_time=end))


def batch_upsert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    conflict_column: str = "id",
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """INSERT ... ON CONFLICT DO UPDATE for every non-key column.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: 대상 테이블명 (코드 상수만 전달)
    columns: 삽입 열 (conflict_column 포함)
    rows: 행 시퀀스
    page_size: execute_values page_size
    metrics_callback: Optional callback receiving BatchMetrics. Not invoked for empty input.
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0)

    cols_sql = ",".join(f'"{c}"' for c in columns)
    updates = ",".join(f'"{c}" = EXCLUDED."{c}"' for c in columns if c != conflict_column)
    sql = f'INSERT INTO {table} ({cols_sql}) VALUES %s ON CONFLICT ("{conflict_column}") '
    sql += f"DO UPDATE SET {updates}" if updates else "DO NOTHING"
    sql += " RETURNING (xmax = 0)"

    start_time = time.time()
    try:
        returned = execute_values(cursor, sql, rows_list, page_size=page_size, fetch=True)
    except psycopg2.Error as e:
        raise BatchInsertError(str(e)) from e
    finally:
        _emit(metrics_callback, len(rows_list), start_time)

    flags = [bool(r[0]) for r in (returned or [])]
    inserted = sum(flags)
    return InsertResult(inserted_rows=inserted, updated_rows=len(flags) - inserted)


def batch_delete(
    cursor: Any,
    table: str,
    ids: Iterable[str],
    key_column: str = "id",
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> int:
    """DELETE rows whose key is in ids. Missing ids are not an error; returns rows deleted."""
    id_list = list(ids)
    if not id_list:
        return 0
    start_time = time.time()
    try:
        cursor.execute(f'DELETE FROM {table} WHERE "{key_column}" = ANY(%s)', (id_list,))
    except psycopg2.Error as e:
        raise BatchInsertError(str(e)) from e
    finally:
        _emit(metrics_callback, len(id_list), start_time)
    return max(cursor.rowcount, 0)
