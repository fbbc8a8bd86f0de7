from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

import pandas as pd

from bulk_reconcile.models.directory_record import DirectoryRecord
from bulk_reconcile.models.processing_result import OperationLogEntry
from bulk_reconcile.models.row_data import RawRow

from .columns import ACCEPTED_HEADERS

"""CSV exports (UTF-8 with BOM so spreadsheet tools open Korean text correctly).

- accepted: ACCEPTED_HEADERS, one row per immediately accepted record
- errors: original input header + 오류사유, one row per rejected/failed record
- log: 시간, 유형, 메시지 for the full operation log
"""

__all__ = [
    "ERROR_REASON_HEADER",
    "LOG_HEADERS",
    "export_filename",
    "write_accepted_csv",
    "write_error_csv",
    "write_log_csv",
]

ERROR_REASON_HEADER = "오류사유"
LOG_HEADERS: tuple[str, ...] = ("시간", "유형", "메시지")
EXPORT_ENCODING = "utf-8-sig"


def export_filename(kind: str, region_key: str, when: datetime | None = None) -> str:
    """`Cleaned_Seoul_20250101-120000.csv` style names (kind: Cleaned|Errors|Log)."""
    stamp = (when or datetime.now(UTC)).strftime("%Y%m%d-%H%M%S")
    return f"{kind}_{region_key}_{stamp}.csv"


def _write(df: pd.DataFrame, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False, encoding=EXPORT_ENCODING)
    return path


def write_accepted_csv(records: Sequence[DirectoryRecord], path: Path) -> Path:
    rows = [
        [r.type, r.name, r.address, r.floor, r.male_stalls, r.female_stalls, r.opening_hours, r.lat, r.lng]
        for r in records
    ]
    df = pd.DataFrame(rows, columns=list(ACCEPTED_HEADERS))
    return _write(df, path)


def write_error_csv(header: Sequence[str], failures: Sequence[tuple[RawRow, str]], path: Path) -> Path:
    """Original cells (padded/truncated to the header width) plus the failure reason."""
    width = len(header)
    rows = []
    for raw, reason in failures:
        cells = list(raw[:width]) + [""] * max(0, width - len(raw))
        rows.append(cells + [reason])
    df = pd.DataFrame(rows, columns=[*header, ERROR_REASON_HEADER], dtype=object)
    return _write(df, path)


def write_log_csv(entries: Sequence[OperationLogEntry], path: Path) -> Path:
    rows = [[e.timestamp, e.severity.value, e.message] for e in entries]
    df = pd.DataFrame(rows, columns=list(LOG_HEADERS))
    return _write(df, path)
