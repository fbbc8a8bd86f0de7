from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from bulk_reconcile.models.error_record import ErrorRecord

"""Error log buffering module.

- JSON Lines with a fixed key set (timestamp, file, row, error_type, message)
- One file per run: `logs/errors-YYYYMMDD-HHMMSS.log` (UTC), created on first flush
- Records are buffered and written in one go at the end of a run
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush writes JSON Lines.

    - flush() 호출 시 파일(없으면 생성)에 한꺼번에 추가
    - 파일 경로는 첫 접근 시 결정
    - 단일 스레드 실행 전제
    """
    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir or LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def record(self, file: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create and buffer a record stamped with the current UTC time."""
        rec = ErrorRecord.create(file, row, error_type, message)
        self._records.append(rec)
        return rec

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; returns None when nothing was buffered."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
