from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from .validation import Severity

"""Processing result models for one reconciliation run.

UploadBatch is the persisted batch metadata (`upload_history`), RunStats the live
counters updated after every row, BatchSummary the value returned to the caller.
"""


class RowOutcome(Enum):
    """Per-row result category used for progress reporting and log filtering."""
    SUCCESS = "success"  # immediate
    FIXED = "fixed"  # 지역 재검증으로 좌표 보정됨 (action 유지)
    REVIEW = "review"
    REJECT = "reject"
    ERROR = "error"  # 행 처리 중 예외 (reject 로 집계)
    DUPLICATE = "duplicate"
    SKIPPED = "skipped"  # 이름 없는 행


class BatchOutcome(Enum):
    """Batch-level completion category (drives the CLI exit code)."""
    ALL_ACCEPTED = "all_accepted"
    PARTIAL_REVIEW = "partial_review"
    WITH_REJECTIONS = "with_rejections"
    ABORTED = "aborted"
    SAVE_FAILED = "save_failed"


@dataclass(frozen=True)
class OperationLogEntry:
    """One line of the user-facing operation log."""
    timestamp: str
    severity: Severity
    message: str
    row_index: int | None = None

    @staticmethod
    def create(message: str, severity: Severity = Severity.INFO, row_index: int | None = None) -> OperationLogEntry:
        ts = datetime.now(UTC).isoformat(timespec="seconds").replace("+00:00", "Z")
        return OperationLogEntry(timestamp=ts, severity=severity, message=message, row_index=row_index)


@dataclass
class RunStats:
    """Running counters, updated synchronously after every row."""
    total: int = 0
    processed: int = 0
    immediate: int = 0
    review: int = 0
    reject: int = 0
    duplicate: int = 0
    fixed: int = 0
    skipped: int = 0
    errors: int = 0  # reject 에 포함된 예외 건수

    def as_postfix(self) -> dict[str, int]:
        return {
            "ok": self.immediate,
            "review": self.review,
            "reject": self.reject,
            "dup": self.duplicate,
        }


@dataclass(frozen=True)
class UploadBatch:
    """Batch metadata persisted once per file-processing run.

    uploaded_record_ids only lists accepted records whose write committed.
    """
    id: str
    file_name: str
    uploaded_at: str
    total_count: int
    success_count: int
    review_count: int
    reject_count: int
    duplicate_count: int = 0
    fixed_count: int = 0
    uploaded_record_ids: tuple[str, ...] = ()
    logs: tuple[str, ...] = ()
    voided: bool = False

    @property
    def fail_count(self) -> int:
        return self.review_count + self.reject_count


@dataclass(frozen=True)
class BatchSummary:
    """Aggregated results returned by BatchRun.run()."""
    upload_id: str
    file_name: str
    region_key: str
    stats: RunStats
    outcome: BatchOutcome
    fast_path: bool
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    api_calls: int = 0
    cache_hits: int = 0
    batch: UploadBatch | None = None
    exports: dict[str, Path] = field(default_factory=dict)
    write_chunks: int = 0
    avg_chunk_seconds: float = 0.0
    p95_chunk_seconds: float = 0.0


class BatchStatsAccumulator:
    """Helper class to accumulate chunk write timing statistics."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        """Add a chunk timing measurement."""
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate chunk statistics.

        Returns:
            tuple: (total_batches, avg_batch_seconds, p95_batch_seconds)
        """
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]  # 95th percentile (19th out of 20 quantiles, 0-indexed)

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
