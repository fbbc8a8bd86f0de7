from __future__ import annotations

import sys
from collections import Counter
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from bulk_reconcile.models.processing_result import RowOutcome

"""Progress reporting.

BatchRun reports every finished row to a ProgressSink (`on_row_processed`).
ProgressTracker is the CLI sink: a single tqdm bar (TTY only, disabled in CI to
avoid ANSI control sequence spam) with the running outcome counts as postfix.
"""

__all__ = [
    "ProgressSink",
    "ProgressTracker",
    "is_tty_enabled",
]

# postfix 에 표시하는 짧은 라벨
_POSTFIX_LABELS = {
    RowOutcome.SUCCESS: "ok",
    RowOutcome.FIXED: "fixed",
    RowOutcome.REVIEW: "review",
    RowOutcome.REJECT: "reject",
    RowOutcome.ERROR: "error",
    RowOutcome.DUPLICATE: "dup",
}


def is_tty_enabled() -> bool:
    """True if stdout is a TTY and progress should be displayed."""
    return sys.stdout.isatty()


class ProgressSink:
    """Receives one call per row, in file order. Default implementation ignores it."""

    def on_row_processed(self, index: int, outcome: RowOutcome) -> None:
        pass


class ProgressTracker(ProgressSink):
    """tqdm-backed progress sink for row processing."""

    def __init__(self, total_rows: int, *, description: str = "Reconciling rows") -> None:
        self.total_rows = total_rows
        self.description = description
        self.processed = 0
        self.counts: Counter[RowOutcome] = Counter()

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                disable=False,
                leave=True,
                position=0,
                ncols=100,
                ascii=True,
            )
        else:
            self.pbar = None

    def on_row_processed(self, index: int, outcome: RowOutcome) -> None:
        self.processed += 1
        self.counts[outcome] += 1
        if self.enabled and self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_postfix(
                {label: self.counts[o] for o, label in _POSTFIX_LABELS.items() if self.counts[o]},
                refresh=False,
            )

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
