from __future__ import annotations

from unittest.mock import patch

from bulk_reconcile.models.processing_result import RowOutcome
from bulk_reconcile.services.progress import ProgressSink, ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


def test_base_sink_ignores_rows():
    ProgressSink().on_row_processed(0, RowOutcome.SUCCESS)


def test_tracker_creates_tqdm_bar_on_tty():
    with patch("bulk_reconcile.services.progress.is_tty_enabled", return_value=True), \
         patch("bulk_reconcile.services.progress.tqdm") as mock_tqdm:
        tracker = ProgressTracker(10, description="a.csv")
        mock_tqdm.assert_called_once_with(
            total=10, desc="a.csv", unit="row", disable=False, leave=True, position=0, ncols=100, ascii=True,
        )
        tracker.on_row_processed(0, RowOutcome.SUCCESS)
        tracker.on_row_processed(1, RowOutcome.REVIEW)
        tracker.on_row_processed(2, RowOutcome.SUCCESS)
        bar = mock_tqdm.return_value
        assert bar.update.call_count == 3
        bar.set_postfix.assert_called_with({"ok": 2, "review": 1}, refresh=False)
        tracker.close()
        bar.close.assert_called_once()


def test_tracker_without_tty_only_counts():
    with patch("bulk_reconcile.services.progress.is_tty_enabled", return_value=False), \
         patch("bulk_reconcile.services.progress.tqdm") as mock_tqdm:
        with ProgressTracker(2) as tracker:
            tracker.on_row_processed(0, RowOutcome.DUPLICATE)
        mock_tqdm.assert_not_called()
        assert tracker.processed == 1
        assert tracker.counts[RowOutcome.DUPLICATE] == 1
