"""Batch orchestration, review actions, progress and summary rendering."""

from .orchestrator import (
    BatchRun,
    ProcessingError,
    RollbackError,
    SaveFailedError,
    new_upload_id,
    process_file,
    rollback_batch,
)
from .progress import ProgressSink, ProgressTracker
from .review import ReviewError
from .summary import render_summary_line

__all__ = [
    "BatchRun",
    "ProcessingError",
    "ProgressSink",
    "ProgressTracker",
    "ReviewError",
    "RollbackError",
    "SaveFailedError",
    "new_upload_id",
    "process_file",
    "render_summary_line",
    "rollback_batch",
]
