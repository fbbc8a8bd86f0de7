"""Domain models for the bulk reconciliation tool."""

from .config_models import DatabaseConfig, GeocodingConfig, ReconcileConfig, RegionBound, Thresholds
from .directory_record import DirectoryRecord
from .geocode import AddressType, GeocodeResult
from .processing_result import BatchOutcome, BatchSummary, RowOutcome, RunStats, UploadBatch
from .row_data import ParsedRow, RawRow, RowFields
from .staging_item import StagingItem, StagingStatus
from .validation import Action, LogEntry, Severity, ValidationResult

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "GeocodingConfig",
    "ReconcileConfig",
    "RegionBound",
    "Thresholds",
    # Row / decision models
    "RawRow",
    "RowFields",
    "ParsedRow",
    "AddressType",
    "GeocodeResult",
    "Action",
    "Severity",
    "LogEntry",
    "ValidationResult",
    # Persistence / batch models
    "DirectoryRecord",
    "StagingItem",
    "StagingStatus",
    "UploadBatch",
    "RunStats",
    "RowOutcome",
    "BatchOutcome",
    "BatchSummary",
]
