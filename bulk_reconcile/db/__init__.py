"""PostgreSQL persistence: batched writes, directory store and land check."""

from .batch_insert import BatchInsertError, BatchMetrics, InsertResult, batch_delete, batch_upsert
from .land_check import BoundingBoxLandChecker, LandChecker, PostgresLandChecker
from .store import DirectoryStore, InMemoryDirectoryStore, InsertStats, PostgresDirectoryStore

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "BoundingBoxLandChecker",
    "DirectoryStore",
    "InMemoryDirectoryStore",
    "InsertResult",
    "InsertStats",
    "LandChecker",
    "PostgresDirectoryStore",
    "PostgresLandChecker",
    "batch_delete",
    "batch_upsert",
]
