"""Record stores: the RecordStore protocol plus in-memory and PostgreSQL implementations."""

from .base import NAMED_COLLECTIONS, RecordStore, StorageError, TagRecord, UniqueViolationError
from .memory import InMemoryRecordStore

__all__ = [
    "NAMED_COLLECTIONS",
    "RecordStore",
    "StorageError",
    "TagRecord",
    "UniqueViolationError",
    "InMemoryRecordStore",
]
