"""Storage module."""

from storage.base import (
    DuplicateRecordError,
    Err,
    Ok,
    ProfileStore,
    StoreResult,
    StoreUnavailableError,
)
from storage.memory import InMemoryProfileStore
from storage.sqlite import SQLiteProfileStore

__all__ = [
    "ProfileStore",
    "InMemoryProfileStore",
    "SQLiteProfileStore",
    "StoreUnavailableError",
    "DuplicateRecordError",
    "Ok",
    "Err",
    "StoreResult",
]
