"""
Storage Services Package

Provides the abstract key-value interface and concrete implementations.
The JSON-file backend is the default; the in-memory one backs tests.
"""

from typing import Optional

from ecobudget.config import StorageSettings, get_settings
from ecobudget.services.storage.interface import (
    CorruptDataError,
    KeyValueStoreInterface,
    StorageError,
    StorageKey,
    StorageUnavailableError,
)
from ecobudget.services.storage.json_file import JsonFileStore
from ecobudget.services.storage.memory import InMemoryStore


def create_store(settings: Optional[StorageSettings] = None) -> KeyValueStoreInterface:
    """Build the configured store backend."""
    settings = settings or get_settings().storage
    if settings.backend == "memory":
        return InMemoryStore()
    return JsonFileStore(settings.data_dir)


__all__ = [
    # Interfaces
    "KeyValueStoreInterface",
    "StorageKey",
    # Exceptions
    "CorruptDataError",
    "StorageError",
    "StorageUnavailableError",
    # Implementations
    "InMemoryStore",
    "JsonFileStore",
    "create_store",
]
