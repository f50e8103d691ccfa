"""Services package."""

from ecobudget.services.storage import (
    CorruptDataError,
    InMemoryStore,
    JsonFileStore,
    KeyValueStoreInterface,
    StorageError,
    StorageKey,
    StorageUnavailableError,
    create_store,
)

__all__ = [
    # Storage services
    "CorruptDataError",
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStoreInterface",
    "StorageError",
    "StorageKey",
    "StorageUnavailableError",
    "create_store",
]
