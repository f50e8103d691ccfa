"""
Abstract Storage Interface

DESIGN DECISION: The engine only needs a key-value store of JSON blobs.
Defining it as an abstract interface allows us to:
1. Swap the JSON-file backend for anything else later
2. Use in-memory storage for testing
3. Keep ledger logic decoupled from the storage medium

Backends raise StorageError subclasses. Deciding what a failure means
(fall back to defaults, keep in-memory state) is the caller's job.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any


class StorageKey(str, Enum):
    """
    Logical names of the persisted slices.

    The values are stable; changing one orphans existing user data.
    """
    STATS = "ecobudget_stats_v3"
    CAPSULES = "ecobudget_capsules_v2"
    TRANSACTIONS = "ecobudget_transactions_v2"
    RECURRING = "ecobudget_recurring_v2"
    CHALLENGES = "ecobudget_challenges_v2"
    CURRENCY = "ecobudget_currency_v2"
    TRANSLUCENT = "ecobudget_theme_translucent"


class KeyValueStoreInterface(ABC):
    """
    Abstract interface for the persistent key-value store.

    Values are JSON-serializable (dicts, lists, strings, numbers, bools).
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """
        Read a value.

        Args:
            key: Logical key
            default: Returned when the key is absent

        Returns:
            The decoded JSON value, or default

        Raises:
            CorruptDataError: If the stored value cannot be decoded
            StorageUnavailableError: If the backend cannot be reached
        """
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """
        Write a value, replacing any previous one.

        Raises:
            StorageError: If the value cannot be encoded or written
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove a key.

        Returns:
            True if the key existed
        """
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """List stored keys."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class CorruptDataError(StorageError):
    """Stored value exists but cannot be decoded."""
    pass


class StorageUnavailableError(StorageError):
    """Could not read from or write to the storage backend."""
    pass
