"""In-memory key-value store for tests and throwaway sessions."""

import json
from typing import Any, Optional

from ecobudget.services.storage.interface import KeyValueStoreInterface, StorageError


class InMemoryStore(KeyValueStoreInterface):
    """
    Dict-backed store.

    Values are round-tripped through JSON on write so callers get the same
    guarantees (and the same failures) as the file backend.
    """

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return json.loads(self._data[key])

    def set(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value for {key} is not JSON-serializable: {e}")

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        return sorted(self._data)

    def snapshot(self) -> dict[str, Any]:
        """Decoded copy of everything stored."""
        return {key: json.loads(raw) for key, raw in self._data.items()}
