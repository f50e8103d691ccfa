"""
JSON File Storage Implementation

DESIGN DECISION: One JSON file per key, inside a single data directory.
1. Users can inspect or back up their data with any editor
2. No database setup required
3. A corrupt slice only loses that slice

Writes go to a temporary file first and are moved into place, so a crash
mid-write never leaves a half-written slice behind.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from ecobudget.config import get_settings
from ecobudget.services.storage.interface import (
    CorruptDataError,
    KeyValueStoreInterface,
    StorageError,
    StorageUnavailableError,
)


class JsonFileStore(KeyValueStoreInterface):
    """Key-value store backed by `<data_dir>/<key>.json` files."""

    def __init__(self, data_dir: Optional[str] = None):
        self._dir = Path(data_dir or get_settings().storage.data_dir)

    @property
    def data_dir(self) -> Path:
        return self._dir

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self._dir / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        path = self._path(key)
        if not path.exists():
            return default

        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageUnavailableError(f"Could not read {path}: {e}")

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptDataError(f"Stored value for {key} is not valid JSON: {e}")

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        try:
            payload = json.dumps(value, indent=2)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value for {key} is not JSON-serializable: {e}")

        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageUnavailableError(f"Could not write {path}: {e}")

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageUnavailableError(f"Could not delete {path}: {e}")

    def keys(self) -> list[str]:
        if not self._dir.exists():
            return []
        return sorted(p.stem for p in self._dir.glob("*.json"))
