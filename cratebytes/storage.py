"""Key-value persistence used to remember the player between runs."""
from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, Protocol, Union

Value = Union[str, int]


class KeyValueStore(Protocol):
    def get(self, key: str, default: Value) -> Value:
        """Return the stored value or ``default``."""

    def set(self, key: str, value: Value) -> None:
        """Store ``value`` under ``key``."""

    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""

    def save(self) -> None:
        """Flush pending writes."""


@dataclass
class InMemoryStore:
    values: Dict[str, Value] = field(default_factory=dict)

    def get(self, key: str, default: Value) -> Value:
        return self.values.get(key, default)

    def set(self, key: str, value: Value) -> None:
        self.values[key] = value

    def delete(self, key: str) -> None:
        self.values.pop(key, None)

    def save(self) -> None:
        return None


@dataclass
class JsonFileStore:
    """Flat JSON object on disk. Writes are buffered until ``save()``."""

    path: str

    def __post_init__(self) -> None:
        self._values: Dict[str, Any] = self._read()

    def _read(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, encoding="utf-8") as handle:
            try:
                payload = json.load(handle)
            except ValueError:
                return {}
        return payload if isinstance(payload, dict) else {}

    def get(self, key: str, default: Value) -> Value:
        return self._values.get(key, default)

    def set(self, key: str, value: Value) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def save(self) -> None:
        directory = os.path.dirname(self.path) or "."
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".prefs-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(self._values, handle, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
