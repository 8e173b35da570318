"""Key-value stores backing the local chat cache.

Values are JSON-compatible (dicts, lists, strings, numbers, None).
set_many() stores several keys with a single write, and may be called
from a worker thread.
"""

import json
import logging
import os
import tempfile
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Minimal persistence interface used by the history reconciler."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def set_many(self, items: Mapping[str, Any]) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryStore:
    """Dictionary-backed store; contents live as long as the instance."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def set_many(self, items: Mapping[str, Any]) -> None:
        self._data.update(items)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStore:
    """Store persisted as a single JSON document on disk.

    Every write rewrites the whole file through a temporary file and an
    atomic rename. Two processes writing the same file race; the last
    write wins. Within one process, writes are serialized by a lock.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._data = self._read()
        self._lock = threading.Lock()

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable cache file {self._path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring cache file {self._path}: not a JSON object")
            return {}
        return data

    def _write(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> Any | None:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})

    def set_many(self, items: Mapping[str, Any]) -> None:
        with self._lock:
            self._data.update(items)
            self._write()

    def delete(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._write()
