"""Key/value store capability for secure settings and system properties.

The importers never talk to a device directly. They receive a store with a
string get/set API, which keeps them testable without a real property
store. Each store owns a lock so that writers sharing a storage scope can
serialize multi-key updates.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Mapping

from spoof.errors import StoreError


class KeyValueStore:
    """Base class for string key/value stores.

    Subclasses implement get() and set(). Setting a value of None removes
    the key. set_many() writes a batch; `atomic` tells callers whether the
    batch is published as a single swap.
    """

    atomic: bool = False

    def __init__(self) -> None:
        self.lock: threading.RLock = threading.RLock()

    def get(self, key: str) -> str | None:
        raise NotImplementedError

    def set(self, key: str, value: str | None) -> None:
        raise NotImplementedError

    def set_many(self, items: Mapping[str, str | None]) -> None:
        """Write several keys. Not atomic unless a subclass says so."""
        with self.lock:
            for key, value in items.items():
                self.set(key, value)


class MemoryStore(KeyValueStore):
    """Process-local store backed by a dict."""

    atomic = True

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        super().__init__()
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str | None) -> None:
        with self.lock:
            if value is None:
                self.data.pop(key, None)
            else:
                self.data[key] = value

    def set_many(self, items: Mapping[str, str | None]) -> None:
        with self.lock:
            updated = dict(self.data)
            for key, value in items.items():
                if value is None:
                    updated.pop(key, None)
                else:
                    updated[key] = value
            self.data = updated


class JsonFileStore(KeyValueStore):
    """Store persisted as a flat JSON object on disk.

    Every write rewrites the file through a temporary file and os.replace(),
    so a batch from set_many() lands all at once or not at all.

    Args:
        path: JSON file to read and write. Created on first write.
    """

    atomic = True

    def __init__(self, path: Path) -> None:
        super().__init__()
        self.path: Path = path

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str | None) -> None:
        self.set_many({key: value})

    def set_many(self, items: Mapping[str, str | None]) -> None:
        with self.lock:
            data = self._load()
            for key, value in items.items():
                if value is None:
                    data.pop(key, None)
                else:
                    data[key] = value
            self._write(data)

    def items(self) -> dict[str, str]:
        return self._load()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StoreError(f"Cannot read store file {self.path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise StoreError(f"Store file {self.path} does not hold a JSON object")
        return {str(k): str(v) for k, v in raw.items()}

    def _write(self, data: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", dir=self.path.parent
            )
        except OSError as exc:
            raise StoreError(f"Cannot write store file {self.path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except (OSError, UnicodeError, ValueError) as exc:
            # Lone surrogates from a decoded profile cannot be encoded as UTF-8
            os.unlink(tmp_name)
            raise StoreError(f"Cannot write store file {self.path}: {exc}") from exc
