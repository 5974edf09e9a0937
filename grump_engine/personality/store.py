"""Key-value persistence for progression state.

The engine only needs ``get(key) -> str | None`` and ``put(key, value)``.
JsonFileStore keeps every key in one JSON document and rewrites it
atomically (tempfile + os.replace).
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

log = logging.getLogger(__name__)

DEFAULT_STORE_PATH = Path("~/.config/grump/store.json").expanduser()


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...


class MemoryStore:
    """In-process store, used by tests and when persistence is disabled."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})
        self.puts = 0

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def put(self, key: str, value: str) -> None:
        self.data[key] = value
        self.puts += 1


class JsonFileStore:
    def __init__(self, path: Path | str = DEFAULT_STORE_PATH) -> None:
        self.path = Path(path).expanduser()

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except Exception as e:
            log.warning("store: failed to read %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            log.warning("store: %s is not a JSON object, ignoring", self.path)
            return {}
        return data

    def get(self, key: str) -> str | None:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def put(self, key: str, value: str) -> None:
        existing = self._read_all()
        existing[key] = value

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".store_")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(existing, f, indent=2)
            os.replace(tmp, self.path)
        except Exception:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise
