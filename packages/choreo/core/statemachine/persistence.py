"""Key-value persistence for state machine snapshots.

Stores deal in JSON-compatible values. Failures surface as exceptions here;
the state machine catches and logs them.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class KeyValueStore(Protocol):
    """Minimal synchronous key-value store."""

    def get(self, key: str) -> Any | None:
        """Stored value, or None when absent."""
        ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryStore:
    """Process-local store; values are deep-copied in and out."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


def sanitize_key(key: str) -> str:
    """Make a key safe to use as a file name."""
    cleaned = _UNSAFE_CHARS.sub("_", key).strip("._")
    return cleaned or "_"


class JsonFileStore:
    """One JSON file per key under a root directory.

    Writes go to a temporary file first and are moved into place, so a
    reader never sees a half-written snapshot.

    Args:
        root: Directory holding the files (created on first write)
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        return self.root / f"{sanitize_key(key)}.json"

    def get(self, key: str) -> Any | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        with path.open(encoding="utf-8") as f:
            return json.load(f)

    def set(self, key: str, value: Any) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(value, indent=2, sort_keys=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path_for(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Stored '{key}' in {self.path_for(key)}")

    def delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)
