"""Client-side credential storage.

The store plays the part of the browser cookie jar: a flat mapping of names
to string values that outlives the process. The transport sends every entry
as a cookie; the session manager is the only reader and writer of the
identity keys.
"""

from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple

from loguru import logger

PLAYER_ID_KEY = "player_id"
PLAYER_SECRET_KEY = "player_secret"

# the file holds the player secret
FILE_MODE = 0o600


class CredentialStore(ABC):
    """Persistent name/value storage with no expiry of its own."""

    @abstractmethod
    def get(self, name: str) -> Optional[str]:
        """Return the stored value or ``None``."""

    @abstractmethod
    def set(self, name: str, value: str) -> None:
        """Store ``value`` under ``name``, replacing any previous value."""

    @abstractmethod
    def delete(self, name: str) -> None:
        """Remove ``name`` if present."""

    @abstractmethod
    def items(self) -> Iterator[Tuple[str, str]]:
        """Iterate over all stored entries."""


class InMemoryCredentialStore(CredentialStore):
    """Store that lives as long as the object does."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, name: str) -> Optional[str]:
        return self._values.get(name)

    def set(self, name: str, value: str) -> None:
        self._values[name] = value

    def delete(self, name: str) -> None:
        self._values.pop(name, None)

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(list(self._values.items()))


class FileCredentialStore(CredentialStore):
    """JSON file backed store, rewritten atomically on every change."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._values: Dict[str, str] = {}
        self._loaded = False

    def load(self) -> None:
        """Load entries from disk. A missing or unreadable file yields an empty store."""
        self._loaded = True
        self._values = {}
        if not self.path.exists():
            return
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as exc:
            logger.warning(f"Ignoring unreadable credential file {self.path}: {exc}")
            return
        if not isinstance(data, dict):
            logger.warning(f"Ignoring credential file {self.path}: expected a JSON object")
            return
        self._values = {str(k): str(v) for k, v in data.items() if v is not None}

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.unlink(missing_ok=True)
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_EXCL, FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(self._values, handle, indent=2, sort_keys=True)
        tmp.replace(self.path)

    def get(self, name: str) -> Optional[str]:
        self._ensure_loaded()
        return self._values.get(name)

    def set(self, name: str, value: str) -> None:
        self._ensure_loaded()
        self._values[name] = value
        self._flush()

    def delete(self, name: str) -> None:
        self._ensure_loaded()
        if self._values.pop(name, None) is not None:
            self._flush()

    def items(self) -> Iterator[Tuple[str, str]]:
        self._ensure_loaded()
        return iter(list(self._values.items()))
