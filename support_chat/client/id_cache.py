"""Persisted conversation id for the chat widget (the localStorage analogue)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional, Protocol

STORAGE_KEY = "conversationId"


class IdCache(Protocol):
    def load(self) -> Optional[int]:
        ...

    def save(self, conversation_id: int) -> None:
        ...

    def clear(self) -> None:
        ...


class MemoryIdCache:
    """Keeps the id for the lifetime of the process only."""

    def __init__(self, conversation_id: Optional[int] = None):
        self._value = conversation_id

    def load(self) -> Optional[int]:
        return self._value

    def save(self, conversation_id: int) -> None:
        self._value = conversation_id

    def clear(self) -> None:
        self._value = None


class FileIdCache:
    """Stores the id as a small JSON document on disk."""

    def __init__(self, path: str | Path):
        self._path = Path(path).expanduser()

    def load(self) -> Optional[int]:
        """Return the cached id, or None when missing or unreadable."""

        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        value = data.get(STORAGE_KEY) if isinstance(data, dict) else None
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            return value
        return None

    def save(self, conversation_id: int) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps({STORAGE_KEY: conversation_id}), encoding="utf-8")

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
