"""Local snapshot store.

A write-through cache of the last settled item list. It is read once at
session start for a fallback display and never treated as authoritative.
"""

import json
import os
from pathlib import Path
from typing import Optional, Protocol

import structlog

from .errors import SnapshotError
from .models import CartItem

logger = structlog.get_logger()

CART_KEY = "cart_items"


class SnapshotStore(Protocol):
    """Key/value storage for serialized snapshots."""

    def read(self, key: str) -> Optional[str]: ...

    def write(self, key: str, value: str) -> None: ...


class MemorySnapshotStore:
    """Snapshot store kept in process memory."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def read(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def write(self, key: str, value: str) -> None:
        self._entries[key] = value


class JsonFileSnapshotStore:
    """Snapshot store backed by one JSON document on disk."""

    def __init__(self, path: str | os.PathLike):
        self._path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            entries = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise SnapshotError(f"cannot read {self._path}", e) from e
        if not isinstance(entries, dict):
            raise SnapshotError(f"cannot read {self._path}: not a JSON object")
        return entries

    def read(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def write(self, key: str, value: str) -> None:
        entries = self._load()
        entries[key] = value
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(entries), encoding="utf-8")
            os.replace(tmp, self._path)
        except OSError as e:
            raise SnapshotError(f"cannot write {self._path}", e) from e


def dump_items(items: tuple[CartItem, ...]) -> str:
    return json.dumps([item.to_dict() for item in items])


def load_items(raw: Optional[str]) -> tuple[CartItem, ...]:
    """Decode a stored item list. Unreadable snapshots yield an empty cart."""
    if not raw:
        return ()
    try:
        return tuple(CartItem.from_dict(entry) for entry in json.loads(raw))
    except (ValueError, KeyError, TypeError, ArithmeticError) as e:
        logger.warning("snapshot_discarded", error=str(e))
        return ()
