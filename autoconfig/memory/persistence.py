"""
Snapshot persistence for the preference store.

A snapshot is a JSON-able dict ``term -> {value, weight, embedding,
lastSeen, tier}``.  Backends only move that blob in and out; they do
not interpret it.  Saving is a full overwrite after every update
(last writer wins) and is best-effort: a failed write is logged and the
in-memory state stays authoritative.
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Root directory for persisted preference state.
MEMORY_DATA_DIR = Path("memory_data")
DEFAULT_STATE_FILE = MEMORY_DATA_DIR / "autoconfig.json"

Snapshot = Dict[str, Any]


class StateBackend:
    """Interface for snapshot storage."""

    def load_state(self) -> Optional[Snapshot]:
        """Return the last saved snapshot, or ``None`` if there is none."""
        raise NotImplementedError

    def save_state(self, snapshot: Snapshot) -> None:
        raise NotImplementedError


class InMemoryBackend(StateBackend):
    """Keeps a private copy of the last snapshot; nothing touches disk."""

    def __init__(self, snapshot: Optional[Snapshot] = None):
        self._snapshot = copy.deepcopy(snapshot) if snapshot is not None else None
        self.save_count = 0

    def load_state(self) -> Optional[Snapshot]:
        return copy.deepcopy(self._snapshot)

    def save_state(self, snapshot: Snapshot) -> None:
        self._snapshot = copy.deepcopy(snapshot)
        self.save_count += 1


class JsonFileBackend(StateBackend):
    """
    One JSON document on disk.

    Usage::

        backend = JsonFileBackend("memory_data/autoconfig.json")
        store = PreferenceStore(lookup, backend=backend)
    """

    def __init__(self, path: Path | str = DEFAULT_STATE_FILE):
        self.path = Path(path)

    def load_state(self) -> Optional[Snapshot]:
        if not self.path.exists():
            return None
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
            logger.warning("Discarding unreadable preference state %s: %s", self.path, exc)
            return None

    def save_state(self, snapshot: Snapshot) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(snapshot, ensure_ascii=False),
                encoding="utf-8",
            )
        except OSError as exc:
            logger.warning("Could not save preference state to %s: %s", self.path, exc)
