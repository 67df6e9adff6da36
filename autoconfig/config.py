"""
Settings store for the preference engine, backed by a JSON file.

Keys use dot notation (``"preferences.decay_rate"``).  Values read from
disk are layered over a dict of defaults, and every write publishes a
``config_changed`` event so a running engine can pick up new tunables
without being rebuilt.
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from .events import CONFIG_CHANGED, EventBus

logger = logging.getLogger(__name__)

_DEFAULT_PATH = Path("autoconfig.json")


def _merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge *override* into a copy of *base*."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class Config:
    """
    Hierarchical settings with JSON persistence.

    Pass ``path=None`` for a purely in-memory store (nothing is read or
    written).  *defaults* are never written back on their own; only keys
    that were explicitly ``set`` end up in the file.
    """

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        path: Path | str | None = _DEFAULT_PATH,
        defaults: Optional[Mapping[str, Any]] = None,
    ):
        self._bus = event_bus
        self._path = Path(path) if path is not None else None
        self._defaults: dict[str, Any] = _merge({}, defaults or {})
        self._overrides: dict[str, Any] = {}
        self._data: dict[str, Any] = _merge({}, self._defaults)
        self._load()

    @property
    def path(self) -> Optional[Path]:
        return self._path

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get(self, key: str, default: Any = None) -> Any:
        node: Any = self._data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any, *, save: bool = True) -> None:
        for tree in (self._overrides, self._data):
            parts = key.split(".")
            node = tree
            for part in parts[:-1]:
                child = node.get(part)
                if not isinstance(child, dict):
                    child = node[part] = {}
                node = child
            node[parts[-1]] = copy.deepcopy(value)

        if save:
            self.save()

        if self._bus is not None:
            self._bus.publish(CONFIG_CHANGED, {"key": key, "value": value})

    def update(self, prefix: str, values: Mapping[str, Any], *, save: bool = True) -> None:
        """Set several keys under *prefix* and write the file once."""
        for name, value in values.items():
            self.set(f"{prefix}.{name}", value, save=False)
        if save:
            self.save()

    def section(self, prefix: str) -> dict[str, Any]:
        """Return a shallow copy of everything under *prefix*."""
        node = self.get(prefix)
        return dict(node) if isinstance(node, dict) else {}

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable config %s: %s", self._path, exc)
            return
        if not isinstance(raw, dict):
            logger.warning("Ignoring config %s: top level is not an object", self._path)
            return
        self._overrides = raw
        self._data = _merge(self._defaults, raw)

    def save(self) -> None:
        if self._path is None:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(self._overrides, indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
        except OSError as exc:
            logger.warning("Could not write config %s: %s", self._path, exc)
