"""Local persistence for the desktop client: a JSON key-value file plus the volume map."""
from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "gamerscream-access-token"
DEVICE_ID_KEY = "gamerscream-device-id"
VOLUME_STORAGE_KEY = "gamerscream-player-volumes"

FULL_VOLUME = 100


class LocalStore:
    """Small persistent key-value store, written through on every change."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if self._path is None or not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable local store %s", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._save()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._save()


def device_id(store: LocalStore) -> str:
    """Return this install's persistent device identifier, creating it on first use."""

    existing = store.get(DEVICE_ID_KEY)
    if isinstance(existing, str) and existing:
        return existing
    created = str(uuid.uuid4())
    store.set(DEVICE_ID_KEY, created)
    return created


def clamp_volume(value: float) -> int:
    return max(0, min(FULL_VOLUME, int(round(value))))


class VolumeStore:
    """Per-participant volume percentages keyed by device id (or identity)."""

    def __init__(self, store: LocalStore) -> None:
        self._store = store
        self._volumes: Dict[str, int] = {}
        raw = store.get(VOLUME_STORAGE_KEY, {})
        if isinstance(raw, dict):
            for key, value in raw.items():
                try:
                    self._volumes[str(key)] = clamp_volume(float(value))
                except (TypeError, ValueError):
                    continue

    def get(self, key: str, default: Optional[int] = FULL_VOLUME) -> Optional[int]:
        return self._volumes.get(key, default)

    def set(self, key: str, volume: int) -> None:
        self._volumes[key] = clamp_volume(volume)
        self._store.set(VOLUME_STORAGE_KEY, dict(self._volumes))

    def as_dict(self) -> Dict[str, int]:
        return dict(self._volumes)
