from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict

from .errors import SaveParseError
from .storage import SETTINGS_KEY, KeyValueStore

log = logging.getLogger(__name__)

DEFAULT_AUTO_SAVE_INTERVAL = 5 * 60 * 1000  # 5 minutes, in milliseconds
MIN_AUTO_SAVE_INTERVAL = 1000

# Wire name -> attribute name
_FIELDS = {
    "autoSaveInterval": "auto_save_interval",
    "enableAutoSave": "enable_auto_save",
    "enableCloudSync": "enable_cloud_sync",
}


@dataclass(frozen=True)
class SaveSettings:
    auto_save_interval: int = DEFAULT_AUTO_SAVE_INTERVAL  # milliseconds
    enable_auto_save: bool = True
    enable_cloud_sync: bool = False

    @property
    def auto_save_seconds(self) -> float:
        return self.auto_save_interval / 1000.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys used in storage."""
        return {wire: getattr(self, attr) for wire, attr in _FIELDS.items()}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SaveSettings":
        """Create settings from a stored dict; unknown keys are dropped, defaults fill gaps."""
        return cls().merged({k: v for k, v in d.items() if k in _FIELDS or k in _FIELDS.values()})

    def merged(self, changes: Dict[str, Any]) -> "SaveSettings":
        """Return a copy with ``changes`` applied.

        Accepts either wire names (``autoSaveInterval``) or attribute names
        (``auto_save_interval``). The interval is clamped to a one second floor.
        """
        updates: Dict[str, Any] = {}
        for key, value in changes.items():
            attr = _FIELDS.get(key, key)
            if attr not in _FIELDS.values():
                raise ValueError(f"Unknown setting: {key}")
            updates[attr] = value
        if "auto_save_interval" in updates:
            updates["auto_save_interval"] = max(MIN_AUTO_SAVE_INTERVAL, int(updates["auto_save_interval"]))
        for flag in ("enable_auto_save", "enable_cloud_sync"):
            if flag in updates:
                updates[flag] = bool(updates[flag])
        return replace(self, **updates)


def load_settings(store: KeyValueStore) -> SaveSettings:
    """Read settings from the store, falling back to defaults on any problem."""
    try:
        text = store.get(SETTINGS_KEY)
        if not text:
            return SaveSettings()
        content = json.loads(text)
        settings = SaveSettings.from_dict(content)
        log.info("Settings loaded: %s", settings)
        return settings
    except (SaveParseError, ValueError, TypeError, AttributeError):
        log.exception("Failed to load settings; using defaults")
        return SaveSettings()


def save_settings(store: KeyValueStore, settings: SaveSettings) -> None:
    store.set(SETTINGS_KEY, json.dumps(settings.to_dict()))
    log.info("Settings saved: %s", settings)
