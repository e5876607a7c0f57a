from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from .errors import SaveParseError

logger = logging.getLogger(__name__)

CURRENT_SAVE_KEY = "currentSave"
SAVE_SLOTS_KEY = "saveSlots"
SETTINGS_KEY = "settings"


class KeyValueStore(ABC):
    """Text store addressed by logical key.

    The manager is the only writer; everything else reads through it.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored text for ``key`` or None when absent."""

    @abstractmethod
    def set(self, key: str, text: str) -> None:
        """Replace the stored text for ``key``."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; missing keys are not an error."""


class FileStore(KeyValueStore):
    """Filesystem-backed store writing each key to ``<root>/<key>.json``.

    Writes are atomic: the text goes to a temporary file which is fsynced and
    then moved over the destination, so a crash never leaves a half-written
    save behind.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.exists():
            return None
        raw = path.read_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SaveParseError(f"{path.name} is not valid UTF-8: {exc}") from exc

    def set(self, key: str, text: str) -> None:
        path = self.path_for(key)
        tmp_path = path.with_suffix(".json.tmp")
        logger.debug("Writing %s to temporary file: %s", key, tmp_path)
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        if path.exists():
            path.unlink()
            logger.debug("Deleted %s", path)


class MemoryStore(KeyValueStore):
    """Test/deterministic store that holds data in memory only."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, text: str) -> None:
        self.data[key] = text

    def delete(self, key: str) -> None:
        self.data.pop(key, None)
