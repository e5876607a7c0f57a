"""Save-state persistence for Deckrift.

This package provides:
- A declarative schema validator that reports every violation at once
- The versioned save document, its schemas and default construction
- A key/value store (atomic files or memory) with the ``currentSave``,
  ``saveSlots`` and ``settings`` keys
- A SaveManager that merges, validates, persists, tracks slots, auto-saves
  and hands documents to the cloud client
"""

from .errors import (
    CloudTransportError,
    SaveError,
    SaveNotFoundError,
    SaveParseError,
    SaveValidationError,
)
from .manager import GameEvent, SaveManager, SaveResult, SaveStatus
from .models import (
    SAVE_DATA_SCHEMA,
    SAVE_VERSION,
    SlotSummary,
    create_default_save,
)
from .schema import ValidationResult, validate
from .settings import SaveSettings
from .slots import SlotRegistry
from .storage import FileStore, KeyValueStore, MemoryStore

__all__ = [
    "SAVE_DATA_SCHEMA",
    "SAVE_VERSION",
    "CloudTransportError",
    "FileStore",
    "GameEvent",
    "KeyValueStore",
    "MemoryStore",
    "SaveError",
    "SaveManager",
    "SaveNotFoundError",
    "SaveParseError",
    "SaveResult",
    "SaveSettings",
    "SaveStatus",
    "SaveValidationError",
    "SlotRegistry",
    "SlotSummary",
    "ValidationResult",
    "create_default_save",
    "validate",
]
