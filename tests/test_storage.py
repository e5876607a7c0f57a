from pathlib import Path

import pytest

from deckrift.persistence import FileStore, MemoryStore, SaveParseError
from deckrift.persistence.storage import CURRENT_SAVE_KEY


def test_file_store_roundtrip_and_delete(tmp_path: Path):
    store = FileStore(tmp_path / "saves")
    assert store.get(CURRENT_SAVE_KEY) is None

    store.set(CURRENT_SAVE_KEY, '{"a": 1}')
    assert store.get(CURRENT_SAVE_KEY) == '{"a": 1}'
    assert (tmp_path / "saves" / "currentSave.json").exists()
    # No temp file left behind after the atomic replace
    assert not list((tmp_path / "saves").glob("*.tmp"))

    store.set(CURRENT_SAVE_KEY, '{"a": 2}')
    assert store.get(CURRENT_SAVE_KEY) == '{"a": 2}'

    store.delete(CURRENT_SAVE_KEY)
    assert store.get(CURRENT_SAVE_KEY) is None
    # Deleting again is harmless
    store.delete(CURRENT_SAVE_KEY)


def test_memory_store():
    store = MemoryStore({"settings": "{}"})
    assert store.get("settings") == "{}"
    store.set("saveSlots", "{}")
    store.delete("settings")
    store.delete("missing")
    assert store.data == {"saveSlots": "{}"}


def test_file_store_reports_undecodable_bytes(tmp_path: Path):
    store = FileStore(tmp_path)
    store.path_for(CURRENT_SAVE_KEY).write_bytes(b"\xff\xfe{}")
    with pytest.raises(SaveParseError):
        store.get(CURRENT_SAVE_KEY)
