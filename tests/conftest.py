import sys
from pathlib import Path

import pytest

# Ensure 'src' is on sys.path for test imports without installing the package
ROOT = Path(__file__).resolve().parents[1]
src = ROOT / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from deckrift.persistence import CloudTransportError, MemoryStore, SaveManager  # noqa: E402


class FakeClock:
    """Millisecond clock that advances by one tick per reading."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


class FlakyStore(MemoryStore):
    """MemoryStore whose writes fail for the keys listed in ``fail_keys``."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_keys = set()

    def set(self, key: str, text: str) -> None:
        if key in self.fail_keys:
            raise OSError(f"disk full writing {key}")
        super().set(key, text)


class FakeCloud:
    """Stand-in for CloudSyncClient recording pushes."""

    def __init__(self, fail: bool = False, remote=None) -> None:
        self.fail = fail
        self.remote = remote
        self.pushed = []

    def push(self, document) -> None:
        if self.fail:
            raise CloudTransportError("POST /save/sync failed: connection refused")
        self.pushed.append(document)

    def pull(self):
        if self.fail or self.remote is None:
            raise CloudTransportError("No cloud save available")
        return self.remote


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def make_manager(store, clock):
    def _make(cloud=None, **settings) -> SaveManager:
        manager = SaveManager(store, cloud=cloud, clock=clock)
        if settings:
            manager.settings = manager.settings.merged(settings)
        return manager

    return _make
