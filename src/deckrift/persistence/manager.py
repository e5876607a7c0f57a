from __future__ import annotations

import asyncio
import contextlib
import copy
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Set, Union

from .codec import (
    add_export_metadata,
    check_document,
    decode_document,
    encode_document,
    strip_export_metadata,
)
from .errors import CloudTransportError, SaveError, SaveNotFoundError, SaveParseError, SaveValidationError
from .models import (
    DEFAULT_SAVE_NAME,
    IMPORTED_SAVE_NAME,
    SlotSummary,
    create_default_run_data,
    create_default_save,
    next_timestamp,
    now_ms,
)
from .settings import SaveSettings, load_settings, save_settings
from .slots import SlotRegistry
from .storage import CURRENT_SAVE_KEY, KeyValueStore

if TYPE_CHECKING:
    from ..cloud import CloudSyncClient

logger = logging.getLogger(__name__)

FULL_SAVE_EVENTS = frozenset({"level_up", "permanent_level_up", "manual_save", "page_unload"})
RUN_DATA_EVENT = "run_data_update"
GAME_DATA_EVENT = "game_data_update"


@dataclass(frozen=True)
class GameEvent:
    """Domain event sent by the game layer, e.g. ``GameEvent("level_up")``."""

    type: str
    data: Optional[Dict[str, Any]] = None


@dataclass
class SaveResult:
    """Outcome of a manager operation.

    ``code`` is one of OK | VALIDATION | NOT_FOUND | PARSE | TRANSPORT |
    IO_ERROR | INVALID_SETTING. ``synced`` is None when no cloud sync was
    attempted, otherwise the sync outcome; it never affects ``success``.
    """

    success: bool
    save_data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    code: str = "OK"
    synced: Optional[bool] = None

    @property
    def data(self) -> Optional[Dict[str, Any]]:
        return self.save_data


@dataclass(frozen=True)
class SaveStatus:
    has_save: bool
    last_save_time: int
    auto_save_enabled: bool
    auto_save_running: bool
    cloud_sync_enabled: bool
    auto_save_interval: int
    saving: bool


class SaveManager:
    """Single writer for the current save document, its slots and settings.

    Every persist is a read-merge-write of the whole document done while
    holding one ``asyncio.Lock``, so the auto-save task and event-driven saves
    never interleave inside a write. Store access runs in a worker thread so
    the event loop keeps running during file I/O. The document is written
    before its slot summary, so a failed write never leaves a slot describing
    a document that was not stored. Cloud sync runs after the local write has
    landed and only ever reports its own outcome.

    Usage::

        async with SaveManager(FileStore(path), cloud=client) as manager:
            await manager.create_new_save("Test")
            await manager.trigger_save("level_up")

    ``start()``/``stop()`` manage the auto-save task explicitly when a context
    manager does not fit.
    """

    def __init__(
        self,
        store: KeyValueStore,
        cloud: Optional[CloudSyncClient] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._cloud = cloud
        self._clock = clock
        self.slots = SlotRegistry(store)
        self.settings: SaveSettings = load_settings(store)
        self.last_save_time = clock()
        self._write_lock = asyncio.Lock()
        self._auto_save_task: Optional[asyncio.Task] = None
        self._started = False
        self._background: Set[asyncio.Task] = set()

    # Lifecycle

    async def start(self) -> None:
        """Begin auto-saving (when enabled). Safe to call more than once."""
        self._started = True
        await self._reschedule_auto_save()

    async def stop(self) -> None:
        """Stop the auto-save task.

        A save already holding or queued on the write lock is allowed to land
        before this returns.
        """
        self._started = False
        task, self._auto_save_task = self._auto_save_task, None
        await self._retire(task)
        async with self._write_lock:
            pass

    async def __aenter__(self) -> "SaveManager":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    @property
    def auto_save_running(self) -> bool:
        return self._auto_save_task is not None and not self._auto_save_task.done()

    @property
    def is_saving(self) -> bool:
        return self._write_lock.locked()

    async def update_settings(self, changes: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> SaveResult:
        """Apply and persist settings changes, restarting or stopping auto-save to match."""
        merged = dict(changes or {}, **kwargs)
        try:
            await self._exclusive(self._apply_settings, merged)
        except (ValueError, TypeError) as exc:
            return SaveResult(False, error=str(exc), code="INVALID_SETTING")
        except OSError as exc:
            return self._failure("settings update", exc)
        await self._reschedule_auto_save()
        return SaveResult(True)

    async def _reschedule_auto_save(self) -> None:
        # Swap handles before the first await so concurrent callers never
        # leave an older task running unreferenced.
        old = self._auto_save_task
        self._auto_save_task = None
        if self._started and self.settings.enable_auto_save:
            interval = self.settings.auto_save_seconds
            self._auto_save_task = asyncio.get_running_loop().create_task(
                self._auto_save_loop(interval), name="deckrift-auto-save"
            )
            logger.debug("Auto-save scheduled every %.1fs", interval)
        await self._retire(old)

    @staticmethod
    async def _retire(task: Optional[asyncio.Task]) -> None:
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug("Auto-save task retired")

    async def _auto_save_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                result = await self.trigger_auto_save()
            except Exception:  # noqa: BLE001 keep the timer alive
                logger.exception("Auto-save failed unexpectedly")
                continue
            if not result.success:
                logger.warning("Auto-save skipped: %s", result.error)

    async def trigger_auto_save(self) -> SaveResult:
        return await self.save_current_game()

    # Creating and loading

    async def create_new_save(
        self, name: str = DEFAULT_SAVE_NAME, seed: Optional[Mapping[str, Any]] = None
    ) -> SaveResult:
        """Start a new game from ``seed`` or from the default document."""
        try:
            document = await self._exclusive(self._create, name, seed)
        except (SaveError, OSError) as exc:
            return self._failure("create", exc)
        logger.info("Created save '%s'", document["saveName"])
        return await self._saved(document)

    async def load_current_save(self) -> SaveResult:
        try:
            document = await asyncio.to_thread(self._read_current)
        except (SaveError, OSError) as exc:
            return self._failure("load", exc)
        return SaveResult(True, save_data=document)

    async def has_save(self) -> bool:
        return (await self.load_current_save()).success

    # Saving

    async def save_current_game(
        self,
        run_data: Optional[Mapping[str, Any]] = None,
        game_data: Optional[Mapping[str, Any]] = None,
    ) -> SaveResult:
        """Merge partial sections into the current document and persist it.

        Sections are merged at their top level: keys in ``run_data`` replace
        the same keys of ``runData`` and every other key is kept.
        """
        try:
            document = await self._exclusive(self._merge_sections, run_data, game_data)
        except (SaveError, OSError) as exc:
            return self._failure("save", exc)
        logger.debug("Saved '%s' at %s", document["saveName"], document["timestamp"])
        return await self._saved(document)

    async def save_run_data(self, run_data: Mapping[str, Any]) -> SaveResult:
        return await self.save_current_game(run_data=run_data)

    async def save_game_data(self, game_data: Mapping[str, Any]) -> SaveResult:
        return await self.save_current_game(game_data=game_data)

    async def clear_run_data(self) -> SaveResult:
        """Reset ``runData`` for a fresh run while keeping ``gameData``."""
        try:
            document = await self._exclusive(self._reset_run)
        except (SaveError, OSError) as exc:
            return self._failure("run reset", exc)
        logger.info("Run data reset for '%s'", document["saveName"])
        return await self._saved(document)

    # Event dispatch

    async def trigger_save(self, kind: str, data: Optional[Mapping[str, Any]] = None) -> Optional[SaveResult]:
        """Map a save trigger to a save. Unknown kinds are ignored and return None."""
        if kind in FULL_SAVE_EVENTS:
            return await self.save_current_game()
        if kind == RUN_DATA_EVENT:
            return await self.save_run_data(data or {})
        if kind == GAME_DATA_EVENT:
            return await self.save_game_data(data or {})
        logger.debug("Ignoring unknown save trigger %r", kind)
        return None

    async def handle_game_event(self, event: Union[GameEvent, Mapping[str, Any]]) -> Optional[SaveResult]:
        if isinstance(event, GameEvent):
            return await self.trigger_save(event.type, event.data)
        return await self.trigger_save(event.get("type", ""), event.get("data"))

    def schedule_unload_save(self) -> "asyncio.Task[Optional[SaveResult]]":
        """Issue the teardown save without waiting for it.

        The save may not finish before the process goes away; whatever changed
        since the last completed save can be lost. Must be called with a
        running event loop.
        """
        task = asyncio.get_running_loop().create_task(self.trigger_save("page_unload"))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # Export / import

    async def export_save(self) -> SaveResult:
        """Return the current document plus export metadata; stored state is untouched."""
        try:
            text = await asyncio.to_thread(self._store.get, CURRENT_SAVE_KEY)
            if text is None:
                raise SaveNotFoundError("No save data to export")
            document = decode_document(text)
        except (SaveError, OSError) as exc:
            return self._failure("export", exc)
        return SaveResult(True, save_data=add_export_metadata(document, self._clock()))

    async def import_save(self, data: Union[str, bytes, Mapping[str, Any]]) -> SaveResult:
        """Make ``data`` (JSON text or a mapping) the current document in a new slot."""
        try:
            document = await self._exclusive(self._import, data)
        except (SaveError, OSError) as exc:
            return self._failure("import", exc)
        self.last_save_time = document["timestamp"]
        logger.info("Imported save '%s'", document["saveName"])
        return SaveResult(True, save_data=document)

    # Slots

    def add_to_save_slots(self, document: Dict[str, Any]) -> SlotSummary:
        return self.slots.add(document)

    def update_save_slot(self, document: Dict[str, Any]) -> SlotSummary:
        return self.slots.update(document)

    async def get_save_slots(self) -> Dict[str, SlotSummary]:
        return await asyncio.to_thread(self.slots.all)

    async def delete_save_slot(self, slot_id: str) -> SaveResult:
        try:
            existed = await self._exclusive(self.slots.delete, slot_id)
        except (SaveError, OSError) as exc:
            return self._failure("slot delete", exc)
        if not existed:
            logger.debug("Slot %s already absent", slot_id)
        return SaveResult(True)

    async def load_save_from_slot(self, slot_id: str) -> SaveResult:
        """Load the document behind ``slot_id``.

        Only the current document is stored, so an existing slot resolves to it.
        """
        try:
            document = await asyncio.to_thread(self._read_slot, slot_id)
        except (SaveError, OSError) as exc:
            return self._failure("slot load", exc)
        return SaveResult(True, save_data=document)

    # Cloud

    async def sync_to_cloud(self, document: Mapping[str, Any]) -> bool:
        """Push ``document`` to the cloud. Never raises; failures return False."""
        if self._cloud is None:
            logger.debug("Cloud sync requested but no client is configured")
            return False
        try:
            await asyncio.to_thread(self._cloud.push, copy.deepcopy(dict(document)))
        except CloudTransportError as exc:
            logger.warning("Cloud sync failed: %s", exc)
            return False
        except Exception:  # noqa: BLE001 sync is advisory
            logger.exception("Unexpected error during cloud sync")
            return False
        return True

    async def load_from_cloud(self) -> SaveResult:
        if self._cloud is None:
            return SaveResult(False, error="Cloud sync is not configured", code=CloudTransportError.code)
        try:
            remote = await asyncio.to_thread(self._cloud.pull)
        except CloudTransportError as exc:
            return self._failure("cloud load", exc)
        return await self.import_save(remote)

    # Status and teardown

    async def get_save_status(self) -> SaveStatus:
        return SaveStatus(
            has_save=await self.has_save(),
            last_save_time=self.last_save_time,
            auto_save_enabled=self.settings.enable_auto_save,
            auto_save_running=self.auto_save_running,
            cloud_sync_enabled=self.settings.enable_cloud_sync,
            auto_save_interval=self.settings.auto_save_interval,
            saving=self.is_saving,
        )

    async def clear_all_saves(self) -> SaveResult:
        """Delete the current document and every slot, and stop auto-save."""
        try:
            await self._exclusive(self._clear_store)
        except OSError as exc:
            return self._failure("clear", exc)
        await self.stop()
        logger.info("All saves cleared")
        return SaveResult(True)

    # Internal utilities

    async def _exclusive(self, func: Callable[..., Any], *args: Any) -> Any:
        """Run ``func`` in a worker thread while holding the write lock.

        The locked section is shielded: a cancelled caller stops waiting, but
        the lock is only released once the thread has finished writing.
        """

        async def locked() -> Any:
            async with self._write_lock:
                return await asyncio.to_thread(func, *args)

        return await asyncio.shield(locked())

    # The methods below do blocking store I/O and run in a worker thread.

    def _read_current(self) -> Dict[str, Any]:
        text = self._store.get(CURRENT_SAVE_KEY)
        if text is None:
            raise SaveNotFoundError("No save data found")
        return check_document(decode_document(text))

    def _read_slot(self, slot_id: str) -> Dict[str, Any]:
        if self.slots.get(slot_id) is None:
            raise SaveNotFoundError(f"Save slot not found: {slot_id}")
        return self._read_current()

    def _commit(self, document: Dict[str, Any], fresh_slot: bool = False) -> Dict[str, Any]:
        check_document(document)
        self.slots.claim(document, fresh=fresh_slot)
        self._store.set(CURRENT_SAVE_KEY, encode_document(document))
        self.slots.record(document)
        return document

    def _create(self, name: str, seed: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        if seed is not None:
            document = copy.deepcopy(dict(seed))
        else:
            document = create_default_save(name, self._clock())
        return self._commit(document, fresh_slot=True)

    def _merge_sections(
        self,
        run_data: Optional[Mapping[str, Any]],
        game_data: Optional[Mapping[str, Any]],
    ) -> Dict[str, Any]:
        document = self._read_current()
        timestamp = next_timestamp(document.get("timestamp"), self._clock())
        if run_data:
            document["runData"] = {**document["runData"], **run_data, "timestamp": timestamp}
        if game_data:
            document["gameData"] = {**document["gameData"], **game_data, "timestamp": timestamp}
        document["timestamp"] = timestamp
        return self._commit(document)

    def _reset_run(self) -> Dict[str, Any]:
        document = self._read_current()
        timestamp = next_timestamp(document.get("timestamp"), self._clock())
        document["runData"] = create_default_run_data(timestamp)
        document["timestamp"] = timestamp
        return self._commit(document)

    def _import(self, data: Union[str, bytes, Mapping[str, Any]]) -> Dict[str, Any]:
        if isinstance(data, (str, bytes)):
            document = decode_document(data)
        elif isinstance(data, Mapping):
            document = copy.deepcopy(dict(data))
        else:
            raise SaveParseError(f"Cannot import a {type(data).__name__}")
        document = strip_export_metadata(document)
        if not document.get("saveName"):
            document["saveName"] = IMPORTED_SAVE_NAME
        check_document(document)
        document["timestamp"] = next_timestamp(document["timestamp"], self._clock())
        return self._commit(document, fresh_slot=True)

    def _apply_settings(self, changes: Mapping[str, Any]) -> None:
        new_settings = self.settings.merged(changes)
        save_settings(self._store, new_settings)
        self.settings = new_settings

    def _clear_store(self) -> None:
        self._store.delete(CURRENT_SAVE_KEY)
        self.slots.clear()

    async def _saved(self, document: Dict[str, Any]) -> SaveResult:
        self.last_save_time = document["timestamp"]
        synced = None
        if self.settings.enable_cloud_sync:
            synced = await self.sync_to_cloud(document)
        return SaveResult(True, save_data=document, synced=synced)

    def _failure(self, action: str, exc: Exception) -> SaveResult:
        if isinstance(exc, SaveValidationError):
            logger.warning("%s rejected with %d validation error(s): %s", action, len(exc.errors), exc.errors)
            return SaveResult(False, error="Invalid save data", errors=exc.errors, code=exc.code)
        if isinstance(exc, SaveNotFoundError):
            logger.info("%s: %s", action, exc)
            return SaveResult(False, error=str(exc), code=exc.code)
        if isinstance(exc, SaveError):
            logger.warning("%s failed: %s", action, exc)
            return SaveResult(False, error=str(exc), code=exc.code)
        logger.exception("I/O error during %s", action)
        return SaveResult(False, error=str(exc), code="IO_ERROR")
