import asyncio

from deckrift.persistence import MemoryStore, SaveManager, SaveSettings
from deckrift.persistence.settings import load_settings


def test_auto_save_fires_and_stops(make_manager):
    manager = make_manager()
    # Below the public floor so the test stays fast
    manager.settings = SaveSettings(auto_save_interval=20)

    async def scenario():
        created = (await manager.create_new_save("Test")).save_data
        await manager.start()
        await asyncio.sleep(0.15)
        await manager.stop()
        after_stop = (await manager.load_current_save()).save_data
        await asyncio.sleep(0.05)
        later = (await manager.load_current_save()).save_data
        return created, after_stop, later

    created, after_stop, later = asyncio.run(scenario())
    assert after_stop["timestamp"] > created["timestamp"]
    assert later == after_stop
    assert not manager.auto_save_running


def test_only_one_timer_per_manager(make_manager):
    manager = make_manager()

    async def scenario():
        await manager.start()
        first = manager._auto_save_task
        await manager.start()
        second = manager._auto_save_task
        await manager.update_settings(autoSaveInterval=60_000)
        third = manager._auto_save_task
        running = [t for t in asyncio.all_tasks() if t.get_name() == "deckrift-auto-save" and not t.done()]
        await manager.stop()
        return first, second, third, running

    first, second, third, running = asyncio.run(scenario())
    assert first.cancelled() and second.cancelled() and third.cancelled()
    assert running == [third]


def test_disabling_auto_save_stops_the_timer(store, clock):
    async def scenario():
        async with SaveManager(store, clock=clock) as manager:
            assert manager.auto_save_running
            result = await manager.update_settings({"enableAutoSave": False})
            assert result.success
            assert not manager.auto_save_running
            await manager.update_settings(enable_auto_save=True)
            assert manager.auto_save_running
        return manager

    manager = asyncio.run(scenario())
    assert not manager.auto_save_running
    assert load_settings(store).enable_auto_save is True


def test_settings_changes_before_start_do_not_schedule(make_manager):
    manager = make_manager()

    async def scenario():
        await manager.update_settings(auto_save_interval=120_000)
        return manager.auto_save_running

    assert asyncio.run(scenario()) is False
    assert manager.settings.auto_save_interval == 120_000


def test_invalid_setting_is_reported(make_manager):
    result = asyncio.run(make_manager().update_settings(colour="red"))
    assert result.success is False
    assert result.code == "INVALID_SETTING"


def test_settings_loaded_once_at_construction():
    store = MemoryStore()
    SaveManager(store)
    store.set("settings", '{"enableCloudSync": true}')
    assert SaveManager(store).settings.enable_cloud_sync is True


def test_status_reflects_settings(make_manager):
    manager = make_manager(enable_cloud_sync=True)

    async def scenario():
        await manager.create_new_save("Test")
        return await manager.get_save_status()

    status = asyncio.run(scenario())
    assert status.has_save is True
    assert status.cloud_sync_enabled is True
    assert status.auto_save_enabled is True
    assert status.auto_save_running is False
    assert status.auto_save_interval == 300_000
    assert status.saving is False


def _live_timers():
    return [t for t in asyncio.all_tasks() if t.get_name() == "deckrift-auto-save" and not t.done()]


def test_racing_settings_changes_leave_one_timer(make_manager):
    manager = make_manager()

    async def scenario():
        await manager.start()
        await asyncio.gather(
            manager.update_settings(autoSaveInterval=60_000),
            manager.update_settings(autoSaveInterval=90_000),
        )
        before = _live_timers()
        current = manager._auto_save_task
        await manager.stop()
        return before, current, _live_timers()

    before, current, after = asyncio.run(scenario())
    assert before == [current]
    assert after == []


def test_racing_start_calls_leave_one_timer(make_manager):
    manager = make_manager()

    async def scenario():
        await asyncio.gather(manager.start(), manager.start(), manager.start())
        before = len(_live_timers())
        await manager.stop()
        return before, len(_live_timers())

    assert asyncio.run(scenario()) == (1, 0)


def test_auto_save_survives_unexpected_errors(make_manager):
    manager = make_manager()
    manager.settings = SaveSettings(auto_save_interval=20)
    calls = []
    real_trigger = manager.trigger_auto_save

    async def flaky_trigger():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return await real_trigger()

    manager.trigger_auto_save = flaky_trigger

    async def scenario():
        await manager.create_new_save("Test")
        await manager.start()
        await asyncio.sleep(0.15)
        running = manager.auto_save_running
        await manager.stop()
        return running

    assert asyncio.run(scenario()) is True
    assert len(calls) >= 2
