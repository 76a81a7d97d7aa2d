import asyncio
import logging
from unittest.mock import MagicMock, patch

from relief_sync.drivers import DriverRegistry, SubmissionResult
from relief_sync.services.connectivity import ConnectivityMonitor
from relief_sync.services.errors import StoreUnavailableError, UploadError
from relief_sync.services.local_store import SaveResult
from relief_sync.services.models import QueueItemType
from relief_sync.services.sync_manager import SyncManager

from conftest import AUDIO_URI, RecordingDriver, make_incident, make_pledge


def build_sync(queue, backend, driver=None, online=True, timeout=5):
    driver = driver or RecordingDriver()
    registry = DriverRegistry({QueueItemType.PLEDGE: driver, QueueItemType.INCIDENT: driver})
    connectivity = ConnectivityMonitor()
    sync = SyncManager(queue, registry, connectivity, backend, submit_timeout=timeout)
    if online:
        # No running loop here, so the reconnect trigger is only logged
        connectivity.mark_online()
    return sync, driver, connectivity


def test_drain_skipped_without_network_signal(queue, backend):
    queue.enqueue("pledge", make_pledge())
    sync, driver, _ = build_sync(queue, backend, online=False)

    summary = asyncio.run(sync.drain())

    assert summary.status == "skipped"
    assert (summary.processed, summary.errors) == (0, 0)
    assert driver.calls == []
    assert queue.last_sync() is None


def test_drain_skipped_when_offline(queue, backend):
    queue.enqueue("pledge", make_pledge())
    sync, driver, connectivity = build_sync(queue, backend)
    connectivity.mark_offline()

    summary = asyncio.run(sync.drain())
    assert summary.reason == "offline"
    assert driver.calls == []


def test_drain_skipped_when_backend_not_configured(queue, backend):
    queue.enqueue("pledge", make_pledge())
    backend.configured = False
    sync, driver, _ = build_sync(queue, backend)

    summary = asyncio.run(sync.drain())
    assert summary.status == "skipped"
    assert summary.reason == "backend_not_configured"
    assert queue.count() == 1


def test_items_submitted_in_enqueue_order_after_reconnect(queue, backend):
    names = ["Alpha Cruz", "Bravo Reyes", "Charlie Lim"]
    for name in names:
        queue.enqueue("pledge", make_pledge(name=name))
    sync, driver, connectivity = build_sync(queue, backend, online=False)

    async def go_online():
        connectivity.mark_online()
        await asyncio.gather(*list(sync._tasks))

    asyncio.run(go_online())

    assert [p.name for p in driver.calls] == names
    assert queue.count() == 0


def test_attempts_grow_by_one_per_cycle_for_failing_item(queue, backend):
    item_id = queue.enqueue("pledge", make_pledge())
    sync, driver, _ = build_sync(queue, backend, driver=RecordingDriver(ok=False))

    for expected in (1, 2, 3):
        summary = asyncio.run(sync.drain())
        assert (summary.processed, summary.errors) == (0, 1)
        [item] = queue.peek_all()
        assert item.id == item_id
        assert item.attempts == expected

    assert queue.last_sync().errors == 1


def test_successful_item_is_not_submitted_twice(queue, backend):
    queue.enqueue("pledge", make_pledge())
    sync, driver, _ = build_sync(queue, backend)

    first = asyncio.run(sync.drain())
    second = asyncio.run(sync.drain())

    assert first.processed == 1
    assert second.processed == 0
    assert len(driver.calls) == 1


def test_second_trigger_during_drain_is_ignored(queue, backend):
    for n in (1, 2, 3):
        queue.enqueue("pledge", make_pledge(quantity=n))

    driver = RecordingDriver()
    sync, _, _ = build_sync(queue, backend, driver=driver)

    async def scenario():
        gate = asyncio.Event()
        driver.gate = gate

        first = asyncio.create_task(sync.drain("timer"))
        await asyncio.sleep(0)
        assert sync.is_syncing
        second = await sync.drain("wake")
        gate.set()
        return await first, second

    first, second = asyncio.run(scenario())

    assert second.status == "skipped"
    assert second.reason == "sync_in_progress"
    assert first.processed == 3
    assert [p.quantity for p in driver.calls] == [1, 2, 3]


def test_failure_does_not_abort_cycle(queue, backend):
    queue.enqueue("pledge", make_pledge(name="First Item"))
    queue.enqueue("pledge", make_pledge(name="Second Item"))

    driver = MagicMock()
    calls = []

    async def submit(payload):
        calls.append(payload.name)
        if payload.name == "First Item":
            raise RuntimeError("driver bug")
        return SubmissionResult.success("ref")

    driver.submit = submit
    sync, _, _ = build_sync(queue, backend, driver=driver)
    summary = asyncio.run(sync.drain())

    assert calls == ["First Item", "Second Item"]
    assert (summary.processed, summary.errors) == (1, 1)
    [left] = queue.peek_all()
    assert left.payload.name == "First Item"
    assert left.attempts == 1


def test_timed_out_submission_counts_as_failure(queue, backend):
    queue.enqueue("pledge", make_pledge())
    sync, _, _ = build_sync(queue, backend, driver=RecordingDriver(delay=1.0), timeout=0.05)

    summary = asyncio.run(sync.drain())

    assert summary.errors == 1
    assert queue.peek_all()[0].attempts == 1


def test_last_sync_written_after_cycle(queue, backend):
    queue.enqueue("pledge", make_pledge())
    sync, _, _ = build_sync(queue, backend)

    summary = asyncio.run(sync.drain())
    info = queue.last_sync()

    assert info.processed == summary.processed == 1
    assert info.errors == 0
    assert info.timestamp > 0


def test_unreadable_store_aborts_cycle(queue, backend):
    sync, driver, _ = build_sync(queue, backend)

    with patch.object(queue, "peek_all", side_effect=StoreUnavailableError("disk I/O error")):
        summary = asyncio.run(sync.drain())

    assert summary.status == "error"
    assert driver.calls == []
    assert queue.last_sync() is None
    assert not sync.is_syncing


def test_completion_callbacks_receive_summary(queue, backend):
    queue.enqueue("pledge", make_pledge())
    sync, _, _ = build_sync(queue, backend)
    seen = []
    sync.on_sync_complete(seen.append)
    sync.on_sync_complete(MagicMock(side_effect=RuntimeError("listener bug")))

    summary = asyncio.run(sync.drain())
    assert seen == [summary]


def test_wake_without_event_loop_is_ignored(queue, backend):
    sync, driver, _ = build_sync(queue, backend)
    assert sync.wake("test") is None
    assert driver.calls == []


def test_pledge_scenario_end_to_end(queue, backend):
    queue.enqueue("pledge", make_pledge(quantity=5, resource_type="Food"))
    registry = DriverRegistry.default(backend)
    connectivity = ConnectivityMonitor()
    sync = SyncManager(queue, registry, connectivity, backend)
    connectivity.mark_online()

    summary = asyncio.run(sync.drain())

    assert summary.processed == 1
    [(table, record)] = backend.inserts
    assert table == "pledges"
    assert record["quantity"] == 5
    assert record["resource_type"] == "Food"
    assert queue.peek_all() == []


def test_incident_with_rejected_audio_is_removed(queue, backend):
    queue.enqueue("incident", make_incident(audio_data_uri=AUDIO_URI))
    backend.upload_errors["-offline-audio"] = UploadError("too large", status=413)
    registry = DriverRegistry.default(backend)
    connectivity = ConnectivityMonitor()
    sync = SyncManager(queue, registry, connectivity, backend)
    connectivity.mark_online()

    summary = asyncio.run(sync.drain())

    assert summary.processed == 1
    [(_, record)] = backend.inserts
    assert "audio_url" not in record
    assert queue.count() == 0


def test_periodic_loop_probes_and_drains(queue, backend):
    queue.enqueue("pledge", make_pledge())
    sync, driver, connectivity = build_sync(queue, backend, online=False)
    sync.sync_interval = 0.01

    async def scenario():
        task = asyncio.create_task(sync.run_periodic())
        for _ in range(100):
            if queue.count() == 0:
                break
            await asyncio.sleep(0.01)
        sync.stop()
        await asyncio.wait_for(task, timeout=1)

    asyncio.run(scenario())

    assert connectivity.is_online()
    assert len(driver.calls) == 1
    assert queue.count() == 0


def test_failed_removal_is_logged_as_possible_duplicate(queue, backend, caplog):
    item_id = queue.enqueue("pledge", make_pledge())
    sync, driver, _ = build_sync(queue, backend)

    with patch.object(queue, "remove_by_id", return_value=SaveResult(ok=False, error="disk full")):
        with caplog.at_level(logging.WARNING, logger="SyncManager"):
            summary = asyncio.run(sync.drain())

    assert summary.processed == 1
    assert [i.id for i in queue.peek_all()] == [item_id]
    assert "submitted but not removed" in caplog.text
