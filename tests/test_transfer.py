"""
Tests for the batch transfer queue.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from tilecatalog.catalog.core import TransferFailure
from tilecatalog.transfer import BatchInProgress, DrainPolicy, TransferQueue, UploadTask

from .helpers import JPEG, make_record


def _task(y, **kwargs) -> UploadTask:
    return UploadTask(name=f"{y}.jpg", payload=JPEG, z="1", x="0", y=str(y), **kwargs)


def _catalog(fail_on=()):
    def create(z, x, y, payload, content_type):
        if y in fail_on:
            raise TransferFailure(f"tile {y} rejected")
        return make_record(z, x, y)

    catalog = MagicMock()
    catalog.create = AsyncMock(side_effect=create)
    return catalog


class Recorder:
    def __init__(self):
        self.progress = []
        self.batches = []

    def on_progress(self, progress):
        self.progress.append((progress.is_uploading, progress.percent))

    def on_batch_complete(self, records):
        self.batches.append(records)


def _queue(catalog, recorder, **kwargs) -> TransferQueue:
    return TransferQueue(
        catalog=catalog,
        on_progress=recorder.on_progress,
        on_batch_complete=recorder.on_batch_complete,
        **kwargs,
    )


def test_partial_failure_completes_remaining_tasks():
    recorder = Recorder()
    notify = MagicMock()
    on_error = MagicMock()
    queue = _queue(_catalog(fail_on={"2"}), recorder, notify=notify)

    async def run():
        for y in range(5):
            queue.submit(_task(y, on_error=on_error if y == 2 else None))
        await queue.join()

    asyncio.run(run())

    assert len(recorder.batches) == 1
    assert [r.y for r in recorder.batches[0]] == ["0", "1", "3", "4"]
    on_error.assert_called_once()
    assert isinstance(on_error.call_args.args[0], TransferFailure)
    assert ("error", "2.jpg: tile 2 rejected") in [c.args for c in notify.call_args_list]

    percents = [p for _, p in recorder.progress]
    assert percents.count(100) == 1
    assert percents == sorted(percents)
    assert recorder.progress[-1] == (False, 100)
    assert recorder.progress == [(True, 0), (True, 20), (True, 40), (True, 60), (True, 80), (False, 100)]


def test_tasks_run_one_at_a_time_in_order():
    order = []
    in_flight = 0
    peak = 0

    async def create(z, x, y, payload, content_type):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0)
        order.append(y)
        in_flight -= 1
        return make_record(z, x, y)

    catalog = MagicMock()
    catalog.create = create
    queue = _queue(catalog, Recorder())

    async def run():
        for y in range(6):
            queue.submit(_task(y))
        await queue.join()

    asyncio.run(run())

    assert order == [str(y) for y in range(6)]
    assert peak == 1


def test_counted_policy_waits_for_expected_count():
    recorder = Recorder()
    queue = _queue(_catalog(), recorder, policy=DrainPolicy.COUNTED)

    async def run():
        queue.expect(3)
        queue.submit(_task(0))
        queue.submit(_task(1))
        assert not queue.is_draining
        queue.submit(_task(2))
        assert queue.is_draining
        await queue.join()

    asyncio.run(run())

    assert [r.y for r in recorder.batches[0]] == ["0", "1", "2"]
    assert recorder.progress[0] == (False, 0)
    assert recorder.progress[-1] == (False, 100)


def test_new_batch_refused_while_draining():
    release = None

    async def create(z, x, y, payload, content_type):
        await release.wait()
        return make_record(z, x, y)

    catalog = MagicMock()
    catalog.create = create
    queue = _queue(catalog, Recorder())

    async def run():
        nonlocal release
        release = asyncio.Event()
        queue.submit(_task(0))
        await asyncio.sleep(0)
        assert queue.is_draining

        with pytest.raises(BatchInProgress):
            queue.expect(4)

        release.set()
        await queue.join()

    asyncio.run(run())

    assert not queue.is_draining


def test_submit_while_draining_joins_current_batch():
    recorder = Recorder()
    gate = None

    async def create(z, x, y, payload, content_type):
        if y == "0":
            await gate.wait()
        return make_record(z, x, y)

    catalog = MagicMock()
    catalog.create = create
    queue = _queue(catalog, recorder)

    async def run():
        nonlocal gate
        gate = asyncio.Event()
        queue.submit(_task(0))
        await asyncio.sleep(0)
        queue.submit(_task(1))
        assert queue.state.total == 2
        gate.set()
        await queue.join()

    asyncio.run(run())

    assert len(recorder.batches) == 1
    assert [r.y for r in recorder.batches[0]] == ["0", "1"]


def test_all_failed_batch_skips_completion_callback():
    recorder = Recorder()
    queue = _queue(_catalog(fail_on={"0", "1"}), recorder)

    async def run():
        queue.submit(_task(0))
        queue.submit(_task(1))
        await queue.join()

    asyncio.run(run())

    assert recorder.batches == []
    assert recorder.progress[-1] == (False, 100)
    assert queue.last_batch.failed == 2


def test_state_resets_between_batches():
    recorder = Recorder()
    queue = _queue(_catalog(), recorder)

    async def run():
        queue.submit(_task(0))
        await queue.join()
        assert queue.state.total == 0
        queue.submit(_task(1))
        queue.submit(_task(2))
        await queue.join()

    asyncio.run(run())

    assert [[r.y for r in batch] for batch in recorder.batches] == [["0"], ["1", "2"]]


def test_drain_starts_counted_batch_short_of_expected():
    recorder = Recorder()
    queue = _queue(_catalog(), recorder, policy=DrainPolicy.COUNTED)

    async def run():
        queue.expect(3)
        queue.submit(_task(0))
        await queue.drain()

    asyncio.run(run())

    assert [r.y for r in recorder.batches[0]] == ["0"]
    assert queue.last_batch.total == 3


def test_raising_success_callback_does_not_stop_the_batch():
    recorder = Recorder()
    catalog = _catalog()
    queue = _queue(catalog, recorder)

    def broken(record):
        raise RuntimeError("display failed")

    async def run():
        for y in range(4):
            queue.submit(_task(y, on_success=broken if y == 1 else None))
        await queue.join()

    asyncio.run(run())

    assert catalog.create.await_count == 4
    assert queue.pending == 0
    assert not queue.is_draining
    assert [[r.y for r in batch] for batch in recorder.batches] == [["0", "1", "2", "3"]]
    assert queue.last_batch.completed == 4
    assert recorder.progress[-1] == (False, 100)


def test_raising_error_callback_and_notifier_do_not_stop_the_batch():
    recorder = Recorder()
    notify = MagicMock(side_effect=RuntimeError("toast failed"))
    on_error = MagicMock(side_effect=RuntimeError("display failed"))
    queue = _queue(_catalog(fail_on={"0"}), recorder, notify=notify)

    async def run():
        queue.submit(_task(0, on_error=on_error))
        queue.submit(_task(1))
        await queue.join()

    asyncio.run(run())

    on_error.assert_called_once()
    assert [r.y for r in recorder.batches[0]] == ["1"]
    assert queue.last_batch.failed == 1
    assert recorder.progress[-1] == (False, 100)


def test_progress_never_decreases_when_total_grows_mid_drain():
    recorder = Recorder()
    gate = None

    async def create(z, x, y, payload, content_type):
        if y == "1":
            await gate.wait()
        return make_record(z, x, y)

    catalog = MagicMock()
    catalog.create = create
    queue = _queue(catalog, recorder)

    async def run():
        nonlocal gate
        gate = asyncio.Event()
        queue.submit(_task(0))
        queue.submit(_task(1))
        await asyncio.sleep(0)
        assert recorder.progress[-1] == (True, 50)

        for y in range(2, 6):
            queue.submit(_task(y))
        gate.set()
        await queue.join()

    asyncio.run(run())

    percents = [p for _, p in recorder.progress]
    assert percents == sorted(percents)
    assert percents.count(100) == 1
    assert recorder.progress[-1] == (False, 100)
    assert recorder.progress == [
        (True, 0),
        (True, 50),
        (True, 50),
        (True, 50),
        (True, 67),
        (True, 83),
        (False, 100),
    ]
