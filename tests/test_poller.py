import asyncio

import pytest

from sketchlab.errors import OperationFailedError
from sketchlab.poller import OperationPoller, generate_video
from sketchlab.schemas import MediaResource, Operation


class FakeJobBackend:
    """Reports `done` after `pending_polls` refreshes; each refresh returns a new handle."""

    def __init__(self, pending_polls=2, error=None, fail_refresh_on=None):
        self.pending_polls = pending_polls
        self.error = error
        self.fail_refresh_on = fail_refresh_on
        self.submitted = []
        self.refreshed_handles = []
        self.resolved = []

    async def submit(self, prompt, **options):
        self.submitted.append((prompt, options))
        return Operation(name="videos/job-1", handle=0)

    async def refresh(self, operation):
        self.refreshed_handles.append(operation.handle)
        polls = len(self.refreshed_handles)
        if polls == self.fail_refresh_on:
            raise ConnectionError("status endpoint unreachable")
        done = polls > self.pending_polls
        return Operation(
            name=operation.name,
            handle=polls,
            done=done,
            result_reference="video-1" if done and not self.error else None,
            error=self.error if done else None,
        )

    async def resolve(self, operation):
        self.resolved.append(operation.result_reference)
        return MediaResource(kind="video", mime_type="video/mp4", data=b"\x00\x00\x00\x18ftypmp42")


@pytest.mark.asyncio
async def test_two_pending_polls_then_done_means_three_fetches_and_one_resolution():
    backend = FakeJobBackend(pending_polls=2)
    operation = await backend.submit("a paper boat at dawn")

    media = await OperationPoller(backend, interval=0).wait(operation)

    assert len(backend.refreshed_handles) == 3
    assert backend.resolved == ["video-1"]
    assert media.kind == "video"
    assert media.data.startswith(b"\x00\x00\x00\x18ftyp")


@pytest.mark.asyncio
async def test_each_poll_uses_the_latest_handle():
    backend = FakeJobBackend(pending_polls=3)

    await OperationPoller(backend, interval=0).wait(Operation(name="job", handle=0))

    assert backend.refreshed_handles == [0, 1, 2, 3]


@pytest.mark.asyncio
async def test_already_done_operation_is_resolved_without_polling():
    backend = FakeJobBackend()

    await OperationPoller(backend, interval=0).wait(Operation(name="job", done=True, result_reference="video-9"))

    assert backend.refreshed_handles == []
    assert backend.resolved == ["video-9"]


@pytest.mark.asyncio
async def test_poll_failure_propagates_immediately():
    backend = FakeJobBackend(pending_polls=5, fail_refresh_on=2)

    with pytest.raises(ConnectionError):
        await OperationPoller(backend, interval=0).wait(Operation(name="job"))

    assert len(backend.refreshed_handles) == 2
    assert backend.resolved == []


@pytest.mark.asyncio
async def test_failed_job_raises_without_resolving():
    backend = FakeJobBackend(pending_polls=1, error="Content blocked by safety system")

    with pytest.raises(OperationFailedError, match="safety"):
        await OperationPoller(backend, interval=0).wait(Operation(name="job"))

    assert backend.resolved == []


@pytest.mark.asyncio
async def test_done_without_result_reference_is_a_failure():
    backend = FakeJobBackend()

    with pytest.raises(OperationFailedError, match="without a result"):
        await OperationPoller(backend, interval=0).wait(Operation(name="job", done=True))


@pytest.mark.asyncio
async def test_interval_is_slept_before_every_fetch(monkeypatch):
    sleeps = []
    real_sleep = asyncio.sleep

    async def fake_sleep(delay):
        sleeps.append(delay)
        await real_sleep(0)

    monkeypatch.setattr("sketchlab.poller.asyncio.sleep", fake_sleep)
    backend = FakeJobBackend(pending_polls=2)

    await OperationPoller(backend, interval=5.0).wait(Operation(name="job"))

    assert sleeps == [5.0, 5.0, 5.0]


def test_negative_interval_is_rejected():
    with pytest.raises(ValueError):
        OperationPoller(FakeJobBackend(), interval=-1)


@pytest.mark.asyncio
async def test_cancelling_lets_the_in_flight_fetch_finish():
    class SlowBackend(FakeJobBackend):
        def __init__(self):
            super().__init__(pending_polls=0)
            self.started = asyncio.Event()
            self.release = asyncio.Event()
            self.completed = 0

        async def refresh(self, operation):
            self.started.set()
            await self.release.wait()
            self.completed += 1
            return await super().refresh(operation)

    backend = SlowBackend()
    waiter = asyncio.create_task(OperationPoller(backend, interval=0).wait(Operation(name="job")))
    await backend.started.wait()

    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter

    backend.release.set()
    for _ in range(5):
        await asyncio.sleep(0)

    assert backend.completed == 1
    assert backend.resolved == []


@pytest.mark.asyncio
async def test_generate_video_submits_then_waits():
    backend = FakeJobBackend(pending_polls=1)

    media = await generate_video(backend, "ink drops in water", interval=0, size="1280x720", seconds="4")

    assert backend.submitted == [("ink drops in water", {"size": "1280x720", "seconds": "4"})]
    assert len(backend.refreshed_handles) == 2
    assert media.mime_type == "video/mp4"
