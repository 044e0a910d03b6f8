"""
Operation Poller - Wait for long-running jobs and fetch their result.

Flow:
1. Submit a job through a JobBackend and get an Operation back
2. While the Operation is not done: sleep a fixed interval, then refresh it
   using the most recently returned Operation
3. Raise if the job failed, otherwise resolve the result reference once
"""

import asyncio
import logging
from typing import Optional, Protocol, Set

from sketchlab.errors import OperationFailedError
from sketchlab.schemas import MediaResource, Operation

logger = logging.getLogger(__name__)


DEFAULT_POLL_INTERVAL = 5.0


class JobBackend(Protocol):
    """Submit, refresh and resolve long-running jobs."""

    async def submit(self, prompt: str, **options) -> Operation:
        ...

    async def refresh(self, operation: Operation) -> Operation:
        ...

    async def resolve(self, operation: Operation) -> MediaResource:
        ...


class OperationPoller:
    """
    Explicit polling loop over an Operation.

    No timeout and no retry: a failed refresh or resolve propagates at once.
    Cancelling the waiting task stops polling; a refresh already in flight is
    left to finish and its result is dropped.
    """

    def __init__(self, backend: JobBackend, interval: float = DEFAULT_POLL_INTERVAL):
        if interval < 0:
            raise ValueError("Poll interval must not be negative")
        self.backend = backend
        self.interval = interval
        self._abandoned: Set[asyncio.Future] = set()

    async def _refresh(self, operation: Operation) -> Operation:
        fetch = asyncio.ensure_future(self.backend.refresh(operation))
        try:
            return await asyncio.shield(fetch)
        except asyncio.CancelledError:
            if not fetch.done():
                logger.info("Poll for %s cancelled; letting the in-flight fetch finish", operation.name)
                self._abandoned.add(fetch)
                fetch.add_done_callback(self._discard_result)
            raise

    def _discard_result(self, fetch: "asyncio.Future") -> None:
        self._abandoned.discard(fetch)
        if not fetch.cancelled() and fetch.exception() is not None:
            logger.debug("Discarded in-flight poll failure: %s", fetch.exception())

    async def wait(self, operation: Operation) -> MediaResource:
        """
        Poll until the operation is done, then fetch its result.

        Args:
            operation: Operation returned by `JobBackend.submit`

        Returns:
            The finished media resource

        Raises:
            OperationFailedError: If the job finished with an error or without a result
        """
        polls = 0
        while not operation.done:
            await asyncio.sleep(self.interval)
            operation = await self._refresh(operation)
            polls += 1
            logger.debug("Operation %s poll %d: done=%s", operation.name, polls, operation.done)

        if operation.error:
            raise OperationFailedError(f"Operation {operation.name} failed: {operation.error}")
        if not operation.result_reference:
            raise OperationFailedError(f"Operation {operation.name} finished without a result")

        logger.info("Operation %s done after %d polls; fetching result", operation.name, polls)
        return await self.backend.resolve(operation)


async def generate_video(
    backend: JobBackend,
    prompt: str,
    interval: Optional[float] = None,
    **options,
) -> MediaResource:
    """
    Submit a video job and wait for the finished clip.

    Args:
        backend: Job backend (usually AzureOpenAIVideoJobs)
        prompt: Text description of the clip
        interval: Seconds between polls
        **options: Passed through to `backend.submit`

    Returns:
        MediaResource holding the video bytes
    """
    operation = await backend.submit(prompt, **options)
    poller = OperationPoller(backend, DEFAULT_POLL_INTERVAL if interval is None else interval)
    return await poller.wait(operation)
