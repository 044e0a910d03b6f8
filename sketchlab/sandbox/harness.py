"""
Sandbox Harness - Run one candidate in an isolated context and report its lifecycle.

Lifecycle per run:
1. Emit `loading` as soon as the run starts
2. Build the execution document and evaluate it in the runtime
3. Forward the first terminal status (`success` or `error`) reported by the page
4. Any failure of the document build or the runtime itself ends the run as `error`

Whatever happens, the observed sequence for a run is `[loading, success]` or
`[loading, error]`. Errors never escape to the host.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from sketchlab.schemas import Candidate, LibraryAddon, RunStatus
from sketchlab.sandbox.channel import StatusChannel, StatusMessage, parse_status_message
from sketchlab.sandbox.document import DEFAULT_SETTLE_MS, build_document
from sketchlab.sandbox.runtime import SandboxRuntime

logger = logging.getLogger(__name__)


DEFAULT_RUN_TIMEOUT = 20.0


class SandboxHarness:
    """
    Executes one candidate and emits its status messages.

    The addon selection is copied at construction; changing the selection
    afterwards only affects harnesses built later.
    """

    def __init__(
        self,
        candidate: Candidate,
        runtime: SandboxRuntime,
        emit: Callable[[StatusMessage], None],
        addons: Optional[Sequence[LibraryAddon]] = None,
        settle_ms: int = DEFAULT_SETTLE_MS,
        timeout: float = DEFAULT_RUN_TIMEOUT,
    ):
        self.candidate = candidate
        self.runtime = runtime
        self.addons = tuple(addons or ())
        self.settle_ms = settle_ms
        self.timeout = timeout
        self._emit = emit
        self._terminal: Optional[RunStatus] = None
        self._settled = asyncio.Event()
        self.history: List[RunStatus] = []

    @property
    def candidate_id(self) -> int:
        return self.candidate.id

    def _reset(self) -> None:
        self._terminal = None
        self._settled = asyncio.Event()
        self.history = []

    def _report(self, status: RunStatus, message: Optional[str] = None) -> None:
        if self._terminal is not None:
            return
        if status == "loading" and self.history:
            return

        self._emit(StatusMessage(candidate_id=self.candidate_id, status=status, message=message))
        self.history.append(status)
        if status != "loading":
            self._terminal = status
            self._settled.set()

    def _deliver(self, raw: Any) -> None:
        """Handle one raw payload from the page."""
        message = parse_status_message(raw)
        if message is None:
            return
        if message.candidate_id != self.candidate_id:
            logger.debug(
                "Sandbox %s: ignoring status tagged for candidate %s",
                self.candidate_id,
                message.candidate_id,
            )
            return
        self._report(message.status, message.message if message.status == "error" else None)

    async def run(self) -> RunStatus:
        """
        Run the candidate's current code once.

        Returns:
            The terminal status of this run
        """
        self._reset()
        self._report("loading")

        try:
            document = build_document(
                self.candidate_id,
                self.candidate.source_code,
                addons=self.addons,
                settle_ms=self.settle_ms,
            )
            logger.debug(
                "Sandbox %s: evaluating document (wrapped=%s, addons=%s)",
                self.candidate_id,
                document.wrapped,
                [a.id for a in self.addons],
            )
            await self.runtime.run(document, self._deliver, self._settled, self.timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.info("Sandbox %s failed: %s", self.candidate_id, e)
            self._report("error", str(e) or e.__class__.__name__)

        if self._terminal is None:
            self._report("error", "Sketch exited without reporting a result.")

        return self._terminal


async def run_sandboxes(
    candidates: Sequence[Candidate],
    runtime: SandboxRuntime,
    channel: StatusChannel,
    addons: Optional[Dict[int, Sequence[LibraryAddon]]] = None,
    settle_ms: int = DEFAULT_SETTLE_MS,
    timeout: float = DEFAULT_RUN_TIMEOUT,
) -> Dict[int, RunStatus]:
    """
    Run several candidates side by side, each in its own harness.

    Args:
        candidates: Candidates to run
        runtime: Shared runtime; each run still gets its own isolated context
        channel: Status Channel the harnesses post to
        addons: Addon selection per candidate id
        settle_ms: Settling delay before success
        timeout: Per-run ceiling in seconds

    Returns:
        Dict of candidate id -> terminal status
    """
    addons = addons or {}
    harnesses = [
        SandboxHarness(
            candidate,
            runtime,
            channel.post,
            addons=addons.get(candidate.id),
            settle_ms=settle_ms,
            timeout=timeout,
        )
        for candidate in candidates
    ]
    results = await asyncio.gather(*(h.run() for h in harnesses))
    return {h.candidate_id: status for h, status in zip(harnesses, results)}
