"""
Status Channel - One-way, identity-tagged messages from a sandbox to the host.

Wire shape (JSON):
    {"kind": "status", "candidateId": <id>, "status": "loading|success|error", "message": "..."}

The channel carries data only. The host applies messages by candidate id and
drops anything addressed to a candidate it no longer shows.
"""

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sketchlab.schemas import RunStatus
from sketchlab.sandbox.document import STATUS_PREFIX

if TYPE_CHECKING:
    from sketchlab.sandbox.registry import CandidateRegistry

logger = logging.getLogger(__name__)


class StatusMessage(BaseModel):
    """A lifecycle report for one candidate run."""
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    kind: Literal["status"] = "status"
    candidate_id: int = Field(..., alias="candidateId", strict=True)
    status: RunStatus
    message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != "loading"

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the JSON-compatible wire shape."""
        return self.model_dump(by_alias=True, exclude_none=True)


def parse_status_message(raw: Union[str, bytes, Dict[str, Any], StatusMessage, None]) -> Optional[StatusMessage]:
    """
    Parse a payload received from a sandbox.

    Accepts a StatusMessage, a wire dict, a JSON string, or a JSON string
    carrying the console status prefix.

    Returns:
        The parsed message, or None when the payload is not a status message
    """
    if raw is None:
        return None
    if isinstance(raw, StatusMessage):
        return raw

    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")

    if isinstance(raw, str):
        text = raw.strip()
        if text.startswith(STATUS_PREFIX):
            text = text[len(STATUS_PREFIX):]
        try:
            raw = json.loads(text)
        except json.JSONDecodeError:
            return None

    if not isinstance(raw, dict) or raw.get("kind") != "status":
        return None

    try:
        return StatusMessage.model_validate(raw)
    except ValidationError:
        return None


class StatusChannel:
    """
    Unbounded queue between sandbox harnesses and the host.

    Sandboxes `post()` without waiting; the host `drain()`s pending messages
    into its registry or `listen()`s continuously.
    """

    def __init__(self):
        self._queue: "asyncio.Queue[StatusMessage]" = asyncio.Queue()

    def post(self, message: StatusMessage) -> None:
        """Send a message; never blocks and never acknowledges."""
        self._queue.put_nowait(message)

    def pending(self) -> int:
        return self._queue.qsize()

    def drain(self, registry: "CandidateRegistry") -> List[StatusMessage]:
        """
        Apply every queued message to the registry.

        Returns:
            Messages that changed a live candidate
        """
        applied = []
        while True:
            try:
                message = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._queue.task_done()
            if registry.apply(message):
                applied.append(message)
        return applied

    async def listen(self, registry: "CandidateRegistry") -> None:
        """Apply messages as they arrive until cancelled."""
        while True:
            message = await self._queue.get()
            registry.apply(message)
            self._queue.task_done()
