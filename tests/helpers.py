import asyncio
import json
from typing import Callable, Iterable, List, Optional

from sketchlab.sandbox.document import STATUS_PREFIX, ExecutionDocument
from sketchlab.sandbox.runtime import SandboxRuntime


def status_payload(candidate_id, status: str, message: Optional[str] = None) -> str:
    """Console line as written by the page's status reporter."""
    payload = {"kind": "status", "candidateId": candidate_id, "status": status}
    if message is not None:
        payload["message"] = message
    return STATUS_PREFIX + json.dumps(payload)


class ScriptedRuntime(SandboxRuntime):
    """
    In-memory runtime: replays console payloads produced by `script(document)`
    instead of evaluating the page.
    """

    def __init__(
        self,
        script: Optional[Callable[[ExecutionDocument], Iterable[str]]] = None,
        raises: Optional[Callable[[ExecutionDocument], Optional[BaseException]]] = None,
    ):
        self.script = script or (lambda doc: [
            status_payload(doc.candidate_id, "loading"),
            status_payload(doc.candidate_id, "success"),
        ])
        self.raises = raises or (lambda doc: None)
        self.documents: List[ExecutionDocument] = []

    async def run(self, document, deliver, settled, timeout):
        self.documents.append(document)
        for payload in self.script(document):
            deliver(payload)
            await asyncio.sleep(0)
        error = self.raises(document)
        if error is not None:
            raise error
