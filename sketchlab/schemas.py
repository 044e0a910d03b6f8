"""
Pydantic schemas for candidates, generation requests and long-running operations.
"""

import base64
import itertools
import re
import time
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


CandidateStatus = Literal["idle", "loading", "success", "error"]
RunStatus = Literal["loading", "success", "error"]
PerformanceMode = Literal["lite", "pro"]

TERMINAL_STATUSES = ("success", "error")


# =============================================================================
# CANDIDATES
# =============================================================================

# Millisecond start keeps ids distinguishable across sessions; the counter
# keeps them strictly increasing inside one process.
_candidate_ids = itertools.count(int(time.time() * 1000))


def next_candidate_id() -> int:
    """Allocate a fresh candidate id."""
    return next(_candidate_ids)


class Candidate(BaseModel):
    """One generated program plus its lifecycle status."""
    model_config = ConfigDict(validate_assignment=True)

    id: int = Field(default_factory=next_candidate_id, frozen=True, description="Status channel correlation key")
    source_code: str = Field(..., description="Extracted program text, editable by the user")
    raw_response_text: str = Field(..., frozen=True, description="Unmodified text returned by the service")
    status: CandidateStatus = Field("idle", description="Lifecycle status of the latest run")
    last_error: Optional[str] = Field(None, description="Error message, only set when status is error")

    @model_validator(mode="after")
    def _error_only_while_failed(self) -> "Candidate":
        if self.last_error is not None and self.status != "error":
            raise ValueError(f"last_error is only kept in status 'error', not {self.status!r}")
        return self

    # Assignments are validated one at a time, so last_error is cleared
    # before leaving 'error' and set only after entering it.

    def edit_source(self, code: str) -> None:
        """Replace the program text; a previous run result no longer applies."""
        self.source_code = code
        self.last_error = None
        self.status = "idle"

    def apply_status(self, status: CandidateStatus, message: Optional[str] = None) -> None:
        """Record a lifecycle transition."""
        if status == "error":
            self.status = status
            self.last_error = message or "Unknown execution error"
        else:
            self.last_error = None
            self.status = status


# =============================================================================
# GENERATION
# =============================================================================

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)


class ReferenceImage(BaseModel):
    """An image sent along with a generation request."""
    data: bytes
    mime_type: str = "image/jpeg"

    @property
    def data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    @classmethod
    def from_data_url(cls, url: str) -> "ReferenceImage":
        match = _DATA_URL_RE.match(url.strip())
        if not match:
            raise ValueError("Not a base64 data URL")
        return cls(data=base64.b64decode(match.group("data")), mime_type=match.group("mime"))


class SamplingConfig(BaseModel):
    """Sampling parameters passed to the generation service."""
    temperature: float = Field(1.0, ge=0.0, le=2.0)
    top_k: int = Field(64, ge=1)
    top_p: float = Field(0.95, gt=0.0, le=1.0)


class GenerationRequest(BaseModel):
    """One user intent, fanned out into `concurrency` identical calls."""
    prompt: str = Field(..., description="Persona / system prompt text")
    instructions: str = Field("", description="Additional user directives")
    reference_image: Optional[ReferenceImage] = None
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    concurrency: int = Field(3, ge=1, description="Number of independent candidates to generate")
    mode: PerformanceMode = "pro"
    reasoning: bool = Field(False, description="Extended reasoning, honoured in pro mode only")

    def user_text(self) -> str:
        if self.instructions.strip():
            return f"{self.prompt}\n\nInstructions: {self.instructions.strip()}"
        return self.prompt


class GenerationResponse(BaseModel):
    """Text returned by one generation call."""
    text: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# LONG-RUNNING OPERATIONS
# =============================================================================

class Operation(BaseModel):
    """Handle to a job that completes asynchronously."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(..., description="Job identifier")
    handle: Any = Field(None, description="Most recent raw job object returned by the service")
    done: bool = False
    result_reference: Optional[str] = Field(None, description="Opaque result handle, set once done")
    error: Optional[str] = Field(None, description="Failure reason when the job ended unsuccessfully")


class MediaResource(BaseModel):
    """A ready-to-display generated asset."""
    kind: Literal["image", "video"]
    mime_type: str
    data: bytes

    @property
    def data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


# =============================================================================
# ADDONS AND CHAT
# =============================================================================

class LibraryAddon(BaseModel):
    """An optional script injected into a sandbox before the program runs."""
    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    resource_locator: str


class ChatTurn(BaseModel):
    """A single turn in a conversation."""
    role: Literal["user", "assistant"] = Field(..., description="Role of the speaker")
    content: str = Field(..., description="Message content")
