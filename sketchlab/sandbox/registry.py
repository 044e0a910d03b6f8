"""
Candidate Registry - The host's table of live candidates and their run status.

Responsibilities:
- Hold the candidate set currently rendered (keyed by candidate id)
- Apply Status Channel messages by key, dropping stale ids
- Reset status to idle when a candidate's code is edited
"""

import logging
import threading
from typing import Dict, Iterable, Iterator, List, Optional

from sketchlab.schemas import Candidate
from sketchlab.sandbox.channel import StatusMessage

logger = logging.getLogger(__name__)


class CandidateRegistry:
    """
    Owned by the host and passed explicitly to whatever runs sandboxes.

    Message application is last-write-wins per candidate, so duplicate or
    reordered messages across candidates leave the table consistent.
    """

    def __init__(self, candidates: Optional[Iterable[Candidate]] = None):
        self._lock = threading.Lock()
        self._candidates: Dict[int, Candidate] = {}
        for candidate in candidates or []:
            self.add(candidate)

    def __len__(self) -> int:
        return len(self._candidates)

    def __iter__(self) -> Iterator[Candidate]:
        return iter(list(self._candidates.values()))

    def __contains__(self, candidate_id: object) -> bool:
        return candidate_id in self._candidates

    # -------------------------------------------------------------------------
    # Candidate set
    # -------------------------------------------------------------------------

    def add(self, candidate: Candidate) -> None:
        """Register a candidate; ids must be unique among live candidates."""
        with self._lock:
            if candidate.id in self._candidates:
                raise ValueError(f"Candidate id {candidate.id} is already live")
            self._candidates[candidate.id] = candidate

    def remove(self, candidate_id: int) -> Optional[Candidate]:
        """Forget a candidate; later messages for it are discarded."""
        with self._lock:
            return self._candidates.pop(candidate_id, None)

    def replace(self, candidates: Iterable[Candidate]) -> None:
        """Swap in a new batch, dropping every previous candidate."""
        batch = list(candidates)
        ids = [c.id for c in batch]
        if len(set(ids)) != len(ids):
            raise ValueError("Candidate ids in a batch must be unique")
        with self._lock:
            self._candidates = {c.id: c for c in batch}

    def get(self, candidate_id: int) -> Optional[Candidate]:
        return self._candidates.get(candidate_id)

    def live_ids(self) -> List[int]:
        return list(self._candidates.keys())

    def candidates(self) -> List[Candidate]:
        return list(self._candidates.values())

    # -------------------------------------------------------------------------
    # Status updates
    # -------------------------------------------------------------------------

    def apply(self, message: StatusMessage) -> bool:
        """
        Apply a status message to the live candidate it names.

        Returns:
            True if a live candidate was updated, False if the message was dropped
        """
        with self._lock:
            candidate = self._candidates.get(message.candidate_id)
            if candidate is None:
                logger.debug("Dropping status %s for unknown candidate %s", message.status, message.candidate_id)
                return False
            candidate.apply_status(message.status, message.message)
            return True

    def edit_source(self, candidate_id: int, code: str) -> Candidate:
        """Replace a candidate's code; its status goes back to idle."""
        with self._lock:
            candidate = self._candidates.get(candidate_id)
            if candidate is None:
                raise KeyError(f"Unknown candidate: {candidate_id}")
            candidate.edit_source(code)
            return candidate

    def statuses(self) -> Dict[int, str]:
        """Snapshot of candidate id -> status."""
        return {cid: c.status for cid, c in self._candidates.items()}
