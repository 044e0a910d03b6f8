"""
Orchestrator for the sketch generation pipeline.

Fans one request out into several independent generation calls and turns the
responses into Candidates. Also hosts the explain and chat entry points.
"""

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol

from sketchlab.catalog import find_doc_links
from sketchlab.errors import BatchGenerationError, UnexpectedResponseError
from sketchlab.extract import extract_code, fence
from sketchlab.llm.azure_openai_client import load_prompt
from sketchlab.schemas import (
    Candidate,
    ChatTurn,
    GenerationRequest,
    GenerationResponse,
    PerformanceMode,
    SamplingConfig,
)

logger = logging.getLogger(__name__)


class GenerationService(Protocol):
    """Anything that can answer one generation request."""

    async def generate(self, request: GenerationRequest) -> Any:
        ...


class TextService(Protocol):
    """Anything that can answer a system prompt + user prompt with text."""

    async def invoke_text(
        self,
        system_prompt: str,
        user_prompt: str,
        chat_history: Optional[List[Dict[str, str]]] = None,
        mode: PerformanceMode = "pro",
        sampling: Optional[SamplingConfig] = None,
        reasoning: bool = False,
    ) -> str:
        ...


def _response_text(response: Any) -> str:
    """
    Read the text out of whatever shape the service returned.

    Raises:
        UnexpectedResponseError: If no text can be found
    """
    if isinstance(response, GenerationResponse):
        return response.text
    if isinstance(response, str):
        return response
    if isinstance(response, Mapping):
        for key in ("text", "content"):
            if isinstance(response.get(key), str):
                return response[key]
        raise UnexpectedResponseError(f"Response mapping has no text field (keys: {sorted(response)})")

    text = getattr(response, "text", None)
    if isinstance(text, str):
        return text

    # Chat completion objects
    choices = getattr(response, "choices", None)
    if choices:
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if isinstance(content, str):
            return content
        if message is not None and content is None:
            return ""

    raise UnexpectedResponseError(f"Unsupported response type: {type(response).__name__}")


# =============================================================================
# BATCH GENERATION
# =============================================================================

class GenerationOrchestrator:
    """
    Issues N identical generation calls concurrently and builds one Candidate
    per response.

    A batch is all-or-nothing: if any call fails, no Candidates are returned.
    There is no internal retry.
    """

    def __init__(self, service: GenerationService):
        self.service = service

    async def generate_batch(self, request: GenerationRequest) -> List[Candidate]:
        """
        Generate `request.concurrency` candidates.

        Args:
            request: The generation request, fanned out unchanged to every call

        Returns:
            Candidates in submission order, each with a fresh id and status idle

        Raises:
            BatchGenerationError: If any call failed or returned an unreadable shape
        """
        total = request.concurrency
        logger.info("Starting generation batch of %d (mode=%s)", total, request.mode)

        results = await asyncio.gather(
            *(self._generate_one(request) for _ in range(total)),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        for failure in failures:
            if isinstance(failure, asyncio.CancelledError):
                raise failure
        if failures:
            logger.warning("Generation batch failed: %d of %d calls raised", len(failures), total)
            raise BatchGenerationError(len(failures), total, failures[0]) from failures[0]

        candidates = [
            Candidate(source_code=extract_code(text), raw_response_text=text)
            for text in results
        ]
        logger.info("Generation batch produced candidates %s", [c.id for c in candidates])
        return candidates

    async def _generate_one(self, request: GenerationRequest) -> str:
        response = await self.service.generate(request)
        return _response_text(response)


# =============================================================================
# EXPLAIN AND CHAT
# =============================================================================

async def explain_candidate(service: TextService, candidate: Candidate) -> Dict[str, Any]:
    """
    Ask for a teaching explanation of a candidate's code.

    Args:
        service: Text service (usually the Azure OpenAI client)
        candidate: The candidate to explain

    Returns:
        Dict with 'explanation' and 'doc_links' ([{"name", "url"}])
    """
    system_prompt = load_prompt("explain_system.txt")
    user_prompt = f"Explain this p5.js code clearly for a developer:\n\n{fence(candidate.source_code)}"

    explanation = await service.invoke_text(system_prompt, user_prompt)

    return {
        "explanation": explanation or "Explanation failed.",
        "doc_links": find_doc_links(candidate.source_code, explanation or ""),
    }


async def run_chat(
    service: TextService,
    message: str,
    chat_history: Optional[List[ChatTurn]] = None,
    max_turns: int = 12,
    mode: PerformanceMode = "pro",
    sampling: Optional[SamplingConfig] = None,
    reasoning: bool = False,
) -> Dict[str, Any]:
    """
    Run one chat exchange.

    Args:
        service: Text service (usually the Azure OpenAI client)
        message: The user's message
        chat_history: Previous conversation
        max_turns: How many previous turns are sent along
        mode: Performance mode selected in the sidebar
        sampling: Sampling settings selected in the sidebar
        reasoning: Thinking mode toggle, honoured in pro mode

    Returns:
        Dict with 'response' and the updated 'chat_history'
    """
    chat_history = list(chat_history or [])
    history_for_llm = [
        {"role": turn.role, "content": turn.content}
        for turn in chat_history[-max_turns:]
    ]

    response = await service.invoke_text(
        load_prompt("chat_system.txt"),
        message,
        chat_history=history_for_llm,
        mode=mode,
        sampling=sampling,
        reasoning=reasoning,
    )

    chat_history.append(ChatTurn(role="user", content=message))
    chat_history.append(ChatTurn(role="assistant", content=response))

    return {
        "response": response,
        "chat_history": chat_history,
    }
