"""
Error taxonomy for upstream failures and user-facing error descriptions.
"""

from dataclasses import dataclass
from typing import Literal, Optional

import openai


ErrorCategory = Literal["quota", "auth", "safety", "network", "unknown"]


class UpstreamError(Exception):
    """A generation, poll or download call failed."""
    pass


class BatchGenerationError(UpstreamError):
    """At least one call of a generation batch failed; the whole batch is discarded."""

    def __init__(self, failed: int, total: int, cause: BaseException):
        self.failed = failed
        self.total = total
        super().__init__(f"{failed} of {total} generation calls failed: {cause}")


class OperationFailedError(UpstreamError):
    """A long-running job finished without a result."""
    pass


class UnexpectedResponseError(UpstreamError):
    """The generation service returned a shape that could not be read."""
    pass


@dataclass
class ErrorInfo:
    """User-facing description of a failure."""
    category: ErrorCategory
    title: str
    message: str
    advice: str


def classify_error(exc: BaseException) -> ErrorCategory:
    """Map an exception (or its cause) to an error category."""
    # Unwrap batch/operation wrappers to the original failure
    root: Optional[BaseException] = exc
    while isinstance(root, UpstreamError) and root.__cause__ is not None:
        root = root.__cause__

    if isinstance(root, openai.RateLimitError):
        return "quota"
    if isinstance(root, (openai.AuthenticationError, openai.PermissionDeniedError, openai.NotFoundError)):
        return "auth"
    if isinstance(root, (openai.APIConnectionError, TimeoutError, ConnectionError)):
        return "network"

    text = f"{exc} {root}".lower()
    if "429" in text or "quota" in text or "rate limit" in text:
        return "quota"
    if "401" in text or "403" in text or "api_key" in text or "api key" in text or "not found" in text:
        return "auth"
    if "safety" in text or "blocked" in text or "content_filter" in text or "content filter" in text:
        return "safety"
    if "connection" in text or "timed out" in text or "timeout" in text:
        return "network"
    return "unknown"


def describe_error(exc: BaseException) -> ErrorInfo:
    """Build the title, message and advice shown for a failed operation."""
    category = classify_error(exc)

    if category == "quota":
        return ErrorInfo(
            category=category,
            title="Quota Exceeded",
            message="You've reached the rate limit for this model.",
            advice="Wait a minute before trying again, or switch to the lite mode.",
        )
    if category == "auth":
        return ErrorInfo(
            category=category,
            title="API Key Issue",
            message="There was a problem with your API authentication or deployment name.",
            advice="Check AZURE_OPENAI_API_KEY, AZURE_OPENAI_ENDPOINT and the deployment names in your .env file.",
        )
    if category == "safety":
        return ErrorInfo(
            category=category,
            title="Content Blocked",
            message="The request was flagged by safety filters.",
            advice="Try rephrasing your prompt or using a different image.",
        )
    if category == "network":
        return ErrorInfo(
            category=category,
            title="Connection Problem",
            message="The generation service could not be reached.",
            advice="Check your network connection and the endpoint URL, then try again.",
        )
    return ErrorInfo(
        category=category,
        title="Something went wrong",
        message=str(exc) or "An unexpected error occurred during generation.",
        advice="Try again, or reduce the number of concurrent candidates.",
    )
