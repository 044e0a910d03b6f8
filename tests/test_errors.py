import pytest

from sketchlab.errors import (
    BatchGenerationError,
    OperationFailedError,
    classify_error,
    describe_error,
)


def _batch_failure(cause: Exception) -> BatchGenerationError:
    try:
        raise BatchGenerationError(1, 3, cause) from cause
    except BatchGenerationError as e:
        return e


@pytest.mark.parametrize("message, category", [
    ("Error code: 429 - Too Many Requests", "quota"),
    ("You exceeded your current quota", "quota"),
    ("Error code: 401 - Access denied due to invalid subscription key", "auth"),
    ("The API deployment for this resource does not exist (not found)", "auth"),
    ("The response was filtered due to the prompt triggering content_filter", "safety"),
    ("Request blocked by safety system", "safety"),
    ("Connection error.", "network"),
    ("Request timed out.", "network"),
    ("division by zero", "unknown"),
])
def test_classification_from_message(message, category):
    assert classify_error(RuntimeError(message)) == category


def test_batch_failure_is_classified_by_its_cause():
    error = _batch_failure(RuntimeError("429 rate limit reached"))

    assert str(error) == "1 of 3 generation calls failed: 429 rate limit reached"
    assert classify_error(error) == "quota"


def test_connection_errors_are_network_failures():
    assert classify_error(ConnectionError("reset by peer")) == "network"
    assert classify_error(TimeoutError()) == "network"


def test_describe_error_titles():
    assert describe_error(RuntimeError("429")).title == "Quota Exceeded"
    assert describe_error(RuntimeError("403 forbidden")).title == "API Key Issue"
    assert describe_error(OperationFailedError("blocked")).title == "Content Blocked"
    assert describe_error(ConnectionError()).title == "Connection Problem"


def test_unknown_error_keeps_its_message():
    info = describe_error(ValueError("bad things"))

    assert info.category == "unknown"
    assert info.title == "Something went wrong"
    assert info.message == "bad things"
    assert info.advice
