import pytest

from sketchlab.schemas import Candidate


@pytest.fixture
def candidate():
    return Candidate(source_code="background(220);", raw_response_text="```js\nbackground(220);\n```")


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable the config reads."""
    for name in [
        "AZURE_OPENAI_API_KEY",
        "AZURE_OPENAI_ENDPOINT",
        "AZURE_OPENAI_DEPLOYMENT_NAME",
        "AZURE_OPENAI_API_VERSION",
        "AZURE_OPENAI_LITE_DEPLOYMENT_NAME",
        "AZURE_OPENAI_IMAGE_DEPLOYMENT_NAME",
        "AZURE_OPENAI_VIDEO_MODEL",
        "SKETCHLAB_CONCURRENCY",
        "SKETCHLAB_POLL_INTERVAL",
        "SKETCHLAB_SETTLE_MS",
        "SKETCHLAB_SANDBOX_TIMEOUT",
        "SKETCHLAB_LOG_LEVEL",
    ]:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
