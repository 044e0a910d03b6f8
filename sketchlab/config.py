"""
Configuration module for loading and validating environment variables.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


DEFAULT_ENV_PATH = Path(__file__).parent.parent / ".env"


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self, env_path: Optional[Path] = None):
        # Load .env file from project root
        load_dotenv(dotenv_path=env_path or DEFAULT_ENV_PATH)

        self._invalid = []

        # Azure OpenAI settings
        self.azure_openai_api_key = os.getenv("AZURE_OPENAI_API_KEY")
        self.azure_openai_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
        self.azure_openai_deployment_name = os.getenv("AZURE_OPENAI_DEPLOYMENT_NAME")
        self.azure_openai_api_version = os.getenv("AZURE_OPENAI_API_VERSION", "2024-10-21")
        self.azure_openai_lite_deployment_name = (
            os.getenv("AZURE_OPENAI_LITE_DEPLOYMENT_NAME") or self.azure_openai_deployment_name
        )
        self.azure_openai_image_deployment_name = os.getenv("AZURE_OPENAI_IMAGE_DEPLOYMENT_NAME", "gpt-image-1")
        self.azure_openai_video_model = os.getenv("AZURE_OPENAI_VIDEO_MODEL", "sora-2")

        # Generation / sandbox settings
        self.concurrency = self._get_int("SKETCHLAB_CONCURRENCY", 3)
        self.poll_interval = self._get_float("SKETCHLAB_POLL_INTERVAL", 5.0)
        self.settle_ms = self._get_int("SKETCHLAB_SETTLE_MS", 100)
        self.sandbox_timeout = self._get_float("SKETCHLAB_SANDBOX_TIMEOUT", 20.0)
        self.log_level = os.getenv("SKETCHLAB_LOG_LEVEL", "INFO").upper()

        # Validate required settings
        self._validate()

    def _get_int(self, name: str, default: int) -> int:
        raw = os.getenv(name)
        if raw is None or raw.strip() == "":
            return default
        try:
            return int(raw)
        except ValueError:
            self._invalid.append(f"{name}={raw!r} (expected an integer)")
            return default

    def _get_float(self, name: str, default: float) -> float:
        raw = os.getenv(name)
        if raw is None or raw.strip() == "":
            return default
        try:
            return float(raw)
        except ValueError:
            self._invalid.append(f"{name}={raw!r} (expected a number)")
            return default

    def _validate(self):
        """Validate that all required environment variables are set."""
        missing = []

        if not self.azure_openai_api_key:
            missing.append("AZURE_OPENAI_API_KEY")
        if not self.azure_openai_endpoint:
            missing.append("AZURE_OPENAI_ENDPOINT")
        if not self.azure_openai_deployment_name:
            missing.append("AZURE_OPENAI_DEPLOYMENT_NAME")

        if missing:
            raise ConfigError(
                f"Missing required environment variables: {', '.join(missing)}\n"
                "Please create a .env file with these variables. See .env.example for reference."
            )

        if self.concurrency < 1:
            self._invalid.append(f"SKETCHLAB_CONCURRENCY={self.concurrency} (must be at least 1)")
        if self.poll_interval < 0:
            self._invalid.append(f"SKETCHLAB_POLL_INTERVAL={self.poll_interval} (must not be negative)")

        if self._invalid:
            raise ConfigError(f"Invalid environment variables: {'; '.join(self._invalid)}")

    def deployment_for(self, mode: str) -> str:
        """Deployment name for a performance mode ("lite" or "pro")."""
        if mode == "lite":
            return self.azure_openai_lite_deployment_name
        return self.azure_openai_deployment_name


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the host process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
