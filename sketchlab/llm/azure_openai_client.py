"""
Azure OpenAI client for sketch generation, explanations, chat and media jobs.
"""

import base64
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from openai import AsyncAzureOpenAI

from sketchlab.config import Config, get_config
from sketchlab.schemas import (
    GenerationRequest,
    GenerationResponse,
    MediaResource,
    Operation,
    ReferenceImage,
    SamplingConfig,
)

logger = logging.getLogger(__name__)


PROMPTS_DIR = Path(__file__).parent.parent / "prompts"


def load_prompt(filename: str) -> str:
    """Load a prompt template from the prompts directory."""
    prompt_path = PROMPTS_DIR / filename
    return prompt_path.read_text(encoding="utf-8")


def completion_options(
    mode: str,
    sampling: Optional[SamplingConfig],
    reasoning: bool,
    max_tokens: int,
) -> Dict[str, Any]:
    """
    Sampling keyword arguments for `chat.completions.create`.

    Reasoning deployments take an effort level and a completion budget
    instead of temperature/top_p, and it only applies in pro mode.
    """
    if mode == "pro" and reasoning:
        return {"reasoning_effort": "high", "max_completion_tokens": max_tokens}

    sampling = sampling or SamplingConfig()
    return {
        "temperature": sampling.temperature,
        "top_p": sampling.top_p,
        "max_tokens": max_tokens,
    }


class AzureOpenAIClient:
    """Async client for Azure OpenAI chat, image and video endpoints."""

    def __init__(self, config: Optional[Config] = None, client: Optional[AsyncAzureOpenAI] = None):
        self.config = config or get_config()

        self.client = client or AsyncAzureOpenAI(
            api_key=self.config.azure_openai_api_key,
            api_version=self.config.azure_openai_api_version,
            azure_endpoint=self.config.azure_openai_endpoint,
        )

    async def __aenter__(self) -> "AzureOpenAIClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.close()

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        """
        Run one sketch generation call.

        The persona prompt and the user's directives travel as one text part,
        followed by the reference image when there is one.

        Args:
            request: Prompt, optional reference image and sampling settings

        Returns:
            GenerationResponse with the raw text and call metadata
        """
        content: List[Dict[str, Any]] = [{"type": "text", "text": request.user_text()}]
        if request.reference_image is not None:
            content.append({
                "type": "image_url",
                "image_url": {"url": request.reference_image.data_url},
            })

        deployment = self.config.deployment_for(request.mode)
        response = await self.client.chat.completions.create(
            model=deployment,
            messages=[{"role": "user", "content": content}],
            **completion_options(request.mode, request.sampling, request.reasoning, 8192),
        )

        choice = response.choices[0]
        usage = response.usage.model_dump() if response.usage else None
        # top_k is not part of the chat completions API; recorded for reference only
        return GenerationResponse(
            text=choice.message.content or "",
            metadata={
                "model": response.model,
                "deployment": deployment,
                "finish_reason": choice.finish_reason,
                "usage": usage,
                "top_k": request.sampling.top_k,
            },
        )

    async def invoke_text(
        self,
        system_prompt: str,
        user_prompt: str,
        chat_history: Optional[List[Dict[str, str]]] = None,
        mode: str = "pro",
        sampling: Optional[SamplingConfig] = None,
        reasoning: bool = False,
    ) -> str:
        """
        Invoke the model for a text response.

        Args:
            system_prompt: Instructions for the assistant
            user_prompt: User's current message
            chat_history: Optional list of previous messages [{"role": "user/assistant", "content": "..."}]
            mode: Performance mode selecting the deployment
            sampling: Temperature/top_p to use, defaults to SamplingConfig()
            reasoning: Request extended reasoning (pro mode only)

        Returns:
            Text response from the model
        """
        messages = [{"role": "system", "content": system_prompt}]

        # Add chat history if provided
        if chat_history:
            for turn in chat_history:
                messages.append({
                    "role": turn.get("role", "user"),
                    "content": turn.get("content", "")
                })

        # Add current user message
        messages.append({"role": "user", "content": user_prompt})

        response = await self.client.chat.completions.create(
            model=self.config.deployment_for(mode),
            messages=messages,
            **completion_options(mode, sampling, reasoning, 2048),
        )

        content = response.choices[0].message.content
        return content or ""

    async def generate_image(
        self,
        prompt: str,
        size: str = "1024x1024",
        reference_image: Optional[ReferenceImage] = None,
    ) -> MediaResource:
        """
        Generate an image, or edit the reference image when one is given.

        Returns:
            MediaResource holding the PNG bytes
        """
        deployment = self.config.azure_openai_image_deployment_name
        if reference_image is not None:
            response = await self.client.images.edit(
                model=deployment,
                image=("reference", reference_image.data, reference_image.mime_type),
                prompt=prompt,
                size=size,
            )
        else:
            response = await self.client.images.generate(
                model=deployment,
                prompt=prompt,
                size=size,
                n=1,
            )

        if not response.data or not response.data[0].b64_json:
            raise ValueError("Image generation returned no image data")
        return MediaResource(
            kind="image",
            mime_type="image/png",
            data=base64.b64decode(response.data[0].b64_json),
        )


class AzureOpenAIVideoJobs:
    """Long-running video jobs on the `videos` resource."""

    def __init__(self, client: AzureOpenAIClient):
        self.client = client.client
        self.model = client.config.azure_openai_video_model

    @staticmethod
    def _to_operation(video: Any) -> Operation:
        status = getattr(video, "status", None)
        error = None
        if status == "failed":
            detail = getattr(video, "error", None)
            error = getattr(detail, "message", None) or "Video generation failed"
        return Operation(
            name=video.id,
            handle=video,
            done=status in ("completed", "failed"),
            result_reference=video.id if status == "completed" else None,
            error=error,
        )

    async def submit(self, prompt: str, size: str = "1280x720", seconds: str = "4") -> Operation:
        """Start a video job."""
        video = await self.client.videos.create(
            model=self.model,
            prompt=prompt,
            size=size,
            seconds=seconds,
        )
        logger.info("Submitted video job %s", video.id)
        return self._to_operation(video)

    async def refresh(self, operation: Operation) -> Operation:
        """Fetch the current state of a job."""
        video = await self.client.videos.retrieve(operation.name)
        return self._to_operation(video)

    async def resolve(self, operation: Operation) -> MediaResource:
        """Download the finished video."""
        content = await self.client.videos.download_content(operation.result_reference, variant="video")
        return MediaResource(kind="video", mime_type="video/mp4", data=content.content)
