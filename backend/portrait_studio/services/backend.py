"""Gemini image backend: submits composed prompts and classifies responses."""
import base64
import logging
from typing import Any, Optional, Protocol

from google import genai  # type: ignore[import-untyped]
from google.genai import types  # type: ignore[import-untyped]

from portrait_studio.core.config import Settings
from portrait_studio.core.errors import InputError
from portrait_studio.models.generation import ComposedPrompt
from portrait_studio.models.outcome import (
    ImageOutcome,
    Outcome,
    RefusedOutcome,
    TextOnlyOutcome,
)

logger = logging.getLogger(__name__)

# Finish reasons reported when the model declines on policy grounds.
REFUSAL_FINISH_REASONS = frozenset({"SAFETY", "IMAGE_SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST"})

MISSING_CREDENTIALS_MESSAGE = "API key is missing. Please check your .env configuration."


class ImageBackend(Protocol):
    """Capability consumed by the fan-out orchestrator.

    ``submit`` returns one of the outcome values; transport problems are
    raised as exceptions and treated as soft failures by the caller.
    """

    def preflight(self) -> None: ...

    async def submit(self, prompt: ComposedPrompt) -> Outcome: ...


def _enum_name(value: Any) -> Optional[str]:
    if value is None:
        return None
    name = getattr(value, "value", value)
    return str(name).upper()


def parse_response(response: Any) -> Outcome:
    """Classify a ``generate_content`` response.

    Args:
        response: Response object returned by the Gemini API.

    Returns:
        ImageOutcome for the first inline image, RefusedOutcome when blocked
        on policy grounds, otherwise TextOnlyOutcome with any returned text.
    """
    feedback = getattr(response, "prompt_feedback", None)
    block_reason = _enum_name(getattr(feedback, "block_reason", None))
    if block_reason and block_reason != "BLOCKED_REASON_UNSPECIFIED":
        return RefusedOutcome(reason=block_reason)

    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return TextOnlyOutcome(text="")
    candidate = candidates[0]

    finish_reason = _enum_name(getattr(candidate, "finish_reason", None))
    if finish_reason in REFUSAL_FINISH_REASONS:
        return RefusedOutcome(reason=finish_reason)

    content = getattr(candidate, "content", None)
    parts = getattr(content, "parts", None) or []
    for part in parts:
        inline_data = getattr(part, "inline_data", None)
        if inline_data is not None and inline_data.data:
            return ImageOutcome(data=base64.b64encode(bytes(inline_data.data)).decode("ascii"))

    for part in parts:
        text = getattr(part, "text", None)
        if text:
            return TextOnlyOutcome(text=text)
    return TextOnlyOutcome(text="")


class GeminiImageBackend:
    """Calls the Gemini image model through google-genai's async client."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._client: Optional[genai.Client] = None

    def preflight(self) -> None:
        """Fail fast when no credential is configured.

        Raises:
            InputError: Neither an API key nor a Vertex AI project is set.
        """
        if not self.settings.has_credentials:
            raise InputError(MISSING_CREDENTIALS_MESSAGE)

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if self.settings.use_vertexai:
                self._client = genai.Client(
                    vertexai=True,
                    project=self.settings.gcp_project_id,
                    location=self.settings.vertex_ai_location,
                )
            else:
                self._client = genai.Client(api_key=self.settings.google_api_key)
        return self._client

    def build_contents(self, prompt: ComposedPrompt) -> list[types.Part]:
        """Prompt text first, then the reference images in order."""
        contents = [types.Part(text=prompt.text)]
        for image in prompt.reference_images:
            contents.append(
                types.Part(
                    inline_data=types.Blob(
                        data=base64.b64decode(image.data),
                        mime_type=image.mime_type,
                    )
                )
            )
        return contents

    async def submit(self, prompt: ComposedPrompt) -> Outcome:
        response = await self.client.aio.models.generate_content(
            model=self.settings.image_model,
            contents=self.build_contents(prompt),
            config=types.GenerateContentConfig(
                image_config=types.ImageConfig(aspect_ratio=prompt.aspect_ratio.value),
            ),
        )
        outcome = parse_response(response)
        logger.debug("Gemini outcome: %s", type(outcome).__name__)
        return outcome
