"""Fan-out orchestration of generation and edit batches."""
import asyncio
import json
from typing import Optional, Union

from portrait_studio.core.errors import BatchFailure, InputError, ReferenceResolutionFailure
from portrait_studio.core.logging import setup_logging
from portrait_studio.models.generation import ComposedPrompt, GenerationRequestSpec
from portrait_studio.models.outcome import (
    ImageOutcome,
    RefusedOutcome,
    SlotFailure,
    TextOnlyOutcome,
)
from portrait_studio.services.backend import ImageBackend
from portrait_studio.services.prompt import (
    compose,
    compose_edit,
    edit_image_count,
    edit_variants,
    generation_variants,
)

logger = setup_logging("orchestrator")

MAX_CALLS = 4
TEXT_PREVIEW_LENGTH = 100
GENERATION_FAILED_HEADER = "Failed to generate images."
EDIT_FAILED_HEADER = "Failed to edit the image."
NO_REFERENCE_MESSAGE = "No reference image available. Please start over."

SlotResult = Union[ImageOutcome, SlotFailure]


def describe_transport_error(exc: BaseException) -> str:
    """Extract the most specific message from a backend exception.

    Prefers ``error.message`` from a structured payload, either attached to
    the exception as ``details`` or embedded as JSON inside the message.
    """
    details = getattr(exc, "details", None)
    if isinstance(details, dict):
        error = details.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])

    message = getattr(exc, "message", None) or str(exc)
    if not message:
        return type(exc).__name__
    start = message.find("{")
    if start == -1:
        return message
    try:
        payload = json.loads(message[start:])
    except ValueError:
        return message
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        return payload["error"].get("message") or message
    return message


class FanOutOrchestrator:
    """Issues one backend call per slot concurrently and aggregates the outcomes.

    A batch succeeds when at least one slot returns an image; failed slots are
    dropped. Only when every slot fails is a single BatchFailure raised, listing
    every slot's reason by its 1-based position. Slots are never retried.
    """

    def __init__(self, backend: ImageBackend, max_calls: int = MAX_CALLS) -> None:
        if max_calls < 1:
            raise ValueError(f"max_calls must be at least 1, got {max_calls}")
        self.backend = backend
        self.max_calls = min(max_calls, MAX_CALLS)

    def check_generation(self, spec: GenerationRequestSpec) -> None:
        """Raise InputError when a generation cannot be attempted."""
        if not spec.subject_image:
            raise InputError("Subject image is required.")
        self.backend.preflight()

    def check_edit(self) -> None:
        """Raise InputError when an edit cannot be attempted."""
        self.backend.preflight()

    async def generate(self, spec: GenerationRequestSpec) -> list[str]:
        """Generate ``spec.image_count`` candidate portraits.

        Args:
            spec: The submitted compose form.

        Returns:
            Successful images in slot order.

        Raises:
            InputError: Subject image or credentials missing.
            BatchFailure: No slot produced an image.
        """
        self.check_generation(spec)
        count = min(spec.image_count, self.max_calls)
        prompts = [compose(spec, variant) for variant in generation_variants(count)]
        return await self._fan_out(prompts, GENERATION_FAILED_HEADER, batch="generate")

    async def edit(
        self,
        reference_image: Optional[str],
        instruction: str,
        identity_reference: Optional[str] = None,
        context_spec: Optional[GenerationRequestSpec] = None,
    ) -> list[str]:
        """Apply an edit instruction to ``reference_image``.

        Produces two variants when the instruction asks for several, else one.

        Raises:
            ReferenceResolutionFailure: No image to edit.
            InputError: Credentials missing.
            BatchFailure: No slot produced an image.
        """
        if not reference_image:
            raise ReferenceResolutionFailure(NO_REFERENCE_MESSAGE)
        self.check_edit()

        count = min(edit_image_count(instruction), self.max_calls)
        prompts = [
            compose_edit(reference_image, instruction, identity_reference, context_spec, variant)
            for variant in edit_variants(count)
        ]
        return await self._fan_out(prompts, EDIT_FAILED_HEADER, batch="edit")

    async def _fan_out(
        self, prompts: list[ComposedPrompt], header: str, batch: str
    ) -> list[str]:
        # gather keeps results aligned with slot order whatever the completion order
        results: list[SlotResult] = await asyncio.gather(
            *(self._run_slot(index, prompt, batch) for index, prompt in enumerate(prompts))
        )
        images = [result.data for result in results if isinstance(result, ImageOutcome)]
        failures = [result for result in results if isinstance(result, SlotFailure)]

        if not images:
            logger.error(
                "%s batch failed: all %d slots failed",
                batch,
                len(results),
                extra={"batch": batch, "error_type": "BatchFailure"},
            )
            raise BatchFailure(header, [failure.describe() for failure in failures])

        if failures:
            logger.info(
                "%s batch partially succeeded: %d/%d images",
                batch,
                len(images),
                len(results),
                extra={"batch": batch},
            )
        return images

    async def _run_slot(self, index: int, prompt: ComposedPrompt, batch: str) -> SlotResult:
        try:
            outcome = await self.backend.submit(prompt)
        except Exception as exc:
            logger.warning(
                "Slot %d backend error: %s: %s",
                index + 1,
                type(exc).__name__,
                exc,
                extra={"slot": index, "batch": batch, "error_type": type(exc).__name__},
            )
            return SlotFailure(index=index, reason=f"Error: {describe_transport_error(exc)}")

        if isinstance(outcome, ImageOutcome):
            return outcome
        if isinstance(outcome, RefusedOutcome):
            logger.warning(
                "Slot %d refused: %s", index + 1, outcome.reason,
                extra={"slot": index, "batch": batch},
            )
            return SlotFailure(
                index=index, reason=f"Rejected by safety policy ({outcome.reason})."
            )
        if isinstance(outcome, TextOnlyOutcome) and outcome.text:
            logger.warning(
                "Slot %d returned text instead of an image", index + 1,
                extra={"slot": index, "batch": batch},
            )
            preview = outcome.text[:TEXT_PREVIEW_LENGTH]
            return SlotFailure(
                index=index, reason=f'Model responded with text ("{preview}...")'
            )
        return SlotFailure(index=index, reason="No content")
