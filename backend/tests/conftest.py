"""Shared test fixtures and configuration."""
import asyncio
from typing import Callable, Optional, Union

import pytest

from portrait_studio.models.generation import ComposedPrompt
from portrait_studio.models.outcome import ImageOutcome, Outcome

ScriptStep = Union[Outcome, Exception]


@pytest.fixture(autouse=True)
def set_required_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set Gemini credentials for all tests."""
    monkeypatch.setenv("GOOGLE_API_KEY", "test-api-key")
    monkeypatch.delenv("USE_VERTEXAI", raising=False)
    monkeypatch.delenv("ROLLBACK_FAILED_EDIT", raising=False)


class ScriptedBackend:
    """In-memory ImageBackend returning scripted outcomes per slot.

    Calls are numbered in the order they start, which matches slot order
    within one batch. Slot i sleeps longer than slot i+1 so that slots
    complete in reverse order.
    """

    def __init__(
        self,
        script: Optional[list[ScriptStep]] = None,
        invert_completion: bool = True,
        ready: bool = True,
    ) -> None:
        self.script = script
        self.invert_completion = invert_completion
        self.ready = ready
        self.prompts: list[ComposedPrompt] = []
        self.completion_order: list[int] = []
        self.preflight_calls = 0

    def preflight(self) -> None:
        from portrait_studio.core.errors import InputError

        self.preflight_calls += 1
        if not self.ready:
            raise InputError("API key is missing. Please check your .env configuration.")

    async def submit(self, prompt: ComposedPrompt) -> Outcome:
        index = len(self.prompts)
        self.prompts.append(prompt)
        if self.invert_completion:
            await asyncio.sleep(0.01 * (4 - index % 4))
        else:
            await asyncio.sleep(0)
        self.completion_order.append(index)
        step: ScriptStep
        if self.script is None:
            step = ImageOutcome(data=f"img-{index}")
        else:
            step = self.script[index]
        if isinstance(step, Exception):
            raise step
        return step


@pytest.fixture
def make_backend() -> Callable[..., ScriptedBackend]:
    return ScriptedBackend
