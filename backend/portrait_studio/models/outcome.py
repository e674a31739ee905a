"""Backend call outcomes and per-slot results."""
from typing import Union

from pydantic import BaseModel, ConfigDict


class ImageOutcome(BaseModel):
    """The backend returned an image (base64)."""

    model_config = ConfigDict(frozen=True)

    data: str


class RefusedOutcome(BaseModel):
    """The backend refused the request on policy/safety grounds."""

    model_config = ConfigDict(frozen=True)

    reason: str = "SAFETY"


class TextOnlyOutcome(BaseModel):
    """The backend answered with text instead of an image."""

    model_config = ConfigDict(frozen=True)

    text: str = ""


Outcome = Union[ImageOutcome, RefusedOutcome, TextOnlyOutcome]


class SlotFailure(BaseModel):
    """A soft failure for one slot of a fan-out batch."""

    model_config = ConfigDict(frozen=True)

    index: int
    reason: str

    def describe(self) -> str:
        """Human-readable reason tagged with the 1-based slot position."""
        return f"Image {self.index + 1}: {self.reason}"
