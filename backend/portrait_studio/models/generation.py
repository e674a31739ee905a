"""Generation request and composed prompt data models."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CameraMode(str, Enum):
    """Camera look applied to every generated or edited image."""

    STUDIO_MEDIUM_FORMAT = "studio_medium_format"
    PHONE_AMATEUR = "phone_amateur"


class AspectRatio(str, Enum):
    """Supported portrait aspect ratios."""

    PORTRAIT_3_4 = "3:4"
    PORTRAIT_9_16 = "9:16"


class GenerationRequestSpec(BaseModel):
    """Structured description submitted from the compose form.

    Images are base64 strings without a data-URL prefix. The subject image is
    optional at the model level so that its absence can be reported as an
    input error rather than a schema error.
    """

    model_config = ConfigDict(frozen=True)

    subject_image: Optional[str] = None
    location_image: Optional[str] = None
    outfit_image: Optional[str] = None
    location_text: str = ""
    outfit_text: str = ""
    body_details: str = ""
    prompt: str = Field("", max_length=2000)
    camera_mode: CameraMode = CameraMode.STUDIO_MEDIUM_FORMAT
    aspect_ratio: AspectRatio = AspectRatio.PORTRAIT_3_4
    image_count: int = Field(2, ge=1, le=4)


class VariantDescriptor(BaseModel):
    """One slot's creative twist within a fan-out batch."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0)
    twist: str


class ReferenceImage(BaseModel):
    """An inline image handed to the backend alongside the prompt text."""

    model_config = ConfigDict(frozen=True)

    data: str
    mime_type: str = "image/jpeg"


class ComposedPrompt(BaseModel):
    """Backend-ready request: text, ordered reference images, aspect ratio."""

    model_config = ConfigDict(frozen=True)

    text: str
    reference_images: tuple[ReferenceImage, ...] = ()
    aspect_ratio: AspectRatio = AspectRatio.PORTRAIT_3_4
