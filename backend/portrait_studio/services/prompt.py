"""Prompt composition for portrait generation and edit requests.

Everything here is pure: identical inputs always produce identical prompts.
The keyword lists are matched case-insensitively on word boundaries and
include the Indonesian terms users type alongside English ones.
"""
import re
from typing import Optional

from portrait_studio.models.generation import (
    AspectRatio,
    CameraMode,
    ComposedPrompt,
    GenerationRequestSpec,
    ReferenceImage,
    VariantDescriptor,
)

CLOSE_UP_PATTERN = re.compile(
    r"\b(selfie|selpi|close-up|closeup|face|wajah|muka|kepala|portrait|headshot|dekat)\b",
    re.IGNORECASE,
)
MAJOR_CHANGE_PATTERN = re.compile(
    r"\b(sudut|angle|pose|gaya|latar|background|view|pandangan|lokasi|pindah)\b",
    re.IGNORECASE,
)
MULTIPLE_PATTERN = re.compile(
    r"\b(2|two|dua|couple|pair|double|sepasang|banyak)\b",
    re.IGNORECASE,
)

FRAMING_VERTICAL_SELFIE = (
    "Framing: Vertical Selfie (9:16). Camera arm's length. Face fills 40-60% of width."
)
FRAMING_EXTREME_CLOSE_UP = (
    "Framing: Extreme Close-up (Macro). Focus intensely on skin texture."
)
FRAMING_VERTICAL_MID_SHOT = (
    "Framing: Vertical Full/Mid Shot (9:16). Show outfit from knees/waist up."
)
FRAMING_CINEMATIC_MID_SHOT = "Framing: Cinematic Mid-shot (Waist up)."

CAMERA_SPECS: dict[CameraMode, str] = {
    CameraMode.STUDIO_MEDIUM_FORMAT: (
        "Phase One XF IQ4 150MP (Medium Format). Lens: Rodenstock HR Digaron-W 32mm f/4. "
        "Settings: f/8 for maximum texture detail. "
        "Look: Hyper-detailed, optical perfection, RAW render."
    ),
    CameraMode.PHONE_AMATEUR: (
        "iPhone 15 Pro Max (Main Sensor). Settings: RAW mode, NO computational smoothing. "
        'Artifacts: Visible sensor noise/grain. Look: "Phone Photo", amateur composition.'
    ),
}

GENERATION_VARIANTS: tuple[str, ...] = (
    "Create a candid moment, imperfect shutter timing.",
    "Use harsh lighting to emphasize raw texture.",
    "Apply an off-center, documentary-style composition.",
    "Add slight motion blur on edges for a dynamic feel.",
)
EDIT_VARIANTS: tuple[str, ...] = (
    "Generate the first variation.",
    "Generate a second, different variation.",
)
SINGLE_EDIT_VARIANT = "Generate the result."

NEGATIVE_PROMPT = (
    "**Negative Prompt (Do Not Include):**\n"
    "--style: beauty filter, smooth skin, studio lighting, perfect symmetry, model posing, "
    "overprocessed, airbrushed, plastic, doll, cgi, 3d render, illustration, cartoon, anime"
)

GENERATION_IDENTITY_LOCK = (
    "- **Identity Lock:** The person's face must be an exact match to the first input image. "
    "This is the highest priority."
)
EDIT_IDENTITY_LOCK = (
    "- **Identity Lock:** The person's face MUST be an exact match to the second input image "
    "(the identity reference)."
)

DEFAULT_CORE_PROMPT = "A candid, unposed photo of the person from the first input image."

FORM_IMAGE_MIME = "image/jpeg"
EDIT_BASE_MIME = "image/png"


def is_close_up(text: str) -> bool:
    return CLOSE_UP_PATTERN.search(text or "") is not None


def is_major_change(instruction: str) -> bool:
    return MAJOR_CHANGE_PATTERN.search(instruction or "") is not None


def edit_image_count(instruction: str) -> int:
    """Return 2 when the instruction asks for several results, else 1."""
    return 2 if MULTIPLE_PATTERN.search(instruction or "") else 1


def framing_instruction(text: str, aspect_ratio: AspectRatio) -> str:
    """Pick exactly one of the four framing strings.

    Args:
        text: The user's creative prompt.
        aspect_ratio: Target aspect ratio of the image.

    Returns:
        The framing directive embedded in the generation prompt.
    """
    vertical = aspect_ratio == AspectRatio.PORTRAIT_9_16
    if is_close_up(text):
        return FRAMING_VERTICAL_SELFIE if vertical else FRAMING_EXTREME_CLOSE_UP
    return FRAMING_VERTICAL_MID_SHOT if vertical else FRAMING_CINEMATIC_MID_SHOT


def camera_spec(camera_mode: Optional[CameraMode]) -> str:
    if camera_mode is None:
        return CAMERA_SPECS[CameraMode.STUDIO_MEDIUM_FORMAT]
    return CAMERA_SPECS[camera_mode]


def generation_variants(count: int) -> list[VariantDescriptor]:
    """Cycle the generation catalog to ``count`` descriptors."""
    return [
        VariantDescriptor(index=i, twist=GENERATION_VARIANTS[i % len(GENERATION_VARIANTS)])
        for i in range(count)
    ]


def edit_variants(count: int) -> list[VariantDescriptor]:
    """Descriptors for an edit batch; a single edit gets a plain instruction."""
    if count == 1:
        return [VariantDescriptor(index=0, twist=SINGLE_EDIT_VARIANT)]
    return [
        VariantDescriptor(index=i, twist=EDIT_VARIANTS[i % len(EDIT_VARIANTS)])
        for i in range(count)
    ]


def compose(spec: GenerationRequestSpec, variant: VariantDescriptor) -> ComposedPrompt:
    """Build the generation prompt for one slot.

    Reference images are ordered subject, location, outfit; absent ones are
    skipped so the subject is always the first input image.
    """
    core_prompt = spec.prompt or DEFAULT_CORE_PROMPT
    framing = framing_instruction(spec.prompt, spec.aspect_ratio)
    text = f"""
Generate a raw, unedited, candid photograph of the person from the first input image.

The setting is "{spec.location_text or 'a realistic environment'}", and the lighting must strictly match the second input image (if provided). The subject is wearing "{spec.outfit_text or 'realistic daily wear'}", with physical characteristics described as "{spec.body_details or 'natural and realistic'}". The main creative idea for the photo is: "{core_prompt}". For this specific version, the creative twist is: "{variant.twist}".

**Mandatory Technical & Realism Directives:**
- **Camera & Framing:** The photo must look like it was taken with a {camera_spec(spec.camera_mode)}, using this framing: {framing}.
{GENERATION_IDENTITY_LOCK}
- **Raw Realism:** Render hyper-realistic, imperfect skin with visible texture, subtle pores, and natural, uneven skin tone. The hairline must be imperfect with stray hairs. Absolutely no digital smoothing or beautification.

{NEGATIVE_PROMPT}
"""
    images = [
        ReferenceImage(data=blob, mime_type=FORM_IMAGE_MIME)
        for blob in (spec.subject_image, spec.location_image, spec.outfit_image)
        if blob
    ]
    return ComposedPrompt(
        text=text,
        reference_images=tuple(images),
        aspect_ratio=spec.aspect_ratio,
    )


def compose_edit(
    reference_image: str,
    instruction: str,
    identity_reference: Optional[str],
    context_spec: Optional[GenerationRequestSpec],
    variant: VariantDescriptor,
) -> ComposedPrompt:
    """Build the edit prompt for one slot.

    Structural instructions (pose, angle, background...) switch to re-imagine
    mode; anything else is a retouch that preserves unstated attributes.
    Camera and aspect ratio come from the original form when available.
    """
    if is_major_change(instruction):
        mode_rules = f"""
**Edit Mode: Re-imagine**
Re-create the scene and pose based on the user's instruction: "{instruction}". The new scene's lighting, camera style, and realism level must match the aesthetic of the first input image.
"""
    else:
        mode_rules = f"""
**Edit Mode: Retouch**
Apply this specific change: "{instruction}". Preserve all other details from the first input image, especially the background, lighting, and original skin texture.
"""
    camera_mode = context_spec.camera_mode if context_spec is not None else None
    aspect_ratio = (
        context_spec.aspect_ratio if context_spec is not None else AspectRatio.PORTRAIT_3_4
    )
    text = f"""
You are editing a photograph. The first input image is the base to edit. The second input image (if provided) is the definitive reference for the person's facial identity.

{mode_rules}

**Universal Rules (Mandatory):**
{EDIT_IDENTITY_LOCK}
- **Camera Consistency:** The final edit must look like it was taken with a {camera_spec(camera_mode)}.
- **Raw Realism:** Maintain realistic, imperfect skin texture. Do not add any digital smoothing or beauty filters.
- **Variation Note for this version:** {variant.twist}.

{NEGATIVE_PROMPT}
"""
    images = [ReferenceImage(data=reference_image, mime_type=EDIT_BASE_MIME)]
    if identity_reference:
        images.append(ReferenceImage(data=identity_reference, mime_type=FORM_IMAGE_MIME))
    return ComposedPrompt(
        text=text,
        reference_images=tuple(images),
        aspect_ratio=aspect_ratio,
    )
