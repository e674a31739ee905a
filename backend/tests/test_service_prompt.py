"""Tests for prompt composition heuristics."""
import pytest

from portrait_studio.models.generation import (
    AspectRatio,
    CameraMode,
    GenerationRequestSpec,
    VariantDescriptor,
)
from portrait_studio.services.prompt import (
    CAMERA_SPECS,
    EDIT_BASE_MIME,
    FORM_IMAGE_MIME,
    FRAMING_CINEMATIC_MID_SHOT,
    FRAMING_EXTREME_CLOSE_UP,
    FRAMING_VERTICAL_MID_SHOT,
    FRAMING_VERTICAL_SELFIE,
    GENERATION_VARIANTS,
    NEGATIVE_PROMPT,
    SINGLE_EDIT_VARIANT,
    compose,
    compose_edit,
    edit_image_count,
    edit_variants,
    framing_instruction,
    generation_variants,
    is_major_change,
)

VARIANT = VariantDescriptor(index=0, twist="Use harsh lighting to emphasize raw texture.")


def _spec(**kwargs: object) -> GenerationRequestSpec:
    defaults: dict[str, object] = {"subject_image": "subject"}
    defaults.update(kwargs)
    return GenerationRequestSpec(**defaults)  # type: ignore[arg-type]


class TestFraming:
    """Exactly one of four framing strings, chosen by keyword and aspect ratio."""

    @pytest.mark.parametrize(
        "text, ratio, expected",
        [
            ("a selfie at the beach", AspectRatio.PORTRAIT_9_16, FRAMING_VERTICAL_SELFIE),
            ("a selfie at the beach", AspectRatio.PORTRAIT_3_4, FRAMING_EXTREME_CLOSE_UP),
            ("walking in the park", AspectRatio.PORTRAIT_9_16, FRAMING_VERTICAL_MID_SHOT),
            ("walking in the park", AspectRatio.PORTRAIT_3_4, FRAMING_CINEMATIC_MID_SHOT),
            ("", AspectRatio.PORTRAIT_3_4, FRAMING_CINEMATIC_MID_SHOT),
        ],
    )
    def test_four_way_selection(self, text: str, ratio: AspectRatio, expected: str) -> None:
        assert framing_instruction(text, ratio) == expected

    @pytest.mark.parametrize(
        "text", ["HEADSHOT please", "Close-Up of her", "foto wajah", "Portrait light", "closeup"]
    )
    def test_close_up_keywords_case_insensitive(self, text: str) -> None:
        assert framing_instruction(text, AspectRatio.PORTRAIT_3_4) == FRAMING_EXTREME_CLOSE_UP

    def test_keyword_requires_word_boundary(self) -> None:
        """'surface' contains 'face' but is not a close-up request."""
        assert framing_instruction("rough surface", AspectRatio.PORTRAIT_3_4) == FRAMING_CINEMATIC_MID_SHOT

    def test_framing_is_stable(self) -> None:
        results = {framing_instruction("Selfie time", AspectRatio.PORTRAIT_9_16) for _ in range(5)}
        assert results == {FRAMING_VERTICAL_SELFIE}


class TestCompose:
    def test_reference_image_order(self) -> None:
        prompt = compose(_spec(location_image="loc", outfit_image="outfit"), VARIANT)
        assert [image.data for image in prompt.reference_images] == ["subject", "loc", "outfit"]
        assert all(image.mime_type == FORM_IMAGE_MIME for image in prompt.reference_images)

    def test_missing_optional_images_skipped(self) -> None:
        prompt = compose(_spec(outfit_image="outfit"), VARIANT)
        assert [image.data for image in prompt.reference_images] == ["subject", "outfit"]

    def test_aspect_ratio_carried(self) -> None:
        prompt = compose(_spec(aspect_ratio=AspectRatio.PORTRAIT_9_16), VARIANT)
        assert prompt.aspect_ratio == AspectRatio.PORTRAIT_9_16

    @pytest.mark.parametrize("mode", list(CameraMode))
    def test_camera_spec_embedded(self, mode: CameraMode) -> None:
        prompt = compose(_spec(camera_mode=mode), VARIANT)
        assert CAMERA_SPECS[mode] in prompt.text
        other = next(m for m in CameraMode if m != mode)
        assert CAMERA_SPECS[other] not in prompt.text

    def test_user_fields_and_twist_embedded(self) -> None:
        prompt = compose(
            _spec(location_text="Tokyo alley", outfit_text="denim jacket",
                  body_details="tall", prompt="laughing at a joke"),
            VARIANT,
        )
        assert '"Tokyo alley"' in prompt.text
        assert '"denim jacket"' in prompt.text
        assert '"tall"' in prompt.text
        assert '"laughing at a joke"' in prompt.text
        assert VARIANT.twist in prompt.text

    def test_defaults_for_empty_fields(self) -> None:
        prompt = compose(_spec(), VARIANT)
        assert "a realistic environment" in prompt.text
        assert "realistic daily wear" in prompt.text
        assert "natural and realistic" in prompt.text
        assert "A candid, unposed photo" in prompt.text

    def test_boilerplate_present(self) -> None:
        prompt = compose(_spec(), VARIANT)
        assert "Identity Lock" in prompt.text
        assert NEGATIVE_PROMPT in prompt.text

    def test_framing_follows_prompt_text(self) -> None:
        prompt = compose(_spec(prompt="mirror SELFIE", aspect_ratio=AspectRatio.PORTRAIT_9_16), VARIANT)
        assert FRAMING_VERTICAL_SELFIE in prompt.text

    def test_deterministic(self) -> None:
        assert compose(_spec(prompt="x"), VARIANT) == compose(_spec(prompt="x"), VARIANT)


class TestEditClassification:
    @pytest.mark.parametrize("text", ["change the angle", "new POSE", "ganti latar", "swap background"])
    def test_major_change_keywords(self, text: str) -> None:
        assert is_major_change(text)

    @pytest.mark.parametrize("text", ["make her smile", "add earrings", ""])
    def test_retouch_instructions(self, text: str) -> None:
        assert not is_major_change(text)

    @pytest.mark.parametrize("text", ["give me two options", "a Couple of versions", "dua", "make 2"])
    def test_multiple_keywords(self, text: str) -> None:
        assert edit_image_count(text) == 2

    def test_single_by_default(self) -> None:
        assert edit_image_count("add a hat") == 1
        assert edit_image_count("twofold") == 1


class TestComposeEdit:
    def test_reimagine_mode(self) -> None:
        prompt = compose_edit("base", "change the background to a beach", "identity", None, VARIANT)
        assert "Edit Mode: Re-imagine" in prompt.text
        assert "Edit Mode: Retouch" not in prompt.text

    def test_retouch_mode(self) -> None:
        prompt = compose_edit("base", "add a red scarf", "identity", None, VARIANT)
        assert "Edit Mode: Retouch" in prompt.text
        assert "especially the background, lighting, and original skin texture" in prompt.text

    def test_reference_order_base_then_identity(self) -> None:
        prompt = compose_edit("base", "add a hat", "identity", None, VARIANT)
        assert [image.data for image in prompt.reference_images] == ["base", "identity"]
        assert prompt.reference_images[0].mime_type == EDIT_BASE_MIME
        assert prompt.reference_images[1].mime_type == FORM_IMAGE_MIME

    def test_identity_reference_optional(self) -> None:
        prompt = compose_edit("base", "add a hat", None, None, VARIANT)
        assert [image.data for image in prompt.reference_images] == ["base"]

    def test_context_defaults(self) -> None:
        prompt = compose_edit("base", "add a hat", None, None, VARIANT)
        assert prompt.aspect_ratio == AspectRatio.PORTRAIT_3_4
        assert CAMERA_SPECS[CameraMode.STUDIO_MEDIUM_FORMAT] in prompt.text

    def test_context_spec_applied(self) -> None:
        context = _spec(camera_mode=CameraMode.PHONE_AMATEUR, aspect_ratio=AspectRatio.PORTRAIT_9_16)
        prompt = compose_edit("base", "add a hat", None, context, VARIANT)
        assert prompt.aspect_ratio == AspectRatio.PORTRAIT_9_16
        assert CAMERA_SPECS[CameraMode.PHONE_AMATEUR] in prompt.text

    def test_boilerplate_present(self) -> None:
        prompt = compose_edit("base", "add a hat", None, None, VARIANT)
        assert "Identity Lock" in prompt.text
        assert NEGATIVE_PROMPT in prompt.text
        assert VARIANT.twist in prompt.text


class TestVariants:
    def test_generation_catalog_order(self) -> None:
        variants = generation_variants(4)
        assert [v.index for v in variants] == [0, 1, 2, 3]
        assert [v.twist for v in variants] == list(GENERATION_VARIANTS)

    def test_generation_catalog_cycles(self) -> None:
        variants = generation_variants(6)
        assert variants[4].twist == GENERATION_VARIANTS[0]
        assert variants[5].twist == GENERATION_VARIANTS[1]

    def test_single_edit_variant(self) -> None:
        assert [v.twist for v in edit_variants(1)] == [SINGLE_EDIT_VARIANT]

    def test_double_edit_variants_differ(self) -> None:
        twists = [v.twist for v in edit_variants(2)]
        assert len(set(twists)) == 2
