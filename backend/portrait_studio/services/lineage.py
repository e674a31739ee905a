"""Reference image resolution for the next edit."""
from typing import Optional

from portrait_studio.models.conversation import ConversationSnapshot, Role


def resolve_reference(
    initial_selection: Optional[str],
    snapshot: ConversationSnapshot,
) -> Optional[str]:
    """Return the image the next edit should start from.

    The last image of the last model turn that carries images wins; without
    such a turn the candidate picked at the start of editing is used.

    Args:
        initial_selection: Candidate image chosen when editing began.
        snapshot: Conversation history to scan.

    Returns:
        Base64 image, or None when neither source has an image.
    """
    image_turns = [
        turn for turn in snapshot.turns if turn.role == Role.model and turn.images
    ]
    if image_turns:
        return image_turns[-1].images[-1]
    return initial_selection or None
