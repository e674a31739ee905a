"""Undo/redo over committed conversation snapshots.

All functions return a new ``HistoryStack``; snapshots are never modified.
"""
from portrait_studio.models.conversation import ConversationSnapshot, HistoryStack


def reset() -> HistoryStack:
    """Fresh stack holding only the empty snapshot."""
    return HistoryStack()


def commit(stack: HistoryStack, snapshot: ConversationSnapshot) -> HistoryStack:
    """Record ``snapshot`` as the newest version.

    Versions after the cursor (left over from an undo) are dropped first, so
    they can no longer be reached by redo.
    """
    versions = stack.versions[: stack.cursor + 1] + (snapshot,)
    return HistoryStack(versions=versions, cursor=len(versions) - 1)


def undo(stack: HistoryStack) -> HistoryStack:
    """Move the cursor back one version; no-op at the first version."""
    if not stack.can_undo:
        return stack
    return HistoryStack(versions=stack.versions, cursor=stack.cursor - 1)


def redo(stack: HistoryStack) -> HistoryStack:
    """Move the cursor forward one version; no-op at the last version."""
    if not stack.can_redo:
        return stack
    return HistoryStack(versions=stack.versions, cursor=stack.cursor + 1)
