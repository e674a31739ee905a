"""Session state, reducer events and the view returned to clients."""
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from portrait_studio.models.conversation import (
    EMPTY_SNAPSHOT,
    ChatTurn,
    ConversationSnapshot,
    HistoryStack,
)
from portrait_studio.models.generation import GenerationRequestSpec


class Step(str, Enum):
    """Top-level step of a studio session."""

    composing = "composing"
    editing = "editing"


class SessionState(BaseModel):
    """Immutable session value. Transitions produce a new instance.

    ``visible`` is what the user sees; it normally equals ``history.current``
    but may run ahead of it by one optimistic user turn while an edit is in
    flight or after an edit failed.
    """

    model_config = ConfigDict(frozen=True)

    step: Step = Step.composing
    loading: bool = False
    error: Optional[str] = None
    spec: Optional[GenerationRequestSpec] = None
    candidates: tuple[str, ...] = ()
    selected_image: Optional[str] = None
    history: HistoryStack = Field(default_factory=HistoryStack)
    visible: ConversationSnapshot = EMPTY_SNAPSHOT
    epoch: int = 0


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class GenerationStarted(_Event):
    spec: GenerationRequestSpec


class GenerationSucceeded(_Event):
    images: tuple[str, ...]


class GenerationFailed(_Event):
    message: str


class CandidateSelected(_Event):
    index: int


class EditStarted(_Event):
    message: str


class EditSucceeded(_Event):
    images: tuple[str, ...]


class EditFailed(_Event):
    message: str
    rollback: bool = False


class UndoRequested(_Event):
    pass


class RedoRequested(_Event):
    pass


class EditingAbandoned(_Event):
    pass


class ErrorRaised(_Event):
    message: str


class ErrorDismissed(_Event):
    pass


SessionEvent = Union[
    GenerationStarted,
    GenerationSucceeded,
    GenerationFailed,
    CandidateSelected,
    EditStarted,
    EditSucceeded,
    EditFailed,
    UndoRequested,
    RedoRequested,
    EditingAbandoned,
    ErrorRaised,
    ErrorDismissed,
]


class SessionView(BaseModel):
    """Response model describing the session to the frontend."""

    step: Step
    loading: bool
    error: Optional[str] = None
    candidates: list[str]
    selected_image: Optional[str] = None
    history: list[ChatTurn]
    version_count: int
    cursor: int
    can_undo: bool
    can_redo: bool
    has_spec: bool

    @classmethod
    def from_state(cls, state: SessionState) -> "SessionView":
        return cls(
            step=state.step,
            loading=state.loading,
            error=state.error,
            candidates=list(state.candidates),
            selected_image=state.selected_image,
            history=list(state.visible.turns),
            version_count=len(state.history.versions),
            cursor=state.history.cursor,
            can_undo=state.history.can_undo and not state.loading,
            can_redo=state.history.can_redo and not state.loading,
            has_spec=state.spec is not None,
        )
