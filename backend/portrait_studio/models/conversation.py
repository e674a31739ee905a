"""Conversation turn, snapshot and history stack data models."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Role(str, Enum):
    """Author of a chat turn."""

    user = "user"
    model = "model"


class ChatTurn(BaseModel):
    """One message in the edit conversation. Model turns may carry images."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    images: tuple[str, ...] = ()


class ConversationSnapshot(BaseModel):
    """The full visible history at one point in time."""

    model_config = ConfigDict(frozen=True)

    turns: tuple[ChatTurn, ...] = ()

    def append(self, turn: ChatTurn) -> "ConversationSnapshot":
        """Return a new snapshot with ``turn`` added at the end."""
        return ConversationSnapshot(turns=self.turns + (turn,))


EMPTY_SNAPSHOT = ConversationSnapshot()


class HistoryStack(BaseModel):
    """Committed snapshots ("versions") plus a cursor into them.

    ``versions[0]`` is always the empty snapshot of the session and the cursor
    always points at an existing version.
    """

    model_config = ConfigDict(frozen=True)

    versions: tuple[ConversationSnapshot, ...] = Field(
        default_factory=lambda: (EMPTY_SNAPSHOT,)
    )
    cursor: int = 0

    @model_validator(mode="after")
    def _check_cursor(self) -> "HistoryStack":
        if not self.versions:
            raise ValueError("history stack must hold at least one version")
        if self.versions[0].turns:
            raise ValueError("first version must be the empty snapshot")
        if not 0 <= self.cursor < len(self.versions):
            raise ValueError(
                f"cursor {self.cursor} out of range for {len(self.versions)} versions"
            )
        return self

    @property
    def current(self) -> ConversationSnapshot:
        return self.versions[self.cursor]

    @property
    def can_undo(self) -> bool:
        return self.cursor > 0

    @property
    def can_redo(self) -> bool:
        return self.cursor < len(self.versions) - 1


class MessageRequest(BaseModel):
    """Request model for sending an edit instruction."""

    message: str = Field(..., min_length=1, max_length=2000)


class SelectRequest(BaseModel):
    """Request model for picking one of the generated candidates."""

    index: int = Field(..., ge=0)


class UploadResponse(BaseModel):
    """Encoded form of an uploaded image file."""

    filename: Optional[str] = None
    data: str
