"""Exception hierarchy for the portrait studio.

Per-slot backend failures are never raised; they are collected as
``SlotFailure`` values by the orchestrator and only escalate to a
``BatchFailure`` when an entire batch comes back empty.
"""


class StudioError(Exception):
    """Base class for errors surfaced to the user as a single message."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputError(StudioError):
    """Invalid or missing input detected before any backend call."""


class ImageReadError(InputError):
    """An uploaded file could not be read or encoded."""

    def __init__(self, filename: str) -> None:
        super().__init__(
            f"Failed to read file {filename}. The file may be corrupt or unsupported."
        )
        self.filename = filename


class BatchFailure(StudioError):
    """Every slot of a fan-out batch failed."""

    def __init__(self, header: str, reasons: list[str]) -> None:
        super().__init__(f"{header}\nDetail: " + "\n".join(reasons))
        self.reasons = reasons


class ReferenceResolutionFailure(StudioError):
    """No reference image could be found for an edit."""


class SessionBusyError(StudioError):
    """A generation or edit batch is already in flight for this session."""


class InvalidTransitionError(StudioError):
    """The requested action is not allowed in the current session step."""
