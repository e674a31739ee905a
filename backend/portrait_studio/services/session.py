"""Studio session: reducer over SessionState plus the async controller driving it.

The reducer is a pure function ``(state, event) -> state``. The controller owns
the single current state, dispatches events around each backend batch and
discards results that arrive after the user abandoned editing.
"""
import asyncio
from typing import Optional

from portrait_studio.core.errors import (
    InputError,
    InvalidTransitionError,
    SessionBusyError,
    StudioError,
)
from portrait_studio.core.logging import setup_logging
from portrait_studio.models.conversation import EMPTY_SNAPSHOT, ChatTurn, Role
from portrait_studio.models.generation import GenerationRequestSpec
from portrait_studio.models.session import (
    CandidateSelected,
    EditFailed,
    EditingAbandoned,
    EditStarted,
    EditSucceeded,
    ErrorDismissed,
    ErrorRaised,
    GenerationFailed,
    GenerationStarted,
    GenerationSucceeded,
    RedoRequested,
    SessionEvent,
    SessionState,
    Step,
    UndoRequested,
)
from portrait_studio.services import history
from portrait_studio.services.lineage import resolve_reference
from portrait_studio.services.orchestrator import (
    EDIT_FAILED_HEADER,
    GENERATION_FAILED_HEADER,
    NO_REFERENCE_MESSAGE,
    FanOutOrchestrator,
)

logger = setup_logging("session")

MODEL_REPLY = "Here is the result:"
BUSY_MESSAGE = "A generation is already in progress."
CANCELLED_MESSAGE = "The request was cancelled before it finished."


def reduce(state: SessionState, event: SessionEvent) -> SessionState:
    """Apply one event to the session state.

    Raises:
        SessionBusyError: A new batch was started while one is in flight.
        InvalidTransitionError: The event is not allowed in the current step.
    """
    if isinstance(event, GenerationStarted):
        if state.loading:
            raise SessionBusyError(BUSY_MESSAGE)
        if state.step != Step.composing:
            raise InvalidTransitionError("Return to the form before generating new images.")
        return state.model_copy(update={"loading": True, "error": None, "spec": event.spec})

    if isinstance(event, GenerationSucceeded):
        return state.model_copy(update={"loading": False, "candidates": event.images})

    if isinstance(event, GenerationFailed):
        return state.model_copy(update={"loading": False, "error": event.message})

    if isinstance(event, CandidateSelected):
        if state.loading:
            raise SessionBusyError(BUSY_MESSAGE)
        if state.step != Step.composing:
            raise InvalidTransitionError("An image is already selected for editing.")
        if not 0 <= event.index < len(state.candidates):
            raise InvalidTransitionError(f"No candidate image at index {event.index}.")
        return state.model_copy(
            update={
                "step": Step.editing,
                "selected_image": state.candidates[event.index],
                "history": history.reset(),
                "visible": EMPTY_SNAPSHOT,
            }
        )

    if isinstance(event, EditStarted):
        if state.loading:
            raise SessionBusyError(BUSY_MESSAGE)
        if state.step != Step.editing:
            raise InvalidTransitionError("Select an image before sending edit instructions.")
        user_turn = ChatTurn(role=Role.user, content=event.message)
        return state.model_copy(
            update={"loading": True, "visible": state.visible.append(user_turn)}
        )

    if isinstance(event, EditSucceeded):
        model_turn = ChatTurn(role=Role.model, content=MODEL_REPLY, images=event.images)
        visible = state.visible.append(model_turn)
        return state.model_copy(
            update={
                "loading": False,
                "visible": visible,
                "history": history.commit(state.history, visible),
            }
        )

    if isinstance(event, EditFailed):
        update: dict = {"loading": False, "error": event.message}
        if event.rollback:
            update["visible"] = state.history.current
        return state.model_copy(update=update)

    if isinstance(event, (UndoRequested, RedoRequested)):
        if state.loading:
            return state
        move = history.undo if isinstance(event, UndoRequested) else history.redo
        stack = move(state.history)
        if stack is state.history:
            return state
        return state.model_copy(update={"history": stack, "visible": stack.current})

    if isinstance(event, EditingAbandoned):
        if state.step != Step.editing:
            raise InvalidTransitionError("Not currently editing.")
        return state.model_copy(
            update={
                "step": Step.composing,
                "loading": False,
                "selected_image": None,
                "history": history.reset(),
                "visible": EMPTY_SNAPSHOT,
                "epoch": state.epoch + 1,
            }
        )

    if isinstance(event, ErrorRaised):
        return state.model_copy(update={"loading": False, "error": event.message})

    if isinstance(event, ErrorDismissed):
        return state.model_copy(update={"error": None})

    raise TypeError(f"Unknown session event: {type(event).__name__}")


class StudioSession:
    """Owns one studio session and runs its generation/edit batches.

    Only one batch may be outstanding at a time; the loading flag is set
    before the first await so concurrent requests see it immediately.
    """

    def __init__(
        self,
        orchestrator: FanOutOrchestrator,
        rollback_failed_edit: bool = False,
    ) -> None:
        self.orchestrator = orchestrator
        self.rollback_failed_edit = rollback_failed_edit
        self._state = SessionState()

    @property
    def state(self) -> SessionState:
        return self._state

    def dispatch(self, event: SessionEvent) -> SessionState:
        self._state = reduce(self._state, event)
        logger.debug(
            "event %s -> step=%s loading=%s",
            type(event).__name__,
            self._state.step.value,
            self._state.loading,
            extra={"step": self._state.step.value, "epoch": self._state.epoch},
        )
        return self._state

    def _ensure_idle(self) -> None:
        if self._state.loading:
            raise SessionBusyError(BUSY_MESSAGE)

    def _apply_if_current(self, epoch: int, event: SessionEvent) -> SessionState:
        if self._state.epoch != epoch:
            logger.info(
                "Ignoring stale %s after editing was abandoned",
                type(event).__name__,
                extra={"epoch": epoch},
            )
            return self._state
        return self.dispatch(event)

    async def generate(self, spec: GenerationRequestSpec) -> SessionState:
        """Generate candidates from the compose form.

        Input problems are reported without touching candidates or the stored
        form; batch failures keep the previous candidates visible.
        """
        self._ensure_idle()
        try:
            self.orchestrator.check_generation(spec)
        except InputError as exc:
            logger.info("Generation rejected: %s", exc.message)
            return self.dispatch(ErrorRaised(message=exc.message))

        self.dispatch(GenerationStarted(spec=spec))
        epoch = self._state.epoch
        try:
            images = await self.orchestrator.generate(spec)
        except StudioError as exc:
            return self._apply_if_current(epoch, GenerationFailed(message=exc.message))
        except asyncio.CancelledError:
            self._apply_if_current(epoch, GenerationFailed(message=CANCELLED_MESSAGE))
            raise
        except Exception as exc:
            logger.error(
                "Generation failed unexpectedly: %s",
                exc,
                exc_info=True,
                extra={"error_type": type(exc).__name__},
            )
            return self._apply_if_current(
                epoch, GenerationFailed(message=f"{GENERATION_FAILED_HEADER} {exc}")
            )
        logger.info("Generated %d candidate images", len(images))
        return self._apply_if_current(epoch, GenerationSucceeded(images=tuple(images)))

    async def regenerate(self) -> SessionState:
        """Rerun generation with the last submitted form."""
        if self._state.spec is None:
            raise InputError("Nothing to regenerate. Submit the form first.")
        return await self.generate(self._state.spec)

    def select(self, index: int) -> SessionState:
        return self.dispatch(CandidateSelected(index=index))

    async def send_message(self, message: str) -> SessionState:
        """Send an edit instruction for the current reference image.

        The user's turn is shown before the backend responds. A new version
        is committed only when the edit returns at least one image.
        """
        self._ensure_idle()
        try:
            self.orchestrator.check_edit()
        except InputError as exc:
            logger.info("Edit rejected: %s", exc.message)
            return self.dispatch(ErrorRaised(message=exc.message))

        state = self.dispatch(EditStarted(message=message))
        epoch = state.epoch

        reference = resolve_reference(state.selected_image, state.visible)
        if reference is None:
            logger.warning("Edit requested without a reference image")
            return self.dispatch(ErrorRaised(message=NO_REFERENCE_MESSAGE))

        spec: Optional[GenerationRequestSpec] = state.spec
        try:
            images = await self.orchestrator.edit(
                reference,
                message,
                identity_reference=spec.subject_image if spec is not None else None,
                context_spec=spec,
            )
        except StudioError as exc:
            return self._apply_if_current(
                epoch, EditFailed(message=exc.message, rollback=self.rollback_failed_edit)
            )
        except asyncio.CancelledError:
            self._apply_if_current(
                epoch, EditFailed(message=CANCELLED_MESSAGE, rollback=self.rollback_failed_edit)
            )
            raise
        except Exception as exc:
            logger.error(
                "Edit failed unexpectedly: %s",
                exc,
                exc_info=True,
                extra={"error_type": type(exc).__name__},
            )
            return self._apply_if_current(
                epoch,
                EditFailed(
                    message=f"{EDIT_FAILED_HEADER} {exc}", rollback=self.rollback_failed_edit
                ),
            )
        return self._apply_if_current(epoch, EditSucceeded(images=tuple(images)))

    def undo(self) -> SessionState:
        return self.dispatch(UndoRequested())

    def redo(self) -> SessionState:
        return self.dispatch(RedoRequested())

    def back(self) -> SessionState:
        """Abandon editing; in-flight edit results will be ignored."""
        return self.dispatch(EditingAbandoned())

    def dismiss_error(self) -> SessionState:
        return self.dispatch(ErrorDismissed())
