"""Studio API router: compose, select, edit, undo/redo, uploads and downloads."""
import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile

from portrait_studio.core.errors import (
    InputError,
    InvalidTransitionError,
    SessionBusyError,
    StudioError,
)
from portrait_studio.models.conversation import MessageRequest, Role, SelectRequest, UploadResponse
from portrait_studio.models.generation import GenerationRequestSpec
from portrait_studio.models.session import SessionView
from portrait_studio.services.media import DownloadKind, decode_image, download_filename, encode_image
from portrait_studio.services.session import StudioSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/studio", tags=["studio"])


def get_studio_session(request: Request) -> StudioSession:
    """FastAPI dependency: retrieve StudioSession from app.state.

    Returns HTTP 503 if the session was not initialized at startup.
    """
    session: StudioSession | None = getattr(request.app.state, "studio_session", None)
    if session is None:
        raise HTTPException(
            status_code=503,
            detail="Image backend unavailable. Service not initialized.",
        )
    return session


def _raise_http(exc: StudioError) -> NoReturn:
    if isinstance(exc, SessionBusyError):
        status_code = 409
    elif isinstance(exc, (InputError, InvalidTransitionError)):
        status_code = 400
    else:
        status_code = 500
    logger.info(
        "studio request rejected: %s",
        exc.message,
        extra={"service": "StudioRouter", "error_type": type(exc).__name__},
    )
    raise HTTPException(status_code=status_code, detail=exc.message) from exc


@router.get("/session", response_model=SessionView)
async def get_session(session: StudioSession = Depends(get_studio_session)) -> SessionView:
    return SessionView.from_state(session.state)


@router.post("/generate", response_model=SessionView)
async def generate(
    body: GenerationRequestSpec,
    session: StudioSession = Depends(get_studio_session),
) -> SessionView:
    """Generate candidate portraits from the compose form.

    Generation failures are reported in the returned view's ``error`` field;
    the previous candidates stay in place.

    Raises:
        HTTPException 409: A batch is already in flight.
        HTTPException 400: Not in the compose step.
    """
    try:
        state = await session.generate(body)
    except StudioError as exc:
        _raise_http(exc)
    return SessionView.from_state(state)


@router.post("/regenerate", response_model=SessionView)
async def regenerate(session: StudioSession = Depends(get_studio_session)) -> SessionView:
    try:
        state = await session.regenerate()
    except StudioError as exc:
        _raise_http(exc)
    return SessionView.from_state(state)


@router.post("/select", response_model=SessionView)
async def select(
    body: SelectRequest,
    session: StudioSession = Depends(get_studio_session),
) -> SessionView:
    try:
        state = session.select(body.index)
    except StudioError as exc:
        _raise_http(exc)
    return SessionView.from_state(state)


@router.post("/messages", response_model=SessionView)
async def send_message(
    body: MessageRequest,
    session: StudioSession = Depends(get_studio_session),
) -> SessionView:
    """Send an edit instruction for the current reference image.

    Raises:
        HTTPException 409: A batch is already in flight.
        HTTPException 400: No image has been selected yet.
        HTTPException 422: Empty message (handled by FastAPI automatically).
    """
    try:
        state = await session.send_message(body.message)
    except StudioError as exc:
        _raise_http(exc)
    return SessionView.from_state(state)


@router.post("/undo", response_model=SessionView)
async def undo(session: StudioSession = Depends(get_studio_session)) -> SessionView:
    """Step back one committed version.

    Ignored while a batch is in flight or at the first version; the unchanged
    view is returned.
    """
    return SessionView.from_state(session.undo())


@router.post("/redo", response_model=SessionView)
async def redo(session: StudioSession = Depends(get_studio_session)) -> SessionView:
    """Step forward one committed version.

    Ignored while a batch is in flight or at the newest version.
    """
    return SessionView.from_state(session.redo())


@router.post("/back", response_model=SessionView)
async def back(session: StudioSession = Depends(get_studio_session)) -> SessionView:
    try:
        state = session.back()
    except StudioError as exc:
        _raise_http(exc)
    return SessionView.from_state(state)


@router.delete("/error", response_model=SessionView)
async def dismiss_error(session: StudioSession = Depends(get_studio_session)) -> SessionView:
    return SessionView.from_state(session.dismiss_error())


@router.post("/uploads", response_model=UploadResponse)
async def upload_image(file: UploadFile = File(...)) -> UploadResponse:
    """Encode an uploaded image file for use in the compose form."""
    filename = file.filename or "upload"
    try:
        raw = await file.read()
        data = encode_image(raw, filename)
    except OSError as exc:
        logger.error("Failed to read upload %s", filename, exc_info=True)
        raise HTTPException(status_code=400, detail=f"Failed to read file {filename}.") from exc
    except StudioError as exc:
        _raise_http(exc)
    return UploadResponse(filename=file.filename, data=data)


@router.get("/images/{kind}/{index}")
async def download_image(
    kind: DownloadKind,
    index: int,
    session: StudioSession = Depends(get_studio_session),
) -> Response:
    """Download a candidate or an edit result as a PNG attachment.

    Edit results are numbered in the order they appear in the visible history.
    """
    state = session.state
    if kind == DownloadKind.candidate:
        images = list(state.candidates)
    else:
        images = [
            image
            for turn in state.visible.turns
            if turn.role == Role.model
            for image in turn.images
        ]
    if not 0 <= index < len(images):
        raise HTTPException(status_code=404, detail=f"No {kind.value} image at index {index}.")
    try:
        content = decode_image(images[index])
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    filename = download_filename(kind, index)
    return Response(
        content=content,
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
