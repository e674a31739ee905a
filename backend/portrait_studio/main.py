"""FastAPI application entry point."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from portrait_studio.core.config import get_settings
from portrait_studio.core.logging import setup_logging

# Setup logging
logger = setup_logging("main")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize services at startup, clean up at shutdown."""
    settings = get_settings()
    try:
        from portrait_studio.services.backend import GeminiImageBackend
        from portrait_studio.services.orchestrator import FanOutOrchestrator
        from portrait_studio.services.session import StudioSession

        backend = GeminiImageBackend(settings)
        orchestrator = FanOutOrchestrator(backend, max_calls=settings.max_image_count)
        app.state.studio_session = StudioSession(
            orchestrator=orchestrator,
            rollback_failed_edit=settings.rollback_failed_edit,
        )
        if not settings.has_credentials:
            logger.warning("No Gemini credentials configured; generation requests will fail")
        logger.info("Services initialized successfully")
    except Exception as exc:
        logger.error(
            "Service initialization failed, running in degraded mode",
            exc_info=True,
            extra={"service": "main", "error_type": type(exc).__name__},
        )
        # Continue without services; endpoints return 503 until fixed

    yield


# Create FastAPI app
app = FastAPI(
    title="Portrait Studio",
    description="Generate candidate portraits and refine them through chat edits",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=[f"http://localhost:{settings.frontend_port}"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
from portrait_studio.api.studio import router as studio_router  # noqa: E402

app.include_router(studio_router)


@app.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint.

    Always returns HTTP 200; check `services` for the session and credential status.
    """
    session = getattr(request.app.state, "studio_session", None)

    logger.info("Health check requested")
    return {
        "status": "ok",
        "version": app.version,
        "services": {
            "studio_session": "ok" if session is not None else "unavailable",
            "credentials": "ok" if get_settings().has_credentials else "missing",
        },
    }
