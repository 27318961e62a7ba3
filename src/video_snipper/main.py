import shutil
from datetime import datetime, timezone

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from video_snipper import __version__
from video_snipper.api.v1.router import api_router
from video_snipper.config import settings
from video_snipper.dependencies import get_clip_pipeline
from video_snipper.handlers import register_exception_handlers
from video_snipper.logging_config import configure_logging_from_settings, get_logger
from video_snipper.middleware import (
    CorrelationIdMiddleware,
    RequestContextMiddleware,
    RequestLoggingMiddleware,
)
from video_snipper.schemas.api import HealthResponse
from video_snipper.services.clip_pipeline import ClipPipeline

# Setup structured logging using configuration
configure_logging_from_settings(settings)

logger = get_logger(__name__)

APP_START_TIME = datetime.now(timezone.utc)

app = FastAPI(
    title=settings.APP_NAME,
    description="Cuts the 60 second lead-up to a marked moment out of a video",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.security.cors_origins,
    allow_credentials=settings.security.cors_credentials,
    allow_methods=settings.security.cors_methods,
    allow_headers=settings.security.cors_headers,
    expose_headers=["Content-Disposition", "Content-Range", "x-correlation-id"],
)

# Add custom middleware (order matters!)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(CorrelationIdMiddleware)

register_exception_handlers(app)


@app.get("/api/health", response_model=HealthResponse, tags=["Health"])
async def health_check(pipeline: ClipPipeline = Depends(get_clip_pipeline)) -> HealthResponse:
    """Liveness check with the number of uploads currently held in memory."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=__version__,
        environment=settings.ENVIRONMENT,
        stored_videos=len(pipeline.store),
    )


app.include_router(api_router, prefix="/api")


@app.on_event("startup")
async def startup_event():
    """Remove workspaces left behind by a previous run and check for ffmpeg."""
    global APP_START_TIME
    APP_START_TIME = datetime.now(timezone.utc)

    logger.info(f"Starting {settings.APP_NAME} v{__version__}")

    pipeline = get_clip_pipeline()
    if settings.workspace.sweep_on_startup:
        removed = pipeline.sweep_workspaces()
        if removed:
            logger.info("Removed orphaned workspaces", extra={"removed": removed})

    if shutil.which(settings.clip.ffmpeg_binary) is None:
        logger.warning(
            "ffmpeg binary not found; clip extraction will fail",
            extra={"ffmpeg_binary": settings.clip.ffmpeg_binary},
        )

    logger.info(
        f"{settings.APP_NAME} started successfully",
        extra={"environment": settings.ENVIRONMENT, "port": settings.PORT},
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Drop every stored upload and remove leftover workspaces."""
    shutdown_start = datetime.now(timezone.utc)
    logger.info(
        f"Shutting down {settings.APP_NAME}",
        extra={
            "version": __version__,
            "uptime": (shutdown_start - APP_START_TIME).total_seconds(),
            "event": "application_shutdown",
        },
    )

    try:
        get_clip_pipeline().shutdown()
    except OSError as e:
        logger.error(f"Error during shutdown cleanup: {e}")

    logger.info("Shutdown complete", extra={"event": "shutdown_complete"})
