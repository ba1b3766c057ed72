"""
FastAPI application entry point.

create_app() builds and configures the application; tests call it with
their own Settings.

For local development:
    uvicorn src.main:app --reload --port 8091

For production:
    gunicorn src.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import health, videos
from .config.settings import Settings, get_settings
from .core.media.errors import PipelineError
from .infrastructure.snowflake.client import MockSnowflakeConnection
from .infrastructure.storage.client import StorageConfig, create_object_store
from .infrastructure.storage.thumbnails import InMemoryThumbnailStore
from .infrastructure.video.processor import create_media_tools

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings

    logger.info(
        "Tubely API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "s3": settings.s3_mock_mode,
                "media": settings.media_mock_mode,
            }
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("Tubely API shutting down")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Long-lived collaborators are built here and kept on app.state; see
    api/dependencies.py for how routes get at them.
    """
    settings = settings or get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Video and thumbnail ingestion.

        ## Authentication

        All upload and read endpoints require `Authorization: Bearer <jwt>`.

        ## Workflow

        1. **Upload video**: `POST /api/videos/{video_id}/video` (multipart field `video`)
        2. **Upload thumbnail**: `POST /api/videos/{video_id}/thumbnail` (multipart field `thumbnail`)
        3. **Read**: `GET /api/videos/{video_id}` returns the record with fresh access URLs
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.dependency_overrides[get_settings] = lambda: settings

    app.state.settings = settings
    app.state.thumbnail_store = InMemoryThumbnailStore()
    app.state.object_store = create_object_store(
        config=StorageConfig(
            bucket_name=settings.s3_bucket,
            region=settings.s3_region,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            endpoint_url=settings.s3_endpoint_url,
        ),
        mock_mode=settings.s3_mock_mode,
    )
    app.state.media_tools = create_media_tools(
        mock_mode=settings.media_mock_mode,
        ffmpeg_path=settings.ffmpeg_path,
        ffprobe_path=settings.ffprobe_path,
        ffmpeg_timeout_seconds=settings.ffmpeg_timeout_seconds,
        ffprobe_timeout_seconds=settings.ffprobe_timeout_seconds,
    )
    if settings.snowflake_mock_mode:
        app.state.mock_snowflake_connection = MockSnowflakeConnection()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        videos.router,
        prefix="/api",
        tags=["Videos"],
    )

    @app.exception_handler(PipelineError)
    async def pipeline_exception_handler(request: Request, exc: PipelineError):
        """
        Map pipeline failures to responses.

        Client errors echo their message. Server errors only name the
        failure kind; details stay in the server log.
        """
        if exc.is_client_error:
            detail = exc.message
        else:
            logger.error(
                "Request failed",
                extra={
                    "path": request.url.path,
                    "error_code": exc.code,
                    "failed_stage": exc.stage,
                    "error": exc.message,
                }
            )
            detail = f"Internal server error ({exc.code})"

        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": detail, "error": exc.code},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch-all: log the full error, return a generic message."""
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error": "internal_error"},
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8091,
        reload=True,
        log_level=settings.log_level.lower(),
    )
