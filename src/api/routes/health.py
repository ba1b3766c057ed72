"""
Health check endpoints.

- /health: liveness, is the process running?
- /health/ready: readiness, can we serve uploads? Checks configuration,
  the metadata store connection and the ffmpeg/ffprobe binaries, and
  reports where objects and thumbnails are stored.
"""

import logging
from typing import Any

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ... import __version__
from ..dependencies import MediaToolsDep, SettingsDep, VideoRepositoryDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]
    storage_mode: dict[str, str] = {}


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "s3": settings.s3_mock_mode,
                "media": settings.media_mock_mode,
            },
            "thumbnail_store_mode": settings.thumbnail_store_mode,
        }
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if the service can handle uploads. Checks external dependencies.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(
    response: Response,
    settings: SettingsDep,
    repository: VideoRepositoryDep,
    media_tools: MediaToolsDep,
) -> ReadinessResponse:
    checks: list[ReadinessCheck] = []

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        checks.append(ReadinessCheck(
            name="configuration",
            status="error",
            error=f"Missing required fields: {', '.join(missing_fields)}"
        ))
    else:
        checks.append(ReadinessCheck(name="configuration", status="ok"))

    try:
        if repository.check_connection():
            checks.append(ReadinessCheck(name="database", status="ok"))
        else:
            checks.append(ReadinessCheck(name="database", status="error", error="no result"))
    except Exception as e:
        logger.error("Database health check failed", extra={"error": str(e)})
        checks.append(ReadinessCheck(name="database", status="error", error=str(e)))

    for tool, available in media_tools.check_available().items():
        checks.append(ReadinessCheck(
            name=tool,
            status="ok" if available else "error",
            error=None if available else f"{tool} not available",
        ))

    all_ok = all(c.status == "ok" for c in checks)
    if not all_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )

    return ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=__version__,
        checks=checks,
        storage_mode={
            "objects": "mock" if settings.s3_mock_mode else "s3",
            "thumbnails": settings.thumbnail_store_mode,
        },
    )
