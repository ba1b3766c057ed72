"""
FastAPI dependency injection.

Dependencies provide services, clients, and configuration to route
handlers, so routes never build their own collaborators and tests can
override any of them.

Long-lived objects (object store client, media tools, the in-process
thumbnail store, shared mock connections) are built once in create_app()
and kept on app.state. Per-request objects (repository, pipeline) are
built here.
"""

import logging
from typing import Annotated, Generator, Optional
from uuid import UUID

from fastapi import Depends, Header, Request

from ..config.settings import Settings, get_settings
from ..core.media.access import AccessUrlIssuer
from ..core.media.errors import PipelineError
from ..core.media.models import AssetKind
from ..core.media.pipeline import PipelineConfig, UploadPipeline
from ..core.media.staging import UploadStager
from ..infrastructure.auth.tokens import TokenVerifier, get_bearer_token
from ..infrastructure.snowflake.client import create_snowflake_connection
from ..infrastructure.snowflake.repositories.videos import (
    SnowflakeConfig,
    SnowflakeVideoRepository,
)
from ..infrastructure.storage.client import ObjectStore
from ..infrastructure.storage.thumbnails import ThumbnailStore
from ..infrastructure.video.processor import MediaTools

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def get_current_user_id(
    settings: Annotated[Settings, Depends(get_settings)],
    authorization: Annotated[Optional[str], Header()] = None,
) -> UUID:
    """
    Resolve the caller's user id from the bearer token.

    Raises Unauthenticated (401) if the token is missing or invalid.
    """
    if not settings.jwt_secret:
        logger.error("JWT_SECRET is not configured, rejecting request")
        raise PipelineError("authentication is not configured")

    token = get_bearer_token(authorization)
    verifier = TokenVerifier(settings.jwt_secret, issuer=settings.jwt_issuer)
    return verifier.verify(token)


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_object_store(request: Request) -> ObjectStore:
    return request.app.state.object_store


def get_media_tools(request: Request) -> MediaTools:
    return request.app.state.media_tools


def get_thumbnail_store(request: Request) -> ThumbnailStore:
    return request.app.state.thumbnail_store


def get_video_repository(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[SnowflakeVideoRepository, None, None]:
    """
    Provide the video repository with a database connection.

    A generator so the connection is closed after the request. In mock
    mode the shared in-memory connection from app.state is reused so that
    records persist across requests.
    """
    config = None
    if not settings.snowflake_mock_mode:
        config = SnowflakeConfig(
            account=settings.snowflake_account,
            user=settings.snowflake_user,
            password=settings.snowflake_password or None,
            private_key_path=settings.snowflake_private_key_path,
            private_key_base64=settings.snowflake_private_key_base64,
            database=settings.snowflake_database,
            schema=settings.snowflake_schema,
            warehouse=settings.snowflake_warehouse,
            role=settings.snowflake_role,
        )

    with create_snowflake_connection(
        config=config,
        mock_connection=getattr(request.app.state, "mock_snowflake_connection", None),
        mock_mode=settings.snowflake_mock_mode,
    ) as conn:
        yield SnowflakeVideoRepository(conn)


def get_url_issuer(
    object_store: Annotated[ObjectStore, Depends(get_object_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AccessUrlIssuer:
    return AccessUrlIssuer(object_store, expiry_seconds=settings.presigned_url_expiry_seconds)


def get_upload_pipeline(
    settings: Annotated[Settings, Depends(get_settings)],
    repository: Annotated[SnowflakeVideoRepository, Depends(get_video_repository)],
    object_store: Annotated[ObjectStore, Depends(get_object_store)],
    media_tools: Annotated[MediaTools, Depends(get_media_tools)],
    url_issuer: Annotated[AccessUrlIssuer, Depends(get_url_issuer)],
    thumbnail_store: Annotated[ThumbnailStore, Depends(get_thumbnail_store)],
) -> UploadPipeline:
    stager = UploadStager(max_bytes={
        AssetKind.VIDEO: settings.max_video_upload_bytes,
        AssetKind.THUMBNAIL: settings.max_thumbnail_upload_bytes,
    })

    return UploadPipeline(
        repository=repository,
        object_store=object_store,
        media_tools=media_tools,
        url_issuer=url_issuer,
        stager=stager,
        thumbnail_store=thumbnail_store,
        config=PipelineConfig(
            staging_dir=settings.staging_dir,
            thumbnail_store_mode=settings.thumbnail_store_mode,
            public_base_url=settings.public_base_url,
        ),
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
VideoRepositoryDep = Annotated[SnowflakeVideoRepository, Depends(get_video_repository)]
ObjectStoreDep = Annotated[ObjectStore, Depends(get_object_store)]
MediaToolsDep = Annotated[MediaTools, Depends(get_media_tools)]
ThumbnailStoreDep = Annotated[ThumbnailStore, Depends(get_thumbnail_store)]
UrlIssuerDep = Annotated[AccessUrlIssuer, Depends(get_url_issuer)]
UploadPipelineDep = Annotated[UploadPipeline, Depends(get_upload_pipeline)]
