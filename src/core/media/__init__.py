"""
Media ingestion logic.

Staging, placement, access URL issuance and the upload pipeline that
sequences them. Nothing here imports FastAPI, boto3 or Snowflake.
"""

from .access import AccessUrlIssuer
from .errors import PipelineError
from .models import (
    AssetKind,
    AssetUpload,
    Geometry,
    ObjectReference,
    UploadStage,
    VideoRecord,
)
from .pipeline import PipelineConfig, UploadPipeline
from .staging import StagingArea, UploadStager

__all__ = [
    "AccessUrlIssuer",
    "PipelineError",
    "AssetKind",
    "AssetUpload",
    "Geometry",
    "ObjectReference",
    "UploadStage",
    "VideoRecord",
    "PipelineConfig",
    "UploadPipeline",
    "StagingArea",
    "UploadStager",
]
