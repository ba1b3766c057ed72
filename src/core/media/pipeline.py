"""
Upload pipeline orchestration.

One UploadPipeline call handles one upload end to end:

    RECEIVED -> AUTHORIZED -> VALIDATED -> STAGED
             -> [REMUXED -> INSPECTED]            (video only)
             -> UPLOADED -> RECORD_UPDATED -> DONE

Each transition goes through _advance(), which records the stage reached
and turns any unexpected exception into the failure type for the stage
being entered. Staged files belong to the run's StagingArea and are
removed on every exit path.

The pipeline is synchronous. The API runs it in a worker thread.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import BinaryIO, Callable, Optional, Protocol
from uuid import UUID

from .access import AccessUrlIssuer
from .errors import (
    Forbidden,
    InspectionFailed,
    InvalidInput,
    PipelineError,
    RecordLookupFailed,
    RecordUpdateFailed,
    RemuxFailed,
    StagingFailed,
    UploadFailed,
)
from .models import AssetKind, AssetUpload, Geometry, ObjectReference, UploadStage, VideoRecord
from .placement import THUMBNAIL_PREFIX, build_object_key, placement_prefix
from .staging import StagedUpload, StagingArea, UploadStager, validate_media_type

logger = logging.getLogger(__name__)

THUMBNAIL_STORE_OBJECT = "object_store"
THUMBNAIL_STORE_MEMORY = "memory"

SignedRecord = tuple[VideoRecord, Optional[PipelineError]]

_STAGE_FAILURES: dict[UploadStage, type[PipelineError]] = {
    UploadStage.AUTHORIZED: RecordLookupFailed,
    UploadStage.VALIDATED: InvalidInput,
    UploadStage.STAGED: StagingFailed,
    UploadStage.REMUXED: RemuxFailed,
    UploadStage.INSPECTED: InspectionFailed,
    UploadStage.UPLOADED: UploadFailed,
    UploadStage.RECORD_UPDATED: RecordUpdateFailed,
}


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

class VideoRepository(Protocol):
    def get_video(self, video_id: UUID) -> VideoRecord: ...
    def update_video(self, video: VideoRecord) -> None: ...


class ObjectStore(Protocol):
    def put_object(self, key: str, body: BinaryIO, content_type: str) -> ObjectReference: ...


class MediaTools(Protocol):
    def remux_faststart(self, path: str, staging: StagingArea) -> str: ...
    def inspect(self, path: str) -> Geometry: ...


class ThumbnailStore(Protocol):
    def put(self, video_id: UUID, data: bytes, media_type: str) -> None: ...


@dataclass
class PipelineConfig:
    staging_dir: Optional[str] = None
    thumbnail_store_mode: str = THUMBNAIL_STORE_OBJECT
    public_base_url: str = ""


@dataclass
class PipelineRun:
    """Mutable state of one upload run."""
    upload: AssetUpload
    staging: StagingArea
    stage: UploadStage = UploadStage.RECEIVED
    stages: list[UploadStage] = field(default_factory=lambda: [UploadStage.RECEIVED])

    def log_extra(self, **extra) -> dict:
        return {
            "run_id": self.staging.run_id,
            "video_id": str(self.upload.video_id),
            "user_id": str(self.upload.user_id),
            "kind": self.upload.kind.value,
            "stage": self.stage.value,
            **extra,
        }


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class UploadPipeline:
    """Sequences staging, media preparation, storage and the record update."""

    def __init__(
        self,
        repository: VideoRepository,
        object_store: ObjectStore,
        media_tools: MediaTools,
        url_issuer: AccessUrlIssuer,
        stager: UploadStager,
        thumbnail_store: Optional[ThumbnailStore] = None,
        config: Optional[PipelineConfig] = None,
    ) -> None:
        self._repository = repository
        self._object_store = object_store
        self._media = media_tools
        self._url_issuer = url_issuer
        self._stager = stager
        self._thumbnail_store = thumbnail_store
        self._config = config or PipelineConfig()

        if self._config.thumbnail_store_mode == THUMBNAIL_STORE_MEMORY and thumbnail_store is None:
            raise ValueError("thumbnail_store is required in memory mode")

    def upload_video(self, upload: AssetUpload) -> SignedRecord:
        """Stage, remux, inspect and store a video. Returns the signed record and any signing error."""
        return self._run(upload, AssetKind.VIDEO, self._process_video)

    def upload_thumbnail(self, upload: AssetUpload) -> SignedRecord:
        """Stage and store a thumbnail. Returns the signed record and any signing error."""
        return self._run(upload, AssetKind.THUMBNAIL, self._process_thumbnail)

    # -----------------------------------------------------------------------
    # Run skeleton
    # -----------------------------------------------------------------------

    def _run(
        self,
        upload: AssetUpload,
        kind: AssetKind,
        process: Callable[[PipelineRun, VideoRecord, StagedUpload], VideoRecord],
    ) -> SignedRecord:
        if upload.kind is not kind:
            raise InvalidInput(f"expected a {kind.value} upload, got {upload.kind.value}")

        run = PipelineRun(upload=upload, staging=StagingArea(self._config.staging_dir))
        logger.info("Upload received", extra=run.log_extra(content_type=upload.content_type))

        try:
            with run.staging:
                record = self._advance(run, UploadStage.AUTHORIZED, self._authorize, upload)
                self._advance(
                    run, UploadStage.VALIDATED,
                    validate_media_type, upload.content_type, upload.kind,
                )
                staged = self._advance(
                    run, UploadStage.STAGED,
                    self._stager.stage, upload.stream, upload.content_type, upload.kind, run.staging,
                )
                record = process(run, record, staged)
        except PipelineError as e:
            level = logging.INFO if e.is_client_error else logging.ERROR
            logger.log(
                level,
                "Upload failed",
                extra=run.log_extra(error=e.message, error_code=e.code, failed_stage=e.stage),
            )
            raise

        run.stage = UploadStage.DONE
        run.stages.append(UploadStage.DONE)
        logger.info("Upload complete", extra=run.log_extra())

        # Record is committed; signing errors are reported, not raised.
        [signed] = self._url_issuer.sign_records([record])
        return signed

    def _advance(self, run: PipelineRun, stage: UploadStage, step: Callable, *args):
        try:
            result = step(*args)
        except PipelineError as e:
            if e.stage is None:
                e.stage = stage.value
            raise
        except Exception as e:
            failure = _STAGE_FAILURES[stage]
            raise failure(f"{stage.value} failed: {e}", stage=stage.value) from e

        run.stage = stage
        run.stages.append(stage)
        logger.debug("Upload stage reached", extra=run.log_extra())
        return result

    # -----------------------------------------------------------------------
    # Stages
    # -----------------------------------------------------------------------

    def _authorize(self, upload: AssetUpload) -> VideoRecord:
        record = self._repository.get_video(upload.video_id)
        if not record.is_owned_by(upload.user_id):
            logger.warning(
                "Upload rejected, caller does not own video",
                extra={"video_id": str(upload.video_id), "user_id": str(upload.user_id)}
            )
            raise Forbidden("video does not belong to the caller")
        return record

    def _process_video(self, run: PipelineRun, record: VideoRecord, staged: StagedUpload) -> VideoRecord:
        processed_path = self._advance(
            run, UploadStage.REMUXED, self._media.remux_faststart, staged.path, run.staging,
        )
        run.staging.release(staged.path)

        geometry = self._advance(run, UploadStage.INSPECTED, self._media.inspect, processed_path)
        key = build_object_key(placement_prefix(geometry), "mp4")

        reference = self._advance(
            run, UploadStage.UPLOADED,
            self._upload_file, run, processed_path, key, staged.media_type,
        )
        updated = replace(record, video_url=str(reference))

        return self._advance(
            run, UploadStage.RECORD_UPDATED, self._save_record, run, updated, reference,
        )

    def _process_thumbnail(self, run: PipelineRun, record: VideoRecord, staged: StagedUpload) -> VideoRecord:
        reference: Optional[ObjectReference] = None

        if self._config.thumbnail_store_mode == THUMBNAIL_STORE_MEMORY:
            self._advance(run, UploadStage.UPLOADED, self._store_thumbnail_locally, run, staged)
            updated = replace(record, thumbnail_url=self._thumbnail_url(record.id))
        else:
            key = build_object_key(THUMBNAIL_PREFIX, staged.extension)
            reference = self._advance(
                run, UploadStage.UPLOADED,
                self._object_store.put_object, key, staged.handle, staged.media_type,
            )
            updated = replace(record, thumbnail_url=str(reference))

        return self._advance(
            run, UploadStage.RECORD_UPDATED, self._save_record, run, updated, reference,
        )

    def _upload_file(self, run: PipelineRun, path: str, key: str, content_type: str) -> ObjectReference:
        handle = run.staging.open(path, "rb")
        reference = self._object_store.put_object(key, handle, content_type)
        logger.info("Object stored", extra=run.log_extra(key=key))
        return reference

    def _store_thumbnail_locally(self, run: PipelineRun, staged: StagedUpload) -> None:
        self._thumbnail_store.put(run.upload.video_id, staged.handle.read(), staged.media_type)

    def _save_record(
        self,
        run: PipelineRun,
        record: VideoRecord,
        reference: Optional[ObjectReference],
    ) -> VideoRecord:
        try:
            self._repository.update_video(record)
        except Exception as e:
            if reference is not None:
                logger.error(
                    "Stored object has no record pointing to it",
                    extra=run.log_extra(object_reference=str(reference)),
                )
            # Row deleted mid-run (RecordNotFound) is a server failure here too.
            raise RecordUpdateFailed(
                f"{UploadStage.RECORD_UPDATED.value} failed: {e}",
                stage=UploadStage.RECORD_UPDATED.value,
            ) from e
        return record

    def _thumbnail_url(self, video_id: UUID) -> str:
        return f"{self._config.public_base_url.rstrip('/')}/api/thumbnails/{video_id}"
