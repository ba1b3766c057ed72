"""
Error taxonomy for the upload pipeline.

Every failure the pipeline can produce is a PipelineError subclass carrying
the HTTP status class it maps to and a short machine-readable code. The API
layer turns these into responses; nothing below the API imports FastAPI.

Client errors (4xx) are the caller's fault and are not worth retrying.
Server errors (5xx) mean a tool, the object store, or the metadata store
failed; no partial durable state was written (except for RecordUpdateFailed,
see below), so the whole upload can be retried.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for all upload pipeline failures."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500


# ---------------------------------------------------------------------------
# Client errors
# ---------------------------------------------------------------------------

class InvalidInput(PipelineError):
    """Bad identifier, unparseable content type, or similar caller mistake."""
    status_code = 400
    code = "invalid_input"


class UnsupportedMediaType(InvalidInput):
    """Declared media type is not accepted for this asset kind."""
    code = "unsupported_media_type"


class PayloadTooLarge(InvalidInput):
    """Upload exceeded the size cap for its asset kind."""
    status_code = 413
    code = "payload_too_large"


class Unauthenticated(PipelineError):
    """Missing or invalid bearer token."""
    status_code = 401
    code = "unauthenticated"


class Forbidden(PipelineError):
    """Caller does not own the target video record."""
    status_code = 403
    code = "forbidden"


class RecordNotFound(PipelineError):
    """Target video record does not exist."""
    status_code = 404
    code = "not_found"


# ---------------------------------------------------------------------------
# Server errors
# ---------------------------------------------------------------------------

class RecordLookupFailed(PipelineError):
    code = "record_lookup_failed"


class StagingFailed(PipelineError):
    code = "staging_failed"


class InspectionFailed(PipelineError):
    code = "inspection_failed"


class RemuxFailed(PipelineError):
    code = "remux_failed"


class UploadFailed(PipelineError):
    code = "upload_failed"


class RecordUpdateFailed(PipelineError):
    """
    The record could not be updated after the object was stored.

    The stored object is left without a record pointing to it (an orphan).
    It is logged and reconciled manually; the object store is never rolled
    back.
    """
    code = "record_update_failed"


class InvalidObjectReference(PipelineError):
    """A persisted object reference could not be decoded."""
    code = "invalid_object_reference"


class UrlSigningFailed(PipelineError):
    """A valid reference could not be signed (credentials, transport)."""
    code = "url_signing_failed"
