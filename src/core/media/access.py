"""
Access URL issuance.

Records keep an opaque "<bucket>,<key>" reference; viewers get a presigned
URL computed at read time. URLs are never cached or persisted, since they
expire. Degraded-mode thumbnails are stored as stable API URLs and pass
through unchanged.
"""

import logging
from dataclasses import replace
from typing import Iterable, Optional, Protocol

from .errors import InvalidObjectReference, PipelineError, UrlSigningFailed
from .models import ObjectReference, VideoRecord

logger = logging.getLogger(__name__)

STABLE_URL_PREFIXES = ("/", "http://", "https://")
SIGNED_FIELDS = ("video_url", "thumbnail_url")


class UrlSigner(Protocol):
    """Anything that can presign a read of one stored object."""

    def presign_get(self, reference: ObjectReference, expiry_seconds: int) -> str:
        ...


class AccessUrlIssuer:
    """Turns persisted references into time-limited read URLs."""

    def __init__(self, signer: UrlSigner, expiry_seconds: int = 3600) -> None:
        self._signer = signer
        self._expiry_seconds = expiry_seconds

    def issue(self, reference: str) -> str:
        """
        Return a read URL for a persisted reference.

        Raises InvalidObjectReference if the reference can't be decoded and
        UrlSigningFailed if a well-formed reference could not be signed.
        """
        if reference.startswith(STABLE_URL_PREFIXES):
            return reference

        location = ObjectReference.parse(reference)
        try:
            return self._signer.presign_get(location, self._expiry_seconds)
        except PipelineError:
            raise
        except Exception as e:
            logger.error(
                "Presigning failed",
                extra={"bucket": location.bucket, "key": location.key, "error": str(e)}
            )
            raise UrlSigningFailed(f"failed to sign {reference!r}: {e}") from e

    def sign_record(self, record: VideoRecord) -> VideoRecord:
        """Return a copy of the record with fresh access URLs. Input is untouched."""
        return replace(
            record,
            video_url=self._issue_optional(record.video_url),
            thumbnail_url=self._issue_optional(record.thumbnail_url),
        )

    def sign_records(
        self,
        records: Iterable[VideoRecord],
    ) -> list[tuple[VideoRecord, Optional[PipelineError]]]:
        """
        Sign each record independently, one URL field at a time.

        A field that can't be signed comes back cleared and the record is
        paired with the first error hit. Other fields and other records are
        unaffected.
        """
        results = []
        for record in records:
            error: Optional[PipelineError] = None
            urls = {}
            for field_name in SIGNED_FIELDS:
                try:
                    urls[field_name] = self._issue_optional(getattr(record, field_name))
                except (InvalidObjectReference, UrlSigningFailed) as e:
                    logger.warning(
                        "Could not sign video record",
                        extra={
                            "video_id": str(record.id),
                            "field": field_name,
                            "error": e.message,
                            "error_code": e.code,
                        }
                    )
                    urls[field_name] = None
                    error = error or e
            results.append((replace(record, **urls), error))
        return results

    def _issue_optional(self, reference: Optional[str]) -> Optional[str]:
        if reference is None:
            return None
        return self.issue(reference)
