"""
Object storage client for uploaded media.

Supports AWS S3 and any S3-compatible store (R2, MinIO) through boto3,
with a mock mode for local development.

Mock mode keeps objects in memory and hands out mock:// URLs, enabling
API testing without provisioning object storage.
"""

import logging
import secrets
import threading
from dataclasses import dataclass
from typing import BinaryIO, Optional, Protocol
from urllib.parse import parse_qs, urlparse

from ...core.media.models import ObjectReference

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


@dataclass
class StorageConfig:
    """Configuration for S3 or S3-compatible storage."""
    bucket_name: str
    region: str = "us-east-1"
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    endpoint_url: Optional[str] = None  # set for R2/MinIO, None for AWS


class ObjectStore(Protocol):
    """
    Protocol for object storage operations.

    Tests provide the in-memory implementation; production uses S3.
    """

    @property
    def bucket(self) -> str:
        ...

    def put_object(self, key: str, body: BinaryIO, content_type: str) -> ObjectReference:
        """Store body under key. Returns only once the store has acknowledged it."""
        ...

    def presign_get(self, reference: ObjectReference, expiry_seconds: int = 3600) -> str:
        """Generate a temporary read-only URL for one object."""
        ...

    def get_object(self, reference: ObjectReference) -> bytes:
        ...


class S3ObjectStore:
    """
    S3 object storage client.

    boto3 is synchronous, and so is the upload pipeline that calls it.
    Presigning is local: it needs credentials but makes no network call.
    """

    def __init__(self, config: StorageConfig) -> None:
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for S3 storage. Install with: pip install boto3"
            )

        self._config = config

        # S3-compatible endpoints generally want path-style addressing
        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path' if config.endpoint_url else 'auto'},
        )

        self._s3_client = boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id or None,
            aws_secret_access_key=config.secret_access_key or None,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized S3 storage client",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url or "aws",
            }
        )

    @property
    def bucket(self) -> str:
        return self._config.bucket_name

    @property
    def client(self):
        """Underlying boto3 client."""
        return self._s3_client

    def put_object(self, key: str, body: BinaryIO, content_type: str) -> ObjectReference:
        try:
            self._s3_client.put_object(
                Bucket=self._config.bucket_name,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
        except Exception as e:
            logger.error(
                "Failed to upload object",
                extra={"key": key, "error": str(e)}
            )
            raise StorageError(f"Upload failed: {e}")

        logger.info(
            "Uploaded object",
            extra={"bucket": self._config.bucket_name, "key": key, "content_type": content_type}
        )

        return ObjectReference(bucket=self._config.bucket_name, key=key)

    def presign_get(self, reference: ObjectReference, expiry_seconds: int = 3600) -> str:
        """
        Generate a temporary download URL.

        The URL grants GET on this one object and expires expiry_seconds
        after issuance. The bucket comes from the stored reference, not the
        configured bucket, so records written before a bucket change still
        resolve.
        """
        try:
            return self._s3_client.generate_presigned_url(
                'get_object',
                Params={
                    'Bucket': reference.bucket,
                    'Key': reference.key,
                },
                ExpiresIn=expiry_seconds,
            )
        except Exception as e:
            logger.error(
                "Failed to generate presigned URL",
                extra={"object_reference": str(reference), "error": str(e)}
            )
            raise StorageError(f"Presigned URL generation failed: {e}")

    def get_object(self, reference: ObjectReference) -> bytes:
        try:
            response = self._s3_client.get_object(
                Bucket=reference.bucket,
                Key=reference.key,
            )
            return response['Body'].read()
        except Exception as e:
            logger.error(
                "Failed to download object",
                extra={"object_reference": str(reference), "error": str(e)}
            )
            raise StorageError(f"Download failed: {e}")


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockObjectStore:
    """
    In-memory object storage for local development.

    Objects live in a dict keyed by (bucket, key); "presigned" URLs are
    mock:// URIs carrying a random signature, so two issuances for the
    same object differ but resolve to the same bytes.

    Not suitable for production.
    """

    def __init__(self, bucket_name: str = "tubely-mock") -> None:
        self._bucket = bucket_name
        self._objects: dict[tuple[str, str], tuple[bytes, str]] = {}
        self._lock = threading.Lock()
        logger.info("Initialized mock storage client (in-memory)")

    @property
    def bucket(self) -> str:
        return self._bucket

    def put_object(self, key: str, body: BinaryIO, content_type: str) -> ObjectReference:
        data = body.read()
        with self._lock:
            self._objects[(self._bucket, key)] = (data, content_type)

        logger.debug(
            "Stored object in mock storage",
            extra={"key": key, "size_bytes": len(data)}
        )

        return ObjectReference(bucket=self._bucket, key=key)

    def presign_get(self, reference: ObjectReference, expiry_seconds: int = 3600) -> str:
        return (
            f"mock://storage/{reference.bucket}/{reference.key}"
            f"?expires_in={expiry_seconds}&signature={secrets.token_hex(8)}"
        )

    def get_object(self, reference: ObjectReference) -> bytes:
        with self._lock:
            stored = self._objects.get((reference.bucket, reference.key))
        if stored is None:
            raise StorageError(f"Object not found: {reference}")
        return stored[0]

    def get_content_type(self, reference: ObjectReference) -> str:
        with self._lock:
            stored = self._objects.get((reference.bucket, reference.key))
        if stored is None:
            raise StorageError(f"Object not found: {reference}")
        return stored[1]

    def fetch_url(self, url: str) -> bytes:
        """Resolve a URL issued by presign_get back to the object's bytes."""
        parsed = urlparse(url)
        if parsed.scheme != "mock" or parsed.netloc != "storage":
            raise StorageError(f"Not a mock storage URL: {url}")
        if "signature" not in parse_qs(parsed.query):
            raise StorageError(f"Unsigned mock storage URL: {url}")

        bucket, _, key = parsed.path.lstrip("/").partition("/")
        return self.get_object(ObjectReference(bucket=bucket, key=key))

    @property
    def object_count(self) -> int:
        with self._lock:
            return len(self._objects)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_object_store(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> ObjectStore:
    """
    Create object store based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return in-memory store for testing

    Returns:
        ObjectStore implementation (S3 or Mock)
    """
    if mock_mode:
        return MockObjectStore(config.bucket_name if config else "tubely-mock")

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3ObjectStore(config)
