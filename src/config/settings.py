"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables (or .env) with sensible
defaults. Type validation happens at startup, so a bad value fails fast.

Mock modes enable local development without S3, Snowflake or FFmpeg.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Tubely API"
    api_version: str = "v1"
    public_base_url: str = Field(
        default="http://localhost:8091",
        description="Externally visible base URL, used for stable thumbnail URLs in memory mode."
    )

    # Identity
    jwt_secret: str = Field(
        default="",
        description="HS256 secret used to validate bearer tokens."
    )
    jwt_issuer: str = Field(
        default="tubely-access",
        description="Expected `iss` claim of access tokens."
    )

    # S3 Storage Configuration
    s3_bucket: str = Field(
        default="tubely-media",
        description="Bucket for videos and thumbnails"
    )
    s3_region: str = Field(
        default="us-east-1",
        description="Bucket region"
    )
    s3_access_key_id: str = Field(
        default="",
        description="Access key ID. Empty falls back to the default boto3 credential chain."
    )
    s3_secret_access_key: str = Field(
        default="",
        description="Secret access key"
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom endpoint for S3-compatible stores (R2, MinIO). None means AWS."
    )
    s3_mock_mode: bool = Field(
        default=False,
        description="Use in-memory object store instead of S3."
    )
    presigned_url_expiry_seconds: int = Field(
        default=3600,
        gt=0,
        description="Lifetime of issued access URLs."
    )
    thumbnail_store_mode: Literal["object_store", "memory"] = Field(
        default="object_store",
        description="Where thumbnails go. 'memory' is the degraded in-process serving path."
    )

    # Snowflake Configuration
    snowflake_account: str = Field(default="", description="Snowflake account identifier")
    snowflake_user: str = Field(default="", description="Snowflake service account username")
    snowflake_password: str = Field(default="", description="Snowflake service account password")
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="Path to RSA private key file for key-pair authentication"
    )
    snowflake_private_key_base64: Optional[str] = Field(
        default=None,
        description="Base64-encoded PEM private key, for hosts that only take env vars"
    )
    snowflake_database: str = Field(default="TUBELY", description="Snowflake database name")
    snowflake_schema: str = Field(default="MEDIA", description="Snowflake schema name")
    snowflake_warehouse: str = Field(default="COMPUTE_WH", description="Snowflake warehouse")
    snowflake_role: Optional[str] = Field(default=None, description="Snowflake role (optional)")
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of a real Snowflake connection."
    )

    # Media processing
    staging_dir: Optional[str] = Field(
        default=None,
        description="Directory for staged upload files. None uses the system temp dir."
    )
    max_video_upload_bytes: int = Field(
        default=1 << 30,
        gt=0,
        description="Hard cap on a single video upload (1 GiB)."
    )
    max_thumbnail_upload_bytes: int = Field(
        default=10 << 20,
        gt=0,
        description="Hard cap on a single thumbnail upload (10 MiB)."
    )
    ffmpeg_path: str = Field(default="ffmpeg", description="ffmpeg binary")
    ffprobe_path: str = Field(default="ffprobe", description="ffprobe binary")
    ffmpeg_timeout_seconds: float = Field(
        default=600,
        gt=0,
        description="Kill the remux if it runs longer than this."
    )
    ffprobe_timeout_seconds: float = Field(
        default=30,
        gt=0,
        description="Kill the probe if it runs longer than this."
    )
    media_mock_mode: bool = Field(
        default=False,
        description="Skip FFmpeg: remux is a copy and every video is landscape."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:8091",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def validate_required_fields(self) -> list[str]:
        """
        List required fields that are unset given the mock mode settings.

        Separate from Pydantic validation because requirements depend on
        which services are mocked.
        """
        missing = []

        if not self.jwt_secret:
            missing.append("JWT_SECRET")

        if not self.s3_mock_mode and not self.s3_bucket:
            missing.append("S3_BUCKET")

        if not self.snowflake_mock_mode:
            if not self.snowflake_account:
                missing.append("SNOWFLAKE_ACCOUNT")
            if not self.snowflake_user:
                missing.append("SNOWFLAKE_USER")
            if not (
                self.snowflake_password
                or self.snowflake_private_key_path
                or self.snowflake_private_key_base64
            ):
                missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH or SNOWFLAKE_PRIVATE_KEY_BASE64")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process. For tests, call
    get_settings.cache_clear() or pass Settings to create_app().
    """
    return Settings()
