"""
Application configuration using Pydantic settings.

Configuration comes from environment variables with sensible defaults.
Supports mock modes for S3, Snowflake and FFmpeg in local development.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
