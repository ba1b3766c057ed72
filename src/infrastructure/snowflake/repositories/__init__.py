"""
Repository pattern implementations for Snowflake.

Repositories translate between domain models and database representations.
"""

from .videos import SnowflakeVideoRepository, VideoNotFoundError

__all__ = ["SnowflakeVideoRepository", "VideoNotFoundError"]
