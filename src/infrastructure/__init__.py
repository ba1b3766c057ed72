"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- auth: Bearer token verification (PyJWT)
- snowflake: Video metadata persistence
- storage: Object storage (S3) and the in-process thumbnail store
- video: FFmpeg/FFprobe media preparation

These wrappers translate between external formats and our domain models.
"""
