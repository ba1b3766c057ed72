"""
Tubely - video and thumbnail ingestion service.

This package contains the complete application:
- core: Framework-agnostic media pipeline
- infrastructure: External service integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
