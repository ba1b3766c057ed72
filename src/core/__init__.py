"""
Core business logic for media ingestion.

This module is framework-agnostic: it doesn't import FastAPI, boto3,
Snowflake or any other infrastructure concern, so the pipeline can be
tested with in-memory collaborators.
"""
