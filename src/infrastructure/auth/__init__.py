"""
Caller identity from bearer tokens.
"""

from .tokens import TokenVerifier, issue_access_token

__all__ = ["TokenVerifier", "issue_access_token"]
