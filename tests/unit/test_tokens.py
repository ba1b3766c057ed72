"""
Unit tests for bearer token handling.
"""

from datetime import timedelta
from uuid import uuid4

import jwt
import pytest

from src.core.media.errors import Unauthenticated
from src.infrastructure.auth.tokens import TokenVerifier, get_bearer_token, issue_access_token

SECRET = "test-secret-that-is-long-enough-for-hs256"


class TestGetBearerToken:
    def test_extracts_token(self):
        assert get_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"

    def test_scheme_is_case_insensitive(self):
        assert get_bearer_token("bearer abc") == "abc"

    @pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer   ", "Basic dXNlcjpwYXNz", "abc"])
    def test_missing_or_malformed_header(self, header):
        with pytest.raises(Unauthenticated):
            get_bearer_token(header)


class TestTokenVerifier:
    def test_round_trip_returns_user_id(self):
        user_id = uuid4()
        token = issue_access_token(user_id, SECRET)

        assert TokenVerifier(SECRET).verify(token) == user_id

    def test_expired_token_is_rejected(self):
        token = issue_access_token(uuid4(), SECRET, expires_in=timedelta(seconds=-10))
        with pytest.raises(Unauthenticated, match="expired"):
            TokenVerifier(SECRET).verify(token)

    def test_wrong_secret_is_rejected(self):
        token = issue_access_token(uuid4(), "another-secret-that-is-long-enough-too")
        with pytest.raises(Unauthenticated):
            TokenVerifier(SECRET).verify(token)

    def test_wrong_issuer_is_rejected(self):
        token = issue_access_token(uuid4(), SECRET, issuer="someone-else")
        with pytest.raises(Unauthenticated):
            TokenVerifier(SECRET).verify(token)

    def test_non_uuid_subject_is_rejected(self):
        token = jwt.encode(
            {"iss": "tubely-access", "sub": "not-a-uuid", "exp": 9999999999},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(Unauthenticated, match="user id"):
            TokenVerifier(SECRET).verify(token)

    def test_token_without_expiry_is_rejected(self):
        token = jwt.encode({"iss": "tubely-access", "sub": str(uuid4())}, SECRET, algorithm="HS256")
        with pytest.raises(Unauthenticated):
            TokenVerifier(SECRET).verify(token)

    def test_garbage_is_rejected(self):
        with pytest.raises(Unauthenticated):
            TokenVerifier(SECRET).verify("not-a-jwt")

    def test_empty_secret_is_a_configuration_error(self):
        with pytest.raises(ValueError):
            TokenVerifier("")
