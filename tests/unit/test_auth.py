"""Tests for bearer token handling."""

import time

import pytest
from jose import jwt

from src.auth.tokens import extract_bearer_token, verify_token
from src.errors import AuthenticationError

SECRET = "test-secret"


def _token(claims, secret=SECRET):
    return jwt.encode(claims, secret, algorithm="HS256")


class TestBearerToken:
    def test_extracts_token(self):
        assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"
        assert extract_bearer_token("bearer abc") == "abc"

    @pytest.mark.parametrize("header", [None, "", "   ", "Bearer ", "Bearer", "Basic abc", "abc.def.ghi"])
    def test_missing_token(self, header):
        with pytest.raises(AuthenticationError) as exc_info:
            extract_bearer_token(header)
        assert exc_info.value.status_code == 401


class TestVerifyToken:
    def test_returns_subject(self):
        token = _token({"sub": "user-1", "exp": int(time.time()) + 60, "aud": "authenticated"})
        assert verify_token(token, SECRET) == "user-1"

    def test_wrong_secret(self):
        with pytest.raises(AuthenticationError):
            verify_token(_token({"sub": "user-1"}, secret="other"), SECRET)

    def test_expired(self):
        with pytest.raises(AuthenticationError):
            verify_token(_token({"sub": "user-1", "exp": int(time.time()) - 60}), SECRET)

    def test_missing_subject(self):
        with pytest.raises(AuthenticationError):
            verify_token(_token({"role": "authenticated"}), SECRET)

    def test_garbage(self):
        with pytest.raises(AuthenticationError):
            verify_token("not-a-jwt", SECRET)
