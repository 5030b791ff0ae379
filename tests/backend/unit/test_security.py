"""
Unit tests for core.security module.
Tests password hashing and the session/refresh/reset token variants.
"""
import datetime as dt

import jwt
import pytest

from opti_api.core.errors import AuthError, TokenExpiredError, TokenInvalidError
from opti_api.core.security import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    JWT_ALG,
    JWT_REFRESH_SECRET,
    JWT_SECRET,
    REFRESH_TOKEN_EXPIRE_DAYS,
    ResetPurpose,
    decode_refresh_token,
    decode_reset_token,
    decode_session_token,
    hash_password,
    issue_refresh_token,
    issue_reset_token,
    issue_session_token,
    verify_password,
)


def _expired_token(secret: str, **claims) -> str:
    past = dt.datetime.now(dt.timezone.utc) - dt.timedelta(hours=2)
    payload = {"iat": past, "exp": past + dt.timedelta(minutes=1), **claims}
    return jwt.encode(payload, secret, algorithm=JWT_ALG)


class TestPasswordHashing:
    """Tests for password hashing and verification."""

    def test_hash_password_returns_different_hash_each_time(self):
        """Password hashing should produce different hashes (salt included)."""
        password = "TestPassword123!"
        assert hash_password(password) != hash_password(password)

    def test_hash_is_argon2_and_not_plain_text(self):
        hashed = hash_password("TestPassword123!")
        assert hashed.startswith("$argon2")
        assert "TestPassword123!" not in hashed

    def test_verify_password_correct_and_incorrect(self):
        hashed = hash_password("TestPassword123!")
        assert verify_password("TestPassword123!", hashed) is True
        assert verify_password("WrongPassword456!", hashed) is False

    def test_verify_password_missing_or_garbage_hash(self):
        """A missing or unrecognised hash is a failed check, not an exception."""
        assert verify_password("TestPassword123!", None) is False
        assert verify_password("TestPassword123!", "") is False
        assert verify_password("TestPassword123!", "not-a-hash") is False

    def test_verify_password_empty_plain(self):
        hashed = hash_password("TestPassword123!")
        assert verify_password("", hashed) is False


class TestSessionTokens:

    def test_round_trip_carries_identity(self):
        token = issue_session_token("acc-1", "admin", "admin")
        claims = decode_session_token(token)
        assert claims.subject_id == "acc-1"
        assert claims.role == "admin"
        assert claims.kind == "admin"
        assert isinstance(claims.issued_at, int)

    def test_expiration_matches_configuration(self):
        token = issue_session_token("acc-2", "user", "user")
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
        diff_minutes = (payload["exp"] - payload["iat"]) / 60
        assert abs(diff_minutes - ACCESS_TOKEN_EXPIRE_MINUTES) < 1

    def test_two_tokens_for_same_subject_differ(self):
        """Tokens minted in the same second are still distinct (jti)."""
        assert issue_session_token("acc-3", "user", "user") != issue_session_token("acc-3", "user", "user")

    def test_garbage_token_is_invalid(self):
        with pytest.raises(TokenInvalidError):
            decode_session_token("invalid.token.here")

    def test_empty_token_is_invalid(self):
        with pytest.raises(TokenInvalidError):
            decode_session_token("")

    def test_wrong_secret_is_invalid(self):
        token = jwt.encode(
            {"sub": "acc-4", "typ": "session", "iat": dt.datetime.now(dt.timezone.utc),
             "exp": dt.datetime.now(dt.timezone.utc) + dt.timedelta(minutes=5)},
            "another-secret-0123456789abcdef0123456789",
            algorithm=JWT_ALG,
        )
        with pytest.raises(TokenInvalidError):
            decode_session_token(token)

    def test_expired_token_is_distinguished_from_invalid(self):
        token = _expired_token(JWT_SECRET, sub="acc-5", typ="session", role="user", kind="user")
        with pytest.raises(TokenExpiredError):
            decode_session_token(token)

    def test_both_failures_are_auth_errors(self):
        """Callers that do not care about the reason can catch AuthError."""
        assert issubclass(TokenExpiredError, AuthError)
        assert issubclass(TokenInvalidError, AuthError)


class TestRefreshTokens:

    def test_round_trip(self):
        claims = decode_refresh_token(issue_refresh_token("acc-6", "user"))
        assert claims.subject_id == "acc-6"
        assert claims.kind == "user"

    def test_signed_with_refresh_secret(self):
        token = issue_refresh_token("acc-7", "admin")
        payload = jwt.decode(token, JWT_REFRESH_SECRET, algorithms=[JWT_ALG])
        assert payload["typ"] == "refresh"
        assert (payload["exp"] - payload["iat"]) == pytest.approx(REFRESH_TOKEN_EXPIRE_DAYS * 86400, abs=2)

    def test_refresh_token_is_not_a_session_token(self):
        with pytest.raises(TokenInvalidError):
            decode_session_token(issue_refresh_token("acc-8", "user"))

    def test_session_token_is_not_a_refresh_token(self):
        with pytest.raises(TokenInvalidError):
            decode_refresh_token(issue_session_token("acc-9", "user", "user"))

    def test_expired_refresh_token(self):
        token = _expired_token(JWT_REFRESH_SECRET, sub="acc-10", typ="refresh", kind="user")
        with pytest.raises(TokenExpiredError):
            decode_refresh_token(token)


class TestResetTokens:

    def test_round_trip_with_purpose(self):
        token = issue_reset_token("acc-11", ResetPurpose.FORGOT_PASSWORD_RESET)
        claims = decode_reset_token(token, ResetPurpose.FORGOT_PASSWORD_RESET)
        assert claims.subject_id == "acc-11"
        assert claims.purpose is ResetPurpose.FORGOT_PASSWORD_RESET

    def test_purpose_mismatch_is_rejected(self):
        token = issue_reset_token("acc-12", ResetPurpose.PASSWORD_RESET)
        with pytest.raises(TokenInvalidError):
            decode_reset_token(token, ResetPurpose.FORGOT_PASSWORD_RESET)

    def test_reset_token_is_not_a_session_token(self):
        with pytest.raises(TokenInvalidError):
            decode_session_token(issue_reset_token("acc-13", ResetPurpose.PASSWORD_RESET))

    def test_session_token_is_not_a_reset_token(self):
        with pytest.raises(TokenInvalidError):
            decode_reset_token(issue_session_token("acc-14", "user", "user"), ResetPurpose.PASSWORD_RESET)
