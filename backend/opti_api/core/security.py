# opti_api/core/security.py
"""
Security module for authentication and authorization.
Handles password hashing and the three JWT token variants:

- session token: short-lived bearer credential (hours)
- refresh token: long-lived, signed with its own secret, persisted on the account
- reset token: single-purpose, never persisted, tagged with a ResetPurpose

Every token carries a `typ` claim and each variant has its own decoder that
rejects the others, so a reset token can never be used as a session token.
"""
import datetime as dt
import uuid
from dataclasses import dataclass
from enum import Enum

import jwt  # PyJWT
from passlib.context import CryptContext

from opti_api.config import settings
from opti_api.core.errors import TokenExpiredError, TokenInvalidError

# Password hashing context
# Argon2 is a modern, secure password hashing algorithm; time_cost is the tunable work factor
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
    argon2__time_cost=settings.argon2_time_cost,
)

# JWT configuration
JWT_SECRET = settings.jwt_secret  # Secret for session and reset tokens
JWT_REFRESH_SECRET = settings.jwt_refresh_secret  # Separate secret for refresh tokens
ACCESS_TOKEN_EXPIRE_MINUTES = settings.access_token_expire_minutes
REFRESH_TOKEN_EXPIRE_DAYS = settings.refresh_token_expire_days
RESET_TOKEN_EXPIRE_MINUTES = settings.reset_token_expire_minutes
JWT_ALG = "HS256"  # JWT signing algorithm (HMAC SHA-256)


class TokenType(str, Enum):
    SESSION = "session"
    REFRESH = "refresh"
    RESET = "reset"


class ResetPurpose(str, Enum):
    PASSWORD_RESET = "password-reset"
    FORGOT_PASSWORD_RESET = "forgot-password-reset"


@dataclass(frozen=True)
class SessionClaims:
    subject_id: str
    role: str
    kind: str  # account kind: "admin" | "user"
    issued_at: int  # seconds since epoch


@dataclass(frozen=True)
class RefreshClaims:
    subject_id: str
    kind: str
    issued_at: int


@dataclass(frozen=True)
class ResetClaims:
    subject_id: str
    purpose: ResetPurpose
    issued_at: int


def hash_password(plain: str) -> str:
    """
    Hash a plain text password using Argon2.

    Note: Never store plain text passwords. Always use this function before saving.
    """
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str | None) -> bool:
    """
    Verify a plain text password against a hashed password.
    Returns False for a missing or unrecognised hash instead of raising.
    """
    if not plain or not hashed:
        return False
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        return False


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _encode(payload: dict, secret: str, ttl: dt.timedelta) -> str:
    now = _utcnow()
    payload = {
        **payload,
        "iat": now,
        "exp": now + ttl,
        "jti": uuid.uuid4().hex,  # two tokens minted in the same second still differ
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALG)


def _decode(token: str, secret: str, expected_type: TokenType) -> dict:
    """
    Verify signature and expiry, then the `typ` discriminator.

    Raises:
        TokenExpiredError: signature ok but `exp` has passed
        TokenInvalidError: malformed, bad signature, or wrong token type
    """
    if not token:
        raise TokenInvalidError("Invalid token")
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALG],
            options={"require": ["exp", "iat", "sub", "typ"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError("Token expired")
    except jwt.InvalidTokenError:
        raise TokenInvalidError("Invalid token")
    if payload.get("typ") != expected_type.value:
        raise TokenInvalidError("Invalid token")
    return payload


def issue_session_token(subject_id: str, role: str, kind: str) -> str:
    """
    Create a session (access) token.

    The token includes id, role and account kind so the access gate knows which
    store to re-load the account from.
    """
    return _encode(
        {"sub": str(subject_id), "role": role, "kind": kind, "typ": TokenType.SESSION.value},
        JWT_SECRET,
        dt.timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def issue_refresh_token(subject_id: str, kind: str) -> str:
    """Create a refresh token; the caller persists it on the account row."""
    return _encode(
        {"sub": str(subject_id), "kind": kind, "typ": TokenType.REFRESH.value},
        JWT_REFRESH_SECRET,
        dt.timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS),
    )


def issue_reset_token(subject_id: str, purpose: ResetPurpose) -> str:
    """Create a single-purpose password reset token. Never persisted."""
    return _encode(
        {"sub": str(subject_id), "purpose": ResetPurpose(purpose).value, "typ": TokenType.RESET.value},
        JWT_SECRET,
        dt.timedelta(minutes=RESET_TOKEN_EXPIRE_MINUTES),
    )


def decode_session_token(token: str) -> SessionClaims:
    payload = _decode(token, JWT_SECRET, TokenType.SESSION)
    return SessionClaims(
        subject_id=payload["sub"],
        role=payload.get("role", "user"),
        kind=payload.get("kind", "user"),
        issued_at=int(payload["iat"]),
    )


def decode_refresh_token(token: str) -> RefreshClaims:
    payload = _decode(token, JWT_REFRESH_SECRET, TokenType.REFRESH)
    return RefreshClaims(
        subject_id=payload["sub"],
        kind=payload.get("kind", "user"),
        issued_at=int(payload["iat"]),
    )


def decode_reset_token(token: str, purpose: ResetPurpose) -> ResetClaims:
    """
    Decode a reset token and check it was minted for `purpose`.
    A token minted for one reset flow is rejected by the other.
    """
    payload = _decode(token, JWT_SECRET, TokenType.RESET)
    if payload.get("purpose") != ResetPurpose(purpose).value:
        raise TokenInvalidError("Invalid token")
    return ResetClaims(
        subject_id=payload["sub"],
        purpose=ResetPurpose(payload["purpose"]),
        issued_at=int(payload["iat"]),
    )
