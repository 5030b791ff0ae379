"""
Auth orchestration: login, change-password, the forgot/verify/reset OTP flow,
refresh and logout. Written once for both account kinds on top of the
credential store, OTP ledger and token service.
"""
import functools
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import BackgroundTasks
from tortoise import timezone

from opti_api.config import settings
from opti_api.core.errors import (
    AuthError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    TokenInvalidError,
    ValidationError,
)
from opti_api.core.password_policy import password_errors
from opti_api.core.security import (
    ResetPurpose,
    decode_refresh_token,
    decode_reset_token,
    hash_password,
    issue_refresh_token,
    issue_reset_token,
    issue_session_token,
    verify_password,
)
from opti_api.models import Account, AccountKind, Role
from opti_api.services import otp_ledger
from opti_api.services.accounts import store_for, users
from opti_api.services.email_templates import compose_otp_email, compose_password_changed_email
from opti_api.services.mailer import Mailer, send_courtesy_email

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
DEACTIVATED = "Your account has been deactivated"


@dataclass
class TokenPair:
    token: str
    refresh_token: Optional[str]


@dataclass
class LoginResult:
    account: Account
    token: str
    refresh_token: Optional[str]
    must_change_password: bool


@functools.lru_cache(maxsize=1)
def _dummy_hash() -> str:
    # Compared against when the email is unknown so both failure paths cost one hash check
    return hash_password("opti-timing-equalizer")


def _role(account: Account) -> str:
    return Role(account.role).value


async def _issue_pair(account: Account) -> TokenPair:
    """Mint a session + refresh token and persist the refresh token on the account."""
    kind = account.kind.value
    pair = TokenPair(
        token=issue_session_token(str(account.id), _role(account), kind),
        refresh_token=issue_refresh_token(str(account.id), kind),
    )
    await store_for(account.kind).set_refresh_token(account.id, pair.refresh_token)
    return pair


def _check_new_password(new_password: str, confirm_password: str) -> None:
    errors = password_errors(new_password)
    if errors:
        raise ValidationError("Password does not meet requirements", errors=errors)
    if new_password != confirm_password:
        raise ValidationError("Passwords do not match")


async def login(kind: AccountKind | str, email: str, password: str) -> LoginResult:
    """
    Authenticate an admin or a user.

    Unknown email and wrong password produce the same error so the endpoint
    cannot be used to enumerate accounts. A deactivated account gets its own
    message: reaching that check already required the right password.

    Accounts flagged `must_change_password` get a session token that the access
    gate only honors on the change-password route, and no refresh token.
    """
    kind = AccountKind(kind)
    store = store_for(kind)
    account = await store.find_by_email(email, include_password=True)
    if account is None:
        verify_password(password, _dummy_hash())
        logger.info("[auth] %s login failed for %s", kind.value, email)
        raise AuthError(INVALID_CREDENTIALS)
    if not store.compare_password(password, account):
        logger.info("[auth] %s login failed for %s", kind.value, email)
        raise AuthError(INVALID_CREDENTIALS)
    if not account.is_active:
        raise AuthError(DEACTIVATED)

    account = await store.update(account.id, last_login=timezone.now())
    if account.must_change_password:
        token = issue_session_token(str(account.id), _role(account), kind.value)
        return LoginResult(account=account, token=token, refresh_token=None, must_change_password=True)

    pair = await _issue_pair(account)
    logger.info("[auth] %s id=%s logged in", kind.value, account.id)
    return LoginResult(account=account, token=pair.token, refresh_token=pair.refresh_token, must_change_password=False)


async def change_password(
    account: Account,
    current_password: str,
    new_password: str,
    confirm_password: str,
    mailer: Mailer,
    background: Optional[BackgroundTasks] = None,
) -> TokenPair:
    """
    Self-service password change for users (first-login rotation included).

    Old session tokens are not revoked here; the access gate rejects user tokens
    issued before `password_changed_at`.
    """
    if account.kind != AccountKind.USER:
        raise ForbiddenError("Password change is only available for user accounts")
    user = await users.find_by_id(account.id, include_password=True)
    if user is None:
        raise NotFoundError("User not found")
    if not users.compare_password(current_password, user):
        raise ValidationError("Current password is incorrect")
    errors = password_errors(new_password)
    if errors:
        raise ValidationError("Password does not meet requirements", errors=errors)
    if current_password == new_password:
        raise ValidationError("New password must be different from current password")
    if new_password != confirm_password:
        raise ValidationError("Passwords do not match")

    user = await users.update(user.id, password=new_password, must_change_password=False)
    logger.info("[auth] user id=%s changed password", user.id)

    subject, html = compose_password_changed_email(name=user.name)
    await send_courtesy_email(mailer, background, user.email, subject, html)
    return await _issue_pair(user)


async def forgot_password(email: str, user_type: AccountKind | str, mailer: Mailer) -> None:
    """
    Step 1 of recovery: issue an OTP and email it.

    Unlike login, an unknown email is reported as such (404).
    """
    user_type = AccountKind(user_type)
    account = await store_for(user_type).find_by_email(email)
    if account is None:
        raise NotFoundError("No account found with this email")

    code = await otp_ledger.issue(email, user_type)
    subject, html = compose_otp_email(otp=code, ttl_minutes=settings.otp_ttl_minutes)
    try:
        await mailer.send(email, subject, html)
    except Exception:
        # Without delivery the code is useless, so this one is not a courtesy email
        logger.exception("[auth] failed to deliver OTP to %s", email)
        raise InternalError("Failed to send email")


async def verify_otp(email: str, code: str, user_type: AccountKind | str) -> str:
    """
    Step 2 of recovery: check the code and mark the record verified.

    Returns a `forgot-password-reset` reset token bound to the account; the
    verified OTP record itself remains the gate for step 3.
    """
    user_type = AccountKind(user_type)
    record = await otp_ledger.verify(email, code, user_type)
    if record is None or record.verified:
        raise ValidationError("Invalid or expired OTP")
    if otp_ledger.is_expired(record):
        await otp_ledger.consume(record.id)
        raise ValidationError("OTP has expired")

    account = await store_for(user_type).find_by_email(email)
    if account is None:
        await otp_ledger.consume(record.id)
        raise NotFoundError("User not found")

    await otp_ledger.mark_verified(record.id)
    return issue_reset_token(str(account.id), ResetPurpose.FORGOT_PASSWORD_RESET)


async def reset_password(
    email: str,
    new_password: str,
    confirm_password: str,
    user_type: AccountKind | str,
    mailer: Mailer,
    background: Optional[BackgroundTasks] = None,
    reset_token: Optional[str] = None,
) -> None:
    """
    Step 3 of recovery: set a new password using a verified OTP.

    Fails closed when no verified record exists for (email, user_type). The
    record is deleted on success, so the same code cannot be replayed.
    """
    user_type = AccountKind(user_type)
    record = await otp_ledger.find_verified(email, user_type)
    if record is None:
        raise ValidationError("Please verify OTP first")
    if otp_ledger.is_expired(record):
        await otp_ledger.consume(record.id)
        raise ValidationError("OTP has expired")
    _check_new_password(new_password, confirm_password)

    store = store_for(user_type)
    account = await store.find_by_email(email)
    if account is None:
        raise NotFoundError("User not found")
    if reset_token:
        claims = decode_reset_token(reset_token, ResetPurpose.FORGOT_PASSWORD_RESET)
        if claims.subject_id != str(account.id):
            raise TokenInvalidError("Invalid token")

    fields = {"password": new_password}
    if user_type == AccountKind.USER:
        fields["must_change_password"] = False
    account = await store.update(account.id, **fields)
    await otp_ledger.consume(record.id)
    logger.info("[auth] %s id=%s reset password via OTP", user_type.value, account.id)

    subject, html = compose_password_changed_email(name=getattr(account, "name", None) or "Admin")
    await send_courtesy_email(mailer, background, account.email, subject, html)


async def refresh_session(refresh_token: str) -> TokenPair:
    """
    Exchange a refresh token for a new pair. The presented token must be the
    one persisted on the account, so logout (which clears it) revokes it.
    """
    claims = decode_refresh_token(refresh_token)
    store = store_for(claims.kind)
    account = await store.find_by_id(claims.subject_id)
    if account is None:
        raise AuthError("User no longer exists")
    stored = await store.stored_refresh_token(account.id)
    if not stored or stored != refresh_token:
        raise AuthError("Invalid refresh token")
    if not account.is_active:
        raise AuthError(DEACTIVATED)
    if account.must_change_password:
        raise ForbiddenError("You must change your password before continuing", mustChangePassword=True)
    return await _issue_pair(account)


async def logout(account: Account) -> None:
    """
    Clear the persisted refresh token. Session tokens are stateless and stay
    valid until they expire.
    """
    await store_for(account.kind).set_refresh_token(account.id, None)
    logger.info("[auth] %s id=%s logged out", account.kind.value, account.id)
