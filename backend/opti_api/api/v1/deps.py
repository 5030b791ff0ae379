import datetime as dt

from fastapi import Depends, Header, Request

from opti_api.core.errors import AuthError, ForbiddenError, TokenExpiredError
from opti_api.core.security import decode_session_token
from opti_api.models import Account, AccountKind, Admin
from opti_api.services.accounts import store_for


def _password_changed_after(changed_at: dt.datetime | None, issued_at: int) -> bool:
    """True when the password changed after a token issued at `issued_at` (epoch seconds)."""
    if changed_at is None:
        return False
    if changed_at.tzinfo is None:
        changed_at = changed_at.replace(tzinfo=dt.timezone.utc)
    return int(changed_at.timestamp()) > issued_at


async def get_current_account(
    request: Request,
    authorization: str | None = Header(default=None),
) -> Account:
    """
    FastAPI dependency resolving the account behind a bearer session token.

    The account is re-read from the database on every request, so a
    deactivation or password change made a moment ago already applies.
    The password-change check works in whole seconds, so a token minted in
    the same second as the change is still accepted.

    Returns:
        Account: Admin or User, also attached as `request.state.account`

    Raises:
        AuthError (401): no token / invalid token / expired token
        AuthError (401): account deleted or deactivated
        AuthError (401): user token issued before the last password change
    """
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthError("Not authorized to access this route")

    try:
        claims = decode_session_token(token)
    except TokenExpiredError:
        raise AuthError("Token expired. Please log in again")
    except AuthError:
        raise AuthError("Invalid token. Please log in again")

    try:
        kind = AccountKind(claims.kind)
    except ValueError:
        raise AuthError("Invalid token. Please log in again")

    account = await store_for(kind).find_by_id(claims.subject_id)
    if account is None:
        raise AuthError("User no longer exists")
    if not account.is_active:
        raise AuthError("Your account has been deactivated")
    if kind == AccountKind.USER and _password_changed_after(account.password_changed_at, claims.issued_at):
        raise AuthError("Password recently changed. Please log in again")

    request.state.account = account
    return account


def restrict_to(*roles: str):
    """
    Build a dependency that only lets the listed roles through.

    Usage:
        @router.get("/users", dependencies=[Depends(restrict_to("admin", "superadmin"))])
    """
    allowed = {getattr(r, "value", r) for r in roles}

    async def _restrict(account: Account = Depends(get_current_account)) -> Account:
        if getattr(account.role, "value", account.role) not in allowed:
            raise ForbiddenError("You do not have permission to perform this action")
        return account

    return _restrict


async def check_password_change(account: Account = Depends(get_current_account)) -> Account:
    """
    Block every route that depends on this while the account still has to
    rotate its temporary password. Change-password, logout and /me do not.
    """
    if account.must_change_password:
        raise ForbiddenError("You must change your password before continuing", mustChangePassword=True)
    return account


async def require_admin(
    account: Account = Depends(restrict_to("admin", "superadmin")),
    _: Account = Depends(check_password_change),
) -> Admin:
    """
    Admin-only routes: the role must be admin/superadmin and the account must
    live in the admins table (users are never granted admin roles).
    """
    if not isinstance(account, Admin):
        raise ForbiddenError("You do not have permission to perform this action")
    return account


async def require_user(account: Account = Depends(check_password_change)) -> Account:
    """Routes for provisioned users (profile self-service)."""
    if account.kind != AccountKind.USER:
        raise ForbiddenError("You do not have permission to perform this action")
    return account
