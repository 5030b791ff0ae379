from fastapi import APIRouter, BackgroundTasks, Depends

from opti_api.api.v1.deps import get_current_account
from opti_api.models import Account, AccountKind
from opti_api.schemas.auth import (
    ChangePasswordIn,
    ForgotPasswordIn,
    LoginIn,
    RefreshTokenIn,
    ResetPasswordIn,
    VerifyOtpIn,
)
from opti_api.services import auth as auth_service
from opti_api.services.accounts import to_public_dict
from opti_api.services.mailer import Mailer, get_mailer

router = APIRouter(prefix="/auth", tags=["auth"])


def _login_response(result: auth_service.LoginResult) -> dict:
    data = {
        "user": to_public_dict(result.account),
        "token": result.token,
        "refreshToken": result.refresh_token,
        "mustChangePassword": result.must_change_password,
    }
    message = "Password change required" if result.must_change_password else "Login successful"
    return {"success": True, "message": message, "data": data}


@router.post("/admin/login")
async def admin_login(body: LoginIn):
    """
    Authenticate an admin.

    Returns:
        dict: user, token, refreshToken, mustChangePassword (always False for admins)

    Raises:
        AuthError (401): "Invalid credentials" for unknown email or wrong password
        AuthError (401): account deactivated
    """
    result = await auth_service.login(AccountKind.ADMIN, body.email, body.password)
    return _login_response(result)


@router.post("/user/login")
async def user_login(body: LoginIn):
    """
    Authenticate a provisioned user.

    When the user still holds a temporary password the response carries
    `mustChangePassword: true` and no refresh token; the session token it
    returns only works for /auth/change-password, /auth/logout and /auth/me.
    """
    result = await auth_service.login(AccountKind.USER, body.email, body.password)
    return _login_response(result)


@router.post("/change-password")
async def change_password(
    body: ChangePasswordIn,
    background: BackgroundTasks,
    account: Account = Depends(get_current_account),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Change the current user's password (required on first login).

    Returns a fresh token pair; the confirmation email is sent after the response.
    """
    pair = await auth_service.change_password(
        account,
        body.currentPassword,
        body.newPassword,
        body.confirmPassword,
        mailer,
        background,
    )
    return {
        "success": True,
        "message": "Password changed successfully",
        "data": {"token": pair.token, "refreshToken": pair.refresh_token},
    }


@router.post("/forgot-password")
async def forgot_password(body: ForgotPasswordIn, mailer: Mailer = Depends(get_mailer)):
    """
    Send a 6-digit OTP to the account's email (valid 10 minutes by default).

    Raises:
        NotFoundError (404): no account of this type with this email
    """
    await auth_service.forgot_password(body.email, body.userType, mailer)
    return {"success": True, "message": "OTP sent to your email"}


@router.post("/verify-otp")
async def verify_otp(body: VerifyOtpIn):
    """
    Check an OTP. On success the password can be reset with /auth/reset-password.

    Raises:
        ValidationError (400): wrong code, or code expired
    """
    reset_token = await auth_service.verify_otp(body.email, body.otp, body.userType)
    return {"success": True, "message": "OTP verified successfully", "data": {"resetToken": reset_token}}


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordIn,
    background: BackgroundTasks,
    mailer: Mailer = Depends(get_mailer),
):
    """
    Set a new password after a verified OTP.

    Raises:
        ValidationError (400): OTP not verified first, weak password, confirmation mismatch
    """
    await auth_service.reset_password(
        body.email,
        body.newPassword,
        body.confirmPassword,
        body.userType,
        mailer,
        background,
        reset_token=body.resetToken,
    )
    return {"success": True, "message": "Password reset successfully"}


@router.post("/refresh-token")
async def refresh_token(body: RefreshTokenIn):
    """Exchange a refresh token for a new token pair (the old refresh token stops working)."""
    pair = await auth_service.refresh_session(body.refreshToken)
    return {"success": True, "data": {"token": pair.token, "refreshToken": pair.refresh_token}}


@router.get("/me")
async def me(account: Account = Depends(get_current_account)):
    """Current account, including whether a password change is pending."""
    return {"success": True, "data": {"user": to_public_dict(account), "userType": account.kind.value}}


@router.post("/logout")
async def logout(account: Account = Depends(get_current_account)):
    """
    Clear the stored refresh token.

    Note:
        The session token itself stays valid until it expires; it is stateless.
    """
    await auth_service.logout(account)
    return {"success": True, "message": "Logged out successfully"}
