"""
Pydantic schemas for authentication endpoints.
Field names follow the JSON the frontend sends (camelCase).
"""
from typing import Literal

from pydantic import BaseModel, EmailStr, Field

UserType = Literal["admin", "user"]


class LoginIn(BaseModel):
    """Credentials for admin or user login."""
    email: EmailStr
    password: str = Field(min_length=1)


class ChangePasswordIn(BaseModel):
    currentPassword: str = Field(min_length=1)
    newPassword: str = Field(min_length=8)
    confirmPassword: str = Field(min_length=1)


class ForgotPasswordIn(BaseModel):
    email: EmailStr
    userType: UserType


class VerifyOtpIn(BaseModel):
    email: EmailStr
    otp: str = Field(pattern=r"^[0-9]{6}$")  # 6 ASCII digits
    userType: UserType


class ResetPasswordIn(BaseModel):
    email: EmailStr
    newPassword: str = Field(min_length=8)
    confirmPassword: str = Field(min_length=1)
    userType: UserType
    resetToken: str | None = None  # returned by verify-otp; checked when present


class RefreshTokenIn(BaseModel):
    refreshToken: str = Field(min_length=1)
