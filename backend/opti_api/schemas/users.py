"""
Pydantic schemas for admin-managed users and user self-service.
"""
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

PlanName = Literal["free", "basic", "premium", "enterprise"]
StatusFilter = Literal["active", "inactive", "all"]


class UserCreateIn(BaseModel):
    """The password is generated server-side and returned once."""
    name: str = Field(min_length=1)
    email: EmailStr
    role: Literal["user"] = "user"
    plan: Optional[PlanName] = None


class UserUpdateIn(BaseModel):
    """All fields optional - only provided fields are updated."""
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    plan: Optional[PlanName] = None


class AdminResetUserPasswordIn(BaseModel):
    newPassword: str = Field(min_length=8)


class UserProfileUpdateIn(BaseModel):
    name: str = Field(min_length=1)
