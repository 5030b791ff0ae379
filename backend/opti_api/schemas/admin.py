"""
Pydantic schemas for admin registration, profile and company plan endpoints.
"""
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class AdminRegisterIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    confirmPassword: str = Field(min_length=1)


class AdminProfileUpdateIn(BaseModel):
    email: Optional[EmailStr] = None


class CompanyPlanUpdateIn(BaseModel):
    """All fields optional - only provided fields are updated."""
    name: Optional[str] = Field(default=None, min_length=1)
    maxUsers: Optional[int] = Field(default=None, ge=1)
    features: Optional[List[str]] = None
