# opti_api/api/v1/routers/admin.py
from __future__ import annotations

from fastapi import APIRouter, Depends, status

from opti_api.api.v1.deps import require_admin
from opti_api.core.security import issue_refresh_token, issue_session_token
from opti_api.models import Admin
from opti_api.schemas.admin import (
    AdminProfileUpdateIn,
    AdminRegisterIn,
    CompanyPlanUpdateIn,
)
from opti_api.services import provisioning
from opti_api.services.accounts import admins, to_public_dict

router = APIRouter(prefix="/admin", tags=["admin"])


# ==============================================================================
# I. Registration (public)
# ==============================================================================
@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: AdminRegisterIn):
    """
    Create an admin account and sign it in.

    Raises:
        ConflictError (409): email already registered as admin
        ValidationError (400): weak password or confirmation mismatch
    """
    admin = await provisioning.register_admin(body.email, body.password, body.confirmPassword)
    token = issue_session_token(str(admin.id), admin.role.value, admin.kind.value)
    refresh_token = issue_refresh_token(str(admin.id), admin.kind.value)
    await admins.set_refresh_token(admin.id, refresh_token)
    return {
        "success": True,
        "message": "Admin registered successfully",
        "data": {"user": to_public_dict(admin), "token": token, "refreshToken": refresh_token},
    }


# ==============================================================================
# II. Profile
# ==============================================================================
@router.get("/profile")
async def get_profile(admin: Admin = Depends(require_admin)):
    return {"success": True, "data": {"user": to_public_dict(admin)}}


@router.put("/profile")
async def update_profile(body: AdminProfileUpdateIn, admin: Admin = Depends(require_admin)):
    """Only the email can be changed here; 409 when another admin already uses it."""
    updated = await provisioning.update_admin_profile(admin.id, email=body.email)
    return {"success": True, "message": "Profile updated successfully", "data": {"user": to_public_dict(updated)}}


# ==============================================================================
# III. Company plan
# ==============================================================================
@router.get("/company-plan")
async def get_company_plan(admin: Admin = Depends(require_admin)):
    """Plan limits together with the number of users already provisioned."""
    plan = await provisioning.company_plan(admin.id)
    return {"success": True, "data": {"plan": plan.to_dict()}}


@router.put("/company-plan")
async def update_company_plan(body: CompanyPlanUpdateIn, admin: Admin = Depends(require_admin)):
    plan = await provisioning.update_company_plan(
        admin.id,
        name=body.name,
        max_users=body.maxUsers,
        features=body.features,
    )
    return {"success": True, "message": "Company plan updated successfully", "data": {"plan": plan.to_dict()}}
