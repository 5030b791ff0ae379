# opti_api/api/v1/routers/users.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from opti_api.api.v1.deps import require_admin, require_user
from opti_api.models import Account, Admin, Plan
from opti_api.schemas.users import (
    AdminResetUserPasswordIn,
    StatusFilter,
    UserCreateIn,
    UserProfileUpdateIn,
    UserUpdateIn,
)
from opti_api.services import provisioning
from opti_api.services.accounts import to_public_dict, users
from opti_api.services.mailer import Mailer, get_mailer

router = APIRouter(prefix="/users", tags=["users"])


# ==============================================================================
# I. Self-service (declared before /{user_id} so "profile" is not read as an id)
# ==============================================================================
@router.get("/profile/me")
async def get_my_profile(account: Account = Depends(require_user)):
    return {"success": True, "data": {"user": to_public_dict(account)}}


@router.put("/profile/me")
async def update_my_profile(body: UserProfileUpdateIn, account: Account = Depends(require_user)):
    """Users may only change their display name."""
    user = await users.update(account.id, name=body.name)
    return {"success": True, "message": "Profile updated successfully", "data": {"user": to_public_dict(user)}}


# ==============================================================================
# II. Admin-managed users
#     Every route below only sees users created by the calling admin.
# ==============================================================================
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreateIn,
    background: BackgroundTasks,
    admin: Admin = Depends(require_admin),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Provision a user with a generated temporary password.

    The temporary password is returned in this response only and is also
    emailed to the user, who must change it on first login.

    Raises:
        ValidationError (400): the admin's plan limit is reached
        ConflictError (409): email already registered as user
    """
    result = await provisioning.create_user(
        admin,
        name=body.name,
        email=body.email,
        plan=Plan(body.plan) if body.plan else None,
        mailer=mailer,
        background=background,
    )
    return {
        "success": True,
        "message": "User created successfully",
        "data": {"user": to_public_dict(result.user), "temporaryPassword": result.temporary_password},
    }


@router.get("")
async def list_users(
    admin: Admin = Depends(require_admin),
    search: Optional[str] = Query(None, description="Case-insensitive match on name or email"),
    status_: StatusFilter = Query("all", alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    result = await users.list_owned(admin.id, search=search, status=status_, page=page, limit=limit)
    return {
        "success": True,
        "data": {
            "users": [to_public_dict(u) for u in result.items],
            "pagination": {"total": result.total, "page": result.page, "pages": result.pages},
        },
    }


@router.get("/{user_id}")
async def get_user(user_id: uuid.UUID, admin: Admin = Depends(require_admin)):
    user = await provisioning.get_owned_user(admin, user_id)
    return {"success": True, "data": {"user": to_public_dict(user)}}


@router.put("/{user_id}")
async def update_user(user_id: uuid.UUID, body: UserUpdateIn, admin: Admin = Depends(require_admin)):
    user = await provisioning.update_owned_user(
        admin,
        user_id,
        name=body.name,
        email=body.email,
        plan=Plan(body.plan) if body.plan else None,
    )
    return {"success": True, "message": "User updated successfully", "data": {"user": to_public_dict(user)}}


@router.delete("/{user_id}")
async def delete_user(user_id: uuid.UUID, admin: Admin = Depends(require_admin)):
    await provisioning.delete_owned_user(admin, user_id)
    return {"success": True, "message": "User deleted successfully"}


@router.patch("/{user_id}/toggle-status")
async def toggle_user_status(user_id: uuid.UUID, admin: Admin = Depends(require_admin)):
    """Flip active/inactive. A deactivated user is rejected on the next request."""
    user = await provisioning.toggle_owned_user(admin, user_id)
    label = "activated" if user.is_active else "deactivated"
    return {"success": True, "message": f"User {label} successfully", "data": {"user": to_public_dict(user)}}


@router.post("/{user_id}/reset-password")
async def reset_user_password(
    user_id: uuid.UUID,
    body: AdminResetUserPasswordIn,
    background: BackgroundTasks,
    admin: Admin = Depends(require_admin),
    mailer: Mailer = Depends(get_mailer),
):
    """Set a user's password directly; sessions the user held before stop working."""
    await provisioning.reset_owned_user_password(admin, user_id, body.newPassword, mailer, background)
    return {"success": True, "message": "Password reset successfully"}
