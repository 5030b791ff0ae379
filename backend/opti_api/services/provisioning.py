"""
Tenant administration: admin self-registration, admin profile and plan, and
the users an admin provisions. A user is only visible to and mutable by the
admin that created it.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import BackgroundTasks

from opti_api.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from opti_api.core.password_policy import generate_temp_password, password_errors
from opti_api.models import Admin, Plan, Role, User
from opti_api.services.accounts import PlanUsage, admins, users
from opti_api.services.email_templates import compose_credentials_email, compose_password_changed_email
from opti_api.services.mailer import Mailer, send_courtesy_email

logger = logging.getLogger(__name__)


@dataclass
class ProvisionedUser:
    user: User
    temporary_password: str


async def register_admin(email: str, password: str, confirm_password: str) -> Admin:
    """
    Public admin sign-up. Reports an already registered email explicitly.
    """
    if await admins.exists_email(email):
        raise ConflictError("Admin with this email already exists")
    errors = password_errors(password)
    if errors:
        raise ValidationError("Password does not meet requirements", errors=errors)
    if password != confirm_password:
        raise ValidationError("Passwords do not match")
    admin = await admins.create(email=email, password=password, role=Role.ADMIN)
    logger.info("[provisioning] registered admin id=%s", admin.id)
    return admin


async def update_admin_profile(admin_id: Any, email: Optional[str] = None) -> Admin:
    if not email:
        admin = await admins.find_by_id(admin_id)
        if admin is None:
            raise NotFoundError("Admin not found")
        return admin
    return await admins.update(admin_id, email=email)


async def update_company_plan(
    admin_id: Any,
    name: Optional[str] = None,
    max_users: Optional[int] = None,
    features: Optional[list[str]] = None,
) -> PlanUsage:
    fields: dict = {}
    if name:
        fields["plan_name"] = name
    if max_users:
        fields["plan_max_users"] = max_users
    if features is not None:
        fields["plan_features"] = features
    await admins.update(admin_id, **fields)
    return await company_plan(admin_id)


async def company_plan(admin_id: Any) -> PlanUsage:
    plan = await admins.plan_with_usage_stats(admin_id)
    if plan is None:
        raise NotFoundError("Admin not found")
    return plan


async def create_user(
    admin: Admin,
    name: str,
    email: str,
    plan: Optional[Plan],
    mailer: Mailer,
    background: Optional[BackgroundTasks] = None,
) -> ProvisionedUser:
    """
    Provision a user with a generated temporary password.

    The user must change the password on first login. The temporary password
    is returned once and emailed to the user.
    """
    usage = await company_plan(admin.id)
    if usage.current_users >= usage.max_users:
        raise ValidationError(f"Maximum user limit ({usage.max_users}) reached for {usage.name} plan")

    temp_password = generate_temp_password()
    user = await users.create(
        name=name,
        email=email,
        password=temp_password,
        role=Role.USER,
        plan=plan or Plan.BASIC,
        created_by_id=admin.id,
        must_change_password=True,
    )
    subject, html = compose_credentials_email(name=name, email=email, temp_password=temp_password)
    await send_courtesy_email(mailer, background, email, subject, html)
    return ProvisionedUser(user=user, temporary_password=temp_password)


async def get_owned_user(admin: Admin, user_id: Any, action: str = "access") -> User:
    """
    Load a user and check it belongs to `admin`.

    Raises:
        NotFoundError: unknown id
        ForbiddenError: user created by another admin
    """
    user = await users.find_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")
    if str(user.created_by_id) != str(admin.id):
        raise ForbiddenError(f"Not authorized to {action} this user")
    return user


async def update_owned_user(admin: Admin, user_id: Any, **changes: Any) -> User:
    user = await get_owned_user(admin, user_id, "update")
    fields = {k: v for k, v in changes.items() if v}
    return await users.update(user.id, **fields)


async def delete_owned_user(admin: Admin, user_id: Any) -> None:
    user = await get_owned_user(admin, user_id, "delete")
    await users.delete(user.id)


async def toggle_owned_user(admin: Admin, user_id: Any) -> User:
    user = await get_owned_user(admin, user_id, "modify")
    return await users.toggle_status(user.id)


async def reset_owned_user_password(
    admin: Admin,
    user_id: Any,
    new_password: str,
    mailer: Mailer,
    background: Optional[BackgroundTasks] = None,
) -> User:
    """
    Admin sets a user's password directly. Stamps `password_changed_at`, so
    sessions the user held before are rejected by the access gate.
    """
    user = await get_owned_user(admin, user_id, "reset password for")
    errors = password_errors(new_password)
    if errors:
        raise ValidationError("Password does not meet requirements", errors=errors)
    user = await users.update(user.id, password=new_password, must_change_password=False)
    logger.info("[provisioning] admin id=%s reset password of user id=%s", admin.id, user.id)
    subject, html = compose_password_changed_email(name=user.name)
    await send_courtesy_email(mailer, background, user.email, subject, html)
    return user
