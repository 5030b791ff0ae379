# opti_api/core/bootstrap.py
"""
Startup tasks: create the default superadmin on first run.
"""
import os
import logging

from pydantic import EmailStr, TypeAdapter

from opti_api.core.password_policy import password_errors
from opti_api.models import Admin, Role
from opti_api.services.accounts import admins

logger = logging.getLogger("uvicorn.error")

async def ensure_default_admin() -> None:
    """
    If no superadmin exists in the database, create one from environment variables.
    Only takes effect under the following conditions:
      - Currently no admin with role="superadmin"
      - And ADMIN_PASSWORD is set (no built-in default password)
    Environment variables:
      ADMIN_EMAIL    (default: "admin@example.com")
      ADMIN_PASSWORD (required, otherwise won't create)
    """
    if await Admin.filter(role=Role.SUPERADMIN).exists():
        return

    admin_password = os.getenv("ADMIN_PASSWORD")
    if not admin_password:
        logger.warning("[bootstrap] No superadmin present, but ADMIN_PASSWORD not set -> skip creating default admin.")
        return

    problems = password_errors(admin_password)
    if problems:
        logger.warning("[bootstrap] ADMIN_PASSWORD is weak: %s", "; ".join(problems))

    # Same normalization as request bodies (EmailStr lowercases the domain), so login finds it
    admin_email = TypeAdapter(EmailStr).validate_python(os.getenv("ADMIN_EMAIL", "admin@example.com"))
    if await admins.exists_email(admin_email):
        # A regular admin registered with this email; promote instead of failing on the unique index
        existing = await admins.find_by_email(admin_email)
        await admins.update(existing.id, role=Role.SUPERADMIN)
        logger.warning("[bootstrap] Promoted admin to superadmin -> email=%s id=%s", admin_email, existing.id)
        return

    admin = await admins.create(email=admin_email, password=admin_password, role=Role.SUPERADMIN)
    logger.warning("[bootstrap] Created default superadmin -> email=%s id=%s", admin.email, admin.id)
