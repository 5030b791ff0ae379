# opti_api/models/account.py
"""
Shared shape of the two account kinds (Admin and User).
Concrete tables live in admin.py and user.py; email is unique per table.
"""
import uuid
from enum import Enum

from tortoise import fields, models


class AccountKind(str, Enum):
    """Which table an account lives in; also the `userType` of the OTP flow."""
    ADMIN = "admin"
    USER = "user"


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class AccountStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Account(models.Model):
    """
    Abstract account model.

    Security:
    - Password is stored as a hash (never store plain text passwords)
    - `status` and `must_change_password` are independent; both gate login
    - `refresh_token` holds the last issued refresh token, cleared on logout
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    email = fields.CharField(max_length=255, unique=True, index=True)  # case-sensitive as stored
    password_hash = fields.CharField(max_length=255)
    role = fields.CharEnumField(Role, max_length=16, default=Role.USER)
    status = fields.CharEnumField(AccountStatus, max_length=16, default=AccountStatus.ACTIVE)
    must_change_password = fields.BooleanField(default=False)
    last_login = fields.DatetimeField(null=True)
    password_changed_at = fields.DatetimeField(null=True)
    refresh_token = fields.TextField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    # Fields returned when a record is loaded without its password hash
    public_fields: tuple[str, ...] = (
        "id", "email", "role", "status", "must_change_password",
        "last_login", "password_changed_at", "created_at", "updated_at",
    )

    class Meta:
        abstract = True

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE
