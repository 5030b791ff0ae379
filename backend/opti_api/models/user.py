# opti_api/models/user.py
"""
Database model for users.
Users are provisioned by an admin with a temporary password and must change
it on first login. A user is only visible to and mutable by its creator.
"""
from enum import Enum

from tortoise import fields

from .account import Account, AccountKind


class Plan(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class User(Account):
    """
    User database model.

    Relationships:
    - Belongs to the Admin that created it (created_by); deleted with it
    """
    kind = AccountKind.USER

    name = fields.CharField(max_length=255)
    plan = fields.CharEnumField(Plan, max_length=16, default=Plan.BASIC)
    must_change_password = fields.BooleanField(default=True)
    created_by = fields.ForeignKeyField("models.Admin", related_name="users", on_delete=fields.CASCADE)

    public_fields = Account.public_fields + ("name", "plan", "created_by_id")

    class Meta:
        table = "users"
