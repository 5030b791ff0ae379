# opti_api/models/admin.py
"""
Database model for admins.
An admin is a tenant owner: it provisions User accounts up to its plan limit.
"""
from tortoise import fields

from .account import Account, AccountKind, Role

DEFAULT_PLAN_FEATURES = [
    "Unlimited chats",
    "Advanced analytics",
    "Priority support",
    "Custom integrations",
]


class Admin(Account):
    """
    Admin database model.

    Relationships:
    - Has many Users (one-to-many, via related_name="users")
    """
    kind = AccountKind.ADMIN

    role = fields.CharEnumField(Role, max_length=16, default=Role.ADMIN)  # admin or superadmin
    plan_name = fields.CharField(max_length=64, default="Basic")
    plan_max_users = fields.IntField(default=10)
    plan_features = fields.JSONField(default=lambda: list(DEFAULT_PLAN_FEATURES))

    public_fields = Account.public_fields + ("plan_name", "plan_max_users", "plan_features")

    class Meta:
        table = "admins"
