# opti_api/models/__init__.py
"""
Database models module initialization.
Exports all database models for convenient imports throughout the application.

Models exported:
- Admin: tenant owner account, holds the plan that caps user provisioning
- User: account provisioned by an admin
- OTPRecord: password recovery code ledger
"""
from .account import Account, AccountKind, AccountStatus, Role
from .admin import Admin
from .user import Plan, User
from .otp import OTPRecord
