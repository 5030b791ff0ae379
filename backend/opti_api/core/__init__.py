# opti_api/core/__init__.py
"""
Core application modules.
Contains essential infrastructure components:
- bootstrap: Default superadmin creation on first startup
- db: Database configuration and connection management
- errors: Application error types and the JSON error boundary
- password_policy: Password strength rules and temporary password generation
- security: Password hashing and JWT issue/verify
"""
