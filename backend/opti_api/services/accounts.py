"""
Credential Store

One store abstraction for both account kinds. `admins` and `users` are the two
instances; `store_for(kind)` dispatches by AccountKind so login/update logic is
written once.

Passwords only cross this boundary in plain text on the way in: `create` and
`update` hash any `password` argument before it reaches the database.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Generic, List, Optional, Type, TypeVar

from tortoise import timezone
from tortoise.exceptions import IntegrityError
from tortoise.expressions import Q

from opti_api.core.errors import ConflictError, NotFoundError
from opti_api.core.security import hash_password, verify_password
from opti_api.models import Account, AccountKind, AccountStatus, Admin, User

logger = logging.getLogger(__name__)

A = TypeVar("A", bound=Account)


@dataclass
class PlanUsage:
    """Admin plan together with how much of it is used."""
    name: str
    max_users: int
    current_users: int
    features: List[str]

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "maxUsers": self.max_users,
            "currentUsers": self.current_users,
            "features": self.features,
        }


@dataclass
class Page(Generic[A]):
    items: List[A]
    total: int
    page: int
    pages: int


class AccountStore(Generic[A]):
    """
    Persistence operations shared by both account kinds.

    Args:
        model: Concrete Tortoise model (Admin or User)
        label: Human readable name used in error messages ("Admin", "User")
    """

    def __init__(self, model: Type[A], label: str):
        self.model = model
        self.label = label

    @property
    def kind(self) -> AccountKind:
        return self.model.kind

    # -------- reads --------
    def _query(self, include_password: bool):
        qs = self.model.all()
        if not include_password:
            # Partial model: the hash is not even loaded
            qs = qs.only(*self.model.public_fields)
        return qs

    async def find_by_id(self, account_id: Any, include_password: bool = False) -> Optional[A]:
        if account_id is None:
            return None
        return await self._query(include_password).filter(id=account_id).first()

    async def find_by_email(self, email: str, include_password: bool = False) -> Optional[A]:
        if not email:
            return None
        return await self._query(include_password).filter(email=email).first()

    async def exists_email(self, email: str, exclude_id: Any = None) -> bool:
        qs = self.model.filter(email=email)
        if exclude_id is not None:
            qs = qs.exclude(id=exclude_id)
        return await qs.exists()

    @staticmethod
    def compare_password(plain: str, account: Optional[Account]) -> bool:
        """Check `plain` against an account loaded with include_password=True."""
        hashed = getattr(account, "password_hash", None) if account is not None else None
        return verify_password(plain, hashed)

    # -------- writes --------
    async def create(self, *, password: str, **fields: Any) -> A:
        """
        Insert a new account. The plaintext password is hashed here.

        Raises:
            ConflictError: email already registered for this account kind
        """
        email = fields.get("email")
        if email and await self.exists_email(email):
            raise ConflictError(f"{self.label} with this email already exists")
        try:
            account = await self.model.create(password_hash=hash_password(password), **fields)
        except IntegrityError:
            # Lost a race with a concurrent insert of the same email
            raise ConflictError(f"{self.label} with this email already exists")
        logger.info("[accounts] created %s id=%s", self.kind.value, account.id)
        return await self.find_by_id(account.id)

    async def update(self, account_id: Any, **fields: Any) -> A:
        """
        Apply a partial update and return the fresh record (without hash).

        A `password` key is hashed and stamps `password_changed_at`.

        Raises:
            NotFoundError: no account with this id
            ConflictError: new email already taken
        """
        password = fields.pop("password", None)
        if password is not None:
            fields["password_hash"] = hash_password(password)
            fields["password_changed_at"] = timezone.now()
        email = fields.get("email")
        if email and await self.exists_email(email, exclude_id=account_id):
            raise ConflictError("Email already in use")
        if fields:
            fields["updated_at"] = timezone.now()
            try:
                updated = await self.model.filter(id=account_id).update(**fields)
            except IntegrityError:
                raise ConflictError("Email already in use")
            if not updated:
                raise NotFoundError(f"{self.label} not found")
        account = await self.find_by_id(account_id)
        if account is None:
            raise NotFoundError(f"{self.label} not found")
        return account

    async def set_refresh_token(self, account_id: Any, token: Optional[str]) -> None:
        await self.model.filter(id=account_id).update(refresh_token=token)

    async def stored_refresh_token(self, account_id: Any) -> Optional[str]:
        rows = await self.model.filter(id=account_id).values_list("refresh_token", flat=True)
        return rows[0] if rows else None


class AdminStore(AccountStore[Admin]):

    async def plan_with_usage_stats(self, admin_id: Any) -> Optional[PlanUsage]:
        """Current user count vs the plan's maximum, or None for an unknown admin."""
        admin = await self.find_by_id(admin_id)
        if admin is None:
            return None
        current = await User.filter(created_by_id=admin.id).count()
        return PlanUsage(
            name=admin.plan_name,
            max_users=admin.plan_max_users,
            current_users=current,
            features=list(admin.plan_features or []),
        )


class UserStore(AccountStore[User]):

    async def delete(self, user_id: Any) -> None:
        deleted = await User.filter(id=user_id).delete()
        if not deleted:
            raise NotFoundError("User not found")
        logger.info("[accounts] deleted user id=%s", user_id)

    async def toggle_status(self, user_id: Any) -> User:
        user = await self.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        new_status = AccountStatus.INACTIVE if user.is_active else AccountStatus.ACTIVE
        return await self.update(user_id, status=new_status)

    async def list_owned(
        self,
        admin_id: Any,
        search: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Page[User]:
        """Users created by `admin_id`, newest first, with optional search and status filter."""
        qs = self._query(include_password=False).filter(created_by_id=admin_id)
        if search:
            qs = qs.filter(Q(name__icontains=search) | Q(email__icontains=search))
        if status and status != "all":
            qs = qs.filter(status=AccountStatus(status))
        total = await qs.count()
        rows = await qs.order_by("-created_at").offset((page - 1) * limit).limit(limit)
        return Page(items=list(rows), total=total, page=page, pages=math.ceil(total / limit) if limit else 0)


admins = AdminStore(Admin, "Admin")
users = UserStore(User, "User")


def store_for(kind: AccountKind | str) -> AccountStore:
    """Pick the store for an account kind ("admin" or "user")."""
    return admins if AccountKind(kind) == AccountKind.ADMIN else users


def to_public_dict(account: Account) -> dict:
    """Serialize an account for API responses (never includes the hash or tokens)."""
    out = {
        "id": str(account.id),
        "email": account.email,
        "role": account.role.value if hasattr(account.role, "value") else account.role,
        "status": account.status.value if hasattr(account.status, "value") else account.status,
        "mustChangePassword": account.must_change_password,
        "lastLogin": account.last_login.isoformat() if account.last_login else None,
        "createdAt": account.created_at.isoformat() if account.created_at else None,
        "updatedAt": account.updated_at.isoformat() if account.updated_at else None,
    }
    if isinstance(account, Admin):
        out["planName"] = account.plan_name
        out["planMaxUsers"] = account.plan_max_users
        out["planFeatures"] = account.plan_features
    elif isinstance(account, User):
        out["name"] = account.name
        out["plan"] = account.plan.value if hasattr(account.plan, "value") else account.plan
        out["createdBy"] = str(account.created_by_id) if account.created_by_id else None
    return out
