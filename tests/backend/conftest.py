import os
import uuid

# Settings are read at import time, so the test environment goes in first
os.environ.setdefault("ENV", "test")
os.environ.setdefault("MAIL_BACKEND", "log")
os.environ.setdefault("ARGON2_TIME_COST", "1")
os.environ["JWT_SECRET"] = "test-session-secret-0123456789abcdef0123456789"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret-0123456789abcdef0123456789"

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tortoise import Tortoise

from opti_api.core import db as db_module
from opti_api.main import app
from opti_api.models import Admin, Role, User
from opti_api.services.accounts import admins, users
from opti_api.services.mailer import Mailer, get_mailer


TEST_DB_URL = "sqlite://:memory:"
os.environ["DATABASE_URL"] = TEST_DB_URL
db_module.DB_URL = TEST_DB_URL
db_module.TORTOISE_ORM["connections"]["default"] = TEST_DB_URL

STRONG_PASSWORD = "AdminPass!23"
USER_PASSWORD = "UserPass!23"


class RecordingMailer(Mailer):
    """Keeps every message instead of delivering it."""

    def __init__(self):
        self.sent: list[dict] = []

    @property
    def name(self) -> str:
        return "recording"

    async def send(self, to: str, subject: str, html: str) -> None:
        self.sent.append({"to": to, "subject": subject, "html": html})


async def _init_test_db() -> None:
    """
    Initialize a clean in-memory SQLite database for every test.
    Ensures tables are recreated from scratch.
    """
    if Tortoise._inited:
        await Tortoise.close_connections()
    await Tortoise.init(config=db_module.TORTOISE_ORM)
    await Tortoise.generate_schemas()


@pytest_asyncio.fixture
async def db():
    """Fresh database without the HTTP layer (service-level tests)."""
    await _init_test_db()
    yield
    await Tortoise.close_connections()


@pytest_asyncio.fixture
async def mailer():
    recording = RecordingMailer()
    app.dependency_overrides[get_mailer] = lambda: recording
    yield recording
    app.dependency_overrides.pop(get_mailer, None)


@pytest_asyncio.fixture
async def client(db, mailer):
    """
    Provide an HTTPX AsyncClient bound to the FastAPI app with a fresh DB.
    Startup hooks are not run; the database comes from the `db` fixture.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client


@pytest_asyncio.fixture
async def create_admin(db):
    """
    Factory fixture to create admins directly through the credential store.
    """

    async def _create_admin(
        email: str | None = None,
        password: str = STRONG_PASSWORD,
        role: Role = Role.ADMIN,
        **fields,
    ) -> tuple[Admin, str]:
        admin = await admins.create(
            email=email or f"admin_{uuid.uuid4().hex[:6]}@example.com",
            password=password,
            role=role,
            **fields,
        )
        return admin, password

    return _create_admin


@pytest_asyncio.fixture
async def create_user(db):
    """
    Factory fixture to create users owned by `admin`.
    By default the user has already rotated its temporary password.
    """

    async def _create_user(
        admin: Admin,
        email: str | None = None,
        password: str = USER_PASSWORD,
        must_change_password: bool = False,
        **fields,
    ) -> tuple[User, str]:
        user = await users.create(
            name=fields.pop("name", "Test User"),
            email=email or f"user_{uuid.uuid4().hex[:6]}@example.com",
            password=password,
            role=Role.USER,
            created_by_id=admin.id,
            must_change_password=must_change_password,
            **fields,
        )
        return user, password

    return _create_user


@pytest_asyncio.fixture
async def login(client):
    """
    Helper fixture: log in through the API and return the response body data.
    """

    async def _login(kind: str, email: str, password: str) -> dict:
        resp = await client.post(f"/api/v1/auth/{kind}/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return resp.json()["data"]

    return _login


@pytest_asyncio.fixture
async def auth_header_factory(login):
    """
    Helper fixture to obtain Authorization headers via the login endpoints.
    """

    async def _get_headers(kind: str, email: str, password: str) -> dict[str, str]:
        data = await login(kind, email, password)
        return {"Authorization": f"Bearer {data['token']}"}

    return _get_headers
