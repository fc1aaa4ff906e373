"""Pytest configuration.

Environment is set before the application is imported so that app.core.config
picks up test values. API tests run against an in-memory SQLite database that
replaces the get_db dependency; every test gets a fresh database.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SUPERADMINS"] = "root@platform.example.com"
os.environ["RATE_LIMIT"] = "100000/minute"

from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import Iterable, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.main import app  # noqa: E402
from app.core import config  # noqa: E402
from app.core.database.engine import get_db, init_db  # noqa: E402
from app.features.organizations.impersonation import (  # noqa: E402
    ImpersonationContext,
    get_impersonation_provider,
)
from app.features.organizations.models import Organization  # noqa: E402
from app.features.permissions.catalog import Role  # noqa: E402
from app.features.permissions.models import AuditLog  # noqa: E402
from app.features.subscriptions.models import Subscription, SubscriptionStatus  # noqa: E402
from app.features.users.auth import create_access_token  # noqa: E402
from app.features.users.models import User  # noqa: E402


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """HTTP client bound to the app, using the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# =============================================================================
# Factories
# =============================================================================


class StaticImpersonationProvider:
    """Impersonation provider returning a fixed context, for tests."""

    def __init__(self, context: Optional[ImpersonationContext] = None):
        self.context = context
        self.cleared = False

    def get(self, request):
        return self.context

    def issue(self, response, context):
        self.context = context

    def clear(self, response):
        self.context = None
        self.cleared = True


@pytest.fixture
def impersonate():
    """Make every request appear to carry the given impersonation context."""

    def _impersonate(organization_id: Optional[str], issued_by: Optional[str] = None) -> StaticImpersonationProvider:
        context = ImpersonationContext(organization_id=organization_id, issued_by=issued_by) if organization_id else None
        provider = StaticImpersonationProvider(context)
        app.dependency_overrides[get_impersonation_provider] = lambda: provider
        return provider

    return _impersonate


async def create_org(
    session_factory,
    name: str,
    status: Optional[SubscriptionStatus] = SubscriptionStatus.TRIAL,
    trial_end: Optional[datetime] = None,
    is_active: bool = True,
) -> Organization:
    """Create an organization, with a subscription unless status is None."""
    async with session_factory() as session:
        org = Organization(
            name=name,
            slug=name.lower().replace(" ", "-"),
            primary_email=f"{name.lower().replace(' ', '')}@example.com",
            is_active=is_active,
        )
        session.add(org)
        await session.flush()
        if status is not None:
            session.add(Subscription(
                organization_id=org.id,
                status=status,
                trial_end=trial_end or datetime.now(timezone.utc) + timedelta(days=14),
            ))
        await session.commit()
        return org


async def create_user(
    session_factory,
    email: str,
    role: Role = Role.EMPLOYEE,
    organization_id: Optional[str] = None,
    is_super_admin: bool = False,
    permissions: Iterable[str] = (),
    is_active: bool = True,
) -> User:
    async with session_factory() as session:
        user = User(
            external_id=f"ext-{email}",
            email=email,
            name=email.split("@")[0],
            role=role,
            organization_id=organization_id,
            is_super_admin=is_super_admin,
            permissions=list(permissions),
            is_active=is_active,
        )
        session.add(user)
        await session.commit()
        return user


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user.external_id, user.email, user.name)
    return {"Authorization": f"Bearer {token}"}


async def audit_entries(session_factory, action: Optional[str] = None) -> list[AuditLog]:
    async with session_factory() as session:
        stmt = select(AuditLog).order_by(AuditLog.created_at)
        if action:
            stmt = stmt.where(AuditLog.action == action)
        return list((await session.execute(stmt)).scalars().all())


def cookie_value(response, name: str = config.IMPERSONATION_COOKIE_NAME) -> Optional[str]:
    """Value of a cookie set by the response, read straight from the header."""
    headers = response.headers
    # httpx responses expose get_list, starlette responses getlist
    values = headers.get_list("set-cookie") if hasattr(headers, "get_list") else headers.getlist("set-cookie")
    for header in values:
        key, _, rest = header.partition("=")
        if key == name:
            return rest.split(";", 1)[0]
    return None


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests without database")
    config.addinivalue_line("markers", "integration: Tests against an in-memory database")
