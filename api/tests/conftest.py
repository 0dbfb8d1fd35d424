"""Shared test fixtures.

Tests run against a throwaway SQLite database. CT_DATABASE_URL must be set
before anything imports app.core.config.
"""

import os
import tempfile
from pathlib import Path

_DB_PATH = Path(tempfile.mkdtemp(prefix="courtly-tests-")) / "test.db"
os.environ["CT_DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ.setdefault("CT_STRIPE_WEBHOOK_SECRET", "whsec_test")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.core.auth import create_access_token, hash_password  # noqa: E402
from app.core.database import async_session_factory, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models import (  # noqa: E402
    Base,
    ClubSubmission,
    OrgMembership,
    OrgRole,
    Organization,
    RequestStatus,
    User,
    UserType,
)


@pytest.fixture(autouse=True)
async def _reset_database():
    """Fresh tables for every test.

    The global engine is created at import time. When pytest-asyncio creates a new
    event loop for a test, pooled connections are bound to the old loop, so the
    pool is disposed before the schema is rebuilt.
    """
    await engine.dispose()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


async def make_user(
    email: str,
    user_type: UserType = UserType.MEMBER,
    full_name: str | None = None,
    password: str | None = "testpass123",
    email_verified: bool = True,
) -> User:
    async with async_session_factory() as db:
        user = User(
            email=email,
            hashed_password=hash_password(password) if password else None,
            full_name=full_name,
            user_type=user_type,
            email_verified=email_verified,
        )
        db.add(user)
        await db.commit()
        return user


async def make_org(slug: str = "test-club", name: str = "Test Club", **fields) -> Organization:
    async with async_session_factory() as db:
        org = Organization(
            name=name,
            slug=slug,
            city=fields.pop("city", "Portland"),
            state=fields.pop("state", "OR"),
            is_verified=fields.pop("is_verified", True),
            is_active=fields.pop("is_active", True),
            membership_tiers={},
            **fields,
        )
        db.add(org)
        await db.commit()
        return org


async def add_member(user: User, org: Organization, role: OrgRole = OrgRole.MEMBER) -> None:
    async with async_session_factory() as db:
        db.add(OrgMembership(user_id=user.id, organization_id=org.id, role=role, is_active=True))
        await db.commit()


async def make_submission(submitter: User, name: str = "Riverside Tennis Club", **fields) -> ClubSubmission:
    async with async_session_factory() as db:
        submission = ClubSubmission(
            name=name,
            email=fields.pop("email", "info@riverside.example.com"),
            city=fields.pop("city", "Portland"),
            state=fields.pop("state", "OR"),
            courts=fields.pop("courts", 3),
            court_type=fields.pop("court_type", "hard"),
            status=RequestStatus.PENDING,
            submitted_by=submitter.id,
            submitter_email=submitter.email,
            submitter_name=submitter.display_name,
            **fields,
        )
        db.add(submission)
        await db.commit()
        return submission


@pytest.fixture
async def staff():
    return await make_user("staff@example.com", UserType.COURTLY, "Courtly Staff")


@pytest.fixture
async def member():
    return await make_user("member@example.com", full_name="Jamie Rivera")


@pytest.fixture
async def org():
    return await make_org()
