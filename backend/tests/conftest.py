"""
Shared test fixtures: in-memory SQLite async database + FastAPI app.

Strategy:
1. Set DATABASE_URL to SQLite before anything loads
2. Build a fresh engine and app per test via ``create_app(engine=...)``
3. Replace the notification dispatcher with a recording sink
"""
import os
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field

# ── 1. Environment ──
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["DEBUG"] = "false"

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from phoenixgrc.main import create_app  # noqa: E402
from phoenixgrc.models import Base, Organization, User, UserRole  # noqa: E402


# ── 2. Recording notification sink ──

@dataclass
class RecordingNotifier:
    emails: list[tuple[int, str, str]] = field(default_factory=list)
    events: list[tuple[int, str, str]] = field(default_factory=list)
    webhooks: list[tuple[str, str]] = field(default_factory=list)

    def notify_user(self, user_id, subject, body):
        if user_id is not None:
            self.emails.append((user_id, subject, body))

    def notify_org_event(self, organization_id, event_type, text):
        self.events.append((organization_id, getattr(event_type, "value", event_type), text))

    def notify_webhook(self, url, text):
        self.webhooks.append((url, text))

    def subjects_for(self, user_id: int) -> list[str]:
        return [subject for uid, subject, _ in self.emails if uid == user_id]


def headers_for(user: User) -> dict[str, str]:
    """Identity headers the upstream auth layer would set."""
    return {
        "X-User-Id": str(user.id),
        "X-Organization-Id": str(user.organization_id),
        "X-User-Role": user.role.value,
    }


# ── Fixtures ──

@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(eng.sync_engine, "connect")
    def _fk_on(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def app(engine, notifier):
    return create_app(engine=engine, notifier=notifier)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db(app) -> AsyncGenerator[AsyncSession, None]:
    async with app.state.sessionmaker() as session:
        yield session


# ── Seed data helpers ──

@dataclass
class Seed:
    org: Organization
    other_org: Organization
    admin: User
    manager: User
    owner: User
    member: User
    outsider: User


@pytest_asyncio.fixture
async def seed(db: AsyncSession) -> Seed:
    org = Organization(name="Acme Energy")
    other_org = Organization(name="Globex")
    db.add_all([org, other_org])
    await db.flush()

    def _user(name, role, organization):
        return User(
            name=name,
            email=f"{name.lower()}@{organization.name.split()[0].lower()}.test",
            role=role,
            organization_id=organization.id,
        )

    admin = _user("Alice", UserRole.ADMIN, org)
    manager = _user("Marek", UserRole.MANAGER, org)
    owner = _user("Olga", UserRole.USER, org)
    member = _user("Uma", UserRole.USER, org)
    outsider = _user("Xavier", UserRole.MANAGER, other_org)
    db.add_all([admin, manager, owner, member, outsider])
    await db.commit()
    return Seed(org, other_org, admin, manager, owner, member, outsider)


async def create_risk(client: AsyncClient, creator: User, **overrides) -> dict:
    body = {
        "title": "Unpatched SCADA gateway",
        "category": "technological",
        "impact": "high",
        "probability": "medium",
    }
    body.update(overrides)
    r = await client.post("/api/v1/risks", json=body, headers=headers_for(creator))
    assert r.status_code == 201, r.text
    return r.json()
