"""
Test configuration and fixtures.

Provides:
- Fresh in-memory SQLite database per test (schema from Base.metadata)
- Users for each role, teams, and a recording mail sender
- JWT session cookies for authenticated HTTP tests
- HTTPX AsyncClient over ASGITransport with the CSRF header
"""
import os
import uuid
from dataclasses import dataclass, field
from typing import AsyncGenerator, Generator

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("RESEND_API_KEY", "")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from automation_engine.core.deps import COOKIE_NAME, CSRF_HEADER, CSRF_HEADER_VALUE, get_db
from automation_engine.core.errors import DeliveryFailed
from automation_engine.core.security import create_session_token
from automation_engine.db.base import Base
from automation_engine.db.enums import Role
from automation_engine.db.models import Team, TeamMember, User
from automation_engine.main import app


# =============================================================================
# Database Fixtures
# =============================================================================

def _make_engine(url: str = "sqlite://"):
    engine = create_engine(
        url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool if url == "sqlite://" else None,
    )

    # pysqlite defers BEGIN; take over so SAVEPOINT (begin_nested) behaves
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="function")
def engine():
    engine = _make_engine()
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    """Session on a throwaway database; app code may commit freely."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(scope="function")
def file_session_factory(tmp_path):
    """Two sessions on one SQLite file behave like two workers."""
    engine = _make_engine(f"sqlite:///{tmp_path / 'engine.db'}")
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    engine.dispose()


# =============================================================================
# Identity Fixtures
# =============================================================================

def make_user(
    db: Session,
    role: Role,
    department: str | None = None,
    email: str | None = "",
    is_active: bool = True,
) -> User:
    suffix = uuid.uuid4().hex[:8]
    user = User(
        id=uuid.uuid4(),
        email=f"{role.value}-{suffix}@test.org" if email == "" else email,
        display_name=f"{role.value.title()} {suffix}",
        role=role.value,
        department=department,
        is_active=is_active,
        token_version=1,
    )
    db.add(user)
    db.commit()
    return user


def make_team(db: Session, *members: User) -> Team:
    team = Team(id=uuid.uuid4(), name=f"Team {uuid.uuid4().hex[:6]}")
    db.add(team)
    db.flush()
    for member in members:
        db.add(TeamMember(team_id=team.id, user_id=member.id))
    db.commit()
    return team


@pytest.fixture
def founder(db: Session) -> User:
    return make_user(db, Role.FOUNDER)


@pytest.fixture
def admin(db: Session) -> User:
    return make_user(db, Role.ADMIN)


@pytest.fixture
def intern(db: Session) -> User:
    return make_user(db, Role.INTERN)


@pytest.fixture
def volunteer(db: Session) -> User:
    return make_user(db, Role.VOLUNTEER)


@pytest.fixture
def other_volunteer(db: Session) -> User:
    return make_user(db, Role.VOLUNTEER)


# =============================================================================
# Mail Fixtures
# =============================================================================

@dataclass
class RecordingMailSender:
    """Mail sender double. Fails for any address in fail_for."""
    key: str = "recording"
    sent: list[dict] = field(default_factory=list)
    fail_for: set[str] = field(default_factory=set)

    def send(self, to_email, subject, body, *, idempotency_key=None):
        if to_email in self.fail_for:
            raise DeliveryFailed(f"Mailbox unavailable: {to_email}")
        self.sent.append(
            {
                "to": to_email,
                "subject": subject,
                "body": body,
                "idempotency_key": idempotency_key,
            }
        )


@pytest.fixture
def mail_sender() -> RecordingMailSender:
    return RecordingMailSender()


# =============================================================================
# Client Fixtures
# =============================================================================

def session_cookie(user: User) -> dict[str, str]:
    token = create_session_token(
        user_id=user.id,
        role=user.role,
        token_version=user.token_version,
    )
    return {COOKIE_NAME: token}


@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient bound to the test database."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={CSRF_HEADER: CSRF_HEADER_VALUE},
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def login(client: AsyncClient):
    """Set the session cookie on the shared client: login(user)."""
    def _login(user: User) -> AsyncClient:
        client.cookies.clear()
        for name, value in session_cookie(user).items():
            client.cookies.set(name, value)
        return client
    return _login
