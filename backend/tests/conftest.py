"""
Pytest configuration and fixtures.

Every test gets a fresh in-memory SQLite database. The API client shares the
test's session, so assertions see exactly what the endpoints committed.
"""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OUTBOX_WORKER_ENABLED"] = "false"
os.environ["AUDIT_DYNAMODB_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from courtdesk.core.security import create_access_token
from courtdesk.db.database import Base, get_db
from courtdesk.db.models import Case, CaseType, Role, User
from courtdesk.main import app
from courtdesk.services import case_service


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(db):
    def override_get_db():
        try:
            yield db
        finally:
            db.rollback()

    app.dependency_overrides[get_db] = override_get_db
    # No context manager: lifespan (create_all on the real engine, scheduler) stays off.
    yield TestClient(app)
    app.dependency_overrides.clear()


# ============================================================================
# Users
# ============================================================================

class Users:
    """Attribute bag of the demo cast"""


_CAST = [
    ("judge", "Justice Menon", Role.judge, "High Court 1"),
    ("judge2", "Justice Pillai", Role.judge, "High Court 2"),
    ("registrar", "Registrar Nair", Role.registrar, "Registry"),
    ("clerk", "Clerk Varma", Role.clerk, "Registry"),
    ("lawyer", "Adv. Thomas", Role.lawyer, None),
    ("lawyer2", "Adv. Iyer", Role.lawyer, None),
    ("admin", "Admin", Role.admin, None),
    ("court_admin", "Court Admin", Role.court_admin, None),
]


@pytest.fixture
def users(db):
    cast = Users()
    for key, name, role, department in _CAST:
        user = User(
            name=name,
            email=f"{key}@courtdesk.test",
            role=role,
            department=department,
            is_active=True,
        )
        db.add(user)
        setattr(cast, key, user)
    db.commit()
    return cast


def auth(user: User, **kwargs) -> dict:
    token = create_access_token(user.id, Role(user.role).value, **kwargs)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    return auth


# ============================================================================
# Cases at each lifecycle stage
# ============================================================================

@pytest.fixture
def pending_case(db, users) -> Case:
    return case_service.create_case(db, users.lawyer, "Thomas v. Transport Corp", CaseType.civil)


@pytest.fixture
def filed_case(db, users, pending_case) -> Case:
    return case_service.approve_case(db, users.registrar, pending_case.id)


@pytest.fixture
def assigned_case(db, users, filed_case) -> Case:
    return case_service.assign_court(db, users.registrar, filed_case.id, "High Court 1", users.judge.id)
