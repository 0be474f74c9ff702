"""Pytest fixtures for test suite."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from doula_crm import models  # noqa: F401
from doula_crm.core.context import RequestContext
from doula_crm.core.database import get_session
from doula_crm.main import app
from doula_crm.organizations.models import Role, User
from doula_crm.organizations.schemas import OrganizationBootstrap
from doula_crm.organizations.service import bootstrap_organization


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite shared across connections."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


# =============================================================================
# Organization Fixtures
# =============================================================================


def add_user(session: Session, organization_id: str, email: str, role: str, full_name: str | None = None) -> User:
    user = User(organization_id=organization_id, email=email, full_name=full_name, role=role)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def bootstrap(session):
    """An organization with seeded metadata and its owner."""
    return bootstrap_organization(
        session,
        OrganizationBootstrap(name="Harbor Doulas", owner_email="owner@harbor.example.com", owner_name="Olive Owner"),
    )


@pytest.fixture
def org(bootstrap):
    return bootstrap[0]


@pytest.fixture
def owner(bootstrap):
    return bootstrap[1]


@pytest.fixture
def admin(session, org):
    return add_user(session, org.id, "admin@harbor.example.com", Role.ADMIN.value, "Ada Admin")


@pytest.fixture
def staff(session, org):
    return add_user(session, org.id, "staff@harbor.example.com", Role.STAFF.value, "Sam Staff")


@pytest.fixture
def other_staff(session, org):
    return add_user(session, org.id, "other@harbor.example.com", Role.STAFF.value, "Remy Other")


@pytest.fixture
def owner_ctx(owner) -> RequestContext:
    return RequestContext.for_user(owner)


@pytest.fixture
def staff_ctx(staff) -> RequestContext:
    return RequestContext.for_user(staff)


@pytest.fixture
def other_org(session):
    """A second organization for isolation tests."""
    return bootstrap_organization(
        session,
        OrganizationBootstrap(name="Cedar Birth", owner_email="owner@cedar.example.com"),
    )


# =============================================================================
# API Fixtures
# =============================================================================


@pytest.fixture(name="client")
def client_fixture(session):
    app.dependency_overrides[get_session] = lambda: session
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


def auth(user: User) -> dict[str, str]:
    return {"X-User-Id": user.id}
