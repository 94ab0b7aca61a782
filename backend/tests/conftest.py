import os

# Settings are cached on first use, so these must be set before importing the app.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("ESCALATION_SWEEP_ENABLED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from airman.api.deps import get_db
from airman.core.security import create_access_token
from airman.db.base import Base
from airman.main import app
from airman.models.tenant import Tenant
from airman.models.user import User, UserRole
from airman.services.locks import KeyedLockRegistry
import airman.models  # noqa: F401


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def make_tenant(db_session):
    def _make(slug: str = "alpha-school", name: str | None = None) -> Tenant:
        tenant = Tenant(slug=slug, name=name or slug.replace("-", " ").title())
        db_session.add(tenant)
        db_session.commit()
        db_session.refresh(tenant)
        return tenant

    return _make


@pytest.fixture()
def make_user(db_session):
    def _make(tenant: Tenant, role: UserRole, email: str, *, approved: bool = True, name: str | None = None) -> User:
        user = User(tenant_id=tenant.id, role=role, email=email, name=name, approved=approved)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def auth_headers():
    def _headers(user: User) -> dict[str, str]:
        token = create_access_token(user_id=user.id, tenant_id=user.tenant_id, role=user.role.value)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.assignment_locks = KeyedLockRegistry()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
