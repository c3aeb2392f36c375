"""
Pytest configuration and fixtures.
"""
import os

# Settings are read at import time, so configure them before importing the app.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PERMISSION_CACHE_ENABLED"] = "false"
os.environ["DEBUG"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from approvals.db.base import Base
from approvals.db.seeds.seed_roles import seed_roles
from approvals.db.session import get_db
from approvals.main import app
from approvals.models import User

from factories import ADMIN, MANAGER, SUPERVISOR, OPERATOR, VIEWER, headers_for


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so separate sessions behave like separate requests."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'approvals.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded(db_session):
    """Default roles and grants plus one user per role."""
    seed_roles(db_session)
    db_session.add_all([
        User(id=ADMIN.id, email="admin@sbclc.test", full_name="Alice Admin", role_code="admin"),
        User(id=MANAGER.id, email="manager@sbclc.test", full_name="Mark Manager", role_code="manager"),
        User(id=SUPERVISOR.id, email="supervisor@sbclc.test", full_name="Sam Supervisor", role_code="supervisor"),
        User(id=OPERATOR.id, email="operator@sbclc.test", full_name="Olive Operator", role_code="operator"),
        User(id=VIEWER.id, email="viewer@sbclc.test", full_name="Vic Viewer", role_code="viewer"),
    ])
    db_session.commit()
    return db_session


@pytest.fixture
def client(session_factory, seeded):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return headers_for(ADMIN)


@pytest.fixture
def manager_headers():
    return headers_for(MANAGER)


@pytest.fixture
def supervisor_headers():
    return headers_for(SUPERVISOR)


@pytest.fixture
def operator_headers():
    return headers_for(OPERATOR)


@pytest.fixture
def viewer_headers():
    return headers_for(VIEWER)
