"""Shared fixtures: in-memory database, local storage and an API client."""

import sys
import os
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from portal.database import Base, get_db, make_engine
from portal.main import app
from portal.middleware.auth import create_access_token
from portal.middleware.rate_limit import limiter
from portal.models.profile import ROLE_ADMIN
from portal.services import course_service, profile_service
from portal.services.storage import LocalStorage, get_storage


@pytest.fixture
def engine():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
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
def storage(tmp_path):
    return LocalStorage(
        root=tmp_path / "storage",
        base_url="http://testserver",
        secret_key="test-storage-secret",
    )


@pytest.fixture
def client(session_factory, storage):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    limiter.enabled = False
    yield TestClient(app)
    app.dependency_overrides.clear()
    limiter.enabled = True


@pytest.fixture
def admin(db):
    return profile_service.register_user(db, "admin@example.com", "adminpass", role=ROLE_ADMIN)


@pytest.fixture
def student(db):
    profile = profile_service.register_user(db, "student@example.com", "studentpass")
    return profile_service.set_approved(db, profile.user_id, True)


@pytest.fixture
def pending_student(db):
    return profile_service.register_user(db, "newcomer@example.com", "newcomerpass")


@pytest.fixture
def course(db):
    return course_service.create_course(
        db, "Algebra I", description="Linear equations", price=Decimal("150.00"), duration_months=1
    )


@pytest.fixture
def headers_for():
    def _headers(profile):
        token = create_access_token(profile.user_id, profile.role)
        return {"Authorization": f"Bearer {token}"}
    return _headers
