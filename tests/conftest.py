import os
import tempfile
from typing import Generator

# Point the app at a throwaway database before tipme is imported
_tmpdir = tempfile.mkdtemp(prefix="tipme-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_tmpdir, 'tipme.db')}")
os.environ.setdefault("JWT_SECRET", "test-secret-0123456789abcdef-0123456789")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tipme import models
from tipme.auth import create_access_token, hash_password
from tipme.db import Base
from tipme.main import app, get_db

from helpers import bearer


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # Use in-memory SQLite with a single connection
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture(scope="function")
def client(db_session):
    # Override dependency to use the same session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Register a user through the API and return the response body."""
    def _register(handle="demo-barista", role="BARISTA", email=None, password="password123", name=None):
        r = client.post("/auth/register", json={
            "email": email or f"{handle}@example.com",
            "password": password,
            "name": name or handle.replace("-", " ").title(),
            "role": role,
            "handle": handle,
        })
        assert r.status_code == 201, r.text
        return r.json()
    return _register


@pytest.fixture
def admin_headers(db_session):
    # ADMIN cannot be self-selected at registration, so insert directly
    admin = models.User(
        email="admin@example.com",
        password_hash=hash_password("adminpassword123"),
        name="Admin",
        role=models.Role.ADMIN,
        handle="admin",
    )
    db_session.add(admin)
    db_session.commit()
    return bearer(create_access_token(admin.id))
