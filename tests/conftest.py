"""Shared fixtures: a throwaway SQLite database and a configured app.

Environment is set before any ``storefront`` import because settings,
the engine and the logger are built at import time.
"""
import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'storefront.db')}"
os.environ["AUTH_SECRET"] = "test-signing-secret"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_DIR"] = ""
os.environ["RESEND_API_KEY"] = ""
os.environ["APP_BASE_URL"] = ""
os.environ["GOOGLE_CLIENT_ID"] = ""
os.environ["GOOGLE_CLIENT_SECRET"] = ""
os.environ["INITIAL_ADMIN_EMAIL"] = ""

import pytest
from fastapi.testclient import TestClient

from storefront.main import app
from storefront.models import Base, SessionLocal, engine
from storefront.services.auth_service import create_user
from storefront.services.password_reset_service import ResetMailer


class FakeMailer(ResetMailer):
    """Records reset links instead of calling Resend."""

    def __init__(self, succeed: bool = True):
        super().__init__(api_key="re_test", from_email="shop@example.com")
        self.succeed = succeed
        self.sent = []

    def send_reset_link(self, email, name, reset_link):
        self.sent.append({"email": email, "name": name, "link": reset_link})
        return self.succeed


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def jane(db):
    return create_user(db, "jane@example.com", "correct-horse", name="Jane")


@pytest.fixture
def admin_user(db):
    return create_user(db, "boss@example.com", "admin-pass-123", name="Boss", role="admin", is_admin=True)


@pytest.fixture
def mailer():
    return FakeMailer()
