"""
Application startup and logging tests.

Guards against:
- The lifespan not creating tables or seeding the configured admin
- Databases created before a column was added failing on first query
- Security events leaking into the general application log
"""
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import inspect, text

from storefront.config import get_settings
from storefront.main import app
from storefront.models import Base, engine, init_db
from storefront.models.base import migrate_missing_columns
from storefront.models.user import PasswordReset, User
from storefront.services.auth_service import SessionManager
from storefront.services.errors import InvalidCredentials
from storefront.services.token_codec import get_token_codec
from storefront.utils.logger import audit_log, is_audit_record, log, setup_logger


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

def test_lifespan_creates_tables_and_seeds_admin(db, monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "initial_admin_email", "owner@example.com")
    monkeypatch.setattr(settings, "initial_admin_password", "owner-pass-123")
    Base.metadata.drop_all(bind=engine)

    with TestClient(app) as client:
        assert client.get("/health").status_code == 200
        login = client.post("/auth/login", json={"email": "owner@example.com", "password": "owner-pass-123"})

    assert login.status_code == 200
    assert login.json()["user"]["role"] == "admin"
    assert db.query(User).count() == 1


def test_lifespan_without_admin_settings_seeds_nobody(db):
    with TestClient(app):
        pass

    assert db.query(User).count() == 0


# ---------------------------------------------------------------------------
# Column auto-migration
# ---------------------------------------------------------------------------

def _recreate_resets_without_used_at():
    PasswordReset.__table__.drop(bind=engine)
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE password_resets ("
            "id INTEGER PRIMARY KEY, user_id INTEGER NOT NULL, token VARCHAR(64) NOT NULL, "
            "expires_at DATETIME NOT NULL, used BOOLEAN NOT NULL, created_at DATETIME)"
        ))


def test_init_db_adds_missing_columns():
    _recreate_resets_without_used_at()

    assert init_db() == ["password_resets.used_at"]
    columns = {c["name"] for c in inspect(engine).get_columns("password_resets")}
    assert "used_at" in columns


def test_migration_is_noop_on_current_schema():
    assert migrate_missing_columns() == []


# ---------------------------------------------------------------------------
# Audit logging
# ---------------------------------------------------------------------------

@pytest.fixture
def audit_records():
    records = []
    handler_id = log.add(lambda message: records.append(message.record), filter=is_audit_record)
    yield records
    log.remove(handler_id)


def test_login_events_go_to_audit_log(db, jane, audit_records):
    manager = SessionManager(db, get_token_codec())

    with pytest.raises(InvalidCredentials):
        manager.login("jane@example.com", "wrong-password")
    result = manager.login("jane@example.com", "correct-horse")
    manager.logout(result.auth_token)

    messages = [r["message"] for r in audit_records]
    assert messages == [
        f"Failed login for user {jane.id}",
        f"Opened session for user {jane.id}",
        f"Closed session for user {jane.id}",
    ]
    assert audit_records[0]["level"].name == "WARNING"


def test_audit_file_is_separate_from_app_file(tmp_path):
    settings = SimpleNamespace(is_production=False, log_level="INFO", log_dir=str(tmp_path))
    try:
        setup_logger(settings)
        log.info("catalog refreshed")
        audit_log.info("Opened session for user 7")
    finally:
        # Closes the file sinks and restores the configured ones
        setup_logger()

    audit_files = list(tmp_path.glob("auth_audit_*.log"))
    assert len(audit_files) == 1
    audit_text = audit_files[0].read_text()
    assert "Opened session for user 7" in audit_text
    assert "catalog refreshed" not in audit_text
