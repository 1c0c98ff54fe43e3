from __future__ import annotations

import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ADMIN_SESSION_SECRET", "test-admin-session-secret")
os.environ.setdefault("ADMIN_SESSION_COOKIE_SECURE", "0")
os.environ.setdefault("ADMIN_SIGNUP_ENABLED", "1")
os.environ.setdefault("CORS_ORIGINS", "http://localhost:5173")

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.clock import utc_now  # noqa: E402
from app.core.database import Base, enable_sqlite_foreign_keys, get_db  # noqa: E402
from app.core.metrics import service_metrics  # noqa: E402
import app.models  # noqa: E402,F401
from app.models.coupon import COUPON_STATUS_AVAILABLE, Coupon  # noqa: E402
from app.services.admin_bootstrap import create_admin_user  # noqa: E402

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "correct-horse-battery"

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_foreign_keys(test_engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=test_engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def client(db_session, monkeypatch):
    from app import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    def _override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    main.app.dependency_overrides[get_db] = _override_get_db
    service_metrics.reset()
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


@pytest.fixture
def make_coupon(db_session):
    def _make(code: str, *, status: str = COUPON_STATUS_AVAILABLE, age_minutes: int = 0, expires_in_days: int = 7):
        created_at = utc_now() - timedelta(minutes=age_minutes)
        coupon = Coupon(
            code=code,
            status=status,
            created_at=created_at,
            expires_at=created_at + timedelta(days=expires_in_days),
        )
        db_session.add(coupon)
        db_session.commit()
        db_session.refresh(coupon)
        return coupon

    return _make


@pytest.fixture
def admin_user(db_session):
    return create_admin_user(db_session, email=ADMIN_EMAIL, name="Admin", password=ADMIN_PASSWORD)


@pytest.fixture
def admin_client(client, admin_user):
    response = client.post(
        "/api/admin/auth/login",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return client
