from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import patch

from app.core.clock import utc_now
from app.core.config import ADMIN_LOGIN_MAX_FAILURES
from app.models.admin_audit_log import AdminAuditLog
from app.models.admin_user import AdminUser
from app.services.admin_auth import ADMIN_SESSION_COOKIE, issue_session_token, read_session_token
from app.services.admin_login_attempts import FAILURE_WINDOW, login_lock_state, record_login_failure
from app.services.passwords import hash_password, looks_hashed, verify_password

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "correct-horse-battery"


def _login(client, password=ADMIN_PASSWORD, email=ADMIN_EMAIL):
    return client.post("/api/admin/auth/login", json={"email": email, "password": password})


def test_login_sets_http_only_session_cookie(client, admin_user):
    response = _login(client)

    assert response.status_code == 200
    assert response.json()["email"] == ADMIN_EMAIL
    set_cookie = response.headers.get("set-cookie", "")
    assert f"{ADMIN_SESSION_COOKIE}=" in set_cookie
    assert "HttpOnly" in set_cookie
    assert "Path=/" in set_cookie
    assert "SameSite=lax" in set_cookie
    assert "Domain=" not in set_cookie


def test_login_cookie_is_secure_behind_https_proxy(client, admin_user):
    response = client.post(
        "/api/admin/auth/login",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
        headers={"x-forwarded-proto": "https"},
    )

    assert response.status_code == 200
    assert "Secure" in response.headers.get("set-cookie", "")


def test_login_is_case_insensitive_on_email(client, admin_user):
    response = _login(client, email="ADMIN@Example.com")

    assert response.status_code == 200


def test_invalid_credentials_are_rejected_and_audited(client, db_session, admin_user):
    response = _login(client, password="wrong-password")

    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid credentials"}
    db_session.expire_all()
    actions = [entry.action for entry in db_session.query(AdminAuditLog).all()]
    assert actions == ["login_failed"]


def test_unknown_email_is_rejected(client):
    response = _login(client, email="nobody@example.com")

    assert response.status_code == 401


def test_repeated_failures_lock_the_account(client, admin_user):
    statuses = [_login(client, password="nope").status_code for _ in range(ADMIN_LOGIN_MAX_FAILURES)]

    assert statuses[:-1] == [401] * (ADMIN_LOGIN_MAX_FAILURES - 1)
    assert statuses[-1] == 429

    locked = _login(client)
    assert locked.status_code == 429
    assert locked.json() == {"detail": "Too many attempts. Try again in a few minutes."}


def test_me_returns_current_admin(admin_client):
    response = admin_client.get("/api/admin/auth/me")

    assert response.status_code == 200
    assert response.json()["email"] == ADMIN_EMAIL
    assert response.json()["role"] == "admin"


def test_me_without_session_is_unauthorized(client):
    response = client.get("/api/admin/auth/me")

    assert response.status_code == 401
    assert response.json() == {"detail": "Not authenticated"}


def test_tampered_session_is_rejected(client, admin_user):
    client.cookies.set(ADMIN_SESSION_COOKIE, "not-a-signed-token")

    response = client.get("/api/admin/auth/me")

    assert response.status_code == 401
    assert response.json() == {"detail": "Session expired"}


def test_logout_clears_session_cookie(admin_client):
    response = admin_client.post("/api/admin/auth/logout")

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    set_cookie = response.headers.get("set-cookie", "")
    assert f'{ADMIN_SESSION_COOKIE}=""' in set_cookie or f"{ADMIN_SESSION_COOKIE}=;" in set_cookie
    assert admin_client.get("/api/admin/auth/me").status_code == 401


def test_signup_creates_admin_and_starts_session(client):
    response = client.post(
        "/api/admin/auth/signup",
        json={"email": "new@example.com", "password": "long-enough-pw", "name": "New Admin"},
    )

    assert response.status_code == 201
    assert response.json()["email"] == "new@example.com"
    assert ADMIN_SESSION_COOKIE in response.headers.get("set-cookie", "")
    assert client.get("/api/admin/auth/me").json()["email"] == "new@example.com"


def test_signup_with_existing_email_conflicts(client, admin_user):
    response = client.post(
        "/api/admin/auth/signup",
        json={"email": ADMIN_EMAIL, "password": "long-enough-pw", "name": "Dup"},
    )

    assert response.status_code == 409


def test_signup_can_be_disabled(client):
    with patch("app.routers.admin_auth.ADMIN_SIGNUP_ENABLED", False):
        response = client.post(
            "/api/admin/auth/signup",
            json={"email": "new@example.com", "password": "long-enough-pw", "name": "New Admin"},
        )

    assert response.status_code == 404


def test_non_admin_role_is_forbidden(client, db_session, admin_user):
    admin_user.role = "viewer"
    db_session.commit()
    _login(client)

    response = client.get("/api/admin/coupons")

    assert response.status_code == 403
    assert response.json() == {"detail": "Insufficient permissions"}


def test_session_token_round_trip():
    token = issue_session_token(SimpleNamespace(id=7, role="admin"))

    payload = read_session_token(token)

    assert payload == {"uid": 7, "role": "admin"}
    assert read_session_token(token + "x") is None


def test_session_token_older_than_max_age_is_rejected():
    token = issue_session_token(SimpleNamespace(id=7, role="admin"))

    assert read_session_token(token, max_age=-1) is None


def test_password_hashing():
    hashed = hash_password("s3cret-pass")

    assert looks_hashed(hashed)
    assert not looks_hashed("s3cret-pass")
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("other", hashed)
    assert not verify_password("s3cret-pass", "")


def test_successful_login_records_last_login(client, db_session, admin_user):
    assert admin_user.last_login_at is None

    response = _login(client)

    assert response.json()["last_login_at"] is not None
    db_session.expire_all()
    assert db_session.get(AdminUser, admin_user.id).last_login_at is not None


def test_login_failures_reset_after_window(db_session):
    start = utc_now()
    for _ in range(ADMIN_LOGIN_MAX_FAILURES - 1):
        record_login_failure(db_session, "slow@example.com", now=start)
    db_session.commit()

    later = start + FAILURE_WINDOW + timedelta(seconds=1)
    state = record_login_failure(db_session, "slow@example.com", now=later)
    db_session.commit()

    assert state.locked is False
    assert state.failures == 1
    assert login_lock_state(db_session, "slow@example.com", now=later).locked is False
