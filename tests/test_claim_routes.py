from starlette.requests import Request

from app.models.coupon import COUPON_STATUS_CLAIMED, Claim, Coupon
from app.services.claim_cookies import (
    LAST_CLAIM_TIME_COOKIE,
    SESSION_ID_COOKIE,
    UNKNOWN_CLIENT_IP,
    resolve_client_ip,
)


def _cookie_header(response, name: str) -> str:
    for header in response.headers.get_list("set-cookie"):
        if header.startswith(f"{name}="):
            return header
    return ""


def test_claim_returns_code_and_sets_visitor_cookies(client, db_session, make_coupon):
    make_coupon("ROUND001")

    response = client.post("/api/claim", headers={"x-forwarded-for": "203.0.113.5"})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Coupon claimed successfully!"
    assert body["code"] == "ROUND001"
    assert body["expires_at"]
    assert body["claimed_at"]

    session_cookie = _cookie_header(response, SESSION_ID_COOKIE)
    last_claim_cookie = _cookie_header(response, LAST_CLAIM_TIME_COOKIE)
    for header in (session_cookie, last_claim_cookie):
        assert header
        assert "Path=/" in header
        assert "Max-Age=86400" in header
        assert "SameSite=lax" in header
        assert "HttpOnly" not in header
        assert "Secure" not in header

    db_session.expire_all()
    claim = db_session.query(Claim).one()
    assert claim.ip_address == "203.0.113.5"
    assert claim.session_id == client.cookies.get(SESSION_ID_COOKIE)
    assert db_session.query(Coupon).one().status == COUPON_STATUS_CLAIMED


def test_claim_reuses_existing_session_cookie(client, db_session, make_coupon):
    make_coupon("ROUND001")
    client.cookies.set(SESSION_ID_COOKIE, "returning-visitor")

    response = client.post("/api/claim", headers={"x-forwarded-for": "203.0.113.6"})

    assert response.status_code == 200
    assert _cookie_header(response, SESSION_ID_COOKIE) == ""
    db_session.expire_all()
    assert db_session.query(Claim).one().session_id == "returning-visitor"


def test_cookies_are_secure_behind_https_proxy(client, make_coupon):
    make_coupon("ROUND001")

    response = client.post(
        "/api/claim",
        headers={"x-forwarded-proto": "https", "x-forwarded-for": "203.0.113.7"},
    )

    assert response.status_code == 200
    assert "Secure" in _cookie_header(response, SESSION_ID_COOKIE)
    assert "Secure" in _cookie_header(response, LAST_CLAIM_TIME_COOKIE)


def test_second_claim_within_window_is_rejected(client, db_session, make_coupon):
    make_coupon("ROUND001", age_minutes=2)
    make_coupon("ROUND002", age_minutes=1)
    headers = {"x-forwarded-for": "203.0.113.8"}

    first = client.post("/api/claim", headers=headers)
    second = client.post("/api/claim", headers=headers)

    assert first.status_code == 200
    assert second.status_code == 429
    assert second.json() == {"detail": "Please wait 60 minutes before claiming another coupon"}
    assert second.headers["Retry-After"] == "3600"
    db_session.expire_all()
    assert db_session.query(Claim).count() == 1


def test_no_coupons_returns_404_and_still_issues_session(client):
    response = client.post("/api/claim", headers={"x-forwarded-for": "203.0.113.9"})

    assert response.status_code == 404
    assert response.json() == {"detail": "No coupons available at the moment. Please try again later."}
    assert _cookie_header(response, SESSION_ID_COOKIE)
    assert _cookie_header(response, LAST_CLAIM_TIME_COOKIE) == ""


def test_unparseable_last_claim_cookie_is_ignored(client, make_coupon):
    make_coupon("ROUND001")
    client.cookies.set(LAST_CLAIM_TIME_COOKIE, "not-a-timestamp")

    response = client.post("/api/claim", headers={"x-forwarded-for": "203.0.113.10"})

    assert response.status_code == 200


def test_claim_status_reports_window(client, make_coupon):
    make_coupon("ROUND001")
    headers = {"x-forwarded-for": "203.0.113.11"}

    before = client.get("/api/claim/status", headers=headers)
    assert before.status_code == 200
    assert before.json()["can_claim"] is True
    assert before.json()["minutes_remaining"] == 0
    session_id = before.json()["session_id"]
    assert client.cookies.get(SESSION_ID_COOKIE) == session_id

    client.post("/api/claim", headers=headers)

    after = client.get("/api/claim/status", headers=headers)
    body = after.json()
    assert body["session_id"] == session_id
    assert body["can_claim"] is False
    assert body["minutes_remaining"] == 60
    assert body["wait_message"] == "60 minutes"


def test_spoofed_forwarded_entries_do_not_replace_proxy_seen_address(client, db_session, make_coupon):
    make_coupon("ROUND001")

    response = client.post("/api/claim", headers={"x-forwarded-for": "1.2.3.4, 203.0.113.20"})

    assert response.status_code == 200
    db_session.expire_all()
    assert db_session.query(Claim).one().ip_address == "203.0.113.20"


def test_malformed_forwarded_for_falls_back_to_peer(client, db_session, make_coupon):
    make_coupon("ROUND001")

    response = client.post("/api/claim", headers={"x-forwarded-for": "x" * 100})

    assert response.status_code == 200
    db_session.expire_all()
    assert db_session.query(Claim).one().ip_address == UNKNOWN_CLIENT_IP


def _request(forwarded_for=None, peer="10.0.0.5"):
    headers = [(b"x-forwarded-for", forwarded_for.encode())] if forwarded_for else []
    return Request({"type": "http", "headers": headers, "client": (peer, 5000) if peer else None})


def test_resolve_client_ip_honours_trusted_hops():
    request = _request("198.51.100.1, 203.0.113.1, 192.0.2.1")

    assert resolve_client_ip(request, trusted_hops=1) == "192.0.2.1"
    assert resolve_client_ip(request, trusted_hops=2) == "203.0.113.1"
    assert resolve_client_ip(request, trusted_hops=0) == "10.0.0.5"


def test_resolve_client_ip_without_usable_address():
    assert resolve_client_ip(_request(peer=None)) == UNKNOWN_CLIENT_IP
    assert resolve_client_ip(_request(peer="testclient")) == UNKNOWN_CLIENT_IP
    assert resolve_client_ip(_request("2001:db8::1")) == "2001:db8::1"
