from __future__ import annotations

import ipaddress
import uuid
from typing import Any

from fastapi import Request, Response

from app.core.config import CLAIM_COOKIE_MAX_AGE_SECONDS, TRUSTED_PROXY_HOPS

SESSION_ID_COOKIE = "coupon_session_id"
LAST_CLAIM_TIME_COOKIE = "last_claim_time"
UNKNOWN_CLIENT_IP = "0.0.0.0"


def request_is_secure(request: Request) -> bool:
    forwarded_proto = (request.headers.get("x-forwarded-proto") or "").split(",")[0].strip().lower()
    if forwarded_proto:
        return forwarded_proto == "https"
    return request.url.scheme == "https"


def build_claim_cookie_options(request: Request | None = None) -> dict[str, Any]:
    return {
        "path": "/",
        "max_age": CLAIM_COOKIE_MAX_AGE_SECONDS,
        "samesite": "lax",
        "secure": request is not None and request_is_secure(request),
        # The public page reads both values to render its countdown.
        "httponly": False,
    }


def get_or_create_session_id(request: Request) -> tuple[str, bool]:
    existing = (request.cookies.get(SESSION_ID_COOKIE) or "").strip()
    if existing:
        return existing, False
    return str(uuid.uuid4()), True


def set_session_cookie(response: Response, session_id: str, request: Request | None = None) -> None:
    response.set_cookie(key=SESSION_ID_COOKIE, value=session_id, **build_claim_cookie_options(request))


def read_last_claim_ms(request: Request) -> int | None:
    raw = (request.cookies.get(LAST_CLAIM_TIME_COOKIE) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def set_last_claim_cookie(response: Response, epoch_ms: int, request: Request | None = None) -> None:
    response.set_cookie(key=LAST_CLAIM_TIME_COOKIE, value=str(epoch_ms), **build_claim_cookie_options(request))


def _valid_ip(value: str | None) -> str | None:
    try:
        return str(ipaddress.ip_address((value or "").strip()))
    except ValueError:
        return None


def resolve_client_ip(request: Request, trusted_hops: int | None = None) -> str:
    """Client address as seen by the outermost trusted proxy.

    Each proxy appends the peer it saw, so the entry ``trusted_hops`` from the
    right is the first one a client cannot forge. Anything that does not parse
    as an IP address falls back to the socket peer.
    """
    hops = TRUSTED_PROXY_HOPS if trusted_hops is None else trusted_hops
    entries = [entry.strip() for entry in (request.headers.get("x-forwarded-for") or "").split(",")]
    entries = [entry for entry in entries if entry]
    if hops > 0 and entries:
        forwarded = _valid_ip(entries[-min(hops, len(entries))])
        if forwarded:
            return forwarded
    peer = _valid_ip(request.client.host if request.client is not None else None)
    return peer or UNKNOWN_CLIENT_IP
