from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Request, Response
from itsdangerous import BadSignature, URLSafeTimedSerializer

from app.core.config import (
    ADMIN_SESSION_COOKIE_DOMAIN,
    ADMIN_SESSION_COOKIE_HTTPONLY,
    ADMIN_SESSION_COOKIE_SAMESITE,
    ADMIN_SESSION_COOKIE_SECURE,
    ADMIN_SESSION_MAX_AGE_SECONDS,
    ADMIN_SESSION_SECRET,
)
from app.models.admin_user import AdminUser
from app.services.claim_cookies import request_is_secure

logger = logging.getLogger(__name__)

ADMIN_SESSION_COOKIE = "admin_session"
ADMIN_SESSION_SALT = "coupon-drop-admin-session"


def _signer() -> URLSafeTimedSerializer:
    if not ADMIN_SESSION_SECRET:
        raise RuntimeError("ADMIN_SESSION_SECRET is not configured.")
    return URLSafeTimedSerializer(ADMIN_SESSION_SECRET, salt=ADMIN_SESSION_SALT)


def issue_session_token(admin: AdminUser) -> str:
    return _signer().dumps({"uid": admin.id, "role": admin.role})


def read_session_token(token: str, *, max_age: int = ADMIN_SESSION_MAX_AGE_SECONDS) -> Optional[dict[str, Any]]:
    """Payload of a valid token, or ``None`` when it is forged, malformed or older than ``max_age``."""
    try:
        payload = _signer().loads(token, max_age=max_age)
    except BadSignature:
        return None
    if not isinstance(payload, dict) or "uid" not in payload:
        return None
    return payload


def session_cookie_options(request: Request | None = None) -> dict[str, Any]:
    secure = ADMIN_SESSION_COOKIE_SECURE or (request is not None and request_is_secure(request))
    samesite = ADMIN_SESSION_COOKIE_SAMESITE
    # Browsers reject SameSite=None without Secure.
    if samesite == "none" and not secure:
        samesite = "lax"
    return {
        "domain": ADMIN_SESSION_COOKIE_DOMAIN,
        "httponly": ADMIN_SESSION_COOKIE_HTTPONLY,
        "samesite": samesite,
        "path": "/",
        "secure": secure,
    }


def attach_session_cookie(response: Response, admin: AdminUser, request: Request | None = None) -> None:
    options = session_cookie_options(request)
    logger.info(
        "[ADMIN_AUTH] session cookie issued user_id=%s secure=%s samesite=%s",
        admin.id,
        options["secure"],
        options["samesite"],
    )
    response.set_cookie(
        key=ADMIN_SESSION_COOKIE,
        value=issue_session_token(admin),
        max_age=ADMIN_SESSION_MAX_AGE_SECONDS,
        **options,
    )


def drop_session_cookie(response: Response, request: Request | None = None) -> None:
    response.delete_cookie(key=ADMIN_SESSION_COOKIE, **session_cookie_options(request))
