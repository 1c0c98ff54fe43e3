from __future__ import annotations

import logging
from typing import Iterable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.request_context import set_request_context
from app.models.admin_user import AdminUser
from app.services.admin_auth import ADMIN_SESSION_COOKIE, read_session_token

logger = logging.getLogger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def get_current_admin_user(
    request: Request,
    db: Session = Depends(get_db),
) -> AdminUser:
    token = request.cookies.get(ADMIN_SESSION_COOKIE)
    if not token:
        raise _unauthorized("Not authenticated")

    payload = read_session_token(token)
    if payload is None:
        raise _unauthorized("Session expired")

    try:
        user_id = int(payload["uid"])
    except (TypeError, ValueError) as exc:
        raise _unauthorized("Invalid session") from exc

    user = db.query(AdminUser).filter(AdminUser.id == user_id, AdminUser.active.is_(True)).first()
    if user is None:
        raise _unauthorized("Admin not found")

    request.state.user = user
    set_request_context(user_id=str(user.id))
    return user


def require_role(roles: Iterable[str]):
    allowed = frozenset(role.strip().lower() for role in roles)

    def _dependency(
        request: Request,
        user: AdminUser = Depends(get_current_admin_user),
    ) -> AdminUser:
        role = (user.role or "").strip().lower()
        if role not in allowed:
            logger.warning(
                "Access denied: user_id=%s role=%s endpoint=%s %s",
                user.id,
                user.role,
                request.method,
                request.url.path,
            )
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return _dependency


require_admin = require_role(["admin"])
