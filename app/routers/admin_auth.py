from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from app.core.clock import utc_now
from app.core.config import ADMIN_SIGNUP_ENABLED
from app.core.database import get_db
from app.deps import get_current_admin_user
from app.models.admin_user import AdminUser
from app.schemas.admin import AdminLoginPayload, AdminSignupPayload, AdminUserRead
from app.services import admin_audit
from app.services.admin_auth import attach_session_cookie, drop_session_cookie
from app.services.admin_bootstrap import (
    AdminAlreadyExistsError,
    create_admin_user,
    find_admin_by_email,
    normalize_email,
)
from app.services.admin_login_attempts import (
    login_lock_state,
    record_login_failure,
    reset_login_failures,
)
from app.services.passwords import verify_password

router = APIRouter(prefix="/api/admin/auth", tags=["admin-auth"])
logger = logging.getLogger(__name__)

TOO_MANY_ATTEMPTS = "Too many attempts. Try again in a few minutes."


def _too_many_attempts() -> HTTPException:
    return HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=TOO_MANY_ATTEMPTS)


def _reject_login(db: Session, email: str, user: AdminUser | None) -> HTTPException:
    lock = record_login_failure(db, email)
    # Unknown emails are counted too but cannot be attributed to an admin in the audit log.
    if user is not None:
        admin_audit.log_admin_action(
            db,
            user_id=user.id,
            action=admin_audit.ACTION_LOGIN_LOCKED if lock.locked else admin_audit.ACTION_LOGIN_FAILED,
            entity_type="admin_user",
            entity_id=user.id,
            meta={"failures": lock.failures},
        )
    db.commit()
    logger.warning("[ADMIN_AUTH] login failed email=%s failures=%s locked=%s", email, lock.failures, lock.locked)
    if lock.locked:
        return _too_many_attempts()
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")


@router.post("/login", response_model=AdminUserRead)
def admin_login(
    payload: AdminLoginPayload,
    response: Response,
    request: Request,
    db: Session = Depends(get_db),
):
    email = normalize_email(payload.email)
    if login_lock_state(db, email).locked:
        logger.warning("[ADMIN_AUTH] login refused while locked email=%s", email)
        raise _too_many_attempts()

    user = find_admin_by_email(db, email)
    if user is None or not user.active or not verify_password(payload.password, user.password_hash):
        raise _reject_login(db, email, user)

    reset_login_failures(db, email)
    user.last_login_at = utc_now()
    admin_audit.log_admin_action(db, user_id=user.id, action=admin_audit.ACTION_LOGIN_SUCCESS)
    db.commit()
    db.refresh(user)

    attach_session_cookie(response, user, request)
    return user


@router.post("/signup", response_model=AdminUserRead, status_code=status.HTTP_201_CREATED)
def admin_signup(
    payload: AdminSignupPayload,
    response: Response,
    request: Request,
    db: Session = Depends(get_db),
):
    if not ADMIN_SIGNUP_ENABLED:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    try:
        user = create_admin_user(db, email=payload.email, name=payload.name, password=payload.password)
    except AdminAlreadyExistsError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    admin_audit.log_admin_action(
        db,
        user_id=user.id,
        action=admin_audit.ACTION_SIGNUP,
        entity_type="admin_user",
        entity_id=user.id,
    )
    db.commit()
    db.refresh(user)

    attach_session_cookie(response, user, request)
    return user


@router.post("/logout")
def admin_logout(response: Response, request: Request):
    drop_session_cookie(response, request)
    return {"ok": True}


@router.get("/me", response_model=AdminUserRead)
def admin_me(user: AdminUser = Depends(get_current_admin_user)):
    return user
