from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.core.clock import utc_now
from app.core.config import (
    ADMIN_LOGIN_LOCK_SECONDS,
    ADMIN_LOGIN_MAX_FAILURES,
    ADMIN_LOGIN_WINDOW_SECONDS,
)
from app.models.admin_login_attempt import AdminLoginAttempt

logger = logging.getLogger(__name__)

FAILURE_WINDOW = timedelta(seconds=ADMIN_LOGIN_WINDOW_SECONDS)
LOCK_DURATION = timedelta(seconds=ADMIN_LOGIN_LOCK_SECONDS)


@dataclass(frozen=True)
class LoginLockState:
    locked: bool
    failures: int = 0
    locked_until: Optional[datetime] = None


def _attempt_for(db: Session, email: str) -> Optional[AdminLoginAttempt]:
    return db.query(AdminLoginAttempt).filter(AdminLoginAttempt.email == email).first()


def login_lock_state(db: Session, email: str, *, now: Optional[datetime] = None) -> LoginLockState:
    now = now or utc_now()
    attempt = _attempt_for(db, email)
    if attempt is None:
        return LoginLockState(locked=False)
    if attempt.locked_until is not None and attempt.locked_until > now:
        return LoginLockState(locked=True, failures=attempt.failures, locked_until=attempt.locked_until)
    return LoginLockState(locked=False, failures=attempt.failures)


def record_login_failure(db: Session, email: str, *, now: Optional[datetime] = None) -> LoginLockState:
    """Count one failed login; the email locks once the failures inside the window reach the limit.

    Stages changes only; the caller commits.
    """
    now = now or utc_now()
    attempt = _attempt_for(db, email)
    if attempt is None:
        attempt = AdminLoginAttempt(email=email, failures=0, window_started_at=now)
        db.add(attempt)
        db.flush()
    elif attempt.window_started_at is None or now - attempt.window_started_at > FAILURE_WINDOW:
        attempt.failures = 0
        attempt.window_started_at = now
        attempt.locked_until = None

    attempt.failures += 1
    attempt.updated_at = now

    if attempt.failures >= ADMIN_LOGIN_MAX_FAILURES:
        attempt.locked_until = now + LOCK_DURATION
        logger.warning("[ADMIN_AUTH] email locked email=%s until=%s", email, attempt.locked_until.isoformat())
        return LoginLockState(locked=True, failures=attempt.failures, locked_until=attempt.locked_until)

    return LoginLockState(locked=False, failures=attempt.failures)


def reset_login_failures(db: Session, email: str) -> None:
    attempt = _attempt_for(db, email)
    if attempt is not None:
        db.delete(attempt)
