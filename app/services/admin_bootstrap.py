from __future__ import annotations

import logging
import os
from typing import Optional

from sqlalchemy import func, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from app.models.admin_user import ADMIN_ROLE, AdminUser
from app.services.passwords import hash_password, looks_hashed

logger = logging.getLogger(__name__)
BOOTSTRAP_PREFIX = "[ADMIN_BOOTSTRAP]"
DEFAULT_ADMIN_EMAIL = "admin@example.com"
DEFAULT_ADMIN_NAME = "Admin"


class AdminAlreadyExistsError(ValueError):
    pass


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def ensure_admin_users_table(engine: Engine) -> None:
    if not inspect(engine).has_table(AdminUser.__tablename__):
        raise RuntimeError("admin_users table not found; run the migrations first.")


def find_admin_by_email(db: Session, email: str) -> Optional[AdminUser]:
    return db.query(AdminUser).filter(func.lower(AdminUser.email) == normalize_email(email)).first()


def _password_hash(password: str) -> str:
    # Operators may hand over an existing hash (e.g. copied from another environment).
    return password if looks_hashed(password) else hash_password(password)


def create_admin_user(
    db: Session,
    *,
    email: str,
    name: str,
    password: str,
    role: str = ADMIN_ROLE,
) -> AdminUser:
    if find_admin_by_email(db, email) is not None:
        raise AdminAlreadyExistsError("An admin with this email already exists.")

    admin = AdminUser(
        email=normalize_email(email),
        name=name.strip(),
        password_hash=_password_hash(password),
        role=role,
        active=True,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("%s created id=%s email=%s role=%s", BOOTSTRAP_PREFIX, admin.id, admin.email, admin.role)
    return admin


def upsert_admin_user(
    db: Session,
    *,
    email: str,
    name: str,
    role: str,
    password: Optional[str],
) -> tuple[AdminUser, bool]:
    """Create the admin, or reactivate and update an existing one; returns ``(admin, created)``."""
    admin = find_admin_by_email(db, email)
    if admin is None:
        if not password:
            raise ValueError("A password is required to create a new admin.")
        return create_admin_user(db, email=email, name=name, password=password, role=role), True

    admin.name = name.strip()
    admin.role = role
    admin.active = True
    if password:
        admin.password_hash = _password_hash(password)
    db.commit()
    db.refresh(admin)
    logger.info("%s updated id=%s email=%s", BOOTSTRAP_PREFIX, admin.id, admin.email)
    return admin, False


def bootstrap_admin_from_env(db: Session) -> Optional[AdminUser]:
    """Create the first admin from ``DEV_ADMIN_*`` variables when it does not exist yet."""
    password = os.getenv("DEV_ADMIN_PASSWORD", "").strip()
    if not password:
        logger.info("%s skipped: DEV_ADMIN_PASSWORD not set", BOOTSTRAP_PREFIX)
        return None

    email = os.getenv("DEV_ADMIN_EMAIL", "").strip() or DEFAULT_ADMIN_EMAIL
    name = os.getenv("DEV_ADMIN_NAME", "").strip() or DEFAULT_ADMIN_NAME

    existing = find_admin_by_email(db, email)
    if existing is not None:
        logger.info("%s exists email=%s", BOOTSTRAP_PREFIX, existing.email)
        return existing
    return create_admin_user(db, email=email, name=name, password=password)
