from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import utc_now
from app.core.config import COUPON_CODE_LENGTH, COUPON_CODE_MAX_ATTEMPTS
from app.models.coupon import (
    COUPON_STATUS_AVAILABLE,
    COUPON_STATUS_DISABLED,
    Coupon,
)
from app.services import coupon_store

logger = logging.getLogger(__name__)
ADMIN_COUPONS_PREFIX = "[ADMIN_COUPONS]"
CODE_ALPHABET = string.ascii_uppercase + string.digits


class CouponNotFoundError(LookupError):
    pass


class CouponCodeConflictError(RuntimeError):
    pass


class CouponStatusConflictError(RuntimeError):
    pass


def generate_coupon_code(length: int = COUPON_CODE_LENGTH) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def create_coupon(
    db: Session,
    *,
    expiry_days: int,
    now: Optional[datetime] = None,
    code_factory=generate_coupon_code,
) -> Coupon:
    """Stage a fresh available coupon expiring ``expiry_days`` days from now.

    Codes are random; the unique index on ``coupons.code`` rejects a
    duplicate, the transaction is rolled back and a new code is drawn, up to
    ``COUPON_CODE_MAX_ATTEMPTS``. Nothing is committed here: the caller
    commits the coupon together with its audit entry.
    """
    if expiry_days < 1:
        raise ValueError("expiry_days must be at least 1")

    created_at = now or utc_now()
    expires_at = created_at + timedelta(days=expiry_days)

    for attempt in range(1, COUPON_CODE_MAX_ATTEMPTS + 1):
        code = code_factory()
        try:
            coupon = coupon_store.insert_coupon(db, code=code, expires_at=expires_at, created_at=created_at)
        except IntegrityError:
            db.rollback()
            logger.warning("%s code collision attempt=%s code=%s", ADMIN_COUPONS_PREFIX, attempt, code)
            continue
        logger.info(
            "%s created coupon_id=%s code=%s expires_at=%s",
            ADMIN_COUPONS_PREFIX,
            coupon.id,
            coupon.code,
            coupon.expires_at.isoformat(),
        )
        return coupon

    raise CouponCodeConflictError("Could not generate a unique coupon code")


def _require_coupon(db: Session, coupon_id: int) -> Coupon:
    coupon = coupon_store.get_coupon(db, coupon_id)
    if coupon is None:
        raise CouponNotFoundError(coupon_id)
    return coupon


def next_toggle_status(status: str) -> str:
    if status == COUPON_STATUS_AVAILABLE:
        return COUPON_STATUS_DISABLED
    return COUPON_STATUS_AVAILABLE


def toggle_coupon_status(db: Session, coupon_id: int) -> Coupon:
    """Flip available <-> disabled; a claimed coupon goes back to available.

    The write is guarded on the status that was read, so a claim committed
    in between makes it change nothing and ``CouponStatusConflictError`` is
    raised. Every move to available clears the claim fields. Claim rows stay.
    Staged only; the caller commits.
    """
    coupon = _require_coupon(db, coupon_id)
    previous_status = coupon.status
    new_status = next_toggle_status(previous_status)
    changed = coupon_store.update_coupon_status(
        db,
        coupon_id=coupon_id,
        expected_status=previous_status,
        new_status=new_status,
    )
    if changed == 0:
        logger.warning(
            "%s toggle lost race coupon_id=%s expected=%s",
            ADMIN_COUPONS_PREFIX,
            coupon_id,
            previous_status,
        )
        raise CouponStatusConflictError(coupon_id)

    db.refresh(coupon)
    logger.info(
        "%s toggled coupon_id=%s from=%s to=%s",
        ADMIN_COUPONS_PREFIX,
        coupon.id,
        previous_status,
        coupon.status,
    )
    return coupon


def delete_coupon(db: Session, coupon_id: int) -> str:
    """Stage the delete and return the removed code; the caller commits."""
    coupon = _require_coupon(db, coupon_id)
    code = coupon.code
    coupon_store.delete_coupon(db, coupon)
    logger.info("%s deleted coupon_id=%s code=%s", ADMIN_COUPONS_PREFIX, coupon_id, code)
    return code
