from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.core.clock import utc_now
from app.models.coupon import (
    COUPON_STATUS_AVAILABLE,
    COUPON_STATUS_CLAIMED,
    Claim,
    Coupon,
)
from app.services.claim_cookies import UNKNOWN_CLIENT_IP


def _commit(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise


def select_available_coupon(db: Session, *, now: Optional[datetime] = None) -> Optional[Coupon]:
    """Oldest available, unexpired coupon; ties broken by id."""
    now = now or utc_now()
    return (
        db.query(Coupon)
        .filter(Coupon.status == COUPON_STATUS_AVAILABLE, Coupon.expires_at > now)
        .order_by(Coupon.created_at.asc(), Coupon.id.asc())
        .first()
    )


def claim_coupon_if_available(
    db: Session,
    *,
    coupon_id: int,
    session_id: str,
    claimed_at: datetime,
) -> int:
    """Conditionally mark a coupon claimed; returns the number of rows changed (0 or 1)."""
    try:
        changed = (
            db.query(Coupon)
            .filter(Coupon.id == coupon_id, Coupon.status == COUPON_STATUS_AVAILABLE)
            .update(
                {
                    Coupon.status: COUPON_STATUS_CLAIMED,
                    Coupon.claimed_by: session_id,
                    Coupon.claimed_at: claimed_at,
                },
                synchronize_session=False,
            )
        )
    except SQLAlchemyError:
        db.rollback()
        raise
    _commit(db)
    return changed


def insert_claim(
    db: Session,
    *,
    coupon_id: int,
    coupon_code: str,
    ip_address: str,
    session_id: str,
    created_at: Optional[datetime] = None,
) -> Claim:
    claim = Claim(
        coupon_id=coupon_id,
        coupon_code=coupon_code,
        ip_address=ip_address or UNKNOWN_CLIENT_IP,
        session_id=session_id,
        created_at=created_at or utc_now(),
    )
    db.add(claim)
    _commit(db)
    return claim


def release_coupon(db: Session, *, coupon_id: int) -> int:
    """Put a claimed coupon back to available and clear its claim fields."""
    try:
        changed = (
            db.query(Coupon)
            .filter(Coupon.id == coupon_id)
            .update(
                {
                    Coupon.status: COUPON_STATUS_AVAILABLE,
                    Coupon.claimed_by: None,
                    Coupon.claimed_at: None,
                },
                synchronize_session=False,
            )
        )
    except SQLAlchemyError:
        db.rollback()
        raise
    _commit(db)
    return changed


def latest_claim_time(
    db: Session,
    *,
    session_id: str,
    ip_address: Optional[str] = None,
) -> Optional[datetime]:
    conditions = [Claim.session_id == session_id]
    if ip_address and ip_address != UNKNOWN_CLIENT_IP:
        conditions.append(Claim.ip_address == ip_address)
    return db.query(func.max(Claim.created_at)).filter(or_(*conditions)).scalar()


def get_coupon(db: Session, coupon_id: int) -> Optional[Coupon]:
    return db.query(Coupon).filter(Coupon.id == coupon_id).first()


def code_exists(db: Session, code: str) -> bool:
    return db.query(Coupon.id).filter(Coupon.code == code).first() is not None


def list_coupons(db: Session) -> List[Coupon]:
    return db.query(Coupon).order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()


def list_claims(db: Session) -> List[Claim]:
    return (
        db.query(Claim)
        .options(joinedload(Claim.coupon))
        .order_by(Claim.created_at.desc(), Claim.id.desc())
        .all()
    )


def insert_coupon(
    db: Session,
    *,
    code: str,
    expires_at: datetime,
    created_at: datetime,
) -> Coupon:
    """Stage a new available coupon; the caller commits.

    A duplicate code surfaces as ``IntegrityError`` from the flush.
    """
    coupon = Coupon(
        code=code,
        status=COUPON_STATUS_AVAILABLE,
        expires_at=expires_at,
        created_at=created_at,
    )
    db.add(coupon)
    db.flush()
    return coupon


def update_coupon_status(
    db: Session,
    *,
    coupon_id: int,
    expected_status: str,
    new_status: str,
) -> int:
    """Stage ``UPDATE ... WHERE id=? AND status=expected_status``; returns rows changed.

    Moving to available always clears the claim fields.
    """
    values = {Coupon.status: new_status}
    if new_status == COUPON_STATUS_AVAILABLE:
        values[Coupon.claimed_by] = None
        values[Coupon.claimed_at] = None
    return (
        db.query(Coupon)
        .filter(Coupon.id == coupon_id, Coupon.status == expected_status)
        .update(values, synchronize_session=False)
    )


def delete_coupon(db: Session, coupon: Coupon) -> None:
    # Claims outlive their coupon with a null reference and the code snapshot.
    db.query(Claim).filter(Claim.coupon_id == coupon.id).update(
        {Claim.coupon_id: None}, synchronize_session=False
    )
    db.delete(coupon)
    db.flush()
