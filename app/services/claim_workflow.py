from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.claim_window import ClaimWindowDecision, evaluate_claim_window
from app.core.clock import to_epoch_ms, utc_now
from app.core.config import CLAIM_LIMIT_BY_IP, CLAIM_WINDOW_SECONDS
from app.services import coupon_store

logger = logging.getLogger(__name__)
CLAIM_PREFIX = "[CLAIM]"


class ClaimError(Exception):
    status_code = 500
    outcome = "failed"
    public_message = "Failed to claim coupon. Please try again later."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.public_message
        super().__init__(self.message)


class SessionUnavailableError(ClaimError):
    status_code = 400
    outcome = "session_unavailable"
    public_message = "Session not initialized"


class ClaimRateLimitedError(ClaimError):
    status_code = 429
    outcome = "rate_limited"

    def __init__(self, decision: ClaimWindowDecision) -> None:
        self.decision = decision
        super().__init__(f"Please wait {decision.wait_message} before claiming another coupon")

    @property
    def retry_after_seconds(self) -> int:
        return max(1, min(self.decision.minutes_remaining, 60) * 60)


class NoCouponAvailableError(ClaimError):
    status_code = 404
    outcome = "no_coupon"
    public_message = "No coupons available at the moment. Please try again later."


class ClaimRaceLostError(NoCouponAvailableError):
    status_code = 409
    outcome = "race_lost"
    public_message = "That coupon was just claimed by someone else. Please try again."


class ClaimFailedError(ClaimError):
    pass


@dataclass(frozen=True)
class ClaimResult:
    coupon_id: int
    code: str
    expires_at: datetime
    claimed_at: datetime

    @property
    def claimed_at_ms(self) -> int:
        return to_epoch_ms(self.claimed_at)


def check_claim_window(
    db: Session,
    *,
    session_id: str,
    ip_address: Optional[str],
    cookie_last_claim_ms: Optional[int],
    now: Optional[datetime] = None,
) -> ClaimWindowDecision:
    """Combine the visitor's cookie with the claims table and evaluate the window.

    The cookie alone is trivially reset by the client, so the most recent
    stored claim for the same session (and IP, when enabled) also counts.
    """
    now = now or utc_now()
    candidates = [cookie_last_claim_ms] if cookie_last_claim_ms is not None else []

    stored_last = coupon_store.latest_claim_time(
        db,
        session_id=session_id,
        ip_address=ip_address if CLAIM_LIMIT_BY_IP else None,
    )
    if stored_last is not None:
        candidates.append(to_epoch_ms(stored_last))

    last_claim_ms = max(candidates) if candidates else None
    return evaluate_claim_window(last_claim_ms, to_epoch_ms(now), window_seconds=CLAIM_WINDOW_SECONDS)


def _compensate(db: Session, *, coupon_id: int, session_id: str) -> None:
    try:
        coupon_store.release_coupon(db, coupon_id=coupon_id)
    except SQLAlchemyError:
        logger.exception(
            "%s compensation failed coupon_id=%s session_id=%s needs manual reconciliation",
            CLAIM_PREFIX,
            coupon_id,
            session_id,
        )
        return
    logger.info("%s coupon released after failed claim insert coupon_id=%s", CLAIM_PREFIX, coupon_id)


def claim_coupon(
    db: Session,
    *,
    session_id: Optional[str],
    ip_address: str,
    cookie_last_claim_ms: Optional[int],
    now: Optional[datetime] = None,
) -> ClaimResult:
    """Hand out one available coupon to ``session_id``.

    Checking: the session must exist and be outside its claim window.
    Fetching: the oldest available coupon is picked.
    Updating: a conditional update guarded on ``status='available'``; zero
    rows changed means another visitor won the race.
    Inserting: the claim row is written; if that fails the coupon is put back.
    """
    if not session_id:
        raise SessionUnavailableError()

    now = now or utc_now()
    try:
        decision = check_claim_window(
            db,
            session_id=session_id,
            ip_address=ip_address,
            cookie_last_claim_ms=cookie_last_claim_ms,
            now=now,
        )
    except SQLAlchemyError as exc:
        logger.exception("%s claim window lookup failed session_id=%s", CLAIM_PREFIX, session_id)
        raise ClaimFailedError() from exc

    if not decision.allowed:
        logger.info(
            "%s rate limited session_id=%s minutes_remaining=%s",
            CLAIM_PREFIX,
            session_id,
            decision.minutes_remaining,
        )
        raise ClaimRateLimitedError(decision)

    try:
        coupon = coupon_store.select_available_coupon(db, now=now)
    except SQLAlchemyError as exc:
        logger.exception("%s available coupon lookup failed", CLAIM_PREFIX)
        raise NoCouponAvailableError() from exc

    if coupon is None:
        logger.info("%s no coupons available session_id=%s", CLAIM_PREFIX, session_id)
        raise NoCouponAvailableError()

    coupon_id = coupon.id
    code = coupon.code
    expires_at = coupon.expires_at

    try:
        changed = coupon_store.claim_coupon_if_available(
            db,
            coupon_id=coupon_id,
            session_id=session_id,
            claimed_at=now,
        )
    except SQLAlchemyError as exc:
        logger.exception("%s update failed coupon_id=%s", CLAIM_PREFIX, coupon_id)
        raise ClaimFailedError() from exc

    if changed == 0:
        logger.warning("%s lost race coupon_id=%s session_id=%s", CLAIM_PREFIX, coupon_id, session_id)
        raise ClaimRaceLostError()

    try:
        coupon_store.insert_claim(
            db,
            coupon_id=coupon_id,
            coupon_code=code,
            ip_address=ip_address,
            session_id=session_id,
            created_at=now,
        )
    except SQLAlchemyError as exc:
        logger.exception("%s claim insert failed coupon_id=%s", CLAIM_PREFIX, coupon_id)
        _compensate(db, coupon_id=coupon_id, session_id=session_id)
        raise ClaimFailedError() from exc

    logger.info("%s claimed coupon_id=%s session_id=%s ip=%s", CLAIM_PREFIX, coupon_id, session_id, ip_address)
    return ClaimResult(coupon_id=coupon_id, code=code, expires_at=expires_at, claimed_at=now)
