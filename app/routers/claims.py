from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.metrics import service_metrics
from app.core.request_context import set_request_context
from app.schemas.coupons import ClaimCouponResponse, ClaimStatusResponse
from app.services.claim_cookies import (
    get_or_create_session_id,
    read_last_claim_ms,
    resolve_client_ip,
    set_last_claim_cookie,
    set_session_cookie,
)
from app.services.claim_workflow import (
    ClaimError,
    ClaimRateLimitedError,
    check_claim_window,
    claim_coupon,
)

router = APIRouter(prefix="/api/claim", tags=["claims"])
logger = logging.getLogger(__name__)


def _resolve_session(request: Request) -> tuple[str, bool]:
    session_id, created = get_or_create_session_id(request)
    set_request_context(session_id=session_id)
    return session_id, created


def _claim_error_response(exc: ClaimError, request: Request, session_id: str, created: bool) -> JSONResponse:
    service_metrics.record_claim_outcome(exc.outcome)
    headers = {}
    if isinstance(exc, ClaimRateLimitedError):
        headers["Retry-After"] = str(exc.retry_after_seconds)
    # Built by hand so a freshly minted session cookie survives the error.
    response = JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)
    if created:
        set_session_cookie(response, session_id, request)
    return response


@router.post(
    "",
    response_model=ClaimCouponResponse,
    responses={400: {}, 404: {}, 409: {}, 429: {}, 500: {}},
)
def claim(request: Request, response: Response, db: Session = Depends(get_db)):
    session_id, created = _resolve_session(request)
    try:
        result = claim_coupon(
            db,
            session_id=session_id,
            ip_address=resolve_client_ip(request),
            cookie_last_claim_ms=read_last_claim_ms(request),
        )
    except ClaimError as exc:
        return _claim_error_response(exc, request, session_id, created)

    service_metrics.record_claim_outcome("claimed")
    if created:
        set_session_cookie(response, session_id, request)
    set_last_claim_cookie(response, result.claimed_at_ms, request)
    return {
        "message": "Coupon claimed successfully!",
        "code": result.code,
        "expires_at": result.expires_at,
        "claimed_at": result.claimed_at,
    }


@router.get("/status", response_model=ClaimStatusResponse)
def claim_status(request: Request, response: Response, db: Session = Depends(get_db)):
    session_id, created = _resolve_session(request)
    if created:
        set_session_cookie(response, session_id, request)
    try:
        decision = check_claim_window(
            db,
            session_id=session_id,
            ip_address=resolve_client_ip(request),
            cookie_last_claim_ms=read_last_claim_ms(request),
        )
    except SQLAlchemyError as exc:
        logger.exception("[CLAIM] status lookup failed session_id=%s", session_id)
        raise HTTPException(status_code=500, detail="Failed to load claim status") from exc

    return {
        "session_id": session_id,
        "can_claim": decision.allowed,
        "minutes_remaining": decision.minutes_remaining,
        "wait_message": decision.wait_message,
    }
