from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.deps import require_admin
from app.models.admin_user import AdminUser
from app.models.coupon import COUPON_STATUS_AVAILABLE
from app.schemas.coupons import ClaimRead, CouponCreatePayload, CouponMutationResponse, CouponRead
from app.services import coupon_store
from app.services import admin_audit
from app.services.admin_coupons import (
    CouponCodeConflictError,
    CouponNotFoundError,
    CouponStatusConflictError,
    create_coupon,
    delete_coupon,
    toggle_coupon_status,
)

router = APIRouter(prefix="/api/admin", tags=["admin-coupons"])
logger = logging.getLogger(__name__)


def _not_found(coupon_id: int) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Coupon {coupon_id} not found")


@router.get("/coupons", response_model=List[CouponRead])
def list_coupons(
    _user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return coupon_store.list_coupons(db)
    except SQLAlchemyError as exc:
        logger.exception("[ADMIN_COUPONS] failed to load coupons")
        raise HTTPException(status_code=500, detail="Failed to load coupons") from exc


@router.get("/claims", response_model=List[ClaimRead])
def list_claims(
    _user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return coupon_store.list_claims(db)
    except SQLAlchemyError as exc:
        logger.exception("[ADMIN_COUPONS] failed to load claims")
        raise HTTPException(status_code=500, detail="Failed to load claims") from exc


@router.post("/coupons", response_model=CouponMutationResponse, status_code=status.HTTP_201_CREATED)
def add_coupon(
    payload: CouponCreatePayload,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    # The coupon and its audit row commit together or not at all.
    try:
        coupon = create_coupon(db, expiry_days=payload.expiry_days)
        admin_audit.log_admin_action(
            db,
            user_id=user.id,
            action=admin_audit.ACTION_COUPON_CREATED,
            entity_type="coupon",
            entity_id=coupon.id,
            meta={"code": coupon.code, "expiry_days": payload.expiry_days},
        )
        db.commit()
    except CouponCodeConflictError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Failed to add coupon") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("[ADMIN_COUPONS] failed to add coupon")
        raise HTTPException(status_code=500, detail="Failed to add coupon") from exc

    db.refresh(coupon)
    return {"message": "Coupon added successfully", "coupon": coupon}


@router.post("/coupons/{coupon_id}/toggle", response_model=CouponMutationResponse)
def toggle_coupon(
    coupon_id: int,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        coupon = toggle_coupon_status(db, coupon_id)
        admin_audit.log_admin_action(
            db,
            user_id=user.id,
            action=admin_audit.ACTION_COUPON_STATUS_CHANGED,
            entity_type="coupon",
            entity_id=coupon.id,
            meta={"status": coupon.status},
        )
        db.commit()
    except CouponNotFoundError as exc:
        db.rollback()
        raise _not_found(coupon_id) from exc
    except CouponStatusConflictError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Coupon status changed meanwhile. Reload and try again.",
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("[ADMIN_COUPONS] failed to update coupon status coupon_id=%s", coupon_id)
        raise HTTPException(status_code=500, detail="Failed to update coupon status") from exc

    db.refresh(coupon)
    verb = "enabled" if coupon.status == COUPON_STATUS_AVAILABLE else "disabled"
    return {"message": f"Coupon {verb}", "coupon": coupon}


@router.delete("/coupons/{coupon_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_coupon(
    coupon_id: int,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        code = delete_coupon(db, coupon_id)
        admin_audit.log_admin_action(
            db,
            user_id=user.id,
            action=admin_audit.ACTION_COUPON_DELETED,
            entity_type="coupon",
            entity_id=coupon_id,
            meta={"code": code},
        )
        db.commit()
    except CouponNotFoundError as exc:
        db.rollback()
        raise _not_found(coupon_id) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("[ADMIN_COUPONS] failed to delete coupon coupon_id=%s", coupon_id)
        raise HTTPException(status_code=500, detail="Failed to delete coupon") from exc

    return Response(status_code=status.HTTP_204_NO_CONTENT)
