from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from app.core.clock import utc_now
from app.core.database import Base

COUPON_STATUS_AVAILABLE = "available"
COUPON_STATUS_CLAIMED = "claimed"
COUPON_STATUS_DISABLED = "disabled"
COUPON_STATUSES = (COUPON_STATUS_AVAILABLE, COUPON_STATUS_CLAIMED, COUPON_STATUS_DISABLED)


class Coupon(Base):
    __tablename__ = "coupons"
    __table_args__ = (Index("ix_coupons_status_created_at", "status", "created_at"),)

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(32), nullable=False, unique=True)
    status = Column(String(16), nullable=False, default=COUPON_STATUS_AVAILABLE)
    claimed_by = Column(String(64), nullable=True)
    claimed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    claims = relationship("Claim", back_populates="coupon", passive_deletes=True)


class Claim(Base):
    __tablename__ = "claims"

    id = Column(Integer, primary_key=True, index=True)
    # SET NULL keeps the audit row when its coupon is deleted; coupon_code is the snapshot.
    coupon_id = Column(Integer, ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True, index=True)
    coupon_code = Column(String(32), nullable=False)
    ip_address = Column(String(64), nullable=False, default="0.0.0.0")
    session_id = Column(String(64), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now, index=True)

    coupon = relationship("Coupon", back_populates="claims")
