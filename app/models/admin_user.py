from sqlalchemy import Boolean, Column, DateTime, Integer, String

from app.core.clock import utc_now
from app.core.database import Base

ADMIN_ROLE = "admin"


class AdminUser(Base):
    """Operator account for the coupon admin panel."""

    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(120), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default=ADMIN_ROLE)
    active = Column(Boolean, nullable=False, default=True)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
