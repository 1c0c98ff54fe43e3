from sqlalchemy import Column, DateTime, Integer, String

from app.core.clock import utc_now
from app.core.database import Base


class AdminLoginAttempt(Base):
    """Failed-login counter per normalized email; one row while failures are pending."""

    __tablename__ = "admin_login_attempts"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    failures = Column(Integer, nullable=False, default=0)
    window_started_at = Column(DateTime, nullable=True)
    locked_until = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)
