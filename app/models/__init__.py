from app.models.coupon import Claim, Coupon
from app.models.admin_user import AdminUser
from app.models.admin_audit_log import AdminAuditLog
from app.models.admin_login_attempt import AdminLoginAttempt
