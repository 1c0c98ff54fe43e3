import os
from dotenv import load_dotenv

# Load .env from the project root
load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./coupon_drop.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_STAGE = ENV_NORMALIZED in {"stage", "staging"}
IS_PROD = ENV_NORMALIZED in {"prod", "production"}
DEV_BOOTSTRAP_ALLOW = _env_flag("DEV_BOOTSTRAP_ALLOW", "")

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

# Admin session
ADMIN_SESSION_SECRET = os.getenv("ADMIN_SESSION_SECRET", "")
ADMIN_SESSION_MAX_AGE_SECONDS = int(os.getenv("ADMIN_SESSION_MAX_AGE_SECONDS", "604800"))
ADMIN_SESSION_COOKIE_SECURE = _env_flag("ADMIN_SESSION_COOKIE_SECURE", "0" if IS_DEV else "1")
ADMIN_SESSION_COOKIE_HTTPONLY = _env_flag("ADMIN_SESSION_COOKIE_HTTPONLY", "1")
ADMIN_SESSION_COOKIE_SAMESITE = os.getenv("ADMIN_SESSION_COOKIE_SAMESITE", "lax").strip().lower()
if ADMIN_SESSION_COOKIE_SAMESITE not in {"lax", "strict", "none"}:
    ADMIN_SESSION_COOKIE_SAMESITE = "lax"
ADMIN_SESSION_COOKIE_DOMAIN = os.getenv("ADMIN_SESSION_COOKIE_DOMAIN", "").strip() or None

ADMIN_SIGNUP_ENABLED = _env_flag("ADMIN_SIGNUP_ENABLED", "1" if IS_DEV else "0")

# Claims
CLAIM_WINDOW_SECONDS = int(os.getenv("CLAIM_WINDOW_SECONDS", "3600"))
CLAIM_COOKIE_MAX_AGE_SECONDS = int(os.getenv("CLAIM_COOKIE_MAX_AGE_SECONDS", "86400"))
CLAIM_LIMIT_BY_IP = _env_flag("CLAIM_LIMIT_BY_IP", "1")

# Coupons
DEFAULT_EXPIRY_DAYS = int(os.getenv("DEFAULT_EXPIRY_DAYS", "7"))
COUPON_CODE_LENGTH = int(os.getenv("COUPON_CODE_LENGTH", "8"))
COUPON_CODE_MAX_ATTEMPTS = int(os.getenv("COUPON_CODE_MAX_ATTEMPTS", "5"))

# Admin login throttling
ADMIN_LOGIN_MAX_FAILURES = int(os.getenv("ADMIN_LOGIN_MAX_FAILURES", "8"))
ADMIN_LOGIN_WINDOW_SECONDS = int(os.getenv("ADMIN_LOGIN_WINDOW_SECONDS", "600"))
ADMIN_LOGIN_LOCK_SECONDS = int(os.getenv("ADMIN_LOGIN_LOCK_SECONDS", "600"))

# Number of reverse proxies in front of the app that append to X-Forwarded-For.
# 0 ignores the header and uses the socket peer.
TRUSTED_PROXY_HOPS = int(os.getenv("TRUSTED_PROXY_HOPS", "1"))
