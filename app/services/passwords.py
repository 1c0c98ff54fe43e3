from __future__ import annotations

import logging

from passlib.context import CryptContext

logger = logging.getLogger(__name__)

PREFERRED_SCHEME = "bcrypt"
FALLBACK_SCHEME = "pbkdf2_sha256"

# bcrypt first; pbkdf2_sha256 covers hosts where the bcrypt backend will not load.
pwd_context = CryptContext(schemes=[PREFERRED_SCHEME, FALLBACK_SCHEME], deprecated="auto")


def looks_hashed(value: str) -> bool:
    return bool(value) and pwd_context.identify(value) is not None


def hash_password(password: str) -> str:
    try:
        return pwd_context.hash(password)
    except (ValueError, RuntimeError, AttributeError):
        logger.warning("[PASSWORDS] bcrypt backend unavailable, hashing with %s", FALLBACK_SCHEME)
        return pwd_context.hash(password, scheme=FALLBACK_SCHEME)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError, RuntimeError, AttributeError):
        logger.warning("[PASSWORDS] stored admin hash could not be verified")
        return False
