"""
Authentication service: password hashing and JWT access tokens.
"""

from datetime import timedelta
from typing import Dict, Optional
import logging

import bcrypt
from jose import JWTError, jwt

from teamtango.config import get_settings
from teamtango.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """
    Hash a password with bcrypt.

    Args:
        password: Plain text password

    Returns:
        bcrypt hash as a UTF-8 string
    """
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plain text password against a bcrypt hash."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT access token.

    Args:
        data: Claims to embed (user_id, email, role_id, role_name)
        expires_delta: Lifetime; defaults to ACCESS_TOKEN_EXPIRE_HOURS

    Returns:
        Encoded JWT string
    """
    settings = get_settings()
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS)
    to_encode["exp"] = utcnow() + expires_delta
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> Optional[Dict]:
    """
    Verify a JWT token and return its payload.

    Returns:
        Claims dict, or None if the token is malformed, tampered with or expired
    """
    settings = get_settings()
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.debug(f"Token verification failed: {e}")
        return None
