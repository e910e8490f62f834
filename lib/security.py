"""
Password hashing and session tokens
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Response
from jose import JWTError, jwt
from passlib.context import CryptContext

from lib.settings import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class InvalidTokenError(Exception):
    """Raised when a session token cannot be decoded or has expired"""


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # Malformed hash in the database
        return False


def normalize_email(email: str) -> str:
    return email.strip().lower()


def create_access_token(
    user_id: str,
    email: str,
    role: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create a signed session token for the given user"""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=settings.access_token_expire_days))

    to_encode = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify and decode a session token"""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        raise InvalidTokenError(str(e)) from e

    if not payload.get("sub"):
        raise InvalidTokenError("Token has no subject")
    return payload


def _cookie_flags() -> Dict[str, Any]:
    # Production dashboard is served cross-site
    return {
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "none" if settings.is_production else "lax",
    }


def set_session_cookie(response: Response, token: str):
    response.set_cookie(
        key=settings.cookie_name,
        value=token,
        max_age=settings.access_token_expire_days * 24 * 60 * 60,
        **_cookie_flags()
    )


def clear_session_cookie(response: Response):
    response.delete_cookie(key=settings.cookie_name, **_cookie_flags())
