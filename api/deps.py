"""Request-scoped authentication dependencies"""
import uuid

import asyncpg
from fastapi import Depends, HTTPException, Request

from lib.db import get_conn
from lib.logging import get_logger
from lib.security import InvalidTokenError, decode_access_token
from lib.settings import settings
from lib.users import fetch_user_by_id

logger = get_logger(__name__)


async def get_current_user(
    request: Request,
    conn: asyncpg.Connection = Depends(get_conn)
):
    """
    Decode the session cookie and load the user.

    Only ACTIVE users (or admins in any status) are accepted.
    """
    token = request.cookies.get(settings.cookie_name)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_access_token(token)
        user_id = uuid.UUID(payload["sub"])
    except (InvalidTokenError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")

    user = await fetch_user_by_id(conn, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if user["status"] != "ACTIVE" and user["role"] != "ADMIN":
        logger.info(f"rejected session user_id={user_id} status={user['status']}")
        raise HTTPException(status_code=401, detail="Account is not active")

    request.state.user_id = str(user_id)
    return user


async def require_admin(user=Depends(get_current_user)):
    if user["role"] != "ADMIN":
        raise HTTPException(
            status_code=403,
            detail="Access denied. Administrators only."
        )
    return user
