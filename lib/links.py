"""Tracking link code generation and lookup"""
import secrets
import string
from typing import Optional

import asyncpg

MANUAL_PLATFORM_URL = "https://manual.entry"


def generate_code(length: int = 8) -> str:
    """Generate a random URL-safe code"""
    characters = string.ascii_lowercase + string.digits
    return ''.join(secrets.choice(characters) for _ in range(length))


async def unique_tracking_code(conn: asyncpg.Connection, prefix: str, max_attempts: int = 5) -> Optional[str]:
    """Return an unused tracking code, or None when every attempt collided"""
    for _ in range(max_attempts):
        candidate = f"{prefix}_{generate_code()}"
        exists = await conn.fetchval(
            "SELECT EXISTS(SELECT 1 FROM tracking_links WHERE tracking_code = $1)",
            candidate
        )
        if not exists:
            return candidate
    return None


async def find_or_create_link(
    conn: asyncpg.Connection,
    user_id,
    campaign_id: int
) -> Optional[int]:
    """
    Link id for a user/campaign pair, creating a manual-entry link when none
    exists. Returns None if the campaign does not exist.
    """
    link_id = await conn.fetchval("""
        SELECT id FROM tracking_links
        WHERE user_id = $1 AND campaign_id = $2
        ORDER BY created_at ASC
        LIMIT 1
    """, user_id, campaign_id)
    if link_id is not None:
        return link_id

    campaign_exists = await conn.fetchval(
        "SELECT EXISTS(SELECT 1 FROM campaigns WHERE id = $1)",
        campaign_id
    )
    if not campaign_exists:
        return None

    code = await unique_tracking_code(conn, f"manual_{str(user_id)[:8]}_{campaign_id}")
    if code is None:
        raise RuntimeError("Could not generate unique tracking code")
    return await conn.fetchval("""
        INSERT INTO tracking_links (platform_url, tracking_code, user_id, campaign_id)
        VALUES ($1, $2, $3, $4)
        RETURNING id
    """, MANUAL_PLATFORM_URL, code, user_id, campaign_id)
