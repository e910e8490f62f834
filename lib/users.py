"""User lookups shared by auth and admin routes"""
from typing import Any, Dict, List, Mapping, Optional

import asyncpg

ROLES = ("ADMIN", "AFFILIATE")
STATUSES = ("PENDING", "ACTIVE", "BANNED", "REJECTED")
PROJECTED_FTD_BUCKETS = ("0-50", "51-100", "101-500", "500+")

USER_COLUMNS = """
    id, name, email, password_hash, role, status, whatsapp, instagram,
    projected_ftds, cpa_amount, avatar_url, parent_id, created_at
"""


async def fetch_user_by_id(conn: asyncpg.Connection, user_id) -> Optional[asyncpg.Record]:
    return await conn.fetchrow(
        f"SELECT {USER_COLUMNS} FROM users WHERE id = $1",
        user_id
    )


async def fetch_user_by_email(conn: asyncpg.Connection, email: str) -> Optional[asyncpg.Record]:
    return await conn.fetchrow(
        f"SELECT {USER_COLUMNS} FROM users WHERE email = $1",
        email
    )


async def email_taken(conn: asyncpg.Connection, email: str, exclude_id=None) -> bool:
    return await conn.fetchval(
        "SELECT EXISTS(SELECT 1 FROM users WHERE email = $1 AND ($2::uuid IS NULL OR id <> $2))",
        email, exclude_id
    )


async def fetch_children(conn: asyncpg.Connection, user_id) -> List[Dict[str, Any]]:
    rows = await conn.fetch("""
        SELECT id, name, email, status, avatar_url
        FROM users
        WHERE parent_id = $1
        ORDER BY name ASC
    """, user_id)
    return [
        {
            "id": str(row["id"]),
            "name": row["name"],
            "email": row["email"],
            "status": row["status"],
            "avatarUrl": row["avatar_url"],
        }
        for row in rows
    ]


def user_to_json(row: Mapping, private: bool = False) -> Dict[str, Any]:
    """Public user shape; private=True adds the admin-only fields"""
    data = {
        "id": str(row["id"]),
        "name": row["name"],
        "email": row["email"],
        "role": row["role"],
        "status": row["status"],
        "avatarUrl": row.get("avatar_url"),
    }
    if private:
        parent_id = row.get("parent_id")
        created_at = row.get("created_at")
        data.update({
            "whatsapp": row.get("whatsapp"),
            "instagram": row.get("instagram"),
            "projectedFtds": row.get("projected_ftds"),
            "cpaAmount": float(row.get("cpa_amount") or 0),
            "parentId": str(parent_id) if parent_id else None,
            "createdAt": created_at.isoformat() if created_at else None,
        })
    return data


async def delete_user_cascade(conn: asyncpg.Connection, user_id) -> bool:
    """
    Hard delete a user and everything it owns.

    Children are detached (parent_id set to NULL) rather than deleted.
    Returns False when the user does not exist.
    """
    async with conn.transaction():
        await conn.execute(
            "UPDATE users SET parent_id = NULL, updated_at = NOW() WHERE parent_id = $1",
            user_id
        )
        await conn.execute("DELETE FROM daily_metrics WHERE user_id = $1", user_id)
        await conn.execute("DELETE FROM tracking_links WHERE user_id = $1", user_id)
        deleted = await conn.fetchval(
            "DELETE FROM users WHERE id = $1 RETURNING id",
            user_id
        )
    return deleted is not None
