"""
Affiliate visibility scope

Admins see everyone; affiliates see themselves and their direct
sub-accounts. The result is the list of user ids a report query is
restricted to, or None for "no restriction".
"""
import uuid
from typing import Iterable, List, Mapping, Optional

import asyncpg

ALL = "all"


def _split_ids(requested: str) -> List[str]:
    return [part.strip() for part in requested.split(",") if part.strip()]


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def resolve_allowed_user_ids(
    user: Mapping,
    children_ids: Iterable[str],
    requested: Optional[str] = None
) -> Optional[List[str]]:
    """
    Compute the user ids the caller may see.

    Args:
        user: the authenticated user (needs "id" and "role")
        children_ids: ids of the user's direct sub-accounts
        requested: optional comma-separated affiliate ids, or "all"

    Returns:
        None when no filter applies (admins asking for everyone),
        otherwise the list of visible user ids.
    """
    user_id = str(user["id"])
    wants_all = not requested or requested.strip() == ALL

    if user["role"] == "ADMIN":
        if wants_all:
            return None
        return [i for i in _split_ids(requested) if _is_uuid(i)]

    allowed = [user_id] + [str(c) for c in children_ids if str(c) != user_id]
    if wants_all:
        return allowed

    valid = [i for i in _split_ids(requested) if i in allowed]
    # Unknown or foreign ids fall back to the caller alone
    return valid if valid else [user_id]


async def fetch_children_ids(conn: asyncpg.Connection, user_id) -> List[str]:
    rows = await conn.fetch(
        "SELECT id FROM users WHERE parent_id = $1 ORDER BY name",
        user_id
    )
    return [str(row["id"]) for row in rows]


async def get_allowed_user_ids(
    conn: asyncpg.Connection,
    user: Mapping,
    requested: Optional[str] = None
) -> Optional[List[str]]:
    """Scope resolution backed by the users table"""
    children = [] if user["role"] == "ADMIN" else await fetch_children_ids(conn, user["id"])
    return resolve_allowed_user_ids(user, children, requested)
