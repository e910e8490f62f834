"""Tracking links of the signed-in affiliate"""
import asyncpg
from fastapi import APIRouter, Depends

from api.deps import get_current_user
from lib.db import get_conn

router = APIRouter(prefix="/api/links", tags=["links"])

LINK_SELECT = """
    SELECT
        tl.id, tl.platform_url, tl.tracking_code, tl.created_at,
        tl.user_id, u.name AS user_name, u.email AS user_email,
        c.id AS campaign_id, c.name AS campaign_name, c.slug AS campaign_slug
    FROM tracking_links tl
    JOIN users u ON u.id = tl.user_id
    JOIN campaigns c ON c.id = tl.campaign_id
"""


def link_to_json(row) -> dict:
    return {
        "id": row["id"],
        "platformUrl": row["platform_url"],
        "trackingCode": row["tracking_code"],
        "createdAt": row["created_at"].isoformat() if row["created_at"] else None,
        "userId": str(row["user_id"]),
        "user": {
            "id": str(row["user_id"]),
            "name": row["user_name"],
            "email": row["user_email"],
        },
        "campaign": {
            "id": row["campaign_id"],
            "name": row["campaign_name"],
            "slug": row["campaign_slug"],
        },
    }


@router.get("")
async def list_my_links(
    user=Depends(get_current_user),
    conn: asyncpg.Connection = Depends(get_conn)
):
    """Links owned by the caller, newest first"""
    rows = await conn.fetch(
        LINK_SELECT + " WHERE tl.user_id = $1 ORDER BY tl.created_at DESC",
        user["id"]
    )
    return {"links": [link_to_json(row) for row in rows]}
