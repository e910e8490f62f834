"""Campaign catalogue"""
import asyncpg
from fastapi import APIRouter, Depends

from api.deps import get_current_user
from lib.db import get_conn

router = APIRouter(prefix="/api/campaigns", tags=["campaigns"])


def campaign_to_json(row) -> dict:
    return {
        "id": row["id"],
        "name": row["name"],
        "slug": row["slug"],
        "createdAt": row["created_at"].isoformat() if row["created_at"] else None,
    }


async def fetch_campaigns(conn: asyncpg.Connection) -> list:
    rows = await conn.fetch(
        "SELECT id, name, slug, created_at FROM campaigns ORDER BY name ASC"
    )
    return [campaign_to_json(row) for row in rows]


@router.get("")
async def list_campaigns(
    user=Depends(get_current_user),
    conn: asyncpg.Connection = Depends(get_conn)
):
    return {"campaigns": await fetch_campaigns(conn)}
