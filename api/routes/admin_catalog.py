"""Admin management of campaigns and tracking links"""
from typing import Optional

import asyncpg
from fastapi import APIRouter, Depends, HTTPException, Query

from api.deps import require_admin
from api.routes.campaigns import campaign_to_json, fetch_campaigns
from api.routes.links import LINK_SELECT, link_to_json
from api.schemas import CreateCampaignRequest, CreateLinkRequest
from lib.db import get_conn
from lib.links import unique_tracking_code
from lib.logging import get_logger

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)]
)
logger = get_logger(__name__)

TRACKING_CODE_PREFIX = "registro"


@router.get("/links")
async def list_links(
    user_id: Optional[str] = Query(None, alias="userId"),
    conn: asyncpg.Connection = Depends(get_conn)
):
    """Every tracking link, newest first"""
    rows = await conn.fetch(
        LINK_SELECT + """
        WHERE ($1::text IS NULL OR tl.user_id::text = $1)
        ORDER BY tl.created_at DESC
        """,
        user_id if user_id and user_id != "all" else None
    )
    return {"links": [link_to_json(row) for row in rows]}


@router.post("/links", status_code=201)
async def create_link(
    body: CreateLinkRequest,
    conn: asyncpg.Connection = Depends(get_conn)
):
    """Assign a tracking link to an affiliate for a campaign"""
    user_exists = await conn.fetchval(
        "SELECT EXISTS(SELECT 1 FROM users WHERE id = $1)",
        body.user_id
    )
    if not user_exists:
        raise HTTPException(status_code=404, detail="User not found")

    campaign_exists = await conn.fetchval(
        "SELECT EXISTS(SELECT 1 FROM campaigns WHERE id = $1)",
        body.campaign_id
    )
    if not campaign_exists:
        raise HTTPException(status_code=404, detail="Campaign not found")

    code = await unique_tracking_code(conn, TRACKING_CODE_PREFIX)
    if code is None:
        raise HTTPException(status_code=500, detail="Could not generate unique tracking code")

    link_id = await conn.fetchval("""
        INSERT INTO tracking_links (platform_url, tracking_code, user_id, campaign_id)
        VALUES ($1, $2, $3, $4)
        RETURNING id
    """, str(body.platform_url), code, body.user_id, body.campaign_id)

    row = await conn.fetchrow(LINK_SELECT + " WHERE tl.id = $1", link_id)
    logger.info(f"link created id={link_id} code={code}")
    return {"message": "Link created", "link": link_to_json(row)}


@router.delete("/links/{link_id}")
async def delete_link(link_id: int, conn: asyncpg.Connection = Depends(get_conn)):
    """Delete a link together with its metric rows"""
    async with conn.transaction():
        await conn.execute("DELETE FROM daily_metrics WHERE link_id = $1", link_id)
        deleted = await conn.fetchval(
            "DELETE FROM tracking_links WHERE id = $1 RETURNING id",
            link_id
        )
        if deleted is None:
            raise HTTPException(status_code=404, detail="Link not found")

    return {"message": "Link deleted"}


@router.get("/campaigns")
async def list_campaigns(conn: asyncpg.Connection = Depends(get_conn)):
    return {"campaigns": await fetch_campaigns(conn)}


@router.post("/campaigns", status_code=201)
async def create_campaign(
    body: CreateCampaignRequest,
    conn: asyncpg.Connection = Depends(get_conn)
):
    try:
        row = await conn.fetchrow("""
            INSERT INTO campaigns (name, slug)
            VALUES ($1, $2)
            RETURNING id, name, slug, created_at
        """, body.name.strip(), body.slug.strip().lower())
    except asyncpg.UniqueViolationError:
        raise HTTPException(status_code=409, detail="Campaign slug already exists")

    logger.info(f"campaign created slug={row['slug']}")
    return {"message": "Campaign created", "campaign": campaign_to_json(row)}
