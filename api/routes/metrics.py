"""Dashboard metrics endpoints, scoped to what the caller may see"""
from datetime import date
from typing import Optional

import asyncpg
from fastapi import APIRouter, Depends, Query

from api.deps import get_current_user
from lib.db import get_conn
from lib.reporting import (
    fetch_by_campaign,
    fetch_funnel,
    fetch_time_series,
    fetch_top_links,
    fetch_totals,
    resolve_date_range,
    scope_param,
)
from lib.scope import get_allowed_user_ids
from lib.settings import settings

router = APIRouter(prefix="/api/metrics", tags=["metrics"])


@router.get("/affiliates")
async def list_affiliates(
    user=Depends(get_current_user),
    conn: asyncpg.Connection = Depends(get_conn)
):
    """Affiliates the caller can switch between"""
    allowed = await get_allowed_user_ids(conn, user)
    rows = await conn.fetch("""
        SELECT id, name, email
        FROM users
        WHERE role = 'AFFILIATE'
            AND ($1::uuid[] IS NULL OR id = ANY($1::uuid[]))
        ORDER BY name ASC
    """, scope_param(allowed))

    return {
        "affiliates": [
            {"id": str(row["id"]), "name": row["name"], "email": row["email"]}
            for row in rows
        ]
    }


@router.get("/dashboard")
async def get_dashboard(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    affiliate_id: Optional[str] = Query(None, alias="affiliateId"),
    user=Depends(get_current_user),
    conn: asyncpg.Connection = Depends(get_conn)
):
    """Totals and daily funnel for the selected period"""
    start, end = resolve_date_range(start_date, end_date)
    user_ids = await get_allowed_user_ids(conn, user, affiliate_id)

    return {
        "totals": await fetch_totals(conn, start, end, user_ids),
        "funnelData": await fetch_funnel(conn, start, end, user_ids),
    }


@router.get("/top-campaigns")
async def get_top_campaigns(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    affiliate_id: Optional[str] = Query(None, alias="affiliateId"),
    limit: int = Query(settings.top_campaigns_limit, ge=1, le=100),
    user=Depends(get_current_user),
    conn: asyncpg.Connection = Depends(get_conn)
):
    """Tracking links ranked by CPA commission"""
    start, end = resolve_date_range(start_date, end_date)
    user_ids = await get_allowed_user_ids(conn, user, affiliate_id)

    return {"campaigns": await fetch_top_links(conn, start, end, user_ids, limit)}


@router.get("/by-campaign")
async def get_by_campaign(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    affiliate_id: Optional[str] = Query(None, alias="affiliateId"),
    user=Depends(get_current_user),
    conn: asyncpg.Connection = Depends(get_conn)
):
    start, end = resolve_date_range(start_date, end_date)
    user_ids = await get_allowed_user_ids(conn, user, affiliate_id)

    return {"campaigns": await fetch_by_campaign(conn, start, end, user_ids)}


@router.get("/time-series")
async def get_time_series(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    affiliate_id: Optional[str] = Query(None, alias="affiliateId"),
    user=Depends(get_current_user),
    conn: asyncpg.Connection = Depends(get_conn)
):
    start, end = resolve_date_range(start_date, end_date)
    user_ids = await get_allowed_user_ids(conn, user, affiliate_id)

    return {"timeSeries": await fetch_time_series(conn, start, end, user_ids)}
