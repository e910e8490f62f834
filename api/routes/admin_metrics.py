"""Admin entry and correction of daily metric rows"""
import math
import uuid
from datetime import date
from typing import Optional

import asyncpg
from fastapi import APIRouter, Depends, HTTPException, Query

from api.deps import require_admin
from api.schemas import BulkUpdateRequest, CreateMetricRequest, UpdateMetricRequest
from lib.db import get_conn
from lib.links import find_or_create_link
from lib.logging import get_logger
from lib.prometheus_metrics import metric_writes_total
from lib.reporting import COUNT_FIELDS, MONEY_FIELDS, JSON_KEYS, to_number
from lib.settings import settings

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)]
)
logger = get_logger(__name__)

# Columns that may appear in a dynamic UPDATE
METRIC_COLUMNS = ("date",) + COUNT_FIELDS + MONEY_FIELDS
METRIC_RETURNING = "id, date, link_id, user_id, " + ", ".join(COUNT_FIELDS + MONEY_FIELDS)


def metric_to_json(row) -> dict:
    data = {
        "id": row["id"],
        "date": row["date"].isoformat(),
        "linkId": row["link_id"],
        "userId": str(row["user_id"]),
    }
    for col in COUNT_FIELDS:
        data[JSON_KEYS[col]] = int(row[col] or 0)
    for col in MONEY_FIELDS:
        data[JSON_KEYS[col]] = to_number(row[col])
    if "campaign" in row.keys():
        data["campaign"] = row["campaign"]
    if "user_name" in row.keys():
        data["user"] = {"id": str(row["user_id"]), "name": row["user_name"]}
    return data


async def apply_metric_update(
    conn: asyncpg.Connection,
    metric_id: int,
    update: UpdateMetricRequest
):
    """
    Apply a partial update to one metric row. Moving a row to a date already
    taken on the same link is a conflict.
    """
    existing = await conn.fetchrow(
        f"SELECT {METRIC_RETURNING} FROM daily_metrics WHERE id = $1",
        metric_id
    )
    if not existing:
        raise HTTPException(status_code=404, detail=f"Metric {metric_id} not found")

    fields = {
        col: value
        for col, value in update.model_dump(exclude_unset=True, exclude_none=True).items()
        if col in METRIC_COLUMNS
    }
    if not fields:
        return existing

    if "date" in fields and fields["date"] != existing["date"]:
        taken = await conn.fetchval("""
            SELECT id FROM daily_metrics
            WHERE link_id = $1 AND date = $2 AND id <> $3
        """, existing["link_id"], fields["date"], metric_id)
        if taken:
            raise HTTPException(
                status_code=409,
                detail=f"A metric already exists for this link on {fields['date'].isoformat()}"
            )

    assignments = ", ".join(f"{col} = ${i}" for i, col in enumerate(fields, start=2))
    try:
        return await conn.fetchrow(
            f"UPDATE daily_metrics SET {assignments}, updated_at = NOW() "
            f"WHERE id = $1 RETURNING {METRIC_RETURNING}",
            metric_id, *fields.values()
        )
    except asyncpg.UniqueViolationError:
        raise HTTPException(status_code=409, detail="A metric already exists for this link on that date")


@router.get("/metrics")
async def list_metrics(
    user_id: Optional[str] = Query(None, alias="userId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.admin_metrics_page_size, ge=1, le=500),
    conn: asyncpg.Connection = Depends(get_conn)
):
    """Paginated metric rows, newest first"""
    user_filter = None
    if user_id and user_id != "all":
        try:
            user_filter = [uuid.UUID(user_id)]
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid userId")

    where = """
        WHERE ($1::uuid[] IS NULL OR dm.user_id = ANY($1::uuid[]))
            AND ($2::date IS NULL OR dm.date >= $2)
            AND ($3::date IS NULL OR dm.date <= $3)
    """
    total = await conn.fetchval(
        f"SELECT COUNT(*) FROM daily_metrics dm {where}",
        user_filter, start_date, end_date
    )
    rows = await conn.fetch(f"""
        SELECT dm.*, u.name AS user_name, c.name AS campaign
        FROM daily_metrics dm
        JOIN users u ON u.id = dm.user_id
        JOIN tracking_links tl ON tl.id = dm.link_id
        JOIN campaigns c ON c.id = tl.campaign_id
        {where}
        ORDER BY dm.date DESC, dm.id DESC
        LIMIT $4 OFFSET $5
    """, user_filter, start_date, end_date, limit, (page - 1) * limit)

    total = total or 0
    return {
        "metrics": [metric_to_json(row) for row in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit) if total else 0,
        },
    }


@router.post("/metrics", status_code=201)
async def create_metric(
    body: CreateMetricRequest,
    conn: asyncpg.Connection = Depends(get_conn)
):
    """Record one day for an affiliate and campaign, creating the link if needed"""
    async with conn.transaction():
        user_exists = await conn.fetchval(
            "SELECT EXISTS(SELECT 1 FROM users WHERE id = $1)",
            body.user_id
        )
        if not user_exists:
            raise HTTPException(status_code=404, detail="User not found")

        link_id = await find_or_create_link(conn, body.user_id, body.campaign_id)
        if link_id is None:
            raise HTTPException(status_code=404, detail="Campaign not found")

        duplicate = await conn.fetchval(
            "SELECT id FROM daily_metrics WHERE link_id = $1 AND date = $2",
            link_id, body.date
        )
        if duplicate:
            raise HTTPException(
                status_code=409,
                detail=f"A metric already exists for this link on {body.date.isoformat()}"
            )

        try:
            row = await conn.fetchrow(f"""
                INSERT INTO daily_metrics (
                    link_id, user_id, date,
                    clicks, registrations, ftds, qualified_cpa,
                    deposit_amount, commission_cpa, commission_rev
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                RETURNING {METRIC_RETURNING}
            """,
                link_id, body.user_id, body.date,
                body.clicks, body.registrations, body.ftds, body.qualified_cpa,
                body.deposit_amount, body.commission_cpa, body.commission_rev
            )
        except asyncpg.UniqueViolationError:
            raise HTTPException(status_code=409, detail="A metric already exists for this link on that date")

    metric_writes_total.labels(operation="create").inc()
    logger.info(f"metric created id={row['id']} link_id={link_id} date={body.date}")
    return {"message": "Metric created", "metric": metric_to_json(row)}


# Declared before /metrics/{metric_id} so "bulk" is not parsed as an id
@router.put("/metrics/bulk")
async def bulk_update_metrics(
    body: BulkUpdateRequest,
    conn: asyncpg.Connection = Depends(get_conn)
):
    """Apply every update or none of them"""
    async with conn.transaction():
        updated = [
            await apply_metric_update(conn, item.id, item.data)
            for item in body.updates
        ]

    metric_writes_total.labels(operation="bulk_update").inc(len(updated))
    logger.info(f"bulk metric update count={len(updated)}")
    return {
        "message": f"{len(updated)} metrics updated",
        "metrics": [metric_to_json(row) for row in updated],
    }


@router.put("/metrics/{metric_id}")
async def update_metric(
    metric_id: int,
    body: UpdateMetricRequest,
    conn: asyncpg.Connection = Depends(get_conn)
):
    async with conn.transaction():
        row = await apply_metric_update(conn, metric_id, body)

    metric_writes_total.labels(operation="update").inc()
    return {"message": "Metric updated", "metric": metric_to_json(row)}


@router.delete("/metrics/{metric_id}")
async def delete_metric(metric_id: int, conn: asyncpg.Connection = Depends(get_conn)):
    deleted = await conn.fetchval(
        "DELETE FROM daily_metrics WHERE id = $1 RETURNING id",
        metric_id
    )
    if deleted is None:
        raise HTTPException(status_code=404, detail=f"Metric {metric_id} not found")

    metric_writes_total.labels(operation="delete").inc()
    return {"message": "Metric deleted"}
