"""Admin endpoints: affiliate review, account management and reports"""
from datetime import date
from typing import Optional
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, HTTPException, Query

from api.deps import require_admin
from api.routes.admin_metrics import metric_to_json
from api.schemas import (
    CreateUserRequest,
    UpdateCpaRequest,
    UpdatePasswordRequest,
    UpdateStatusRequest,
    UpdateUserRequest,
)
from lib.db import get_conn
from lib.logging import get_logger
from lib.prometheus_metrics import affiliate_status_changes_total
from lib.reporting import (
    COUNT_FIELDS,
    MONEY_FIELDS,
    SUM_COLUMNS,
    fetch_per_affiliate,
    sum_rows,
    sums_to_json,
    with_derived,
)
from lib.scope import resolve_allowed_user_ids
from lib.security import hash_password, normalize_email
from lib.users import (
    STATUSES,
    delete_user_cascade,
    email_taken,
    fetch_children,
    fetch_user_by_id,
    user_to_json,
)

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)]
)
logger = get_logger(__name__)

# Columns an admin may change through PUT /users/{id}
EDITABLE_USER_COLUMNS = (
    "name", "email", "whatsapp", "instagram", "projected_ftds", "cpa_amount", "parent_id"
)
NOT_NULL_USER_COLUMNS = ("name", "email", "cpa_amount")


async def _require_user(conn: asyncpg.Connection, user_id: UUID):
    user = await fetch_user_by_id(conn, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def _validate_parent(conn: asyncpg.Connection, parent_id: Optional[UUID], user_id: Optional[UUID] = None):
    """Sub-accounts are one level deep: a parent has no parent, a child has no children"""
    if parent_id is None:
        return
    if user_id is not None and parent_id == user_id:
        raise HTTPException(status_code=400, detail="A user cannot be its own parent")

    parent = await conn.fetchrow(
        "SELECT id, parent_id FROM users WHERE id = $1",
        parent_id
    )
    if not parent:
        raise HTTPException(status_code=400, detail="Parent affiliate not found")
    if parent["parent_id"] is not None:
        raise HTTPException(status_code=400, detail="Parent affiliate is itself a sub-account")

    if user_id is not None:
        has_children = await conn.fetchval(
            "SELECT EXISTS(SELECT 1 FROM users WHERE parent_id = $1)",
            user_id
        )
        if has_children:
            raise HTTPException(status_code=400, detail="An affiliate with sub-accounts cannot become a sub-account")


# ----------------------------------------------------------------------------
# Review queue & listings
# ----------------------------------------------------------------------------

@router.get("/requests")
async def list_pending(conn: asyncpg.Connection = Depends(get_conn)):
    """Affiliates waiting for approval, newest first"""
    rows = await conn.fetch("""
        SELECT id, name, email, whatsapp, instagram, projected_ftds, created_at
        FROM users
        WHERE status = 'PENDING' AND role = 'AFFILIATE'
        ORDER BY created_at DESC
    """)

    return {
        "users": [
            {
                "id": str(row["id"]),
                "name": row["name"],
                "email": row["email"],
                "whatsapp": row["whatsapp"],
                "instagram": row["instagram"],
                "projectedFtds": row["projected_ftds"],
                "createdAt": row["created_at"].isoformat() if row["created_at"] else None,
            }
            for row in rows
        ]
    }


@router.get("/affiliates")
async def list_active_affiliates(conn: asyncpg.Connection = Depends(get_conn)):
    """Active affiliates with their parent and sub-accounts"""
    rows = await conn.fetch("""
        SELECT
            u.id, u.name, u.email, u.whatsapp, u.instagram, u.projected_ftds,
            u.cpa_amount, u.created_at, u.parent_id, p.name AS parent_name
        FROM users u
        LEFT JOIN users p ON p.id = u.parent_id
        WHERE u.status = 'ACTIVE' AND u.role = 'AFFILIATE'
        ORDER BY u.name ASC
    """)

    children_rows = await conn.fetch("""
        SELECT id, name, email, parent_id
        FROM users
        WHERE parent_id = ANY($1::uuid[])
        ORDER BY name ASC
    """, [row["id"] for row in rows])

    children = {}
    for child in children_rows:
        children.setdefault(child["parent_id"], []).append({
            "id": str(child["id"]),
            "name": child["name"],
            "email": child["email"],
        })

    return {
        "users": [
            {
                "id": str(row["id"]),
                "name": row["name"],
                "email": row["email"],
                "whatsapp": row["whatsapp"],
                "instagram": row["instagram"],
                "projectedFtds": row["projected_ftds"],
                "cpaAmount": float(row["cpa_amount"] or 0),
                "createdAt": row["created_at"].isoformat() if row["created_at"] else None,
                "parentId": str(row["parent_id"]) if row["parent_id"] else None,
                "parent": (
                    {"id": str(row["parent_id"]), "name": row["parent_name"]}
                    if row["parent_id"] else None
                ),
                "children": children.get(row["id"], []),
            }
            for row in rows
        ]
    }


@router.get("/stats")
async def get_stats(conn: asyncpg.Connection = Depends(get_conn)):
    """Affiliate counts per status"""
    rows = await conn.fetch("""
        SELECT status, COUNT(*) AS count
        FROM users
        WHERE role = 'AFFILIATE'
        GROUP BY status
    """)

    counts = {status.lower(): 0 for status in STATUSES}
    for row in rows:
        counts[row["status"].lower()] = row["count"]
    counts["total"] = sum(counts.values())
    return counts


# ----------------------------------------------------------------------------
# Reports
# ----------------------------------------------------------------------------

@router.get("/performance/affiliates")
async def get_affiliate_performance(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    conn: asyncpg.Connection = Depends(get_conn)
):
    """Metrics per affiliate (every non-rejected one), best earners first"""
    users = await conn.fetch("""
        SELECT id, name, email, status
        FROM users
        WHERE role = 'AFFILIATE' AND status <> 'REJECTED'
        ORDER BY name ASC
    """)
    aggregates = {
        row["userId"]: row
        for row in await fetch_per_affiliate(conn, start_date, end_date)
    }

    performance = []
    for user in users:
        metrics = aggregates.get(str(user["id"])) or with_derived(sums_to_json(None))
        metrics = {k: v for k, v in metrics.items() if k not in ("userId", "name")}
        metrics["conversionRate"] = round(metrics["conversionRate"], 1)
        performance.append({
            "id": str(user["id"]),
            "name": user["name"],
            "email": user["email"],
            "status": user["status"],
            "metrics": metrics,
        })

    performance.sort(key=lambda p: p["metrics"]["totalCommission"], reverse=True)
    totals = sum_rows([p["metrics"] for p in performance])
    totals.pop("clicks", None)

    return {"data": performance, "totals": totals}


@router.get("/dashboard-metrics")
async def get_dashboard_metrics(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    affiliate_id: Optional[str] = Query(None, alias="affiliateId"),
    admin=Depends(require_admin),
    conn: asyncpg.Connection = Depends(get_conn)
):
    """Summary cards plus one table row per affiliate"""
    user_ids = resolve_allowed_user_ids(admin, [], affiliate_id)
    table = await fetch_per_affiliate(conn, start_date, end_date, user_ids)

    for row in table:
        row["conversionRate"] = round(row["conversionRate"], 1)

    summary = sum_rows(table)
    summary["total"] = summary.pop("totalCommission")
    summary.pop("clicks", None)

    return {"summary": summary, "tableData": table}


# ----------------------------------------------------------------------------
# Account management
# ----------------------------------------------------------------------------

@router.post("/users", status_code=201)
async def create_affiliate(
    body: CreateUserRequest,
    conn: asyncpg.Connection = Depends(get_conn)
):
    """Create an affiliate directly in ACTIVE status"""
    email = normalize_email(body.email)
    if await email_taken(conn, email):
        raise HTTPException(status_code=400, detail="Email already registered")
    await _validate_parent(conn, body.parent_id)

    try:
        row = await conn.fetchrow("""
            INSERT INTO users (
                name, email, password_hash, role, status,
                whatsapp, instagram, projected_ftds, cpa_amount, parent_id
            ) VALUES ($1, $2, $3, 'AFFILIATE', 'ACTIVE', $4, $5, $6, $7, $8)
            RETURNING id, name, email, status, cpa_amount
        """,
            body.name, email, hash_password(body.password),
            body.whatsapp, body.instagram, body.projected_ftds,
            body.cpa_amount, body.parent_id
        )
    except asyncpg.UniqueViolationError:
        raise HTTPException(status_code=400, detail="Email already registered")

    logger.info(f"affiliate created user_id={row['id']}")
    return {
        "message": "Affiliate created",
        "user": {
            "id": str(row["id"]),
            "name": row["name"],
            "email": row["email"],
            "status": row["status"],
            "cpaAmount": float(row["cpa_amount"]),
        },
    }


@router.get("/users/{user_id}")
async def get_affiliate(user_id: UUID, conn: asyncpg.Connection = Depends(get_conn)):
    """Affiliate details with lifetime metric totals"""
    user = await _require_user(conn, user_id)

    data = user_to_json(user, private=True)
    if user["parent_id"]:
        parent = await conn.fetchrow("SELECT id, name FROM users WHERE id = $1", user["parent_id"])
        data["parent"] = {"id": str(parent["id"]), "name": parent["name"]} if parent else None
    else:
        data["parent"] = None
    data["children"] = await fetch_children(conn, user_id)

    sums = await conn.fetchrow(f"""
        SELECT
            {SUM_COLUMNS}
        FROM daily_metrics dm
        WHERE dm.user_id = $1
    """, user_id)

    return {"user": data, "metrics": sums_to_json(sums, COUNT_FIELDS + MONEY_FIELDS)}


@router.put("/users/{user_id}")
async def update_affiliate(
    user_id: UUID,
    body: UpdateUserRequest,
    conn: asyncpg.Connection = Depends(get_conn)
):
    """Partial update of profile fields"""
    await _require_user(conn, user_id)

    fields = {
        col: value
        for col, value in body.model_dump(exclude_unset=True).items()
        if col in EDITABLE_USER_COLUMNS
        and not (value is None and col in NOT_NULL_USER_COLUMNS)
    }

    if "email" in fields:
        fields["email"] = normalize_email(fields["email"])
        if await email_taken(conn, fields["email"], exclude_id=user_id):
            raise HTTPException(status_code=400, detail="Email already registered")
    if "parent_id" in fields:
        await _validate_parent(conn, fields["parent_id"], user_id)

    if fields:
        assignments = ", ".join(f"{col} = ${i}" for i, col in enumerate(fields, start=2))
        try:
            await conn.execute(
                f"UPDATE users SET {assignments}, updated_at = NOW() WHERE id = $1",
                user_id, *fields.values()
            )
        except asyncpg.UniqueViolationError:
            raise HTTPException(status_code=400, detail="Email already registered")

    user = await fetch_user_by_id(conn, user_id)
    return {"message": "Affiliate updated", "user": user_to_json(user, private=True)}


@router.delete("/users/{user_id}")
async def delete_affiliate(user_id: UUID, conn: asyncpg.Connection = Depends(get_conn)):
    """Hard delete: removes links and metrics, detaches sub-accounts"""
    if not await delete_user_cascade(conn, user_id):
        raise HTTPException(status_code=404, detail="User not found")

    logger.info(f"user deleted user_id={user_id}")
    return {"message": "User deleted"}


@router.put("/users/{user_id}/status")
async def update_status(
    user_id: UUID,
    body: UpdateStatusRequest,
    conn: asyncpg.Connection = Depends(get_conn)
):
    """Approve, reject or ban an affiliate"""
    row = await conn.fetchrow("""
        UPDATE users SET status = $2, updated_at = NOW()
        WHERE id = $1
        RETURNING id, name, email, status
    """, user_id, body.status)

    if not row:
        raise HTTPException(status_code=404, detail="User not found")

    affiliate_status_changes_total.labels(status=body.status).inc()
    logger.info(f"status changed user_id={user_id} status={body.status}")
    return {
        "message": f"Status updated to {body.status}",
        "user": {
            "id": str(row["id"]),
            "name": row["name"],
            "email": row["email"],
            "status": row["status"],
        },
    }


@router.put("/users/{user_id}/cpa")
async def update_cpa(
    user_id: UUID,
    body: UpdateCpaRequest,
    conn: asyncpg.Connection = Depends(get_conn)
):
    row = await conn.fetchrow("""
        UPDATE users SET cpa_amount = $2, updated_at = NOW()
        WHERE id = $1
        RETURNING id, name, cpa_amount
    """, user_id, body.cpa_amount)

    if not row:
        raise HTTPException(status_code=404, detail="User not found")

    return {
        "message": "CPA updated",
        "user": {
            "id": str(row["id"]),
            "name": row["name"],
            "cpaAmount": float(row["cpa_amount"]),
        },
    }


@router.put("/users/{user_id}/password")
async def update_password(
    user_id: UUID,
    body: UpdatePasswordRequest,
    conn: asyncpg.Connection = Depends(get_conn)
):
    row = await conn.fetchrow("""
        UPDATE users SET password_hash = $2, updated_at = NOW()
        WHERE id = $1
        RETURNING id, name, email
    """, user_id, hash_password(body.password))

    if not row:
        raise HTTPException(status_code=404, detail="User not found")

    return {
        "message": "Password updated",
        "user": {"id": str(row["id"]), "name": row["name"], "email": row["email"]},
    }


@router.get("/users/{user_id}/metrics")
async def get_affiliate_metrics(
    user_id: UUID,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    conn: asyncpg.Connection = Depends(get_conn)
):
    """Most recent 30 daily rows for one affiliate"""
    rows = await conn.fetch("""
        SELECT dm.*, c.name AS campaign
        FROM daily_metrics dm
        JOIN tracking_links tl ON tl.id = dm.link_id
        JOIN campaigns c ON c.id = tl.campaign_id
        WHERE dm.user_id = $1
            AND ($2::date IS NULL OR dm.date >= $2)
            AND ($3::date IS NULL OR dm.date <= $3)
        ORDER BY dm.date DESC
        LIMIT 30
    """, user_id, start_date, end_date)

    return {"metrics": [metric_to_json(row) for row in rows]}
