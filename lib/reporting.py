"""
Aggregation queries over daily_metrics

Every query takes an inclusive date range and an optional list of user ids
(None means no restriction, see lib.scope).
"""
import uuid
from datetime import date, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import asyncpg

from lib.prometheus_metrics import track_report_query
from lib.settings import settings

COUNT_FIELDS = ("clicks", "registrations", "ftds", "qualified_cpa")
MONEY_FIELDS = ("deposit_amount", "commission_cpa", "commission_rev")

# snake_case column -> camelCase JSON key
JSON_KEYS = {
    "clicks": "clicks",
    "registrations": "registrations",
    "ftds": "ftds",
    "qualified_cpa": "qualifiedCpa",
    "deposit_amount": "depositAmount",
    "commission_cpa": "commissionCpa",
    "commission_rev": "commissionRev",
}

SUM_COLUMNS = ",\n    ".join(
    f"COALESCE(SUM(dm.{col}), 0) AS {col}" for col in COUNT_FIELDS + MONEY_FIELDS
)

SCOPE_FILTER = "($3::uuid[] IS NULL OR dm.user_id = ANY($3::uuid[]))"


def conversion_rate(registrations: int, ftds: int) -> float:
    """FTDs per registration, as a percentage; 0 when there are no registrations"""
    if not registrations:
        return 0.0
    return ftds / registrations * 100


def total_commission(commission_cpa, commission_rev) -> float:
    return float(commission_cpa or 0) + float(commission_rev or 0)


def to_number(value) -> float:
    return float(value) if value is not None else 0.0


def sums_to_json(row: Mapping, fields: Sequence[str] = COUNT_FIELDS + MONEY_FIELDS) -> Dict[str, Any]:
    """Convert a row of summed columns to the camelCase JSON shape"""
    out = {}
    for col in fields:
        value = row.get(col, 0) if row is not None else 0
        if col in MONEY_FIELDS:
            out[JSON_KEYS[col]] = to_number(value)
        else:
            out[JSON_KEYS[col]] = int(value or 0)
    return out


def with_derived(sums: Dict[str, Any]) -> Dict[str, Any]:
    """Add conversionRate and totalCommission to a camelCase sums dict"""
    sums["conversionRate"] = conversion_rate(sums.get("registrations", 0), sums.get("ftds", 0))
    sums["totalCommission"] = total_commission(sums.get("commissionCpa"), sums.get("commissionRev"))
    return sums


def resolve_date_range(start: Optional[date], end: Optional[date]) -> Tuple[date, date]:
    """Default to the last N days ending today"""
    if end is None:
        end = date.today()
    if start is None:
        start = end - timedelta(days=settings.default_range_days)
    return start, end


def scope_param(user_ids: Optional[List[str]]) -> Optional[List[uuid.UUID]]:
    if user_ids is None:
        return None
    return [uuid.UUID(str(i)) for i in user_ids]


async def fetch_totals(
    conn: asyncpg.Connection,
    start: date,
    end: date,
    user_ids: Optional[List[str]]
) -> Dict[str, Any]:
    """(a) Sum of every metric over the range"""
    with track_report_query("totals"):
        row = await conn.fetchrow(f"""
            SELECT
                {SUM_COLUMNS}
            FROM daily_metrics dm
            WHERE dm.date BETWEEN $1 AND $2
                AND {SCOPE_FILTER}
        """, start, end, scope_param(user_ids))

    totals = sums_to_json(row)
    totals["commissionTotal"] = total_commission(totals["commissionCpa"], totals["commissionRev"])
    return totals


async def fetch_funnel(
    conn: asyncpg.Connection,
    start: date,
    end: date,
    user_ids: Optional[List[str]]
) -> List[Dict[str, Any]]:
    """(b) Conversion funnel grouped by day"""
    with track_report_query("funnel"):
        rows = await conn.fetch(f"""
            SELECT
                dm.date,
                {SUM_COLUMNS}
            FROM daily_metrics dm
            WHERE dm.date BETWEEN $1 AND $2
                AND {SCOPE_FILTER}
            GROUP BY dm.date
            ORDER BY dm.date ASC
        """, start, end, scope_param(user_ids))

    return [
        {"date": row["date"].isoformat(), **sums_to_json(row, COUNT_FIELDS)}
        for row in rows
    ]


async def fetch_top_links(
    conn: asyncpg.Connection,
    start: date,
    end: date,
    user_ids: Optional[List[str]],
    limit: int
) -> List[Dict[str, Any]]:
    """(c) Tracking links ranked by CPA commission"""
    with track_report_query("top_links"):
        rows = await conn.fetch(f"""
            SELECT
                dm.link_id,
                u.id AS affiliate_id,
                u.name AS affiliate,
                c.name AS campaign,
                {SUM_COLUMNS}
            FROM daily_metrics dm
            JOIN tracking_links tl ON tl.id = dm.link_id
            JOIN users u ON u.id = tl.user_id
            JOIN campaigns c ON c.id = tl.campaign_id
            WHERE dm.date BETWEEN $1 AND $2
                AND {SCOPE_FILTER}
            GROUP BY dm.link_id, u.id, u.name, c.name
            ORDER BY commission_cpa DESC, dm.link_id ASC
            LIMIT $4
        """, start, end, scope_param(user_ids), limit)

    return [
        {
            "linkId": row["link_id"],
            "affiliateId": str(row["affiliate_id"]),
            "affiliate": row["affiliate"] or "Unknown",
            "campaign": row["campaign"] or "Unknown",
            **with_derived(sums_to_json(row)),
        }
        for row in rows
    ]


async def fetch_by_campaign(
    conn: asyncpg.Connection,
    start: date,
    end: date,
    user_ids: Optional[List[str]]
) -> List[Dict[str, Any]]:
    """(e) Totals per campaign over the caller's links"""
    with track_report_query("by_campaign"):
        rows = await conn.fetch("""
            SELECT
                c.name,
                COALESCE(SUM(dm.commission_cpa), 0) AS commission_cpa,
                COALESCE(SUM(dm.commission_rev), 0) AS commission_rev,
                COALESCE(SUM(dm.registrations), 0) AS registrations,
                COALESCE(SUM(dm.ftds), 0) AS ftds
            FROM tracking_links tl
            JOIN campaigns c ON c.id = tl.campaign_id
            LEFT JOIN daily_metrics dm ON dm.link_id = tl.id
                AND dm.date BETWEEN $1 AND $2
            WHERE ($3::uuid[] IS NULL OR tl.user_id = ANY($3::uuid[]))
            GROUP BY c.name
            ORDER BY c.name ASC
        """, start, end, scope_param(user_ids))

    return [
        {
            "name": row["name"],
            **sums_to_json(row, ("registrations", "ftds", "commission_cpa", "commission_rev")),
        }
        for row in rows
    ]


async def fetch_time_series(
    conn: asyncpg.Connection,
    start: date,
    end: date,
    user_ids: Optional[List[str]]
) -> List[Dict[str, Any]]:
    """(d) Registrations and FTDs per day"""
    with track_report_query("time_series"):
        rows = await conn.fetch(f"""
            SELECT
                dm.date,
                COALESCE(SUM(dm.registrations), 0) AS registrations,
                COALESCE(SUM(dm.ftds), 0) AS ftds
            FROM daily_metrics dm
            WHERE dm.date BETWEEN $1 AND $2
                AND {SCOPE_FILTER}
            GROUP BY dm.date
            ORDER BY dm.date ASC
        """, start, end, scope_param(user_ids))

    return [
        {
            "date": row["date"].isoformat(),
            "day": str(row["date"].day),
            "registrations": int(row["registrations"]),
            "ftds": int(row["ftds"]),
        }
        for row in rows
    ]


async def fetch_per_affiliate(
    conn: asyncpg.Connection,
    start: Optional[date],
    end: Optional[date],
    user_ids: Optional[List[str]] = None
) -> List[Dict[str, Any]]:
    """Sums grouped by affiliate; a missing bound leaves that side open"""
    with track_report_query("per_affiliate"):
        rows = await conn.fetch(f"""
            SELECT
                dm.user_id,
                u.name,
                {SUM_COLUMNS}
            FROM daily_metrics dm
            JOIN users u ON u.id = dm.user_id
            WHERE ($1::date IS NULL OR dm.date >= $1)
                AND ($2::date IS NULL OR dm.date <= $2)
                AND {SCOPE_FILTER}
            GROUP BY dm.user_id, u.name
        """, start, end, scope_param(user_ids))

    table = [
        {
            "userId": str(row["user_id"]),
            "name": row["name"] or "Unknown",
            **with_derived(sums_to_json(row)),
        }
        for row in rows
    ]
    table.sort(key=lambda r: r["totalCommission"], reverse=True)
    return table


def sum_rows(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Column totals over already-aggregated camelCase rows"""
    totals = {JSON_KEYS[col]: 0 for col in COUNT_FIELDS}
    totals.update({JSON_KEYS[col]: 0.0 for col in MONEY_FIELDS})
    for row in rows:
        for key in totals:
            totals[key] += row.get(key, 0)
    totals["totalCommission"] = total_commission(totals["commissionCpa"], totals["commissionRev"])
    return totals
