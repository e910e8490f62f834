"""
Queries and constraints against a real PostgreSQL database

Set TEST_DATABASE_URL to run. The schema migration is applied first and
every test runs inside a transaction that is rolled back afterwards.
"""
import os
import uuid
from datetime import date
from decimal import Decimal
from pathlib import Path

import asyncpg
import pytest
from httpx import ASGITransport, AsyncClient

from api.deps import get_current_user
from api.main import app
from lib.db import get_conn
from lib.reporting import fetch_top_links, fetch_totals
from lib.users import delete_user_cascade

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")
MIGRATION = Path(__file__).resolve().parents[1] / "sql" / "migrations" / "001_initial_schema.sql"
DAY = date(2026, 1, 15)

pytestmark = pytest.mark.skipif(not TEST_DATABASE_URL, reason="TEST_DATABASE_URL not set")


@pytest.fixture
async def db_conn():
    """Connection with the schema applied, rolled back after each test"""
    conn = await asyncpg.connect(TEST_DATABASE_URL)
    await conn.execute(MIGRATION.read_text(encoding="utf-8"))
    tx = conn.transaction()
    await tx.start()
    yield conn
    await tx.rollback()
    await conn.close()


@pytest.fixture
async def api_client(db_conn):
    """Admin-authenticated client whose requests run on db_conn"""
    async def override_get_conn():
        yield db_conn

    app.dependency_overrides[get_conn] = override_get_conn
    app.dependency_overrides[get_current_user] = lambda: {
        "id": uuid.uuid4(), "role": "ADMIN", "status": "ACTIVE",
    }
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def create_user(conn, name="Affiliate", parent_id=None):
    return await conn.fetchval("""
        INSERT INTO users (name, email, password_hash, role, status, parent_id)
        VALUES ($1, $2, 'x', 'AFFILIATE', 'ACTIVE', $3)
        RETURNING id
    """, name, f"{uuid.uuid4().hex}@example.com", parent_id)


async def create_campaign(conn, name="Casino"):
    return await conn.fetchval(
        "INSERT INTO campaigns (name, slug) VALUES ($1, $2) RETURNING id",
        name, f"test-{uuid.uuid4().hex[:12]}"
    )


async def create_link(conn, user_id, campaign_id):
    return await conn.fetchval("""
        INSERT INTO tracking_links (platform_url, tracking_code, user_id, campaign_id)
        VALUES ('https://partners.example.com', $1, $2, $3)
        RETURNING id
    """, f"test_{uuid.uuid4().hex[:12]}", user_id, campaign_id)


async def create_metric(conn, link_id, user_id, day=DAY, cpa="0", rev="0", registrations=0, ftds=0):
    return await conn.fetchval("""
        INSERT INTO daily_metrics (
            link_id, user_id, date, registrations, ftds, commission_cpa, commission_rev
        ) VALUES ($1, $2, $3, $4, $5, $6, $7)
        RETURNING id
    """, link_id, user_id, day, registrations, ftds, Decimal(cpa), Decimal(rev))


async def test_link_and_date_are_unique(db_conn):
    user_id = await create_user(db_conn)
    link_id = await create_link(db_conn, user_id, await create_campaign(db_conn))
    await create_metric(db_conn, link_id, user_id)

    with pytest.raises(asyncpg.UniqueViolationError):
        async with db_conn.transaction():
            await create_metric(db_conn, link_id, user_id)


async def test_duplicate_manual_metric_returns_409(db_conn, api_client):
    user_id = await create_user(db_conn)
    campaign_id = await create_campaign(db_conn)
    body = {"userId": str(user_id), "campaignId": campaign_id, "date": "2026-01-15", "ftds": 1}

    first = await api_client.post("/api/admin/metrics", json=body)
    second = await api_client.post("/api/admin/metrics", json=body)

    assert first.status_code == 201
    assert second.status_code == 409
    count = await db_conn.fetchval("SELECT COUNT(*) FROM daily_metrics WHERE user_id = $1", user_id)
    assert count == 1
    links = await db_conn.fetchval("SELECT COUNT(*) FROM tracking_links WHERE user_id = $1", user_id)
    assert links == 1


async def test_moving_metric_onto_taken_date_returns_409(db_conn, api_client):
    user_id = await create_user(db_conn)
    link_id = await create_link(db_conn, user_id, await create_campaign(db_conn))
    await create_metric(db_conn, link_id, user_id, day=date(2026, 1, 15))
    movable = await create_metric(db_conn, link_id, user_id, day=date(2026, 1, 16))

    conflict = await api_client.put(f"/api/admin/metrics/{movable}", json={"date": "2026-01-15"})
    moved = await api_client.put(f"/api/admin/metrics/{movable}", json={"date": "2026-01-20", "ftds": 4})

    assert conflict.status_code == 409
    assert moved.status_code == 200
    row = await db_conn.fetchrow("SELECT date, ftds FROM daily_metrics WHERE id = $1", movable)
    assert row["date"] == date(2026, 1, 20)
    assert row["ftds"] == 4


async def test_delete_user_removes_links_metrics_and_detaches_children(db_conn):
    parent_id = await create_user(db_conn, "Parent")
    child_id = await create_user(db_conn, "Child", parent_id=parent_id)
    link_id = await create_link(db_conn, parent_id, await create_campaign(db_conn))
    await create_metric(db_conn, link_id, parent_id)

    assert await delete_user_cascade(db_conn, parent_id) is True

    assert await db_conn.fetchval("SELECT COUNT(*) FROM users WHERE id = $1", parent_id) == 0
    assert await db_conn.fetchval("SELECT COUNT(*) FROM tracking_links WHERE user_id = $1", parent_id) == 0
    assert await db_conn.fetchval("SELECT COUNT(*) FROM daily_metrics WHERE user_id = $1", parent_id) == 0
    assert await db_conn.fetchval("SELECT parent_id FROM users WHERE id = $1", child_id) is None
    assert await delete_user_cascade(db_conn, parent_id) is False


async def test_top_links_ordered_by_cpa_commission(db_conn):
    user_id = await create_user(db_conn, "Ana")
    campaign_id = await create_campaign(db_conn)
    low = await create_link(db_conn, user_id, campaign_id)
    high = await create_link(db_conn, user_id, campaign_id)
    await create_metric(db_conn, low, user_id, cpa="40", rev="100", registrations=10, ftds=1)
    await create_metric(db_conn, high, user_id, cpa="90", rev="5", registrations=4, ftds=2)
    await create_metric(db_conn, high, user_id, day=date(2026, 1, 16), cpa="10", rev="0")

    top = await fetch_top_links(db_conn, date(2026, 1, 1), date(2026, 1, 31), [str(user_id)], 5)

    assert [row["linkId"] for row in top] == [high, low]
    assert top[0]["commissionCpa"] == 100.0
    assert top[0]["conversionRate"] == 50.0
    for row in top:
        assert row["totalCommission"] == pytest.approx(row["commissionCpa"] + row["commissionRev"])

    top_one = await fetch_top_links(db_conn, date(2026, 1, 1), date(2026, 1, 31), [str(user_id)], 1)
    assert [row["linkId"] for row in top_one] == [high]


async def test_totals_respect_scope_and_range(db_conn):
    ana = await create_user(db_conn, "Ana")
    bia = await create_user(db_conn, "Bia")
    campaign_id = await create_campaign(db_conn)
    ana_link = await create_link(db_conn, ana, campaign_id)
    bia_link = await create_link(db_conn, bia, campaign_id)
    await create_metric(db_conn, ana_link, ana, cpa="30", rev="7.5", registrations=5)
    await create_metric(db_conn, ana_link, ana, day=date(2025, 12, 1), cpa="1000")
    await create_metric(db_conn, bia_link, bia, cpa="500")

    totals = await fetch_totals(db_conn, date(2026, 1, 1), date(2026, 1, 31), [str(ana)])

    assert totals["commissionCpa"] == 30.0
    assert totals["commissionTotal"] == pytest.approx(37.5)
    assert totals["registrations"] == 5
