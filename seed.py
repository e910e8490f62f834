#!/usr/bin/env python3
"""
Seed a development database with an admin, sample affiliates, campaigns,
tracking links and 30 days of metrics. Safe to re-run.
"""
import asyncio
import random
from datetime import date, timedelta
from decimal import Decimal

from lib.db import db
from lib.links import unique_tracking_code
from lib.security import hash_password

ADMIN = ("Admin", "admin@affilia.dev", "admin123")
AFFILIATES = [
    ("Ana Souza", "ana@affilia.dev", Decimal("50")),
    ("Bruno Lima", "bruno@affilia.dev", Decimal("40")),
    ("Carla Dias", "carla@affilia.dev", Decimal("45")),
]
# Sub-account of the first affiliate
SUB_ACCOUNT = ("Ana Souza (team)", "ana.team@affilia.dev", Decimal("30"))
CAMPAIGNS = [("Sportsbook Brasil", "sportsbook-br"), ("Casino Live", "casino-live")]
AFFILIATE_PASSWORD = "affiliate123"
DAYS = 30


async def upsert_user(conn, name, email, password, role, status, cpa_amount=Decimal("0"), parent_id=None):
    return await conn.fetchval("""
        INSERT INTO users (name, email, password_hash, role, status, cpa_amount, parent_id)
        VALUES ($1, $2, $3, $4, $5, $6, $7)
        ON CONFLICT (email) DO UPDATE SET updated_at = NOW()
        RETURNING id
    """, name, email, hash_password(password), role, status, cpa_amount, parent_id)


async def upsert_campaign(conn, name, slug):
    return await conn.fetchval("""
        INSERT INTO campaigns (name, slug) VALUES ($1, $2)
        ON CONFLICT (slug) DO UPDATE SET name = EXCLUDED.name
        RETURNING id
    """, name, slug)


async def ensure_link(conn, user_id, campaign_id):
    link_id = await conn.fetchval(
        "SELECT id FROM tracking_links WHERE user_id = $1 AND campaign_id = $2",
        user_id, campaign_id
    )
    if link_id:
        return link_id
    code = await unique_tracking_code(conn, "seed")
    return await conn.fetchval("""
        INSERT INTO tracking_links (platform_url, tracking_code, user_id, campaign_id)
        VALUES ($1, $2, $3, $4)
        RETURNING id
    """, f"https://partners.example.com/?ref={code}", code, user_id, campaign_id)


async def seed_metrics(conn, link_id, user_id, cpa_amount: Decimal):
    today = date.today()
    for offset in range(DAYS):
        clicks = random.randint(50, 400)
        registrations = random.randint(0, clicks // 10)
        ftds = random.randint(0, registrations)
        qualified = random.randint(0, ftds)
        deposits = Decimal(ftds * random.randint(20, 200))
        await conn.execute("""
            INSERT INTO daily_metrics (
                link_id, user_id, date, clicks, registrations, ftds, qualified_cpa,
                deposit_amount, commission_cpa, commission_rev
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            ON CONFLICT (link_id, date) DO NOTHING
        """,
            link_id, user_id, today - timedelta(days=offset),
            clicks, registrations, ftds, qualified,
            deposits, cpa_amount * qualified, (deposits * Decimal("0.25")).quantize(Decimal("0.01"))
        )


async def main():
    await db.connect()
    try:
        async with db.acquire() as conn:
            await upsert_user(conn, *ADMIN, role="ADMIN", status="ACTIVE")
            print(f"[OK] Admin: {ADMIN[1]} / {ADMIN[2]}")

            campaign_ids = [await upsert_campaign(conn, *c) for c in CAMPAIGNS]
            print(f"[OK] {len(campaign_ids)} campaigns")

            affiliates = []
            for name, email, cpa in AFFILIATES:
                user_id = await upsert_user(conn, name, email, AFFILIATE_PASSWORD, "AFFILIATE", "ACTIVE", cpa)
                affiliates.append((user_id, cpa))

            name, email, cpa = SUB_ACCOUNT
            sub_id = await upsert_user(
                conn, name, email, AFFILIATE_PASSWORD, "AFFILIATE", "ACTIVE", cpa,
                parent_id=affiliates[0][0]
            )
            affiliates.append((sub_id, cpa))
            print(f"[OK] {len(affiliates)} affiliates (password: {AFFILIATE_PASSWORD})")

            for user_id, cpa in affiliates:
                for campaign_id in campaign_ids:
                    link_id = await ensure_link(conn, user_id, campaign_id)
                    await seed_metrics(conn, link_id, user_id, cpa)
            print(f"[OK] {DAYS} days of metrics per link")
    finally:
        await db.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
