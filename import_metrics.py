#!/usr/bin/env python3
"""
Bulk-import daily metrics for one tracking link from a CSV file

Usage: python import_metrics.py <tracking_code> <file.csv> [--dry-run]

The header row names DailyMetric columns (date is required, the others
default to 0). Values are stored as-is; existing rows for the same
(link, date) are overwritten.
"""
import argparse
import asyncio
import csv
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List

from lib.db import db
from lib.prometheus_metrics import metric_writes_total
from lib.reporting import COUNT_FIELDS, MONEY_FIELDS


def parse_metric_rows(lines: Iterable[str]) -> List[Dict]:
    """Parse CSV text into typed rows; raises ValueError naming the bad line"""
    reader = csv.DictReader(lines)
    if not reader.fieldnames or "date" not in reader.fieldnames:
        raise ValueError("CSV must have a 'date' column")

    rows = []
    for line_no, raw in enumerate(reader, start=2):
        try:
            row = {"date": date.fromisoformat((raw.get("date") or "").strip())}
            for col in COUNT_FIELDS:
                row[col] = int((raw.get(col) or "0").strip())
            for col in MONEY_FIELDS:
                row[col] = Decimal((raw.get(col) or "0").strip())
        except (ValueError, InvalidOperation) as e:
            raise ValueError(f"line {line_no}: {e}") from e
        rows.append(row)
    return rows


async def import_rows(conn, tracking_code: str, rows: List[Dict]) -> int:
    link = await conn.fetchrow(
        "SELECT id, user_id FROM tracking_links WHERE tracking_code = $1",
        tracking_code
    )
    if not link:
        raise LookupError(f"Tracking link {tracking_code!r} not found")

    for row in rows:
        await conn.execute("""
            INSERT INTO daily_metrics (
                link_id, user_id, date, clicks, registrations, ftds, qualified_cpa,
                deposit_amount, commission_cpa, commission_rev
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            ON CONFLICT (link_id, date) DO UPDATE SET
                clicks = EXCLUDED.clicks,
                registrations = EXCLUDED.registrations,
                ftds = EXCLUDED.ftds,
                qualified_cpa = EXCLUDED.qualified_cpa,
                deposit_amount = EXCLUDED.deposit_amount,
                commission_cpa = EXCLUDED.commission_cpa,
                commission_rev = EXCLUDED.commission_rev,
                updated_at = NOW()
        """,
            link["id"], link["user_id"], row["date"],
            *(row[col] for col in COUNT_FIELDS + MONEY_FIELDS)
        )
        print(f"[OK] {row['date'].isoformat()}")

    metric_writes_total.labels(operation="import").inc(len(rows))
    return len(rows)


async def main():
    parser = argparse.ArgumentParser(description="Import daily metrics from CSV")
    parser.add_argument("tracking_code")
    parser.add_argument("csv_file")
    parser.add_argument("--dry-run", action="store_true", help="parse only")
    args = parser.parse_args()

    with open(args.csv_file, newline="", encoding="utf-8") as f:
        rows = parse_metric_rows(f)
    print(f"[INFO] {len(rows)} rows parsed from {args.csv_file}")

    if args.dry_run:
        return

    await db.connect()
    try:
        async with db.acquire() as conn:
            count = await import_rows(conn, args.tracking_code, rows)
        print(f"[SUMMARY] {count} rows imported for {args.tracking_code}")
    finally:
        await db.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
