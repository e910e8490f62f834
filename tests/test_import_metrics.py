"""CSV parsing and upsert for the metrics importer"""
import io
from datetime import date
from decimal import Decimal

import pytest

from import_metrics import import_rows, parse_metric_rows
from conftest import AFFILIATE_ID

CSV = """date,registrations,ftds,qualified_cpa,deposit_amount,commission_cpa,commission_rev
2026-01-23,36,4,1,210.00,525.00,105.00
2026-01-24,30,5,,540.00,525.00,270.00
"""


def test_parse_rows_keeps_values_verbatim():
    rows = parse_metric_rows(io.StringIO(CSV))

    assert len(rows) == 2
    assert rows[0]["date"] == date(2026, 1, 23)
    assert rows[0]["commission_cpa"] == Decimal("525.00")
    assert rows[0]["clicks"] == 0
    assert rows[1]["qualified_cpa"] == 0


def test_parse_requires_date_column():
    with pytest.raises(ValueError):
        parse_metric_rows(io.StringIO("registrations,ftds\n1,2\n"))


def test_parse_reports_bad_line():
    with pytest.raises(ValueError, match="line 3"):
        parse_metric_rows(io.StringIO("date,ftds\n2026-01-01,1\n2026-01-02,x\n"))


@pytest.mark.asyncio
async def test_import_upserts_on_link_and_date(fake_conn):
    fake_conn.on("fetchrow", "WHERE tracking_code = $1", {"id": 10, "user_id": AFFILIATE_ID})
    rows = parse_metric_rows(io.StringIO(CSV))

    count = await import_rows(fake_conn, "registro_abc", rows)

    assert count == 2
    inserts = fake_conn.queries("execute")
    assert len(inserts) == 2
    assert "ON CONFLICT (link_id, date) DO UPDATE" in inserts[0]
    assert fake_conn.args_for("INSERT INTO daily_metrics")[:3] == (10, AFFILIATE_ID, date(2026, 1, 23))


@pytest.mark.asyncio
async def test_import_unknown_link(fake_conn):
    with pytest.raises(LookupError):
        await import_rows(fake_conn, "missing", [])


def test_parse_short_row_reports_line():
    with pytest.raises(ValueError, match="line 3"):
        parse_metric_rows(io.StringIO("ftds,date\n1,2026-01-01\n2\n"))
