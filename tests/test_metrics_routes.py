"""Dashboard metric endpoints respect the caller's scope"""
from datetime import date
from decimal import Decimal

from conftest import AFFILIATE_ID, CHILD_ID, OTHER_ID

TOTALS_ROW = {
    "clicks": 120, "registrations": 12, "ftds": 3, "qualified_cpa": 2,
    "deposit_amount": Decimal("300"), "commission_cpa": Decimal("100"),
    "commission_rev": Decimal("20"),
}


def with_child(fake_conn):
    fake_conn.on("fetch", "WHERE parent_id = $1", [{"id": CHILD_ID}])


def test_metrics_require_login(client):
    assert client.get("/api/metrics/dashboard").status_code == 401


def test_dashboard_for_affiliate_includes_children(affiliate_client, fake_conn):
    with_child(fake_conn)
    fake_conn.on("fetchrow", "FROM daily_metrics dm", TOTALS_ROW)
    fake_conn.on("fetch", "GROUP BY dm.date", [dict(TOTALS_ROW, date=date(2026, 1, 10))])

    response = affiliate_client.get(
        "/api/metrics/dashboard",
        params={"startDate": "2026-01-01", "endDate": "2026-01-31"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["totals"]["commissionTotal"] == 120.0
    assert body["funnelData"] == [{
        "date": "2026-01-10", "clicks": 120, "registrations": 12, "ftds": 3, "qualifiedCpa": 2,
    }]
    args = fake_conn.args_for("FROM daily_metrics dm")
    assert args == (date(2026, 1, 1), date(2026, 1, 31), [AFFILIATE_ID, CHILD_ID])


def test_affiliate_cannot_widen_scope(affiliate_client, fake_conn):
    with_child(fake_conn)

    affiliate_client.get("/api/metrics/dashboard", params={"affiliateId": str(OTHER_ID)})

    assert fake_conn.args_for("FROM daily_metrics dm")[2] == [AFFILIATE_ID]


def test_admin_dashboard_is_unscoped(admin_client, fake_conn):
    admin_client.get("/api/metrics/dashboard")

    assert fake_conn.args_for("FROM daily_metrics dm")[2] is None
    assert not any("parent_id" in sql for sql in fake_conn.queries())


def test_admin_can_filter_one_affiliate(admin_client, fake_conn):
    admin_client.get("/api/metrics/time-series", params={"affiliateId": str(OTHER_ID)})

    assert fake_conn.args_for("GROUP BY dm.date")[2] == [OTHER_ID]


def test_top_campaigns_default_limit(affiliate_client, fake_conn):
    fake_conn.on("fetch", "ORDER BY commission_cpa DESC", [
        dict(TOTALS_ROW, link_id=7, affiliate_id=AFFILIATE_ID, affiliate="Ana", campaign="Casino"),
    ])

    response = affiliate_client.get("/api/metrics/top-campaigns")

    assert response.status_code == 200
    top = response.json()["campaigns"][0]
    assert top["linkId"] == 7
    assert top["conversionRate"] == 25.0
    assert top["totalCommission"] == 120.0
    assert fake_conn.args_for("ORDER BY commission_cpa DESC")[3] == 5


def test_by_campaign(affiliate_client, fake_conn):
    fake_conn.on("fetch", "GROUP BY c.name", [{
        "name": "Casino", "registrations": 4, "ftds": 1,
        "commission_cpa": Decimal("40"), "commission_rev": Decimal("0"),
    }])

    response = affiliate_client.get("/api/metrics/by-campaign")

    assert response.json()["campaigns"] == [{
        "name": "Casino", "registrations": 4, "ftds": 1, "commissionCpa": 40.0, "commissionRev": 0.0,
    }]


def test_invalid_date_is_rejected(affiliate_client):
    response = affiliate_client.get("/api/metrics/dashboard", params={"startDate": "yesterday"})
    assert response.status_code == 400


def test_affiliate_list_is_scoped(affiliate_client, fake_conn):
    with_child(fake_conn)
    fake_conn.on("fetch", "WHERE role = 'AFFILIATE'", [
        {"id": AFFILIATE_ID, "name": "Ana", "email": "ana@example.com"},
        {"id": CHILD_ID, "name": "Ana team", "email": "team@example.com"},
    ])

    response = affiliate_client.get("/api/metrics/affiliates")

    assert len(response.json()["affiliates"]) == 2
    assert fake_conn.args_for("WHERE role = 'AFFILIATE'") == ([AFFILIATE_ID, CHILD_ID],)
