# Overview: Pytest coverage for listings, dashboard totals and chart series.

from datetime import datetime, timedelta

import pytest

from lotledger.models import SaleTransaction
from lotledger.services import lot_service, reporting_service
from lotledger.time_utils import utcnow

from conftest import create_lot, headers_for, lot_payload, multi_lot_payload, sell


def _backdate(db_session, transaction_id: int, when: datetime) -> None:
    tx = db_session.get(SaleTransaction, transaction_id)
    tx.created_at = when
    db_session.commit()


class TestListLots:
    def test_newest_first_with_pagination(self, db_session, tenant_a, admin_a):
        for n in range(1, 13):
            create_lot(tenant_a, admin_a, lot_payload(f"LOT-{n:04d}"))

        first = reporting_service.list_lots(tenant_a.id, page=1, per_page=5)
        assert [lot["lot_number"] for lot in first["items"]] == [
            "LOT-0012", "LOT-0011", "LOT-0010", "LOT-0009", "LOT-0008",
        ]
        assert first["pagination"] == {
            "page": 1,
            "per_page": 5,
            "total": 12,
            "total_pages": 3,
            "has_next": True,
            "has_prev": False,
        }

        last = reporting_service.list_lots(tenant_a.id, page=3, per_page=5)
        assert last["count"] == 2
        assert last["pagination"]["has_next"] is False

    def test_default_page_size(self, db_session, tenant_a, admin_a):
        for n in range(1, 13):
            create_lot(tenant_a, admin_a, lot_payload(f"LOT-{n:04d}"))
        assert reporting_service.list_lots(tenant_a.id)["count"] == 10

    @pytest.mark.parametrize("per_page,expected", [(-1, 1), (-50, 1), (0, 10), (500, 100)])
    def test_page_size_clamped(self, db_session, tenant_a, admin_a, per_page, expected):
        for n in range(1, 4):
            create_lot(tenant_a, admin_a, lot_payload(f"LOT-{n:04d}"))

        result = reporting_service.list_lots(tenant_a.id, per_page=per_page)

        assert result["pagination"]["per_page"] == expected
        assert result["count"] == min(expected, 3)
        assert result["pagination"]["total_pages"] == (3 + expected - 1) // expected

    def test_negative_page_size_over_http(self, client, db_session, admin_a, lot_a):
        resp = client.get("/api/lots?per_page=-1", headers=headers_for(admin_a))
        assert resp.status_code == 200
        assert resp.json["pagination"]["per_page"] == 1
        assert len(resp.json["items"]) == 1

    def test_search_is_case_insensitive_substring(self, db_session, tenant_a, admin_a):
        create_lot(tenant_a, admin_a, lot_payload("SPRING-0001"))
        create_lot(tenant_a, admin_a, lot_payload("SUMMER-0001"))
        create_lot(tenant_a, admin_a, lot_payload("spring-0002"))

        result = reporting_service.list_lots(tenant_a.id, search="Spring")
        assert sorted(lot["lot_number"] for lot in result["items"]) == ["SPRING-0001", "spring-0002"]

    def test_search_treats_wildcards_literally(self, db_session, tenant_a, admin_a):
        create_lot(tenant_a, admin_a, lot_payload("LOT_A"))
        create_lot(tenant_a, admin_a, lot_payload("LOTXA"))

        result = reporting_service.list_lots(tenant_a.id, search="_")
        assert [lot["lot_number"] for lot in result["items"]] == ["LOT_A"]

    def test_items_include_creator_and_stock(self, db_session, tenant_a, admin_a, lot_a):
        lot = reporting_service.list_lots(tenant_a.id)["items"][0]
        assert lot["creator"]["name"] == admin_a.name
        assert lot["remaining_quantity"] == 10
        assert lot["items"][0]["sizes"][0]["sell_cost_cents"] == 800


class TestListTransactions:
    @pytest.fixture
    def sales(self, db_session, tenant_a, admin_a, staff_a):
        lot_one = create_lot(tenant_a, admin_a, lot_payload("LOT-0001"))
        lot_two = create_lot(tenant_a, admin_a, multi_lot_payload("LOT-0002"))
        first, _ = sell(tenant_a, admin_a, lot_one.id, [{"color": "Red", "size": "M", "quantity": 1}],
                        customer_name="Jane Buyer", invoice_number="INV-100")
        second, _ = sell(tenant_a, staff_a, lot_two.id, [{"color": "Blue", "size": "S", "quantity": 1}],
                         customer_name="Omar Trader", invoice_number="INV-200")
        return lot_one, lot_two, first, second

    def test_newest_first(self, db_session, tenant_a, sales):
        _, _, first, second = sales
        ids = [tx["id"] for tx in reporting_service.list_transactions(tenant_a.id)["items"]]
        assert ids == [second.id, first.id]

    def test_filter_by_lot(self, db_session, tenant_a, sales):
        lot_one, _, first, _ = sales
        result = reporting_service.list_transactions(tenant_a.id, lot_id=lot_one.id)
        assert [tx["id"] for tx in result["items"]] == [first.id]

    @pytest.mark.parametrize(
        "term,expected",
        [
            ("jane", "first"),
            ("inv-200", "second"),
            ("lot-0002", "second"),
            ("sam staff", "second"),
            ("owner@acme", "first"),
        ],
    )
    def test_search_fields(self, db_session, tenant_a, sales, term, expected):
        _, _, first, second = sales
        wanted = {"first": first.id, "second": second.id}[expected]
        result = reporting_service.list_transactions(tenant_a.id, search=term)
        assert [tx["id"] for tx in result["items"]] == [wanted]

    def test_deleted_lot_still_listed_and_searchable(self, db_session, tenant_a, admin_a, sales):
        lot_one, _, first, _ = sales
        lot_service.delete_lot(tenant_a.id, admin_a.id, admin_a.role, lot_one.id)

        result = reporting_service.list_transactions(tenant_a.id, search="jane")
        assert [tx["id"] for tx in result["items"]] == [first.id]
        assert result["items"][0]["lot"]["deleted"] is True

    def test_lot_reference_resolved(self, db_session, tenant_a, sales):
        lot_one, _, first, _ = sales
        record = reporting_service.get_transaction(tenant_a.id, first.id)
        assert record["lot"] == {"id": lot_one.id, "lot_number": "LOT-0001", "deleted": False}
        assert record["seller"]["email"] == "owner@acme.test"


class TestDashboard:
    def test_empty_tenant(self, db_session, tenant_a):
        assert reporting_service.dashboard_stats(tenant_a.id) == {
            "total_investment_cents": 0,
            "total_revenue_cents": 0,
            "total_profit_cents": 0,
            "active_lots": 0,
            "lots_with_stock": 0,
        }

    def test_totals_and_stock_count(self, db_session, tenant_a, admin_a, lot_a):
        other = create_lot(tenant_a, admin_a, lot_payload("LOT-0002"))
        sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 3}])
        sell(tenant_a, admin_a, other.id, [{"color": "Red", "size": "M", "quantity": 10}])

        stats = reporting_service.dashboard_stats(tenant_a.id)
        assert stats["total_investment_cents"] == 10000
        assert stats["total_revenue_cents"] == 2400 + 8000
        assert stats["total_profit_cents"] == 900 + 3000
        assert stats["active_lots"] == 2
        assert stats["lots_with_stock"] == 1

    def test_recent_transactions_limit(self, db_session, tenant_a, admin_a, lot_a):
        for _ in range(4):
            sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 1}])
        assert len(reporting_service.recent_transactions(tenant_a.id, limit=3)) == 3


class TestChartData:
    def test_revenue_trend_groups_by_day(self, db_session, tenant_a, admin_a, lot_a):
        end = datetime(2026, 3, 15, 12, 0, 0)
        t1, _ = sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 1}])
        t2, _ = sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 2}])
        t3, _ = sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 1}])
        t4, _ = sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 1}])
        _backdate(db_session, t1.id, datetime(2026, 3, 10, 9, 0))
        _backdate(db_session, t2.id, datetime(2026, 3, 10, 18, 30))
        _backdate(db_session, t3.id, datetime(2026, 3, 14, 8, 0))
        # Outside the 30-day window
        _backdate(db_session, t4.id, datetime(2026, 1, 1, 8, 0))

        trend = reporting_service.chart_data(tenant_a.id, days=30, end=end)["revenue_trend"]
        assert trend == [
            {"date": "2026-03-10", "revenue_cents": 2400, "profit_cents": 900, "transactions": 2},
            {"date": "2026-03-14", "revenue_cents": 800, "profit_cents": 300, "transactions": 1},
        ]

    def test_trend_profit_is_realized_margin(self, db_session, tenant_a, admin_a, lot_a):
        sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 1}])
        trend = reporting_service.chart_data(tenant_a.id)["revenue_trend"]
        # 800 - 500, never revenue minus the whole lot's investment
        assert trend[0]["profit_cents"] == 300

    def test_sales_by_lot_and_inventory_status(self, db_session, tenant_a, admin_a, lot_a):
        other = create_lot(tenant_a, admin_a, multi_lot_payload("LOT-0002"))
        create_lot(tenant_a, admin_a, lot_payload("LOT-0003"))
        sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 5}])
        sell(tenant_a, admin_a, other.id, [{"color": "Red", "size": "L", "quantity": 3}])

        data = reporting_service.chart_data(tenant_a.id, end=utcnow() + timedelta(minutes=1))

        assert [row["lot_number"] for row in data["sales_by_lot"]] == ["LOT-0001", "LOT-0002"]
        assert data["sales_by_lot"][0]["revenue_cents"] == 4000

        status = data["inventory_status"]
        assert [row["lot_number"] for row in status] == ["LOT-0001", "LOT-0002", "LOT-0003"]
        assert status[0] == {
            "lot_id": lot_a.id,
            "lot_number": "LOT-0001",
            "total": 10,
            "sold": 5,
            "remaining": 5,
            "sold_percentage": 50.0,
        }
        assert status[1]["sold_percentage"] == 25.0
        assert status[2]["sold"] == 0

    def test_top_ten_only(self, db_session, tenant_a, admin_a):
        for n in range(1, 13):
            lot = create_lot(tenant_a, admin_a, lot_payload(f"LOT-{n:04d}"))
            sell(tenant_a, admin_a, lot.id, [{"color": "Red", "size": "M", "quantity": 1}])

        data = reporting_service.chart_data(tenant_a.id)
        assert len(data["sales_by_lot"]) == 10
        assert len(data["inventory_status"]) == 10
