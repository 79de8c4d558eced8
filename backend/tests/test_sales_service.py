# Overview: Pytest coverage for the sale engine (record_sale).

"""
Sale Engine Tests

Covers:
- The LOT-0001 walkthrough (sell 3, oversell 8, delete then read back)
- Revenue/profit accounting with server-side prices
- All-or-nothing behavior when any line fails
- Stock aggregated across lines for the same (color, size)
- Conservation: quantity == remaining + sum(sold)
- Storage failures: ServerError, nothing persisted, bounded contention retries
"""

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from lotledger.errors import InsufficientStockError, NotFoundError, ServerError, ValidationError
from lotledger.extensions import db
from lotledger.models import Lot, LotSize, SaleTransaction, SaleTransactionItem
from lotledger.schemas import SaleLineInput
from lotledger.services import lot_service, reporting_service, sales_service

from conftest import create_lot, multi_lot_payload, sell


def _size(lot: Lot, color: str, size: str) -> LotSize:
    return lot.size_index()[color][size]


class TestLot0001Walkthrough:
    """End-to-end: create, sell, oversell, delete, read back."""

    def test_sell_three(self, db_session, tenant_a, admin_a, lot_a):
        transaction, lot = sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 3}])

        assert _size(lot, "Red", "M").remaining_quantity == 7
        assert lot.total_investment_cents == 5000
        assert lot.total_revenue_cents == 2400
        assert lot.total_profit_cents == 900

        assert transaction.total_revenue_cents == 2400
        assert len(transaction.items) == 1
        item = transaction.items[0]
        assert (item.color, item.size, item.quantity) == ("Red", "M", 3)
        assert item.sell_price_cents == 800
        assert item.line_total_cents == 2400

    def test_oversell_reports_available(self, db_session, tenant_a, admin_a, lot_a):
        sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 3}])

        with pytest.raises(InsufficientStockError) as exc_info:
            sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 8}])

        assert exc_info.value.available == 7
        assert exc_info.value.requested == 8
        assert exc_info.value.details["color"] == "Red"

        lot = lot_service.get_lot(tenant_a.id, lot_a.id)
        assert _size(lot, "Red", "M").remaining_quantity == 7
        assert db_session.query(SaleTransaction).count() == 1

    def test_transaction_survives_lot_deletion(self, db_session, tenant_a, admin_a, lot_a):
        transaction, _ = sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 3}])
        transaction_id = transaction.id
        lot_id = lot_a.id

        lot_service.delete_lot(tenant_a.id, admin_a.id, admin_a.role, lot_id)

        record = reporting_service.get_transaction(tenant_a.id, transaction_id)
        assert record["total_revenue_cents"] == 2400
        assert record["sold_items"][0]["quantity"] == 3
        assert record["lot"] == {"id": lot_id, "lot_number": None, "deleted": True}


class TestAccounting:
    """Revenue += Q*S and profit += Q*(S-P), per line, from lot prices."""

    def test_multi_line_sale_totals(self, db_session, tenant_a, admin_a):
        lot = create_lot(tenant_a, admin_a, multi_lot_payload())

        transaction, lot = sell(tenant_a, admin_a, lot.id, [
            {"color": "Red", "size": "M", "quantity": 2},
            {"color": "Red", "size": "L", "quantity": 1},
            {"color": "Blue", "size": "S", "quantity": 3},
        ])

        # 2*800 + 1*1000 + 3*700
        assert transaction.total_revenue_cents == 4700
        # 2*300 + 1*400 + 3*300
        assert transaction.total_profit_cents == 1900
        assert lot.total_revenue_cents == 4700
        assert lot.total_profit_cents == 1900
        assert [item.line_total_cents for item in transaction.items] == [1600, 1000, 2100]
        assert [item.line_profit_cents for item in transaction.items] == [600, 400, 900]

    def test_totals_accumulate_across_sales(self, db_session, tenant_a, admin_a, lot_a):
        sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 1}])
        _, lot = sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 2}])

        assert lot.total_revenue_cents == 2400
        assert lot.total_profit_cents == 900
        assert lot.total_investment_cents == 5000

    def test_client_price_is_ignored(self, db_session, tenant_a, admin_a, lot_a):
        transaction, _ = sell(tenant_a, admin_a, lot_a.id, [
            {"color": "Red", "size": "M", "quantity": 1, "sell_price_cents": 1},
        ])
        assert transaction.items[0].sell_price_cents == 800
        assert transaction.total_revenue_cents == 800

    def test_selling_below_cost_records_negative_profit(self, db_session, tenant_a, admin_a):
        lot = create_lot(tenant_a, admin_a, {
            "lot_number": "LOT-0009",
            "items": [{"color": "Green", "sizes": [
                {"size": "XL", "quantity": 4, "purchase_cost_cents": 900, "sell_cost_cents": 600},
            ]}],
        })
        transaction, lot = sell(tenant_a, admin_a, lot.id, [{"color": "Green", "size": "XL", "quantity": 2}])

        assert transaction.total_profit_cents == -600
        assert lot.total_profit_cents == -600

    def test_customer_and_invoice_recorded(self, db_session, tenant_a, admin_a, lot_a):
        transaction, _ = sell(
            tenant_a, admin_a, lot_a.id,
            [{"color": "Red", "size": "M", "quantity": 1}],
            customer_name="Jane Buyer",
            invoice_number="INV-77",
        )
        assert transaction.customer_name == "Jane Buyer"
        assert transaction.invoice_number == "INV-77"
        assert transaction.sold_by == admin_a.id


class TestAtomicity:
    """A failing line leaves every size and every total untouched."""

    def _snapshot(self, db_session, tenant_a, lot_id):
        lot = lot_service.get_lot(tenant_a.id, lot_id)
        return (
            {(c.color, s.size): s.remaining_quantity for c, s in lot.iter_sizes()},
            lot.total_revenue_cents,
            lot.total_profit_cents,
            db_session.query(SaleTransaction).count(),
            db_session.query(SaleTransactionItem).count(),
        )

    @pytest.mark.parametrize(
        "bad_line,error",
        [
            ({"color": "Red", "size": "L", "quantity": 99}, InsufficientStockError),
            ({"color": "Purple", "size": "M", "quantity": 1}, ValidationError),
            ({"color": "Blue", "size": "XXL", "quantity": 1}, ValidationError),
        ],
    )
    def test_failing_last_line_rolls_back_earlier_lines(self, db_session, tenant_a, admin_a, bad_line, error):
        lot = create_lot(tenant_a, admin_a, multi_lot_payload())
        before = self._snapshot(db_session, tenant_a, lot.id)

        with pytest.raises(error):
            sell(tenant_a, admin_a, lot.id, [
                {"color": "Red", "size": "M", "quantity": 2},
                {"color": "Blue", "size": "S", "quantity": 1},
                bad_line,
            ])

        assert self._snapshot(db_session, tenant_a, lot.id) == before

    def test_unknown_color_message(self, db_session, tenant_a, admin_a, lot_a):
        with pytest.raises(ValidationError) as exc_info:
            sell(tenant_a, admin_a, lot_a.id, [{"color": "Purple", "size": "M", "quantity": 1}])
        assert "Color Purple not found" in exc_info.value.message
        assert not isinstance(exc_info.value, InsufficientStockError)

    def test_unknown_size_message(self, db_session, tenant_a, admin_a, lot_a):
        with pytest.raises(ValidationError) as exc_info:
            sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "XS", "quantity": 1}])
        assert "Size XS not found for color Red" in exc_info.value.message

    def test_empty_request_rejected(self, db_session, tenant_a, admin_a, lot_a):
        with pytest.raises(ValidationError):
            sales_service.record_sale(tenant_a.id, admin_a.id, lot_a.id, [])
        assert db_session.query(SaleTransaction).count() == 0

    def test_missing_lot(self, db_session, tenant_a, admin_a):
        with pytest.raises(NotFoundError):
            sales_service.record_sale(
                tenant_a.id, admin_a.id, 424242,
                [SaleLineInput(color="Red", size="M", quantity=1)],
            )


class TestStockAggregation:
    """Repeated (color, size) lines are summed before the stock check."""

    def test_split_lines_exceeding_stock_rejected(self, db_session, tenant_a, admin_a, lot_a):
        sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 3}])

        with pytest.raises(InsufficientStockError) as exc_info:
            sell(tenant_a, admin_a, lot_a.id, [
                {"color": "Red", "size": "M", "quantity": 4},
                {"color": "Red", "size": "M", "quantity": 4},
            ])

        assert exc_info.value.requested == 8
        assert exc_info.value.available == 7

        lot = lot_service.get_lot(tenant_a.id, lot_a.id)
        assert _size(lot, "Red", "M").remaining_quantity == 7

    def test_split_lines_within_stock_accepted(self, db_session, tenant_a, admin_a, lot_a):
        transaction, lot = sell(tenant_a, admin_a, lot_a.id, [
            {"color": "Red", "size": "M", "quantity": 4},
            {"color": "Red", "size": "M", "quantity": 6},
        ])
        assert _size(lot, "Red", "M").remaining_quantity == 0
        assert len(transaction.items) == 2
        assert not lot.has_stock

    def test_selling_exact_remaining_then_one_more(self, db_session, tenant_a, admin_a, lot_a):
        sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 10}])

        with pytest.raises(InsufficientStockError) as exc_info:
            sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 1}])
        assert exc_info.value.available == 0


class TestConservation:
    """quantity == remaining + sum of quantities sold, per size."""

    def test_conservation_after_several_sales(self, db_session, tenant_a, admin_a):
        lot = create_lot(tenant_a, admin_a, multi_lot_payload())
        sell(tenant_a, admin_a, lot.id, [{"color": "Red", "size": "M", "quantity": 2}])
        sell(tenant_a, admin_a, lot.id, [
            {"color": "Red", "size": "L", "quantity": 4},
            {"color": "Blue", "size": "S", "quantity": 1},
        ])
        with pytest.raises(InsufficientStockError):
            sell(tenant_a, admin_a, lot.id, [{"color": "Blue", "size": "S", "quantity": 5}])

        lot = lot_service.get_lot(tenant_a.id, lot.id)
        sold: dict[tuple[str, str], int] = {}
        for item in db_session.query(SaleTransactionItem).all():
            key = (item.color, item.size)
            sold[key] = sold.get(key, 0) + item.quantity

        for color, size in lot.iter_sizes():
            assert size.quantity == size.remaining_quantity + sold.get((color.color, size.size), 0)
            assert 0 <= size.remaining_quantity <= size.quantity


def _operational(message: str) -> OperationalError:
    return OperationalError("UPDATE lot_sizes", {}, Exception(message))


class TestStorageFailures:
    """Storage errors roll the whole sale back; only lock contention is retried."""

    def _assert_untouched(self, db_session, tenant_a, lot_id):
        lot = lot_service.get_lot(tenant_a.id, lot_id)
        assert _size(lot, "Red", "M").remaining_quantity == 10
        assert lot.total_revenue_cents == 0
        assert lot.total_profit_cents == 0
        assert db_session.query(SaleTransaction).count() == 0
        assert db_session.query(SaleTransactionItem).count() == 0

    @pytest.mark.parametrize("message", ["disk I/O error", "database is locked"])
    def test_commit_failure_surfaces_once(self, db_session, monkeypatch, tenant_a, admin_a, lot_a, message):
        # A failed COMMIT may or may not have landed; re-running it could double-book the sale
        calls = []

        def failing_commit():
            calls.append(message)
            raise _operational(message)

        monkeypatch.setattr(db.session, "commit", failing_commit)

        with pytest.raises(ServerError) as exc_info:
            sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 3}])

        monkeypatch.undo()
        assert len(calls) == 1
        assert exc_info.value.message == "Internal server error"
        assert exc_info.value.details == {}
        self._assert_untouched(db_session, tenant_a, lot_a.id)

    def test_io_error_before_commit_not_retried(self, db_session, monkeypatch, tenant_a, admin_a, lot_a):
        calls = []

        def failing_flush(*args, **kwargs):
            calls.append(1)
            raise _operational("disk I/O error")

        monkeypatch.setattr(db.session, "flush", failing_flush)

        with pytest.raises(ServerError):
            sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 3}])

        monkeypatch.undo()
        assert len(calls) == 1
        self._assert_untouched(db_session, tenant_a, lot_a.id)

    def test_contention_retries_are_bounded(self, app, db_session, monkeypatch, tenant_a, admin_a, lot_a):
        calls = []

        def stale_flush(*args, **kwargs):
            calls.append(1)
            raise StaleDataError("UPDATE statement on table 'lots' expected to update 1 row(s); 0 were matched.")

        monkeypatch.setattr(db.session, "flush", stale_flush)

        with pytest.raises(ServerError):
            sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 3}])

        monkeypatch.undo()
        assert len(calls) == app.config["SALE_LOCK_ATTEMPTS"]
        self._assert_untouched(db_session, tenant_a, lot_a.id)

    def test_contention_then_success_records_one_sale(self, db_session, monkeypatch, tenant_a, admin_a, lot_a):
        real_flush = db.session.flush
        calls = []

        def busy_once(*args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise _operational("database is locked")
            return real_flush(*args, **kwargs)

        monkeypatch.setattr(db.session, "flush", busy_once)

        transaction, lot = sell(tenant_a, admin_a, lot_a.id, [{"color": "Red", "size": "M", "quantity": 3}])

        monkeypatch.undo()
        assert len(calls) == 2
        assert _size(lot, "Red", "M").remaining_quantity == 7
        assert lot.total_revenue_cents == 2400
        assert db_session.query(SaleTransaction).count() == 1
        assert db_session.query(SaleTransactionItem).count() == 1
