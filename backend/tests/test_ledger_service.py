# Overview: Pytest coverage for recording and voiding POS transactions.

"""
POS Ledger Tests

Covers the money math (subtotal excludes vouchers, total = subtotal + taxes),
the all-or-nothing stock decrement, curation enforcement and VOID reversal.
"""

import threading

import pytest

from marketplace.extensions import db
from marketplace.models import AuditEvent, SalesTransaction
from marketplace.services import catalog_service, ledger_service, session_service
from marketplace.services.catalog_service import InsufficientStockError
from marketplace.validation import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def item_a(make_item):
    """Item A: cost 2.00, sale 5.00, 10 tracked units."""
    return make_item(name="Item A", cost=200, price=500, stock=10)


@pytest.fixture
def market(make_session, item_a):
    return make_session(items=[item_a])


class TestRecordTransaction:
    def test_revenue_sale_with_taxes(self, canadian_rates, market, item_a):
        """3 x 5.00 at 7% + 5% -> 15.00 + 1.80 = 16.80; stock 10 -> 7."""
        tx = ledger_service.record_transaction(
            market.id, [{"item_id": item_a.id, "quantity": 3, "is_voucher": False}]
        )
        assert tx.kind == "SALE"
        assert tx.subtotal_cents == 1500
        assert tx.taxes_cents == 180
        assert tx.total_cents == 1680
        assert tx.promotional_cost_cents == 0
        assert catalog_service.get_item(item_a.id).current_stock == 7

    def test_voucher_redemption(self, canadian_rates, market, item_a):
        """2 voucher units: no revenue, no tax, 4.00 promotional cost, stock -2."""
        tx = ledger_service.record_transaction(
            market.id, [{"item_id": item_a.id, "quantity": 2, "is_voucher": True}]
        )
        assert tx.subtotal_cents == 0
        assert tx.taxes_cents == 0
        assert tx.total_cents == 0
        assert tx.promotional_cost_cents == 400
        assert catalog_service.get_item(item_a.id).current_stock == 8

    def test_mixed_lines_snapshot_prices(self, canadian_rates, market, item_a):
        tx = ledger_service.record_transaction(
            market.id,
            [
                {"item_id": item_a.id, "quantity": 1},
                {"item_id": item_a.id, "quantity": 1, "is_voucher": True},
            ],
        )
        revenue_line, voucher_line = tx.items
        assert (revenue_line.line_number, revenue_line.unit_price_cents, revenue_line.line_total_cents) == (1, 500, 500)
        assert (voucher_line.line_number, voucher_line.unit_price_cents, voucher_line.line_total_cents) == (2, 0, 0)
        assert voucher_line.line_cost_cents == 200
        assert tx.pst_rate_ppm == 70000
        assert tx.gst_rate_ppm == 50000
        assert catalog_service.get_item(item_a.id).current_stock == 8

    def test_insufficient_stock_rejects_whole_transaction(self, make_item, make_session, db_session):
        """B has 1 unit; asking for 5 fails and leaves stock and the ledger untouched."""
        plenty = make_item(name="Plenty", stock=50)
        item_b = make_item(name="Item B", stock=1)
        session = make_session(items=[plenty, item_b])

        with pytest.raises(InsufficientStockError) as excinfo:
            ledger_service.record_transaction(
                session.id,
                [{"item_id": plenty.id, "quantity": 2}, {"item_id": item_b.id, "quantity": 5}],
            )

        assert excinfo.value.details == {
            "item_id": item_b.id,
            "requested_quantity": 5,
            "available_quantity": 1,
        }
        assert catalog_service.get_item(item_b.id).current_stock == 1
        assert catalog_service.get_item(plenty.id).current_stock == 50
        assert db_session.query(SalesTransaction).count() == 0
        assert db_session.query(AuditEvent).filter_by(event_type="transaction.recorded").count() == 0

    def test_quantities_for_same_item_are_aggregated(self, make_item, make_session):
        item = make_item(stock=3)
        session = make_session(items=[item])
        with pytest.raises(InsufficientStockError):
            ledger_service.record_transaction(
                session.id,
                [{"item_id": item.id, "quantity": 2}, {"item_id": item.id, "quantity": 2, "is_voucher": True}],
            )
        assert catalog_service.get_item(item.id).current_stock == 3

    def test_untracked_item_sells_without_stock(self, make_item, make_session):
        item = make_item(stock=0, track_stock=False)
        session = make_session(items=[item])
        tx = ledger_service.record_transaction(session.id, [{"item_id": item.id, "quantity": 25}])
        assert tx.subtotal_cents == 25 * 500
        assert catalog_service.get_item(item.id).current_stock == 0

    def test_later_repricing_does_not_rewrite_history(self, market, item_a):
        tx = ledger_service.record_transaction(market.id, [{"item_id": item_a.id, "quantity": 1}])
        catalog_service.update_item(item_a.id, {"sale_price_cents": 900, "cost_price_cents": 700})
        reloaded = ledger_service.get_transaction(tx.id)
        assert reloaded.subtotal_cents == 500
        assert reloaded.items[0].unit_cost_cents == 200

    @pytest.mark.parametrize(
        "lines",
        [
            [],
            None,
            [{"item_id": 1, "quantity": 0}],
            [{"item_id": 1, "quantity": -1}],
            [{"item_id": 1, "quantity": 1.5}],
            [{"item_id": 1, "quantity": 1, "is_voucher": "yes"}],
            [{"quantity": 1}],
        ],
    )
    def test_malformed_lines(self, market, lines):
        with pytest.raises(ValidationError):
            ledger_service.record_transaction(market.id, lines)

    def test_unknown_session(self, item_a):
        with pytest.raises(NotFoundError):
            ledger_service.record_transaction(99999, [{"item_id": item_a.id, "quantity": 1}])

    def test_unknown_item(self, market):
        with pytest.raises(NotFoundError):
            ledger_service.record_transaction(market.id, [{"item_id": 99999, "quantity": 1}])

    def test_archived_item_rejected(self, market, item_a):
        catalog_service.archive_item(item_a.id)
        with pytest.raises(ValidationError):
            ledger_service.record_transaction(market.id, [{"item_id": item_a.id, "quantity": 1}])

    def test_uncurated_item_rejected(self, make_item, market):
        stray = make_item(name="Stray")
        with pytest.raises(ValidationError):
            ledger_service.record_transaction(market.id, [{"item_id": stray.id, "quantity": 1}])
        assert catalog_service.get_item(stray.id).current_stock == 10

    def test_curation_enforcement_can_be_disabled(self, make_item, market):
        stray = make_item(name="Stray")
        tx = ledger_service.record_transaction(
            market.id, [{"item_id": stray.id, "quantity": 1}], enforce_curation=False
        )
        assert tx.subtotal_cents == 500

    def test_list_newest_first(self, market, item_a):
        first = ledger_service.record_transaction(market.id, [{"item_id": item_a.id, "quantity": 1}])
        second = ledger_service.record_transaction(market.id, [{"item_id": item_a.id, "quantity": 1}])
        assert [tx.id for tx in ledger_service.list_transactions(market.id)] == [second.id, first.id]


class TestVoidTransaction:
    def test_void_restores_stock_and_negates(self, canadian_rates, market, item_a):
        sale = ledger_service.record_transaction(market.id, [{"item_id": item_a.id, "quantity": 3}])
        void = ledger_service.void_transaction(sale.id, reason="Rang up wrong item")

        assert void.kind == "VOID"
        assert void.adjusts_transaction_id == sale.id
        assert (void.subtotal_cents, void.taxes_cents, void.total_cents) == (-1500, -180, -1680)
        assert void.items[0].quantity == -3
        assert catalog_service.get_item(item_a.id).current_stock == 10

        original = ledger_service.get_transaction(sale.id)
        assert original.kind == "SALE"
        assert original.total_cents == 1680

    def test_void_twice_conflicts(self, market, item_a):
        sale = ledger_service.record_transaction(market.id, [{"item_id": item_a.id, "quantity": 1}])
        ledger_service.void_transaction(sale.id, reason="duplicate")
        with pytest.raises(ConflictError):
            ledger_service.void_transaction(sale.id, reason="duplicate again")

    def test_void_of_void_conflicts(self, market, item_a):
        sale = ledger_service.record_transaction(market.id, [{"item_id": item_a.id, "quantity": 1}])
        void = ledger_service.void_transaction(sale.id, reason="duplicate")
        with pytest.raises(ConflictError):
            ledger_service.void_transaction(void.id, reason="undo")

    def test_reason_required(self, market, item_a):
        sale = ledger_service.record_transaction(market.id, [{"item_id": item_a.id, "quantity": 1}])
        with pytest.raises(ValidationError):
            ledger_service.void_transaction(sale.id, reason="   ")

    def test_void_skips_items_no_longer_tracked(self, market, item_a):
        sale = ledger_service.record_transaction(market.id, [{"item_id": item_a.id, "quantity": 4}])
        catalog_service.update_item(item_a.id, {"track_stock": False})
        ledger_service.void_transaction(sale.id, reason="refund")
        assert catalog_service.get_item(item_a.id).current_stock == 6

    def test_unknown_transaction(self, db_session):
        with pytest.raises(NotFoundError):
            ledger_service.void_transaction(777, reason="x")


class TestConcurrentSales:
    """Runs real threads against a file-backed database."""

    def test_competing_sales_never_oversell(self, file_app):
        """Two sessions race for 3 of the last 5 units: one sale wins, stock ends at 2."""
        item = catalog_service.create_item({
            "name": "Lantern",
            "cost_price_cents": 400,
            "sale_price_cents": 1000,
            "current_stock": 5,
            "track_stock": True,
        })
        morning = session_service.create_session({"name": "Morning market"})
        evening = session_service.create_session({"name": "Evening market"})
        item_id = item.id
        session_ids = [morning.id, evening.id]
        for session_id in session_ids:
            session_service.curate(session_id, [item_id])
        db.session.rollback()

        barrier = threading.Barrier(len(session_ids))
        outcomes = []
        outcomes_lock = threading.Lock()

        def sell(session_id):
            with file_app.app_context():
                barrier.wait()
                try:
                    ledger_service.record_transaction(session_id, [{"item_id": item_id, "quantity": 3}])
                    outcome = "sold"
                except InsufficientStockError:
                    outcome = "rejected"
                except Exception as exc:
                    outcome = repr(exc)
                finally:
                    db.session.remove()
                with outcomes_lock:
                    outcomes.append(outcome)

        threads = [threading.Thread(target=sell, args=(session_id,)) for session_id in session_ids]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert sorted(outcomes) == ["rejected", "sold"]
        db.session.expire_all()
        assert catalog_service.get_item(item_id).current_stock == 2
        assert db.session.query(SalesTransaction).count() == 1
