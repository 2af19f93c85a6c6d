# Overview: Pytest coverage for history/snapshot queries and ledger verification.

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import text

from invtrack.services import inventory_service, reporting_service, snapshot_service
from invtrack.time_utils import utcnow
from invtrack.validation import NotFoundError

ACTOR = "user-1"


class TestResolveRange:

    def test_defaults_to_last_seven_days(self, db_session):
        start, end = reporting_service.resolve_range(None, None)
        assert end == snapshot_service.today()
        assert end - start == timedelta(days=7)

    def test_explicit_dates(self, db_session):
        assert reporting_service.resolve_range("2026-01-01", "2026-01-31") == (
            date(2026, 1, 1),
            date(2026, 1, 31),
        )

    def test_start_only_defaults_end_to_today(self, db_session):
        start, end = reporting_service.resolve_range("2026-01-01", None)
        assert start == date(2026, 1, 1)
        assert end == snapshot_service.today()

    @pytest.mark.parametrize("start, end", [
        ("2026-02-01", "2026-01-01"),
        ("01/02/2026", None),
        ("2026-13-01", None),
    ])
    def test_bad_ranges(self, db_session, start, end):
        with pytest.raises(reporting_service.ReportError):
            reporting_service.resolve_range(start, end)


class TestHistoryAndSnapshots:

    def test_history_newest_first_within_range(self, db_session, stocked_product):
        old = utcnow() - timedelta(days=10)
        inventory_service.record_purchase(stocked_product.id, 1, actor=ACTOR, occurred_at=old)
        inventory_service.record_purchase(stocked_product.id, 2, actor=ACTOR)
        inventory_service.record_sale(stocked_product.id, 3, actor=ACTOR)

        rows = reporting_service.list_history(stocked_product.id)
        assert [r.activity_type for r in rows] == ["sale", "purchase", "opening_stock"]

        wide = reporting_service.list_history(
            stocked_product.id, (old - timedelta(days=1)).date().isoformat(), None
        )
        assert len(wide) == 4

    def test_to_date_includes_whole_day(self, db_session, stocked_product):
        today = snapshot_service.today().isoformat()
        rows = reporting_service.list_history(stocked_product.id, today, today)
        assert len(rows) == 1

    def test_snapshots_by_range(self, db_session, stocked_product):
        old = utcnow() - timedelta(days=3)
        inventory_service.record_purchase(stocked_product.id, 4, actor=ACTOR, occurred_at=old)

        snaps = reporting_service.list_snapshots(stocked_product.id)
        assert [s.snapshot_date for s in snaps] == [snapshot_service.today(), old.date()]

        only_old = reporting_service.list_snapshots(stocked_product.id, old.date(), old.date())
        assert len(only_old) == 1
        assert only_old[0].purchases == Decimal("4")

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            reporting_service.list_history(9999)
        with pytest.raises(NotFoundError):
            reporting_service.list_snapshots(9999)


def test_inventory_track_totals(db_session, stocked_product):
    inventory_service.record_purchase(stocked_product.id, 20, actor=ACTOR)
    inventory_service.record_sale(stocked_product.id, 30, actor=ACTOR)
    inventory_service.record_manual_edit(stocked_product.id, 85, actor=ACTOR)
    inventory_service.record_manual_edit(stocked_product.id, 95, actor=ACTOR)

    report = reporting_service.inventory_track(stocked_product.id)

    assert report["product"]["sku"] == "WIDGET-1"
    assert Decimal(report["totals"]["purchases"]) == Decimal("20")
    assert Decimal(report["totals"]["sales"]) == Decimal("35")
    assert Decimal(report["totals"]["adjustments"]) == Decimal("10")
    assert Decimal(report["totals"]["peak_stock"]) == Decimal("120")
    assert len(report["snapshots"]) == 1
    assert len(report["history"]) == 5


def test_inventory_track_empty_window(db_session, product):
    report = reporting_service.inventory_track(product.id, "2020-01-01", "2020-01-07")
    assert report["snapshots"] == []
    assert report["totals"]["peak_stock"] is None
    assert Decimal(report["totals"]["purchases"]) == 0


def test_low_stock_products(db_session, product, other_product):
    inventory_service.seed_opening_stock(product.id, 50, actor=ACTOR)
    inventory_service.seed_opening_stock(other_product.id, 5, actor=ACTOR)

    low = reporting_service.low_stock_products()
    assert [p.sku for p in low] == ["GADGET-1"]


class TestVerifyLedger:

    def test_clean_ledger(self, db_session, stocked_product):
        inventory_service.record_purchase(stocked_product.id, 5, actor=ACTOR)
        assert reporting_service.verify_ledger() == []

    def test_product_without_history_is_clean(self, db_session, product):
        assert reporting_service.verify_ledger(product.id) == []

    def test_detects_quantity_written_around_the_ledger(self, db_session, stocked_product):
        db_session.execute(
            text("UPDATE products SET quantity = 7 WHERE id = :id"), {"id": stocked_product.id}
        )
        db_session.commit()

        checks = {v["check"] for v in reporting_service.verify_ledger(stocked_product.id)}
        assert checks == {"current_quantity"}

    def test_detects_stale_closing_stock(self, db_session, stocked_product):
        db_session.execute(
            text("UPDATE daily_inventory_snapshots SET closing_stock = 1 WHERE product_id = :id"),
            {"id": stocked_product.id},
        )
        db_session.commit()

        checks = {v["check"] for v in reporting_service.verify_ledger(stocked_product.id)}
        assert checks == {"closing_stock"}

    def test_detects_missing_snapshot(self, db_session, stocked_product):
        db_session.execute(
            text("DELETE FROM daily_inventory_snapshots WHERE product_id = :id"),
            {"id": stocked_product.id},
        )
        db_session.commit()

        violations = reporting_service.verify_ledger(stocked_product.id)
        assert [v["check"] for v in violations] == ["snapshot_missing"]

    def test_detects_broken_chain(self, db_session, stocked_product):
        inventory_service.record_purchase(stocked_product.id, 5, actor=ACTOR)
        db_session.execute(
            text(
                "UPDATE inventory_history SET quantity_before = 90, quantity_after = 95 "
                "WHERE product_id = :id AND activity_type = 'purchase'"
            ),
            {"id": stocked_product.id},
        )
        db_session.execute(
            text("UPDATE products SET quantity = 95 WHERE id = :id"), {"id": stocked_product.id}
        )
        db_session.execute(
            text("UPDATE daily_inventory_snapshots SET closing_stock = 95 WHERE product_id = :id"),
            {"id": stocked_product.id},
        )
        db_session.commit()

        checks = {v["check"] for v in reporting_service.verify_ledger(stocked_product.id)}
        assert checks == {"continuity"}

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            reporting_service.verify_ledger(123456)
