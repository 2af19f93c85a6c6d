# Overview: Read-only queries over inventory history and daily snapshots.

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from invtrack.extensions import db
from invtrack.models import Product, InventoryHistory, DailyInventorySnapshot
from invtrack.services.snapshot_service import get_snapshot, today
from invtrack.time_utils import business_date, day_start_utc, parse_iso_date
from invtrack.validation import NotFoundError

# Inventory-track screen default window
DEFAULT_RANGE_DAYS = 7


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


def _tz() -> str:
    return current_app.config.get("INVENTORY_TIMEZONE", "UTC")


def resolve_range(start: str | date | None, end: str | date | None) -> tuple[date, date]:
    """
    Normalize a from/to pair of calendar dates (both inclusive).

    Missing end -> today; missing start -> end minus DEFAULT_RANGE_DAYS.
    """
    try:
        start_d = parse_iso_date(start) if isinstance(start, str) else start
        end_d = parse_iso_date(end) if isinstance(end, str) else end
    except ValueError:
        raise ReportError("from and to must be YYYY-MM-DD dates")

    if end_d is None:
        end_d = today()
    if start_d is None:
        start_d = end_d - timedelta(days=DEFAULT_RANGE_DAYS)
    if start_d > end_d:
        raise ReportError("from must be on or before to")
    return start_d, end_d


def _require_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"product {product_id} not found")
    return product


def list_history(product_id: int, start=None, end=None) -> list[InventoryHistory]:
    """Ledger rows for a product whose business time falls within [start, end] (newest first)."""
    _require_product(product_id)
    start_d, end_d = resolve_range(start, end)
    lower = day_start_utc(start_d, _tz())
    upper = day_start_utc(end_d + timedelta(days=1), _tz())

    return (
        db.session.query(InventoryHistory)
        .filter(
            InventoryHistory.product_id == product_id,
            InventoryHistory.occurred_at >= lower,
            InventoryHistory.occurred_at < upper,
        )
        .order_by(InventoryHistory.created_at.desc(), InventoryHistory.id.desc())
        .all()
    )


def list_snapshots(product_id: int, start=None, end=None) -> list[DailyInventorySnapshot]:
    """Daily snapshots for a product within [start, end] (newest first)."""
    _require_product(product_id)
    start_d, end_d = resolve_range(start, end)

    return (
        db.session.query(DailyInventorySnapshot)
        .filter(
            DailyInventorySnapshot.product_id == product_id,
            DailyInventorySnapshot.snapshot_date >= start_d,
            DailyInventorySnapshot.snapshot_date <= end_d,
        )
        .order_by(DailyInventorySnapshot.snapshot_date.desc())
        .all()
    )


def inventory_track(product_id: int, start=None, end=None) -> dict:
    """Product, snapshots, history and period totals for one date window."""
    product = _require_product(product_id)
    start_d, end_d = resolve_range(start, end)

    snapshots = list_snapshots(product_id, start_d, end_d)
    history = list_history(product_id, start_d, end_d)

    totals = {
        "purchases": sum((s.purchases for s in snapshots), Decimal("0")),
        "sales": sum((s.sales for s in snapshots), Decimal("0")),
        "adjustments": sum((s.adjustments for s in snapshots), Decimal("0")),
        "peak_stock": max((s.max_stock for s in snapshots), default=None),
    }

    return {
        "product": product.to_dict(),
        "from": start_d.isoformat(),
        "to": end_d.isoformat(),
        "totals": {k: (str(v) if v is not None else None) for k, v in totals.items()},
        "snapshots": [s.to_dict() for s in snapshots],
        "history": [h.to_dict() for h in history],
    }


def low_stock_products() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            Product.quantity <= Product.reorder_level,
        )
        .order_by((Product.quantity - Product.reorder_level).asc(), Product.name.asc())
        .all()
    )


def verify_ledger(product_id: int | None = None) -> list[dict]:
    """
    Check stored data against the ledger invariants.

    - every row: quantity_after == quantity_before + quantity_change
    - consecutive rows of a product chain (before of N+1 == after of N)
    - last row's quantity_after == product.quantity
    - the snapshot of the last row's day has closing_stock == that quantity_after
    - no (product, day) pair has more than one snapshot

    Returns a list of violation dicts (empty when consistent).
    """
    query = db.session.query(Product).order_by(Product.id.asc())
    if product_id is not None:
        query = query.filter(Product.id == product_id)
    products = query.all()
    if product_id is not None and not products:
        raise NotFoundError(f"product {product_id} not found")

    violations: list[dict] = []
    for product in products:
        rows = (
            db.session.query(InventoryHistory)
            .filter_by(product_id=product.id)
            .order_by(InventoryHistory.created_at.asc(), InventoryHistory.id.asc())
            .all()
        )
        prev = None
        for row in rows:
            if row.quantity_before + row.quantity_change != row.quantity_after:
                violations.append({
                    "product_id": product.id,
                    "history_id": row.id,
                    "check": "arithmetic",
                    "detail": f"{row.quantity_before} + {row.quantity_change} != {row.quantity_after}",
                })
            if prev is not None and row.quantity_before != prev.quantity_after:
                violations.append({
                    "product_id": product.id,
                    "history_id": row.id,
                    "check": "continuity",
                    "detail": f"before {row.quantity_before} != previous after {prev.quantity_after}",
                })
            prev = row

        if prev is None:
            continue

        if prev.quantity_after != product.quantity:
            violations.append({
                "product_id": product.id,
                "history_id": prev.id,
                "check": "current_quantity",
                "detail": f"last after {prev.quantity_after} != product quantity {product.quantity}",
            })

        snap_day = business_date(prev.occurred_at, _tz())
        snap = get_snapshot(product.id, snap_day)
        if snap is None:
            violations.append({
                "product_id": product.id,
                "history_id": prev.id,
                "check": "snapshot_missing",
                "detail": f"no snapshot for {snap_day.isoformat()}",
            })
        elif snap.closing_stock != prev.quantity_after:
            violations.append({
                "product_id": product.id,
                "history_id": prev.id,
                "check": "closing_stock",
                "detail": f"closing {snap.closing_stock} != last after {prev.quantity_after}",
            })

    dupes = (
        db.session.query(
            DailyInventorySnapshot.product_id,
            DailyInventorySnapshot.snapshot_date,
            func.count(DailyInventorySnapshot.id).label("n"),
        )
        .group_by(DailyInventorySnapshot.product_id, DailyInventorySnapshot.snapshot_date)
        .having(func.count(DailyInventorySnapshot.id) > 1)
    )
    if product_id is not None:
        dupes = dupes.filter(DailyInventorySnapshot.product_id == product_id)
    for row in dupes.all():
        violations.append({
            "product_id": row.product_id,
            "history_id": None,
            "check": "snapshot_duplicate",
            "detail": f"{row.n} snapshots on {row.snapshot_date}",
        })

    return violations
