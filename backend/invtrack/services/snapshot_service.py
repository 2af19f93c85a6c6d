# Overview: Service-layer operations for daily inventory snapshots.

from __future__ import annotations

from datetime import date
from decimal import Decimal

from flask import current_app
from sqlalchemy import case
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    DailyInventorySnapshot,
    ACTIVITY_TYPES,
    ACTIVITY_PURCHASE,
    ACTIVITY_SALE,
    ACTIVITY_CONSUMPTION,
    ACTIVITY_ADJUSTMENT,
)
from ..validation import ValidationError, ConcurrencyConflict
from .concurrency import lock_for_update
from invtrack.time_utils import business_date
"""
Daily Snapshot Invariants (authoritative)

- At most one row per (product_id, snapshot_date), enforced by a unique
  constraint and written with a single INSERT ... ON CONFLICT DO UPDATE.
- Buckets hold unsigned cumulative volume:
    purchase -> purchases, sale/consumption -> sales, adjustment -> adjustments,
    opening_stock/daily_snapshot -> no bucket.
- A new row seeds opening_stock, closing_stock and max_stock from the product
  quantity passed in (the live value at the time of the write).
- closing_stock is always the live product quantity of the last write;
  max_stock is the running maximum of live quantities seen that day.
- Written in the caller's transaction; never commits.
"""

BUCKET_BY_ACTIVITY = {
    ACTIVITY_PURCHASE: "purchases",
    ACTIVITY_SALE: "sales",
    ACTIVITY_CONSUMPTION: "sales",
    ACTIVITY_ADJUSTMENT: "adjustments",
}

BUCKETS = ("purchases", "sales", "adjustments")

_UPSERT_DIALECTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def bucket_for(activity_type: str) -> str | None:
    """Snapshot column an activity type accumulates into (None for marker types)."""
    if activity_type not in ACTIVITY_TYPES:
        raise ValidationError(f"unknown activity_type: {activity_type}")
    return BUCKET_BY_ACTIVITY.get(activity_type)


def today() -> date:
    return business_date(tz_name=current_app.config.get("INVENTORY_TIMEZONE", "UTC"))


def upsert_daily_snapshot(
    *,
    product_id: int,
    activity_type: str,
    magnitude: Decimal,
    current_quantity: Decimal,
    snapshot_date: date | None = None,
) -> DailyInventorySnapshot:
    """
    Create or update the (product, day) snapshot for one inventory event.

    magnitude is abs(quantity_change); current_quantity is the product's
    quantity after the event.
    """
    if magnitude < 0:
        raise ValidationError("magnitude must be >= 0")

    bucket = bucket_for(activity_type)
    if snapshot_date is None:
        snapshot_date = today()

    dialect = db.session.get_bind().dialect.name
    insert_fn = _UPSERT_DIALECTS.get(dialect)
    if insert_fn is not None:
        _upsert_on_conflict(insert_fn, product_id, snapshot_date, bucket, magnitude, current_quantity)
    else:
        _upsert_locked(product_id, snapshot_date, bucket, magnitude, current_quantity)

    return (
        db.session.query(DailyInventorySnapshot)
        .filter_by(product_id=product_id, snapshot_date=snapshot_date)
        .populate_existing()
        .one()
    )


def _upsert_on_conflict(insert_fn, product_id, snapshot_date, bucket, magnitude, current_quantity) -> None:
    table = DailyInventorySnapshot.__table__

    values = {
        "product_id": product_id,
        "snapshot_date": snapshot_date,
        "opening_stock": current_quantity,
        "closing_stock": current_quantity,
        "max_stock": current_quantity,
    }
    for name in BUCKETS:
        values[name] = magnitude if name == bucket else Decimal("0")

    stmt = insert_fn(table).values(**values)

    set_ = {
        "closing_stock": stmt.excluded.closing_stock,
        "max_stock": case(
            (table.c.max_stock < stmt.excluded.max_stock, stmt.excluded.max_stock),
            else_=table.c.max_stock,
        ),
        "updated_at": db.func.now(),
    }
    if bucket is not None:
        set_[bucket] = table.c[bucket] + stmt.excluded[bucket]

    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.product_id, table.c.snapshot_date],
        set_=set_,
    )
    db.session.execute(stmt)


def _upsert_locked(product_id, snapshot_date, bucket, magnitude, current_quantity) -> None:
    """
    Fallback for dialects without ON CONFLICT: lock the row if it exists,
    otherwise insert inside a savepoint. A lost insert race surfaces as
    ConcurrencyConflict so the retry layer replays the whole write.
    """
    snap = lock_for_update(
        db.session.query(DailyInventorySnapshot).filter_by(
            product_id=product_id, snapshot_date=snapshot_date
        )
    ).first()

    if snap is not None:
        if bucket is not None:
            setattr(snap, bucket, getattr(snap, bucket) + magnitude)
        snap.closing_stock = current_quantity
        if current_quantity > snap.max_stock:
            snap.max_stock = current_quantity
        db.session.flush()
        return

    snap = DailyInventorySnapshot(
        product_id=product_id,
        snapshot_date=snapshot_date,
        opening_stock=current_quantity,
        purchases=magnitude if bucket == "purchases" else Decimal("0"),
        sales=magnitude if bucket == "sales" else Decimal("0"),
        adjustments=magnitude if bucket == "adjustments" else Decimal("0"),
        closing_stock=current_quantity,
        max_stock=current_quantity,
    )
    try:
        with db.session.begin_nested():
            db.session.add(snap)
    except IntegrityError as exc:
        raise ConcurrencyConflict(
            f"daily snapshot for product {product_id} on {snapshot_date} was created concurrently"
        ) from exc


def get_snapshot(product_id: int, snapshot_date: date) -> DailyInventorySnapshot | None:
    return (
        db.session.query(DailyInventorySnapshot)
        .filter_by(product_id=product_id, snapshot_date=snapshot_date)
        .first()
    )
