# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/invtrack/services/inventory_service.py

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import (
    InventoryHistory,
    Product,
    ACTIVITY_TYPES,
    ACTIVITY_OPENING_STOCK,
    ACTIVITY_PURCHASE,
    ACTIVITY_SALE,
    REFERENCE_MANUAL,
    REFERENCE_PURCHASE_ORDER,
    REFERENCE_INVOICE,
    REFERENCE_SYSTEM,
)
from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    coerce_quantity,
    enforce_positive_quantity,
    enforce_non_negative_quantity,
)
from invtrack.time_utils import utcnow, parse_iso_datetime, business_date
from . import classifier
from .ledger_service import append_history_entry, has_activity
from .snapshot_service import upsert_daily_snapshot
from .concurrency import lock_for_update, run_with_retry
"""
Inventory Invariants & Time Semantics (authoritative)

Canonical time handling:
- All internal datetimes are UTC-naive (tzinfo=None).
- Snapshot days are calendar dates in INVENTORY_TIMEZONE.

Inventory model:
- Product.quantity is the authoritative on-hand figure.
- Every change to it appends exactly one InventoryHistory row and upserts the
  day's DailyInventorySnapshot in the same DB transaction; all three commit or
  none do.
- Writing the current value again is a no-op: no history row, no snapshot touch.

Business invariants:
- On-hand quantity may not go negative unless ALLOW_NEGATIVE_STOCK is set.
- Purchase and invoice flows tag their activity type explicitly. Manual edits
  carry only the new quantity and go through classifier.classify.
- Opening stock is seeded once per product.

Concurrency:
- The product row is locked (SELECT ... FOR UPDATE) and versioned
  (Product.version_id); a lost race is rolled back and replayed by
  run_with_retry, so history rows for one product chain without gaps.
"""


def _parse_occurred_at(value):
    """
    Normalize occurred_at to canonical UTC-naive datetime.

    Accepts:
    - None -> utcnow() (UTC-naive)
    - datetime:
        - aware -> convert to UTC, strip tzinfo
        - naive -> treat as UTC-naive
    - str -> parse_iso_datetime (accepts Z/offsets; returns UTC-naive)
    """
    if value is None:
        return utcnow()

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value  # already naive; treat as UTC-naive

    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            dt = None
        if dt is None:
            raise ValidationError("invalid occurred_at")
        return dt

    raise ValidationError("invalid occurred_at")


def _get_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.populate_existing().first()
    if product is None:
        raise NotFoundError(f"product {product_id} not found")
    return product


@dataclass(frozen=True)
class MovementResult:
    """Outcome of one stock movement: the level before it and the ledger row it appended."""

    previous_quantity: Decimal
    entry: InventoryHistory | None  # None when the write was a no-op

    @property
    def changed(self) -> bool:
        return self.entry is not None


def _write_quantity(
    product: Product,
    new_quantity: Decimal,
    *,
    actor: str,
    activity_type: str | None,
    reference_type: str | None,
    reference_id: str | None,
    note: str | None,
    occurred_dt: datetime,
) -> MovementResult:
    """
    Quantity update -> history append -> snapshot upsert, without commit.

    Caller holds the product lock and owns the transaction.
    """
    old_quantity = Decimal(product.quantity)

    if new_quantity == old_quantity:
        return MovementResult(old_quantity, None)

    if new_quantity < 0 and not current_app.config.get("ALLOW_NEGATIVE_STOCK", False):
        raise ValidationError(
            f"quantity would go negative ({old_quantity} -> {new_quantity})"
        )

    if activity_type is None:
        activity_type = classifier.classify(old_quantity, new_quantity)
        if note is None:
            note = classifier.default_note(activity_type)
    elif activity_type not in ACTIVITY_TYPES:
        raise ValidationError(f"unknown activity_type: {activity_type}")

    change = new_quantity - old_quantity

    product.quantity = new_quantity
    db.session.flush()  # version_id check happens here

    entry = append_history_entry(
        product_id=product.id,
        activity_type=activity_type,
        quantity_change=change,
        quantity_before=old_quantity,
        quantity_after=new_quantity,
        actor=actor,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=note,
        occurred_at=occurred_dt,
    )

    upsert_daily_snapshot(
        product_id=product.id,
        activity_type=activity_type,
        magnitude=abs(change),
        current_quantity=new_quantity,
        snapshot_date=business_date(
            occurred_dt, current_app.config.get("INVENTORY_TIMEZONE", "UTC")
        ),
    )
    return MovementResult(old_quantity, entry)


def _occurred_now_or_past(occurred_at) -> datetime:
    occurred_dt = _parse_occurred_at(occurred_at)
    if occurred_dt > (utcnow() + timedelta(minutes=2)):
        raise ValidationError("occurred_at cannot be in the future")
    return occurred_dt


def _apply_set(
    product_id: int,
    new_quantity,
    *,
    actor: str,
    activity_type: str | None,
    reference_type: str | None,
    reference_id: str | None,
    note: str | None,
    occurred_at,
) -> MovementResult:
    new_qty = coerce_quantity(new_quantity, "new_quantity")
    if not actor:
        raise ValidationError("actor is required")

    def _op():
        occurred_dt = _occurred_now_or_past(occurred_at)
        product = _get_product(product_id, lock=True)
        result = _write_quantity(
            product,
            new_qty,
            actor=actor,
            activity_type=activity_type,
            reference_type=reference_type,
            reference_id=reference_id,
            note=note,
            occurred_dt=occurred_dt,
        )
        db.session.commit()

        if result.changed:
            current_app.logger.info(
                "Inventory updated product_id=%s %s -> %s actor=%s",
                product_id, result.previous_quantity, new_qty, actor,
            )
        return result

    return run_with_retry(_op)


def _apply_delta(
    product_id: int,
    delta,
    *,
    actor: str,
    activity_type: str | None,
    reference_type: str | None,
    reference_id: str | None,
    note: str | None,
    occurred_at,
) -> MovementResult:
    change = coerce_quantity(delta, "delta")
    if change == 0:
        raise ValidationError("delta must be non-zero")
    if not actor:
        raise ValidationError("actor is required")

    def _op():
        occurred_dt = _occurred_now_or_past(occurred_at)
        product = _get_product(product_id, lock=True)
        new_qty = Decimal(product.quantity) + change
        result = _write_quantity(
            product,
            new_qty,
            actor=actor,
            activity_type=activity_type,
            reference_type=reference_type,
            reference_id=reference_id,
            note=note,
            occurred_dt=occurred_dt,
        )
        db.session.commit()

        current_app.logger.info(
            "Inventory %s product_id=%s delta=%s %s -> %s actor=%s",
            activity_type or "adjusted", product_id, change,
            result.previous_quantity, new_qty, actor,
        )
        return result

    return run_with_retry(_op)


def set_quantity(
    product_id: int,
    new_quantity,
    *,
    actor: str,
    activity_type: str | None = None,
    reference_type: str | None = None,
    reference_id: str | None = None,
    note: str | None = None,
    occurred_at=None,
) -> Decimal:
    """
    Set a product's on-hand quantity and record the change.

    activity_type=None sends the change through the sign-based classifier
    (manual edits). Returns the previous quantity; equal values are a no-op.
    """
    return _apply_set(
        product_id,
        new_quantity,
        actor=actor,
        activity_type=activity_type,
        reference_type=reference_type,
        reference_id=reference_id,
        note=note,
        occurred_at=occurred_at,
    ).previous_quantity


def adjust_quantity(
    product_id: int,
    delta,
    *,
    actor: str,
    activity_type: str | None = None,
    reference_type: str | None = None,
    reference_id: str | None = None,
    note: str | None = None,
    occurred_at=None,
) -> Decimal:
    """
    Apply a signed delta to the locked current quantity.

    Use this rather than read-then-set_quantity from flows that know the amount
    moved but not the resulting level: the new level is computed after the lock
    is taken, so concurrent writers never overwrite each other.
    """
    return _apply_delta(
        product_id,
        delta,
        actor=actor,
        activity_type=activity_type,
        reference_type=reference_type,
        reference_id=reference_id,
        note=note,
        occurred_at=occurred_at,
    ).previous_quantity


def record_purchase(
    product_id: int,
    quantity,
    *,
    actor: str,
    purchase_order_id: str | None = None,
    note: str | None = None,
    occurred_at=None,
) -> MovementResult:
    """Stock received against a purchase order."""
    qty = enforce_positive_quantity(quantity)
    return _apply_delta(
        product_id,
        qty,
        actor=actor,
        activity_type=ACTIVITY_PURCHASE,
        reference_type=REFERENCE_PURCHASE_ORDER,
        reference_id=purchase_order_id,
        note=note,
        occurred_at=occurred_at,
    )


def record_sale(
    product_id: int,
    quantity,
    *,
    actor: str,
    invoice_id: str | None = None,
    note: str | None = None,
    occurred_at=None,
) -> MovementResult:
    """Stock leaving on a confirmed invoice."""
    qty = enforce_positive_quantity(quantity)
    return _apply_delta(
        product_id,
        -qty,
        actor=actor,
        activity_type=ACTIVITY_SALE,
        reference_type=REFERENCE_INVOICE,
        reference_id=invoice_id,
        note=note,
        occurred_at=occurred_at,
    )


def record_manual_edit(
    product_id: int,
    new_quantity,
    *,
    actor: str,
    note: str | None = None,
    occurred_at=None,
) -> MovementResult:
    """Inventory screen edit: only the new level is known, the classifier decides."""
    qty = enforce_non_negative_quantity(new_quantity, "quantity")
    return _apply_set(
        product_id,
        qty,
        actor=actor,
        activity_type=None,
        reference_type=REFERENCE_MANUAL,
        reference_id=None,
        note=note,
        occurred_at=occurred_at,
    )


def seed_opening_stock(
    product_id: int,
    quantity,
    *,
    actor: str,
    note: str | None = None,
    occurred_at=None,
) -> MovementResult:
    """
    One-time opening stock for a product.

    Raises ConflictError if the product already has an opening_stock entry.
    Seeding the value the product already holds records nothing.
    """
    qty = enforce_non_negative_quantity(quantity)
    if not actor:
        raise ValidationError("actor is required")

    def _op():
        occurred_dt = _occurred_now_or_past(occurred_at)
        product = _get_product(product_id, lock=True)
        if has_activity(product.id, ACTIVITY_OPENING_STOCK):
            raise ConflictError(f"opening stock already recorded for product {product_id}")

        result = _write_quantity(
            product,
            qty,
            actor=actor,
            activity_type=ACTIVITY_OPENING_STOCK,
            reference_type=REFERENCE_SYSTEM,
            reference_id=None,
            note=note or "Opening stock",
            occurred_dt=occurred_dt,
        )
        db.session.commit()

        current_app.logger.info(
            "Opening stock seeded product_id=%s quantity=%s actor=%s", product_id, qty, actor
        )
        return result

    return run_with_retry(_op)


def get_inventory_summary(product_id: int) -> dict:
    product = _get_product(product_id)
    return {
        "product_id": product.id,
        "sku": product.sku,
        "name": product.name,
        "quantity": str(product.quantity),
        "reorder_level": str(product.reorder_level),
        "is_low_stock": product.is_low_stock,
    }
