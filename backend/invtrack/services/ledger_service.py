# Overview: Service-layer operations for the inventory history ledger.

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..extensions import db
from ..models import Product, InventoryHistory, ACTIVITY_TYPES, REFERENCE_TYPES
from ..validation import ValidationError, NotFoundError
from invtrack.time_utils import utcnow
"""
Inventory History Invariants (authoritative)

- Append-only: one row per quantity-changing operation, never updated or deleted
  (rows only disappear when their product is deleted).
- quantity_change != 0; zero-delta writes are never recorded.
- quantity_after == quantity_before + quantity_change, checked here rather than
  trusted from the caller.
- Rows are written inside the same DB transaction as the Product.quantity update
  they describe; this module flushes but never commits.
- Corrections are new compensating entries.
"""


def append_history_entry(
    *,
    product_id: int,
    activity_type: str,
    quantity_change: Decimal,
    quantity_before: Decimal,
    quantity_after: Decimal,
    actor: str,
    reference_type: str | None = None,
    reference_id: str | None = None,
    notes: Optional[str] = None,
    occurred_at: Optional[datetime] = None,
) -> InventoryHistory:
    """
    Append one inventory history row.

    Raises ValidationError on a zero change, a broken arithmetic identity, an
    unknown activity/reference type or a missing actor; NotFoundError when the
    product does not exist.
    """
    if activity_type not in ACTIVITY_TYPES:
        raise ValidationError(f"unknown activity_type: {activity_type}")
    if reference_type is not None and reference_type not in REFERENCE_TYPES:
        raise ValidationError(f"unknown reference_type: {reference_type}")
    if actor is None or str(actor).strip() == "":
        raise ValidationError("actor is required")

    if quantity_change == 0:
        raise ValidationError("quantity_change must be non-zero")
    if quantity_after != quantity_before + quantity_change:
        raise ValidationError(
            f"quantity_after ({quantity_after}) != quantity_before ({quantity_before})"
            f" + quantity_change ({quantity_change})"
        )

    exists = db.session.query(Product.id).filter_by(id=product_id).first()
    if exists is None:
        raise NotFoundError(f"product {product_id} not found")

    entry = InventoryHistory(
        product_id=product_id,
        activity_type=activity_type,
        quantity_before=quantity_before,
        quantity_change=quantity_change,
        quantity_after=quantity_after,
        reference_type=reference_type,
        reference_id=str(reference_id) if reference_id is not None else None,
        notes=notes,
        created_by=str(actor).strip(),
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(entry)
    db.session.flush()  # ensures entry.id is assigned without committing
    return entry


def has_activity(product_id: int, activity_type: str) -> bool:
    return (
        db.session.query(InventoryHistory.id)
        .filter_by(product_id=product_id, activity_type=activity_type)
        .first()
        is not None
    )
