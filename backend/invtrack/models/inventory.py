from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..validation import LedgerImmutableError
from invtrack.time_utils import to_utc_z


# Activity types (why a quantity changed)
ACTIVITY_OPENING_STOCK = "opening_stock"
ACTIVITY_PURCHASE = "purchase"
ACTIVITY_SALE = "sale"
ACTIVITY_CONSUMPTION = "consumption"
ACTIVITY_ADJUSTMENT = "adjustment"
ACTIVITY_DAILY_SNAPSHOT = "daily_snapshot"

ACTIVITY_TYPES = (
    ACTIVITY_OPENING_STOCK,
    ACTIVITY_PURCHASE,
    ACTIVITY_SALE,
    ACTIVITY_CONSUMPTION,
    ACTIVITY_ADJUSTMENT,
    ACTIVITY_DAILY_SNAPSHOT,
)

# Reference types (which flow produced the change)
REFERENCE_PURCHASE_ORDER = "purchase_order"
REFERENCE_INVOICE = "invoice"
REFERENCE_MANUAL = "manual"
REFERENCE_SYSTEM = "system"

REFERENCE_TYPES = (
    REFERENCE_PURCHASE_ORDER,
    REFERENCE_INVOICE,
    REFERENCE_MANUAL,
    REFERENCE_SYSTEM,
)

QUANTITY = db.Numeric(14, 3, asdecimal=True)


def _qty(value):
    # JSON-safe quantity; Decimal keeps precision as a string
    return None if value is None else str(value)


class Product(db.Model):
    """
    Product master data and the authoritative on-hand quantity.

    quantity is the only mutable stock figure in the system. Every change to it
    goes through services.inventory_service so that the matching
    InventoryHistory row and DailyInventorySnapshot update land in the same
    transaction.

    version_id is SQLAlchemy's optimistic concurrency counter: an UPDATE that
    loses a race raises StaleDataError and is retried by the service layer.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_active", "is_active"),
        db.CheckConstraint("reorder_level >= 0", name="ck_products_reorder_level_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)

    quantity = db.Column(QUANTITY, nullable=False, default=0)
    reorder_level = db.Column(QUANTITY, nullable=False, default=10)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    history = db.relationship(
        "InventoryHistory",
        back_populates="product",
        cascade="all, delete-orphan",
    )
    snapshots = db.relationship(
        "DailyInventorySnapshot",
        back_populates="product",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.quantity is not None and self.quantity <= self.reorder_level

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "cost_price_cents": self.cost_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "quantity": _qty(self.quantity),
            "reorder_level": _qty(self.reorder_level),
            "is_low_stock": self.is_low_stock,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryHistory(db.Model):
    """
    Append-only ledger of quantity changes (one row per change).

    quantity_after == quantity_before + quantity_change for every row, and for a
    given product quantity_before of row N+1 equals quantity_after of row N when
    ordered by (created_at, id). Rows are never updated; they are only removed
    together with their product.
    """
    __tablename__ = "inventory_history"
    __table_args__ = (
        db.Index("ix_invhist_product_created", "product_id", "created_at"),
        db.Index("ix_invhist_reference", "reference_type", "reference_id"),
        db.CheckConstraint("quantity_change <> 0", name="ck_invhist_nonzero_change"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    activity_type = db.Column(db.String(32), nullable=False, index=True)

    quantity_before = db.Column(QUANTITY, nullable=False, default=0)
    quantity_change = db.Column(QUANTITY, nullable=False)
    quantity_after = db.Column(QUANTITY, nullable=False)

    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.String(64), nullable=True)

    notes = db.Column(db.String(255), nullable=True)

    # Explicit actor passed by the caller (no ambient session user)
    created_by = db.Column(db.String(64), nullable=False)

    # Business time vs system time
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", back_populates="history")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "activity_type": self.activity_type,
            "quantity_before": _qty(self.quantity_before),
            "quantity_change": _qty(self.quantity_change),
            "quantity_after": _qty(self.quantity_after),
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "notes": self.notes,
            "created_by": self.created_by,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
        }


class DailyInventorySnapshot(db.Model):
    """
    Per product, per calendar day rollup of inventory movement.

    purchases / sales / adjustments are unsigned cumulative volumes. sales
    includes consumption. closing_stock and max_stock are refreshed from the
    live product quantity on every write rather than computed from the buckets.
    """
    __tablename__ = "daily_inventory_snapshots"
    __table_args__ = (
        db.UniqueConstraint("product_id", "snapshot_date", name="uq_daily_snapshots_product_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    snapshot_date = db.Column(db.Date, nullable=False, index=True)

    opening_stock = db.Column(QUANTITY, nullable=False, default=0)
    purchases = db.Column(QUANTITY, nullable=False, default=0)
    sales = db.Column(QUANTITY, nullable=False, default=0)
    adjustments = db.Column(QUANTITY, nullable=False, default=0)
    closing_stock = db.Column(QUANTITY, nullable=False, default=0)
    max_stock = db.Column(QUANTITY, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", back_populates="snapshots")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "snapshot_date": self.snapshot_date.isoformat() if self.snapshot_date else None,
            "opening_stock": _qty(self.opening_stock),
            "purchases": _qty(self.purchases),
            "sales": _qty(self.sales),
            "adjustments": _qty(self.adjustments),
            "closing_stock": _qty(self.closing_stock),
            "max_stock": _qty(self.max_stock),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


@event.listens_for(InventoryHistory, "before_update")
def _reject_history_update(mapper, connection, target):
    raise LedgerImmutableError(
        f"inventory_history row {target.id} is immutable; record a compensating entry instead"
    )
