# backend/invtrack/services/products_service.py
"""
Products Service

Product master data (sku, name, prices, reorder level). The on-hand quantity
is never written here: a new product starts at zero and an optional
opening_stock is seeded through inventory_service so it lands in the ledger.
"""
from __future__ import annotations
from flask import current_app
from ..extensions import db
from ..models import Product
from ..validation import ConflictError, NotFoundError, ValidationError, enforce_non_negative_quantity
from . import inventory_service
from .concurrency import run_with_retry

PRODUCT_MUTABLE_FIELDS = {
    "sku",
    "name",
    "description",
    "cost_price_cents",
    "selling_price_cents",
    "reorder_level",
    "is_active",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"product {product_id} not found")
    return product


def list_products(
    *,
    low_stock: bool = False,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional pagination.

    Args:
        low_stock: only products at or below their reorder level
        include_inactive: include products with is_active=False
        page: Page number (1-indexed). If None, returns all items.
        per_page: Items per page (default 20, max 100)

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)
    if not include_inactive:
        base_query = base_query.filter(Product.is_active.is_(True))
    if low_stock:
        base_query = base_query.filter(Product.quantity <= Product.reorder_level)
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    # If no pagination requested, return all items
    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)  # Default 20, max 100
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def create_product(*, patch: dict, actor: str, opening_stock=None) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        ValidationError: If sku is missing or opening_stock is not a quantity >= 0
        ConflictError: If SKU already exists
    """
    sku = patch.get("sku")
    if sku is None:
        raise ValidationError("sku is required")
    if opening_stock is not None:
        opening_stock = enforce_non_negative_quantity(opening_stock, "opening_stock")

    existing = db.session.query(Product).filter(Product.sku == sku).first()
    if existing:
        raise ConflictError("SKU already exists.")

    p = Product(quantity=0)
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.commit()

    current_app.logger.info("Product created id=%s sku=%s actor=%s", p.id, p.sku, actor)

    if opening_stock is not None:
        inventory_service.seed_opening_stock(p.id, opening_stock, actor=actor)
        db.session.refresh(p)

    return p.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict:
    """
    Update master data; quantity is not patchable here.

    Runs under run_with_retry: a version_id clash with a concurrent stock write
    is replayed against the fresh row, and ConcurrencyConflict surfaces once
    attempts run out.
    """
    def _op():
        p = get_product(product_id)

        if "sku" in patch and patch["sku"] != p.sku:
            clash = db.session.query(Product).filter(Product.sku == patch["sku"], Product.id != p.id).first()
            if clash:
                raise ConflictError("SKU already exists.")

        apply_product_patch(p, patch)
        db.session.commit()
        return p.to_dict()

    return run_with_retry(_op)


def delete_product(*, product_id: int, actor: str) -> bool:
    """
    Delete a product together with its history and snapshots.

    This is the only path that removes inventory_history rows.
    """
    p = db.session.get(Product, product_id)
    if p is None:
        return False

    db.session.delete(p)
    db.session.commit()

    current_app.logger.info("Product deleted id=%s actor=%s", product_id, actor)
    return True
