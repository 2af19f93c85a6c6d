# Overview: Flask API routes for product master data; parses input and returns JSON responses.

# backend/invtrack/routes/products.py
"""
Product management routes.

Reads are open. Writes require the X-Actor-Id header (@require_actor) so that
an opening_stock seed on create is attributed in the ledger.
"""
from flask import Blueprint, request, g, current_app
from ..services.products_service import (
    list_products as list_products_service,
    get_product,
)
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    NotFoundError,
    ConflictError,
    ConcurrencyConflict,
)
from ..decorators import require_actor

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku",
        "name",
        "description",
        "cost_price_cents",
        "selling_price_cents",
        "reorder_level",
        "is_active",
    },
    required_on_create={"sku", "name"},
    extra_fields={"opening_stock"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _truthy(raw: str | None) -> bool:
    return (raw or "").strip().lower() in ("1", "true", "yes")


@products_bp.get("")
def list_products():
    """
    List products with optional pagination.

    Query params:
    - low_stock: bool (optional) - only products at or under their reorder level
    - include_inactive: bool (optional)
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    page = request.args.get("page", type=int)
    per_page = request.args.get("per_page", type=int)

    return list_products_service(
        low_stock=_truthy(request.args.get("low_stock")),
        include_inactive=_truthy(request.args.get("include_inactive")),
        page=page,
        per_page=per_page,
    )


@products_bp.post("")
@require_actor
def create_product_route():
    """
    Create a new product.

    An optional opening_stock seeds the ledger with an opening_stock entry and
    the first daily snapshot; without it the product starts at zero.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    from ..services.products_service import create_product

    try:
        created = create_product(
            patch=patch,
            actor=g.actor_id,
            opening_stock=payload.get("opening_stock"),
        )
    except (ConflictError, ConcurrencyConflict) as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return created, 201


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = get_product(product_id)
    except NotFoundError:
        return {"error": "Product not found"}, 404
    return product.to_dict(), 200


@products_bp.put("/<int:product_id>")
@require_actor
def update_product_route(product_id: int):
    """Update master data. Stock levels change only through /api/inventory."""
    payload = request.get_json(silent=True) or {}
    if "opening_stock" in payload:
        return {"error": "Field not allowed: opening_stock"}, 400

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    from ..services.products_service import update_product

    try:
        updated = update_product(product_id=product_id, patch=patch)
    except NotFoundError:
        return {"error": "Product not found"}, 404
    except (ConflictError, ConcurrencyConflict) as e:
        return {"error": str(e)}, 409

    current_app.logger.info("Product updated id=%s actor=%s", product_id, g.actor_id)
    return updated, 200


@products_bp.delete("/<int:product_id>")
@require_actor
def delete_product_route(product_id: int):
    """Delete a product together with its inventory history and snapshots."""
    from ..services.products_service import delete_product

    deleted = delete_product(product_id=product_id, actor=g.actor_id)
    if not deleted:
        return {"error": "Product not found"}, 404

    return {"ok": True}, 200
