# backend/invtrack/routes/inventory.py
"""
Inventory management routes.

Every stock movement goes through services.inventory_service, which writes
the product quantity, the inventory_history row and the daily snapshot in one
transaction. Mutating routes require the X-Actor-Id header.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- from/to are calendar dates (YYYY-MM-DD), both inclusive, in INVENTORY_TIMEZONE.
"""

from flask import Blueprint, request, g, current_app

from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    ConcurrencyConflict,
)
from ..decorators import require_actor
from ..services import inventory_service, reporting_service


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

PURCHASE_FIELDS = {"quantity", "purchase_order_id", "note", "occurred_at"}
SALE_FIELDS = {"quantity", "invoice_id", "note", "occurred_at"}
MANUAL_EDIT_FIELDS = {"quantity", "note", "occurred_at"}
OPENING_STOCK_FIELDS = {"quantity", "note", "occurred_at"}

MAX_NOTE_LENGTH = 255
MAX_REFERENCE_LENGTH = 64


def _parse_movement(payload, allowed: set[str]) -> dict:
    """Allowlist + shape check for a stock movement body; quantities are coerced by the service."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    for k in payload.keys():
        if k not in allowed:
            raise ValidationError(f"Field not allowed: {k}")
    if payload.get("quantity") is None:
        raise ValidationError("Missing required fields: quantity")

    body = dict(payload)
    note = body.get("note")
    if note is not None:
        note = str(note).strip() or None
        if note and len(note) > MAX_NOTE_LENGTH:
            raise ValidationError(f"note exceeds max length {MAX_NOTE_LENGTH}")
        body["note"] = note

    for ref in ("purchase_order_id", "invoice_id"):
        if body.get(ref) is not None:
            body[ref] = str(body[ref]).strip() or None
            if body[ref] and len(body[ref]) > MAX_REFERENCE_LENGTH:
                raise ValidationError(f"{ref} exceeds max length {MAX_REFERENCE_LENGTH}")
    return body


def _error_response(exc: Exception):
    if isinstance(exc, NotFoundError):
        return {"error": str(exc)}, 404
    if isinstance(exc, (ConflictError, ConcurrencyConflict)):
        return {"error": str(exc)}, 409
    return {"error": str(exc)}, 400


def _movement_response(product_id: int, result: inventory_service.MovementResult):
    """
    Current summary plus the ledger row this request wrote.

    A write that did not change the quantity records nothing and answers 200
    with entry=None; a recorded movement answers 201. previous_quantity and
    entry come from the write itself, so a later writer cannot leak into them.
    """
    summary = inventory_service.get_inventory_summary(product_id)
    return {
        "previous_quantity": str(result.previous_quantity),
        "entry": result.entry.to_dict() if result.changed else None,
        "summary": summary,
    }, (201 if result.changed else 200)


@inventory_bp.post("/<int:product_id>/purchase")
@require_actor
def purchase_route(product_id: int):
    """Stock received against a purchase order."""
    try:
        body = _parse_movement(request.get_json(silent=True) or {}, PURCHASE_FIELDS)
        result = inventory_service.record_purchase(
            product_id,
            body["quantity"],
            actor=g.actor_id,
            purchase_order_id=body.get("purchase_order_id"),
            note=body.get("note"),
            occurred_at=body.get("occurred_at"),
        )
    except ValueError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record purchase")
        return {"error": "Internal server error"}, 500

    return _movement_response(product_id, result)


@inventory_bp.post("/<int:product_id>/sale")
@require_actor
def sale_route(product_id: int):
    """Stock leaving on a confirmed invoice."""
    try:
        body = _parse_movement(request.get_json(silent=True) or {}, SALE_FIELDS)
        result = inventory_service.record_sale(
            product_id,
            body["quantity"],
            actor=g.actor_id,
            invoice_id=body.get("invoice_id"),
            note=body.get("note"),
            occurred_at=body.get("occurred_at"),
        )
    except ValueError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return {"error": "Internal server error"}, 500

    return _movement_response(product_id, result)


@inventory_bp.put("/<int:product_id>/quantity")
@require_actor
def set_quantity_route(product_id: int):
    """
    Manual edit from the inventory screen: the body carries the new level.

    Decreases are booked as consumption and increases as adjustment.
    """
    try:
        body = _parse_movement(request.get_json(silent=True) or {}, MANUAL_EDIT_FIELDS)
        result = inventory_service.record_manual_edit(
            product_id,
            body["quantity"],
            actor=g.actor_id,
            note=body.get("note"),
            occurred_at=body.get("occurred_at"),
        )
    except ValueError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to set quantity")
        return {"error": "Internal server error"}, 500

    return _movement_response(product_id, result)


@inventory_bp.post("/<int:product_id>/opening-stock")
@require_actor
def opening_stock_route(product_id: int):
    try:
        body = _parse_movement(request.get_json(silent=True) or {}, OPENING_STOCK_FIELDS)
        result = inventory_service.seed_opening_stock(
            product_id,
            body["quantity"],
            actor=g.actor_id,
            note=body.get("note"),
            occurred_at=body.get("occurred_at"),
        )
    except ValueError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to seed opening stock")
        return {"error": "Internal server error"}, 500

    return _movement_response(product_id, result)


@inventory_bp.get("/<int:product_id>")
def inventory_summary_route(product_id: int):
    try:
        return inventory_service.get_inventory_summary(product_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@inventory_bp.get("/<int:product_id>/history")
def history_route(product_id: int):
    """
    Ledger rows for a product, newest first.

    Query params:
    - from: YYYY-MM-DD (optional, default to minus 7 days)
    - to: YYYY-MM-DD (optional, default today)
    """
    try:
        rows = reporting_service.list_history(
            product_id, request.args.get("from"), request.args.get("to")
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except reporting_service.ReportError as e:
        return {"error": str(e)}, 400

    return {"items": [r.to_dict() for r in rows], "count": len(rows)}, 200


@inventory_bp.get("/<int:product_id>/snapshots")
def snapshots_route(product_id: int):
    try:
        rows = reporting_service.list_snapshots(
            product_id, request.args.get("from"), request.args.get("to")
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except reporting_service.ReportError as e:
        return {"error": str(e)}, 400

    return {"items": [r.to_dict() for r in rows], "count": len(rows)}, 200
