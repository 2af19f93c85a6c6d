from flask import Blueprint, jsonify, request

from invtrack.services import reporting_service
from invtrack.validation import NotFoundError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/inventory-track")
def inventory_track_report():
    product_id = request.args.get("product_id", type=int)
    if not product_id:
        return jsonify({"error": "product_id is required"}), 400

    start = request.args.get("from")
    end = request.args.get("to")

    try:
        report = reporting_service.inventory_track(product_id, start, end)
        return jsonify(report), 200
    except NotFoundError as exc:
        return jsonify({"error": str(exc)}), 404
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/low-stock")
def low_stock_report():
    products = reporting_service.low_stock_products()
    return jsonify({
        "items": [p.to_dict() for p in products],
        "count": len(products),
    }), 200
