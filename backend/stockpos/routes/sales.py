# Overview: Flask API routes for recorded sales; parses input and returns JSON responses.

# backend/stockpos/routes/sales.py
"""Sales history routes. Sales are created through /api/checkout only."""

from flask import Blueprint, current_app, g, jsonify, request

from ..services import sales_service
from ..decorators import require_owner


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_owner
def list_sales_route():
    """
    List the caller's sales, newest first.

    Query params:
    - limit: int (optional)
    """
    limit = request.args.get("limit", type=int)
    sales = sales_service.list_sales(g.owner_id, limit=limit)
    return jsonify({
        "items": [sale.to_dict() for sale in sales],
        "count": len(sales),
    }), 200


@sales_bp.get("/<int:sale_id>")
@require_owner
def get_sale_route(sale_id: int):
    sale = sales_service.get_sale(sale_id, g.owner_id)
    if not sale:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify({"sale": sale.to_dict()}), 200


@sales_bp.delete("/<int:sale_id>")
@require_owner
def delete_sale_route(sale_id: int):
    """
    Permanently delete a sale record.

    Irreversible. Stock sold by the sale is not returned to inventory.
    """
    try:
        if not sales_service.delete_sale(sale_id, g.owner_id):
            return jsonify({"error": "Sale not found"}), 404
        return jsonify({"deleted": True, "sale_id": sale_id}), 200
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
