# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

# backend/stockpos/routes/products.py
"""
Product catalog routes.

OWNERSHIP: every route is scoped to g.owner_id (set by @require_owner).
Stock can be set on create but is only ever decremented by checkout.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..models import Product
from ..services import products_service
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    validate_payload,
)
from ..decorators import require_owner

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "category",
        "stock_quantity",
        "cost_price_cents",
        "selling_price_cents",
        "low_stock_threshold",
        "expiry_date",
    },
    required_on_create={"name", "stock_quantity", "cost_price_cents", "selling_price_cents"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=set(products_service.PRODUCT_MUTABLE_FIELDS),
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_owner
def list_products():
    """
    List the caller's products.

    Query params:
    - category: str (optional)
    """
    category = request.args.get("category")
    items = [p.to_dict() for p in products_service.list_products(g.owner_id, category)]
    return jsonify({"items": items, "count": len(items)}), 200


@products_bp.post("")
@require_owner
def create_product():
    try:
        patch = validate_payload(
            model=Product,
            payload=request.get_json(silent=True),
            policy=PRODUCT_CREATE_POLICY,
            partial=False,
        )
        enforce_rules_product(patch)
        product = products_service.create_product(g.owner_id, patch)
        return jsonify({"product": product.to_dict()}), 201
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/status-counts")
@require_owner
def status_counts():
    """Counts for the all / in stock / out of stock / low / expiring filters."""
    return jsonify(products_service.inventory_status_counts(g.owner_id)), 200


@products_bp.get("/<int:product_id>")
@require_owner
def get_product(product_id: int):
    product = products_service.get_product(product_id, g.owner_id)
    if not product:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": product.to_dict()}), 200


@products_bp.patch("/<int:product_id>")
@require_owner
def update_product(product_id: int):
    try:
        patch = validate_payload(
            model=Product,
            payload=request.get_json(silent=True),
            policy=PRODUCT_UPDATE_POLICY,
            partial=True,
        )
        enforce_rules_product(patch)
        product = products_service.update_product(product_id, g.owner_id, patch)
        if not product:
            return jsonify({"error": "Product not found"}), 404
        return jsonify({"product": product.to_dict()}), 200
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500
