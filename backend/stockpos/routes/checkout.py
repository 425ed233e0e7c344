# Overview: Flask API routes for cart quotes and checkout; parses input and returns JSON responses.

# backend/stockpos/routes/checkout.py
"""
Cart and checkout routes.

The cart lives on the client between requests; each call sends the full
list of lines and the server rebuilds a CartStore from it, re-applying the
stock checks against the live catalog.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..services import sales_service
from ..services.cart_service import build_cart
from ..services.checkout_service import CheckoutError, CheckoutSession, CheckoutState
from ..services.sales_service import SaleCommitFailed, SaleError, SaleResult
from ..validation import ValidationError, parse_cents, parse_idempotency_key
from ..decorators import require_owner


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")
checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


def _sale_response(result: SaleResult):
    status = 200 if result.replayed else 201
    return jsonify({
        "sale": result.sale.to_dict(),
        "replayed": result.replayed,
        "shortfall_product_ids": result.shortfall_product_ids,
    }), status


@cart_bp.post("/quote")
@require_owner
def quote_cart():
    """
    Validate cart lines against current stock and price them.

    Body: {"items": [{"product_id": 1, "quantity": 2}, ...]}
    """
    try:
        data = request.get_json(silent=True) or {}
        cart = build_cart(g.owner_id, data.get("items") or [])
        lines = cart.resolve()
        return jsonify({
            "items": [
                {
                    "product_id": line.product_id,
                    "product_name": line.product_name,
                    "quantity": line.quantity,
                    "unit_price_cents": line.unit_price_cents,
                    "line_total_cents": line.unit_price_cents * line.quantity,
                }
                for line in lines
            ],
            "item_count": cart.item_count(),
            "total_cents": cart.total(),
            "is_empty": cart.is_empty(),
        }), 200
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except Exception:
        current_app.logger.exception("Failed to quote cart")
        return jsonify({"error": "Internal server error"}), 500


@checkout_bp.post("")
@require_owner
def checkout():
    """
    Complete a sale.

    Body:
    - items: [{"product_id", "quantity"}] (required, non-empty)
    - payment_method: cash | transfer | pos | credit
    - debtor: {"customer_name", "phone_number", "amount_owed_cents", "notes"} (credit only)
    - idempotency_key: str, max 64 chars (optional; resend the same key when retrying)

    A retry whose key already recorded a sale gets that sale back (200)
    before any cart or stock check runs.
    """
    try:
        data = request.get_json(silent=True) or {}
        idempotency_key = parse_idempotency_key(data.get("idempotency_key"))
        if idempotency_key:
            existing = sales_service.find_by_idempotency_key(g.owner_id, idempotency_key)
            if existing is not None:
                current_app.logger.info("Checkout replayed sale %s for key %s", existing.id, idempotency_key)
                return _sale_response(SaleResult(existing, replayed=True))

        cart = build_cart(g.owner_id, data.get("items") or [])
        session = CheckoutSession(cart, idempotency_key=idempotency_key)
        session.select_payment(data.get("payment_method"))

        debtor = data.get("debtor")
        if session.state == CheckoutState.CAPTURING_DEBTOR and isinstance(debtor, dict):
            amount = debtor.get("amount_owed_cents")
            session.set_debtor(
                customer_name=debtor.get("customer_name"),
                phone_number=debtor.get("phone_number"),
                amount_owed_cents=parse_cents(amount, "amount_owed_cents") if amount is not None else None,
                notes=debtor.get("notes"),
            )

        return _sale_response(session.confirm())

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except CheckoutError as e:
        return jsonify({"error": str(e)}), 409
    except SaleCommitFailed:
        return jsonify({"error": "Failed to process sale. Please try again."}), 503
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to complete checkout")
        return jsonify({"error": "Internal server error"}), 500
