# Overview: Flask API routes for checkout; parses input and returns JSON responses.

# backend/tillkit/routes/checkout.py
"""Checkout API: commit a cart or direct-billing amount and return the receipt."""

from flask import Blueprint, request, jsonify, current_app

from ..services.cart_service import Cart
from ..services.checkout_service import MissingActorOrShop
from ..services.terminal_session import TerminalSession
from ..validation import ValidationError


checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


@checkout_bp.post("/", strict_slashes=False)
def checkout_route():
    """
    Commit a sale.

    Body: {shop_id, cashier_id, payment_method, direct_amount?, cart?: {lines: [...]}}

    201: fully committed
    207: sale recorded, a later step (items/stock) failed; needs reconciliation
    400: input problem
    500: sale header not recorded (safe to retry)
    """
    try:
        data = request.get_json() or {}
        shop_id = data.get("shop_id")
        cashier_id = data.get("cashier_id")
        payment_method = data.get("payment_method")

        if not shop_id or not cashier_id:
            return jsonify({"error": "shop_id and cashier_id required"}), 400
        if not payment_method:
            return jsonify({"error": "payment_method required"}), 400

        session = TerminalSession(
            shop_id=shop_id,
            cashier_id=cashier_id,
            cashier_name=data.get("cashier_name"),
            cart=Cart.from_dict(data.get("cart")),
        )
        result = session.checkout(payment_method, direct_amount=data.get("direct_amount"))

        outcome = result.outcome
        body = result.to_dict()
        if outcome.ok:
            body["transaction"] = outcome.transaction.to_dict()
            return jsonify(body), 201

        failure = outcome.failure
        body["error"] = str(failure)
        body["stage"] = failure.stage
        if outcome.durable:
            body["transaction"] = outcome.transaction.to_dict()
            return jsonify(body), 207
        return jsonify(body), 500

    except MissingActorOrShop as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Checkout failed")
        return jsonify({"error": "Internal server error"}), 500
