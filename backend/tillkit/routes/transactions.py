# Overview: Flask API routes for committed transactions and receipt reprints.

from flask import Blueprint, request, jsonify, current_app

from ..services import checkout_service
from ..services.checkout_service import TransactionNotFound
from ..services.receipt_style_service import ShopNotFound
from ..services.terminal_session import TerminalSession
from ..validation import ValidationError


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("/<int:transaction_id>")
def get_transaction_route(transaction_id: int):
    """Get transaction with its item rows."""
    try:
        txn = checkout_service.get_transaction(transaction_id)
    except TransactionNotFound as e:
        return jsonify({"error": str(e)}), 404

    items = checkout_service.list_transaction_items(transaction_id)
    return jsonify({
        "transaction": txn.to_dict(),
        "items": [item.to_dict() for item in items],
    }), 200


@transactions_bp.get("/<int:transaction_id>/receipt")
def get_receipt_route(transaction_id: int):
    """
    Rendered receipt lines for a stored sale (reprint text).

    Rendering is deterministic, so this can be fetched and printed any
    number of times.
    """
    try:
        txn = checkout_service.get_transaction(transaction_id)
        session = TerminalSession(
            shop_id=txn.shop_id,
            cashier_id=txn.cashier_id,
            cashier_name=request.args.get("cashier_name"),
        )
        receipt = session.render_transaction(transaction_id)
        return jsonify({"transaction_id": transaction_id, "receipt": receipt.to_dict()}), 200

    except TransactionNotFound as e:
        return jsonify({"error": str(e)}), 404
    except ShopNotFound as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to render receipt")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.patch("/<int:transaction_id>/status")
def correct_status_route(transaction_id: int):
    """External status correction; amounts and items stay immutable."""
    try:
        data = request.get_json() or {}
        status = data.get("status")
        if not status:
            return jsonify({"error": "status required"}), 400

        txn = checkout_service.correct_transaction_status(transaction_id, status)
        return jsonify({"transaction": txn.to_dict()}), 200

    except TransactionNotFound as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to correct transaction status")
        return jsonify({"error": "Internal server error"}), 500
