from __future__ import annotations

from flask import Blueprint, jsonify, request, current_app

from ..services import receipt_style_service
from ..services.receipt_style_service import ShopNotFound
from ..validation import ValidationError


settings_bp = Blueprint("settings", __name__, url_prefix="/api")


def _json_error(exc: Exception):
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc), "details": exc.details}), 400
    if isinstance(exc, ShopNotFound):
        return jsonify({"error": str(exc)}), 404
    current_app.logger.exception("Receipt style request failed")
    return jsonify({"error": "Internal server error"}), 500


@settings_bp.get("/shops/<int:shop_id>/receipt-style")
def get_receipt_style_route(shop_id: int):
    try:
        settings = receipt_style_service.get_style_settings(shop_id)
        return jsonify({"shop_id": shop_id, "style": settings.to_dict()}), 200
    except Exception as exc:
        return _json_error(exc)


@settings_bp.put("/shops/<int:shop_id>/receipt-style")
def update_receipt_style_route(shop_id: int):
    try:
        settings = receipt_style_service.update_receipt_style(shop_id, request.get_json())
        return jsonify({"shop_id": shop_id, "style": settings.to_dict()}), 200
    except Exception as exc:
        return _json_error(exc)


@settings_bp.delete("/shops/<int:shop_id>/receipt-style")
def reset_receipt_style_route(shop_id: int):
    try:
        settings = receipt_style_service.reset_receipt_style(shop_id)
        return jsonify({"shop_id": shop_id, "style": settings.to_dict()}), 200
    except Exception as exc:
        return _json_error(exc)
