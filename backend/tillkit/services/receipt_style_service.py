# Overview: Service-layer operations for shop receipt style settings.

from __future__ import annotations

from flask import current_app, has_app_context

from ..extensions import db
from ..models import ReceiptStyle, Shop
from ..validation import ValidationError, require_choice, require_int_range
from .receipt_service import (
    ALIGNMENTS,
    DEFAULT_PAPER_WIDTH,
    MAX_PAPER_WIDTH,
    MIN_PAPER_WIDTH,
    TEMPLATES,
    ReceiptStyleSettings,
)


class ReceiptStyleError(ValueError):
    pass


class ShopNotFound(ReceiptStyleError):
    pass


TEXT_FIELDS = {
    "shop_name": 120,
    "address": 255,
    "phone": 64,
    "thank_you_text": 120,
    "visit_again_text": 120,
}
NON_NULL_TEXT_FIELDS = {"thank_you_text", "visit_again_text"}
BOOL_FIELDS = {"bold_shop_name", "bold_total"}
LINE_LIST_FIELDS = {"header_lines", "footer_lines"}
WRITABLE_FIELDS = (
    set(TEXT_FIELDS)
    | BOOL_FIELDS
    | LINE_LIST_FIELDS
    | {"paper_width", "template", "header_align", "footer_align", "logo_url"}
)
MAX_EXTRA_LINES = 5


def _default_paper_width() -> int:
    if has_app_context():
        return int(current_app.config.get("DEFAULT_PAPER_WIDTH", DEFAULT_PAPER_WIDTH))
    return DEFAULT_PAPER_WIDTH


def _require_shop(shop_id: int) -> Shop:
    shop = db.session.get(Shop, shop_id)
    if shop is None:
        raise ShopNotFound(f"Shop {shop_id} not found")
    return shop


def default_settings() -> ReceiptStyleSettings:
    return ReceiptStyleSettings(paper_width=_default_paper_width())


def settings_from_row(row: ReceiptStyle | None) -> ReceiptStyleSettings:
    if row is None:
        return default_settings()
    defaults = default_settings()
    return ReceiptStyleSettings(
        paper_width=row.paper_width if row.paper_width is not None else defaults.paper_width,
        template=row.template or defaults.template,
        header_align=row.header_align or defaults.header_align,
        footer_align=row.footer_align or defaults.footer_align,
        shop_name=row.shop_name,
        address=row.address,
        phone=row.phone,
        thank_you_text=row.thank_you_text if row.thank_you_text is not None else defaults.thank_you_text,
        visit_again_text=row.visit_again_text if row.visit_again_text is not None else defaults.visit_again_text,
        bold_shop_name=defaults.bold_shop_name if row.bold_shop_name is None else bool(row.bold_shop_name),
        bold_total=defaults.bold_total if row.bold_total is None else bool(row.bold_total),
        logo_url=row.logo_url,
        header_lines=tuple(row.header_lines or ()),
        footer_lines=tuple(row.footer_lines or ()),
    )


def get_style_settings(shop_id: int) -> ReceiptStyleSettings:
    """Effective style for a shop (defaults when it never saved one)."""
    _require_shop(shop_id)
    row = db.session.query(ReceiptStyle).filter_by(shop_id=shop_id).first()
    return settings_from_row(row)


def validate_style_patch(payload: dict) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    patch: dict = {}
    for key, value in payload.items():
        if key not in WRITABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")

        if key == "paper_width":
            patch[key] = require_int_range(value, MIN_PAPER_WIDTH, MAX_PAPER_WIDTH, key)
        elif key == "template":
            patch[key] = require_choice(value, TEMPLATES, key)
        elif key in ("header_align", "footer_align"):
            patch[key] = require_choice(value, ALIGNMENTS, key)
        elif key in BOOL_FIELDS:
            if not isinstance(value, bool):
                raise ValidationError(f"{key} must be a boolean")
            patch[key] = value
        elif key in LINE_LIST_FIELDS:
            if value is None:
                patch[key] = []
                continue
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ValidationError(f"{key} must be a list of strings")
            if len(value) > MAX_EXTRA_LINES:
                raise ValidationError(f"{key} cannot have more than {MAX_EXTRA_LINES} lines")
            patch[key] = [v.strip() for v in value if v.strip()]
        elif key == "logo_url":
            if value is not None and not isinstance(value, str):
                raise ValidationError("logo_url must be a string")
            patch[key] = value.strip() if value and value.strip() else None
        else:
            if value is None:
                # Blank footer texts hide the line; the columns are NOT NULL
                patch[key] = "" if key in NON_NULL_TEXT_FIELDS else None
                continue
            if not isinstance(value, str):
                raise ValidationError(f"{key} must be a string")
            value = value.strip()
            if len(value) > TEXT_FIELDS[key]:
                raise ValidationError(f"{key} exceeds max length {TEXT_FIELDS[key]}")
            patch[key] = value if key in NON_NULL_TEXT_FIELDS else (value or None)

    return patch


def update_receipt_style(shop_id: int, payload: dict) -> ReceiptStyleSettings:
    """
    Apply a partial update; the first save materialises the defaults as a row.

    Raises:
        ShopNotFound: Unknown shop
        ValidationError: Bad field, e.g. paper_width outside [24, 48]
    """
    _require_shop(shop_id)
    patch = validate_style_patch(payload)

    row = db.session.query(ReceiptStyle).filter_by(shop_id=shop_id).first()
    if row is None:
        defaults = default_settings().to_dict()
        row = ReceiptStyle(shop_id=shop_id, **defaults)
        db.session.add(row)

    for key, value in patch.items():
        setattr(row, key, value)

    settings = settings_from_row(row)
    try:
        settings.validate()
    except ValidationError:
        db.session.rollback()
        raise
    db.session.commit()
    return settings


def reset_receipt_style(shop_id: int) -> ReceiptStyleSettings:
    _require_shop(shop_id)
    db.session.query(ReceiptStyle).filter_by(shop_id=shop_id).delete()
    db.session.commit()
    return default_settings()
