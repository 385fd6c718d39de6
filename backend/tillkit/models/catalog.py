from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from tillkit.time_utils import to_utc_z
from tillkit.validation import bps_to_rate


class Shop(db.Model):
    """
    A selling location and the tax/identity settings its receipts carry.

    The catalog and shop-setup screens own these rows; checkout only reads them.
    """
    __tablename__ = "shops"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)

    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)  # Basis points (e.g., 500 = 5%)
    currency_label = db.Column(db.String(8), nullable=False, default="Rs")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def tax_rate(self) -> Decimal:
        return bps_to_rate(self.tax_rate_bps)

    def __repr__(self) -> str:
        return f"<Shop id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_rate": str(self.tax_rate),
            "currency_label": self.currency_label,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "sku", name="uq_products_shop_sku"),
        db.Index("ix_products_shop_name", "shop_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    name = db.Column(db.String(200), nullable=False)
    sku = db.Column(db.String(64), nullable=True)
    barcode = db.Column(db.String(64), nullable=True, index=True)

    price_cents = db.Column(db.Integer, nullable=False)
    cost_price_cents = db.Column(db.Integer, nullable=True)

    # Unlocked, last-write-wins across terminals (see checkout_service)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=0)

    has_variants = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    shop = db.relationship("Shop", backref=db.backref("products", lazy=True))

    @property
    def is_low_stock(self) -> bool:
        return (self.stock_quantity or 0) <= (self.min_stock_level or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "sku": self.sku,
            "barcode": self.barcode,
            "price_cents": self.price_cents,
            "cost_price_cents": self.cost_price_cents,
            "stock_quantity": self.stock_quantity,
            "min_stock_level": self.min_stock_level,
            "has_variants": bool(self.has_variants),
            "is_active": bool(self.is_active),
            "is_low_stock": self.is_low_stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductVariant(db.Model):
    """
    One option value of a product (e.g. Size: L).

    price_modifier_cents is added to the parent price; it is never a
    replacement price.
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        db.UniqueConstraint("product_id", "name", "value", name="uq_product_variants_option"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    name = db.Column(db.String(64), nullable=False)
    value = db.Column(db.String(64), nullable=False)
    price_modifier_cents = db.Column(db.Integer, nullable=False, default=0)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    product = db.relationship("Product", backref=db.backref("variants", lazy=True))

    @property
    def label(self) -> str:
        return f"{self.name}: {self.value}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "value": self.value,
            "label": self.label,
            "price_modifier_cents": self.price_modifier_cents,
            "stock_quantity": self.stock_quantity,
        }
