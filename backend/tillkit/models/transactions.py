from __future__ import annotations

from ..extensions import db
from tillkit.time_utils import to_utc_z


PAYMENT_METHODS = ("cash", "card", "upi", "bank_transfer", "other")
TRANSACTION_STATUSES = ("completed", "pending", "failed", "cancelled")


class Transaction(db.Model):
    """
    Committed sale header (all amounts in cents).

    WHY: This row is the durable record of the sale. It is written before
    item rows and stock updates so that a later failure never loses the sale.
    Only `status` may change after insert (external correction).
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_shop_created", "shop_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    cashier_id = db.Column(db.Integer, nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, default="sale")
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    # Reserved: no discount flow exists yet, always 0
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(32), nullable=False)
    is_direct_billing = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shop = db.relationship("Shop", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "cashier_id": self.cashier_id,
            "type": self.type,
            "status": self.status,
            "subtotal_cents": self.subtotal_cents,
            "tax_amount_cents": self.tax_amount_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "total_amount_cents": self.total_amount_cents,
            "payment_method": self.payment_method,
            "is_direct_billing": bool(self.is_direct_billing),
            "created_at": to_utc_z(self.created_at),
        }


class TransactionItem(db.Model):
    """Line snapshot of a committed sale (name and price as sold, not as cataloged now)."""
    __tablename__ = "transaction_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    transaction = db.relationship("Transaction", backref=db.backref("items", lazy=True, order_by="TransactionItem.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
            "created_at": to_utc_z(self.created_at),
        }
