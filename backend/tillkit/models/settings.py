from __future__ import annotations

from ..extensions import db
from tillkit.time_utils import to_utc_z


class ReceiptStyle(db.Model):
    """
    Shop-scoped bill print style.

    One row per shop. Shops that never saved a style get the defaults from
    receipt_style_service without a row being written.
    """
    __tablename__ = "receipt_styles"
    __table_args__ = (
        db.UniqueConstraint("shop_id", name="uq_receipt_styles_shop"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    paper_width = db.Column(db.Integer, nullable=False, default=35)
    template = db.Column(db.String(16), nullable=False, default="classic")
    header_align = db.Column(db.String(8), nullable=False, default="center")
    footer_align = db.Column(db.String(8), nullable=False, default="center")

    # Overrides for the shop identity printed in the header
    shop_name = db.Column(db.String(120), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)

    thank_you_text = db.Column(db.String(120), nullable=False, default="Thank you for your business!")
    visit_again_text = db.Column(db.String(120), nullable=False, default="Visit us again soon.")
    bold_shop_name = db.Column(db.Boolean, nullable=False, default=True)
    bold_total = db.Column(db.Boolean, nullable=False, default=True)

    logo_url = db.Column(db.Text, nullable=True)
    header_lines = db.Column(db.JSON, nullable=True)
    footer_lines = db.Column(db.JSON, nullable=True)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    shop = db.relationship("Shop", backref=db.backref("receipt_style", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "paper_width": self.paper_width,
            "template": self.template,
            "header_align": self.header_align,
            "footer_align": self.footer_align,
            "shop_name": self.shop_name,
            "address": self.address,
            "phone": self.phone,
            "thank_you_text": self.thank_you_text,
            "visit_again_text": self.visit_again_text,
            "bold_shop_name": bool(self.bold_shop_name),
            "bold_total": bool(self.bold_total),
            "logo_url": self.logo_url,
            "header_lines": list(self.header_lines or []),
            "footer_lines": list(self.footer_lines or []),
            "updated_at": to_utc_z(self.updated_at),
        }


class StoredPrinter(db.Model):
    """
    Last printer a terminal connected to successfully.

    Written only after a connect succeeds, and read back when the operator
    asks to reconnect. Nothing reconnects on its own from this row.
    """
    __tablename__ = "stored_printers"
    __table_args__ = (
        db.UniqueConstraint("terminal_id", name="uq_stored_printers_terminal"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    terminal_id = db.Column(db.String(64), nullable=False)
    port = db.Column(db.String(255), nullable=False)
    device_name = db.Column(db.String(120), nullable=True)
    baudrate = db.Column(db.Integer, nullable=False, default=9600)

    last_connected_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "terminal_id": self.terminal_id,
            "port": self.port,
            "device_name": self.device_name,
            "baudrate": self.baudrate,
            "last_connected_at": to_utc_z(self.last_connected_at),
            "updated_at": to_utc_z(self.updated_at),
        }
