# Overview: Per-terminal session object tying cart, checkout, receipt and printer together.

"""
Terminal Session

WHY: Cart and printer state belong to one terminal and one cashier. They are
owned by this object and passed explicitly through the call chain instead of
living in module-level singletons.

FLOW: cart -> commit_sale() -> render_receipt() -> PrinterChannel.print()

A print failure after a successful commit is returned alongside the outcome;
it never undoes or blocks the sale.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..extensions import db
from ..models import Product, ProductVariant, Shop
from ..validation import ValidationError, to_cents
from . import checkout_service, receipt_service, receipt_style_service
from .cart_service import Cart, CartLine
from .checkout_service import CommitOutcome, MissingActorOrShop
from .printer_service import PrinterChannel, PrinterError, DeviceUnavailable
from .receipt_service import RenderedReceipt


logger = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    outcome: CommitOutcome
    receipt: RenderedReceipt | None = None
    printed: bool = False
    print_error: PrinterError | None = None

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.to_dict(),
            "receipt": self.receipt.to_dict() if self.receipt is not None else None,
            "printed": self.printed,
            "print_error": str(self.print_error) if self.print_error is not None else None,
        }


class TerminalSession:
    def __init__(
        self,
        *,
        shop_id: int,
        cashier_id: int,
        cashier_name: str | None = None,
        cart: Cart | None = None,
        printer: PrinterChannel | None = None,
    ):
        self.shop_id = shop_id
        self.cashier_id = cashier_id
        self.cashier_name = cashier_name
        self.cart = cart if cart is not None else Cart()
        self.printer = printer

    def _shop(self) -> Shop:
        shop = db.session.get(Shop, self.shop_id) if self.shop_id is not None else None
        if shop is None:
            raise MissingActorOrShop("Shop not found", details={"shop_id": self.shop_id})
        return shop

    # ------------------------------------------------------------------
    # Cart
    # ------------------------------------------------------------------

    def add_product(self, product_id: int, variant_id: int | None = None) -> CartLine:
        product = db.session.get(Product, product_id)
        if product is None or product.shop_id != self.shop_id or not product.is_active:
            raise ValidationError("Product not found", details={"product_id": product_id})

        variant = None
        if variant_id is not None:
            variant = db.session.get(ProductVariant, variant_id)
            if variant is None or variant.product_id != product.id:
                raise ValidationError("Variant not found", details={"variant_id": variant_id})
        return self.cart.add(product, variant)

    def _check_cart_lines(self, shop: Shop) -> None:
        """
        Every line must be an active product of this shop (and its own variant).

        Carts rebuilt from a request body never went through add_product(), so
        this runs before anything is written.
        """
        for line in self.cart.lines:
            product = db.session.get(Product, line.product_id)
            if product is None or product.shop_id != shop.id or not product.is_active:
                raise ValidationError(
                    "Cart line is not a product of this shop",
                    details={"product_id": line.product_id, "shop_id": shop.id},
                )
            if line.variant_id is not None:
                variant = db.session.get(ProductVariant, line.variant_id)
                if variant is None or variant.product_id != product.id:
                    raise ValidationError(
                        "Cart line variant does not belong to its product",
                        details={"product_id": line.product_id, "variant_id": line.variant_id},
                    )

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def checkout(self, payment_method: str, *, direct_amount=None, print_receipt: bool = False) -> CheckoutResult:
        """
        Commit the cart (or a direct amount), render the receipt, optionally print.

        Raises only for input/actor problems; persistence problems are in
        result.outcome (see CommitOutcome.raise_for_failure()).
        """
        shop = self._shop()
        direct_amount_cents = None
        if direct_amount is not None:
            direct_amount_cents = to_cents(direct_amount, "direct_amount")
        else:
            self._check_cart_lines(shop)

        outcome = checkout_service.commit_sale(
            cart=self.cart,
            shop=shop,
            cashier_id=self.cashier_id,
            payment_method=payment_method,
            direct_amount_cents=direct_amount_cents,
        )
        result = CheckoutResult(outcome=outcome)
        if not outcome.durable:
            return result

        style = receipt_style_service.get_style_settings(shop.id)
        data = receipt_service.receipt_from_outcome(outcome, shop, cashier_name=self.cashier_name)
        result.receipt = receipt_service.render_receipt(data, style)

        if print_receipt:
            result.printed, result.print_error = self._try_print(result.receipt)
        return result

    # ------------------------------------------------------------------
    # Printing
    # ------------------------------------------------------------------

    def render_transaction(self, transaction_id: int) -> RenderedReceipt:
        txn = checkout_service.get_transaction(transaction_id)
        items = checkout_service.list_transaction_items(transaction_id)
        shop = db.session.get(Shop, txn.shop_id)
        style = receipt_style_service.get_style_settings(txn.shop_id)
        data = receipt_service.receipt_from_transaction(txn, items, shop, cashier_name=self.cashier_name)
        return receipt_service.render_receipt(data, style)

    def reprint(self, transaction_id: int) -> RenderedReceipt:
        """Render a stored sale again and print it (raises printer errors)."""
        receipt = self.render_transaction(transaction_id)
        self.print(receipt)
        return receipt

    def print(self, receipt: RenderedReceipt) -> int:
        if self.printer is None:
            raise DeviceUnavailable("No printer configured for this terminal")
        return self.printer.print(receipt)

    def _try_print(self, receipt: RenderedReceipt) -> tuple[bool, PrinterError | None]:
        try:
            self.print(receipt)
        except PrinterError as exc:
            logger.warning("Receipt print failed (sale already recorded): %s", exc)
            return False, exc
        return True, None

    def close(self) -> None:
        if self.printer is not None:
            self.printer.disconnect()
