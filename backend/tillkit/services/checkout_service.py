# Overview: Service-layer checkout; commits a cart or direct-billing amount as a sale.

"""
Checkout Service - cart -> durable sale

WHY: The sale header is the only thing that must never be lost. Item rows
and stock decrements are written after it as separate, independently
committed steps, so a late failure leaves "sale recorded, inventory may be
inconsistent" instead of "no sale".

DESIGN: The commit is a saga. commit_sale() returns a CommitOutcome holding
the ordered steps (header -> items -> stock) with their status, so callers
can inspect exactly where a partial failure happened. Nothing is ever
auto-reversed; there is no compensating transaction.

KNOWN GAP: stock decrements are read-modify-write with no row lock and no
version check. Two terminals selling the same product concurrently are
last-write-wins.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, Transaction, TransactionItem, PAYMENT_METHODS, TRANSACTION_STATUSES
from ..validation import ValidationError, require_choice
from .cart_service import Cart, CartLine
from .concurrency import run_with_retry


logger = logging.getLogger(__name__)


class CheckoutError(Exception):
    """Raised for checkout operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class MissingActorOrShop(CheckoutError):
    pass


class TransactionNotFound(CheckoutError):
    pass


class PersistenceFailure(CheckoutError):
    """
    A persistence step failed.

    stage == "header": nothing was recorded, safe to retry the checkout.
    stage in ("items", "stock"): the sale IS recorded; inventory may be
    inconsistent and needs manual reconciliation.
    """
    def __init__(self, stage: str, message: str, details: dict | None = None, outcome=None):
        super().__init__(message, details)
        self.stage = stage
        self.outcome = outcome

    @property
    def sale_recorded(self) -> bool:
        return self.stage != STAGE_HEADER


# =============================================================================
# SAGA STEPS
# =============================================================================

STAGE_HEADER = "header"
STAGE_ITEMS = "items"
STAGE_STOCK = "stock"
STAGES = (STAGE_HEADER, STAGE_ITEMS, STAGE_STOCK)

STEP_PENDING = "pending"
STEP_COMPLETED = "completed"
STEP_FAILED = "failed"
STEP_SKIPPED = "skipped"


@dataclass
class SagaStep:
    name: str
    status: str = STEP_PENDING
    error: str | None = None
    details: dict = field(default_factory=dict)

    def complete(self, **details) -> None:
        self.status = STEP_COMPLETED
        self.details.update(details)

    def fail(self, error: str, **details) -> None:
        self.status = STEP_FAILED
        self.error = error
        self.details.update(details)

    def skip(self, reason: str) -> None:
        self.status = STEP_SKIPPED
        self.details["reason"] = reason

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "status": self.status,
            "error": self.error,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class Totals:
    subtotal_cents: int
    tax_amount_cents: int
    discount_amount_cents: int
    total_amount_cents: int

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "tax_amount_cents": self.tax_amount_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "total_amount_cents": self.total_amount_cents,
        }


def compute_totals(subtotal_cents: int, tax_rate: Decimal) -> Totals:
    """
    subtotal x tax_rate, rounded half-up to whole cents.

    Example: 100000 cents at 0.05 -> tax 5000, total 105000.
    """
    tax = (Decimal(subtotal_cents) * Decimal(tax_rate)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    tax_cents = int(tax)
    discount_cents = 0
    return Totals(
        subtotal_cents=subtotal_cents,
        tax_amount_cents=tax_cents,
        discount_amount_cents=discount_cents,
        total_amount_cents=subtotal_cents + tax_cents - discount_cents,
    )


@dataclass
class CommitOutcome:
    totals: Totals
    is_direct_billing: bool
    payment_method: str
    lines: tuple[CartLine, ...] = ()
    transaction: Transaction | None = None
    steps: list[SagaStep] = field(default_factory=lambda: [SagaStep(name) for name in STAGES])

    def step(self, name: str) -> SagaStep:
        for step in self.steps:
            if step.name == name:
                return step
        raise KeyError(name)

    @property
    def durable(self) -> bool:
        """True once the header row is committed."""
        return self.step(STAGE_HEADER).status == STEP_COMPLETED

    @property
    def failed_step(self) -> SagaStep | None:
        for step in self.steps:
            if step.status == STEP_FAILED:
                return step
        return None

    @property
    def ok(self) -> bool:
        return self.durable and self.failed_step is None

    @property
    def transaction_id(self) -> int | None:
        return self.transaction.id if self.transaction is not None else None

    @property
    def failure(self) -> PersistenceFailure | None:
        step = self.failed_step
        if step is None:
            return None
        if step.name == STAGE_HEADER:
            message = "Sale was not recorded"
        else:
            message = "Sale recorded, inventory may be inconsistent"
        return PersistenceFailure(
            step.name,
            f"{message}: {step.name} step failed ({step.error})",
            details={"transaction_id": self.transaction_id, "step": step.to_dict()},
            outcome=self,
        )

    def raise_for_failure(self) -> None:
        failure = self.failure
        if failure is not None:
            raise failure

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "durable": self.durable,
            "transaction_id": self.transaction_id,
            "is_direct_billing": self.is_direct_billing,
            "payment_method": self.payment_method,
            "totals": self.totals.to_dict(),
            "steps": [step.to_dict() for step in self.steps],
        }


# =============================================================================
# COMMIT
# =============================================================================

def commit_sale(
    *,
    cart: Cart,
    shop,
    cashier_id: int | None,
    payment_method: str,
    direct_amount_cents: int | None = None,
) -> CommitOutcome:
    """
    Commit a sale: header, then items, then stock, strictly in that order.

    Args:
        cart: Terminal cart (ignored for line items when direct billing)
        shop: Shop row (id + tax_rate)
        cashier_id: Committing actor
        payment_method: cash, card, upi, bank_transfer, other
        direct_amount_cents: Manually entered subtotal (direct billing)

    Returns:
        CommitOutcome (inspect .ok / .failed_step, or call raise_for_failure())

    Raises:
        MissingActorOrShop: No cashier or no shop
        ValidationError: Bad payment method, bad amount, or empty cart
    """
    if cashier_id is None or shop is None or getattr(shop, "id", None) is None:
        raise MissingActorOrShop(
            "Authentication or shop selection error",
            details={"cashier_id": cashier_id, "shop_id": getattr(shop, "id", None)},
        )

    require_choice(payment_method, PAYMENT_METHODS, "payment_method")

    is_direct = direct_amount_cents is not None
    if is_direct:
        if isinstance(direct_amount_cents, bool) or not isinstance(direct_amount_cents, int):
            raise ValidationError("direct_amount_cents must be an integer")
        if direct_amount_cents <= 0:
            raise ValidationError("Direct billing amount must be positive")
        subtotal_cents = direct_amount_cents
        lines: tuple[CartLine, ...] = ()
    else:
        if cart is None or cart.is_empty:
            raise ValidationError("Cannot commit an empty cart without a direct amount")
        lines = tuple(copy.copy(line) for line in cart.lines)
        subtotal_cents = sum(line.line_total_cents for line in lines)

    outcome = CommitOutcome(
        totals=compute_totals(subtotal_cents, shop.tax_rate),
        is_direct_billing=is_direct,
        payment_method=payment_method,
        lines=lines,
    )

    shop_id = shop.id
    _persist_header(outcome, shop_id=shop_id, cashier_id=cashier_id)
    if not outcome.durable:
        outcome.step(STAGE_ITEMS).skip("header not persisted")
        outcome.step(STAGE_STOCK).skip("header not persisted")
        return outcome

    if is_direct:
        outcome.step(STAGE_ITEMS).skip("direct billing")
        outcome.step(STAGE_STOCK).skip("direct billing")
    else:
        _persist_items(outcome)
        if outcome.step(STAGE_ITEMS).status == STEP_COMPLETED:
            _decrement_stock(outcome)
        else:
            outcome.step(STAGE_STOCK).skip("items not persisted")

    if outcome.ok:
        if cart is not None:
            cart.clear()
    else:
        step = outcome.failed_step
        logger.warning(
            "Sale %s recorded but %s step failed: %s",
            outcome.transaction_id, step.name, step.error,
        )

    return outcome


def _persist_header(outcome: CommitOutcome, *, shop_id: int, cashier_id: int) -> None:
    step = outcome.step(STAGE_HEADER)
    totals = outcome.totals

    def _op():
        txn = Transaction(
            shop_id=shop_id,
            cashier_id=cashier_id,
            type="sale",
            status="completed",
            subtotal_cents=totals.subtotal_cents,
            tax_amount_cents=totals.tax_amount_cents,
            discount_amount_cents=totals.discount_amount_cents,
            total_amount_cents=totals.total_amount_cents,
            payment_method=outcome.payment_method,
            is_direct_billing=outcome.is_direct_billing,
        )
        db.session.add(txn)
        db.session.commit()
        return txn

    try:
        txn = run_with_retry(_op, label=f"sale header for shop {shop_id}")
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Sale header insert failed for shop %s: %s", shop_id, exc)
        step.fail(str(exc))
        return

    outcome.transaction = txn
    step.complete(transaction_id=txn.id)


def _persist_items(outcome: CommitOutcome) -> None:
    step = outcome.step(STAGE_ITEMS)
    transaction_id = outcome.transaction.id

    def _op():
        items = [
            TransactionItem(
                transaction_id=transaction_id,
                product_id=line.product_id,
                variant_id=line.variant_id,
                product_name=line.name,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                total_price_cents=line.line_total_cents,
            )
            for line in outcome.lines
        ]
        db.session.add_all(items)
        db.session.commit()
        return items

    try:
        items = run_with_retry(_op, label=f"items for transaction {transaction_id}")
    except SQLAlchemyError as exc:
        db.session.rollback()
        step.fail(str(exc))
        return

    step.complete(item_count=len(items))


def _decrement_stock(outcome: CommitOutcome) -> None:
    """
    Best-effort, per-line stock decrement (floored at zero).

    Each line commits on its own. A failure on one line is recorded and the
    remaining lines still run; earlier decrements are never rolled back.
    """
    step = outcome.step(STAGE_STOCK)
    decremented = []
    failed = []

    for line in outcome.lines:
        def _op(line=line):
            product = db.session.get(Product, line.product_id)
            if product is None:
                return False
            product.stock_quantity = max(0, (product.stock_quantity or 0) - line.quantity)
            db.session.commit()
            return True

        try:
            if not run_with_retry(_op, label=f"stock for product {line.product_id}"):
                failed.append({"product_id": line.product_id, "error": "Product not found"})
                continue
            decremented.append(line.product_id)
        except SQLAlchemyError as exc:
            db.session.rollback()
            failed.append({"product_id": line.product_id, "error": str(exc)})

    if failed:
        step.fail(
            f"{len(failed)} of {len(outcome.lines)} stock updates failed",
            decremented=decremented,
            failed=failed,
        )
    else:
        step.complete(decremented=decremented)


# =============================================================================
# READS / STATUS CORRECTION
# =============================================================================

def get_transaction(transaction_id: int) -> Transaction:
    txn = db.session.get(Transaction, transaction_id)
    if txn is None:
        raise TransactionNotFound(f"Transaction {transaction_id} not found")
    return txn


def list_transaction_items(transaction_id: int) -> list[TransactionItem]:
    return (
        db.session.query(TransactionItem)
        .filter_by(transaction_id=transaction_id)
        .order_by(TransactionItem.id.asc())
        .all()
    )


def correct_transaction_status(transaction_id: int, status: str) -> Transaction:
    """External status correction; the only post-commit mutation allowed."""
    require_choice(status, TRANSACTION_STATUSES, "status")
    txn = get_transaction(transaction_id)
    txn.status = status
    db.session.commit()
    return txn
