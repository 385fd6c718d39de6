# Overview: Fixed-width receipt rendering; pure mapping from a committed sale to text lines.

"""
Receipt Rendering

WHY: The same committed sale must print the same text every time (reprints
are safe), so rendering is a pure function of its inputs: no clock, no
locale, no database access inside render_receipt().

LAYOUT (fixed order):
    [LOGO]                      modern template with a logo only
    header block                shop name / address / phone / extra lines
    metadata block              date, bill id, cashier (always left)
    divider
    item table                  name | qty | unit price | line total
    divider
    subtotal / tax / total
    divider
    footer block                extra lines, thank-you, visit-again

Money is always "1234.50": two decimals, no thousands separators.
Item names longer than their column are truncated (cosmetic only); numeric
columns are never cut. A row that cannot fit falls back to a two-line form.
"""

from __future__ import annotations

import textwrap
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from ..time_utils import format_receipt_timestamp
from ..validation import ValidationError, require_choice, require_int_range


TEMPLATE_CLASSIC = "classic"
TEMPLATE_MODERN = "modern"
TEMPLATE_COMPACT = "compact"
TEMPLATES = (TEMPLATE_CLASSIC, TEMPLATE_MODERN, TEMPLATE_COMPACT)

ALIGN_LEFT = "left"
ALIGN_CENTER = "center"
ALIGN_RIGHT = "right"
ALIGNMENTS = (ALIGN_LEFT, ALIGN_CENTER, ALIGN_RIGHT)

MIN_PAPER_WIDTH = 24
MAX_PAPER_WIDTH = 48
DEFAULT_PAPER_WIDTH = 35

LOGO_MARKER = "[LOGO]"
DEFAULT_SHOP_NAME = "POS SYSTEM"

QTY_WIDTH = 3
MIN_NAME_WIDTH = 8


@dataclass(frozen=True)
class ReceiptStyleSettings:
    paper_width: int = DEFAULT_PAPER_WIDTH
    template: str = TEMPLATE_CLASSIC
    header_align: str = ALIGN_CENTER
    footer_align: str = ALIGN_CENTER
    shop_name: str | None = None
    address: str | None = None
    phone: str | None = None
    thank_you_text: str = "Thank you for your business!"
    visit_again_text: str = "Visit us again soon."
    bold_shop_name: bool = True
    bold_total: bool = True
    logo_url: str | None = None
    header_lines: tuple[str, ...] = ()
    footer_lines: tuple[str, ...] = ()

    def validate(self) -> "ReceiptStyleSettings":
        require_int_range(self.paper_width, MIN_PAPER_WIDTH, MAX_PAPER_WIDTH, "paper_width")
        require_choice(self.template, TEMPLATES, "template")
        require_choice(self.header_align, ALIGNMENTS, "header_align")
        require_choice(self.footer_align, ALIGNMENTS, "footer_align")
        return self

    def to_dict(self) -> dict:
        return {
            "paper_width": self.paper_width,
            "template": self.template,
            "header_align": self.header_align,
            "footer_align": self.footer_align,
            "shop_name": self.shop_name,
            "address": self.address,
            "phone": self.phone,
            "thank_you_text": self.thank_you_text,
            "visit_again_text": self.visit_again_text,
            "bold_shop_name": self.bold_shop_name,
            "bold_total": self.bold_total,
            "logo_url": self.logo_url,
            "header_lines": list(self.header_lines),
            "footer_lines": list(self.footer_lines),
        }


@dataclass(frozen=True)
class ReceiptItem:
    name: str
    quantity: int
    unit_price_cents: int
    total_price_cents: int


@dataclass(frozen=True)
class ReceiptData:
    subtotal_cents: int
    tax_amount_cents: int
    total_amount_cents: int
    tax_rate: Decimal = Decimal(0)
    items: tuple[ReceiptItem, ...] = ()
    is_direct_billing: bool = False
    shop_name: str | None = None
    address: str | None = None
    phone: str | None = None
    currency_label: str = "Rs"
    bill_id: str | None = None
    cashier: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class RenderedReceipt:
    lines: tuple[str, ...]
    paper_width: int
    # Indexes into `lines` that the printer should emphasise (bold)
    emphasis: frozenset[int] = field(default_factory=frozenset)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def to_dict(self) -> dict:
        return {
            "paper_width": self.paper_width,
            "lines": list(self.lines),
            "emphasis": sorted(self.emphasis),
            "text": self.text,
        }


# =============================================================================
# PRIMITIVES
# =============================================================================

def align(text: str, mode: str, width: int) -> str:
    """
    left: unchanged; center: floor((width - len) / 2) leading spaces;
    right: max(0, width - len) leading spaces. Padding is never negative.
    """
    if mode == ALIGN_RIGHT:
        return " " * max(0, width - len(text)) + text
    if mode == ALIGN_CENTER:
        return " " * max(0, (width - len(text)) // 2) + text
    return text


def format_money(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{whole}.{frac:02d}"


def format_rate_percent(rate: Decimal) -> str:
    """Decimal('0.05') -> '5', Decimal('0.0825') -> '8.25'."""
    percent = (Decimal(rate) * 100).normalize()
    text = format(percent, "f")
    return text


def _wrap(text: str, width: int) -> list[str]:
    return textwrap.wrap(text, width) or [""]


def _split_row(left: str, right: str, width: int) -> str:
    gap = width - len(left) - len(right)
    return left + " " * max(1, gap) + right


def _money_width(width: int) -> int:
    return 8 if width < 40 else 10


def _name_width(width: int) -> int:
    return width - QTY_WIDTH - 2 * _money_width(width) - 3


# =============================================================================
# SECTIONS
# =============================================================================

class _Builder:
    """Collects (text, bold) rows so compact collapsing keeps emphasis indexes right."""

    def __init__(self):
        self.rows: list[tuple[str, bool]] = []

    def add(self, text: str, bold: bool = False) -> None:
        self.rows.append((text, bold))

    def blank(self) -> None:
        self.rows.append(("", False))

    def finish(self, width: int, collapse_blanks: bool) -> RenderedReceipt:
        rows = self.rows
        if collapse_blanks:
            rows = [row for row in rows if row[0].strip()]
        else:
            collapsed: list[tuple[str, bool]] = []
            for row in rows:
                if not row[0].strip() and collapsed and not collapsed[-1][0].strip():
                    continue
                collapsed.append(row)
            rows = collapsed
        lines = tuple(text.rstrip() if not text.strip() else text for text, _ in rows)
        emphasis = frozenset(i for i, (_, bold) in enumerate(rows) if bold)
        return RenderedReceipt(lines=lines, paper_width=width, emphasis=emphasis)


def _header(b: _Builder, data: ReceiptData, style: ReceiptStyleSettings, width: int) -> None:
    mode = style.header_align
    shop_name = style.shop_name or data.shop_name or DEFAULT_SHOP_NAME
    for part in _wrap(shop_name, width):
        b.add(align(part, mode, width), bold=style.bold_shop_name)

    extras = [style.address or data.address, style.phone or data.phone]
    extras.extend(line.strip() for line in style.header_lines)
    for text in extras:
        if text and text.strip():
            for part in _wrap(text.strip(), width):
                b.add(align(part, mode, width))


def _metadata(b: _Builder, data: ReceiptData, width: int) -> None:
    rows = [
        f"Date : {format_receipt_timestamp(data.created_at)}",
        f"Bill#: {data.bill_id or ''}",
        f"Cashier: {data.cashier or 'Staff'}",
    ]
    for row in rows:
        for part in _wrap(row, width):
            b.add(part)


def _item_rows(b: _Builder, data: ReceiptData, width: int) -> None:
    money_w = _money_width(width)
    name_w = _name_width(width)
    columnar = name_w >= MIN_NAME_WIDTH

    if columnar:
        b.add(
            "Item".ljust(name_w)
            + " " + "Qty".rjust(QTY_WIDTH)
            + " " + "Price".rjust(money_w)
            + " " + "Total".rjust(money_w)
        )
    else:
        b.add(_split_row("Item  Qty x Price", "Total", width))
    b.add("-" * width)

    if data.is_direct_billing:
        b.add(_split_row("Direct billing", format_money(data.subtotal_cents), width))
        return

    for item in data.items:
        qty = str(item.quantity)
        price = format_money(item.unit_price_cents)
        total = format_money(item.total_price_cents)
        if columnar:
            row = (
                item.name[:name_w].ljust(name_w)
                + " " + qty.rjust(QTY_WIDTH)
                + " " + price.rjust(money_w)
                + " " + total.rjust(money_w)
            )
            if len(row) <= width:
                b.add(row)
                continue
        # Two-line form: name, then "  qty x price ...... total"
        b.add(item.name[:width])
        b.add(_split_row(f"  {qty} x {price}", total, width))


def _totals(b: _Builder, data: ReceiptData, style: ReceiptStyleSettings, width: int) -> None:
    currency = data.currency_label
    rows = [
        ("Subtotal", data.subtotal_cents, False),
        (f"Tax {format_rate_percent(data.tax_rate)}%", data.tax_amount_cents, False),
        ("TOTAL", data.total_amount_cents, style.bold_total),
    ]
    for label, cents, bold in rows:
        amount = f"{currency} {format_money(cents)}" if currency else format_money(cents)
        b.add(_split_row(label, amount, width), bold=bold)


def _footer(b: _Builder, style: ReceiptStyleSettings, width: int) -> None:
    mode = style.footer_align
    texts = [line.strip() for line in style.footer_lines]
    texts.extend([style.thank_you_text, style.visit_again_text])
    for text in texts:
        if text and text.strip():
            for part in _wrap(text.strip(), width):
                b.add(align(part, mode, width))


# =============================================================================
# RENDER
# =============================================================================

def render_receipt(data: ReceiptData, style: ReceiptStyleSettings) -> RenderedReceipt:
    """
    Render a committed sale as fixed-width lines.

    Raises:
        ValidationError: paper_width outside [24, 48], unknown template or
        alignment (never clamped)
    """
    style.validate()
    width = style.paper_width
    divider = "-" * width

    b = _Builder()
    if style.template == TEMPLATE_MODERN and style.logo_url:
        b.add(LOGO_MARKER)
    _header(b, data, style, width)
    b.blank()
    _metadata(b, data, width)
    b.blank()
    b.add(divider)
    _item_rows(b, data, width)
    b.add(divider)
    _totals(b, data, style, width)
    b.add(divider)
    b.blank()
    _footer(b, style, width)

    return b.finish(width, collapse_blanks=style.template == TEMPLATE_COMPACT)


# =============================================================================
# BUILDERS (committed records -> ReceiptData)
# =============================================================================

def receipt_from_transaction(transaction, items, shop=None, cashier_name: str | None = None) -> ReceiptData:
    """Build receipt input from persisted Transaction + TransactionItem rows (reprint path)."""
    if transaction is None:
        raise ValidationError("transaction is required")
    return ReceiptData(
        subtotal_cents=transaction.subtotal_cents,
        tax_amount_cents=transaction.tax_amount_cents,
        total_amount_cents=transaction.total_amount_cents,
        tax_rate=_effective_rate(transaction.subtotal_cents, transaction.tax_amount_cents, shop),
        items=tuple(
            ReceiptItem(
                name=item.product_name,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                total_price_cents=item.total_price_cents,
            )
            for item in items
        ),
        is_direct_billing=bool(transaction.is_direct_billing),
        shop_name=getattr(shop, "name", None),
        address=getattr(shop, "address", None),
        phone=getattr(shop, "phone", None),
        currency_label=getattr(shop, "currency_label", None) or "Rs",
        bill_id=str(transaction.id),
        cashier=cashier_name or f"#{transaction.cashier_id}",
        created_at=transaction.created_at,
    )


def receipt_from_outcome(outcome, shop, cashier_name: str | None = None) -> ReceiptData:
    """
    Build receipt input from a commit outcome.

    Uses the cart snapshots carried by the outcome, so the receipt is complete
    even when the items step failed after the header was recorded.
    """
    if not outcome.durable:
        raise ValidationError("Cannot print a receipt for a sale that was not recorded")
    txn = outcome.transaction
    totals = outcome.totals
    return ReceiptData(
        subtotal_cents=totals.subtotal_cents,
        tax_amount_cents=totals.tax_amount_cents,
        total_amount_cents=totals.total_amount_cents,
        tax_rate=shop.tax_rate,
        items=tuple(
            ReceiptItem(
                name=line.name,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                total_price_cents=line.line_total_cents,
            )
            for line in outcome.lines
        ),
        is_direct_billing=outcome.is_direct_billing,
        shop_name=shop.name,
        address=shop.address,
        phone=shop.phone,
        currency_label=shop.currency_label or "Rs",
        bill_id=str(txn.id),
        cashier=cashier_name or f"#{txn.cashier_id}",
        created_at=txn.created_at,
    )


def _effective_rate(subtotal_cents: int, tax_cents: int, shop) -> Decimal:
    # The shop's rate may have changed since the sale; prefer what was charged.
    if shop is not None and getattr(shop, "tax_rate", None) is not None:
        rate = Decimal(shop.tax_rate)
        if (Decimal(subtotal_cents) * rate).quantize(Decimal(1), rounding=ROUND_HALF_UP) == tax_cents:
            return rate
    if not subtotal_cents:
        return Decimal(0)
    return (Decimal(tax_cents) / Decimal(subtotal_cents)).quantize(Decimal("0.0001"))
