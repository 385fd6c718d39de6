from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from tillkit.services import receipt_service
from tillkit.services.receipt_service import (
    LOGO_MARKER,
    ReceiptData,
    ReceiptItem,
    ReceiptStyleSettings,
    align,
    format_money,
    format_rate_percent,
    render_receipt,
)
from tillkit.validation import ValidationError


def _widget_sale(**overrides):
    data = dict(
        subtotal_cents=20000,
        tax_amount_cents=1000,
        total_amount_cents=21000,
        tax_rate=Decimal("0.05"),
        items=(ReceiptItem("Widget", 2, 10000, 20000),),
        shop_name="Corner Store",
        address="1 Main Street",
        phone="555-0100",
        currency_label="Rs",
        bill_id="17",
        cashier="Asha",
        created_at=datetime(2026, 3, 14, 9, 30),
    )
    data.update(overrides)
    return ReceiptData(**data)


def test_align_modes():
    assert align("TEST", "center", 10) == "   TEST"
    assert align("TEST", "right", 10) == "      TEST"
    assert align("TEST", "left", 10) == "TEST"
    # Never negative padding
    assert align("LONGER THAN WIDTH", "center", 4) == "LONGER THAN WIDTH"
    assert align("LONGER THAN WIDTH", "right", 4) == "LONGER THAN WIDTH"


def test_format_helpers():
    assert format_money(21000) == "210.00"
    assert format_money(5) == "0.05"
    assert format_money(-150) == "-1.50"
    assert format_rate_percent(Decimal("0.05")) == "5"
    assert format_rate_percent(Decimal("0.0825")) == "8.25"


def test_widget_receipt_rows():
    receipt = render_receipt(_widget_sale(), ReceiptStyleSettings(paper_width=35))

    item_row = (
        "Widget".ljust(13)
        + " " + "2".rjust(3)
        + " " + "100.00".rjust(8)
        + " " + "200.00".rjust(8)
    )
    assert item_row in receipt.lines

    total_row = "TOTAL" + " " * (35 - len("TOTAL") - len("Rs 210.00")) + "Rs 210.00"
    assert total_row in receipt.lines
    assert receipt.lines.index(total_row) in receipt.emphasis

    assert any(line.startswith("Tax 5%") and line.endswith("Rs 10.00") for line in receipt.lines)
    assert any(line.startswith("Subtotal") and line.endswith("Rs 200.00") for line in receipt.lines)
    assert "Date : 2026-03-14 09:30" in receipt.lines
    assert "Bill#: 17" in receipt.lines
    assert "Cashier: Asha" in receipt.lines


def test_shop_name_centered_and_bold():
    receipt = render_receipt(_widget_sale(), ReceiptStyleSettings(paper_width=35))
    assert receipt.lines[0] == align("Corner Store", "center", 35)
    assert 0 in receipt.emphasis

    plain = render_receipt(_widget_sale(), ReceiptStyleSettings(paper_width=35, bold_shop_name=False, bold_total=False))
    assert plain.emphasis == frozenset()


def test_style_overrides_shop_details():
    style = ReceiptStyleSettings(shop_name="Branded Name", header_lines=("GSTIN 123",), footer_lines=("No returns",))
    receipt = render_receipt(_widget_sale(), style)
    text = receipt.text
    assert "Branded Name" in text
    assert "Corner Store" not in text
    assert "GSTIN 123" in text
    assert "No returns" in text


def test_missing_shop_name_uses_default():
    receipt = render_receipt(_widget_sale(shop_name=None), ReceiptStyleSettings())
    assert receipt.lines[0].strip() == receipt_service.DEFAULT_SHOP_NAME


@pytest.mark.parametrize("width", [24, 32, 35, 42, 48])
def test_every_line_fits_paper_width(width):
    long_item = ReceiptItem("Extra Large Organic Basmati Rice Bag", 12, 123456, 1481472)
    data = _widget_sale(
        items=(long_item, ReceiptItem("Widget", 2, 10000, 20000)),
        address="Shop 4, Very Long Market Complex Road, Near The Old Bus Stand",
    )
    receipt = render_receipt(data, ReceiptStyleSettings(paper_width=width))
    assert receipt.paper_width == width
    for line in receipt.lines:
        assert len(line) <= width, line


@pytest.mark.parametrize("width", [23, 49, 0])
def test_paper_width_out_of_range_is_rejected(width):
    with pytest.raises(ValidationError):
        render_receipt(_widget_sale(), ReceiptStyleSettings(paper_width=width))


def test_unknown_template_is_rejected():
    with pytest.raises(ValidationError):
        render_receipt(_widget_sale(), ReceiptStyleSettings(template="fancy"))


def test_rendering_is_deterministic():
    style = ReceiptStyleSettings(paper_width=32, template="modern", logo_url="https://example.com/logo.png")
    assert render_receipt(_widget_sale(), style) == render_receipt(_widget_sale(), style)


def test_compact_has_no_blank_lines():
    receipt = render_receipt(_widget_sale(), ReceiptStyleSettings(template="compact"))
    assert all(line.strip() for line in receipt.lines)

    classic = render_receipt(_widget_sale(), ReceiptStyleSettings(template="classic"))
    assert any(not line.strip() for line in classic.lines)
    assert len(classic.lines) > len(receipt.lines)


def test_compact_keeps_emphasis_on_total():
    receipt = render_receipt(_widget_sale(), ReceiptStyleSettings(template="compact"))
    total_index = next(i for i, line in enumerate(receipt.lines) if line.startswith("TOTAL"))
    assert total_index in receipt.emphasis


def test_logo_marker_only_for_modern_with_logo():
    modern = render_receipt(_widget_sale(), ReceiptStyleSettings(template="modern", logo_url="logo.png"))
    assert modern.lines[0] == LOGO_MARKER

    no_logo = render_receipt(_widget_sale(), ReceiptStyleSettings(template="modern"))
    assert LOGO_MARKER not in no_logo.lines

    classic = render_receipt(_widget_sale(), ReceiptStyleSettings(template="classic", logo_url="logo.png"))
    assert LOGO_MARKER not in classic.lines


def test_direct_billing_has_single_row():
    data = _widget_sale(
        items=(),
        is_direct_billing=True,
        subtotal_cents=100000,
        tax_amount_cents=5000,
        total_amount_cents=105000,
    )
    receipt = render_receipt(data, ReceiptStyleSettings())
    rows = [line for line in receipt.lines if line.startswith("Direct billing")]
    assert len(rows) == 1
    assert rows[0].endswith("1000.00")
    assert any(line.startswith("TOTAL") and line.endswith("Rs 1050.00") for line in receipt.lines)


def test_narrow_paper_uses_two_line_items():
    receipt = render_receipt(_widget_sale(), ReceiptStyleSettings(paper_width=24))
    index = receipt.lines.index("Widget")
    assert receipt.lines[index + 1].startswith("  2 x 100.00")
    assert receipt.lines[index + 1].endswith("200.00")


def test_receipt_from_transaction_prefers_charged_rate():
    txn = SimpleNamespace(
        id=5,
        cashier_id=3,
        subtotal_cents=20000,
        tax_amount_cents=1000,
        total_amount_cents=21000,
        is_direct_billing=False,
        created_at=datetime(2026, 1, 1, 12, 0),
    )
    items = [SimpleNamespace(product_name="Widget", quantity=2, unit_price_cents=10000, total_price_cents=20000)]
    # Shop rate changed to 8% after the sale
    shop = SimpleNamespace(name="Corner Store", address=None, phone=None, currency_label="Rs", tax_rate=Decimal("0.08"))

    data = receipt_service.receipt_from_transaction(txn, items, shop)

    assert data.tax_rate == Decimal("0.0500")
    assert data.bill_id == "5"
    assert data.cashier == "#3"
    assert data.items[0].name == "Widget"
