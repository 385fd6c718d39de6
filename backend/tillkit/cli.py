# Overview: Flask CLI command groups for bootstrap, demo data, and receipt preview.

# backend/tillkit/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to tillkit (PowerShell: $env:FLASK_APP="tillkit").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Create a demo shop with a few products (idempotent by shop name).
#
# Receipts:
# - python -m flask receipts preview --shop-id 1 [--width 32] [--template compact]
#   Render a sample receipt with the shop's saved style.
# - python -m flask receipts show 42
#   Render the stored receipt for transaction 42.
# - python -m flask receipts print 42 [--port /dev/rfcomm0]
#   Print the stored receipt for transaction 42. Without --port the terminal's
#   remembered printer is used, then auto-detection.
#
# Printer (per terminal, TILLKIT_TERMINAL_ID):
# - python -m flask printer connect [--port /dev/rfcomm0]
#   Connect once and remember the port (remembered port when omitted).
# - python -m flask printer show
#   Show the remembered printer.
# - python -m flask printer forget
#   Forget the remembered printer.
# - python -m flask printer ports
#   List serial ports that may be printers.

import dataclasses

import click
import serial.tools.list_ports
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Shop, Product, ProductVariant
from .services import receipt_service, receipt_style_service
from .services.printer_service import PrinterError
from .services.printer_store_service import (
    clear_stored_printer,
    connect_port,
    connect_stored,
    get_stored_printer,
)
from .services.printer_transports import SerialTransport, detect_printer_port
from .services.terminal_session import TerminalSession
from .services.checkout_service import TransactionNotFound, compute_totals
from .validation import ValidationError
from .time_utils import utcnow


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema ready")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("This deletes every sale and product. Continue?", abort=True)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@system_group.command('seed-demo')
@click.option('--shop-name', default='Demo Shop', help='Shop name')
@click.option('--tax-rate-bps', default=500, type=int, help='Tax rate in basis points (500 = 5%)')
@with_appcontext
def seed_demo(shop_name, tax_rate_bps):
    """Create a demo shop with products and one variant product."""
    shop = db.session.query(Shop).filter_by(name=shop_name).first()
    if shop:
        click.echo(f"WARN  Shop '{shop_name}' already exists (ID: {shop.id}), skipping...")
        return

    shop = Shop(name=shop_name, address="12 Market Road", phone="+91 98765 43210", tax_rate_bps=tax_rate_bps)
    db.session.add(shop)
    db.session.flush()

    products = [
        Product(shop_id=shop.id, name="Widget", sku="WID-001", price_cents=10000, stock_quantity=50, min_stock_level=5),
        Product(shop_id=shop.id, name="Masala Chai", sku="CHAI-001", price_cents=2000, stock_quantity=200, min_stock_level=20),
        Product(shop_id=shop.id, name="T-Shirt", sku="TSH-001", price_cents=49900, stock_quantity=30, has_variants=True),
    ]
    db.session.add_all(products)
    db.session.flush()

    tshirt = products[2]
    db.session.add_all([
        ProductVariant(product_id=tshirt.id, name="Size", value="M", price_modifier_cents=0, stock_quantity=15),
        ProductVariant(product_id=tshirt.id, name="Size", value="XL", price_modifier_cents=5000, stock_quantity=15),
    ])
    db.session.commit()
    click.echo(f"PASS Created shop '{shop.name}' (ID: {shop.id}) with {len(products)} products")


@click.group('receipts')
def receipts_group():
    """Receipt rendering and printing commands."""


@receipts_group.command('preview')
@click.option('--shop-id', type=int, required=True, help='Shop ID')
@click.option('--width', type=int, help='Override paper width (24-48)')
@click.option('--template', type=click.Choice(list(receipt_service.TEMPLATES)), help='Override template')
@with_appcontext
def preview_receipt(shop_id, width, template):
    """Render a sample receipt using the shop's saved style."""
    shop = db.session.get(Shop, shop_id)
    if not shop:
        raise click.ClickException(f"Shop {shop_id} not found")

    style = receipt_style_service.get_style_settings(shop_id)
    overrides = {}
    if width is not None:
        overrides["paper_width"] = width
    if template:
        overrides["template"] = template
    if overrides:
        style = dataclasses.replace(style, **overrides)

    totals = compute_totals(20000, shop.tax_rate)
    data = receipt_service.ReceiptData(
        subtotal_cents=totals.subtotal_cents,
        tax_amount_cents=totals.tax_amount_cents,
        total_amount_cents=totals.total_amount_cents,
        tax_rate=shop.tax_rate,
        items=(receipt_service.ReceiptItem("Sample", 2, 10000, 20000),),
        shop_name=shop.name,
        address=shop.address,
        phone=shop.phone,
        currency_label=shop.currency_label or "Rs",
        bill_id="PREVIEW",
        cashier="Staff",
        created_at=utcnow(),
    )
    try:
        receipt = receipt_service.render_receipt(data, style)
    except ValidationError as e:
        raise click.ClickException(str(e))
    click.echo(receipt.text)


@receipts_group.command('show')
@click.argument('transaction_id', type=int)
@with_appcontext
def show_receipt(transaction_id):
    """Render the stored receipt for a transaction."""
    try:
        receipt = _session_for(transaction_id).render_transaction(transaction_id)
    except TransactionNotFound as e:
        raise click.ClickException(str(e))
    click.echo(receipt.text)


@receipts_group.command('print')
@click.argument('transaction_id', type=int)
@click.option('--port', help='Serial port, e.g. /dev/rfcomm0 or COM5 (remembered or auto-detected when omitted)')
@with_appcontext
def print_receipt(transaction_id, port):
    """Print the stored receipt for a transaction (explicit user action)."""
    try:
        session = _session_for(transaction_id)
    except TransactionNotFound as e:
        raise click.ClickException(str(e))

    terminal_id = _terminal_id()
    try:
        if port:
            printer = connect_port(terminal_id, port, transport_factory=_transport_factory())
        elif get_stored_printer(terminal_id) is not None:
            printer = connect_stored(terminal_id, transport_factory=_transport_factory())
        else:
            port = detect_printer_port()
            if not port:
                raise click.ClickException("No printer port found; pass --port")
            printer = connect_port(terminal_id, port, transport_factory=_transport_factory())
    except PrinterError as e:
        raise click.ClickException(f"Print failed: {e}")

    session.printer = printer
    try:
        session.reprint(transaction_id)
        click.echo(f"PASS Printed receipt for transaction {transaction_id} on {printer.device_name}")
    except PrinterError as e:
        raise click.ClickException(f"Print failed: {e}")
    finally:
        printer.disconnect()


@click.group('printer')
def printer_group():
    """Remembered printer commands for this terminal."""


@printer_group.command('connect')
@click.option('--port', help='Serial port to pair with (remembered port when omitted)')
@with_appcontext
def connect_printer(port):
    """Connect once to check the printer and remember its port."""
    terminal_id = _terminal_id()
    try:
        if port:
            printer = connect_port(terminal_id, port, transport_factory=_transport_factory())
        else:
            printer = connect_stored(terminal_id, transport_factory=_transport_factory())
    except PrinterError as e:
        raise click.ClickException(f"Connect failed: {e}")
    printer.disconnect()
    click.echo(f"PASS Printer on {printer.device_name} connected and remembered for terminal {terminal_id}")


@printer_group.command('show')
@with_appcontext
def show_printer():
    """Show the remembered printer for this terminal."""
    stored = get_stored_printer(_terminal_id())
    if stored is None:
        click.echo(f"No printer remembered for terminal {_terminal_id()}")
        return
    click.echo(f"{stored.port} ({stored.device_name}, {stored.baudrate} baud), last connected {stored.to_dict()['last_connected_at']}")


@printer_group.command('forget')
@with_appcontext
def forget_printer():
    """Forget the remembered printer for this terminal."""
    terminal_id = _terminal_id()
    if clear_stored_printer(terminal_id):
        click.echo(f"PASS Forgot printer for terminal {terminal_id}")
    else:
        click.echo(f"WARN  No printer remembered for terminal {terminal_id}")


@printer_group.command('ports')
def list_ports():
    """List serial ports (paired Bluetooth printers show up here)."""
    guess = detect_printer_port()
    ports = serial.tools.list_ports.comports()
    if not ports:
        click.echo("No serial ports found")
        return
    for port in ports:
        marker = "*" if port.device == guess else " "
        click.echo(f"{marker} {port.device:<20} {port.description}")


def _terminal_id() -> str:
    return current_app.config.get("TERMINAL_ID", "default")


def _transport_factory():
    # Tests swap in memory transports through config
    return current_app.config.get("PRINTER_TRANSPORT_FACTORY") or SerialTransport


def _session_for(transaction_id: int, printer=None) -> TerminalSession:
    from .services.checkout_service import get_transaction
    txn = get_transaction(transaction_id)
    return TerminalSession(shop_id=txn.shop_id, cashier_id=txn.cashier_id, printer=printer)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(receipts_group)
    app.cli.add_command(printer_group)
