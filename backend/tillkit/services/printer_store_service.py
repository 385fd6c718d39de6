# Overview: Remembered printer per terminal, reconnected only on operator request.

"""
Printer Store Service

After a successful pairing the port is remembered for the terminal, so the
operator can reconnect with one action instead of picking the device again.

RULES:
- A port is remembered only after the channel reached `connected`.
- `connect_stored()` makes exactly one attempt and only when user initiated.
  There is no background reconnect.
- A failed reconnect keeps the stored row; `clear_stored_printer()` forgets it.
"""

from __future__ import annotations

import logging

from flask import current_app

from ..extensions import db
from ..models import StoredPrinter
from ..time_utils import utcnow
from ..validation import ValidationError
from .printer_service import DeviceUnavailable, PrinterChannel
from .printer_transports import SerialTransport


logger = logging.getLogger(__name__)


class NoStoredPrinter(DeviceUnavailable):
    """Raised when a terminal has no remembered printer to reconnect to."""


def _require_text(value, field: str, max_length: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", details={"field": field})
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters", details={"field": field})
    return value


def get_stored_printer(terminal_id: str) -> StoredPrinter | None:
    terminal_id = _require_text(terminal_id, "terminal_id", 64)
    return db.session.query(StoredPrinter).filter_by(terminal_id=terminal_id).one_or_none()


def remember_printer(terminal_id: str, port: str, *, baudrate: int = 9600, device_name: str | None = None) -> StoredPrinter:
    """Create or replace the terminal's remembered printer."""
    terminal_id = _require_text(terminal_id, "terminal_id", 64)
    port = _require_text(port, "port", 255)

    row = get_stored_printer(terminal_id)
    if row is None:
        row = StoredPrinter(terminal_id=terminal_id)
        db.session.add(row)
    row.port = port
    row.baudrate = int(baudrate)
    row.device_name = (device_name or port)[:120]
    row.last_connected_at = utcnow()
    db.session.commit()
    return row


def clear_stored_printer(terminal_id: str) -> bool:
    """Forget the terminal's printer. Returns False when nothing was stored."""
    row = get_stored_printer(terminal_id)
    if row is None:
        return False
    db.session.delete(row)
    db.session.commit()
    logger.info("Forgot stored printer %s for terminal %s", row.port, terminal_id)
    return True


def connect_port(
    terminal_id: str,
    port: str,
    *,
    baudrate: int | None = None,
    user_initiated: bool = True,
    transport_factory=SerialTransport,
) -> PrinterChannel:
    """
    Connect a channel to `port` and remember it for the terminal on success.

    Raises:
        DeviceUnavailable: not user initiated, or the device did not open
        ValidationError: blank terminal id or port
    """
    terminal_id = _require_text(terminal_id, "terminal_id", 64)
    port = _require_text(port, "port", 255)
    if not user_initiated:
        raise DeviceUnavailable("Printer pairing must be started by a user action")

    if baudrate is None:
        baudrate = current_app.config.get("PRINTER_BAUDRATE", 9600)
    channel = PrinterChannel.from_config(transport_factory(port, baudrate=baudrate), current_app.config)
    channel.connect(user_initiated=True)

    remember_printer(terminal_id, port, baudrate=baudrate, device_name=channel.device_name)
    logger.info("Terminal %s connected to printer on %s", terminal_id, port)
    return channel


def connect_stored(terminal_id: str, *, user_initiated: bool = True, transport_factory=SerialTransport) -> PrinterChannel:
    """
    Reconnect to the terminal's remembered printer with a single attempt.

    Raises:
        NoStoredPrinter: nothing remembered for this terminal
        DeviceUnavailable: not user initiated, or the device did not open
    """
    if not user_initiated:
        raise DeviceUnavailable("Printer reconnect must be started by a user action")

    stored = get_stored_printer(terminal_id)
    if stored is None:
        raise NoStoredPrinter(
            f"No stored printer for terminal {terminal_id}",
            details={"terminal_id": terminal_id},
        )

    try:
        return connect_port(
            terminal_id,
            stored.port,
            baudrate=stored.baudrate,
            transport_factory=transport_factory,
        )
    except DeviceUnavailable as exc:
        logger.warning("Stored printer %s for terminal %s did not connect: %s", stored.port, terminal_id, exc)
        raise
