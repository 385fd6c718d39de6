# Overview: Byte transports beneath the printer channel (serial/RFCOMM and in-memory).

"""
Printer Transports

A transport only moves bytes: open(), write(), close(). It knows nothing
about receipts or connection state; PrinterChannel owns both.

Bluetooth SPP thermal printers show up as serial ports once paired
(/dev/rfcomm0 on Linux, COMn on Windows), so SerialTransport covers the
wireless printers as well as USB ones.
"""

from __future__ import annotations

import serial
import serial.tools.list_ports


class TransportError(Exception):
    """Raised by transports for any open/write/close failure."""


class PrinterTransport:
    """Base class for byte transports."""

    name: str = "printer"

    def open(self, timeout: float) -> None:
        raise NotImplementedError

    def write(self, data: bytes, timeout: float) -> None:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class SerialTransport(PrinterTransport):
    def __init__(self, port: str, baudrate: int = 9600):
        self.port = port
        self.baudrate = baudrate
        self.name = port
        self._serial: serial.Serial | None = None

    def open(self, timeout: float) -> None:
        try:
            self._serial = serial.Serial(
                self.port,
                baudrate=self.baudrate,
                timeout=timeout,
                write_timeout=timeout,
            )
        except (serial.SerialException, ValueError) as exc:
            self._serial = None
            raise TransportError(f"Cannot open {self.port}: {exc}") from exc

    def write(self, data: bytes, timeout: float) -> None:
        if self._serial is None or not self._serial.is_open:
            raise TransportError(f"{self.port} is not open")
        self._serial.write_timeout = timeout
        try:
            self._serial.write(data)
            self._serial.flush()
        except serial.SerialTimeoutException as exc:
            raise TransportError(f"Write to {self.port} timed out") from exc
        except serial.SerialException as exc:
            raise TransportError(f"Write to {self.port} failed: {exc}") from exc

    def close(self) -> None:
        if self._serial is None:
            return
        try:
            self._serial.close()
        except serial.SerialException as exc:
            raise TransportError(f"Cannot close {self.port}: {exc}") from exc
        finally:
            self._serial = None


class MemoryTransport(PrinterTransport):
    """
    Captures written bytes in memory.

    Used for dry runs and tests; `fail_open` / `fail_write_after` simulate a
    device that cannot pair or that drops mid-print.
    """

    def __init__(self, name: str = "memory", *, fail_open: bool = False, fail_write_after: int | None = None):
        self.name = name
        self.fail_open = fail_open
        self.fail_write_after = fail_write_after
        self.is_open = False
        self.writes: list[bytes] = []
        self.open_count = 0
        self.on_write = None

    @property
    def data(self) -> bytes:
        return b"".join(self.writes)

    def open(self, timeout: float) -> None:
        self.open_count += 1
        if self.fail_open:
            raise TransportError(f"{self.name} did not respond")
        self.is_open = True

    def write(self, data: bytes, timeout: float) -> None:
        if not self.is_open:
            raise TransportError(f"{self.name} is not open")
        if self.fail_write_after is not None and len(self.writes) >= self.fail_write_after:
            raise TransportError(f"{self.name} stopped accepting data")
        self.writes.append(bytes(data))
        if self.on_write is not None:
            self.on_write(len(self.writes))

    def close(self) -> None:
        self.is_open = False


def detect_printer_port() -> str | None:
    """First serial port that looks like a thermal or Bluetooth printer."""
    for port in serial.tools.list_ports.comports():
        description = f"{port.description or ''} {port.device or ''}"
        if any(tag in description for tag in ("Thermal", "Printer", "rfcomm", "Bluetooth", "USB")):
            return port.device
    return None
