# Overview: Printer connection state machine; streams rendered receipts to a transport.

"""
Printer Channel

STATES:
    disconnected -> connecting -> connected -> (printing -> connected) -> disconnected

RULES:
- connect() must come from an explicit user action (wireless pairing is
  user-gesture gated on the platforms we run on). No automatic retry.
- print() is only valid from `connected`. From `disconnected` it raises
  DeviceUnavailable and leaves the state alone.
- One print at a time: a second print() while `printing` is rejected with
  PrinterBusy. Requests are never queued or interleaved.
- disconnect() / device_lost() force `disconnected` from any state. A print
  in flight then fails with DeviceWriteFailure; it is never silently dropped.
- Connect and write timeouts, and any adapter error, resolve back to
  `disconnected`. A failure from a print that was superseded by a
  disconnect/reconnect never touches the newer connection.

Printing is a side effect of a committed sale, never a precondition: none of
these errors touch the Transaction. The payload is the rendered receipt, so
printing it again produces the same bytes.
"""

from __future__ import annotations

import logging
import threading
import time

from .escpos import EscPosEncoder, chunk
from .printer_transports import PrinterTransport


logger = logging.getLogger(__name__)


STATE_DISCONNECTED = "disconnected"
STATE_CONNECTING = "connecting"
STATE_CONNECTED = "connected"
STATE_PRINTING = "printing"


class PrinterError(Exception):
    """Base class for printer channel errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class DeviceUnavailable(PrinterError):
    """No usable connection (not connected, pairing refused, connect timeout)."""


class PrinterBusy(DeviceUnavailable):
    """Another connect or print is already in progress on this channel."""


class DeviceWriteFailure(PrinterError):
    """Bytes could not be delivered (write error, timeout, or cancelled by disconnect)."""


def _payload_lines(payload):
    """RenderedReceipt, a list of lines, or a plain string -> (lines, emphasis)."""
    lines = getattr(payload, "lines", None)
    if lines is not None:
        return tuple(lines), frozenset(getattr(payload, "emphasis", frozenset()))
    if isinstance(payload, str):
        return tuple(payload.split("\n")), frozenset()
    if isinstance(payload, (list, tuple)):
        return tuple(str(line) for line in payload), frozenset()
    raise TypeError(f"Unsupported print payload: {type(payload).__name__}")


class PrinterChannel:
    def __init__(
        self,
        transport: PrinterTransport,
        *,
        encoder: EscPosEncoder | None = None,
        connect_timeout: float = 10.0,
        write_timeout: float = 15.0,
        chunk_size: int = 20,
        clock=time.monotonic,
    ):
        self.transport = transport
        self.encoder = encoder or EscPosEncoder()
        self.connect_timeout = connect_timeout
        self.write_timeout = write_timeout
        self.chunk_size = chunk_size
        self._clock = clock

        self._lock = threading.RLock()
        self._state = STATE_DISCONNECTED
        # Bumped on every forced disconnect; in-flight work compares against it
        self._generation = 0
        self._listeners = []
        self.last_error: str | None = None

    @classmethod
    def from_config(cls, transport: PrinterTransport, config) -> "PrinterChannel":
        return cls(
            transport,
            connect_timeout=config.get("PRINTER_CONNECT_TIMEOUT", 10.0),
            write_timeout=config.get("PRINTER_WRITE_TIMEOUT", 15.0),
            chunk_size=config.get("PRINTER_CHUNK_SIZE", 20),
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state in (STATE_CONNECTED, STATE_PRINTING)

    @property
    def device_name(self) -> str:
        return getattr(self.transport, "name", "printer")

    def on_state_change(self, callback):
        """Register callback(old_state, new_state). Returns an unsubscribe function."""
        self._listeners.append(callback)

        def _unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)
        return _unsubscribe

    def _set_state(self, new_state: str) -> None:
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        logger.info("Printer %s: %s -> %s", self.device_name, old_state, new_state)
        for callback in list(self._listeners):
            try:
                callback(old_state, new_state)
            except Exception:
                # A broken listener must not strand the channel mid-transition
                logger.exception("Printer state listener failed on %s -> %s", old_state, new_state)

    def _drop(self, reason: str) -> None:
        with self._lock:
            self._generation += 1
            self.last_error = reason
            try:
                self.transport.close()
            except Exception as exc:
                logger.warning("Printer %s did not close cleanly: %s", self.device_name, exc)
            self._set_state(STATE_DISCONNECTED)

    def _drop_if_current(self, generation: int, reason: str) -> bool:
        """Drop only the connection `generation` belongs to; a newer one is left alone."""
        with self._lock:
            if self._generation != generation:
                return False
            self._drop(reason)
            return True

    def to_dict(self) -> dict:
        return {
            "device_name": self.device_name,
            "state": self._state,
            "connected": self.is_connected,
            "last_error": self.last_error,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self, *, user_initiated: bool = True) -> None:
        """
        Open the device.

        Raises:
            DeviceUnavailable: not user initiated, open failed, or timed out
            PrinterBusy: a connect or print is already running
        """
        if not user_initiated:
            raise DeviceUnavailable("Printer pairing must be started by a user action")

        with self._lock:
            if self._state == STATE_CONNECTED:
                return
            if self._state in (STATE_CONNECTING, STATE_PRINTING):
                raise PrinterBusy(f"Printer is {self._state}", details={"state": self._state})
            self._generation += 1
            generation = self._generation
            self._set_state(STATE_CONNECTING)

        started = self._clock()
        try:
            self.transport.open(timeout=self.connect_timeout)
        except Exception as exc:
            with self._lock:
                if self._generation == generation:
                    self.last_error = str(exc)
                    self._set_state(STATE_DISCONNECTED)
            logger.warning("Printer %s connect failed: %s", self.device_name, exc)
            raise DeviceUnavailable(
                f"Could not connect to {self.device_name}: {exc}",
                details={"device": self.device_name},
            ) from exc

        with self._lock:
            if self._generation != generation:
                try:
                    self.transport.close()
                except Exception as exc:
                    logger.warning("Printer %s did not close cleanly: %s", self.device_name, exc)
                raise DeviceUnavailable("Connection cancelled by disconnect")
            if self._clock() - started > self.connect_timeout:
                self._drop(f"Connect timed out after {self.connect_timeout}s")
                raise DeviceUnavailable(
                    f"Connecting to {self.device_name} timed out",
                    details={"timeout": self.connect_timeout},
                )
            self.last_error = None
            self._set_state(STATE_CONNECTED)

    def disconnect(self) -> None:
        """Force `disconnected` from any state (user action or teardown)."""
        with self._lock:
            if self._state == STATE_DISCONNECTED:
                return
            self._drop("Disconnected")
            self.last_error = None

    def device_lost(self, reason: str = "Printer disconnected") -> None:
        """Platform reported the link as gone."""
        logger.warning("Printer %s lost: %s", self.device_name, reason)
        self._drop(reason)

    # ------------------------------------------------------------------
    # Printing
    # ------------------------------------------------------------------

    def print(self, payload) -> int:
        """
        Send a rendered receipt (or lines) to the printer.

        Returns:
            Number of bytes written

        Raises:
            DeviceUnavailable: not connected (state unchanged)
            PrinterBusy: another print is in flight
            DeviceWriteFailure: write error, timeout, or disconnect mid-print
        """
        lines, emphasis = _payload_lines(payload)
        data = self.encoder.encode(lines, emphasis)

        with self._lock:
            if self._state == STATE_PRINTING:
                raise PrinterBusy("A print is already in progress", details={"state": self._state})
            if self._state != STATE_CONNECTED:
                raise DeviceUnavailable(
                    "Printer not connected",
                    details={"state": self._state},
                )
            generation = self._generation
            self._set_state(STATE_PRINTING)

        deadline = self._clock() + self.write_timeout
        written = 0
        try:
            for piece in chunk(data, self.chunk_size):
                self._ensure_not_cancelled(generation, written, len(data))
                remaining = deadline - self._clock()
                if remaining <= 0:
                    self._drop_if_current(generation, f"Print timed out after {self.write_timeout}s")
                    raise DeviceWriteFailure(
                        "Print timed out",
                        details={"bytes_written": written, "bytes_total": len(data)},
                    )
                self.transport.write(piece, timeout=remaining)
                written += len(piece)
            self._ensure_not_cancelled(generation, written, len(data))
        except DeviceWriteFailure:
            raise
        except Exception as exc:
            # Any adapter error ends this print; a stale one never touches a newer connection
            if not self._drop_if_current(generation, str(exc)):
                logger.warning("Ignoring failure from a superseded print on %s: %s", self.device_name, exc)
            raise DeviceWriteFailure(
                f"Print failed: {exc}",
                details={"bytes_written": written, "bytes_total": len(data)},
            ) from exc

        with self._lock:
            if self._generation == generation:
                self._set_state(STATE_CONNECTED)
        return written

    def _ensure_not_cancelled(self, generation: int, written: int, total: int) -> None:
        with self._lock:
            if self._generation == generation:
                return
            message = "Print cancelled: printer disconnected"
            if self._state == STATE_DISCONNECTED:
                self.last_error = message
        raise DeviceWriteFailure(
            message,
            details={"bytes_written": written, "bytes_total": total},
        )
