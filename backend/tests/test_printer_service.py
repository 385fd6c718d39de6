import pytest

from tillkit.services.escpos import (
    BOLD_OFF,
    BOLD_ON,
    FULL_CUT,
    INIT,
    NORMAL_SIZE,
    EscPosEncoder,
    chunk,
    to_printable,
)
from tillkit.services.printer_service import (
    STATE_CONNECTED,
    STATE_CONNECTING,
    STATE_DISCONNECTED,
    STATE_PRINTING,
    DeviceUnavailable,
    DeviceWriteFailure,
    PrinterBusy,
    PrinterChannel,
)
from tillkit.services.printer_transports import MemoryTransport, TransportError
from tillkit.services.receipt_service import RenderedReceipt


RECEIPT = RenderedReceipt(
    lines=(
        "      Corner Store",
        "Widget          2   100.00   200.00",
        "TOTAL                     Rs 210.00",
    ),
    paper_width=35,
    emphasis=frozenset({0, 2}),
)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def transport():
    return MemoryTransport("TP-58")


@pytest.fixture
def channel(transport):
    return PrinterChannel(transport, chunk_size=20)


def test_print_while_disconnected_raises_and_keeps_state(channel, transport):
    with pytest.raises(DeviceUnavailable):
        channel.print(RECEIPT)
    assert channel.state == STATE_DISCONNECTED
    assert transport.writes == []


def test_connect_requires_user_action(channel, transport):
    with pytest.raises(DeviceUnavailable):
        channel.connect(user_initiated=False)
    assert transport.open_count == 0
    assert channel.state == STATE_DISCONNECTED


def test_connect_failure_returns_to_disconnected_without_retry():
    transport = MemoryTransport("TP-58", fail_open=True)
    channel = PrinterChannel(transport)

    with pytest.raises(DeviceUnavailable):
        channel.connect()

    assert channel.state == STATE_DISCONNECTED
    assert transport.open_count == 1
    assert "did not respond" in channel.last_error


def test_connect_timeout_returns_to_disconnected():
    clock = FakeClock()

    class SlowTransport(MemoryTransport):
        def open(self, timeout):
            clock.advance(timeout + 1)
            super().open(timeout)

    transport = SlowTransport("slow")
    channel = PrinterChannel(transport, connect_timeout=5, clock=clock)

    with pytest.raises(DeviceUnavailable):
        channel.connect()

    assert channel.state == STATE_DISCONNECTED
    assert not transport.is_open


def test_print_writes_encoded_receipt_in_chunks(channel, transport):
    channel.connect()
    written = channel.print(RECEIPT)

    expected = EscPosEncoder().encode(RECEIPT.lines, RECEIPT.emphasis)
    assert transport.data == expected
    assert written == len(expected)
    assert all(len(piece) <= 20 for piece in transport.writes)
    assert channel.state == STATE_CONNECTED


def test_state_change_events(channel):
    seen = []
    unsubscribe = channel.on_state_change(lambda old, new: seen.append((old, new)))

    channel.connect()
    channel.print(RECEIPT)
    unsubscribe()
    channel.disconnect()

    assert seen == [
        (STATE_DISCONNECTED, STATE_CONNECTING),
        (STATE_CONNECTING, STATE_CONNECTED),
        (STATE_CONNECTED, STATE_PRINTING),
        (STATE_PRINTING, STATE_CONNECTED),
    ]


def test_reprint_sends_identical_bytes(channel, transport):
    channel.connect()
    channel.print(RECEIPT)
    first = transport.data
    transport.writes.clear()

    channel.print(RECEIPT)

    assert transport.data == first


def test_disconnect_mid_print_fails_the_print(channel, transport):
    channel.connect()

    def _drop_after_second_chunk(count):
        if count == 2:
            channel.disconnect()

    transport.on_write = _drop_after_second_chunk

    with pytest.raises(DeviceWriteFailure) as exc:
        channel.print(RECEIPT)

    assert channel.state == STATE_DISCONNECTED
    assert len(transport.writes) == 2
    assert exc.value.details["bytes_written"] == 40


def test_device_lost_mid_print(channel, transport):
    channel.connect()
    transport.on_write = lambda count: channel.device_lost("Link lost")

    with pytest.raises(DeviceWriteFailure):
        channel.print(RECEIPT)

    assert channel.state == STATE_DISCONNECTED
    assert channel.last_error == "Print cancelled: printer disconnected"


def test_write_failure_drops_connection():
    transport = MemoryTransport("TP-58", fail_write_after=1)
    channel = PrinterChannel(transport, chunk_size=20)
    channel.connect()

    with pytest.raises(DeviceWriteFailure):
        channel.print(RECEIPT)

    assert channel.state == STATE_DISCONNECTED
    assert not transport.is_open


def test_second_print_while_printing_is_rejected(channel, transport):
    channel.connect()
    rejected = []

    def _print_again(count):
        if count == 1:
            try:
                channel.print(RECEIPT)
            except PrinterBusy as exc:
                rejected.append(exc)

    transport.on_write = _print_again
    channel.print(RECEIPT)

    assert len(rejected) == 1
    assert channel.state == STATE_CONNECTED
    assert transport.data == EscPosEncoder().encode(RECEIPT.lines, RECEIPT.emphasis)


def test_write_timeout_returns_to_disconnected(transport):
    clock = FakeClock()
    channel = PrinterChannel(transport, write_timeout=2.5, chunk_size=20, clock=clock)
    channel.connect()
    transport.on_write = lambda count: clock.advance(1)

    with pytest.raises(DeviceWriteFailure):
        channel.print(RECEIPT)

    assert channel.state == STATE_DISCONNECTED
    assert len(transport.writes) == 3


def test_connect_is_idempotent_when_connected(channel, transport):
    channel.connect()
    channel.connect()
    assert transport.open_count == 1


def test_print_accepts_plain_text(channel, transport):
    channel.connect()
    channel.print("hello\nworld")
    assert b"hello\r\nworld\r\n" in transport.data


def test_encoder_layout():
    data = EscPosEncoder().encode(["Shop", "Item"], emphasis={0})
    assert data.startswith(INIT + NORMAL_SIZE)
    assert BOLD_ON + b"Shop" + BOLD_OFF + b"\r\n" in data
    assert data.endswith(b"\r\n" * 3 + FULL_CUT)

    uncut = EscPosEncoder(cut=False).encode(["Item"])
    assert not uncut.endswith(FULL_CUT)


def test_to_printable():
    assert to_printable("₹ 210.00") == "Rs 210.00"
    assert to_printable("Café Crème") == "Cafe Creme"
    assert to_printable("Tea ☕") == "Tea "


def test_chunk():
    assert list(chunk(b"abcdefg", 3)) == [b"abc", b"def", b"g"]
    with pytest.raises(ValueError):
        list(chunk(b"abc", 0))


def test_unexpected_write_error_returns_to_disconnected():
    class BrokenTransport(MemoryTransport):
        def write(self, data, timeout):
            raise RuntimeError("driver bug")

    channel = PrinterChannel(BrokenTransport("TP-58"))
    channel.connect()

    with pytest.raises(DeviceWriteFailure):
        channel.print(RECEIPT)

    assert channel.state == STATE_DISCONNECTED
    # Not stuck in `printing`: a fresh connect and print work again
    channel.transport = MemoryTransport("TP-58")
    channel.connect()
    assert channel.print(RECEIPT) > 0


def test_unexpected_open_error_returns_to_disconnected():
    class BrokenTransport(MemoryTransport):
        def open(self, timeout):
            raise RuntimeError("driver bug")

    channel = PrinterChannel(BrokenTransport("TP-58"))

    with pytest.raises(DeviceUnavailable):
        channel.connect()

    assert channel.state == STATE_DISCONNECTED
    assert channel.last_error == "driver bug"


def test_failing_listener_does_not_strand_the_channel(channel, transport):
    def _explode(old, new):
        raise ValueError("listener bug")

    channel.on_state_change(_explode)
    channel.connect()
    channel.print(RECEIPT)

    assert channel.state == STATE_CONNECTED
    assert transport.data == EscPosEncoder().encode(RECEIPT.lines, RECEIPT.emphasis)


def test_stale_print_failure_leaves_new_connection_alone():
    class ReconnectingTransport(MemoryTransport):
        stalled = False

        def write(self, data, timeout):
            if not self.stalled:
                self.stalled = True
                # User disconnects and reconnects while this write is stuck
                channel.disconnect()
                channel.connect()
                raise TransportError("late error from old write")
            super().write(data, timeout)

    transport = ReconnectingTransport("TP-58")
    channel = PrinterChannel(transport)
    channel.connect()

    with pytest.raises(DeviceWriteFailure):
        channel.print(RECEIPT)

    assert channel.state == STATE_CONNECTED
    assert channel.last_error is None
    assert transport.is_open
    assert channel.print(RECEIPT) > 0


def test_cancelled_print_keeps_new_connection_error_clear(transport):
    clock = FakeClock()
    channel = PrinterChannel(transport, write_timeout=0.5, chunk_size=20, clock=clock)
    channel.connect()

    def _reconnect_then_stall(count):
        if count == 1:
            channel.disconnect()
            channel.connect()
            clock.advance(5)

    transport.on_write = _reconnect_then_stall

    with pytest.raises(DeviceWriteFailure):
        channel.print(RECEIPT)

    assert channel.state == STATE_CONNECTED
    assert channel.last_error is None
