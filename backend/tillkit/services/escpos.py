# Overview: ESC/POS byte encoding of rendered receipt lines.

from __future__ import annotations

import unicodedata


ESC = b"\x1b"
GS = b"\x1d"

INIT = ESC + b"@"                 # ESC @  - initialize printer
NORMAL_SIZE = GS + b"!\x00"       # GS ! 0 - normal character size
BOLD_ON = ESC + b"E\x01"
BOLD_OFF = ESC + b"E\x00"
FULL_CUT = GS + b"VA\n"           # GS V A - full cut after feed
LINE_END = b"\r\n"

FEED_LINES = 3

# Glyphs the printer code page lacks but that have a plain spelling
SUBSTITUTIONS = {
    "₹": "Rs",   # Indian rupee sign
    "€": "EUR",
    "£": "GBP",
}


def to_printable(text: str) -> str:
    """Reduce text to 7-bit ASCII (accents decomposed, unknown glyphs dropped)."""
    for glyph, spelling in SUBSTITUTIONS.items():
        text = text.replace(glyph, spelling)
    decomposed = unicodedata.normalize("NFKD", text)
    return decomposed.encode("ascii", "ignore").decode("ascii")


class EscPosEncoder:
    """
    Turns text lines into printer bytes.

    The lines themselves are never re-wrapped or padded here; whatever the
    renderer produced is what prints.
    """

    def __init__(self, *, cut: bool = True, feed_lines: int = FEED_LINES):
        self.cut = cut
        self.feed_lines = feed_lines

    def encode(self, lines, emphasis=frozenset()) -> bytes:
        out = bytearray(INIT + NORMAL_SIZE)
        for index, line in enumerate(lines):
            body = to_printable(line).encode("ascii")
            if index in emphasis:
                out += BOLD_ON + body + BOLD_OFF + LINE_END
            else:
                out += body + LINE_END
        out += LINE_END * self.feed_lines
        if self.cut:
            out += FULL_CUT
        return bytes(out)


def chunk(data: bytes, size: int):
    """Split data into writes of at most `size` bytes (BLE MTU is ~20)."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(data), size):
        yield data[start:start + size]
