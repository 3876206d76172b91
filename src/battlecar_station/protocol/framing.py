"""Frame builder and validator for the 4-byte radio link frames.

Frame layout (identical in both directions)::

    +--------+--------+--------+----------+
    | byte 0 | byte 1 | byte 2 | checksum |
    +--------+--------+--------+----------+

- Inbound (car -> station): team, flags, sensor value
- Outbound (station -> car): team, opcode, argument
- Checksum: ``sum8`` of bytes 0..2 by default

There is no preamble or sync byte. Readers assume the stream stays
4-byte aligned from the moment the link is opened.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..utils.checksum import Checksum, sum8

FRAME_SIZE = 4
BODY_SIZE = FRAME_SIZE - 1


@dataclass(frozen=True)
class Frame:
    """A checksum-verified frame split into its three body bytes."""

    b0: int
    b1: int
    b2: int

    def __repr__(self) -> str:
        return f"Frame({self.b0:02X} {self.b1:02X} {self.b2:02X})"


def build_frame(b0: int, b1: int, b2: int, checksum: Checksum = sum8) -> bytes:
    """Build a 4-byte frame with a trailing checksum.

    Values outside 0-255 wrap as unsigned bytes, the same way the
    checksum arithmetic wraps.
    """
    body = bytes([b0 & 0xFF, b1 & 0xFF, b2 & 0xFF])
    return body + bytes([checksum(body) & 0xFF])


def validate_frame(data: bytes, checksum: Checksum = sum8) -> bool:
    """Return True if ``data`` is exactly one frame with a matching checksum."""
    if data is None or len(data) != FRAME_SIZE:
        return False
    return (checksum(bytes(data[:BODY_SIZE])) & 0xFF) == data[BODY_SIZE]


def parse_frame(data: bytes, checksum: Checksum = sum8) -> Frame | None:
    """Parse raw bytes into a Frame.

    Returns:
        A ``Frame`` if the length and checksum are valid, otherwise ``None``.
    """
    if not validate_frame(data, checksum):
        return None
    return Frame(b0=data[0], b1=data[1], b2=data[2])
