"""Inbound sensor packets sent by the cars."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntFlag

from ..utils.checksum import Checksum, sum8
from .framing import parse_frame

logger = logging.getLogger(__name__)


class PacketFlag(IntFlag):
    """Bits of the inbound flags byte."""

    IR = 0x01     # IR receiver sees a beam (possible hit)
    EDGE = 0x02   # light sensor edge, debug only
    LIGHT = 0x04  # light sensor is bright, i.e. not covered


@dataclass(frozen=True)
class Packet:
    """A validated sensor report from one car."""

    team: int
    flags: int
    value: int

    @property
    def ir(self) -> bool:
        return bool(self.flags & PacketFlag.IR)

    @property
    def edge(self) -> bool:
        return bool(self.flags & PacketFlag.EDGE)

    @property
    def light(self) -> bool:
        return bool(self.flags & PacketFlag.LIGHT)

    @property
    def covered(self) -> bool:
        """True when the light sensor is covered (dark)."""
        return not self.light

    def __repr__(self) -> str:
        return (
            f"Packet(team={self.team}, flags=0b{self.flags & 0x0F:04b}, "
            f"value={self.value})"
        )


class PacketParser:
    """Turns raw 4-byte frames into Packets.

    Corrupted radio frames are routine, so a bad frame is simply dropped:
    ``parse`` returns ``None`` and never raises.
    """

    def __init__(self, checksum: Checksum = sum8) -> None:
        self._checksum = checksum

    def parse(self, data: bytes) -> Packet | None:
        frame = parse_frame(data, self._checksum)
        if frame is None:
            logger.debug("Dropped frame %s", bytes(data or b"").hex(" "))
            return None
        return Packet(team=frame.b0, flags=frame.b1, value=frame.b2)
