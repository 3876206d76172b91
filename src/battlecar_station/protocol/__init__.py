"""Protocol layer: 4-byte framing, checksum, sensor packets, and commands."""

from .framing import FRAME_SIZE, build_frame, parse_frame, validate_frame
from .packets import Packet, PacketFlag, PacketParser
from .commands import (
    BROADCAST,
    BeepPattern,
    Color,
    Command,
    CommandEncoder,
    FireMode,
    Opcode,
)
