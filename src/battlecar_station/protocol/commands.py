"""Outbound command opcodes, argument codes, and the command encoder.

Each command is a single frame ``[team, opcode, arg, checksum]``.
Team ``0xFF`` addresses every car.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from ..utils.checksum import Checksum, sum8
from .framing import build_frame

TEAM_1 = 1
TEAM_2 = 2
BROADCAST = 0xFF

TEAMS = (TEAM_1, TEAM_2)


class Opcode(IntEnum):
    """Command identifiers (byte 1 of an outbound frame)."""

    SET_RGB = 0x01
    BEEP = 0x02
    FIREMODE = 0x03


class Color(IntEnum):
    """SET_RGB argument codes."""

    OFF = 0
    GREEN = 1
    YELLOW = 2  # shown as blue on team 2 cars
    RED = 3


class BeepPattern(IntEnum):
    """BEEP argument codes."""

    HIT = 1    # short beep
    DEFEAT = 2  # long beep
    START = 3  # triple chirp


class FireMode(IntEnum):
    """FIREMODE argument codes."""

    DISABLED = 0
    SEMI = 1
    AUTO = 2


# Argument enum per opcode, used to resolve human-readable names
ARGUMENT_CODES: dict[Opcode, type[IntEnum]] = {
    Opcode.SET_RGB: Color,
    Opcode.BEEP: BeepPattern,
    Opcode.FIREMODE: FireMode,
}


class CommandEncoder:
    """Encodes (opcode, team, arg) into a wire frame.

    Pure function of its inputs. Out-of-range values wrap as unsigned
    bytes, matching the firmware.
    """

    def __init__(self, checksum: Checksum = sum8) -> None:
        self._checksum = checksum

    def encode(self, opcode: int, team: int, arg: int) -> bytes:
        return build_frame(team, opcode, arg, self._checksum)


@dataclass(frozen=True)
class Command:
    """Logical outbound instruction prior to encoding."""

    team: int
    opcode: Opcode
    arg: int

    def to_bytes(self, encoder: CommandEncoder | None = None) -> bytes:
        return (encoder or _default_encoder).encode(self.opcode, self.team, self.arg)

    def __repr__(self) -> str:
        target = "ALL" if self.team == BROADCAST else str(self.team)
        codes = ARGUMENT_CODES.get(self.opcode)
        try:
            arg = codes(self.arg).name if codes else str(self.arg)
        except ValueError:
            arg = str(self.arg)
        return f"Command(team={target}, {Opcode(self.opcode).name}, {arg})"


_default_encoder = CommandEncoder()


def build_set_rgb(team: int, color: int) -> Command:
    """Build a SET_RGB command.

    Args:
        team: 1, 2, or ``BROADCAST``.
        color: A ``Color`` code.
    """
    return Command(team=team, opcode=Opcode.SET_RGB, arg=color)


def build_beep(team: int, pattern: int) -> Command:
    """Build a BEEP command for the given ``BeepPattern``."""
    return Command(team=team, opcode=Opcode.BEEP, arg=pattern)


def build_fire_mode(team: int, mode: int) -> Command:
    """Build a FIREMODE command for the given ``FireMode``."""
    return Command(team=team, opcode=Opcode.FIREMODE, arg=mode)


def resolve_argument(opcode: Opcode, name: str) -> int:
    """Look up an argument code by name, e.g. ``(SET_RGB, "green") -> 1``.

    Raises:
        ValueError: If the name is not a known code for the opcode.
    """
    codes = ARGUMENT_CODES[opcode]
    try:
        return codes[name.strip().upper()].value
    except KeyError:
        valid = [c.name.lower() for c in codes]
        raise ValueError(
            f"Unknown {opcode.name} argument '{name}'. Valid: {valid}"
        ) from None


def health_color(hp: int, green_above: int = 60) -> Color:
    """Map a health value to the LED color band shown on the car."""
    if hp <= 0:
        return Color.RED
    if hp > green_above:
        return Color.GREEN
    return Color.YELLOW
