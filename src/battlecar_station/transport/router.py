"""Routes outbound frames to the link(s) that reach the addressed car."""

from __future__ import annotations

import logging
import threading
from typing import Sequence

from ..protocol.commands import BROADCAST, TEAMS, Command, CommandEncoder, build_set_rgb
from .serial_link import Transport

logger = logging.getLogger(__name__)


class CommandRouter:
    """Selects which transports receive a frame, based on its team byte.

    Routing, in order:

    1. Team ``0xFF`` goes to every transport.
    2. With a single transport, everything goes to it.
    3. Team N goes to ``transports[N - 1]``. A team with no matching
       transport is broadcast instead of dropped, since the frame may be
       a safety command such as disabling fire.

    Writes are serialized per transport so frames from concurrent
    callers never interleave on the wire.
    """

    def __init__(
        self,
        transports: Sequence[Transport],
        encoder: CommandEncoder | None = None,
    ) -> None:
        self._transports = [t for t in transports if t is not None]
        if not self._transports:
            raise ValueError("At least one transport is required")
        self._locks = [threading.Lock() for _ in self._transports]
        self._encoder = encoder or CommandEncoder()

    @property
    def transports(self) -> list[Transport]:
        return list(self._transports)

    def targets(self, team: int) -> list[int]:
        """Indices of the transports that a frame for ``team`` is written to."""
        everyone = list(range(len(self._transports)))
        if team == BROADCAST or len(self._transports) == 1:
            return everyone
        index = team - 1
        if 0 <= index < len(self._transports):
            return [index]
        logger.warning("No link mapped for team %d, broadcasting", team)
        return everyone

    def send(self, frame: bytes) -> None:
        """Write an encoded frame to the transport(s) for its team byte.

        Raises:
            ConnectionError: If a transport write fails. Remaining
                transports are not attempted.
        """
        if not frame:
            return
        for index in self.targets(frame[0]):
            with self._locks[index]:
                self._transports[index].write(frame)

    def send_command(self, command: Command) -> bytes:
        """Encode and send a Command. Returns the frame that was written."""
        frame = command.to_bytes(self._encoder)
        logger.debug("TX %r -> %s", command, frame.hex(" "))
        self.send(frame)
        return frame

    def set_rgb_all(self, color: int) -> None:
        """Set the same LED color on each team's car, one frame per team."""
        for team in TEAMS:
            self.send_command(build_set_rgb(team, color))
