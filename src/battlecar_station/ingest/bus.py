"""Fan-out of decoded packets to registered listeners."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol, Union

from ..protocol.packets import Packet

logger = logging.getLogger(__name__)


class PacketListener(Protocol):
    def on_packet(self, packet: Packet) -> None: ...


Listener = Union[PacketListener, Callable[[Packet], None]]


class PacketBus:
    """Synchronous publish/subscribe for Packets.

    Listeners are called in registration order on the publishing thread.
    The listener list is copy-on-write: ``publish`` iterates over the
    tuple that was current when it started, so subscribers may be added
    or removed from any thread while a publish is in progress. A listener
    removed mid-publish is skipped if it has not been called yet; one
    added mid-publish first receives the next packet.

    A listener that raises is logged and skipped; delivery continues to
    the rest.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: tuple[Listener, ...] = ()
        self._failures = 0

    @property
    def listeners(self) -> tuple[Listener, ...]:
        return self._listeners

    @property
    def failures(self) -> int:
        """Number of listener calls that raised."""
        return self._failures

    def subscribe(self, listener: Listener) -> None:
        """Register an object with ``on_packet`` or a plain callable."""
        with self._lock:
            self._listeners = self._listeners + (listener,)

    def unsubscribe(self, listener: Listener) -> None:
        """Remove a listener. Unknown listeners are ignored."""
        with self._lock:
            listeners = list(self._listeners)
            if listener in listeners:
                listeners.remove(listener)
                self._listeners = tuple(listeners)

    def publish(self, packet: Packet) -> None:
        for listener in self._listeners:
            if listener not in self._listeners:
                continue
            handler = getattr(listener, "on_packet", listener)
            try:
                handler(packet)
            except Exception:
                with self._lock:
                    self._failures += 1
                logger.exception("Error in packet listener %r", listener)


class PacketLogger:
    """Debug listener that logs every received packet with its flags decoded."""

    def __init__(self, level: int = logging.DEBUG) -> None:
        self._level = level

    def on_packet(self, packet: Packet) -> None:
        logger.log(
            self._level,
            "RX packet: team=%d flags=%s [IR=%s, EDGE=%s, LIGHT=%s] value=%d",
            packet.team,
            format(packet.flags & 0x0F, "04b"),
            packet.ir,
            packet.edge,
            packet.light,
            packet.value,
        )
