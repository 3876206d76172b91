"""Single decoder task draining the shared frame queue onto the packet bus."""

from __future__ import annotations

import logging
import queue
import threading

from ..config import QUEUE_POLL_INTERVAL
from ..protocol.packets import PacketParser
from .bus import PacketBus

logger = logging.getLogger(__name__)


class PacketDecoder:
    """Takes frames off the queue, parses them, and publishes valid packets.

    There is exactly one decoder per station, so packet delivery to the
    bus is serialized even when several readers feed the queue.
    """

    def __init__(
        self,
        frames: queue.Queue,
        parser: PacketParser,
        bus: PacketBus,
    ) -> None:
        self._frames = frames
        self._parser = parser
        self._bus = bus

        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._accepted = 0
        self._rejected = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def accepted(self) -> int:
        return self._accepted

    @property
    def rejected(self) -> int:
        return self._rejected

    def start(self) -> None:
        if self.is_running:
            logger.warning("Decoder already running")
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self.run, name="PacketDecoder", daemon=True
        )
        self._thread.start()
        logger.info("Decoder started")

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Decoder stopped (accepted=%d, rejected=%d)",
                    self._accepted, self._rejected)

    def run(self) -> None:
        while not self._stop.is_set():
            try:
                frame = self._frames.get(timeout=QUEUE_POLL_INTERVAL)
            except queue.Empty:
                continue
            self.process(frame)

    def process(self, frame: bytes) -> bool:
        """Parse one frame and publish it. Returns True if it was valid."""
        packet = self._parser.parse(frame)
        if packet is None:
            self._rejected += 1
            return False
        self._accepted += 1
        try:
            self._bus.publish(packet)
        except Exception:
            logger.exception("Error while publishing %r", packet)
        return True
