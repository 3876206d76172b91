"""Background reader that cuts one link's byte stream into 4-byte frames."""

from __future__ import annotations

import logging
import queue
import threading

from ..config import QUEUE_POLL_INTERVAL, READ_IDLE_INTERVAL
from ..protocol.framing import FRAME_SIZE
from ..transport.serial_link import Transport

logger = logging.getLogger(__name__)


class FrameReader:
    """Reads bytes from one transport and pushes whole frames to a queue.

    Bytes are accumulated positionally; every fourth byte completes a
    frame. The protocol has no sync marker, so alignment is assumed from
    the first byte read and is never recovered if a byte is lost.

    When the shared queue is full the reader blocks, which stops it from
    draining the link. Frames are never dropped here.

    Usage::

        frames = queue.Queue(maxsize=512)
        reader = FrameReader(link, frames, name="link-1")
        reader.start()
        ...
        reader.stop()
    """

    def __init__(
        self,
        transport: Transport,
        frames: queue.Queue,
        name: str = "reader",
        idle_interval: float = READ_IDLE_INTERVAL,
    ) -> None:
        self._transport = transport
        self._frames = frames
        self._name = name
        self._idle_interval = idle_interval

        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._buffer = bytearray(FRAME_SIZE)
        self._filled = 0
        self._frames_read = 0
        self.error: Exception | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def frames_read(self) -> int:
        return self._frames_read

    def start(self) -> None:
        """Start reading in a daemon thread."""
        if self.is_running:
            logger.warning("Reader %s already running", self._name)
            return
        self._stop.clear()
        self.error = None
        self._thread = threading.Thread(
            target=self.run, name=f"FrameReader-{self._name}", daemon=True
        )
        self._thread.start()
        logger.info("Reader %s started", self._name)

    def stop(self, timeout: float = 2.0) -> None:
        """Ask the loop to exit and wait for it."""
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Reader %s stopped", self._name)

    def run(self) -> None:
        """Read loop. Exits on ``stop()`` or on a transport failure."""
        try:
            while not self._stop.is_set():
                data = self._transport.read(FRAME_SIZE - self._filled)
                if not data:
                    self._stop.wait(self._idle_interval)
                    continue
                for frame in self.feed(data):
                    if not self._put(frame):
                        return
        except Exception as e:
            self.error = e
            logger.error("Reader %s failed: %s", self._name, e)

    def feed(self, data: bytes) -> list[bytes]:
        """Accumulate ``data`` and return any frames it completed."""
        completed = []
        for b in data:
            self._buffer[self._filled] = b
            self._filled += 1
            if self._filled == FRAME_SIZE:
                completed.append(bytes(self._buffer))
                self._filled = 0
        return completed

    def _put(self, frame: bytes) -> bool:
        """Block until the frame is queued. Returns False if stopped first."""
        while not self._stop.is_set():
            try:
                self._frames.put(frame, timeout=QUEUE_POLL_INTERVAL)
            except queue.Full:
                continue
            self._frames_read += 1
            return True
        return False
