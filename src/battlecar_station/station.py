"""Base station assembly: links, ingest pipeline, match engine, and router.

Data flow::

    link -> FrameReader --\
    link -> FrameReader ----> frame queue -> PacketDecoder -> PacketBus -> MatchEngine
                                                                               |
    link <- CommandRouter <----------------------------------------------------+
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Sequence

from .config import ENGINE_TICK_INTERVAL, StationConfig
from .engine.match import GameStateListener, MatchEngine
from .ingest.bus import PacketBus, PacketLogger
from .ingest.decoder import PacketDecoder
from .ingest.reader import FrameReader
from .protocol.packets import PacketParser
from .transport.router import CommandRouter
from .transport.serial_link import SerialLink, Transport, choose_port, list_links

logger = logging.getLogger(__name__)


class BaseStation:
    """Runs the whole pipeline for one or more links.

    Usage::

        station = BaseStation.open(["/dev/ttyUSB0", "/dev/ttyUSB1"])
        station.engine.add_listener(scoreboard)
        station.start()
        ...
        station.close()

    Link ``i`` carries team ``i + 1`` when more than one link is open.
    """

    def __init__(
        self,
        transports: Sequence[Transport],
        config: StationConfig | None = None,
        engine: MatchEngine | None = None,
    ) -> None:
        self.config = config or StationConfig()
        self.transports = list(transports)
        self.frames: queue.Queue = queue.Queue(maxsize=self.config.queue_capacity)

        self.parser = PacketParser()
        self.bus = PacketBus()
        self.router = CommandRouter(self.transports)
        self.engine = engine or MatchEngine(self.router, settings=self.config.match)

        self.readers = [
            FrameReader(
                transport,
                self.frames,
                name=getattr(transport, "port", f"link-{i + 1}"),
                idle_interval=self.config.read_idle_interval,
            )
            for i, transport in enumerate(self.transports)
        ]
        self.decoder = PacketDecoder(self.frames, self.parser, self.bus)

        self.bus.subscribe(PacketLogger())
        self.bus.subscribe(self.engine)

        self._stop = threading.Event()
        self._ticker: threading.Thread | None = None

    @classmethod
    def open(
        cls,
        ports: Sequence[str] | None = None,
        config: StationConfig | None = None,
    ) -> BaseStation:
        """Open serial links and build a station over them.

        With no ports given, the configured ports are used; failing that,
        the first available serial port.

        Raises:
            ConnectionError: If any link cannot be opened. Links opened
                before the failure are closed again.
        """
        config = config or StationConfig()
        names = list(ports or config.ports)
        if not names:
            chosen = choose_port(None, [info.port for info in list_links()])
            if chosen is None:
                raise ConnectionError("No serial links available")
            names = [chosen]

        links: list[SerialLink] = []
        try:
            for name in names:
                link = SerialLink(name, baudrate=config.baudrate)
                link.open()
                links.append(link)
        except Exception:
            for link in links:
                link.close()
            raise

        return cls(links, config=config)

    @property
    def is_running(self) -> bool:
        return self.decoder.is_running

    def add_listener(self, listener: GameStateListener) -> None:
        self.engine.add_listener(listener)

    def start(self) -> None:
        """Start decoder, one reader per link, and the engine ticker."""
        if self.is_running:
            logger.warning("Station already running")
            return
        self._stop.clear()
        self.decoder.start()
        for reader in self.readers:
            reader.start()
        self._ticker = threading.Thread(
            target=self._tick_loop, name="EngineTicker", daemon=True
        )
        self._ticker.start()
        logger.info("Station started with %d link(s)", len(self.transports))

    def stop(self) -> None:
        """Stop all threads. Links stay open."""
        self._stop.set()
        for reader in self.readers:
            reader.stop()
        self.decoder.stop()
        if self._ticker:
            self._ticker.join(timeout=2.0)
            self._ticker = None
        logger.info("Station stopped")

    def close(self) -> None:
        """Stop threads and close every link that supports closing."""
        self.stop()
        for transport in self.transports:
            close = getattr(transport, "close", None)
            if close is not None:
                close()

    def errors(self) -> dict[str, str]:
        """Reader failures by link name. Empty while all links are healthy."""
        return {r.name: str(r.error) for r in self.readers if r.error is not None}

    def stats(self) -> dict:
        return {
            "frames_read": {r.name: r.frames_read for r in self.readers},
            "packets_accepted": self.decoder.accepted,
            "frames_rejected": self.decoder.rejected,
            "listener_failures": self.bus.failures,
            "queued": self.frames.qsize(),
        }

    def _tick_loop(self) -> None:
        while not self._stop.wait(ENGINE_TICK_INTERVAL):
            try:
                self.engine.tick()
            except Exception:
                logger.exception("Engine tick failed")

    def __enter__(self) -> BaseStation:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
