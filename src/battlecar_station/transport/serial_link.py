"""Serial connection to a radio dongle (one per physical link).

Each dongle bridges the station to one or more cars over a half-duplex
radio link. The station only needs raw byte reads and writes; framing
is done by the ingest layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import serial
from serial.tools import list_ports

from ..config import DEFAULT_BAUDRATE, SERIAL_READ_TIMEOUT

logger = logging.getLogger(__name__)


@runtime_checkable
class Transport(Protocol):
    """What the core needs from a byte link.

    ``read`` returns at most ``size`` bytes and may return ``b""`` when
    nothing is available. ``serial.Serial`` satisfies this as-is.
    """

    @property
    def is_open(self) -> bool: ...

    def read(self, size: int = 1) -> bytes: ...

    def write(self, data: bytes) -> int | None: ...


@dataclass
class LinkInfo:
    """A serial port visible to the host."""

    port: str
    description: str = ""
    hwid: str = ""


def list_links() -> list[LinkInfo]:
    """Enumerate serial ports currently available on this host."""
    return [
        LinkInfo(port=p.device, description=p.description or "", hwid=p.hwid or "")
        for p in sorted(list_ports.comports(), key=lambda p: p.device)
    ]


def choose_port(preferred: str | None, available: list[str]) -> str | None:
    """Pick ``preferred`` if present (case-insensitive), else the first available.

    Returns ``preferred`` unchanged when nothing is available, so the open
    error names the port the user asked for.
    """
    if preferred:
        for name in available:
            if name.lower() == preferred.lower():
                return name
    if available:
        return available[0]
    return preferred


class SerialLink:
    """Manages one serial radio link.

    Usage::

        link = SerialLink("/dev/ttyUSB0")
        link.open()
        link.write(frame_bytes)
        data = link.read(4)
        link.close()
    """

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUDRATE,
        timeout: float = SERIAL_READ_TIMEOUT,
    ) -> None:
        if not port:
            raise ValueError("port must not be empty")
        self._port = port
        self._baudrate = baudrate
        self._timeout = timeout
        self._serial: serial.Serial | None = None

    @property
    def port(self) -> str:
        return self._port

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def open(self) -> LinkInfo:
        """Open the port at 8N1 with no flow control.

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        try:
            self._serial = serial.Serial(
                port=self._port,
                baudrate=self._baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self._timeout,
                xonxoff=False,
                rtscts=False,
            )
        except (serial.SerialException, ValueError) as e:
            raise ConnectionError(f"Could not open {self._port}: {e}") from e

        logger.info("Opened %s @ %d 8N1", self._port, self._baudrate)
        return LinkInfo(port=self._port)

    def close(self) -> None:
        """Close the port. Safe to call twice."""
        if self._serial is None:
            return
        try:
            self._serial.close()
        except serial.SerialException as e:
            logger.warning("Error closing %s: %s", self._port, e)
        finally:
            self._serial = None
            logger.info("Closed %s", self._port)

    def read(self, size: int = 1) -> bytes:
        """Read up to ``size`` bytes, waiting at most the read timeout.

        Returns:
            The bytes read, possibly empty.

        Raises:
            ConnectionError: If the link is closed or the read fails.
        """
        if self._serial is None:
            raise ConnectionError(f"{self._port} is not open")
        if size <= 0:
            return b""
        try:
            return self._serial.read(size)
        except serial.SerialException as e:
            raise ConnectionError(f"Read error on {self._port}: {e}") from e

    def write(self, data: bytes) -> int:
        """Write raw bytes.

        Raises:
            ConnectionError: If the link is closed or the write fails.
        """
        if self._serial is None:
            raise ConnectionError(f"{self._port} is not open")
        if not data:
            return 0
        try:
            return self._serial.write(data)
        except serial.SerialException as e:
            raise ConnectionError(f"Write error on {self._port}: {e}") from e

    def __enter__(self) -> SerialLink:
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SerialLink({self._port!r})"
