"""Ingest pipeline: link readers -> bounded frame queue -> decoder -> packet bus."""

from .bus import PacketBus, PacketListener, PacketLogger
from .decoder import PacketDecoder
from .reader import FrameReader
