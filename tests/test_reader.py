"""Tests for the frame reader and packet decoder threads."""

import queue
import time

from battlecar_station.ingest.bus import PacketBus
from battlecar_station.ingest.decoder import PacketDecoder
from battlecar_station.ingest.reader import FrameReader
from battlecar_station.protocol.framing import build_frame
from battlecar_station.protocol.packets import Packet, PacketParser

from conftest import FakeTransport, wait_for

HIT_T1 = bytes([1, 0x05, 0x07, 0x0D])
DARK_T2 = build_frame(2, 0x00, 0x20)


def test_feed_assembles_frames_across_chunks():
    reader = FrameReader(FakeTransport(), queue.Queue())
    assert reader.feed(HIT_T1[:1]) == []
    assert reader.feed(HIT_T1[1:3]) == []
    assert reader.feed(HIT_T1[3:] + DARK_T2[:2]) == [HIT_T1]
    assert reader.feed(DARK_T2[2:]) == [DARK_T2]


def test_feed_does_not_resynchronize():
    """A dropped byte shifts every later frame; nothing realigns it."""
    reader = FrameReader(FakeTransport(), queue.Queue())
    frames = reader.feed(HIT_T1[1:] + DARK_T2 + HIT_T1)
    assert frames == [HIT_T1[1:] + DARK_T2[:1], DARK_T2[1:] + HIT_T1[:1]]


def test_reader_thread_pushes_frames():
    transport = FakeTransport(chunks=[HIT_T1, DARK_T2, HIT_T1])
    frames = queue.Queue()
    reader = FrameReader(transport, frames, name="t", idle_interval=0.001)
    reader.start()
    try:
        assert wait_for(lambda: frames.qsize() == 3)
    finally:
        reader.stop()

    assert [frames.get_nowait() for _ in range(3)] == [HIT_T1, DARK_T2, HIT_T1]
    assert reader.frames_read == 3
    assert not reader.is_running


def test_reader_waits_for_late_bytes():
    transport = FakeTransport()
    frames = queue.Queue()
    reader = FrameReader(transport, frames, idle_interval=0.001)
    reader.start()
    try:
        time.sleep(0.05)
        assert frames.empty()
        transport.feed(HIT_T1[:2])
        time.sleep(0.05)
        assert frames.empty()
        transport.feed(HIT_T1[2:])
        assert wait_for(lambda: frames.qsize() == 1)
    finally:
        reader.stop()


def test_full_queue_blocks_the_reader():
    """Back-pressure: a full queue stops the reader from draining the link."""
    transport = FakeTransport(chunks=[HIT_T1, DARK_T2, HIT_T1])
    frames = queue.Queue(maxsize=1)
    reader = FrameReader(transport, frames, idle_interval=0.001)
    reader.start()
    try:
        assert wait_for(lambda: frames.full())
        # Second frame is read and held while waiting for space; third stays on the link
        assert wait_for(lambda: transport.remaining() == 4)
        time.sleep(0.05)
        assert transport.remaining() == 4
        assert reader.frames_read == 1

        received = [frames.get(timeout=1)]
        received.append(frames.get(timeout=1))
        received.append(frames.get(timeout=1))
    finally:
        reader.stop()

    assert received == [HIT_T1, DARK_T2, HIT_T1]


def test_stop_while_blocked_on_full_queue():
    transport = FakeTransport(chunks=[HIT_T1, DARK_T2])
    frames = queue.Queue(maxsize=1)
    reader = FrameReader(transport, frames, idle_interval=0.001)
    reader.start()
    assert wait_for(lambda: transport.remaining() == 0)
    reader.stop()
    assert not reader.is_running


def test_transport_failure_ends_reader():
    transport = FakeTransport()
    transport.read_error = ConnectionError("Read error on fake")
    reader = FrameReader(transport, queue.Queue())
    reader.start()
    assert wait_for(lambda: not reader.is_running)
    assert isinstance(reader.error, ConnectionError)
    reader.stop()


def test_decoder_process_valid_and_invalid():
    received = []
    bus = PacketBus()
    bus.subscribe(received.append)
    decoder = PacketDecoder(queue.Queue(), PacketParser(), bus)

    assert decoder.process(HIT_T1)
    assert not decoder.process(bytes([1, 5, 7, 0]))
    assert not decoder.process(b"\x01\x02")

    assert received == [Packet(team=1, flags=5, value=7)]
    assert decoder.accepted == 1
    assert decoder.rejected == 2


def test_decoder_thread_drains_queue():
    received = []
    bus = PacketBus()
    bus.subscribe(received.append)
    frames = queue.Queue()
    for frame in (HIT_T1, bytes([9, 9, 9, 9]), DARK_T2):
        frames.put(frame)

    decoder = PacketDecoder(frames, PacketParser(), bus)
    decoder.start()
    try:
        assert wait_for(lambda: len(received) == 2)
    finally:
        decoder.stop()

    assert [p.team for p in received] == [1, 2]
    assert decoder.rejected == 1
    assert not decoder.is_running


def test_two_readers_share_one_queue():
    a = FakeTransport("a", chunks=[HIT_T1] * 5)
    b = FakeTransport("b", chunks=[DARK_T2] * 5)
    frames = queue.Queue(maxsize=4)
    received = []
    bus = PacketBus()
    bus.subscribe(received.append)

    readers = [FrameReader(t, frames, idle_interval=0.001) for t in (a, b)]
    decoder = PacketDecoder(frames, PacketParser(), bus)
    decoder.start()
    for r in readers:
        r.start()
    try:
        assert wait_for(lambda: len(received) == 10)
    finally:
        for r in readers:
            r.stop()
        decoder.stop()

    assert sorted(p.team for p in received) == [1] * 5 + [2] * 5
