"""Tests for 4-byte frame building and validation."""

from battlecar_station.protocol.framing import (
    FRAME_SIZE,
    Frame,
    build_frame,
    parse_frame,
    validate_frame,
)
from battlecar_station.utils.checksum import sum8, xor8


def test_build_frame_size():
    """Every built frame must be exactly 4 bytes."""
    assert len(build_frame(1, 2, 3)) == FRAME_SIZE


def test_build_frame_layout():
    frame = build_frame(0xFF, 0x03, 0x00)
    assert frame == bytes([0xFF, 0x03, 0x00, 0x02])


def test_build_frame_truncates_out_of_range_values():
    """Values wrap as unsigned bytes, like the checksum arithmetic."""
    frame = build_frame(256 + 1, -1, 300)
    assert frame[:3] == bytes([1, 255, 44])
    assert frame[3] == (1 + 255 + 44) % 256


def test_validate_accepts_built_frames():
    for b0 in range(0, 256, 51):
        for b1 in range(0, 256, 37):
            for b2 in range(0, 256, 29):
                assert validate_frame(build_frame(b0, b1, b2))


def test_validate_rejects_wrong_length():
    assert not validate_frame(b"")
    assert not validate_frame(bytes([1, 5, 7]))
    assert not validate_frame(bytes([1, 5, 7, 13, 0]))
    assert not validate_frame(None)


def test_validate_rejects_bad_checksum():
    assert not validate_frame(bytes([1, 5, 7, 14]))


def test_parse_frame_fields():
    frame = parse_frame(bytes([1, 5, 7, 13]))
    assert frame == Frame(b0=1, b1=5, b2=7)


def test_parse_frame_invalid_returns_none():
    assert parse_frame(bytes([1, 5, 7, 0])) is None


def test_alternate_checksum_is_pluggable():
    frame = build_frame(1, 3, 0, checksum=xor8)
    assert frame[3] == 0x02
    assert validate_frame(frame, checksum=xor8)
    assert not validate_frame(frame, checksum=sum8)


def test_frame_repr():
    assert repr(Frame(b0=0xFF, b1=1, b2=3)) == "Frame(FF 01 03)"
