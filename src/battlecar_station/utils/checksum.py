"""Frame checksum functions.

A checksum is any callable taking the covered bytes and returning a
single byte value. Parsers and encoders accept one as a parameter so the
algorithm can be swapped without touching the framing code.
"""

from __future__ import annotations

from typing import Callable

Checksum = Callable[[bytes], int]


def sum8(data: bytes) -> int:
    """Sum of all bytes modulo 256.

    This is the algorithm the car firmware uses to verify every frame,
    in both directions.
    """
    return sum(data) & 0xFF


def xor8(data: bytes) -> int:
    """XOR of all bytes, an alternative single-byte checksum."""
    result = 0
    for b in data:
        result ^= b
    return result
