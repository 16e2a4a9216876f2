"""Length-prefixed framing for the subscriber stream.

Wire format: ``[length:2][payload]`` where ``length`` is an unsigned
16-bit little-endian integer.

Reads are described as *read plans*: generators that yield how many
bytes they need next and receive exactly those bytes back. The plans do
no I/O themselves, so one plan serves both the blocking and the async
reader.

Examples
--------
>>> plan = frame_plan()
>>> next(plan)
2
>>> plan.send(b"\\x05\\x00")
5
>>> try:
...     plan.send(b"HELLO")
... except StopIteration as stop:
...     stop.value
b'HELLO'
"""

from __future__ import annotations

import struct
from collections.abc import Generator

__all__ = [
    "HEADER_FORMAT",
    "HEADER_SIZE",
    "MAX_FRAME_SIZE",
    "ReadPlan",
    "check_length",
    "decode_header",
    "encode_frame",
    "encode_header",
    "exact_plan",
    "frame_plan",
]

HEADER_FORMAT = "<H"
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
MAX_FRAME_SIZE = 0xFFFF

_header = struct.Struct(HEADER_FORMAT)

type ReadPlan[T] = Generator[int, bytes, T]


def check_length(length: int) -> int:
    """Return *length* if it fits the 16-bit length field.

    Raises
    ------
    ValueError
        If *length* is negative or larger than ``MAX_FRAME_SIZE``.
    """
    if not 0 <= length <= MAX_FRAME_SIZE:
        msg = f"frame length must be 0-{MAX_FRAME_SIZE}, got {length}"
        raise ValueError(msg)
    return length


def encode_header(length: int) -> bytes:
    return _header.pack(check_length(length))


def decode_header(header: bytes) -> int:
    if len(header) != HEADER_SIZE:
        msg = f"header must be {HEADER_SIZE} bytes, got {len(header)}"
        raise ValueError(msg)
    return _header.unpack(header)[0]


def encode_frame(payload: bytes) -> bytes:
    """Prefix *payload* with its length, the way a publisher sends it.

    Examples
    --------
    >>> encode_frame(b"HELLO")
    b'\\x05\\x00HELLO'
    """
    return encode_header(len(payload)) + payload


def frame_plan() -> ReadPlan[bytes]:
    """Read the 2-byte header, then the payload it announces."""
    header = yield HEADER_SIZE
    payload = yield decode_header(header)
    return payload


def exact_plan(length: int) -> ReadPlan[bytes]:
    """Read *length* payload bytes with no header."""
    payload = yield check_length(length)
    return payload
