"""Decode big-endian holding-register buffers into floats, integers and ASCII strings."""

import struct
from typing import Sequence

from .errors import DecodeError

_FLOAT32 = struct.Struct(">f")
_UINT16 = struct.Struct(">H")
_INT64 = struct.Struct(">q")


def _unpack(fmt: struct.Struct, buf: bytes, offset: int) -> tuple:
    if offset < 0 or offset + fmt.size > len(buf):
        raise DecodeError(
            f"Buffer too short: need {fmt.size} bytes at offset {offset}, have {len(buf)}"
        )
    return fmt.unpack_from(buf, offset)


def registers_to_bytes(registers: Sequence[int]) -> bytes:
    """Pack 16-bit register words (as returned by pymodbus) into a big-endian byte buffer."""
    return struct.pack(f">{len(registers)}H", *registers)


def decode_float32_be(buf: bytes, offset: int = 0) -> float:
    """IEEE-754 single precision, big-endian (two registers)."""
    return _unpack(_FLOAT32, buf, offset)[0]


def decode_uint16_be(buf: bytes, offset: int = 0) -> int:
    return _unpack(_UINT16, buf, offset)[0]


def decode_scaled_int64_be(buf: bytes, offset: int = 0, divisor: float = 1000) -> float:
    """
    Signed 64-bit big-endian integer (four registers) divided by divisor.
    Energy counters are stored in Wh; the default divisor yields kWh.
    """
    return _unpack(_INT64, buf, offset)[0] / divisor


def decode_fixed_ascii(buf: bytes) -> str:
    """
    Decode a fixed-length, NUL-padded ASCII field.

    Stops at the first zero byte; other bytes pass through unchanged (latin-1,
    so nothing can fail to decode). Leading and trailing whitespace is trimmed.
    """
    end = buf.find(b"\x00")
    if end >= 0:
        buf = buf[:end]
    return buf.decode("latin-1").strip()
