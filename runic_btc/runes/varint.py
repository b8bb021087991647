"""Unsigned LEB128 varints as used by the runestone payload.

Every integer in a runestone is a base-128 varint: the low seven bits of each
byte carry data (least significant group first) and the high bit signals
that another byte follows. Values are bounded to 128 bits, so a well-formed
varint is at most 19 bytes long and its final byte may only use the two
lowest data bits.
"""

from __future__ import annotations

from typing import Tuple

U128_MAX = (1 << 128) - 1
MAX_VARINT_LENGTH = 19


class VarintError(ValueError):
    """Raised when a varint cannot be decoded."""

    OVERFLOW = "overflow"
    TRUNCATED = "truncated"

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


def encode_varint(value: int) -> bytes:
    """Encode ``value`` as an unsigned LEB128 varint."""

    if value < 0 or value > U128_MAX:
        raise ValueError(f"varint value out of range: {value}")

    result = bytearray()
    while value >> 7:
        result.append((value & 0x7F) | 0x80)
        value >>= 7
    result.append(value)
    return bytes(result)


def decode_varint(buffer: bytes, offset: int = 0) -> Tuple[int, int]:
    """Decode a varint from ``buffer`` starting at ``offset``.

    Returns a ``(value, consumed)`` tuple. Raises :class:`VarintError` when the
    value does not fit in 128 bits or the buffer ends before the terminating
    byte.
    """

    value = 0
    for index in range(MAX_VARINT_LENGTH):
        position = offset + index
        if position >= len(buffer):
            raise VarintError(VarintError.TRUNCATED, "varint is truncated")

        byte = buffer[position]
        group = byte & 0x7F
        # The 19th byte holds bits 126..132; only the first two fit in 128 bits
        # and no further byte may follow.
        if index == MAX_VARINT_LENGTH - 1 and byte & 0b1111_1100:
            raise VarintError(VarintError.OVERFLOW, "varint exceeds 128 bits")
        value |= group << (7 * index)
        if not byte & 0x80:
            return value, index + 1

    raise VarintError(VarintError.OVERFLOW, "varint is longer than 19 bytes")  # pragma: no cover
