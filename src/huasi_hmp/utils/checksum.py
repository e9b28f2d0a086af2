"""XOR checksum used by the HUASI text protocol.

The checksum is a single byte: every byte of the command body XORed
together. On the wire it is rendered as two uppercase hex digits.
"""

from __future__ import annotations

from functools import reduce

from ..errors import InvalidInputError


def checksum(data: bytes) -> bytes:
    """XOR-reduce ``data`` into a one-byte buffer.

    An empty input reduces to ``b"\\x00"``.
    """
    return bytes([reduce(lambda acc, byte: acc ^ byte, data, 0)])


def checksum_hex(value: bytes) -> str:
    """Render the first byte of a checksum buffer as ``"0A"``-style hex.

    A zero byte is a legitimate XOR result and renders as ``"00"``.

    Raises:
        InvalidInputError: If ``value`` is empty.
    """
    if not value:
        raise InvalidInputError("Checksum buffer is empty")
    return f"{value[0]:02X}"
