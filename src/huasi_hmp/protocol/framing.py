"""Frame builder for HUASI text commands.

Frame layout::

    +-----+----------------------+-----+----------+-------+
    |  $  |        Body          |  *  | Checksum | CR LF |
    | 1 B |  ASCII, comma-joined | 1 B | 2 hex ch |  2 B  |
    +-----+----------------------+-----+----------+-------+

- Body: ``HUASI,<GET|SET|OK>,...`` command tokens
- Checksum: XOR of the body bytes only, two uppercase hex digits
"""

from __future__ import annotations

from ..errors import InvalidInputError
from ..utils.checksum import checksum, checksum_hex

FRAME_START = b"$"
CHECKSUM_SEPARATOR = b"*"
FRAME_END = b"\r\n"
ENCODING = "ascii"

# Bytes that would make the frame ambiguous if they appeared in a body
RESERVED_BYTES = frozenset(FRAME_START + CHECKSUM_SEPARATOR + FRAME_END)


def build_frame(body: str) -> bytes:
    """Wrap a command body into a ready-to-send frame.

    Args:
        body: The comma-joined command string, e.g. ``"HUASI,GET,DATE"``.

    Returns:
        ``b"$" + body + b"*" + checksum + b"\\r\\n"``.

    Raises:
        InvalidInputError: If the body is empty, not ASCII, or contains
            a framing delimiter.
    """
    if not body:
        raise InvalidInputError("Command body is empty")
    try:
        raw = body.encode(ENCODING)
    except UnicodeEncodeError as e:
        raise InvalidInputError(f"Command body must be ASCII: {body!r}") from e
    if RESERVED_BYTES.intersection(raw):
        raise InvalidInputError(
            f"Command body contains a framing delimiter: {body!r}"
        )

    checksum_text = checksum_hex(checksum(raw)).encode(ENCODING)
    return FRAME_START + raw + CHECKSUM_SEPARATOR + checksum_text + FRAME_END
