"""Field framer for the amplifier's status stream.

The amplifier reports state as ASCII ``key=value`` fields, each terminated
by ``$``. Fields arrive asynchronously and a serial read may return any
slice of the stream::

    read 1: "model=A14$pow"
    read 2: "er=on$volume=0"
    read 3: "45$"

    fields: "model=A14", "power=on", "volume=045"

The framer keeps the unterminated tail of the stream between reads. It
imposes no length limit on that tail: a line that never sends ``$`` grows
the buffer without bound, which is an accepted risk on an untrusted
transport.
"""

from __future__ import annotations

FIELD_TERMINATOR = b"$"
COMMAND_TERMINATOR = "!"
QUERY_TERMINATOR = "?"


class FieldFramer:
    """Splits raw byte chunks into complete ``$``-terminated fields."""

    def __init__(self) -> None:
        self._carry = b""

    @property
    def pending(self) -> bytes:
        """Bytes received after the last terminator."""
        return self._carry

    def feed(self, data: bytes) -> list[str]:
        """Append a chunk and return every field it completes, in order.

        Args:
            data: Raw bytes from the serial line, split anywhere.

        Returns:
            Complete fields without their terminator. Empty fields (two
            terminators in a row) are dropped.
        """
        if not data:
            return []
        pieces = (self._carry + data).split(FIELD_TERMINATOR)
        self._carry = pieces.pop()
        return [
            piece.decode("ascii", errors="replace")
            for piece in pieces
            if piece
        ]

    def reset(self) -> None:
        """Discard any partial field."""
        self._carry = b""
