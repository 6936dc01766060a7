"""Exceptions for the Rotel RS232 engine."""

from __future__ import annotations


class RotelError(Exception):
    """Base exception for the Rotel engine."""


class RotelTransportError(RotelError, ConnectionError):
    """Opening, reading or writing the serial handle failed."""


class RotelParseError(RotelError):
    """A status field from the amplifier could not be decoded."""


class UnexpectedResponseError(RotelParseError):
    """A field did not match the response grammar or its value domain."""

    def __init__(self, field: str, reason: str = "unexpected response") -> None:
        super().__init__(f"{reason}: {field!r}")
        self.field = field


class BatchParseError(RotelParseError):
    """One or more fields in a read batch could not be decoded."""

    def __init__(self, errors: list[RotelParseError]) -> None:
        super().__init__("; ".join(str(e) for e in errors))
        self.errors = errors


class RotelRangeError(RotelError, ValueError):
    """A value is outside the domain the amplifier accepts."""


class UnknownSourceError(RotelRangeError):
    """The input source has no wire token."""


class RotelPreconditionError(RotelError):
    """The amplifier is not in a state that accepts the request."""


class ChannelBlockedError(RotelError):
    """A subscriber queue is full and the event was dropped."""
