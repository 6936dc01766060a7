"""Rotel amplifier RS232 control engine."""

from .amplifier import Amplifier, Status
from .exceptions import (
    BatchParseError,
    ChannelBlockedError,
    RotelError,
    RotelParseError,
    RotelPreconditionError,
    RotelRangeError,
    RotelTransportError,
    UnexpectedResponseError,
    UnknownSourceError,
)
from .models import ErrorEvent, Event, Flag, Power, Source, Speaker, State, StateChanged
from .protocol.commands import Command, Query
from .transport.serial_connection import SerialConfig

__all__ = [
    "Amplifier",
    "Status",
    "BatchParseError",
    "ChannelBlockedError",
    "RotelError",
    "RotelParseError",
    "RotelPreconditionError",
    "RotelRangeError",
    "RotelTransportError",
    "UnexpectedResponseError",
    "UnknownSourceError",
    "ErrorEvent",
    "Event",
    "Flag",
    "Power",
    "Source",
    "Speaker",
    "State",
    "StateChanged",
    "Command",
    "Query",
    "SerialConfig",
]
