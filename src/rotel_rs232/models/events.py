"""Events emitted by the engine to its subscribers."""

from __future__ import annotations

from dataclasses import dataclass

from .state import Flag, State


@dataclass(frozen=True)
class Event:
    """Base class for engine events."""


@dataclass(frozen=True)
class StateChanged(Event):
    """One parse batch changed at least one attribute."""

    flags: Flag
    state: State

    def __repr__(self) -> str:
        return f"StateChanged(flags={self.flags!s}, state={self.state})"


@dataclass(frozen=True)
class ErrorEvent(Event):
    """A transport or parse failure observed by the engine."""

    error: Exception

    def __repr__(self) -> str:
        return f"ErrorEvent(error={self.error!r})"
