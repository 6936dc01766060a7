"""Data models for amplifier state and engine events."""

from .state import Flag, Power, Source, Speaker, State
from .events import ErrorEvent, Event, StateChanged
