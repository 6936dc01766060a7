"""Amplifier state model.

Every attribute uses ``None`` (or ``""`` for the free-text ``model`` and
``freq``) to mean "not yet known". Apart from ``model`` and ``power`` the
attributes are only meaningful while the amplifier is powered on; a value
cached from before a power transition is stale and must not be shown.

Value domains::

    +-----------+-----------------------------+-------------------------+
    | Attribute | Domain                      | Wire report             |
    +-----------+-----------------------------+-------------------------+
    | volume    | 0..96 (writes: 1..96)       | volume=045              |
    | bass      | -10..10                     | bass=-03, bass=+05      |
    | treble    | -10..10                     | treble=000              |
    | balance   | -15..15, negative = left    | balance=L05, balance=000|
    | dimmer    | 0..9                        | dimmer=3                |
    +-----------+-----------------------------+-------------------------+
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from enum import Enum, IntFlag
from typing import Any

VOLUME_MIN = 1
VOLUME_MAX = 96
TONE_MIN = -10
TONE_MAX = 10
BALANCE_MAX = 15
DIMMER_MIN = 0
DIMMER_MAX = 9


class Power(str, Enum):
    """Power state. ``TOGGLE`` is only meaningful as a write."""

    ON = "on"
    STANDBY = "standby"
    TOGGLE = "toggle"


class Source(str, Enum):
    """Input sources, valued by the token the amplifier reports."""

    PC_USB = "pc_usb"
    CD = "cd"
    COAX1 = "coax1"
    COAX2 = "coax2"
    OPT1 = "opt1"
    OPT2 = "opt2"
    AUX1 = "aux1"
    AUX2 = "aux2"
    TUNER = "tuner"
    PHONO = "phono"
    USB = "usb"
    BLUETOOTH = "bluetooth"
    OTHER = "other"


class Speaker(str, Enum):
    """Speaker output selection."""

    A = "a"
    B = "b"
    BOTH = "a_b"
    OFF = "off"

    @property
    def a(self) -> bool:
        return self in (Speaker.A, Speaker.BOTH)

    @property
    def b(self) -> bool:
        return self in (Speaker.B, Speaker.BOTH)


class Flag(IntFlag):
    """Bitmask naming the attributes that changed in one parse batch."""

    NONE = 0
    POWER = 1 << 0
    VOLUME = 1 << 1
    MUTE = 1 << 2
    BASS = 1 << 3
    TREBLE = 1 << 4
    BALANCE = 1 << 5
    SOURCE = 1 << 6
    FREQ = 1 << 7
    BYPASS = 1 << 8
    SPEAKER = 1 << 9
    DIMMER = 1 << 10
    MODEL = 1 << 11

    def __str__(self) -> str:
        names = [m.name for m in Flag if m and m in self]
        return "|".join(names) if names else "NONE"


# Attributes that stay meaningful while the amplifier is in standby
ALWAYS_VISIBLE = ("model", "power")


@dataclass(frozen=True)
class State:
    """Last known value of every observable amplifier attribute.

    A state read from the amplifier only ever holds ``Power.ON``,
    ``Power.STANDBY`` or ``None``; the parser accepts no other power report.
    ``Power.TOGGLE`` appears only in a state passed to ``Amplifier.set``.
    """

    model: str = ""
    power: Power | None = None
    volume: int | None = None
    mute: bool | None = None
    source: Source | None = None
    freq: str = ""
    bypass: bool | None = None
    bass: int | None = None
    treble: int | None = None
    balance: int | None = None
    speaker: Speaker | None = None
    dimmer: int | None = None
    auto_update: bool | None = None

    @property
    def is_on(self) -> bool:
        return self.power == Power.ON

    def visible(self) -> State:
        """Return a copy with attributes that do not apply in standby cleared."""
        if self.is_on:
            return self
        cleared = {
            f.name: f.default for f in fields(self) if f.name not in ALWAYS_VISIBLE
        }
        return replace(self, **cleared)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly rendering, enums as their wire tokens."""
        d = asdict(self)
        for key, value in d.items():
            if isinstance(value, Enum):
                d[key] = value.value
        return d

    def __str__(self) -> str:
        parts = [
            f"{key}={value}"
            for key, value in self.to_dict().items()
            if value is not None and value != ""
        ]
        return f"State({' '.join(parts)})"
