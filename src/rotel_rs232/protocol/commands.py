"""Command and query builders for the amplifier's RS232 protocol.

Writes are ASCII tokens terminated by ``!``; queries are attribute names
terminated by ``?``. The amplifier replies asynchronously with
``$``-terminated status fields, so builders only produce the outgoing
string and never wait for an answer.

Reference: Rotel A12/A14 RS232 protocol, v1.
"""

from __future__ import annotations

from enum import Enum, IntEnum

from ..exceptions import RotelRangeError, UnknownSourceError
from ..models.state import (
    BALANCE_MAX,
    DIMMER_MAX,
    DIMMER_MIN,
    TONE_MAX,
    TONE_MIN,
    VOLUME_MAX,
    VOLUME_MIN,
    Power,
    Source,
    Speaker,
)
from .framing import COMMAND_TERMINATOR, QUERY_TERMINATOR
from .parser import Field


class Command(IntEnum):
    """Discrete actions that carry no value."""

    PLAY = 1
    STOP = 2
    PAUSE = 3
    TRACK_NEXT = 4
    TRACK_PREV = 5
    MUTE_OFF = 6
    MUTE_ON = 7
    MUTE_TOGGLE = 8
    VOL_UP = 9
    VOL_DOWN = 10
    BYPASS_OFF = 11
    BYPASS_ON = 12
    BASS_UP = 13
    BASS_DOWN = 14
    BASS_RESET = 15
    TREBLE_UP = 16
    TREBLE_DOWN = 17
    TREBLE_RESET = 18
    BALANCE_LEFT = 19
    BALANCE_RIGHT = 20
    BALANCE_RESET = 21
    SPEAKER_A_TOGGLE = 22
    SPEAKER_B_TOGGLE = 23
    SPEAKER_A_ON = 24
    SPEAKER_A_OFF = 25
    SPEAKER_B_ON = 26
    SPEAKER_B_OFF = 27
    DIMMER_TOGGLE = 28
    RS232_UPDATE_ON = 29
    RS232_UPDATE_OFF = 30

    @classmethod
    def from_name(cls, name: str) -> Command:
        """Look up a command by case-insensitive name, e.g. ``speaker_a_toggle``."""
        try:
            return cls[name.strip().upper()]
        except KeyError:
            valid = ", ".join(c.name.lower() for c in cls)
            raise ValueError(f"Unknown command '{name}'. Valid: {valid}") from None


class Query(str, Enum):
    """Attributes the amplifier reports on request."""

    MODEL = "model"
    POWER = "power"
    VOLUME = "volume"
    SOURCE = "source"
    FREQ = "freq"
    BYPASS = "bypass"
    SPEAKER = "speaker"
    MUTE = "mute"
    BASS = "bass"
    TREBLE = "treble"
    BALANCE = "balance"
    DIMMER = "dimmer"
    UPDATE_MODE = "update_mode"


COMMAND_TOKENS: dict[Command, str] = {
    Command.PLAY: "play",
    Command.STOP: "stop",
    Command.PAUSE: "pause",
    Command.TRACK_NEXT: "trkf",
    Command.TRACK_PREV: "trkb",
    Command.MUTE_OFF: "mute_off",
    Command.MUTE_ON: "mute_on",
    Command.MUTE_TOGGLE: "mute",
    Command.VOL_UP: "vol_up",
    Command.VOL_DOWN: "vol_down",
    Command.BYPASS_OFF: "bypass_off",
    Command.BYPASS_ON: "bypass_on",
    Command.BASS_UP: "bass_up",
    Command.BASS_DOWN: "bass_down",
    Command.BASS_RESET: "bass_000",
    Command.TREBLE_UP: "treble_up",
    Command.TREBLE_DOWN: "treble_down",
    Command.TREBLE_RESET: "treble_000",
    Command.BALANCE_LEFT: "balance_l",
    Command.BALANCE_RIGHT: "balance_r",
    Command.BALANCE_RESET: "balance_000",
    Command.SPEAKER_A_TOGGLE: "speaker_a",
    Command.SPEAKER_B_TOGGLE: "speaker_b",
    Command.SPEAKER_A_ON: "speaker_a_on",
    Command.SPEAKER_A_OFF: "speaker_a_off",
    Command.SPEAKER_B_ON: "speaker_b_on",
    Command.SPEAKER_B_OFF: "speaker_b_off",
    Command.DIMMER_TOGGLE: "dimmer",
    Command.RS232_UPDATE_ON: "rs232_update_on",
    Command.RS232_UPDATE_OFF: "rs232_update_off",
}

# Commands the amplifier accepts while in standby
STANDBY_COMMANDS = frozenset({Command.RS232_UPDATE_ON, Command.RS232_UPDATE_OFF})

POWER_TOKENS: dict[Power, str] = {
    Power.ON: "power_on",
    Power.STANDBY: "power_off",
    Power.TOGGLE: "power_toggle",
}

# Source tokens differ from the reported names only for PC-USB
SOURCE_TOKENS: dict[Source, str] = {
    source: ("pcusb" if source is Source.PC_USB else source.value)
    for source in Source
    if source is not Source.OTHER
}


def _write(token: str) -> str:
    return token + COMMAND_TERMINATOR


def _check_range(name: str, value: int, low: int, high: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise RotelRangeError(f"{name} must be an integer, got {value!r}")
    if not low <= value <= high:
        raise RotelRangeError(f"{name} must be {low}-{high}, got {value}")


def build_command(command: Command) -> str:
    """Build the write for a discrete command."""
    try:
        return _write(COMMAND_TOKENS[Command(command)])
    except (KeyError, ValueError):
        raise RotelRangeError(f"Unknown command {command!r}") from None


def build_query(query: Query) -> str:
    """Build a ``?`` query for one attribute."""
    return Query(query).value + QUERY_TERMINATOR


def build_power(power: Power) -> str:
    """Build a power write: ``power_on!``, ``power_off!`` or ``power_toggle!``."""
    try:
        return _write(POWER_TOKENS[Power(power)])
    except (KeyError, ValueError):
        raise RotelRangeError(f"Invalid power value {power!r}") from None


def build_volume(volume: int) -> str:
    """Build a volume write.

    Args:
        volume: Volume level 1-96.
    """
    _check_range("Volume", volume, VOLUME_MIN, VOLUME_MAX)
    return _write(f"vol_{volume:02d}")


def build_source(source: Source) -> str:
    """Build an input selection write."""
    try:
        return _write(SOURCE_TOKENS[Source(source)])
    except (KeyError, ValueError):
        valid = ", ".join(s.value for s in SOURCE_TOKENS)
        raise UnknownSourceError(
            f"Unknown source {source!r}. Valid: {valid}"
        ) from None


def _build_tone(name: str, value: int) -> str:
    _check_range(name.capitalize(), value, TONE_MIN, TONE_MAX)
    if value == 0:
        return _write(f"{name}_000")
    return _write(f"{name}_{value:+d}")


def build_bass(bass: int) -> str:
    """Build a bass write: ``bass_000!`` at zero, else ``bass_+N!`` / ``bass_-N!``.

    Args:
        bass: Tone level -10 to +10.
    """
    return _build_tone("bass", bass)


def build_treble(treble: int) -> str:
    """Build a treble write, same format as :func:`build_bass`."""
    return _build_tone("treble", treble)


def build_balance(balance: int) -> str:
    """Build a balance write.

    Args:
        balance: -15 (full left) to +15 (full right), 0 is centre.
    """
    _check_range("Balance", balance, -BALANCE_MAX, BALANCE_MAX)
    if balance == 0:
        return _write("balance_000")
    if balance < 0:
        return _write(f"balance_L{-balance}")
    return _write(f"balance_R{balance}")


def build_dimmer(dimmer: int) -> str:
    """Build a front panel dimmer write.

    Args:
        dimmer: Brightness step 0-9.
    """
    _check_range("Dimmer", dimmer, DIMMER_MIN, DIMMER_MAX)
    return _write(f"dimmer_{dimmer:d}")


def build_mute(mute: bool) -> str:
    return build_command(Command.MUTE_ON if mute else Command.MUTE_OFF)


def build_bypass(bypass: bool) -> str:
    return build_command(Command.BYPASS_ON if bypass else Command.BYPASS_OFF)


def build_speaker(speaker: Speaker) -> list[str]:
    """Build the speaker A and B writes that select ``speaker``.

    There is no single write for a speaker combination, so this returns
    one write per output.
    """
    try:
        speaker = Speaker(speaker)
    except ValueError:
        raise RotelRangeError(f"Invalid speaker value {speaker!r}") from None
    return [
        build_command(Command.SPEAKER_A_ON if speaker.a else Command.SPEAKER_A_OFF),
        build_command(Command.SPEAKER_B_ON if speaker.b else Command.SPEAKER_B_OFF),
    ]


# Field key -> builder producing the write that sets the decoded value
FIELD_BUILDERS = {
    "power": build_power,
    "volume": build_volume,
    "source": build_source,
    "mute": build_mute,
    "bypass": build_bypass,
    "bass": build_bass,
    "treble": build_treble,
    "balance": build_balance,
    "dimmer": build_dimmer,
    "update_mode": lambda auto: build_command(
        Command.RS232_UPDATE_ON if auto else Command.RS232_UPDATE_OFF
    ),
}


def encode_field(field: Field) -> str:
    """Build the write that sets an attribute to a decoded field's value.

    Raises:
        RotelRangeError: If the attribute is read-only (``model``, ``freq``,
            ``speaker``) or the value cannot be written.
    """
    builder = FIELD_BUILDERS.get(field.key)
    if builder is None:
        raise RotelRangeError(f"'{field.key}' cannot be written")
    return builder(field.value)
