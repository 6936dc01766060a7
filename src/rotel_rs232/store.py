"""State store with change detection.

The store applies decoded fields to an immutable :class:`State` and
reports which attributes actually changed. Re-reporting an unchanged value
yields ``Flag.NONE``, so subscribers never see confirmation chatter.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable

from .models.state import Flag, State
from .protocol.parser import Field

logger = logging.getLogger(__name__)

# Field key -> (State attribute, change flag)
FIELD_ATTRIBUTES: dict[str, tuple[str, Flag]] = {
    "model": ("model", Flag.MODEL),
    "power": ("power", Flag.POWER),
    "volume": ("volume", Flag.VOLUME),
    "update_mode": ("auto_update", Flag.NONE),
    "bass": ("bass", Flag.BASS),
    "treble": ("treble", Flag.TREBLE),
    "balance": ("balance", Flag.BALANCE),
    "mute": ("mute", Flag.MUTE),
    "source": ("source", Flag.SOURCE),
    "freq": ("freq", Flag.FREQ),
    "bypass": ("bypass", Flag.BYPASS),
    "speaker": ("speaker", Flag.SPEAKER),
    "dimmer": ("dimmer", Flag.DIMMER),
}


class StateStore:
    """Holds the last known amplifier state."""

    def __init__(self) -> None:
        self._state = State()

    def snapshot(self) -> State:
        """Return the current state. States are immutable, so this is safe to share."""
        return self._state

    def reset(self) -> None:
        """Forget everything, e.g. after the serial handle is reopened."""
        self._state = State()

    def apply(self, field: Field) -> Flag:
        """Apply one decoded field.

        Returns:
            The flag for the attribute if its value changed, else
            ``Flag.NONE``.
        """
        try:
            attr, flag = FIELD_ATTRIBUTES[field.key]
        except KeyError:
            raise ValueError(f"No state attribute for field '{field.key}'") from None

        if getattr(self._state, attr) == field.value:
            return Flag.NONE

        changes = {attr: field.value}
        if attr == "power":
            # The amplifier only reports its true volume after a power transition
            changes["volume"] = None
        self._state = replace(self._state, **changes)
        logger.debug("%s -> %r", attr, field.value)
        return flag

    def apply_all(self, fields: Iterable[Field]) -> Flag:
        """Apply fields in order and return the union of their change flags."""
        flags = Flag.NONE
        for field in fields:
            flags |= self.apply(field)
        return flags
