"""Poll scheduler: which attribute to query next.

The amplifier's own notifications are unreliable around power transitions,
so unknown attributes are filled in lazily, one query per tick, in a fixed
order. Nothing but ``model`` and ``power`` is queried in standby because
the other readings are meaningless there. Once everything is known the
scheduler returns ``None`` until an attribute is invalidated again (the
volume, on every power change).

A volume of 0 is what the amplifier reports while it is still coming out
of standby, so it is treated as unknown and queried again.
"""

from __future__ import annotations

from .models.state import Power, State
from .protocol.commands import Command, Query

# Queried in this order once the amplifier is on
POWERED_QUERIES: tuple[tuple[str, Query], ...] = (
    ("volume", Query.VOLUME),
    ("source", Query.SOURCE),
    ("freq", Query.FREQ),
    ("bypass", Query.BYPASS),
    ("speaker", Query.SPEAKER),
    ("mute", Query.MUTE),
    ("bass", Query.BASS),
    ("treble", Query.TREBLE),
    ("balance", Query.BALANCE),
    ("dimmer", Query.DIMMER),
)


def _unknown(attr: str, value: object) -> bool:
    if attr == "volume" and value == 0:
        return True
    return value is None or value == ""


def next_query(state: State) -> Query | None:
    """Return the next query to send for ``state``, or ``None`` if nothing is due."""
    if not state.model:
        return Query.MODEL
    if state.power is None:
        return Query.POWER
    if state.power != Power.ON:
        return None
    for attr, query in POWERED_QUERIES:
        if _unknown(attr, getattr(state, attr)):
            return query
    return None


def next_request(state: State) -> Query | Command | None:
    """Like :func:`next_query`, but switch on push updates when due.

    Once model, volume and source are known, ``RS232_UPDATE_ON`` is requested on every tick until the amplifier
    reports ``update_mode``.
    """
    query = next_query(state)
    if query in (Query.MODEL, Query.VOLUME, Query.SOURCE) or not state.is_on:
        return query
    if state.auto_update is None:
        return Command.RS232_UPDATE_ON
    return query
