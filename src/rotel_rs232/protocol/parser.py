"""Decoding of status fields reported by the amplifier.

Each field is ``key=value``. The grammar is a table keyed by attribute
name; an entry holds the value pattern and the function turning the match
into a typed value. Decoded values, not raw strings, are what the state
store compares, so ``volume=005`` and ``volume=5`` are the same report.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable

from ..exceptions import RotelParseError, UnexpectedResponseError
from ..models.state import (
    BALANCE_MAX,
    DIMMER_MAX,
    DIMMER_MIN,
    TONE_MAX,
    TONE_MIN,
    VOLUME_MAX,
    Power,
    Source,
    Speaker,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Field:
    """A decoded status field."""

    key: str
    value: Any
    raw: str = ""

    def __repr__(self) -> str:
        return f"Field({self.key}={self.value!r})"


def _in_range(value: int, low: int, high: int) -> int:
    if not low <= value <= high:
        raise ValueError(f"{value} outside {low}..{high}")
    return value


def _decode_volume(match: re.Match) -> int:
    return _in_range(int(match[1]), 0, VOLUME_MAX)


def _decode_tone(match: re.Match) -> int:
    return _in_range(int(match[1]), TONE_MIN, TONE_MAX)


def _decode_balance(match: re.Match) -> int:
    magnitude = _in_range(int(match[2]), 0, BALANCE_MAX)
    return -magnitude if match[1] == "L" else magnitude


def _decode_source(match: re.Match) -> Source:
    token = match[1]
    # The amplifier accepts "pcusb" as a command; tolerate it in reports too
    if token == "pcusb":
        return Source.PC_USB
    try:
        return Source(token)
    except ValueError:
        logger.debug("Unrecognised source token %r", token)
        return Source.OTHER


def _decode_on_off(match: re.Match) -> bool:
    return match[1] == "on"


def _decode_dimmer(match: re.Match) -> int:
    return _in_range(int(match[1]), DIMMER_MIN, DIMMER_MAX)


# key -> (value pattern, decoder)
FIELD_GRAMMAR: dict[str, tuple[re.Pattern, Callable[[re.Match], Any]]] = {
    "model": (re.compile(r"(\w+)"), lambda m: m[1]),
    "power": (re.compile(r"(on|standby)"), lambda m: Power(m[1])),
    "volume": (re.compile(r"(\d+)"), _decode_volume),
    "update_mode": (re.compile(r"(auto|manual)"), lambda m: m[1] == "auto"),
    "bass": (re.compile(r"([+\-]?\d+)"), _decode_tone),
    "treble": (re.compile(r"([+\-]?\d+)"), _decode_tone),
    "balance": (re.compile(r"([LR]?)(\d+)"), _decode_balance),
    "mute": (re.compile(r"(on|off)"), _decode_on_off),
    "source": (re.compile(r"(\w+)"), _decode_source),
    "freq": (re.compile(r"(.+)"), lambda m: m[1]),
    "bypass": (re.compile(r"(on|off)"), _decode_on_off),
    "speaker": (re.compile(r"(a|b|a_b|off)"), lambda m: Speaker(m[1])),
    "dimmer": (re.compile(r"(\d+)"), _decode_dimmer),
}


def parse_field(text: str) -> Field:
    """Decode one field (without its ``$`` terminator).

    Raises:
        UnexpectedResponseError: If the key is unknown, the value does not
            match the key's pattern, or it lies outside the value domain.
    """
    raw = text.strip()
    key, sep, value = raw.partition("=")
    if not sep or key not in FIELD_GRAMMAR:
        raise UnexpectedResponseError(raw)

    pattern, decode = FIELD_GRAMMAR[key]
    match = pattern.fullmatch(value)
    if match is None:
        raise UnexpectedResponseError(raw)
    try:
        decoded = decode(match)
    except ValueError as err:
        raise UnexpectedResponseError(raw, str(err)) from err
    return Field(key=key, value=decoded, raw=raw)


def parse_fields(texts: list[str]) -> tuple[list[Field], list[RotelParseError]]:
    """Decode a batch of fields, collecting failures instead of stopping.

    Returns:
        The decoded fields in input order, and one error per field that
        could not be decoded.
    """
    decoded: list[Field] = []
    errors: list[RotelParseError] = []
    for text in texts:
        try:
            decoded.append(parse_field(text))
        except RotelParseError as err:
            logger.warning("Ignoring field: %s", err)
            errors.append(err)
    return decoded, errors
