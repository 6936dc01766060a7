"""Tests for the state store and standby visibility."""

import pytest

from rotel_rs232.models.state import Flag, Power, Source, State
from rotel_rs232.protocol.parser import Field, parse_field
from rotel_rs232.store import StateStore


def _apply(store, *texts):
    return store.apply_all(parse_field(t) for t in texts)


def test_initial_state_unknown():
    state = StateStore().snapshot()
    assert state.model == ""
    assert state.power is None
    assert state.volume is None
    assert not state.is_on


def test_apply_reports_change():
    """Each changed attribute contributes its flag."""
    store = StateStore()
    flags = _apply(store, "model=RA12", "power=on")
    assert flags == Flag.MODEL | Flag.POWER
    assert store.snapshot().model == "RA12"
    assert store.snapshot().power is Power.ON


def test_apply_same_value_no_flag():
    """Re-reporting an unchanged value is not a change."""
    store = StateStore()
    _apply(store, "power=on", "source=cd")
    assert _apply(store, "source=cd") == Flag.NONE


def test_equal_decoded_values_no_flag():
    """'045' and '45' are the same volume."""
    store = StateStore()
    _apply(store, "power=on")
    assert _apply(store, "volume=045") == Flag.VOLUME
    assert _apply(store, "volume=45") == Flag.NONE
    assert store.snapshot().volume == 45


def test_power_change_forgets_volume():
    """A power transition invalidates the volume without flagging it."""
    store = StateStore()
    _apply(store, "power=on", "volume=30")
    flags = _apply(store, "power=standby")
    assert flags == Flag.POWER
    assert store.snapshot().volume is None


def test_power_and_volume_in_one_batch():
    """A volume reported after the power field in the same batch is kept."""
    store = StateStore()
    flags = _apply(store, "power=on", "volume=20")
    assert flags == Flag.POWER | Flag.VOLUME
    assert store.snapshot().volume == 20


def test_update_mode_never_flags():
    store = StateStore()
    assert _apply(store, "update_mode=auto") == Flag.NONE
    assert store.snapshot().auto_update is True


def test_unknown_field_key():
    with pytest.raises(ValueError):
        StateStore().apply(Field(key="colour", value="red"))


def test_reset():
    store = StateStore()
    _apply(store, "model=A14", "power=on")
    store.reset()
    assert store.snapshot() == State()


def test_visible_clears_in_standby():
    """Only model and power are shown while the amplifier is not on."""
    state = State(
        model="A14", power=Power.STANDBY, volume=30, source=Source.CD, freq="44.1"
    )
    visible = state.visible()
    assert visible.model == "A14"
    assert visible.power is Power.STANDBY
    assert visible.volume is None
    assert visible.source is None
    assert visible.freq == ""


def test_visible_when_on_is_unchanged():
    state = State(power=Power.ON, volume=30)
    assert state.visible() is state


def test_to_dict_uses_tokens():
    d = State(power=Power.ON, source=Source.PC_USB).to_dict()
    assert d["power"] == "on"
    assert d["source"] == "pc_usb"
    assert d["volume"] is None


def test_flag_str():
    assert str(Flag.NONE) == "NONE"
    assert str(Flag.POWER | Flag.VOLUME) == "POWER|VOLUME"
