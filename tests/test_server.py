"""Tests for the MCP tools, with the engine mocked."""

from __future__ import annotations

import json
import queue
import sys
from unittest.mock import MagicMock, patch

import pytest

from rotel_rs232.amplifier import Status
from rotel_rs232.exceptions import BatchParseError, RotelPreconditionError, UnexpectedResponseError
from rotel_rs232.models.events import ErrorEvent, StateChanged
from rotel_rs232.models.state import Flag, Power, Source, Speaker, State
from rotel_rs232.protocol.commands import Command


def _get_server_module():
    """Import server module with FastMCP mocked to avoid init issues."""
    mock_fastmcp_cls = MagicMock()
    mock_fastmcp_instance = MagicMock()
    # Make the @mcp.tool() decorator a no-op that returns the function unchanged
    mock_fastmcp_instance.tool.return_value = lambda fn: fn
    mock_fastmcp_instance.resource.return_value = lambda fn: fn
    mock_fastmcp_instance.prompt.return_value = lambda fn: fn
    mock_fastmcp_cls.return_value = mock_fastmcp_instance

    with patch.dict(sys.modules, {}):
        with patch("mcp.server.fastmcp.FastMCP", mock_fastmcp_cls):
            # Remove cached server module so it re-imports with our mock
            sys.modules.pop("rotel_rs232.server", None)
            import rotel_rs232.server as server_mod

    return server_mod


def _connected_server(state: State | None = None):
    server = _get_server_module()
    amp = MagicMock()
    amp.status = Status.RUNNING
    amp.model = "A14"
    amp.get.return_value = state or State(model="A14", power=Power.ON, volume=30)
    server._amplifier = amp
    server._events = queue.Queue()
    return server, amp


def test_tools_require_connection():
    server = _get_server_module()
    with pytest.raises(RuntimeError, match="Not connected"):
        server.get_state()


def test_ping_disconnected():
    server = _get_server_module()
    assert server.ping() == {"connected": False}


def test_ping_connected():
    server, _ = _connected_server()
    assert server.ping() == {"connected": True, "status": "running", "model": "A14"}


def test_get_state():
    server, _ = _connected_server()
    state = server.get_state()
    assert state["power"] == "on"
    assert state["volume"] == 30
    assert state["source"] is None


def test_set_state_builds_target():
    server, amp = _connected_server()
    result = server.set_state(volume=40, source="opt1", speaker="a_b")
    target = amp.set.call_args.args[0]
    assert target.volume == 40
    assert target.source is Source.OPT1
    assert target.speaker is Speaker.BOTH
    assert target.power is None
    assert result["requested"] == {"volume": 40, "source": "opt1", "speaker": "a_b"}


def test_set_state_invalid_enum():
    server, amp = _connected_server()
    result = server.set_state(source="floppy")
    assert "error" in result
    amp.set.assert_not_called()


def test_set_state_engine_error():
    server, amp = _connected_server()
    amp.set.side_effect = RotelPreconditionError("Cannot set volume unless the amplifier is on")
    result = server.set_state(volume=10)
    assert result == {"error": "Cannot set volume unless the amplifier is on"}


def test_send_command():
    server, amp = _connected_server()
    assert server.send_command("Vol_Up") == {"sent": "vol_up"}
    amp.send.assert_called_once_with(Command.VOL_UP)


def test_send_command_unknown():
    server, amp = _connected_server()
    assert "error" in server.send_command("eject")
    amp.send.assert_not_called()


def test_get_events_drains_queue():
    server, _ = _connected_server()
    server._events.put(StateChanged(flags=Flag.POWER, state=State(power=Power.STANDBY, volume=5)))
    server._events.put(ErrorEvent(error=BatchParseError([UnexpectedResponseError("volume=x")])))
    events = server.get_events()["events"]
    assert events[0] == {
        "type": "changed",
        "flags": "POWER",
        "state": State(power=Power.STANDBY).to_dict(),
    }
    assert events[1]["type"] == "error"
    assert events[1]["fields"] == ["volume=x"]
    assert server.get_events() == {"events": []}


def test_get_events_limit():
    server, _ = _connected_server()
    for n in range(5):
        server._events.put(StateChanged(flags=Flag.VOLUME, state=State(volume=n)))
    assert len(server.get_events(limit=2)["events"]) == 2
    assert len(server.get_events()["events"]) == 3


def test_disconnect_closes_engine():
    server, amp = _connected_server()
    assert server.disconnect() == {"disconnected": True}
    amp.close.assert_called_once()
    assert server._amplifier is None


def test_connect_bad_config():
    server = _get_server_module()
    assert "error" in server.connect(tty="loop://", baudrate=0)
    assert server._amplifier is None


def test_connect_open_failure():
    server = _get_server_module()
    result = server.connect(tty="/dev/does-not-exist-rotel")
    assert "error" in result
    assert server._amplifier is None


def test_connect_loopback():
    server = _get_server_module()
    result = server.connect(tty="loop://")
    try:
        assert result == {"connected": True, "tty": "loop://", "baudrate": 115200}
        assert server.ping()["connected"] is True
        assert server.connect(tty="loop://")["message"] == "Already connected"
    finally:
        server.disconnect()


def test_resources():
    server, _ = _connected_server()
    state = json.loads(server.resource_device_state())
    assert state["connected"] is True
    assert state["state"]["model"] == "A14"
    sources = json.loads(server.resource_sources())
    assert "pc_usb" in sources and "other" not in sources
    catalog = json.loads(server.resource_commands())
    assert "speaker_a_toggle" in catalog["commands"]
    assert catalog["ranges"]["volume"] == [1, 96]


def test_parse_args_defaults():
    server = _get_server_module()
    args = server._parse_args([])
    assert args.tty == "/dev/ttyUSB0"
    assert args.baudrate == 115200
    assert args.poll_interval == 1.0
    assert not args.connect


def test_connect_replaces_stopped_engine():
    """An engine that stopped itself does not block a new connection."""
    server, amp = _connected_server()
    amp.status = Status.CLOSED
    result = server.connect(tty="loop://")
    try:
        assert result["connected"] is True
        assert "message" not in result
        assert server._amplifier is not amp
    finally:
        server.disconnect()
