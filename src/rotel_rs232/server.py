"""MCP server entry point for a Rotel amplifier on RS232.

Exposes the engine (ping, get, set, send and an event stream) as tools and
resources via the Model Context Protocol, using the official Python MCP
SDK with stdio transport.
"""

from __future__ import annotations

import argparse
import json
import logging
import queue
from typing import Any

from mcp.server.fastmcp import FastMCP

from .amplifier import DEFAULT_POLL_INTERVAL, Amplifier, Status
from .exceptions import BatchParseError, RotelError
from .models.events import ErrorEvent, Event, StateChanged
from .models.state import (
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
    State,
)
from .protocol.commands import SOURCE_TOKENS, Command
from .transport.serial_connection import (
    DEFAULT_BAUDRATE,
    DEFAULT_TIMEOUT,
    DEFAULT_TTY,
    SerialConfig,
)

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "rotel-rs232",
    instructions="MCP server for Rotel A12/A14 amplifiers over RS232",
)

EVENT_QUEUE_SIZE = 256

# Global connection state
_amplifier: Amplifier | None = None
_events: queue.Queue | None = None
_poll_interval: float = DEFAULT_POLL_INTERVAL


def _get_amplifier() -> Amplifier:
    """Get the running engine, raising if not connected."""
    if _amplifier is None:
        raise RuntimeError(
            "Not connected to amplifier. Use the 'connect' tool first."
        )
    return _amplifier


def _event_to_dict(event: Event) -> dict[str, Any]:
    if isinstance(event, StateChanged):
        return {
            "type": "changed",
            "flags": str(event.flags),
            "state": event.state.visible().to_dict(),
        }
    if isinstance(event, ErrorEvent):
        result: dict[str, Any] = {"type": "error", "error": str(event.error)}
        if isinstance(event.error, BatchParseError):
            result["fields"] = [getattr(e, "field", str(e)) for e in event.error.errors]
        return result
    return {"type": type(event).__name__}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    tty: str = DEFAULT_TTY,
    baudrate: int = DEFAULT_BAUDRATE,
    timeout: float = DEFAULT_TIMEOUT,
) -> dict[str, Any]:
    """Open the RS232 line to the amplifier and start tracking its state.

    State is discovered in the background; call get_state or get_events
    after a few seconds to see it.

    Args:
        tty: Serial device path or pyserial URL (default /dev/ttyUSB0).
        baudrate: Line speed (default 115200).
        timeout: Read timeout in seconds (default 0.1).
    """
    global _amplifier, _events
    if _amplifier is not None and _amplifier.status is Status.CLOSED:
        # The engine stopped itself after losing the serial handle
        _amplifier = None
        _events = None
    if _amplifier is not None:
        return {
            "connected": True,
            "message": "Already connected",
            "model": _amplifier.model,
        }

    try:
        config = SerialConfig(tty=tty, baudrate=baudrate, timeout=timeout)
    except ValueError as err:
        return {"error": str(err)}

    amplifier = Amplifier(config, poll_interval=_poll_interval)
    try:
        amplifier.open()
    except RotelError as err:
        return {"error": str(err)}
    _events = amplifier.subscribe(EVENT_QUEUE_SIZE)
    amplifier.start()
    _amplifier = amplifier
    return {"connected": True, "tty": tty, "baudrate": baudrate}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the RS232 line to the amplifier."""
    global _amplifier, _events
    if _amplifier is None:
        return {"disconnected": True}
    try:
        _amplifier.close()
    finally:
        _amplifier = None
        _events = None
    return {"disconnected": True}


@mcp.tool()
def ping() -> dict[str, Any]:
    """Report whether the engine is connected and the amplifier model."""
    if _amplifier is None:
        return {"connected": False}
    return {
        "connected": True,
        "status": _amplifier.status.value,
        "model": _amplifier.model,
    }


# ─── STATE TOOLS ──────────────────────────────────────────────────────

@mcp.tool()
def get_state() -> dict[str, Any]:
    """Return the amplifier state as last reported.

    Attributes that are not yet known, or do not apply while the
    amplifier is in standby, are null.
    """
    return _get_amplifier().get().to_dict()


@mcp.tool()
def set_state(
    power: str | None = None,
    volume: int | None = None,
    source: str | None = None,
    mute: bool | None = None,
    bypass: bool | None = None,
    bass: int | None = None,
    treble: int | None = None,
    balance: int | None = None,
    speaker: str | None = None,
    dimmer: int | None = None,
) -> dict[str, Any]:
    """Change one or more amplifier settings. Omitted settings are left alone.

    Everything except power requires the amplifier to be on.

    Args:
        power: on, standby or toggle.
        volume: 1-96.
        source: pc_usb, cd, coax1, coax2, opt1, opt2, aux1, aux2, tuner,
            phono, usb or bluetooth.
        mute: True to mute.
        bypass: True to bypass the tone controls.
        bass: -10 to 10.
        treble: -10 to 10.
        balance: -15 (left) to 15 (right), 0 is centre.
        speaker: a, b, a_b or off.
        dimmer: 0-9.
    """
    amplifier = _get_amplifier()
    try:
        target = State(
            power=Power(power) if power is not None else None,
            volume=volume,
            source=Source(source) if source is not None else None,
            mute=mute,
            bypass=bypass,
            bass=bass,
            treble=treble,
            balance=balance,
            speaker=Speaker(speaker) if speaker is not None else None,
            dimmer=dimmer,
        )
        amplifier.set(target)
    except (RotelError, ValueError) as err:
        return {"error": str(err)}
    return {"requested": {k: v for k, v in target.to_dict().items() if v not in (None, "")}}


@mcp.tool()
def send_command(command: str) -> dict[str, Any]:
    """Send a discrete command such as play, vol_up or speaker_a_toggle.

    Args:
        command: Command name, see the rotel://catalog/commands resource.
    """
    amplifier = _get_amplifier()
    try:
        cmd = Command.from_name(command)
        amplifier.send(cmd)
    except (RotelError, ValueError) as err:
        return {"error": str(err)}
    return {"sent": cmd.name.lower()}


@mcp.tool()
def get_events(limit: int = 50) -> dict[str, Any]:
    """Return (and consume) the events seen since the last call.

    Args:
        limit: Maximum number of events to return.
    """
    _get_amplifier()
    events: list[dict[str, Any]] = []
    while _events is not None and len(events) < limit:
        try:
            event = _events.get_nowait()
        except queue.Empty:
            break
        if event is None:
            break
        events.append(_event_to_dict(event))
    return {"events": events}


# ─── RESOURCES ───────────────────────────────────────────────────────

@mcp.resource("rotel://device/state")
def resource_device_state() -> str:
    """Current amplifier state as JSON."""
    if _amplifier is None:
        return json.dumps({"connected": False})
    return json.dumps({"connected": True, "state": _amplifier.get().to_dict()}, indent=2)


@mcp.resource("rotel://catalog/sources")
def resource_sources() -> str:
    """Selectable input sources."""
    return json.dumps([s.value for s in SOURCE_TOKENS], indent=2)


@mcp.resource("rotel://catalog/commands")
def resource_commands() -> str:
    """Discrete commands accepted by send_command, with value ranges for set_state."""
    return json.dumps({
        "commands": [c.name.lower() for c in Command],
        "ranges": {
            "volume": [VOLUME_MIN, VOLUME_MAX],
            "bass": [TONE_MIN, TONE_MAX],
            "treble": [TONE_MIN, TONE_MAX],
            "balance": [-BALANCE_MAX, BALANCE_MAX],
            "dimmer": [DIMMER_MIN, DIMMER_MAX],
        },
    }, indent=2)


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="rotel-mcp", description="MCP server for a Rotel amplifier on RS232"
    )
    parser.add_argument("--tty", default=DEFAULT_TTY, help="serial device or pyserial URL")
    parser.add_argument("--baudrate", type=int, default=DEFAULT_BAUDRATE)
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT, help="read timeout (s)")
    parser.add_argument(
        "--poll-interval", type=float, default=DEFAULT_POLL_INTERVAL,
        help="seconds between discovery queries",
    )
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument(
        "--connect", action="store_true", help="connect on startup instead of waiting for the tool"
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None):
    """Run the MCP server with stdio transport."""
    global _poll_interval
    args = _parse_args(argv)
    logging.basicConfig(level=args.log_level.upper())
    _poll_interval = args.poll_interval

    if args.connect:
        result = connect(args.tty, args.baudrate, args.timeout)
        if "error" in result:
            logger.error("Could not connect: %s", result["error"])

    try:
        mcp.run(transport="stdio")
    finally:
        disconnect()


if __name__ == "__main__":
    main()
