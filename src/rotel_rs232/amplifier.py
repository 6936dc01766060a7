"""Engine for one Rotel amplifier on an RS232 line.

The engine owns the serial handle and runs a worker thread that repeats::

    +-----------------------------------------------------------------+
    | read (bounded by the read timeout)                              |
    |   -> FieldFramer -> parse_fields -> StateStore -> dispatcher    |
    | every poll interval                                             |
    |   -> next_request(state) -> write "<attribute>?" or update on   |
    +-----------------------------------------------------------------+

``set`` and ``send`` write immediately from the caller's thread. The read
path, the poll tick and every write share one lock, so a query and a
command are never interleaved. Replies arrive asynchronously and are seen
as events, never as return values.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from enum import Enum
from typing import Iterable

from .dispatcher import DEFAULT_QUEUE_SIZE, EventDispatcher
from .exceptions import (
    BatchParseError,
    RotelError,
    RotelPreconditionError,
    RotelTransportError,
)
from .models.events import ErrorEvent, Event, StateChanged
from .models.state import Power, State
from .protocol.commands import (
    STANDBY_COMMANDS,
    Command,
    Query,
    build_balance,
    build_bass,
    build_bypass,
    build_command,
    build_dimmer,
    build_mute,
    build_power,
    build_query,
    build_source,
    build_speaker,
    build_treble,
    build_volume,
)
from .protocol.framing import FieldFramer
from .protocol.parser import parse_fields
from .scheduler import next_request
from .store import StateStore
from .transport.serial_connection import SerialConfig, SerialConnection

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0  # seconds

# Attribute -> builder, in the order writes are issued by set()
SETTABLE = (
    ("volume", build_volume),
    ("source", build_source),
    ("mute", build_mute),
    ("bypass", build_bypass),
    ("bass", build_bass),
    ("treble", build_treble),
    ("balance", build_balance),
    ("speaker", build_speaker),
    ("dimmer", build_dimmer),
)


class Status(Enum):
    """Lifecycle of the engine."""

    CLOSED = "closed"
    OPEN = "open"
    RUNNING = "running"


class Amplifier:
    """Controls one amplifier over RS232.

    Usage::

        amp = Amplifier(SerialConfig(tty="/dev/ttyUSB0"))
        events = amp.subscribe()
        with amp:
            amp.set(State(power=Power.ON))
            print(events.get())
    """

    def __init__(
        self,
        config: SerialConfig | None = None,
        connection: SerialConnection | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        self._connection = connection or SerialConnection(config)
        self._poll_interval = poll_interval
        self._framer = FieldFramer()
        self._store = StateStore()
        self._dispatcher = EventDispatcher()
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._worker: threading.Thread | None = None
        self._status = Status.CLOSED

    def __enter__(self) -> Amplifier:
        self.open()
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"Amplifier(tty={self._connection.config.tty!r}, "
            f"status={self._status.value}, state={self._store.snapshot()})"
        )

    # ─── LIFECYCLE ───────────────────────────────────────────────────

    @property
    def status(self) -> Status:
        return self._status

    def open(self) -> None:
        """Acquire the serial handle and forget any previously known state.

        Raises:
            RotelTransportError: If the port cannot be opened.
        """
        if self._status is not Status.CLOSED:
            return
        self._connection.open()
        with self._lock:
            self._framer.reset()
            self._store.reset()
        self._stop.clear()
        self._status = Status.OPEN

    def start(self) -> None:
        """Run the read/poll loop on a background thread."""
        if self._status is not Status.OPEN:
            raise RotelPreconditionError(f"Cannot start while {self._status.value}")
        self._worker = threading.Thread(
            target=self.run, name="rotel-rs232", daemon=True
        )
        self._worker.start()

    def close(self) -> None:
        """Stop the loop, close the serial handle and release subscribers."""
        if self._status is Status.CLOSED:
            return
        self._stop.set()
        worker, self._worker = self._worker, None
        if worker is not None and worker is not threading.current_thread():
            worker.join()
        self._release()

    def run(self) -> None:
        """Repeat read and poll steps until :meth:`close` is called.

        If the serial handle is lost the loop ends on its own and the
        engine is closed, so it can be opened again.
        """
        self._status = Status.RUNNING
        logger.info("Engine running on %s", self._connection.config.tty)
        next_tick = time.monotonic()
        try:
            while not self._stop.is_set():
                try:
                    data = self._connection.read()
                except RotelTransportError as err:
                    self._emit_error(err)
                    if not self._connection.connected:
                        logger.error("Serial handle closed, stopping: %s", err)
                        break
                    self._stop.wait(self._connection.config.timeout)
                    continue

                if data:
                    self.handle_data(data)

                if time.monotonic() >= next_tick:
                    self.tick()
                    next_tick = time.monotonic() + self._poll_interval
        finally:
            if not self._stop.is_set():
                self._stop.set()
                try:
                    self._release()
                except RotelTransportError as err:
                    logger.warning("%s", err)
            logger.info("Engine stopped")

    # ─── LOOP STEPS ──────────────────────────────────────────────────

    def handle_data(self, data: bytes) -> list[Event]:
        """Frame, decode and apply one chunk read from the amplifier.

        Returns:
            The events published for this batch, in order.
        """
        with self._lock:
            texts = self._framer.feed(data)
            fields, errors = parse_fields(texts)
            flags = self._store.apply_all(fields)
            state = self._store.snapshot()

        events: list[Event] = []
        if flags:
            logger.debug("Changed %s: %s", flags, state)
            events.append(StateChanged(flags=flags, state=state))
        if errors:
            events.append(ErrorEvent(error=BatchParseError(errors)))
        for event in events:
            self._publish(event)
        return events

    def tick(self) -> Query | Command | None:
        """Send the next discovery query, if any is due.

        Once the basics are known this also switches the amplifier to
        pushing its status (``RS232_UPDATE_ON``) until it reports
        ``update_mode``.

        Returns:
            The query or command sent, or ``None``.
        """
        with self._lock:
            request = next_request(self._store.snapshot())
            if request is None:
                return None
            if isinstance(request, Command):
                data = build_command(request)
            else:
                data = build_query(request)
            try:
                self._connection.write(data)
            except RotelTransportError as err:
                self._emit_error(err)
                return None
        logger.debug("Requested %s", data)
        return request

    # ─── ENGINE API ──────────────────────────────────────────────────

    @property
    def model(self) -> str:
        return self._store.snapshot().model

    def get(self) -> State:
        """Return the current state, with attributes that do not apply in standby cleared."""
        return self._store.snapshot().visible()

    def set(self, state: State) -> None:
        """Write every attribute of ``state`` that is known and differs.

        ``model``, ``freq`` and ``auto_update`` are read-only and ignored.
        All values are validated before anything is written.

        Raises:
            RotelRangeError: If a value is outside its domain.
            RotelPreconditionError: If an attribute other than power is set
                while the amplifier is not on.
            RotelTransportError: If a write fails.
        """
        with self._lock:
            current = self._store.snapshot()
            writes = self._encode_changes(current, state)
            self._write_all(writes)

    def send(self, command: Command) -> None:
        """Send a discrete command.

        Raises:
            RotelRangeError: If ``command`` is not a known command.
            RotelPreconditionError: If the amplifier is not on (only the
                RS232 update mode commands work in standby).
            RotelTransportError: If the write fails.
        """
        data = build_command(command)
        with self._lock:
            command = Command(command)
            if command not in STANDBY_COMMANDS and not self._store.snapshot().is_on:
                raise RotelPreconditionError(
                    f"{command.name} requires the amplifier to be on"
                )
            self._write_all([data])

    def subscribe(self, maxsize: int = DEFAULT_QUEUE_SIZE) -> queue.Queue:
        """Return a queue receiving every event from now on."""
        return self._dispatcher.subscribe(maxsize)

    def unsubscribe(self, q: queue.Queue) -> None:
        self._dispatcher.unsubscribe(q)

    # ─── INTERNALS ───────────────────────────────────────────────────

    def _encode_changes(self, current: State, target: State) -> list[str]:
        writes: list[str] = []
        if target.power is not None and target.power != current.power:
            writes.append(build_power(target.power))

        # Other attributes only apply to an amplifier that is and stays on
        powered = current.is_on and target.power in (None, Power.ON)
        for attr, build in SETTABLE:
            value = getattr(target, attr)
            if value is None or value == getattr(current, attr):
                continue
            if not powered:
                raise RotelPreconditionError(
                    f"Cannot set {attr} unless the amplifier is on"
                )
            built = build(value)
            writes.extend(built if isinstance(built, list) else [built])
        return writes

    def _write_all(self, writes: Iterable[str]) -> None:
        for data in writes:
            try:
                self._connection.write(data)
            except RotelTransportError as err:
                self._emit_error(err)
                raise

    def _release(self) -> None:
        try:
            with self._lock:
                self._connection.close()
        finally:
            self._dispatcher.close()
            self._status = Status.CLOSED

    def _emit_error(self, err: RotelError) -> None:
        logger.warning("%s", err)
        self._publish(ErrorEvent(error=err))

    def _publish(self, event: Event) -> None:
        # Full subscriber queues are logged by the dispatcher
        self._dispatcher.publish(event)
