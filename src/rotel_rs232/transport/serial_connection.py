"""RS232 connection to the Rotel amplifier.

Uses ``pyserial``. The port is opened with ``serial_for_url`` so that, as
well as device paths such as ``/dev/ttyUSB0``, URLs like
``socket://host:port`` (serial-to-ethernet adapters) and ``loop://`` work.
Reads are bounded by a short timeout so the engine's loop never blocks
for long.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import serial

from ..exceptions import RotelTransportError

logger = logging.getLogger(__name__)

DEFAULT_TTY = "/dev/ttyUSB0"
DEFAULT_BAUDRATE = 115200
DEFAULT_TIMEOUT = 0.1  # seconds
READ_SIZE = 1024


@dataclass
class SerialConfig:
    """Serial line settings."""

    tty: str = DEFAULT_TTY
    baudrate: int = DEFAULT_BAUDRATE
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        if not self.tty:
            raise ValueError("tty must not be empty")
        if self.baudrate <= 0:
            raise ValueError(f"baudrate must be positive, got {self.baudrate}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")


class SerialConnection:
    """Manages the serial handle to the amplifier.

    Usage::

        conn = SerialConnection(SerialConfig(tty="/dev/ttyUSB0"))
        conn.open()
        conn.write("power?")
        data = conn.read()
        conn.close()
    """

    def __init__(self, config: SerialConfig | None = None) -> None:
        self._config = config or SerialConfig()
        self._port: serial.SerialBase | None = None

    @property
    def config(self) -> SerialConfig:
        return self._config

    @property
    def connected(self) -> bool:
        return self._port is not None and self._port.is_open

    def open(self) -> None:
        """Open the serial port (8N1, no flow control).

        Raises:
            RotelTransportError: If the port cannot be opened.
        """
        if self.connected:
            logger.debug("Already connected to %s", self._config.tty)
            return

        try:
            self._port = serial.serial_for_url(
                self._config.tty,
                baudrate=self._config.baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self._config.timeout,
                write_timeout=self._config.timeout * 10,
            )
        except (serial.SerialException, ValueError) as err:
            raise RotelTransportError(
                f"Could not open {self._config.tty} at {self._config.baudrate} baud: {err}"
            ) from err

        self._port.reset_input_buffer()
        logger.info(
            "Opened %s at %d baud", self._config.tty, self._config.baudrate
        )

    def close(self) -> None:
        """Close the serial port.

        Raises:
            RotelTransportError: If the port fails to close cleanly.
        """
        if self._port is None:
            return

        try:
            self._port.close()
        except serial.SerialException as err:
            raise RotelTransportError(f"Error closing {self._config.tty}: {err}") from err
        finally:
            self._port = None
            logger.info("Closed %s", self._config.tty)

    def write(self, data: str) -> int:
        """Write an ASCII command or query.

        Returns:
            Number of bytes written.

        Raises:
            RotelTransportError: If not connected or the write fails.
        """
        if not self.connected:
            raise RotelTransportError("Not connected to amplifier")

        payload = data.encode("ascii")
        try:
            written = self._port.write(payload)
            self._port.flush()
        except (serial.SerialException, OSError) as err:
            raise RotelTransportError(f"Write {data!r} failed: {err}") from err
        logger.debug("Wrote %r", data)
        return written

    def read(self, size: int = READ_SIZE) -> bytes:
        """Read whatever is available, waiting at most the read timeout.

        Returns:
            The bytes read, empty if the timeout expired first.

        Raises:
            RotelTransportError: If not connected or the read fails.
        """
        if not self.connected:
            raise RotelTransportError("Not connected to amplifier")

        try:
            waiting = self._port.in_waiting
            return self._port.read(min(max(waiting, 1), size))
        except (serial.SerialException, OSError) as err:
            raise RotelTransportError(f"Read failed: {err}") from err
