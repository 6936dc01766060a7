"""Transport layer: the RS232 serial handle."""

from .serial_connection import SerialConfig, SerialConnection
