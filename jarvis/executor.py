import logging
import socket
import threading
from typing import Mapping

from . import commands
from .config import split_address
from .errors import PlatformError, TransportError

log = logging.getLogger(__name__)


class ExecutorClient:
    """Dials the executor and sends one command token per connection."""

    _CONNECT_TIMEOUT_S = 2

    def __init__(self, address: str, healthcheck: bool = True, debug: bool = False):
        self._address = split_address(address, default_host="localhost")
        self._debug = debug
        if healthcheck:
            try:
                self.healthcheck()
            except TransportError as exc:
                raise TransportError(f"executor is not running: {exc}") from exc

    def _connect(self) -> socket.socket:
        try:
            return socket.create_connection(self._address, timeout=self._CONNECT_TIMEOUT_S)
        except OSError as exc:
            raise TransportError(
                "failed to connect to executor at %s:%d: %s" % (*self._address, exc)
            ) from exc

    def healthcheck(self):
        self._connect().close()

    def send_command(self, command: str):
        with self._connect() as conn:
            try:
                conn.sendall(f"{command}\n".encode("utf-8"))
            except OSError as exc:
                raise TransportError(f"failed to send command to executor: {exc}") from exc
        if self._debug:
            log.info("sent command: %s", command)


class KeyActuator:
    """Synthesises one key press on the desktop."""

    def tap(self, key: str):
        raise NotImplementedError


class PynputActuator(KeyActuator):
    def __init__(self):
        # pynput picks its backend at import time and needs a display.
        try:
            from pynput import keyboard
        except ImportError as exc:
            raise PlatformError(f"no key synthesis backend available: {exc}") from exc

        self._keyboard = keyboard.Controller()
        log.info("Key actuator ready (pynput %s backend).", type(self._keyboard).__module__)

    def tap(self, key: str):
        self._keyboard.tap(key)


class MessageHandler:
    """
    on_message hook for the executor's TCPServer.

    Known commands tap their key once; unknown tokens and actuator failures
    are logged and swallowed so one bad message never stops the server.
    """

    def __init__(
        self,
        actuator: KeyActuator,
        command_keys: Mapping[str, str] = commands.COMMAND_KEYS,
        debug: bool = False,
        command_debug: bool = False,
    ):
        self._actuator      = actuator
        self._command_keys  = dict(command_keys)
        self._debug         = debug
        self._command_debug = command_debug

    def __call__(self, stop_event: threading.Event, message: str):
        msg = message.strip().lower()
        if self._debug:
            log.info("received message: %r", msg)

        key = self._command_keys.get(msg)
        if key is None:
            log.warning("unsupported command: %r", msg)
            return

        try:
            self._actuator.tap(key)
        except Exception as exc:
            log.error("error handling command %s: %s", msg, exc)
            return

        if self._command_debug:
            log.info("executed %s (%s) → key %r",
                     msg, commands.COMMANDS_HUMAN_READABLE.get(msg, msg), key)
