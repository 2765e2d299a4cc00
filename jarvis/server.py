import logging
import socket
import threading
from typing import Callable, Optional, Tuple

from .config import split_address
from .errors import AlreadyStarted, TransportError

log = logging.getLogger(__name__)

# on_message(stop_event, message)
OnMessage = Callable[[threading.Event, str], None]


class TCPServer:
    """
    Line-oriented TCP server for the executor.

    Every accepted connection is read on its own thread until the peer
    closes it; each line, stripped, is passed to on_message, blank ones too. There is no
    authentication, so bind to loopback.

    State machine:
      UNSTARTED → LISTENING → STOPPED (terminal)
    STOPPED is reached on the stop event, an accept error, or an exception
    from on_message. Connections already open finish their current read.
    """

    UNSTARTED = "UNSTARTED"
    LISTENING = "LISTENING"
    STOPPED   = "STOPPED"

    _POLL_S = 0.5

    def __init__(self, address: str, on_message: OnMessage, debug: bool = False):
        self._address    = address
        self._on_message = on_message
        self._debug      = debug

        self._sock: Optional[socket.socket] = None
        self._state = self.UNSTARTED
        self._lock = threading.Lock()
        self._stopped = threading.Event()

    @property
    def state(self) -> str:
        return self._state

    @property
    def server_address(self) -> Tuple[str, int]:
        """Bound (host, port); useful when listening on port 0."""
        if self._sock is None:
            raise TransportError("server not listening")
        return self._sock.getsockname()[:2]

    # ── lifecycle ─────────────────────────────────────────────────────────────

    def start(self, stop_event: threading.Event):
        with self._lock:
            if self._state != self.UNSTARTED:
                raise AlreadyStarted("server already started")

            host, port = split_address(self._address)
            try:
                sock = socket.create_server((host, port))
            except OSError as exc:
                raise TransportError(f"failed to listen on address {self._address!r}: {exc}") from exc
            sock.settimeout(self._POLL_S)

            self._sock = sock
            self._state = self.LISTENING

        threading.Thread(
            target=self._accept_loop, args=(stop_event, sock), name="tcp-accept", daemon=True
        ).start()
        log.info("Server started on address %s:%d", *self.server_address)

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._stopped.wait(timeout)

    def _stop(self, reason: str):
        with self._lock:
            if self._state == self.STOPPED:
                return
            self._state = self.STOPPED
            sock = self._sock

        if sock is not None:
            sock.close()
        self._stopped.set()
        log.info("Server stopped: %s", reason)

    # ── accept / read ─────────────────────────────────────────────────────────

    def _accept_loop(self, stop_event: threading.Event, sock: socket.socket):
        while True:
            if stop_event.is_set():
                self._stop("stop requested")
                return
            if self._state == self.STOPPED:
                return

            try:
                conn, peer = sock.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                self._stop(f"accept error: {exc}")
                return

            if self._debug:
                log.info("connection from %s:%d", *peer[:2])
            threading.Thread(
                target=self._handle_connection, args=(stop_event, conn), daemon=True
            ).start()

    def _handle_connection(self, stop_event: threading.Event, conn: socket.socket):
        # Accepted sockets inherit the listener's timeout on some platforms.
        conn.settimeout(None)
        with conn, conn.makefile("r", encoding="utf-8", errors="replace") as reader:
            for line in reader:
                msg = line.strip()
                if self._state == self.STOPPED:
                    return
                try:
                    self._on_message(stop_event, msg)
                except Exception as exc:
                    self._stop(f"message error: {exc}")
                    return
