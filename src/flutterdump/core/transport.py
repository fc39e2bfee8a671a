"""JSON-RPC transport over a single Dart VM Service WebSocket."""

from __future__ import annotations

import itertools
import json
import threading
from collections.abc import Callable
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any

from loguru import logger
from websocket import (
    WebSocket,
    WebSocketConnectionClosedException,
    WebSocketException,
    WebSocketTimeoutException,
    create_connection,
)

from flutterdump.exceptions import ConnectionNotReady, RemoteRpcError, RpcTimeout

JSONRPC_VERSION = "2.0"

EventHandler = Callable[[dict[str, Any]], None]


class Correlator:
    """Routes response frames to the request that is waiting for them.

    Pending requests are keyed by the stringified request id. Each entry is
    removed exactly once: when its response arrives, when the caller discards
    it, when the connection is lost, or when the table is cleared.
    """

    def __init__(self, on_event: EventHandler | None = None, log=logger):
        self._pending: dict[str, Future] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._on_event = on_event
        self._log = log

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        with self._lock:
            return str(request_id) in self._pending

    def register(self) -> tuple[int, Future]:
        """Allocate the next request id and its pending future."""
        future: Future = Future()
        with self._lock:
            request_id = next(self._ids)
            self._pending[str(request_id)] = future
        return request_id, future

    def discard(self, request_id: int | str) -> bool:
        """Drop a pending request without completing it."""
        with self._lock:
            return self._pending.pop(str(request_id), None) is not None

    def dispatch(self, raw: str | bytes) -> None:
        """Handle one inbound payload. Never raises."""
        try:
            message = json.loads(raw)
        except (TypeError, ValueError) as e:
            self._log.warning("Dropping malformed VM message: {}", e)
            return

        if not isinstance(message, dict):
            self._log.warning("Dropping non-object VM message: {!r}", message)
            return

        request_id = message.get("id")
        future = None
        if request_id is not None:
            with self._lock:
                future = self._pending.pop(str(request_id), None)

        if future is None:
            self._forward(message)
            return

        if future.cancelled():
            return

        if "error" in message:
            self._log.debug("[VM ERROR] {}", json.dumps(message["error"]))
            future.set_exception(RemoteRpcError.from_payload(message["error"]))
        else:
            future.set_result(message.get("result"))

    def fail_all(self, error: Exception) -> int:
        """Reject every pending request with ``error``."""
        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()

        for future in pending:
            if not future.done():
                future.set_exception(error)
        return len(pending)

    def clear(self) -> int:
        """Abandon every pending request without notifying its caller."""
        with self._lock:
            count = len(self._pending)
            self._pending.clear()
        return count

    def _forward(self, message: dict[str, Any]) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(message)
        except Exception:
            self._log.exception("Event handler failed for VM message")


class VMServiceConnection:
    """One duplex WebSocket connection to a Dart VM Service.

    A daemon reader thread feeds every inbound payload to a :class:`Correlator`;
    callers block on the futures returned by :meth:`call`.
    """

    def __init__(
        self,
        uri: str,
        *,
        on_event: EventHandler | None = None,
        connect_timeout: float = 10.0,
        connection_factory: Callable[..., WebSocket] = create_connection,
        log=logger,
    ):
        """Initialize the connection (does not connect).

        Args:
            uri: WebSocket URI (e.g., ws://127.0.0.1:8181/ws).
            on_event: Handler for notifications and unmatched responses.
            connect_timeout: Seconds allowed for the WebSocket handshake.
            connection_factory: Callable returning a connected WebSocket.
            log: Logger used for frame tracing.
        """
        self.uri = uri
        self.correlator = Correlator(on_event=on_event, log=log)
        self._connect_timeout = connect_timeout
        self._connection_factory = connection_factory
        self._log = log
        self._ws: WebSocket | None = None
        self._reader: threading.Thread | None = None
        self._send_lock = threading.Lock()
        self._closed = False
        self._lost = False

    @property
    def is_open(self) -> bool:
        """Check if the socket is connected and not closed."""
        return (
            self._ws is not None
            and not self._closed
            and not self._lost
            and bool(getattr(self._ws, "connected", False))
        )

    def open(self) -> None:
        """Connect and start the reader thread."""
        if self._ws is not None:
            return

        self._log.info("Connecting to VM Service: {}", self.uri)
        try:
            self._ws = self._connection_factory(self.uri, timeout=self._connect_timeout)
        except (WebSocketException, OSError) as e:
            raise ConnectionNotReady(f"Failed to connect to {self.uri}: {e}") from e

        # Responses to long evaluations may take longer than the handshake timeout
        self._ws.settimeout(None)

        self._reader = threading.Thread(
            target=self._read_loop, name="vm-service-reader", daemon=True
        )
        self._reader.start()

    def close(self) -> None:
        """Abandon pending requests and close the socket. Idempotent."""
        if self._closed:
            return
        self._closed = True

        abandoned = self.correlator.clear()
        if abandoned:
            self._log.debug("Abandoned {} pending request(s)", abandoned)

        if self._ws is not None:
            try:
                self._ws.close()
            except (WebSocketException, OSError) as e:
                self._log.debug("Error while closing VM Service socket: {}", e)

    def call(self, method: str, params: dict[str, Any] | None = None) -> Future:
        """Send a request and return a future for its result.

        Raises:
            ConnectionNotReady: If the connection is not open.
        """
        _, future = self._send(method, params)
        return future

    def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a request and block until its result arrives.

        Raises:
            ConnectionNotReady: If the connection is not open or is lost.
            RemoteRpcError: If the VM answers with an error.
            RpcTimeout: If no answer arrives within ``timeout`` seconds.
        """
        request_id, future = self._send(method, params)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            self.correlator.discard(request_id)
            raise RpcTimeout(method, timeout) from None

    def _send(
        self, method: str, params: dict[str, Any] | None
    ) -> tuple[int, Future]:
        if not self.is_open:
            raise ConnectionNotReady("VM Service WebSocket is not open")

        request_id, future = self.correlator.register()
        frame: dict[str, Any] = {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "method": method,
        }
        if params is not None:
            frame["params"] = params

        payload = json.dumps(frame)
        self._log.debug("[→ VM] {}", payload)

        try:
            with self._send_lock:
                self._ws.send(payload)
        except (WebSocketException, OSError) as e:
            self.correlator.discard(request_id)
            raise ConnectionNotReady(f"Failed to send {method}: {e}") from e

        return request_id, future

    def _read_loop(self) -> None:
        ws = self._ws
        while not self._closed:
            try:
                raw = ws.recv()
            except WebSocketTimeoutException:
                continue
            except (WebSocketConnectionClosedException, WebSocketException, OSError) as e:
                self._connection_lost(str(e) or type(e).__name__)
                return

            if not raw:
                self._connection_lost("closed by peer")
                return

            self.correlator.dispatch(raw)

    def _connection_lost(self, reason: str) -> None:
        if self._closed:
            return
        self._lost = True
        self._log.warning("VM Service connection lost: {}", reason)
        self.correlator.fail_all(ConnectionNotReady(f"VM Service connection lost: {reason}"))
