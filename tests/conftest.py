"""Pytest fixtures: an in-memory WebSocket and a scriptable VM Service target."""

import json
import queue
from typing import Any

import pytest
from websocket import WebSocketConnectionClosedException

from flutterdump.core.session import Session
from flutterdump.models.settings import DumpSettings

_CLOSED = object()


class RpcFailure(Exception):
    """Raised by a target handler to answer with an error frame."""

    def __init__(self, error: dict[str, Any]):
        super().__init__(error.get("message", "rpc failure"))
        self.error = error


class MockVmTarget:
    """Answers JSON-RPC frames from per-method handlers and records calls."""

    Failure = RpcFailure

    def __init__(self):
        self.handlers: dict[str, Any] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.frames: list[dict[str, Any]] = []

    def on(self, method: str, handler: Any) -> None:
        """Register a result value or a ``handler(params)`` callable."""
        self.handlers[method] = handler

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def params_for(self, method: str) -> list[dict[str, Any]]:
        return [params for name, params in self.calls if name == method]

    @staticmethod
    def not_ready() -> RpcFailure:
        return RpcFailure(
            {
                "code": -32000,
                "message": "Server error",
                "data": {"details": "Null check operator used on a null value"},
            }
        )

    def __call__(self, frame: dict[str, Any]) -> list[dict[str, Any]]:
        self.frames.append(frame)
        method = frame["method"]
        params = frame.get("params", {})
        self.calls.append((method, params))

        handler = self.handlers.get(method)
        if handler is None:
            return [
                {
                    "jsonrpc": "2.0",
                    "id": frame["id"],
                    "error": {"code": -32601, "message": f"Method not found: {method}"},
                }
            ]

        try:
            result = handler(params) if callable(handler) else handler
        except RpcFailure as e:
            return [{"jsonrpc": "2.0", "id": frame["id"], "error": e.error}]
        return [{"jsonrpc": "2.0", "id": frame["id"], "result": result}]


class FakeWebSocket:
    """Thread-safe stand-in for ``websocket.WebSocket``."""

    def __init__(self, responder=None):
        self.responder = responder
        self.sent: list[dict[str, Any]] = []
        self.connected = True
        self.close_calls = 0
        self._inbox: queue.Queue = queue.Queue()

    def settimeout(self, timeout):
        self.timeout = timeout

    def send(self, payload: str) -> None:
        if not self.connected:
            raise WebSocketConnectionClosedException("socket is already closed.")
        frame = json.loads(payload)
        self.sent.append(frame)
        if self.responder is not None:
            for reply in self.responder(frame):
                self.push(reply)

    def push(self, message: Any) -> None:
        """Queue an inbound message (dicts are serialized)."""
        self._inbox.put(message if isinstance(message, (str, bytes)) else json.dumps(message))

    def drop(self) -> None:
        """Simulate the peer going away."""
        self.connected = False
        self._inbox.put(_CLOSED)

    def recv(self):
        item = self._inbox.get()
        if item is _CLOSED:
            raise WebSocketConnectionClosedException("Connection to remote host was lost.")
        return item

    def close(self) -> None:
        self.close_calls += 1
        self.connected = False
        self._inbox.put(_CLOSED)


@pytest.fixture
def target() -> MockVmTarget:
    return MockVmTarget()


@pytest.fixture
def fake_ws(target) -> FakeWebSocket:
    return FakeWebSocket(target)


@pytest.fixture
def settings() -> DumpSettings:
    return DumpSettings(call_timeout=5.0, node_delay=0, settle_delay=0, evaluate_delay=0)


@pytest.fixture
def session_factory(fake_ws, settings):
    def factory(uri="ws://127.0.0.1:8181/ws", *, settings=settings, log=None, **kwargs):
        extra = {"log": log} if log is not None else {}
        return Session(
            uri,
            settings=settings,
            connection_factory=lambda _uri, timeout: fake_ws,
            **extra,
        )

    return factory


@pytest.fixture
def session(session_factory):
    with session_factory() as s:
        yield s


class SleepRecorder:
    """Records requested sleeps instead of sleeping."""

    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()
