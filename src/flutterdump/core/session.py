"""Dump session: the VM Service connection plus the context every step needs."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from loguru import logger
from websocket import WebSocket, create_connection

from flutterdump.core.transport import EventHandler, VMServiceConnection
from flutterdump.exceptions import NoIsolateError
from flutterdump.models.settings import DumpSettings
from flutterdump.models.vm import IsolateRef

INSPECTOR_PREFIX = "ext.flutter.inspector."


class Session:
    """One extraction session against a running Flutter app.

    Owns the VM Service connection (and with it the correlator table) and a
    bound logger. Use as a context manager so the connection is closed on
    every exit path.
    """

    def __init__(
        self,
        uri: str,
        *,
        settings: DumpSettings | None = None,
        on_event: EventHandler | None = None,
        connection_factory: Callable[..., WebSocket] = create_connection,
        log=logger,
    ):
        self.uri = uri
        self.settings = settings or DumpSettings()
        self.log = log.bind(vm_uri=uri)
        self.connection = VMServiceConnection(
            uri,
            on_event=on_event,
            connect_timeout=self.settings.connect_timeout,
            connection_factory=connection_factory,
            log=self.log,
        )

    def __enter__(self) -> Session:
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    @property
    def correlator(self):
        """Pending-request table of the session's connection."""
        return self.connection.correlator

    def open(self) -> None:
        """Connect to the VM Service."""
        self.connection.open()

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        self.connection.close()

    def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
        wait_forever: bool = False,
    ) -> Any:
        """Issue a VM Service request and wait for its result.

        Args:
            method: VM Service or extension method name.
            params: Method parameters.
            timeout: Override of the configured call timeout.
            wait_forever: Ignore any timeout (used for ``evaluate``).
        """
        if wait_forever:
            timeout = None
        elif timeout is None:
            timeout = self.settings.call_timeout
        return self.connection.request(method, params, timeout=timeout)

    def get_vm(self) -> dict[str, Any]:
        """Get VM information."""
        return self.request("getVM") or {}

    def main_isolate_id(self) -> str:
        """Return the id of the first isolate reported by the VM.

        Raises:
            NoIsolateError: If the VM has no isolates.
        """
        vm = self.get_vm()
        isolates = [IsolateRef.model_validate(i) for i in vm.get("isolates") or []]
        if not isolates:
            raise NoIsolateError("VM reports no isolates")

        isolate = isolates[0]
        self.log.info("Using isolate {} ({})", isolate.id, isolate.name or "unnamed")
        return isolate.id

    def get_isolate(self, isolate_id: str) -> dict[str, Any]:
        """Get full isolate information, including its libraries."""
        return self.request("getIsolate", {"isolateId": isolate_id}) or {}

    def get_object(self, isolate_id: str, object_id: str) -> Any:
        """Fetch a remote object by id."""
        return self.request(
            "getObject", {"isolateId": isolate_id, "objectId": object_id}
        )

    def evaluate(
        self, isolate_id: str, expression: str, target_id: str | None = None
    ) -> Any:
        """Evaluate a Dart expression, optionally in a library's scope."""
        params: dict[str, Any] = {"isolateId": isolate_id}
        if target_id:
            params["targetId"] = target_id
        params["expression"] = expression
        return self.request("evaluate", params, wait_forever=True)

    def extension(self, method: str, isolate_id: str, **params: Any) -> Any:
        """Call a service extension registered in ``isolate_id``."""
        return self.request(method, {**params, "isolateId": isolate_id})

    def inspector(self, name: str, isolate_id: str, **params: Any) -> Any:
        """Call an ``ext.flutter.inspector.*`` service extension.

        Args:
            name: Extension name without prefix (e.g., ``getDetailsSubtree``).
            isolate_id: Target isolate.
            **params: Extension arguments.
        """
        return self.extension(f"{INSPECTOR_PREFIX}{name}", isolate_id, **params)
