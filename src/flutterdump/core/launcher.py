"""Launch a Flutter app with ``flutter run --machine`` and read its VM Service URI."""

from __future__ import annotations

import itertools
import json
import subprocess
import threading
from pathlib import Path
from typing import Any

from loguru import logger

from flutterdump.exceptions import LaunchError
from flutterdump.models.launch import LaunchResult
from flutterdump.utils.deps import get_flutter_command, require


def parse_daemon_line(line: str) -> list[dict[str, Any]]:
    """Decode one stdout line of ``flutter run --machine``.

    Daemon messages are JSON objects wrapped in a single-element array;
    plain log output is ignored.
    """
    line = line.strip()
    if not line or line[0] not in "[{":
        return []

    try:
        data = json.loads(line)
    except ValueError:
        return []

    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    return []


class FlutterRunner:
    """Runs ``flutter run --machine`` in a project and tracks the daemon."""

    def __init__(
        self,
        project_path: Path,
        *,
        flutter_command: str | None = None,
        timeout: float = 60.0,
        log=logger,
    ):
        """Initialize the runner.

        Args:
            project_path: Flutter project root.
            flutter_command: ``flutter`` executable (auto-detected if None).
            timeout: Seconds to wait for the ``app.debugPort`` event.
            log: Logger.
        """
        self.project_path = project_path.resolve()
        self.flutter_command = flutter_command or get_flutter_command()
        self.timeout = timeout
        self._log = log
        self._process: subprocess.Popen | None = None
        self._ready = threading.Event()
        self._result: LaunchResult | None = None
        self._error: str | None = None
        self._app_id: str | None = None
        self._request_ids = itertools.count(1)
        self._stopped = False

    @property
    def app_id(self) -> str | None:
        """Daemon app id, once ``app.start`` has been seen."""
        return self._app_id

    def launch(self) -> LaunchResult:
        """Start the app and wait for its VM Service URI.

        Raises:
            LaunchError: If no URI is reported within the timeout, the event
                carries no URI, or the process exits first.
        """
        require(self.flutter_command)

        cmd = [self.flutter_command, "run", "--machine"]
        self._log.info("Run: {} (cwd={})", " ".join(cmd), self.project_path)

        try:
            self._process = subprocess.Popen(
                cmd,
                cwd=str(self.project_path),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                bufsize=1,
            )
        except OSError as e:
            raise LaunchError(f"Failed to start {self.flutter_command}: {e}") from e

        threading.Thread(
            target=self._read_stdout, name="flutter-stdout", daemon=True
        ).start()
        threading.Thread(
            target=self._read_stderr, name="flutter-stderr", daemon=True
        ).start()

        if not self._ready.wait(self.timeout):
            raise LaunchError(
                f"flutter run did not report app.debugPort within {self.timeout:g}s"
            )
        if self._error:
            raise LaunchError(self._error)
        return self._result

    def hot_reload(self) -> None:
        """Ask the daemon to hot reload the running app.

        Raises:
            LaunchError: If the app was not launched by this runner.
        """
        if self._process is None or self._app_id is None:
            raise LaunchError("No running app to hot reload")

        self._send_command(
            "app.restart",
            {"appId": self._app_id, "fullRestart": False, "pause": False},
        )

    def stop(self) -> None:
        """Stop the app and the ``flutter run`` process. Idempotent."""
        if self._process is None or self._stopped:
            return
        self._stopped = True

        if self._app_id is not None and self._process.poll() is None:
            try:
                self._send_command("app.stop", {"appId": self._app_id})
            except LaunchError as e:
                self._log.debug("app.stop failed: {}", e)

        if self._process.poll() is None:
            self._process.terminate()
            try:
                self._process.wait(timeout=10)
            except subprocess.TimeoutExpired:
                self._process.kill()
        self._log.info("flutter run exited: code={}", self._process.returncode)

    def _send_command(self, method: str, params: dict[str, Any]) -> None:
        command = [{"id": next(self._request_ids), "method": method, "params": params}]
        self._log.debug("[→ flutter] {}", json.dumps(command))
        try:
            self._process.stdin.write(json.dumps(command) + "\n")
            self._process.stdin.flush()
        except (OSError, ValueError) as e:
            raise LaunchError(f"Failed to send {method} to flutter daemon: {e}") from e

    def _read_stdout(self) -> None:
        for line in self._process.stdout:
            for message in parse_daemon_line(line):
                self._handle_message(message)

        if not self._ready.is_set():
            self._error = "flutter run exited before reporting app.debugPort"
            self._ready.set()

    def _read_stderr(self) -> None:
        for line in self._process.stderr:
            if line.strip():
                self._log.warning("[flutter stderr] {}", line.rstrip())

    def _handle_message(self, message: dict[str, Any]) -> None:
        event = message.get("event")
        params = message.get("params") or {}

        if event == "app.start":
            self._app_id = params.get("appId")
        elif event == "app.debugPort" and not self._ready.is_set():
            ws_uri = params.get("wsUri")
            if not ws_uri:
                self._error = "app.debugPort event has no wsUri"
            else:
                self._app_id = self._app_id or params.get("appId")
                self._result = LaunchResult(ws_uri=ws_uri, app_id=self._app_id)
                self._log.info("VM Service from flutter run: {}", ws_uri)
            self._ready.set()
        elif "id" in message and "error" in message:
            self._log.warning("flutter daemon error: {}", message["error"])
