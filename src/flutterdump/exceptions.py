"""Typed exception hierarchy for flutterdump."""

import json
from typing import Any


class FlutterDumpError(Exception):
    """Base exception for all flutterdump errors."""

    pass


class ToolNotFoundError(FlutterDumpError):
    """Raised when a required external tool is not installed."""

    def __init__(self, tool: str, install_hint: str | None = None):
        self.tool = tool
        self.install_hint = install_hint
        message = f"Required tool not found: {tool}"
        if install_hint:
            message += f"\nInstall: {install_hint}"
        super().__init__(message)


class ConnectionNotReady(FlutterDumpError):
    """Raised when a call is issued on a VM Service connection that is not open."""

    pass


class RemoteRpcError(FlutterDumpError):
    """Raised when the VM Service answers a request with an error frame."""

    def __init__(self, message: str, error: dict[str, Any] | None = None):
        self.error = error or {}
        super().__init__(message)

    @classmethod
    def from_payload(cls, error: Any) -> "RemoteRpcError":
        """Build an error from an inbound ``error`` object.

        The message is ``error.data.details`` when the target provides it,
        otherwise the serialized error object.
        """
        if isinstance(error, dict):
            data = error.get("data")
            if isinstance(data, dict) and data.get("details"):
                return cls(str(data["details"]), error)
            return cls(json.dumps(error), error)
        return cls(json.dumps(error))


class RpcTimeout(RemoteRpcError):
    """Raised when no response arrives for a request within the call timeout."""

    def __init__(self, method: str, timeout: float):
        self.method = method
        self.timeout = timeout
        super().__init__(f"No response to {method} within {timeout}s")


class StabilizationTimeout(FlutterDumpError):
    """Raised when the target never reached a ready state within the retry budget."""

    def __init__(self, attempts: int, description: str = "probe"):
        self.attempts = attempts
        super().__init__(
            f"Widget tree not ready after {attempts} attempts ({description} kept failing)"
        )


class UnexpectedResultShape(FlutterDumpError):
    """Raised when an evaluation result carries neither a usable string nor a reference."""

    def __init__(self, result: Any, reason: str = "Unexpected result shape"):
        self.result = result
        super().__init__(f"{reason}: {json.dumps(result, default=str)}")


class ParseFailure(FlutterDumpError):
    """Raised when the final JSON payload cannot be decoded."""

    def __init__(self, message: str, *, position: int | None = None):
        self.position = position
        super().__init__(message)


class NoIsolateError(FlutterDumpError):
    """Raised when the VM reports no isolates."""

    pass


class CrawlerReportedError(FlutterDumpError):
    """Raised when the injected crawler returns an error document."""

    pass


class AssetError(FlutterDumpError):
    """Base class for per-asset embedding failures (recorded, never fatal)."""

    marker = "Asset error"

    def __init__(self, message: str, path: str):
        self.path = path
        super().__init__(message)


class AssetTooLarge(AssetError):
    """Raised when an image asset exceeds the embedding size limit."""

    def __init__(self, path: str, size: int, limit: int):
        self.size = size
        self.limit = limit
        self.marker = f"Image too large (>{limit // (1024 * 1024)}MB)"
        super().__init__(f"{self.marker}: {path}", path)


class AssetNotFound(AssetError):
    """Raised when an image asset does not exist under the project root."""

    marker = "Image file not found"

    def __init__(self, path: str):
        super().__init__(f"{self.marker}: {path}", path)


class LaunchError(FlutterDumpError):
    """Raised when ``flutter run`` does not report a VM Service URI."""

    pass


class InjectionError(FlutterDumpError):
    """Raised when the crawler source cannot be injected into the project."""

    pass


class ConfigError(FlutterDumpError):
    """Raised when configuration values are invalid."""

    pass
