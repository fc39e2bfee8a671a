"""Pydantic model for dump tunables."""

from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_OBJECT_GROUP = "flutterdump-inspector"
MAX_ASSET_BYTES = 5 * 1024 * 1024


class DumpSettings(BaseModel):
    """Tunables for a dump session, merged from config and CLI options."""

    object_group: str = DEFAULT_OBJECT_GROUP
    """Inspector object group used for every inspector call."""

    max_attempts: int = Field(default=20, ge=1)
    """Attempts for the root widget tree before giving up."""

    retry_interval: float = Field(default=0.5, ge=0)
    """Seconds between root widget tree attempts."""

    node_delay: float = Field(default=0.01, ge=0)
    """Seconds slept between per-node detail fetches."""

    settle_delay: float = Field(default=0.2, ge=0)
    """Seconds slept after inspector selection reset."""

    evaluate_delay: float = Field(default=1.5, ge=0)
    """Seconds slept before evaluating the crawler entry point."""

    hot_reload_wait: float = Field(default=2.0, ge=0)
    """Seconds slept after triggering a hot reload."""

    launch_timeout: float = Field(default=60.0, gt=0)
    """Seconds to wait for ``flutter run`` to report the VM Service URI."""

    connect_timeout: float = Field(default=10.0, gt=0)
    """Seconds allowed for the WebSocket handshake."""

    call_timeout: float | None = 30.0
    """Per-request timeout in seconds (``None`` waits forever)."""

    max_asset_bytes: int = Field(default=MAX_ASSET_BYTES, gt=0)
    """Largest image asset embedded as Base64."""

    crawler_source: Path | None = None
    """Dart crawler library injected for layout dumps."""

    flutter_command: str | None = None
    """Explicit ``flutter`` executable (auto-detected when unset)."""
