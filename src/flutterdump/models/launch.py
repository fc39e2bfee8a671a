"""Pydantic model for apps started with ``flutter run --machine``."""

from pydantic import BaseModel


class LaunchResult(BaseModel):
    """VM Service endpoint reported by the Flutter daemon."""

    ws_uri: str
    """WebSocket URI from the ``app.debugPort`` event."""

    app_id: str | None = None
    """Daemon app id, used for ``app.restart`` and ``app.stop``."""
