"""Helpers for loading the user configuration file (~/.flutterdump/config.json)."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from flutterdump.exceptions import ConfigError
from flutterdump.models.settings import DumpSettings

CONFIG_DIR = Path.home() / ".flutterdump"
CONFIG_FILE = CONFIG_DIR / "config.json"


@lru_cache(maxsize=1)
def load_config() -> dict[str, Any]:
    """Load configuration data from disk (cached)."""

    if not CONFIG_FILE.exists():
        return {}

    try:
        raw = CONFIG_FILE.read_text()
    except OSError:
        return {}

    try:
        data = json.loads(raw)
    except ValueError:
        return {}

    if isinstance(data, dict):
        return data

    return {}


def load_settings(**overrides: Any) -> DumpSettings:
    """Build dump settings from the config file and explicit overrides.

    Only keys known to :class:`DumpSettings` are taken from the config file.
    Overrides set to ``None`` are ignored so unset CLI options fall back to
    the configured (or default) value.

    Raises:
        ConfigError: If a value fails validation.
    """

    values = {
        key: value
        for key, value in load_config().items()
        if key in DumpSettings.model_fields
    }
    values.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return DumpSettings.model_validate(values)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e
