"""Client configuration for chainmon."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any

from chainmon._constants import (
    BACKEND_CHECK_PERIOD_SECS,
    FRESH_WINDOW_SECS,
    RECONNECT_BASE_DELAY_SECS,
    RECONNECT_MAX_DELAY_SECS,
    STREAM_PATH,
)
from chainmon.exceptions import ChainmonConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class MonitorConfig:
    """Client configuration.

    Parameters
    ----------
    origin : str
        Origin of the dashboard page serving the feed, e.g.
        ``"https://heights.example.org"``. The stream URL is derived from
        it by upgrading the scheme (``http`` → ``ws``, ``https`` → ``wss``)
        and appending ``stream_path``.
    stream_path : str
        Fixed relative path of the feed stream.
    preferences_path : Path or None
        JSON file holding the alert-enabled pairs. ``None`` keeps the
        preferences in memory only.
    reconnect_base_delay : float
        Seconds multiplied by the attempt number to get the backoff delay.
    reconnect_max_delay : float
        Upper bound for any reconnect delay in seconds.
    fresh_window_secs : int
        Values that changed within this many seconds are flagged fresh.
    backend_check_period_secs : int
        Minimum staleness limit, the longest interval the feed server
        guarantees between two checks of the same source.
    heartbeat : float or None
        WebSocket ping interval in seconds, ``None`` disables pings.
    alert_command : tuple of str or None
        Command run (fire-and-forget) for each alert. When ``None`` the
        terminal bell is used.
    alerts_enabled : bool
        Master switch for alert playback; the per-pair preferences still
        load and persist when disabled.
    """

    origin: str
    stream_path: str = STREAM_PATH
    preferences_path: Path | None = None
    reconnect_base_delay: float = RECONNECT_BASE_DELAY_SECS
    reconnect_max_delay: float = RECONNECT_MAX_DELAY_SECS
    fresh_window_secs: int = FRESH_WINDOW_SECS
    backend_check_period_secs: int = BACKEND_CHECK_PERIOD_SECS
    heartbeat: float | None = 30.0
    alert_command: tuple[str, ...] | None = None
    alerts_enabled: bool = True

    def __post_init__(self) -> None:
        if not self.origin.strip():
            raise ChainmonConfigError("origin must be non-empty")
        if not self.stream_path.startswith("/"):
            raise ChainmonConfigError(f"stream_path must start with '/', got {self.stream_path!r}")
        if self.reconnect_base_delay < 0 or self.reconnect_max_delay < 0:
            raise ChainmonConfigError("reconnect delays must not be negative")

    @classmethod
    def from_env(cls, **overrides: Any) -> MonitorConfig:
        """Create configuration from environment variables.

        Reads ``CHAINMON_ORIGIN`` and optional ``CHAINMON_*`` variables.
        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        MonitorConfig
            Populated configuration.
        """
        env = os.environ

        config_kwargs: dict[str, Any] = {}
        origin = env.get("CHAINMON_ORIGIN")
        if origin is not None:
            config_kwargs["origin"] = origin
        stream_path = env.get("CHAINMON_STREAM_PATH")
        if stream_path is not None:
            config_kwargs["stream_path"] = stream_path

        prefs_env = env.get("CHAINMON_PREFERENCES_PATH")
        if prefs_env:
            config_kwargs["preferences_path"] = Path(prefs_env).expanduser()

        _ENV_FLOAT_MAP = {
            "CHAINMON_RECONNECT_BASE_DELAY": "reconnect_base_delay",
            "CHAINMON_RECONNECT_MAX_DELAY": "reconnect_max_delay",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = float(val)

        _ENV_INT_MAP = {
            "CHAINMON_FRESH_WINDOW_SECS": "fresh_window_secs",
            "CHAINMON_BACKEND_CHECK_PERIOD_SECS": "backend_check_period_secs",
        }
        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = int(val)

        heartbeat_env = env.get("CHAINMON_HEARTBEAT")
        if heartbeat_env is not None and "heartbeat" not in overrides:
            # "0" turns pings off
            config_kwargs["heartbeat"] = float(heartbeat_env) or None

        command_env = env.get("CHAINMON_ALERT_COMMAND")
        if command_env and "alert_command" not in overrides:
            config_kwargs["alert_command"] = tuple(command_env.split())

        if "alerts_enabled" not in overrides:
            config_kwargs["alerts_enabled"] = _env_bool(env.get("CHAINMON_ALERTS_ENABLED"), True)

        config_kwargs.update(overrides)
        if "origin" not in config_kwargs:
            raise ChainmonConfigError("CHAINMON_ORIGIN is not set")

        return cls(**config_kwargs)
