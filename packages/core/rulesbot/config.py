"""Configuration management for rulesbot"""

import json
import os
from pathlib import Path
from typing import Dict, Mapping, Optional


ACCESS_TOKEN_KEY = "accessToken"


class CliConfig:
    """Runtime settings resolved from environment variables and CLI flags"""

    DEFAULT_HOST = "https://rules.dev"

    # Seconds between two challenge completion requests
    DEFAULT_POLL_INTERVAL = 0.2

    # Per-request HTTP timeout in seconds
    DEFAULT_HTTP_TIMEOUT = 30.0

    @classmethod
    def get_host(cls, cli_override: Optional[str] = None) -> str:
        """
        Get the API host for the challenge endpoints.

        Priority hierarchy (from highest to lowest):
        1. RULESBOT_HOST environment variable
        2. CLI override (from --host flag)
        3. DEFAULT_HOST

        Args:
            cli_override: Optional host from CLI --host flag

        Returns:
            Host URL without a trailing slash
        """
        host = os.getenv("RULESBOT_HOST") or cli_override or cls.DEFAULT_HOST
        return host.rstrip("/")

    @classmethod
    def get_poll_interval(cls) -> float:
        """
        Get the delay between challenge polls.

        Can be overridden via RULESBOT_POLL_INTERVAL environment variable.

        Returns:
            Interval in seconds (default: 0.2)
        """
        try:
            value = float(os.getenv("RULESBOT_POLL_INTERVAL", cls.DEFAULT_POLL_INTERVAL))
        except ValueError:
            return cls.DEFAULT_POLL_INTERVAL
        return value if value >= 0 else cls.DEFAULT_POLL_INTERVAL

    @classmethod
    def get_max_poll_attempts(cls) -> Optional[int]:
        """
        Get the maximum number of challenge polls.

        Unset, invalid, or non-positive RULESBOT_MAX_POLL_ATTEMPTS values
        mean polling never gives up.

        Returns:
            Attempt limit or None for unbounded polling
        """
        raw = os.getenv("RULESBOT_MAX_POLL_ATTEMPTS")
        if not raw:
            return None
        try:
            value = int(raw)
        except ValueError:
            return None
        return value if value > 0 else None

    @classmethod
    def get_http_timeout(cls) -> float:
        """Get the per-request HTTP timeout (RULESBOT_HTTP_TIMEOUT, default 30s)"""
        try:
            value = float(os.getenv("RULESBOT_HTTP_TIMEOUT", cls.DEFAULT_HTTP_TIMEOUT))
        except ValueError:
            return cls.DEFAULT_HTTP_TIMEOUT
        return value if value > 0 else cls.DEFAULT_HTTP_TIMEOUT


def get_config_path() -> Path:
    """Location of the persisted config file (RULESBOT_CONFIG_PATH overrides)."""
    override = os.getenv("RULESBOT_CONFIG_PATH")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".rulesbot" / "config.json"


def load_config(config_path: Optional[Path] = None) -> Dict[str, object]:
    """Load the persisted config.

    Args:
        config_path: Path to config.json (default: get_config_path()).

    Returns:
        Parsed config dict, empty if missing/invalid.
    """
    path = config_path or get_config_path()
    if not path.exists():
        return {}

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}

    if not isinstance(data, dict):
        return {}

    return data


def write_config(
    updates: Mapping[str, object], config_path: Optional[Path] = None
) -> Dict[str, object]:
    """Merge entries into the persisted config and write it back.

    Args:
        updates: Keys to set.
        config_path: Path to config.json (default: get_config_path()).

    Returns:
        Updated config dict.
    """
    path = config_path or get_config_path()
    config = load_config(path)
    config.update(updates)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config, indent=2), encoding="utf-8")

    return config


def get_access_token(config_path: Optional[Path] = None) -> Optional[str]:
    """Return the stored access token, if any."""
    token = load_config(config_path).get(ACCESS_TOKEN_KEY)
    return token if isinstance(token, str) and token else None


def save_access_token(token: str, config_path: Optional[Path] = None) -> None:
    """Persist the access token under the accessToken key."""
    write_config({ACCESS_TOKEN_KEY: token}, config_path)
