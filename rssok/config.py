"""Server configuration for rssok.

Values come from environment variables; see ``load_config`` for the names.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_PORT = 80
DEFAULT_CHANNEL = "telegram"
DEFAULT_FETCH_TIMEOUT = 30.0
DEFAULT_USER_AGENT = "rssok/1.0 (RSS Proxy)"


@dataclass
class ServerConfig:
    """Runtime settings for the feed server."""

    name: str = "rssok"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    base_url: str = ""
    image_dir: Path = Path("images")
    default_channel: str = DEFAULT_CHANNEL
    upstream_url_template: str = ""
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self):
        self.image_dir = Path(self.image_dir)
        self.base_url = self.base_url.rstrip("/")

    @property
    def public_base_url(self) -> str:
        """Address media links are built from.

        An unset base_url follows the current port, so a port changed after
        loading (e.g. by --port) is reflected.
        """
        return self.base_url or _default_base_url(self.port)


def _default_base_url(port: int) -> str:
    if port == 80:
        return "http://localhost"
    return f"http://localhost:{port}"


def _parse_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from e


def _parse_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key, "")
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{key} must be positive, got {raw!r}")
    return value


def load_config(env: Optional[Mapping[str, str]] = None) -> ServerConfig:
    """Build a ServerConfig from environment variables.

    Recognized variables: PORT, RSSOK_NAME, RSSOK_LOG_LEVEL, RSSOK_HOST,
    RSSOK_BASE_URL, RSSOK_IMAGE_DIR, RSSOK_DEFAULT_CHANNEL,
    RSSOK_UPSTREAM_URL, RSSOK_FETCH_TIMEOUT, RSSOK_USER_AGENT.

    Args:
        env: Mapping to read from (defaults to os.environ)

    Returns:
        Populated ServerConfig

    Raises:
        ValueError: If a numeric variable cannot be parsed
    """
    if env is None:
        env = os.environ

    return ServerConfig(
        name=env.get("RSSOK_NAME", "rssok"),
        log_level=env.get("RSSOK_LOG_LEVEL", "INFO"),
        host=env.get("RSSOK_HOST", "0.0.0.0"),
        port=_parse_int(env, "PORT", DEFAULT_PORT),
        base_url=env.get("RSSOK_BASE_URL", ""),
        image_dir=Path(env.get("RSSOK_IMAGE_DIR", "images")),
        default_channel=env.get("RSSOK_DEFAULT_CHANNEL", DEFAULT_CHANNEL) or DEFAULT_CHANNEL,
        upstream_url_template=env.get("RSSOK_UPSTREAM_URL", ""),
        fetch_timeout=_parse_float(env, "RSSOK_FETCH_TIMEOUT", DEFAULT_FETCH_TIMEOUT),
        user_agent=env.get("RSSOK_USER_AGENT", DEFAULT_USER_AGENT),
    )


_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config

    if _config is None:
        _config = load_config()
    return _config
