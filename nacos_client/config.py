"""Client configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import ValidationError

# Config file search paths (in order of precedence, last wins)
CONFIG_SEARCH_PATHS = [
    Path.home() / ".nacos" / "client.yaml",  # User-level defaults
    Path(".nacos.yaml"),  # Project-level overrides
]

SUPPORTED_API_VERSIONS = ("v1", "v2")


def _env_float(name: str, default: str) -> float:
    return float(os.environ.get(name, default))


@dataclass
class ClientConfig:
    """
    Configuration for the Nacos client.

    Precedence (lowest to highest):
    1. Defaults
    2. Environment variables (NACOS_*)
    3. ~/.nacos/client.yaml
    4. .nacos.yaml (project root)
    5. Constructor arguments
    """
    # Server address, e.g. http://127.0.0.1:8848
    server_address: str = field(
        default_factory=lambda: os.environ.get("NACOS_SERVER_ADDRESS", "http://127.0.0.1:8848")
    )

    # Web context the server is deployed under
    context_path: str = field(
        default_factory=lambda: os.environ.get("NACOS_CONTEXT_PATH", "/nacos")
    )

    # Open API surface: "v1" or "v2"
    api_version: str = field(
        default_factory=lambda: os.environ.get("NACOS_API_VERSION", "v2")
    )

    # Credentials; auth is disabled when no username is set
    username: str | None = field(
        default_factory=lambda: os.environ.get("NACOS_USERNAME")
    )
    password: str | None = field(
        default_factory=lambda: os.environ.get("NACOS_PASSWORD")
    )

    # Request timeouts (seconds)
    timeout: float = field(
        default_factory=lambda: _env_float("NACOS_TIMEOUT", "30")
    )
    connect_timeout: float = field(
        default_factory=lambda: _env_float("NACOS_CONNECT_TIMEOUT", "5")
    )

    # Connection pool
    max_connections: int = field(
        default_factory=lambda: int(os.environ.get("NACOS_MAX_CONNECTIONS", "100"))
    )
    max_keepalive_connections: int = field(
        default_factory=lambda: int(os.environ.get("NACOS_MAX_KEEPALIVE_CONNECTIONS", "20"))
    )

    # Refresh the token once its remaining TTL drops below this fraction of the full TTL
    token_refresh_ratio: float = field(
        default_factory=lambda: _env_float("NACOS_TOKEN_REFRESH_RATIO", "0.1")
    )

    # Config watcher polling (seconds); jitter is a +/- fraction of the interval
    watch_interval: float = field(
        default_factory=lambda: _env_float("NACOS_WATCH_INTERVAL", "10")
    )
    watch_jitter: float = field(
        default_factory=lambda: _env_float("NACOS_WATCH_JITTER", "0.1")
    )
    watch_min_interval: float = 0.01

    def __post_init__(self) -> None:
        self.api_version = self.api_version.lower()
        if self.api_version not in SUPPORTED_API_VERSIONS:
            raise ValidationError(
                f"Unsupported api_version {self.api_version!r}, expected one of {SUPPORTED_API_VERSIONS}"
            )
        if not 0 <= self.token_refresh_ratio < 1:
            raise ValidationError("token_refresh_ratio must be in [0, 1)")
        if self.watch_interval <= 0:
            raise ValidationError("watch_interval must be positive")
        if not 0 <= self.watch_jitter < 1:
            raise ValidationError("watch_jitter must be in [0, 1)")

    @property
    def base_url(self) -> str:
        """Server address joined with the context path, without trailing slash."""
        context = self.context_path.strip("/")
        address = self.server_address.rstrip("/")
        return f"{address}/{context}" if context else address

    @property
    def auth_enabled(self) -> bool:
        return bool(self.username)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClientConfig:
        """Create config from dictionary."""
        return cls(
            server_address=data.get("server_address", os.environ.get("NACOS_SERVER_ADDRESS", "http://127.0.0.1:8848")),
            context_path=data.get("context_path", os.environ.get("NACOS_CONTEXT_PATH", "/nacos")),
            api_version=data.get("api_version", os.environ.get("NACOS_API_VERSION", "v2")),
            username=data.get("username", os.environ.get("NACOS_USERNAME")),
            password=data.get("password", os.environ.get("NACOS_PASSWORD")),
            timeout=float(data.get("timeout", os.environ.get("NACOS_TIMEOUT", "30"))),
            connect_timeout=float(data.get("connect_timeout", os.environ.get("NACOS_CONNECT_TIMEOUT", "5"))),
            max_connections=int(data.get("max_connections", os.environ.get("NACOS_MAX_CONNECTIONS", "100"))),
            max_keepalive_connections=int(data.get("max_keepalive_connections", os.environ.get("NACOS_MAX_KEEPALIVE_CONNECTIONS", "20"))),
            token_refresh_ratio=float(data.get("token_refresh_ratio", os.environ.get("NACOS_TOKEN_REFRESH_RATIO", "0.1"))),
            watch_interval=float(data.get("watch_interval", os.environ.get("NACOS_WATCH_INTERVAL", "10"))),
            watch_jitter=float(data.get("watch_jitter", os.environ.get("NACOS_WATCH_JITTER", "0.1"))),
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> ClientConfig:
        """Load config from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def load(cls, config_file: str | Path | None = None) -> ClientConfig:
        """
        Load config with auto-discovery.

        Search order (last wins):
        1. ~/.nacos/client.yaml
        2. .nacos.yaml
        3. Explicit config_file argument
        """
        import yaml

        merged: dict[str, Any] = {}

        for path in CONFIG_SEARCH_PATHS:
            if path.exists():
                with open(path, "r") as f:
                    data = yaml.safe_load(f) or {}
                merged.update(data)

        if config_file:
            with open(config_file, "r") as f:
                data = yaml.safe_load(f) or {}
            merged.update(data)

        return cls.from_dict(merged)
