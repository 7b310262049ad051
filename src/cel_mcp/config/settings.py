"""Server settings."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

TransportMode = Literal["stdio", "http"]


class ServerSettings(BaseSettings):
    """Transport and evaluation settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CEL_MCP_",
        case_sensitive=False,
        extra="ignore",
    )

    transport: TransportMode = Field(default="stdio")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=1234, ge=0, le=65535)
    path: str = Field(default="/mcp")
    queue_size: int = Field(default=32, ge=1)
    workers: int = Field(default=1, ge=1)
    cache_size: int = Field(default=128, ge=0)

    @field_validator("path")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        value = value.strip() or "/mcp"
        if not value.startswith("/"):
            value = f"/{value}"
        return value

    @property
    def listen_address(self) -> str:
        return f"{self.host}:{self.port}"


def parse_listen_address(raw: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``) into its parts."""
    host, sep, port_text = raw.strip().rpartition(":")
    if not sep or not host or not port_text:
        raise ValueError(f"invalid listen address {raw!r}, expected HOST:PORT")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"invalid port in listen address {raw!r}") from None
    if not 0 <= port <= 65535:
        raise ValueError(f"port out of range in listen address {raw!r}")
    return host, port


def load_settings(**overrides: Any) -> ServerSettings:
    """Load settings from the environment, then apply non-None overrides."""
    updates = {key: value for key, value in overrides.items() if value is not None}
    return ServerSettings(**updates)
