"""Configuration package."""

from cel_mcp.config.settings import ServerSettings, TransportMode, load_settings, parse_listen_address

__all__ = [
    "ServerSettings",
    "TransportMode",
    "load_settings",
    "parse_listen_address",
]
