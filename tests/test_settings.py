import pytest
from pydantic import ValidationError

from cel_mcp.config.settings import ServerSettings, load_settings, parse_listen_address


def test_defaults(monkeypatch) -> None:
    for name in ("TRANSPORT", "HOST", "PORT", "PATH", "QUEUE_SIZE", "WORKERS", "CACHE_SIZE"):
        monkeypatch.delenv(f"CEL_MCP_{name}", raising=False)
    settings = ServerSettings(_env_file=None)
    assert settings.transport == "stdio"
    assert settings.listen_address == "127.0.0.1:1234"
    assert settings.path == "/mcp"
    assert settings.queue_size == 32
    assert settings.workers == 1
    assert settings.cache_size == 128


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("CEL_MCP_TRANSPORT", "http")
    monkeypatch.setenv("CEL_MCP_QUEUE_SIZE", "8")
    monkeypatch.setenv("CEL_MCP_WORKERS", "3")

    settings = load_settings()

    assert settings.transport == "http"
    assert settings.queue_size == 8
    assert settings.workers == 3


def test_explicit_overrides_win_over_environment(monkeypatch) -> None:
    monkeypatch.setenv("CEL_MCP_WORKERS", "3")

    settings = load_settings(workers=2, queue_size=None)

    assert settings.workers == 2
    assert settings.queue_size == 32


def test_path_is_normalized() -> None:
    assert ServerSettings(path="rpc").path == "/rpc"


@pytest.mark.parametrize("field", ["queue_size", "workers"])
def test_sizes_must_be_positive(field) -> None:
    with pytest.raises(ValidationError):
        ServerSettings(**{field: 0})


def test_unknown_transport_is_rejected() -> None:
    with pytest.raises(ValidationError):
        ServerSettings(transport="websocket")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("127.0.0.1:1234", ("127.0.0.1", 1234)),
        ("localhost:80", ("localhost", 80)),
        ("[::1]:8080", ("::1", 8080)),
    ],
)
def test_parse_listen_address(raw, expected) -> None:
    assert parse_listen_address(raw) == expected


@pytest.mark.parametrize("raw", ["", "1234", ":1234", "host:", "host:abc", "host:70000"])
def test_parse_listen_address_rejects_garbage(raw) -> None:
    with pytest.raises(ValueError):
        parse_listen_address(raw)
