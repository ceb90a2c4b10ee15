"""Shared pytest fixtures for nacos_client tests."""

from __future__ import annotations

import pytest

from nacos_client import ClientConfig, NacosClient
from nacos_client.auth import AuthManager
from nacos_client.transport import Transport

from tests.fixtures.mock_service import MockNacosServer


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep NACOS_* variables of the developer machine out of the tests."""
    for name in (
        "NACOS_SERVER_ADDRESS",
        "NACOS_CONTEXT_PATH",
        "NACOS_API_VERSION",
        "NACOS_USERNAME",
        "NACOS_PASSWORD",
        "NACOS_WATCH_INTERVAL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_config():
    """Factory fixture for ClientConfig pointed at the mock server."""
    def _factory(**kwargs) -> ClientConfig:
        kwargs.setdefault("server_address", "http://mock")
        kwargs.setdefault("watch_interval", 0.05)
        kwargs.setdefault("watch_jitter", 0.0)
        return ClientConfig(**kwargs)
    return _factory


@pytest.fixture
def nacos_server():
    """Empty mock server without authentication."""
    return MockNacosServer()


@pytest.fixture
def auth_server():
    """Mock server requiring the nacos/nacos user."""
    server = MockNacosServer(users={"nacos": "nacos"})
    server.add_config("app.properties", "a=1")
    return server


@pytest.fixture(params=["v1", "v2"])
def api_version(request):
    """Run a test against both API surfaces."""
    return request.param


@pytest.fixture
def make_client(make_config):
    """
    Factory fixture for a NacosClient wired to a mock server.

    Clients created through it are closed at teardown.
    """
    clients: list[NacosClient] = []

    def _factory(server: MockNacosServer, **kwargs) -> NacosClient:
        with server.patch_httpx():
            client = NacosClient(config=make_config(**kwargs))
        clients.append(client)
        return client

    yield _factory
    for client in clients:
        client.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_auth(make_config, clock):
    """Factory fixture for an AuthManager on a mock server with a fake clock."""
    transports: list[Transport] = []

    def _factory(server: MockNacosServer, **kwargs) -> AuthManager:
        kwargs.setdefault("username", "nacos")
        kwargs.setdefault("password", "nacos")
        config = make_config(**kwargs)
        with server.patch_httpx():
            transport = Transport(config)
        transports.append(transport)
        return AuthManager(transport, config, clock=clock)

    yield _factory
    for transport in transports:
        transport.close()
