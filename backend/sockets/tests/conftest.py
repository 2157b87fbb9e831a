import pytest

from sockets.lifecycle import LifecycleCoordinator
from sockets.listener import Listener
from sockets.registry import ConnectionRegistry
from sockets.settings import SocketSettings
from sockets.tests.mocks import MockTransportFactory
from sockets.tools import WebSocketToolHandler


@pytest.fixture
def settings():
    return SocketSettings(listen_poll_interval_seconds=0.01, connect_timeout_seconds=1.0)


@pytest.fixture
def transport_factory():
    return MockTransportFactory()


@pytest.fixture
def registry(settings, transport_factory):
    return ConnectionRegistry(settings, transport_factory=transport_factory)


@pytest.fixture
def listener(registry):
    return Listener(registry)


@pytest.fixture
def coordinator(registry):
    return LifecycleCoordinator(registry)


@pytest.fixture
def tool_handler(registry, listener):
    return WebSocketToolHandler(registry, listener)
