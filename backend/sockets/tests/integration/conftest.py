"""Local servers for integration tests against real sockets."""

import asyncio
import socket

import pytest
from websockets.asyncio.server import serve

from sockets.registry import ConnectionRegistry

KICK_PREFIX = "kick:"


async def _echo(ws):
    """Echo every frame back. A text frame "kick:<reason>" makes the server close with 4001."""
    async for message in ws:
        if isinstance(message, str) and message.startswith(KICK_PREFIX):
            await ws.close(4001, message.removeprefix(KICK_PREFIX))
            return
        await ws.send(message)


def _url(server) -> str:
    host, port = server.sockets[0].getsockname()[:2]
    return f"ws://{host}:{port}"


@pytest.fixture
async def echo_url():
    async with serve(_echo, "127.0.0.1", 0) as server:
        yield _url(server)


@pytest.fixture
async def chat_url():
    """Echo server that requires the "chat" subprotocol."""
    async with serve(_echo, "127.0.0.1", 0, subprotocols=["chat"]) as server:
        yield _url(server)


@pytest.fixture
async def silent_url():
    """A TCP server that accepts connections and never answers the handshake."""
    writers: list[asyncio.StreamWriter] = []

    async def accept(_reader, writer):
        writers.append(writer)

    server = await asyncio.start_server(accept, "127.0.0.1", 0)
    host, port = server.sockets[0].getsockname()[:2]
    yield f"ws://{host}:{port}"
    for writer in writers:
        writer.close()
    server.close()
    await server.wait_closed()


@pytest.fixture
def unused_url():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"ws://127.0.0.1:{port}"


@pytest.fixture
async def live_registry(settings):
    registry = ConnectionRegistry(settings)
    yield registry
    for connection in registry.detach_all():
        await connection.transport.close(1000, "test teardown")
        await connection.transport.wait_closed()
