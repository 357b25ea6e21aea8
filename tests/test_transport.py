"""WebsocketsTransport and the client against a real local websockets server."""

import asyncio
import socket

import pytest
import websockets
from websockets.exceptions import InvalidURI

from resock.connection.errors import TransportError
from resock.connection.transport import WebsocketsTransport
from resock.connection.websocket_client import ConnectionState, ReconnectingSocketClient


async def echo_handler(connection):
    async for message in connection:
        if message == "ping":
            await connection.send("pong")
        elif message == "close-me":
            await connection.close(4002, "asked")
            return
        else:
            await connection.send(message)


@pytest.fixture
async def server_url():
    async with websockets.serve(echo_handler, "127.0.0.1", 0) as server:
        port = list(server.sockets)[0].getsockname()[1]
        yield f"ws://127.0.0.1:{port}"


@pytest.fixture
def closed_port_url():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"ws://127.0.0.1:{port}"


async def wait_until(predicate, timeout=5.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def record(transport):
    events = {'open': [], 'message': [], 'error': [], 'close': []}
    transport.on_open = events['open'].append
    transport.on_message = events['message'].append
    transport.on_error = events['error'].append
    transport.on_close = lambda code, reason: events['close'].append((code, reason))
    return events


async def test_transport_open_send_close(server_url):
    transport = WebsocketsTransport(server_url)
    events = record(transport)

    await wait_until(lambda: events['open'])
    assert transport.is_open
    assert transport.ready_state == 1

    transport.send("hello")
    await wait_until(lambda: events['message'])
    assert events['message'] == ["hello"]

    transport.close(1000, "done")
    await wait_until(lambda: events['close'])
    assert events['close'][0][0] == 1000
    assert not transport.is_open
    assert events['error'] == []


async def test_transport_reports_server_close_code(server_url):
    transport = WebsocketsTransport(server_url)
    events = record(transport)
    await wait_until(lambda: events['open'])

    transport.send("close-me")
    await wait_until(lambda: events['close'])
    assert events['close'] == [(4002, "asked")]


async def test_send_before_open_raises(server_url):
    transport = WebsocketsTransport(server_url)
    with pytest.raises(TransportError):
        transport.send("too early")
    transport.close()


async def test_invalid_uri_fails_at_construction():
    with pytest.raises(InvalidURI):
        WebsocketsTransport("http://not-a-websocket")


def test_construction_needs_running_loop():
    with pytest.raises(RuntimeError):
        WebsocketsTransport("ws://127.0.0.1:1")


async def test_refused_connection_reports_error_then_close(closed_port_url):
    transport = WebsocketsTransport(closed_port_url)
    events = record(transport)

    await wait_until(lambda: events['close'])
    assert len(events['error']) == 1
    assert events['close'][0][0] == 1006
    assert events['open'] == []


async def test_detached_transport_is_silent(server_url):
    transport = WebsocketsTransport(server_url)
    events = record(transport)
    await wait_until(lambda: events['open'])

    transport.detach()
    transport.send("into the void")
    transport.close()
    await asyncio.sleep(0.1)
    assert events['message'] == []
    assert events['close'] == []


async def test_client_roundtrip_filters_heartbeat(server_url):
    client = ReconnectingSocketClient(url=server_url, ping_interval=50, ping_message="ping")
    messages = []
    client.use_message_interceptor(messages.append)

    await wait_until(lambda: client.state == ConnectionState.OPEN)
    assert client.send({"op": "echo", "n": 1})

    await wait_until(lambda: messages)
    await asyncio.sleep(0.2)  # several ping/pong exchanges
    assert client.heartbeat.pings_sent >= 2
    assert [m.payload for m in messages] == [{"op": "echo", "n": 1}]

    client.close()
    assert client.state == ConnectionState.CLOSED
    await asyncio.sleep(0.05)


async def test_client_reconnects_after_server_close(server_url):
    client = ReconnectingSocketClient(url=server_url, reconnect_interval=50, ping_interval=0)
    opened = []
    client.use_connection_interceptor(opened.append)

    await wait_until(lambda: len(opened) == 1)
    client.send("close-me")

    await wait_until(lambda: len(opened) == 2)
    assert client.state == ConnectionState.OPEN
    assert client.reconnect_attempts == 0

    client.close()
    await asyncio.sleep(0.05)


async def test_async_interceptor_errors_are_routed(server_url):
    client = ReconnectingSocketClient(url=server_url, ping_interval=0)
    errors = []

    async def on_message(message):
        raise ValueError(message.payload)

    client.use_message_interceptor(on_message, errors.append)
    await wait_until(lambda: client.state == ConnectionState.OPEN)
    client.send("boom")

    await wait_until(lambda: errors)
    assert isinstance(errors[0], ValueError)
    assert str(errors[0]) == "boom"

    client.close()
    await asyncio.sleep(0.05)


async def test_client_retries_refused_connection(closed_port_url):
    client = ReconnectingSocketClient(url=closed_port_url, reconnect_interval=20, ping_interval=0)
    errors = []
    client.use_connection_interceptor(on_error=errors.append)

    await wait_until(lambda: client.reconnect_attempts >= 2)
    assert errors
    assert client.state in (ConnectionState.CONNECTING, ConnectionState.CLOSED)

    client.close()
    assert client.scheduler.pending is False
