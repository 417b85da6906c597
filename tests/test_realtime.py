from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from poster_api.clients.poster import PosterClient
from poster_api.config import ClientConfig
from poster_api.realtime import RealtimeChannel, RealtimeEvent


class FakeWebSocket:
    """In-memory websocket: frames pushed by the test are yielded to the reader."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed = False
        self._incoming: asyncio.Queue = asyncio.Queue()

    async def send(self, data: str) -> None:
        self.sent.append(data)

    async def close(self) -> None:
        self.closed = True
        await self._incoming.put(None)

    def disconnect(self) -> None:
        self._incoming.put_nowait(None)

    def push(self, frame) -> None:
        self._incoming.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        item = await self._incoming.get()
        if item is None:
            raise StopAsyncIteration
        return item


class FakeConnector:
    def __init__(self) -> None:
        self.urls: list[str] = []
        self.sockets: list[FakeWebSocket] = []

    async def __call__(self, url: str) -> FakeWebSocket:
        self.urls.append(url)
        socket = FakeWebSocket()
        self.sockets.append(socket)
        return socket


async def settle() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_open_sends_auth_frame_once():
    connector = FakeConnector()
    channel = RealtimeChannel("wss://poster.test", "tok", connect=connector)

    await channel.open()
    await channel.open()

    assert connector.urls == ["wss://poster.test"]
    assert json.loads(connector.sockets[0].sent[0]) == {"type": "auth", "token": "tok"}
    await channel.close()


@pytest.mark.asyncio
async def test_events_dispatch_to_every_subscriber():
    connector = FakeConnector()
    channel = RealtimeChannel("wss://poster.test", "tok", connect=connector)
    received = []

    async def async_listener(data):
        received.append(("async", data))

    channel.subscribe(RealtimeEvent.NEW_MESSAGE, lambda data: received.append(("sync", data)))
    channel.subscribe("new_message", async_listener)
    await channel.open()

    connector.sockets[0].push({"event": "new_message", "data": {"content": "hi"}})
    await settle()

    assert received == [("sync", {"content": "hi"}), ("async", {"content": "hi"})]
    await channel.close()


@pytest.mark.asyncio
async def test_unsubscribed_callbacks_stop_receiving():
    connector = FakeConnector()
    channel = RealtimeChannel("wss://poster.test", None, connect=connector)
    received = []
    subscription = channel.subscribe(RealtimeEvent.TYPING, received.append)
    await channel.open()

    subscription.cancel()
    connector.sockets[0].push({"event": "typing", "data": {"userId": 2}})
    await settle()

    assert received == []
    assert channel.subscriber_count(RealtimeEvent.TYPING) == 0
    await channel.close()


@pytest.mark.asyncio
async def test_bad_frames_and_failing_callbacks_do_not_stop_dispatch():
    connector = FakeConnector()
    channel = RealtimeChannel("wss://poster.test", "tok", connect=connector)
    received = []

    def broken(data):
        raise RuntimeError("callback failed")

    channel.subscribe(RealtimeEvent.NEW_NOTIFICATION, broken)
    channel.subscribe(RealtimeEvent.NEW_NOTIFICATION, received.append)
    await channel.open()

    socket = connector.sockets[0]
    socket.push("not json")
    socket.push({"event": "unknown_event", "data": 1})
    socket.push({"no_event": True})
    socket.push({"event": "new_notification", "data": "raw payload"})
    await settle()

    assert received == ["raw payload"]
    await channel.close()


@pytest.mark.asyncio
async def test_close_closes_socket_and_drops_subscribers():
    connector = FakeConnector()
    channel = RealtimeChannel("wss://poster.test", "tok", connect=connector)
    channel.subscribe(RealtimeEvent.NEW_MESSAGE, lambda data: None)
    await channel.open()

    await channel.close()

    assert connector.sockets[0].closed
    assert not channel.is_open
    assert channel.subscriber_count(RealtimeEvent.NEW_MESSAGE) == 0


class FailingAuthSocket(FakeWebSocket):
    async def send(self, data: str) -> None:
        raise ConnectionError("socket dropped during auth")


@pytest.mark.asyncio
async def test_failed_auth_frame_closes_socket():
    socket = FailingAuthSocket()

    async def connect(url: str) -> FakeWebSocket:
        return socket

    channel = RealtimeChannel("wss://poster.test", "tok", connect=connect)

    with pytest.raises(ConnectionError):
        await channel.open()

    assert socket.closed
    assert not channel.is_open


class BrokenIterSocket(FakeWebSocket):
    async def __anext__(self) -> str:
        raise OSError("network unreachable")


@pytest.mark.asyncio
async def test_listener_error_marks_channel_closed_and_allows_reopen():
    sockets = [BrokenIterSocket(), FakeWebSocket()]

    async def connect(url: str) -> FakeWebSocket:
        return sockets.pop(0)

    channel = RealtimeChannel("wss://poster.test", "tok", connect=connect)
    await channel.open()
    await settle()

    assert not channel.is_open

    await channel.open()
    assert channel.is_open
    assert sockets == []
    await channel.close()


def make_client(connector: FakeConnector, **options) -> PosterClient:
    config = ClientConfig(base_url="https://api.poster.test", **options)
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={}))
    return PosterClient(config, transport=transport, realtime_connect=connector)


@pytest.mark.asyncio
async def test_client_shares_one_connection_for_chat_and_notifications():
    connector = FakeConnector()
    client = make_client(connector, auth_token="first")
    messages, typing, notifications = [], [], []

    chat = await client.connect_chat(on_message=messages.append, on_typing=typing.append)
    client.set_auth_token("rotated")
    alerts = await client.connect_notifications(on_notification=notifications.append)

    assert chat is alerts
    assert connector.urls == ["wss://api.poster.test"]
    assert json.loads(connector.sockets[0].sent[0])["token"] == "first"

    socket = connector.sockets[0]
    socket.push({"event": "new_message", "data": {"id": 1}})
    socket.push({"event": "typing", "data": {"userId": 3}})
    socket.push({"event": "new_notification", "data": {"id": 9}})
    await settle()

    assert messages == [{"id": 1}]
    assert typing == [{"userId": 3}]
    assert notifications == [{"id": 9}]

    await client.aclose()
    assert socket.closed


@pytest.mark.asyncio
async def test_connect_without_callbacks_only_opens_channel():
    connector = FakeConnector()
    client = make_client(connector, realtime_url="ws://realtime.poster.test/socket")

    channel = await client.connect_chat()

    assert connector.urls == ["ws://realtime.poster.test/socket"]
    assert channel.subscriber_count(RealtimeEvent.NEW_MESSAGE) == 0
    await client.aclose()


@pytest.mark.asyncio
async def test_reconnect_after_server_close_uses_current_token():
    connector = FakeConnector()
    client = make_client(connector, auth_token="first")

    await client.connect_chat()
    connector.sockets[0].disconnect()
    await settle()
    client.set_auth_token("rotated")
    await client.connect_notifications()

    tokens = [json.loads(socket.sent[0])["token"] for socket in connector.sockets]
    assert tokens == ["first", "rotated"]
    await client.aclose()
