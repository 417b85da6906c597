"""Realtime chat and notification channel over a websocket."""
from __future__ import annotations

import asyncio
import inspect
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed

LOGGER = logging.getLogger(__name__)

EventCallback = Callable[[Any], Union[None, Awaitable[None]]]


class RealtimeEvent(str, Enum):
    NEW_MESSAGE = "new_message"
    TYPING = "typing"
    NEW_NOTIFICATION = "new_notification"


class Subscription:
    """Handle returned by ``RealtimeChannel.subscribe``."""

    def __init__(self, channel: "RealtimeChannel", event: RealtimeEvent, callback: EventCallback) -> None:
        self._channel = channel
        self.event = event
        self.callback = callback

    def cancel(self) -> None:
        self._channel.unsubscribe(self.event, self.callback)


class RealtimeChannel:
    """Single authenticated websocket connection dispatching named events.

    The token is sent once, in the first frame after connecting. Frames from
    the server are JSON objects of the form ``{"event": ..., "data": ...}``;
    ``data`` is handed to subscribers as-is.
    """

    def __init__(
        self,
        url: str,
        token: Optional[str],
        *,
        connect: Callable[[str], Awaitable[Any]] = websockets.connect,
    ) -> None:
        self.url = url
        self.token = token
        self._connect = connect
        self._websocket: Any = None
        self._listener: Optional[asyncio.Task[None]] = None
        self._subscribers: Dict[RealtimeEvent, List[EventCallback]] = {
            event: [] for event in RealtimeEvent
        }

    @property
    def is_open(self) -> bool:
        return self._websocket is not None

    async def open(self) -> None:
        """Connect, authenticate, and start dispatching events."""

        if self._websocket is not None:
            return
        websocket = await self._connect(self.url)
        try:
            await websocket.send(json.dumps({"type": "auth", "token": self.token}))
        except BaseException:
            await websocket.close()
            raise
        self._websocket = websocket
        self._listener = asyncio.create_task(self._listen(websocket))
        LOGGER.info("realtime channel connected", extra={"url": self.url})

    def subscribe(self, event: Union[RealtimeEvent, str], callback: EventCallback) -> Subscription:
        event = RealtimeEvent(event)
        self._subscribers[event].append(callback)
        return Subscription(self, event, callback)

    def unsubscribe(self, event: Union[RealtimeEvent, str], callback: EventCallback) -> None:
        callbacks = self._subscribers[RealtimeEvent(event)]
        if callback in callbacks:
            callbacks.remove(callback)

    def subscriber_count(self, event: Union[RealtimeEvent, str]) -> int:
        return len(self._subscribers[RealtimeEvent(event)])

    async def close(self) -> None:
        """Stop the listener, close the socket, and drop all subscriptions."""

        listener, self._listener = self._listener, None
        websocket, self._websocket = self._websocket, None
        if listener is not None:
            listener.cancel()
            try:
                await listener
            except asyncio.CancelledError:
                pass
        if websocket is not None:
            await websocket.close()
        for callbacks in self._subscribers.values():
            callbacks.clear()

    async def _listen(self, websocket: Any) -> None:
        try:
            async for raw in websocket:
                await self._dispatch(raw)
        except ConnectionClosed:
            LOGGER.info("realtime channel closed by server", extra={"url": self.url})
        except Exception:  # noqa: BLE001
            LOGGER.exception("realtime listener failed", extra={"url": self.url})
        finally:
            if self._websocket is websocket:
                self._websocket = None

    async def _dispatch(self, raw: Union[str, bytes]) -> None:
        try:
            frame = json.loads(raw)
            name = frame["event"]
        except (ValueError, TypeError, KeyError):
            LOGGER.warning("dropping undecodable realtime frame", extra={"detail": str(raw)[:200]})
            return

        try:
            event = RealtimeEvent(name)
        except ValueError:
            LOGGER.debug("ignoring realtime event", extra={"event": name})
            return

        payload = frame.get("data")
        for callback in list(self._subscribers[event]):
            try:
                result = callback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:  # noqa: BLE001
                LOGGER.exception("realtime callback failed", extra={"event": event.value})
