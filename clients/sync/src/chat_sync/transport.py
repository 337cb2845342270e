"""Session-scoped real-time channel to the chat gateway.

Frames on the wire are JSON objects ``{"v": 1, "t": <event>, "body": <payload>}``.
Listeners are kept in an ``EventHub`` owned by the handle, so registration
works whether or not the socket is currently open.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import aiohttp

from .errors import ChannelFailure
from .hub import Callback, EventHub, Subscription

logger = logging.getLogger(__name__)

ONLINE_USERS_EVENT = "getOnlineUsers"
NEW_MESSAGE_EVENT = "newMessage"
FRAME_VERSION = 1


def decode_frame(raw: str) -> tuple[str, Any] | None:
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(frame, dict) or frame.get("v") != FRAME_VERSION:
        return None
    event = frame.get("t")
    if not isinstance(event, str) or not event:
        return None
    return event, frame.get("body")


def encode_frame(event: str, body: Any) -> dict[str, Any]:
    return {"v": FRAME_VERSION, "t": event, "body": body}


class TransportHandle:
    """One websocket per authenticated user, identified by ``userId``."""

    def __init__(
        self,
        url: str,
        user_id: str,
        *,
        heartbeat_s: float = 20.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.url = url
        self.user_id = user_id
        self.heartbeat_s = heartbeat_s
        self._session = session
        self._owns_session = session is None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader_task: asyncio.Task | None = None
        self._connecting: asyncio.Future | None = None
        self._hub = EventHub()

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    def on(self, event: str, callback: Callback) -> Subscription:
        return self._hub.subscribe(event, callback)

    def off(self, event: str, subscription: Subscription | None = None) -> None:
        if subscription is None:
            self._hub.unsubscribe_all(event)
        elif subscription.event == event:
            self._hub.unsubscribe(subscription)

    def listener_count(self, event: str) -> int:
        return self._hub.listener_count(event)

    async def connect(self) -> None:
        if self.connected:
            return
        # Overlapping callers share one in-flight open.
        if self._connecting is None or self._connecting.done():
            self._connecting = asyncio.ensure_future(self._open())
        task = self._connecting
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise
            raise ChannelFailure("Channel closed while connecting") from None
        finally:
            if self._connecting is task and task.done():
                self._connecting = None

    async def _open(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        try:
            ws = await self._session.ws_connect(
                self.url,
                params={"userId": self.user_id},
                heartbeat=self.heartbeat_s,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            await self._close_session()
            raise ChannelFailure(f"Could not connect to {self.url}: {exc}") from exc
        self._ws = ws
        self._reader_task = asyncio.create_task(self._reader(ws))
        logger.info("Channel connected for user %s", self.user_id)

    async def disconnect(self) -> None:
        connecting, self._connecting = self._connecting, None
        if connecting is not None and not connecting.done():
            connecting.cancel()
            try:
                await connecting
            except (asyncio.CancelledError, ChannelFailure):
                pass
        ws, self._ws = self._ws, None
        task, self._reader_task = self._reader_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if ws is not None and not ws.closed:
            await ws.close()
        await self._close_session()
        if ws is not None:
            logger.info("Channel disconnected for user %s", self.user_id)

    async def emit(self, event: str, body: Any = None) -> None:
        if not self.connected:
            raise ChannelFailure("Channel is not connected")
        await self._ws.send_json(encode_frame(event, body))

    async def _close_session(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None

    async def _reader(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    decoded = decode_frame(msg.data)
                    if decoded is None:
                        logger.debug("Skipping undecodable frame: %.200s", msg.data)
                        continue
                    event, body = decoded
                    self._hub.dispatch(event, body)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.warning("Channel error for user %s: %s", self.user_id, ws.exception())
                    break
        finally:
            if self._ws is ws:
                self._ws = None
                logger.info("Channel closed by server for user %s", self.user_id)
                await self._close_session()
