"""Upstream transcription link.

One UpstreamLink wraps one WebSocket connection to the live transcription
service. Opening is non-blocking: the link is returned in CONNECTING state
and a background task performs the handshake, raises ``opened`` and then
reads server messages until the socket ends.

Example:
    link = UpstreamLink.open(LiveOptions(), api_key=key)
    link.on(LinkEvent.OPENED, on_opened)
    link.on(LinkEvent.TRANSCRIPT, on_transcript)

    if link.state is LinkState.OPEN:
        await link.send(chunk)

    await link.close()

Handlers registered right after ``open()`` (before the caller yields to
the event loop) are guaranteed to see every event.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError
from websockets.protocol import State

from voxrelay.config import DEEPGRAM_LISTEN_URL
from voxrelay.upstream.events import (
    Handler,
    LinkEvent,
    LinkState,
    ListenerSet,
    Subscription,
)
from voxrelay.upstream.protocol import (
    CLOSE_STREAM_FRAME,
    KEEPALIVE_FRAME,
    LiveOptions,
    build_auth_headers,
    build_listen_url,
    parse_message,
)

logger = structlog.get_logger()

Connector = Callable[..., Awaitable[Any]]


class UpstreamLink:
    """A single connection to the live transcription service."""

    def __init__(
        self,
        options: LiveOptions,
        api_key: str,
        url: str = DEEPGRAM_LISTEN_URL,
        open_timeout: float = 10.0,
        connect: Connector | None = None,
    ) -> None:
        """Create a link in CONNECTING state without starting it.

        Use :meth:`open` to create and start a link in one step.

        Args:
            options: Listen options sent as query parameters
            api_key: Service API key
            url: Listen endpoint
            open_timeout: Handshake timeout for the websocket client
            connect: Coroutine factory returning a connected socket
                (defaults to ``websockets.connect``)
        """
        self.options = options
        self.link_id = f"link_{uuid.uuid4().hex[:12]}"
        self._api_key = api_key
        self._url = url
        self._open_timeout = open_timeout
        self._connect = connect or websockets.connect

        self._state = LinkState.CONNECTING
        self._listeners = ListenerSet()
        self._ws: Any = None
        self._task: asyncio.Task | None = None
        self._closed_emitted = False
        self._log = logger.bind(link_id=self.link_id)

    @classmethod
    def open(
        cls,
        options: LiveOptions | None = None,
        *,
        api_key: str,
        url: str = DEEPGRAM_LISTEN_URL,
        open_timeout: float = 10.0,
        connect: Connector | None = None,
    ) -> UpstreamLink:
        """Create a link and start connecting in the background.

        Must be called from a running event loop. Returns immediately.
        """
        link = cls(
            options or LiveOptions(),
            api_key=api_key,
            url=url,
            open_timeout=open_timeout,
            connect=connect,
        )
        link._task = asyncio.create_task(link._run(), name=link.link_id)
        return link

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def state(self) -> LinkState:
        """Current state, read synchronously.

        While the link believes it is open, the socket's own state is
        consulted so a closing handshake in progress reports CLOSING.
        """
        if self._state is LinkState.OPEN and self._ws is not None:
            ws_state = getattr(self._ws, "state", State.OPEN)
            if ws_state is State.CLOSING:
                return LinkState.CLOSING
            if ws_state is State.CLOSED:
                return LinkState.CLOSED
        return self._state

    def on(self, event: LinkEvent, handler: Handler) -> Subscription:
        """Register a handler; returns a handle that can revoke it."""
        return self._listeners.add(event, handler)

    def remove_all_listeners(self) -> None:
        self._listeners.clear()

    def listener_count(self, event: LinkEvent | None = None) -> int:
        return self._listeners.count(event)

    async def send(self, chunk: bytes) -> None:
        """Send an audio chunk verbatim.

        A no-op unless the link is open. Transport failures are logged and
        not raised; the reader task observes the close.
        """
        if self.state is not LinkState.OPEN:
            return
        try:
            await self._ws.send(chunk)
        except ConnectionClosed as e:
            self._log.debug("link_send_failed", error=str(e))

    async def send_keepalive(self) -> None:
        """Send a KeepAlive control frame. A no-op unless the link is open."""
        if self.state is not LinkState.OPEN:
            return
        try:
            await self._ws.send(KEEPALIVE_FRAME)
            self._log.debug("link_keepalive_sent")
        except ConnectionClosed as e:
            self._log.debug("link_keepalive_failed", error=str(e))

    async def close(self) -> None:
        """Terminate the connection and revoke every subscription.

        No events are delivered after this call begins. Idempotent.
        """
        self._listeners.clear()

        if self._state is LinkState.CLOSED:
            await self._stop_reader()
            return

        was_open = self.state is LinkState.OPEN
        self._state = LinkState.CLOSING

        if self._ws is not None:
            try:
                if was_open:
                    await self._ws.send(CLOSE_STREAM_FRAME)
                await self._ws.close()
            except ConnectionClosed as e:
                self._log.debug("link_close_during_shutdown", error=str(e))

        await self._stop_reader()
        self._state = LinkState.CLOSED
        self._log.info("link_closed")

    # -------------------------------------------------------------------------
    # Background reader
    # -------------------------------------------------------------------------

    async def _stop_reader(self) -> None:
        task = self._task
        self._task = None
        if task is None or task is asyncio.current_task() or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        url = build_listen_url(self._url, self.options)
        self._log.info("link_connecting", model=self.options.model)

        try:
            self._ws = await self._connect(
                url,
                additional_headers=build_auth_headers(self._api_key),
                open_timeout=self._open_timeout,
                close_timeout=5,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._log.warning("link_connect_failed", error=str(e))
            self._state = LinkState.CLOSED
            await self._listeners.emit(
                LinkEvent.ERROR, {"type": "ConnectFailed", "message": str(e)}
            )
            await self._emit_closed()
            return

        if self._state is not LinkState.CONNECTING:
            # close() ran while the handshake was in flight
            await self._ws.close()
            return

        self._state = LinkState.OPEN
        self._log.info("link_opened")
        await self._listeners.emit(LinkEvent.OPENED)

        try:
            async for message in self._ws:
                if isinstance(message, bytes):
                    continue
                parsed = parse_message(message)
                if parsed is None:
                    self._log.debug("link_message_ignored", size=len(message))
                    continue
                event, payload = parsed
                await self._listeners.emit(event, payload)
        except ConnectionClosedError as e:
            self._log.warning("link_connection_lost", error=str(e))
            await self._listeners.emit(
                LinkEvent.ERROR, {"type": "ConnectionLost", "message": str(e)}
            )

        if self._state is LinkState.OPEN:
            self._log.info("link_disconnected")
        self._state = LinkState.CLOSED
        await self._emit_closed()

    async def _emit_closed(self) -> None:
        if self._closed_emitted:
            return
        self._closed_emitted = True
        await self._listeners.emit(LinkEvent.CLOSED)
