"""Session relay between one client connection and one upstream link.

State machine:

    NO_LINK -> LINK_CONNECTING -> LINK_OPEN -> LINK_CLOSED
                     ^                              |
                     +------ next audio chunk ------+

    any state -> TERMINATED (client disconnect)

Audio is forwarded only while the current link is open. Chunks that
arrive while the link is connecting are dropped. A chunk that finds the
link closing or closed is dropped and triggers exactly one reconnect.
Nothing is buffered.

Link swaps and keepalive changes go through ``_attach_link`` /
``_detach_link`` / ``_start_keepalive`` only. Detaching revokes the old
link's subscriptions and cancels its timer without yielding to the event
loop, so no event from a superseded link reaches the client.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol

import structlog

import voxrelay.metrics
from voxrelay.relay.keepalive import KeepaliveTimer
from voxrelay.upstream.events import LinkEvent, LinkState, Subscription
from voxrelay.upstream.link import UpstreamLink

logger = structlog.get_logger()

DEFAULT_KEEPALIVE_INTERVAL = 10.0

LinkFactory = Callable[[], UpstreamLink]


class ClientConnection(Protocol):
    """The part of the client socket the relay writes to."""

    async def send_text(self, data: str) -> None: ...


class RelayState(str, Enum):
    NO_LINK = "no_link"
    LINK_CONNECTING = "link_connecting"
    LINK_OPEN = "link_open"
    LINK_CLOSED = "link_closed"
    TERMINATED = "terminated"


def new_session_id() -> str:
    return f"sess_{uuid.uuid4().hex[:16]}"


class SessionRelay:
    """Bridges one client connection to the transcription service.

    Example:
        relay = SessionRelay(websocket, link_factory)
        relay.start()
        async for chunk in client_audio:
            await relay.handle_audio(chunk)
        await relay.close()
    """

    def __init__(
        self,
        client: ClientConnection,
        link_factory: LinkFactory,
        keepalive_interval: float = DEFAULT_KEEPALIVE_INTERVAL,
        session_id: str | None = None,
    ) -> None:
        """Initialize the relay.

        Args:
            client: Client connection transcripts are written to
            link_factory: Returns a freshly opened UpstreamLink on each call
            keepalive_interval: Seconds between keepalive frames
            session_id: Identifier used in logs (generated if omitted)
        """
        self.session_id = session_id or new_session_id()
        self.chunks_forwarded = 0
        self.chunks_dropped = 0
        self.reconnects = 0

        self._client = client
        self._link_factory = link_factory
        self._keepalive_interval = keepalive_interval
        self._state = RelayState.NO_LINK
        self._link: UpstreamLink | None = None
        self._subscriptions: list[Subscription] = []
        self._keepalive: KeepaliveTimer | None = None
        self._log = logger.bind(session_id=self.session_id)

    @property
    def state(self) -> RelayState:
        return self._state

    @property
    def link(self) -> UpstreamLink | None:
        return self._link

    @property
    def keepalive_active(self) -> bool:
        return self._keepalive is not None and self._keepalive.active

    # -------------------------------------------------------------------------
    # Client-driven transitions
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Open the first upstream link."""
        if self._state is not RelayState.NO_LINK or self._link is not None:
            raise RuntimeError(f"Relay already started (state={self._state.value})")
        self._attach_link()

    async def handle_audio(self, chunk: bytes) -> None:
        """Route one inbound audio chunk."""
        if self._state is RelayState.TERMINATED:
            return

        link = self._link
        link_state = link.state if link is not None else LinkState.CLOSED

        if link_state is LinkState.OPEN:
            await link.send(chunk)
            self.chunks_forwarded += 1
            voxrelay.metrics.inc_audio_chunks("forwarded")
            return

        self.chunks_dropped += 1
        voxrelay.metrics.inc_audio_chunks("dropped")

        if link_state is LinkState.CONNECTING:
            self._log.debug("audio_dropped", reason="link_connecting", size=len(chunk))
            return

        # Link is closing or closed: drop this chunk and replace the link.
        self._log.info(
            "link_reconnecting",
            link_state=link_state.value,
            dropped_size=len(chunk),
        )
        old_link = self._detach_link()
        if old_link is not None:
            await old_link.close()
        if self._state is RelayState.TERMINATED:
            return
        self.reconnects += 1
        voxrelay.metrics.inc_reconnects()
        self._attach_link()

    async def close(self) -> None:
        """Tear the session down after the client disconnects."""
        if self._state is RelayState.TERMINATED:
            return
        self._state = RelayState.TERMINATED
        link = self._detach_link()
        if link is not None:
            await link.close()
        self._log.info(
            "session_terminated",
            chunks_forwarded=self.chunks_forwarded,
            chunks_dropped=self.chunks_dropped,
            reconnects=self.reconnects,
        )

    # -------------------------------------------------------------------------
    # Link ownership
    # -------------------------------------------------------------------------

    def _attach_link(self) -> None:
        link = self._link_factory()
        self._link = link
        self._subscriptions = [
            link.on(LinkEvent.OPENED, lambda: self._on_opened(link)),
            link.on(LinkEvent.TRANSCRIPT, self._on_transcript),
            link.on(LinkEvent.METADATA, self._on_metadata),
            link.on(LinkEvent.WARNING, self._on_warning),
            link.on(LinkEvent.ERROR, self._on_error),
            link.on(LinkEvent.CLOSED, lambda: self._on_closed(link)),
        ]
        self._state = RelayState.LINK_CONNECTING
        self._log.debug("link_attached", link_id=link.link_id)

    def _detach_link(self) -> UpstreamLink | None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []
        self._stop_keepalive()

        link, self._link = self._link, None
        if self._state is not RelayState.TERMINATED:
            self._state = RelayState.NO_LINK
        return link

    def _start_keepalive(self, link: UpstreamLink) -> None:
        self._stop_keepalive()
        self._keepalive = KeepaliveTimer(
            self._keepalive_interval,
            link.send_keepalive,
            name=f"keepalive-{link.link_id}",
        )
        self._keepalive.start()

    def _stop_keepalive(self) -> None:
        if self._keepalive is not None:
            self._keepalive.cancel()
            self._keepalive = None

    # -------------------------------------------------------------------------
    # Link events
    # -------------------------------------------------------------------------

    def _on_opened(self, link: UpstreamLink) -> None:
        voxrelay.metrics.inc_upstream_events(LinkEvent.OPENED.value)
        if link is not self._link or self._state is RelayState.TERMINATED:
            return
        self._state = RelayState.LINK_OPEN
        self._start_keepalive(link)
        self._log.info("upstream_connected", link_id=link.link_id)

    async def _on_transcript(self, payload: dict[str, Any]) -> None:
        voxrelay.metrics.inc_upstream_events(LinkEvent.TRANSCRIPT.value)
        await self._send_to_client(payload, kind="transcript")

    async def _on_metadata(self, payload: dict[str, Any]) -> None:
        voxrelay.metrics.inc_upstream_events(LinkEvent.METADATA.value)
        await self._send_to_client({"metadata": payload}, kind="metadata")

    def _on_warning(self, payload: dict[str, Any]) -> None:
        voxrelay.metrics.inc_upstream_events(LinkEvent.WARNING.value)
        self._log.warning("upstream_warning", payload=payload)

    def _on_error(self, payload: dict[str, Any]) -> None:
        voxrelay.metrics.inc_upstream_events(LinkEvent.ERROR.value)
        self._log.error("upstream_error", payload=payload)

    def _on_closed(self, link: UpstreamLink) -> None:
        voxrelay.metrics.inc_upstream_events(LinkEvent.CLOSED.value)
        if link is not self._link:
            return
        self._stop_keepalive()
        if self._state is not RelayState.TERMINATED:
            self._state = RelayState.LINK_CLOSED
        self._log.info("upstream_disconnected", link_id=link.link_id)

    async def _send_to_client(self, message: dict[str, Any], kind: str) -> None:
        if self._state is RelayState.TERMINATED:
            return
        try:
            await self._client.send_text(json.dumps(message))
        except Exception as e:
            # Client is going away; the gateway will call close().
            self._log.debug("client_send_failed", kind=kind, error=str(e))
            return
        voxrelay.metrics.inc_client_messages(kind)
        self._log.debug("client_message_sent", kind=kind)
