"""Client-facing streaming WebSocket endpoint.

WS /           - Live transcription relay (path used by the bundled page)
WS /v1/listen  - Same endpoint under a versioned path

Protocol:
- Client sends binary audio frames (any encoding the service accepts)
- Server sends JSON text messages:
    transcript results as received from the service
    {"metadata": {...}} for stream metadata
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

import voxrelay.metrics
from voxrelay.config import Settings
from voxrelay.gateway.dependencies import get_link_factory, get_settings
from voxrelay.relay.session import LinkFactory, SessionRelay, new_session_id

logger = structlog.get_logger()

router = APIRouter(tags=["realtime"])


@router.websocket("/")
@router.websocket("/v1/listen")
async def relay_stream(
    websocket: WebSocket,
    link_factory: Annotated[LinkFactory, Depends(get_link_factory)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    """Relay client audio to the transcription service and stream results back.

    One SessionRelay is created per connection and torn down when the
    client disconnects.
    """
    await websocket.accept()

    session_id = new_session_id()
    client_ip = websocket.client.host if websocket.client else "unknown"
    structlog.contextvars.bind_contextvars(session_id=session_id, client_ip=client_ip)
    logger.info("client_connected")
    voxrelay.metrics.inc_websocket_connections()

    relay = SessionRelay(
        websocket,
        link_factory,
        keepalive_interval=settings.keepalive_interval_seconds,
        session_id=session_id,
    )

    try:
        relay.start()
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            if message.get("bytes") is not None:
                chunk = message["bytes"]
            elif message.get("text") is not None:
                chunk = message["text"].encode("utf-8")
            else:
                continue

            logger.debug("client_data_received", size=len(chunk))
            await relay.handle_audio(chunk)
    except WebSocketDisconnect:
        pass
    finally:
        await relay.close()
        voxrelay.metrics.dec_websocket_connections()
        logger.info("client_disconnected")
