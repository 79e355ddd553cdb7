"""Per-client session relay and its keepalive timer."""

from voxrelay.relay.keepalive import KeepaliveTimer
from voxrelay.relay.session import (
    ClientConnection,
    LinkFactory,
    RelayState,
    SessionRelay,
    new_session_id,
)

__all__ = [
    "ClientConnection",
    "KeepaliveTimer",
    "LinkFactory",
    "RelayState",
    "SessionRelay",
    "new_session_id",
]
