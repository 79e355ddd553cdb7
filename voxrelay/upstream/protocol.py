"""Wire protocol of the live transcription service.

Covers the query parameters used to open a listen socket, the JSON
control frames the relay sends, and the mapping of server messages to
link events.

Server messages handled:
    {"type": "Results", ...}   -> transcript
    {"type": "Metadata", ...}  -> metadata
    {"type": "Warning", ...}   -> warning
    {"type": "Error", ...}     -> error

Other message types (UtteranceEnd, SpeechStarted) are not relayed.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any
from urllib.parse import urlencode

from voxrelay.upstream.events import LinkEvent

KEEPALIVE_FRAME = json.dumps({"type": "KeepAlive"})
CLOSE_STREAM_FRAME = json.dumps({"type": "CloseStream"})

_MESSAGE_EVENTS: dict[str, LinkEvent] = {
    "Results": LinkEvent.TRANSCRIPT,
    "Metadata": LinkEvent.METADATA,
    "Warning": LinkEvent.WARNING,
    "Error": LinkEvent.ERROR,
}


@dataclass(frozen=True)
class LiveOptions:
    """Options sent when opening a listen socket.

    The defaults are the fixed configuration of this deployment.
    """

    language: str = "en"
    punctuate: bool = True
    smart_format: bool = True
    model: str = "nova"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_query(self) -> dict[str, str]:
        """Encode as query parameters (booleans lowercased)."""
        params: dict[str, str] = {}
        for key, value in self.to_dict().items():
            if isinstance(value, bool):
                params[key] = str(value).lower()
            else:
                params[key] = str(value)
        return params


def build_listen_url(base_url: str, options: LiveOptions) -> str:
    """Build the listen socket URL with encoded options."""
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{urlencode(options.to_query())}"


def build_auth_headers(api_key: str) -> dict[str, str]:
    return {"Authorization": f"Token {api_key}"}


def parse_message(raw: str) -> tuple[LinkEvent, dict[str, Any]] | None:
    """Map a server text frame to a link event and its payload.

    Returns:
        (event, payload) for relayed message types, None for anything
        else, including frames that are not JSON objects.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None

    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        return None

    event = _MESSAGE_EVENTS.get(data["type"])
    if event is None:
        return None
    return event, data
