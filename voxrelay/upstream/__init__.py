"""Connection to the live transcription service.

Example usage:
    from voxrelay.upstream import LinkEvent, LiveOptions, UpstreamLink

    link = UpstreamLink.open(LiveOptions(), api_key=settings.deepgram_api_key)
    link.on(LinkEvent.TRANSCRIPT, handle_transcript)
"""

from voxrelay.upstream.events import LinkEvent, LinkState, ListenerSet, Subscription
from voxrelay.upstream.link import UpstreamLink
from voxrelay.upstream.protocol import LiveOptions, build_listen_url, parse_message

__all__ = [
    "LinkEvent",
    "LinkState",
    "ListenerSet",
    "LiveOptions",
    "Subscription",
    "UpstreamLink",
    "build_listen_url",
    "parse_message",
]
