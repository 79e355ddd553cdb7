"""FastAPI dependency injection functions."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from voxrelay.config import Settings
from voxrelay.config import get_settings as _get_settings
from voxrelay.relay.session import LinkFactory
from voxrelay.upstream.link import UpstreamLink
from voxrelay.upstream.protocol import LiveOptions

# Fixed listen configuration for this deployment
LIVE_OPTIONS = LiveOptions(language="en", punctuate=True, smart_format=True, model="nova")


def get_settings() -> Settings:
    """Get application settings."""
    return _get_settings()


def get_link_factory(
    settings: Annotated[Settings, Depends(get_settings)],
) -> LinkFactory:
    """Get the factory each session uses to open upstream links."""

    def open_link() -> UpstreamLink:
        return UpstreamLink.open(
            LIVE_OPTIONS,
            api_key=settings.deepgram_api_key,
            url=settings.deepgram_url,
            open_timeout=settings.upstream_open_timeout_seconds,
        )

    return open_link
