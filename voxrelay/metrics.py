"""Prometheus metrics for the voxrelay gateway.

Environment Variables:
    METRICS_ENABLED: Enable/disable metrics collection (default: true)

Metric Naming Convention:
    voxrelay_{metric_name}_{unit}

When metrics are disabled every helper below is a no-op.
"""

from __future__ import annotations

import os
from typing import Any

# Global state
_metrics_enabled: bool = False
_service_name: str = ""
_metrics_initialized: bool = False

_relay_metrics: dict[str, Any] = {}


def is_metrics_enabled() -> bool:
    """Check if metrics collection is enabled."""
    return _metrics_enabled


def get_service_name() -> str:
    """Get the configured service name."""
    return _service_name


def configure_metrics(service_name: str) -> None:
    """Configure Prometheus metrics for the service.

    Args:
        service_name: Identifier for this service (e.g. "gateway").

    Environment Variables:
        METRICS_ENABLED: Set to "false" to disable metrics (default: "true")
    """
    global _metrics_enabled, _service_name, _metrics_initialized

    enabled = os.environ.get("METRICS_ENABLED", "true").lower() == "true"
    _metrics_enabled = enabled
    _service_name = service_name

    if not enabled:
        return

    if _metrics_initialized:
        return

    _metrics_initialized = True
    _init_relay_metrics()


def _init_relay_metrics() -> None:
    """Initialize relay metrics."""
    from prometheus_client import Counter, Gauge

    _relay_metrics["websocket_connections_active"] = Gauge(
        "voxrelay_websocket_connections_active",
        "Active client WebSocket connections",
    )

    _relay_metrics["audio_chunks_total"] = Counter(
        "voxrelay_audio_chunks_total",
        "Inbound audio chunks by outcome",
        ["outcome"],
    )

    _relay_metrics["reconnects_total"] = Counter(
        "voxrelay_upstream_reconnects_total",
        "Upstream links replaced after being found closed",
    )

    _relay_metrics["upstream_events_total"] = Counter(
        "voxrelay_upstream_events_total",
        "Events raised by upstream links",
        ["event"],
    )

    _relay_metrics["client_messages_total"] = Counter(
        "voxrelay_client_messages_total",
        "Messages sent to clients",
        ["kind"],
    )


def inc_websocket_connections() -> None:
    """Increment active WebSocket connections."""
    if not _metrics_enabled or "websocket_connections_active" not in _relay_metrics:
        return
    _relay_metrics["websocket_connections_active"].inc()


def dec_websocket_connections() -> None:
    """Decrement active WebSocket connections."""
    if not _metrics_enabled or "websocket_connections_active" not in _relay_metrics:
        return
    _relay_metrics["websocket_connections_active"].dec()


def inc_audio_chunks(outcome: str) -> None:
    """Increment the audio chunk counter.

    Args:
        outcome: "forwarded" or "dropped"
    """
    if not _metrics_enabled or "audio_chunks_total" not in _relay_metrics:
        return
    _relay_metrics["audio_chunks_total"].labels(outcome=outcome).inc()


def inc_reconnects() -> None:
    """Increment the upstream reconnect counter."""
    if not _metrics_enabled or "reconnects_total" not in _relay_metrics:
        return
    _relay_metrics["reconnects_total"].inc()


def inc_upstream_events(event: str) -> None:
    """Increment the upstream event counter.

    Args:
        event: Link event name (opened, transcript, warning, ...)
    """
    if not _metrics_enabled or "upstream_events_total" not in _relay_metrics:
        return
    _relay_metrics["upstream_events_total"].labels(event=event).inc()


def inc_client_messages(kind: str) -> None:
    """Increment the client message counter.

    Args:
        kind: "transcript" or "metadata"
    """
    if not _metrics_enabled or "client_messages_total" not in _relay_metrics:
        return
    _relay_metrics["client_messages_total"].labels(kind=kind).inc()
