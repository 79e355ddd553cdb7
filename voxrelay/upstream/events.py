"""Link states, link events and the removable subscription set.

Every UpstreamLink owns one ListenerSet. Subscribing returns a
Subscription handle; cancelling it (or clearing the whole set) guarantees
the handler is never invoked again, including for events already being
dispatched.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger()

Handler = Callable[..., Awaitable[None] | None]


class LinkState(str, Enum):
    """Connection state of an upstream link."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class LinkEvent(str, Enum):
    """Events raised by an upstream link.

    OPENED and CLOSED are raised at most once per link.
    """

    OPENED = "opened"
    TRANSCRIPT = "transcript"
    METADATA = "metadata"
    WARNING = "warning"
    ERROR = "error"
    CLOSED = "closed"


class Subscription:
    """Handle for one registered handler."""

    def __init__(self, owner: ListenerSet, event: LinkEvent, handler: Handler) -> None:
        self._owner = owner
        self.event = event
        self.handler = handler
        self.active = True

    def cancel(self) -> None:
        """Remove the handler. Safe to call more than once."""
        if not self.active:
            return
        self.active = False
        self._owner._discard(self)


class ListenerSet:
    """Handlers registered per event, dispatched in registration order."""

    def __init__(self) -> None:
        self._subscriptions: dict[LinkEvent, list[Subscription]] = {}

    def add(self, event: LinkEvent, handler: Handler) -> Subscription:
        subscription = Subscription(self, event, handler)
        self._subscriptions.setdefault(event, []).append(subscription)
        return subscription

    def _discard(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.event, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)

    def clear(self) -> None:
        """Revoke every subscription."""
        for subscriptions in self._subscriptions.values():
            for subscription in subscriptions:
                subscription.active = False
        self._subscriptions.clear()

    def count(self, event: LinkEvent | None = None) -> int:
        if event is not None:
            return len(self._subscriptions.get(event, []))
        return sum(len(subs) for subs in self._subscriptions.values())

    async def emit(self, event: LinkEvent, *args: Any) -> None:
        """Invoke the handlers for ``event``.

        Handlers may be plain functions or coroutine functions. A handler
        revoked while an earlier handler runs is skipped. A failing handler
        is logged and does not stop the others.
        """
        for subscription in list(self._subscriptions.get(event, [])):
            if not subscription.active:
                continue
            try:
                result = subscription.handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning("link_handler_failed", link_event=event.value, error=str(e))
