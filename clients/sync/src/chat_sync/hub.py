from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Callback = Callable[[Any], None]


@dataclass(eq=False)
class Subscription:
    """Token returned by ``EventHub.subscribe``; pass it back to unsubscribe."""

    event: str
    callback: Callback
    active: bool = field(default=True)

    def deliver(self, payload: Any) -> None:
        if self.active:
            self.callback(payload)


class EventHub:
    """Registers listeners per event name and dispatches payloads to them."""

    def __init__(self) -> None:
        self._subscriptions: Dict[str, List[Subscription]] = {}

    def subscribe(self, event: str, callback: Callback) -> Subscription:
        subscription = Subscription(event=event, callback=callback)
        self._subscriptions.setdefault(event, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.active = False
        subs = self._subscriptions.get(subscription.event)
        if not subs:
            return
        try:
            subs.remove(subscription)
        except ValueError:
            return
        if not subs:
            self._subscriptions.pop(subscription.event, None)

    def unsubscribe_all(self, event: str) -> None:
        for subscription in self._subscriptions.pop(event, []):
            subscription.active = False

    def listener_count(self, event: str) -> int:
        return len(self._subscriptions.get(event, []))

    def dispatch(self, event: str, payload: Any) -> None:
        # Snapshot so listeners may unsubscribe themselves or others mid-dispatch.
        for subscription in list(self._subscriptions.get(event, [])):
            try:
                subscription.deliver(payload)
            except Exception:
                logger.exception("Listener for %s failed", event)
