"""
Event bus for billing domain events.

Synchronous in-process pub/sub. Handlers run in the publisher's thread after
the publishing transaction has committed, so a failing handler is logged and
swallowed: it cannot undo the invoice it was told about.
"""

import logging
from collections import defaultdict
from typing import Callable, DefaultDict, List, Type

from core.events import BillingEvent

logger = logging.getLogger(__name__)

Handler = Callable[[BillingEvent], None]


class EventBus:
    """
    In-process event bus keyed by event class.

    Subscribing to a base class (e.g. InvoiceEvent) receives every subclass
    event too. Handlers for the most specific class run first, then those of
    its bases, each group in subscription order.
    """

    def __init__(self):
        self._subscribers: DefaultDict[Type[BillingEvent], List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type[BillingEvent], callback: Handler) -> None:
        """Register callback for event_type and its subclasses."""
        self._subscribers[event_type].append(callback)

    def unsubscribe(self, event_type: Type[BillingEvent], callback: Handler) -> None:
        """Remove a previously registered callback. Unknown callbacks are ignored."""
        handlers = self._subscribers.get(event_type, [])
        if callback in handlers:
            handlers.remove(callback)

    def handlers_for(self, event: BillingEvent) -> List[Handler]:
        """Handlers that would receive event, in call order."""
        handlers: List[Handler] = []
        for cls in type(event).__mro__:
            handlers.extend(self._subscribers.get(cls, []))
        return handlers

    def publish(self, event: BillingEvent) -> None:
        """Deliver event to every matching handler."""
        for callback in self.handlers_for(event):
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Handler %s failed for %s (event_id=%s)",
                    getattr(callback, "__name__", repr(callback)),
                    type(event).__name__,
                    event.event_id,
                )
