"""
Post-commit event hub.

Services publish a CommitEvent only after their transaction committed.
Integrations (marketplace listings, image generation, assistants) subscribe
here; a failing listener is logged and never reaches the caller, since the
core state is already durable by the time it runs.
"""

import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

_RECENT_EVENT_LIMIT = 50

DECK_SOLD = "deck.sold"
DECK_RELEASED = "deck.released"
CARD_SOLD = "card.sold"
TRASH_PURGED = "trash.purged"


@dataclass(frozen=True)
class CommitEvent:
    """Something that happened in a committed transaction."""

    kind: str
    owner_id: str
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))


Listener = Callable[[CommitEvent], Awaitable[None] | None]


class EventBus:
    """In-process fan-out of commit events to subscribed listeners."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self.recent: deque[CommitEvent] = deque(maxlen=_RECENT_EVENT_LIMIT)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def publish(self, event: CommitEvent) -> None:
        self.recent.append(event)
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if result is not None:
                    await result
            except Exception:
                logger.warning(
                    "Listener %r failed for %s event", listener, event.kind, exc_info=True
                )


event_bus = EventBus()
