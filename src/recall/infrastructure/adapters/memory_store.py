"""
In-memory adapters for the CardStore and ReviewEventLog ports.

Nothing survives the process; used by tests and the "memory" backend.
"""

import logging

from recall.domain.models import Card, ReviewEvent
from recall.domain.ports import CardStore, ReviewEventLog

logger = logging.getLogger(__name__)


class InMemoryCardStore(CardStore):
    def __init__(self, cards: list[Card] | None = None):
        self._cards: dict[str, Card] = {}
        for card in cards or []:
            self._cards[card.id] = card

    async def find(self, card_id: str) -> Card | None:
        return self._cards.get(card_id)

    async def save(self, card: Card) -> None:
        self._cards[card.id] = card

    async def list_all(self) -> list[Card]:
        return list(self._cards.values())

    async def delete(self, card_id: str) -> bool:
        return self._cards.pop(card_id, None) is not None


class InMemoryReviewEventLog(ReviewEventLog):
    def __init__(self):
        self._events: list[ReviewEvent] = []
        self._ids: set[str] = set()

    async def append(self, event: ReviewEvent) -> None:
        if event.id in self._ids:
            logger.debug(f"Review event {event.id} already recorded")
            return
        self._events.append(event)
        self._ids.add(event.id)

    async def list_events(self, card_id: str | None = None) -> list[ReviewEvent]:
        if card_id is None:
            return list(self._events)
        return [e for e in self._events if e.card_id == card_id]
