"""
Ports (interfaces) for persistence and time.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from .models import Card, ReviewEvent


class CardStore(ABC):
    """
    Port for reading and writing cards.

    Implementations:
        - InMemoryCardStore: dict-backed, used by tests and the memory backend.
        - JsonCardStore: a single JSON document on disk.
    """

    @abstractmethod
    async def find(self, card_id: str) -> Card | None:
        """Return the card with the given id, or None."""
        pass

    @abstractmethod
    async def save(self, card: Card) -> None:
        """
        Insert or replace a card.

        Raises:
            StorageError: The write was not durably applied.
        """
        pass

    @abstractmethod
    async def list_all(self) -> list[Card]:
        """Return every card in insertion order."""
        pass

    @abstractmethod
    async def delete(self, card_id: str) -> bool:
        """
        Remove a card. Returns False if there was no such card.

        Raises:
            StorageError: The removal was not durably applied.
        """
        pass


class ReviewEventLog(ABC):
    """
    Append-only ledger of review events.

    Appending an event whose id is already present is a no-op, so a
    submission can be retried after a partial failure.
    """

    @abstractmethod
    async def append(self, event: ReviewEvent) -> None:
        """
        Raises:
            StorageError: The event was not durably recorded.
        """
        pass

    @abstractmethod
    async def list_events(self, card_id: str | None = None) -> list[ReviewEvent]:
        """Return events in append order, optionally for a single card."""
        pass


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current time as a timezone-aware datetime."""
        pass
