"""
Due-set selection for review sessions.

Decides which cards are due at a reference instant and in what order they
are presented:
1. Scheduled cards whose due date has passed, earliest due date first
2. New cards (never scheduled), in collection order
3. Truncation to the session size, after ordering
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from recall.domain.errors import ValidationError
from recall.domain.models import Card, CardFilters

logger = logging.getLogger(__name__)


@dataclass
class QueueSummary:
    """Breakdown of a card collection relative to a reference time."""

    new: int
    overdue: int  # due before the start of the reference day
    due_today: int  # due earlier on the reference day (inclusive of now)
    upcoming: int  # scheduled after now
    total: int

    @property
    def due(self) -> int:
        return self.new + self.overdue + self.due_today


def is_due(card: Card, now: datetime) -> bool:
    """New cards are always due; scheduled ones once now reaches their due date."""
    if card.next_review_at is None:
        return True
    return now >= card.next_review_at


def matches_filters(card: Card, filters: CardFilters) -> bool:
    """
    Category must match exactly when given; tags match if the card has any
    of the requested ones. The two predicates are combined with AND.
    """
    if filters.category_id and card.category_id != filters.category_id:
        return False
    if filters.tag_ids and not any(tag in card.tags for tag in filters.tag_ids):
        return False
    return True


def apply_filters(cards: Iterable[Card], filters: CardFilters | None) -> list[Card]:
    if filters is None:
        return list(cards)
    return [card for card in cards if matches_filters(card, filters)]


def select_due(cards: Iterable[Card], now: datetime) -> list[Card]:
    """
    Filter to due cards and order them by priority.

    Scheduled cards come first, ascending by next_review_at so the card that
    has drifted furthest from its target date is reviewed first. New cards
    follow in their original order. Sorting is stable.
    """
    scheduled: list[Card] = []
    new: list[Card] = []
    for card in cards:
        if not is_due(card, now):
            continue
        if card.next_review_at is None:
            new.append(card)
        else:
            scheduled.append(card)

    scheduled.sort(key=lambda c: c.next_review_at)
    return scheduled + new


def limit(cards: Sequence[Card], max_count: int | None) -> list[Card]:
    """Truncate an already ordered queue. None means no cap."""
    if max_count is None:
        return list(cards)
    if max_count < 0:
        raise ValidationError("Maximum card count cannot be negative", field="max_cards")
    return list(cards[:max_count])


def build_due_queue(
    cards: Iterable[Card],
    now: datetime,
    filters: CardFilters | None = None,
    default_limit: int | None = None,
) -> list[Card]:
    """
    Filters, due selection and the cap, in that order.

    The cap comes from filters.max_cards when set, otherwise default_limit.
    """
    candidates = apply_filters(cards, filters)
    ordered = select_due(candidates, now)
    max_count = filters.max_cards if filters and filters.max_cards is not None else default_limit
    queue = limit(ordered, max_count)
    logger.debug(
        f"[due] {len(candidates)} candidates, {len(ordered)} due, {len(queue)} queued"
    )
    return queue


def summarize_queue(cards: Iterable[Card], now: datetime) -> QueueSummary:
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    new = overdue = due_today = upcoming = total = 0

    for card in cards:
        total += 1
        if card.next_review_at is None:
            new += 1
        elif card.next_review_at > now:
            upcoming += 1
        elif card.next_review_at < start_of_day:
            overdue += 1
        else:
            due_today += 1

    return QueueSummary(
        new=new, overdue=overdue, due_today=due_today, upcoming=upcoming, total=total
    )
