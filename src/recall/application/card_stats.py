"""
Per-card metrics derived from scheduling fields and lifetime counters.

This is a pure computation module with no I/O.
"""

from dataclasses import dataclass
from datetime import datetime

from recall.domain.constants import (
    DEFAULT_EASE_FACTOR,
    MASTERY_EASE_FACTOR,
    MASTERY_REPETITIONS,
    MIN_EASE_FACTOR,
    NEUTRAL_DIFFICULTY,
)
from recall.domain.models import Card

from .scheduler import round_half_up


@dataclass
class CardMetrics:
    card_id: str
    total_reviews: int
    accuracy: float | None  # correct / total as a percentage
    retention_rate: int  # 0-100, ease factor relative to the default
    average_grade: float  # estimated on the 0-3 quality scale
    difficulty: int  # 0-100, higher is harder
    days_since_creation: int
    days_overdue: int | None  # negative if not yet due, None for new cards
    mastery_days: int  # estimated days until mastered, 0 if already


class CardMetricsCalculator:
    """
    Computes derived metrics for a card.

    Stateless and side-effect free; the reference time is passed in.
    """

    def summarize(self, card: Card, now: datetime) -> CardMetrics:
        total = card.correct_count + card.incorrect_count
        return CardMetrics(
            card_id=card.id,
            total_reviews=total,
            accuracy=(card.correct_count / total) * 100 if total else None,
            retention_rate=self.retention_rate(card),
            average_grade=self.average_grade(card),
            difficulty=self.difficulty(card),
            days_since_creation=max(0, (now - card.created_at).days),
            days_overdue=self.days_overdue(card, now),
            mastery_days=self.mastery_days(card),
        )

    def retention_rate(self, card: Card) -> int:
        """Ease factor relative to the default, capped at 100."""
        if card.correct_count + card.incorrect_count == 0:
            return 0
        ease = card.ease_factor or DEFAULT_EASE_FACTOR
        return round_half_up(min(100.0, (ease / DEFAULT_EASE_FACTOR) * 100))

    def average_grade(self, card: Card) -> float:
        """
        Estimate the mean quality from the ease factor.

        Each GOOD answer holds the ease factor and each lapse costs 0.2, so
        distance above the floor maps back onto the 0-3 scale.
        """
        if card.correct_count + card.incorrect_count == 0:
            return 0.0
        ease = card.ease_factor or DEFAULT_EASE_FACTOR
        estimate = max(0.0, min(3.0, (ease - MIN_EASE_FACTOR) / 0.4))
        return round_half_up(estimate * 10) / 10

    def difficulty(self, card: Card) -> int:
        """0-100 score combining lapse rate and ease factor."""
        total = card.correct_count + card.incorrect_count
        if total == 0:
            return NEUTRAL_DIFFICULTY

        accuracy = card.correct_count / total
        ease = card.ease_factor or DEFAULT_EASE_FACTOR
        score = (1 - accuracy) * 50 + (3.5 - ease) * 25
        return max(0, min(100, round_half_up(score)))

    def mastery_days(self, card: Card) -> int:
        """
        Days of reviewing left until the card has MASTERY_REPETITIONS
        consecutive successes with a healthy ease factor.
        """
        ease = card.ease_factor or DEFAULT_EASE_FACTOR
        if card.repetition_count >= MASTERY_REPETITIONS and ease >= MASTERY_EASE_FACTOR:
            return 0

        remaining = max(0, MASTERY_REPETITIONS - card.repetition_count)
        interval = card.interval or 1
        total_days = 0
        for _ in range(remaining):
            interval = round_half_up(interval * ease)
            total_days += interval
        return total_days

    def days_overdue(self, card: Card, now: datetime) -> int | None:
        if card.next_review_at is None:
            return None
        return int((now - card.next_review_at).total_seconds() // 86400)
