"""
Domain models for cards, grades, and review sessions.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum

from .constants import DEFAULT_EASE_FACTOR


class Grade(str, Enum):
    """Externally visible review grade."""

    FAIL = "fail"
    PASS = "pass"


class Quality(IntEnum):
    """
    Internal quality-of-response scale used by the SM-2 formulas.

    Only AGAIN and GOOD are produced from a Grade today. HARD and EASY are
    accepted by the scheduler so finer grades can be exposed later without
    touching the interval or ease-factor formulas.
    """

    AGAIN = 0
    HARD = 1
    GOOD = 2
    EASY = 3


GRADE_QUALITY: dict[Grade, Quality] = {
    Grade.FAIL: Quality.AGAIN,
    Grade.PASS: Quality.GOOD,
}


class SessionType(str, Enum):
    DAILY = "daily"
    FOCUSED = "focused"
    CATCH_UP = "catch-up"


@dataclass(frozen=True)
class SchedulingState:
    """
    The subset of a card the scheduler reads.

    Attributes:
        ease_factor: Interval growth multiplier, floored at 1.3.
        interval: Days between the last successful review and the next one.
        repetition_count: Consecutive successful reviews since the last lapse.
        last_reviewed_at: When the card was last graded (None if never).
        next_review_at: When the card becomes due (None means new, due now).
    """

    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = 0
    repetition_count: int = 0
    last_reviewed_at: datetime | None = None
    next_review_at: datetime | None = None


@dataclass(frozen=True)
class ScheduleResult:
    """Outcome of one scheduling computation. Nothing is committed by producing it."""

    interval: int
    ease_factor: float
    repetition_count: int
    next_review_at: datetime
    quality: Quality


@dataclass(frozen=True)
class Card:
    """
    A question/answer card together with its scheduling fields.

    Cards are immutable values; stores hand out copies and updates go
    through dataclasses.replace.
    """

    id: str
    question: str
    answer: str
    created_at: datetime
    updated_at: datetime
    notes: str | None = None
    category_id: str | None = None
    tags: tuple[str, ...] = ()

    # Scheduling
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = 0
    repetition_count: int = 0
    last_reviewed_at: datetime | None = None
    next_review_at: datetime | None = None

    # Lifetime statistics (not used by the scheduling decision)
    correct_count: int = 0
    incorrect_count: int = 0
    average_response_time_ms: float | None = None

    @property
    def scheduling(self) -> SchedulingState:
        return SchedulingState(
            ease_factor=self.ease_factor,
            interval=self.interval,
            repetition_count=self.repetition_count,
            last_reviewed_at=self.last_reviewed_at,
            next_review_at=self.next_review_at,
        )

    @property
    def is_new(self) -> bool:
        return self.repetition_count == 0 and self.last_reviewed_at is None

    @property
    def is_lapsed(self) -> bool:
        return self.repetition_count == 0 and self.last_reviewed_at is not None


@dataclass(frozen=True)
class ReviewEvent:
    """
    Immutable record of a single grading action.

    Events are appended to the review log and never mutated afterwards.
    """

    id: str
    card_id: str
    session_id: str
    reviewed_at: datetime
    grade: Grade
    previous_interval: int
    new_interval: int
    previous_ease_factor: float
    new_ease_factor: float
    response_time_ms: int


@dataclass(frozen=True)
class ReviewResponse:
    """A graded answer as remembered by the session that produced it."""

    card_id: str
    answer_text: str
    grade: Grade
    response_time_ms: int
    recorded_at: datetime

    @property
    def was_correct(self) -> bool:
        return self.grade is Grade.PASS


@dataclass
class ReviewSession:
    """
    Mutable aggregate for one review session.

    The queue of card ids is fixed when the session starts; only the cursor,
    the timer and the response list change afterwards.
    """

    id: str
    card_ids: tuple[str, ...]
    started_at: datetime
    session_type: SessionType = SessionType.DAILY
    current_index: int = 0
    responses: list[ReviewResponse] = field(default_factory=list)
    ended_at: datetime | None = None
    card_started_at: datetime | None = None

    @property
    def total_cards(self) -> int:
        return len(self.card_ids)

    @property
    def exhausted(self) -> bool:
        return self.current_index >= len(self.card_ids)


@dataclass(frozen=True)
class SessionStats:
    total_cards: int
    reviewed: int
    passed: int
    failed: int
    accuracy: float  # percentage, 0.0 when nothing was reviewed


@dataclass(frozen=True)
class CardFilters:
    """
    Optional narrowing of the card collection before due selection.

    Attributes:
        category_id: Exact category match when set.
        tag_ids: A card matches if it carries any of these tags.
        max_cards: Queue cap; None means the caller's default.
    """

    category_id: str | None = None
    tag_ids: tuple[str, ...] = ()
    max_cards: int | None = None
