"""
Review session coordinator.

Drives one review session at a time through NoSession -> Active -> Ended,
calling the scheduler for each graded card and persisting the outcome through
the CardStore and ReviewEventLog ports.
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

from ulid import ULID

from recall.domain.errors import (
    CardNotFound,
    InvalidSession,
    NoCardsDue,
    StorageError,
    ValidationError,
)
from recall.domain.models import (
    Card,
    Grade,
    Quality,
    ReviewEvent,
    ReviewResponse,
    ReviewSession,
    SessionStats,
    SessionType,
)
from recall.domain.ports import CardStore, Clock, ReviewEventLog

from .scheduler import apply_schedule, compute_next_review, grade_for, to_quality

logger = logging.getLogger(__name__)


def generate_session_id() -> str:
    return f"session_{ULID()}"


def generate_review_id() -> str:
    return f"review_{ULID()}"


def compute_stats(session: ReviewSession) -> SessionStats:
    reviewed = len(session.responses)
    passed = sum(1 for r in session.responses if r.grade is Grade.PASS)
    failed = reviewed - passed
    accuracy = (passed / reviewed) * 100 if reviewed > 0 else 0.0
    return SessionStats(
        total_cards=session.total_cards,
        reviewed=reviewed,
        passed=passed,
        failed=failed,
        accuracy=accuracy,
    )


@dataclass
class SubmitOutcome:
    """Result of a successful submission."""

    event: ReviewEvent
    updated_card: Card
    next_card: Card | None
    completed: bool


@dataclass
class SessionProgress:
    current: int
    total: int
    percentage: float
    current_card_id: str | None = None
    previous_card_id: str | None = None
    next_card_id: str | None = None


@dataclass(frozen=True)
class _PendingReview:
    """An event that reached the log while its card update did not."""

    session_id: str
    quality: Quality
    event: ReviewEvent
    updated_card: Card


class ReviewSessionCoordinator:
    """
    Owns the single active review session.

    Session state only advances after both the review event and the card
    update have been acknowledged by their stores. If the event was logged
    but the card write failed, the next submission for that card reuses the
    same event (same id), which the log treats as already recorded.
    """

    def __init__(self, card_store: CardStore, event_log: ReviewEventLog, clock: Clock):
        self._cards = card_store
        self._events = event_log
        self._clock = clock
        self._session: ReviewSession | None = None
        self._pending: dict[str, _PendingReview] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> ReviewSession | None:
        return self._session

    def start_session(
        self,
        cards: Sequence[Card],
        session_type: SessionType | str = SessionType.DAILY,
    ) -> ReviewSession:
        """
        Begin a session over a snapshot of the given cards' ids.

        Raises:
            InvalidSession: A session is already active.
            NoCardsDue: cards is empty.
            ValidationError: Unknown session type.
        """
        if self._session is not None:
            raise InvalidSession("A review session is already active")
        try:
            kind = SessionType(session_type)
        except ValueError:
            raise ValidationError(
                f"Unknown session type '{session_type}'", field="session_type"
            ) from None
        if not cards:
            raise NoCardsDue()

        now = self._clock.now()
        self._session = ReviewSession(
            id=generate_session_id(),
            card_ids=tuple(card.id for card in cards),
            started_at=now,
            session_type=kind,
            card_started_at=now,
        )
        self._pending.clear()
        logger.info(
            f"Started {kind.value} session {self._session.id} with {len(cards)} cards"
        )
        return self._session

    def end_session(self) -> SessionStats:
        """
        Finalize and discard the active session.

        Raises:
            InvalidSession: No session is active.
        """
        session = self._require_session()
        session.ended_at = self._clock.now()
        stats = compute_stats(session)
        self._session = None
        self._pending.clear()
        logger.info(
            f"Ended session {session.id}: {stats.reviewed} reviewed, "
            f"{stats.passed} passed, accuracy {stats.accuracy:.1f}%"
        )
        return stats

    # ------------------------------------------------------------------
    # Grading
    # ------------------------------------------------------------------

    async def submit_review(
        self,
        card_id: str,
        grade: Grade | Quality | str,
        answer_text: str = "",
        elapsed_ms: int | None = None,
    ) -> SubmitOutcome:
        """
        Grade the card at the cursor and advance.

        Raises:
            InvalidSession: No active session, or every card has been graded.
            ValidationError: Malformed grade or elapsed time, card_id is not
                the current card, or a different grade for this card is still
                waiting to be saved.
            CardNotFound: The store has no card with this id.
            StorageError: The event or the card update was not persisted; the
                cursor has not moved.
        """
        session = self._require_session()
        if session.exhausted:
            raise InvalidSession("The review session has no remaining cards")

        quality = to_quality(grade)
        if elapsed_ms is not None and (
            isinstance(elapsed_ms, bool)
            or not isinstance(elapsed_ms, (int, float))
            or not math.isfinite(elapsed_ms)
            or elapsed_ms < 0
        ):
            raise ValidationError(
                "Elapsed time must be a non-negative number of milliseconds", field="elapsed_ms"
            )

        card = await self._cards.find(card_id)
        if card is None:
            raise CardNotFound(card_id)

        expected = session.card_ids[session.current_index]
        if card_id != expected:
            raise ValidationError(
                f"Card {card_id} is not the current card (expected {expected})",
                field="card_id",
            )

        response_time = int(elapsed_ms) if elapsed_ms is not None else self.card_time_spent_ms()

        pending = self._pending.get(card_id)
        if pending is not None and pending.session_id == session.id:
            if pending.quality != quality:
                raise ValidationError(
                    f"Card {card_id} already has a {pending.quality.name.lower()} review "
                    f"waiting to be saved; resubmit that grade",
                    field="grade",
                )
            logger.info(f"Retrying persistence of {pending.event.id} for card {card_id}")
            event, updated = pending.event, pending.updated_card
        else:
            now = self._clock.now()
            result = compute_next_review(card.scheduling, quality, now)
            event = ReviewEvent(
                id=generate_review_id(),
                card_id=card_id,
                session_id=session.id,
                reviewed_at=now,
                grade=grade_for(quality),
                previous_interval=card.interval,
                new_interval=result.interval,
                previous_ease_factor=card.ease_factor,
                new_ease_factor=result.ease_factor,
                response_time_ms=response_time,
            )
            updated = apply_schedule(card, result, now, response_time)

        try:
            await self._events.append(event)
        except StorageError as e:
            logger.error(f"Review event {event.id} not recorded: {e}")
            raise

        self._pending[card_id] = _PendingReview(session.id, quality, event, updated)
        try:
            await self._cards.save(updated)
        except StorageError as e:
            logger.error(
                f"Card {card_id} not updated after logging {event.id}; "
                f"resubmit to retry: {e}"
            )
            raise
        del self._pending[card_id]

        session.responses.append(
            ReviewResponse(
                card_id=card_id,
                answer_text=answer_text,
                grade=event.grade,
                response_time_ms=event.response_time_ms,
                recorded_at=event.reviewed_at,
            )
        )
        session.current_index += 1
        session.card_started_at = self._clock.now()

        next_card = None
        if not session.exhausted:
            next_card = await self._cards.find(session.card_ids[session.current_index])

        logger.debug(
            f"[session] {card_id} graded {event.grade.value}: "
            f"interval {event.previous_interval}->{event.new_interval}, "
            f"ease {event.previous_ease_factor:.2f}->{event.new_ease_factor:.2f}"
        )
        return SubmitOutcome(
            event=event,
            updated_card=updated,
            next_card=next_card,
            completed=session.exhausted,
        )

    # ------------------------------------------------------------------
    # Navigation (no grading, no persistence)
    # ------------------------------------------------------------------

    def next_card(self) -> str | None:
        """Skip forward one card. No-op on the last card."""
        session = self._require_session()
        if session.current_index + 1 < session.total_cards:
            self._move_to(session, session.current_index + 1)
        return self.current_card_id

    def previous_card(self) -> str | None:
        """Step back one card. No-op on the first card."""
        session = self._require_session()
        if session.current_index - 1 >= 0:
            self._move_to(session, session.current_index - 1)
        return self.current_card_id

    def jump_to_card(self, index: int) -> str | None:
        session = self._require_session()
        if not 0 <= index < session.total_cards:
            raise ValidationError(
                f"Card index {index} is outside the session (0-{session.total_cards - 1})",
                field="index",
            )
        self._move_to(session, index)
        return self.current_card_id

    def _move_to(self, session: ReviewSession, index: int) -> None:
        session.current_index = index
        session.card_started_at = self._clock.now()

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    @property
    def current_card_id(self) -> str | None:
        if self._session is None or self._session.exhausted:
            return None
        return self._session.card_ids[self._session.current_index]

    def adjacent_card_ids(self) -> tuple[str | None, str | None]:
        session = self._require_session()
        i = session.current_index
        previous = session.card_ids[i - 1] if 0 < i <= session.total_cards else None
        following = session.card_ids[i + 1] if i + 1 < session.total_cards else None
        return previous, following

    def progress(self) -> SessionProgress:
        if self._session is None:
            return SessionProgress(current=0, total=0, percentage=0.0)
        total = self._session.total_cards
        current = min(self._session.current_index + 1, total)
        percentage = (current / total) * 100 if total > 0 else 0.0
        previous, following = self.adjacent_card_ids()
        return SessionProgress(
            current=current,
            total=total,
            percentage=percentage,
            current_card_id=self.current_card_id,
            previous_card_id=previous,
            next_card_id=following,
        )

    def stats(self) -> SessionStats:
        return compute_stats(self._require_session())

    def card_time_spent_ms(self) -> int:
        """Milliseconds since the cursor last moved (0 without a session)."""
        if self._session is None or self._session.card_started_at is None:
            return 0
        elapsed = self._clock.now() - self._session.card_started_at
        return max(0, int(elapsed.total_seconds() * 1000))

    def _require_session(self) -> ReviewSession:
        if self._session is None:
            raise InvalidSession()
        return self._session
