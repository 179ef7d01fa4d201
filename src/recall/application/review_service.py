"""
Review Service: application layer boundary for UI callers.

Wraps the session coordinator, due selection and the stores. Every method
returns a ServiceResult; expected failures become an ErrorInfo with a code
and a short message instead of propagating.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Generic, TypeVar

from recall.domain.constants import DEFAULT_DUE_LIMIT, DEFAULT_HISTORY_LIMIT, DEFAULT_SESSION_SIZE
from recall.domain.errors import (
    CardNotFound,
    InvalidSession,
    RecallError,
    ValidationError,
    humanize_error,
)
from recall.domain.models import (
    Card,
    CardFilters,
    Grade,
    Quality,
    ReviewEvent,
    ReviewSession,
    ScheduleResult,
    SessionStats,
    SessionType,
)
from recall.domain.ports import CardStore, Clock, ReviewEventLog

from .card_stats import CardMetrics, CardMetricsCalculator
from .due_selector import QueueSummary, apply_filters, build_due_queue, summarize_queue
from .scheduler import preview_intervals
from .session import ReviewSessionCoordinator, SessionProgress, SubmitOutcome
from .validation import create_default_card, ensure_valid

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ErrorInfo:
    code: str
    message: str
    user_message: str
    retryable: bool

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorInfo":
        if isinstance(exc, RecallError):
            return cls(
                code=exc.code,
                message=exc.message,
                user_message=exc.user_message,
                retryable=exc.retryable,
            )
        return cls(
            code="UNKNOWN_ERROR",
            message=str(exc) or exc.__class__.__name__,
            user_message=humanize_error(exc),
            retryable=True,
        )


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """Success with a value, or failure with an ErrorInfo."""

    ok: bool
    value: T | None = None
    error: ErrorInfo | None = None

    @classmethod
    def success(cls, value: T) -> "ServiceResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, exc: BaseException) -> "ServiceResult[T]":
        return cls(ok=False, error=ErrorInfo.from_exception(exc))


@dataclass(frozen=True)
class SessionStarted:
    session: ReviewSession
    cards: list[Card]


class ReviewService:
    """
    Application service for review sessions.

    Depends on the CardStore/ReviewEventLog/Clock abstractions, not on
    concrete adapters.
    """

    def __init__(
        self,
        card_store: CardStore,
        event_log: ReviewEventLog,
        clock: Clock,
        coordinator: ReviewSessionCoordinator | None = None,
        session_size: int = DEFAULT_SESSION_SIZE,
        due_limit: int = DEFAULT_DUE_LIMIT,
        default_session_type: SessionType = SessionType.DAILY,
    ):
        self._cards = card_store
        self._events = event_log
        self._clock = clock
        self.coordinator = coordinator or ReviewSessionCoordinator(card_store, event_log, clock)
        self.session_size = session_size
        self.due_limit = due_limit
        self.default_session_type = default_session_type
        self._metrics = CardMetricsCalculator()

    async def _guard(self, action: str, fn: Callable[[], Awaitable[T]]) -> ServiceResult[T]:
        try:
            return ServiceResult.success(await fn())
        except RecallError as e:
            logger.warning(f"{action} failed: [{e.code}] {e.message}")
            return ServiceResult.failure(e)
        except Exception as e:
            logger.error(f"{action} failed unexpectedly: {e}", exc_info=True)
            return ServiceResult.failure(e)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def start_review_session(
        self,
        filters: CardFilters | None = None,
        session_type: SessionType | str | None = None,
    ) -> ServiceResult[SessionStarted]:
        async def run() -> SessionStarted:
            cards = await self._cards.list_all()
            queue = build_due_queue(
                cards, self._clock.now(), filters, default_limit=self.session_size
            )
            session = self.coordinator.start_session(
                queue, session_type or self.default_session_type
            )
            return SessionStarted(session=session, cards=queue)

        return await self._guard("Start review session", run)

    async def submit_review(
        self,
        card_id: str,
        grade: Grade | Quality | str,
        answer_text: str = "",
        elapsed_ms: int | None = None,
    ) -> ServiceResult[SubmitOutcome]:
        return await self._guard(
            "Submit review",
            lambda: self.coordinator.submit_review(card_id, grade, answer_text, elapsed_ms),
        )

    async def end_review_session(self) -> ServiceResult[SessionStats]:
        async def run() -> SessionStats:
            return self.coordinator.end_session()

        return await self._guard("End review session", run)

    async def next_card(self) -> ServiceResult[SessionProgress]:
        async def run() -> SessionProgress:
            self.coordinator.next_card()
            return self.coordinator.progress()

        return await self._guard("Next card", run)

    async def previous_card(self) -> ServiceResult[SessionProgress]:
        async def run() -> SessionProgress:
            self.coordinator.previous_card()
            return self.coordinator.progress()

        return await self._guard("Previous card", run)

    async def jump_to_card(self, index: int | None) -> ServiceResult[SessionProgress]:
        async def run() -> SessionProgress:
            if index is None:
                raise ValidationError("A card index is required to jump", field="index")
            self.coordinator.jump_to_card(index)
            return self.coordinator.progress()

        return await self._guard("Jump to card", run)

    async def get_session_progress(self) -> ServiceResult[SessionProgress]:
        async def run() -> SessionProgress:
            if not self.coordinator.is_active:
                raise InvalidSession()
            return self.coordinator.progress()

        return await self._guard("Session progress", run)

    async def get_session_stats(self) -> ServiceResult[SessionStats]:
        """Running totals for the active session without ending it."""

        async def run() -> SessionStats:
            return self.coordinator.stats()

        return await self._guard("Session stats", run)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_due_cards(self, filters: CardFilters | None = None) -> ServiceResult[list[Card]]:
        async def run() -> list[Card]:
            cards = await self._cards.list_all()
            return build_due_queue(cards, self._clock.now(), filters, default_limit=self.due_limit)

        return await self._guard("Get due cards", run)

    async def get_queue_summary(self) -> ServiceResult[QueueSummary]:
        async def run() -> QueueSummary:
            return summarize_queue(await self._cards.list_all(), self._clock.now())

        return await self._guard("Summarize queue", run)

    async def get_review_history(
        self,
        card_id: str | None = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> ServiceResult[list[ReviewEvent]]:
        """Most recent first."""

        async def run() -> list[ReviewEvent]:
            if limit < 0:
                raise ValidationError("Limit cannot be negative", field="limit")
            events = await self._events.list_events(card_id)
            events.sort(key=lambda e: e.reviewed_at, reverse=True)
            return events[:limit]

        return await self._guard("Get review history", run)

    async def preview_next_intervals(
        self, card_id: str
    ) -> ServiceResult[dict[Quality, ScheduleResult]]:
        async def run() -> dict[Quality, ScheduleResult]:
            card = await self._require_card(card_id)
            return preview_intervals(card.scheduling, self._clock.now())

        return await self._guard("Preview intervals", run)

    async def get_card_metrics(self, card_id: str) -> ServiceResult[CardMetrics]:
        async def run() -> CardMetrics:
            card = await self._require_card(card_id)
            return self._metrics.summarize(card, self._clock.now())

        return await self._guard("Card metrics", run)

    # ------------------------------------------------------------------
    # Cards
    # ------------------------------------------------------------------

    async def add_card(
        self,
        question: str,
        answer: str,
        *,
        notes: str | None = None,
        category_id: str | None = None,
        tags: tuple[str, ...] = (),
    ) -> ServiceResult[Card]:
        async def run() -> Card:
            card = ensure_valid(
                create_default_card(
                    question,
                    answer,
                    self._clock.now(),
                    notes=notes,
                    category_id=category_id,
                    tags=tags,
                )
            )
            existing = await self._cards.list_all()
            if any(c.question.lower() == card.question.lower() for c in existing):
                raise ValidationError("A card with this question already exists", field="question")
            await self._cards.save(card)
            logger.info(f"Created card {card.id}")
            return card

        return await self._guard("Add card", run)

    async def update_card(
        self,
        card_id: str,
        *,
        question: str | None = None,
        answer: str | None = None,
        notes: str | None = None,
        category_id: str | None = None,
        tags: tuple[str, ...] | None = None,
    ) -> ServiceResult[Card]:
        """
        Edit a card's content. Arguments left as None keep their current
        value; an empty notes or category_id clears it. Scheduling fields
        are never touched.
        """

        async def run() -> Card:
            card = await self._require_card(card_id)
            changes = {}
            if question is not None:
                changes["question"] = question
            if answer is not None:
                changes["answer"] = answer
            if notes is not None:
                changes["notes"] = notes
            if category_id is not None:
                changes["category_id"] = category_id.strip() or None
            if tags is not None:
                changes["tags"] = tuple(tags)
            updated = ensure_valid(replace(card, **changes, updated_at=self._clock.now()))

            existing = await self._cards.list_all()
            if any(
                c.id != card_id and c.question.lower() == updated.question.lower()
                for c in existing
            ):
                raise ValidationError("A card with this question already exists", field="question")
            await self._cards.save(updated)
            logger.info(f"Updated card {card_id}")
            return updated

        return await self._guard("Update card", run)

    async def delete_card(self, card_id: str) -> ServiceResult[str]:
        """Remove a card. Its review history is kept."""

        async def run() -> str:
            session = self.coordinator.session
            if session is not None and card_id in session.card_ids:
                raise InvalidSession(
                    f"Card {card_id} is part of the active review session; end it first"
                )
            if not await self._cards.delete(card_id):
                raise CardNotFound(card_id)
            logger.info(f"Deleted card {card_id}")
            return card_id

        return await self._guard("Delete card", run)

    async def list_cards(self, filters: CardFilters | None = None) -> ServiceResult[list[Card]]:
        async def run() -> list[Card]:
            return apply_filters(await self._cards.list_all(), filters)

        return await self._guard("List cards", run)

    async def search_cards(self, query: str) -> ServiceResult[list[Card]]:
        """Case-insensitive substring match over question, answer and notes."""

        async def run() -> list[Card]:
            cards = await self._cards.list_all()
            needle = query.strip().lower()
            if not needle:
                return cards
            return [
                c
                for c in cards
                if needle in c.question.lower()
                or needle in c.answer.lower()
                or needle in (c.notes or "").lower()
            ]

        return await self._guard("Search cards", run)

    async def _require_card(self, card_id: str) -> Card:
        card = await self._cards.find(card_id)
        if card is None:
            raise CardNotFound(card_id)
        return card
