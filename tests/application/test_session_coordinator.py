from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from recall.application.session import ReviewSessionCoordinator
from recall.domain.errors import (
    CardNotFound,
    InvalidSession,
    NoCardsDue,
    StorageError,
    ValidationError,
)
from recall.domain.models import Grade, Quality, SessionType
from recall.infrastructure.adapters.memory_store import InMemoryCardStore


class FlakyCardStore(InMemoryCardStore):
    """Fails the first `failures` saves with a StorageError."""

    def __init__(self, cards, failures=1):
        super().__init__(cards)
        self.failures = failures

    async def save(self, card):
        if self.failures > 0:
            self.failures -= 1
            raise StorageError("disk hiccup")
        await super().save(card)


@pytest.fixture
def cards(make_card):
    return [make_card(f"c{i}") for i in range(1, 6)]


@pytest.fixture
def store(cards):
    return InMemoryCardStore(cards)


@pytest.fixture
def coordinator(store, event_log, clock):
    return ReviewSessionCoordinator(store, event_log, clock)


# --- Lifecycle ---


def test_start_session_snapshots_card_ids(coordinator, cards, now):
    session = coordinator.start_session(cards, "focused")
    assert session.id.startswith("session_")
    assert session.card_ids == ("c1", "c2", "c3", "c4", "c5")
    assert session.session_type is SessionType.FOCUSED
    assert session.started_at == now
    assert coordinator.is_active
    assert coordinator.current_card_id == "c1"


def test_start_session_with_no_cards(coordinator):
    with pytest.raises(NoCardsDue):
        coordinator.start_session([])
    assert not coordinator.is_active


def test_start_session_twice(coordinator, cards):
    coordinator.start_session(cards)
    with pytest.raises(InvalidSession):
        coordinator.start_session(cards)


def test_start_session_unknown_type(coordinator, cards):
    with pytest.raises(ValidationError):
        coordinator.start_session(cards, "marathon")


def test_end_session_without_session(coordinator):
    with pytest.raises(InvalidSession):
        coordinator.end_session()


def test_end_session_without_reviews(coordinator, cards):
    coordinator.start_session(cards)
    stats = coordinator.end_session()
    assert stats.total_cards == 5
    assert stats.reviewed == 0
    assert stats.accuracy == 0.0
    assert not coordinator.is_active


# --- Grading ---


@pytest.mark.asyncio
async def test_full_session_accuracy(coordinator, cards, event_log):
    coordinator.start_session(cards)
    grades = [Grade.PASS, Grade.PASS, Grade.FAIL, Grade.PASS, Grade.FAIL]

    outcomes = []
    for card, grade in zip(cards, grades):
        outcomes.append(await coordinator.submit_review(card.id, grade))

    assert [o.completed for o in outcomes] == [False, False, False, False, True]
    assert outcomes[0].next_card.id == "c2"
    assert outcomes[-1].next_card is None

    stats = coordinator.end_session()
    assert stats.reviewed == 5
    assert stats.passed == 3
    assert stats.failed == 2
    assert stats.accuracy == pytest.approx(60.0)
    assert len(await event_log.list_events()) == 5


@pytest.mark.asyncio
async def test_submit_after_last_card(coordinator, make_card):
    coordinator.start_session([make_card("c1")])
    await coordinator.submit_review("c1", Grade.PASS)
    with pytest.raises(InvalidSession):
        await coordinator.submit_review("c1", Grade.PASS)


@pytest.mark.asyncio
async def test_submit_without_session(coordinator):
    with pytest.raises(InvalidSession):
        await coordinator.submit_review("c1", Grade.PASS)


@pytest.mark.asyncio
async def test_submit_persists_card_and_event(coordinator, cards, store, event_log, now):
    session = coordinator.start_session(cards)
    outcome = await coordinator.submit_review("c1", "pass", answer_text="Paris", elapsed_ms=1200)

    saved = await store.find("c1")
    assert saved == outcome.updated_card
    assert saved.interval == 1
    assert saved.repetition_count == 1
    assert saved.next_review_at == now + timedelta(days=1)

    event = outcome.event
    assert event.id.startswith("review_")
    assert event.session_id == session.id
    assert event.grade is Grade.PASS
    assert (event.previous_interval, event.new_interval) == (0, 1)
    assert event.response_time_ms == 1200
    assert await event_log.list_events("c1") == [event]

    assert session.responses[0].answer_text == "Paris"
    assert session.current_index == 1


@pytest.mark.asyncio
async def test_hard_quality_is_recorded_as_fail(coordinator, cards):
    coordinator.start_session(cards)
    outcome = await coordinator.submit_review("c1", Quality.HARD)
    assert outcome.event.grade is Grade.FAIL
    assert outcome.updated_card.interval == 1
    assert outcome.updated_card.incorrect_count == 1


@pytest.mark.asyncio
async def test_submit_rejects_card_out_of_turn(coordinator, cards, store):
    coordinator.start_session(cards)
    with pytest.raises(ValidationError):
        await coordinator.submit_review("c3", Grade.PASS)
    assert (await store.find("c3")).repetition_count == 0
    assert coordinator.session.current_index == 0


@pytest.mark.asyncio
async def test_submit_unknown_card(coordinator, cards):
    coordinator.start_session(cards)
    with pytest.raises(CardNotFound):
        await coordinator.submit_review("ghost", Grade.PASS)


@pytest.mark.asyncio
async def test_submit_rejects_bad_grade_and_elapsed(coordinator, cards):
    coordinator.start_session(cards)
    with pytest.raises(ValidationError):
        await coordinator.submit_review("c1", "meh")
    with pytest.raises(ValidationError):
        await coordinator.submit_review("c1", Grade.PASS, elapsed_ms=-5)
    assert coordinator.session.current_index == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("elapsed", [float("nan"), float("inf"), -1, "fast", True])
async def test_submit_rejects_malformed_elapsed(coordinator, cards, event_log, elapsed):
    coordinator.start_session(cards)
    with pytest.raises(ValidationError) as exc:
        await coordinator.submit_review("c1", Grade.PASS, elapsed_ms=elapsed)
    assert exc.value.field == "elapsed_ms"
    assert await event_log.list_events() == []
    assert coordinator.session.current_index == 0


@pytest.mark.asyncio
async def test_elapsed_defaults_to_card_timer(coordinator, cards, clock):
    coordinator.start_session(cards)
    clock.advance(seconds=4)
    outcome = await coordinator.submit_review("c1", Grade.PASS)
    assert outcome.event.response_time_ms == 4000


# --- Atomicity ---


@pytest.mark.asyncio
async def test_event_append_failure_leaves_state_unchanged(cards, store, clock):
    event_log = AsyncMock()
    event_log.append.side_effect = StorageError("log unavailable")
    coordinator = ReviewSessionCoordinator(store, event_log, clock)
    coordinator.start_session(cards)

    with pytest.raises(StorageError):
        await coordinator.submit_review("c1", Grade.PASS)

    assert (await store.find("c1")) == cards[0]
    assert coordinator.session.current_index == 0
    assert coordinator.session.responses == []


@pytest.mark.asyncio
async def test_card_save_failure_then_retry_reuses_event(cards, event_log, clock):
    store = FlakyCardStore(cards, failures=1)
    coordinator = ReviewSessionCoordinator(store, event_log, clock)
    coordinator.start_session(cards)

    with pytest.raises(StorageError):
        await coordinator.submit_review("c1", Grade.PASS)

    assert coordinator.session.current_index == 0
    assert (await store.find("c1")).repetition_count == 0
    logged = await event_log.list_events()
    assert len(logged) == 1

    clock.advance(minutes=1)
    outcome = await coordinator.submit_review("c1", Grade.PASS)

    assert outcome.event.id == logged[0].id
    assert len(await event_log.list_events()) == 1
    assert (await store.find("c1")).repetition_count == 1
    assert coordinator.session.current_index == 1


@pytest.mark.asyncio
async def test_retry_with_different_grade_is_rejected(cards, event_log, clock):
    store = FlakyCardStore(cards, failures=1)
    coordinator = ReviewSessionCoordinator(store, event_log, clock)
    coordinator.start_session(cards)

    with pytest.raises(StorageError):
        await coordinator.submit_review("c1", Grade.PASS)

    with pytest.raises(ValidationError) as exc:
        await coordinator.submit_review("c1", Grade.FAIL)
    assert exc.value.field == "grade"
    assert (await store.find("c1")).repetition_count == 0
    assert len(await event_log.list_events()) == 1
    assert coordinator.session.current_index == 0

    logged = await event_log.list_events()
    outcome = await coordinator.submit_review("c1", Grade.PASS)
    assert outcome.event.id == logged[0].id
    assert outcome.event.grade is Grade.PASS
    assert coordinator.session.current_index == 1


@pytest.mark.asyncio
async def test_quota_error_propagates(cards, event_log, clock):
    store = InMemoryCardStore(cards)
    store.save = AsyncMock(side_effect=StorageError("full", quota_exceeded=True))
    coordinator = ReviewSessionCoordinator(store, event_log, clock)
    coordinator.start_session(cards)

    with pytest.raises(StorageError) as exc:
        await coordinator.submit_review("c1", Grade.FAIL)
    assert exc.value.code == "STORAGE_QUOTA_EXCEEDED"
    assert coordinator.session.current_index == 0


# --- Navigation ---


def test_navigation_moves_cursor(coordinator, cards):
    coordinator.start_session(cards)
    assert coordinator.next_card() == "c2"
    assert coordinator.next_card() == "c3"
    assert coordinator.previous_card() == "c2"
    assert coordinator.jump_to_card(4) == "c5"
    assert coordinator.adjacent_card_ids() == ("c4", None)


def test_navigation_is_noop_at_edges(coordinator, cards):
    coordinator.start_session(cards)
    assert coordinator.previous_card() == "c1"
    coordinator.jump_to_card(4)
    assert coordinator.next_card() == "c5"
    assert coordinator.adjacent_card_ids() == ("c4", None)


def test_jump_out_of_range(coordinator, cards):
    coordinator.start_session(cards)
    with pytest.raises(ValidationError):
        coordinator.jump_to_card(5)
    with pytest.raises(ValidationError):
        coordinator.jump_to_card(-1)


def test_navigation_needs_session(coordinator):
    with pytest.raises(InvalidSession):
        coordinator.next_card()


def test_timer_resets_only_when_cursor_moves(coordinator, cards, clock):
    coordinator.start_session(cards)
    clock.advance(seconds=3)
    assert coordinator.card_time_spent_ms() == 3000

    coordinator.previous_card()
    assert coordinator.card_time_spent_ms() == 3000

    coordinator.next_card()
    assert coordinator.card_time_spent_ms() == 0


def test_progress(coordinator, cards):
    assert coordinator.progress().total == 0
    coordinator.start_session(cards)
    progress = coordinator.progress()
    assert (progress.current, progress.total) == (1, 5)
    assert progress.percentage == pytest.approx(20.0)
    assert progress.current_card_id == "c1"
    assert (progress.previous_card_id, progress.next_card_id) == (None, "c2")


def test_stats_while_active(coordinator, cards):
    with pytest.raises(InvalidSession):
        coordinator.stats()
    coordinator.start_session(cards)
    stats = coordinator.stats()
    assert (stats.total_cards, stats.reviewed, stats.accuracy) == (5, 0, 0.0)
