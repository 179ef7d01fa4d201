from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from recall.domain.models import Card
from recall.infrastructure.adapters.memory_store import InMemoryCardStore, InMemoryReviewEventLog
from recall.infrastructure.clock import FixedClock

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def build_card(card_id: str = "card_1", **fields) -> Card:
    """A new card created a week before NOW; override any field by keyword."""
    created = NOW - timedelta(days=7)
    card = Card(
        id=card_id,
        question=f"Question for {card_id}?",
        answer=f"Answer for {card_id}",
        created_at=created,
        updated_at=created,
    )
    return replace(card, **fields)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def card_store():
    return InMemoryCardStore()


@pytest.fixture
def event_log():
    return InMemoryReviewEventLog()


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config/logs
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def make_card():
    return build_card
