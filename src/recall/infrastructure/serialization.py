"""
JSON record helpers for cards and review events.

Scheduling fields are stored flat next to the card content; timestamps are
ISO-8601 strings with a trailing "Z" for UTC.
"""

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from recall.domain.constants import DEFAULT_EASE_FACTOR
from recall.domain.models import Card, Grade, ReviewEvent


def _ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_datetime(value: Any) -> datetime | None:
    """Convert a JSON field into an aware datetime if possible."""
    if value in (None, "", 0):
        return None
    if isinstance(value, datetime):
        return _ensure_aware(value)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return _ensure_aware(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def format_datetime(value: datetime | None) -> str | None:
    """Serialise a datetime in ISO-8601, keeping its UTC offset."""
    if value is None:
        return None
    return _ensure_aware(value).isoformat().replace("+00:00", "Z")


def _coerce_tags(raw: Any) -> tuple[str, ...]:
    if isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)):
        return tuple(str(tag) for tag in raw)
    return ()


def card_to_record(card: Card) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": card.id,
        "question": card.question,
        "answer": card.answer,
        "tags": list(card.tags),
        "created_at": format_datetime(card.created_at),
        "updated_at": format_datetime(card.updated_at),
        "ease_factor": card.ease_factor,
        "interval": card.interval,
        "repetition_count": card.repetition_count,
        "last_reviewed_at": format_datetime(card.last_reviewed_at),
        "next_review_at": format_datetime(card.next_review_at),
        "correct_count": card.correct_count,
        "incorrect_count": card.incorrect_count,
    }
    if card.notes is not None:
        data["notes"] = card.notes
    if card.category_id is not None:
        data["category_id"] = card.category_id
    if card.average_response_time_ms is not None:
        data["average_response_time_ms"] = card.average_response_time_ms
    return data


def card_from_record(payload: Mapping[str, Any]) -> Card:
    """Build a Card from a stored record, defaulting missing scheduling fields."""
    created_at = parse_datetime(payload.get("created_at")) or datetime.now(tz=timezone.utc)
    average = payload.get("average_response_time_ms")
    return Card(
        id=str(payload["id"]),
        question=str(payload.get("question", "")),
        answer=str(payload.get("answer", "")),
        notes=payload.get("notes") or None,
        category_id=payload.get("category_id") or None,
        tags=_coerce_tags(payload.get("tags", [])),
        created_at=created_at,
        updated_at=parse_datetime(payload.get("updated_at")) or created_at,
        ease_factor=float(payload.get("ease_factor", DEFAULT_EASE_FACTOR) or DEFAULT_EASE_FACTOR),
        interval=int(payload.get("interval", 0) or 0),
        repetition_count=int(payload.get("repetition_count", 0) or 0),
        last_reviewed_at=parse_datetime(payload.get("last_reviewed_at")),
        next_review_at=parse_datetime(payload.get("next_review_at")),
        correct_count=int(payload.get("correct_count", 0) or 0),
        incorrect_count=int(payload.get("incorrect_count", 0) or 0),
        average_response_time_ms=float(average) if average is not None else None,
    )


def event_to_record(event: ReviewEvent) -> dict[str, Any]:
    return {
        "id": event.id,
        "card_id": event.card_id,
        "session_id": event.session_id,
        "reviewed_at": format_datetime(event.reviewed_at),
        "grade": event.grade.value,
        "previous_interval": event.previous_interval,
        "new_interval": event.new_interval,
        "previous_ease_factor": event.previous_ease_factor,
        "new_ease_factor": event.new_ease_factor,
        "response_time_ms": event.response_time_ms,
    }


def event_from_record(payload: Mapping[str, Any]) -> ReviewEvent:
    reviewed_at = parse_datetime(payload.get("reviewed_at"))
    if reviewed_at is None:
        raise ValueError(f"Review event {payload.get('id')} has no timestamp")
    return ReviewEvent(
        id=str(payload["id"]),
        card_id=str(payload["card_id"]),
        session_id=str(payload.get("session_id", "")),
        reviewed_at=reviewed_at,
        grade=Grade(payload["grade"]),
        previous_interval=int(payload.get("previous_interval", 0)),
        new_interval=int(payload.get("new_interval", 0)),
        previous_ease_factor=float(payload.get("previous_ease_factor", DEFAULT_EASE_FACTOR)),
        new_ease_factor=float(payload.get("new_ease_factor", DEFAULT_EASE_FACTOR)),
        response_time_ms=int(payload.get("response_time_ms", 0)),
    )
