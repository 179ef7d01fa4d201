"""Card field validation and normalisation."""

from dataclasses import dataclass, replace
from datetime import datetime

from ulid import ULID

from recall.domain.constants import (
    DEFAULT_EASE_FACTOR,
    MAX_ANSWER_LENGTH,
    MAX_EASE_FACTOR,
    MAX_NOTES_LENGTH,
    MAX_QUESTION_LENGTH,
    MAX_TAGS,
    MIN_ANSWER_LENGTH,
    MIN_EASE_FACTOR,
    MIN_QUESTION_LENGTH,
)
from recall.domain.errors import ValidationError
from recall.domain.models import Card


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


def generate_card_id() -> str:
    return f"card_{ULID()}"


def validate_card(card: Card) -> list[FieldError]:
    """Return every problem with the card; an empty list means valid."""
    errors: list[FieldError] = []

    question = (card.question or "").strip()
    if not question:
        errors.append(FieldError("question", "Question is required"))
    elif len(question) < MIN_QUESTION_LENGTH:
        errors.append(
            FieldError("question", f"Question must be at least {MIN_QUESTION_LENGTH} characters")
        )
    elif len(card.question) > MAX_QUESTION_LENGTH:
        errors.append(
            FieldError("question", f"Question must not exceed {MAX_QUESTION_LENGTH} characters")
        )

    answer = (card.answer or "").strip()
    if len(answer) < MIN_ANSWER_LENGTH:
        errors.append(FieldError("answer", "Answer is required"))
    elif len(card.answer) > MAX_ANSWER_LENGTH:
        errors.append(
            FieldError("answer", f"Answer must not exceed {MAX_ANSWER_LENGTH} characters")
        )

    if card.notes and len(card.notes) > MAX_NOTES_LENGTH:
        errors.append(FieldError("notes", f"Notes must not exceed {MAX_NOTES_LENGTH} characters"))

    if len(card.tags) > MAX_TAGS:
        errors.append(FieldError("tags", f"Maximum {MAX_TAGS} tags allowed"))
    if any(not tag.strip() for tag in card.tags):
        errors.append(FieldError("tags", "Tags cannot be empty"))
    if len({tag.lower() for tag in card.tags}) != len(card.tags):
        errors.append(FieldError("tags", "Duplicate tags are not allowed"))

    if not MIN_EASE_FACTOR <= card.ease_factor <= MAX_EASE_FACTOR:
        errors.append(
            FieldError(
                "ease_factor",
                f"Ease factor must be between {MIN_EASE_FACTOR} and {MAX_EASE_FACTOR}",
            )
        )
    if card.interval < 0:
        errors.append(FieldError("interval", "Interval cannot be negative"))
    if card.repetition_count < 0:
        errors.append(FieldError("repetition_count", "Repetition count cannot be negative"))

    return errors


def sanitize_card(card: Card) -> Card:
    """Trim whitespace and drop empty notes and tags."""
    notes = card.notes.strip() if card.notes else None
    return replace(
        card,
        question=card.question.strip(),
        answer=card.answer.strip(),
        notes=notes or None,
        tags=tuple(t.strip() for t in card.tags if t.strip()),
    )


def ensure_valid(card: Card) -> Card:
    """
    Sanitize then validate.

    Raises:
        ValidationError: For the first problem found.
    """
    cleaned = sanitize_card(card)
    errors = validate_card(cleaned)
    if errors:
        raise ValidationError(errors[0].message, field=errors[0].field)
    return cleaned


def create_default_card(
    question: str,
    answer: str,
    now: datetime,
    *,
    notes: str | None = None,
    category_id: str | None = None,
    tags: tuple[str, ...] = (),
) -> Card:
    """A new, never-reviewed card with default scheduling fields."""
    return Card(
        id=generate_card_id(),
        question=question.strip(),
        answer=answer.strip(),
        notes=notes,
        category_id=category_id,
        tags=tags,
        created_at=now,
        updated_at=now,
        ease_factor=DEFAULT_EASE_FACTOR,
    )
