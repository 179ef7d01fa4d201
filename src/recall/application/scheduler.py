"""
SM-2 scheduler.

Pure computation module with no I/O: given a card's scheduling state and a
grade, derive the next interval, ease factor and due date. Nothing here reads
the clock; callers pass "now" in.
"""

import math
from dataclasses import replace
from datetime import datetime, timedelta

from recall.domain.constants import (
    AGAIN_LAPSE_INTERVAL_DAYS,
    FIRST_INTERVAL_DAYS,
    HARD_LAPSE_INTERVAL_DAYS,
    LAPSE_EASE_PENALTY,
    MIN_EASE_FACTOR,
    QUALITY_OFFSET,
    SECOND_INTERVAL_DAYS,
    SM2_MAX_RESPONSE,
)
from recall.domain.errors import ValidationError
from recall.domain.models import (
    GRADE_QUALITY,
    Card,
    Grade,
    Quality,
    ScheduleResult,
    SchedulingState,
)


def to_quality(grade: Grade | Quality | str | int) -> Quality:
    """
    Normalize an external grade (or an internal quality) to the 0-3 scale.

    Raises:
        ValidationError: The value is neither a known grade nor a quality.
    """
    if isinstance(grade, Quality):
        return grade
    if isinstance(grade, Grade):
        return GRADE_QUALITY[grade]
    if isinstance(grade, str):
        try:
            return GRADE_QUALITY[Grade(grade.strip().lower())]
        except ValueError:
            raise ValidationError(f"Unknown grade '{grade}'", field="grade") from None
    if isinstance(grade, int) and not isinstance(grade, bool):
        try:
            return Quality(grade)
        except ValueError:
            raise ValidationError(
                f"Quality must be between 0 and 3, got {grade}", field="grade"
            ) from None
    raise ValidationError(f"Unsupported grade value {grade!r}", field="grade")


def grade_for(quality: Quality) -> Grade:
    """Collapse a quality back onto the pass/fail grade recorded in events."""
    return Grade.PASS if quality >= Quality.GOOD else Grade.FAIL


def validate_state(state: SchedulingState) -> None:
    """Reject scheduling fields the formulas are not defined for."""
    ease = state.ease_factor
    if isinstance(ease, bool) or not isinstance(ease, (int, float)) or not math.isfinite(ease):
        raise ValidationError("Ease factor must be a finite number", field="ease_factor")
    if ease < MIN_EASE_FACTOR:
        raise ValidationError(
            f"Ease factor must be at least {MIN_EASE_FACTOR}", field="ease_factor"
        )
    if isinstance(state.interval, bool) or not isinstance(state.interval, int):
        raise ValidationError("Interval must be a whole number of days", field="interval")
    if state.interval < 0:
        raise ValidationError("Interval cannot be negative", field="interval")
    if isinstance(state.repetition_count, bool) or not isinstance(state.repetition_count, int):
        raise ValidationError("Repetition count must be an integer", field="repetition_count")
    if state.repetition_count < 0:
        raise ValidationError("Repetition count cannot be negative", field="repetition_count")


def _require_aware(now: datetime) -> None:
    if not isinstance(now, datetime) or now.tzinfo is None or now.utcoffset() is None:
        raise ValidationError("Reference time must be a timezone-aware datetime", field="now")


def round_half_up(value: float) -> int:
    # Built-in round() is banker's rounding; 2.5 days must become 3.
    return int(math.floor(value + 0.5))


def add_days(moment: datetime, days: int) -> datetime:
    """
    Calendar-day addition.

    Aware datetime arithmetic keeps the wall-clock time and tzinfo, so with a
    zoneinfo time zone a review scheduled at 09:00 stays at 09:00 across a
    DST change instead of drifting by the offset difference.
    """
    return moment + timedelta(days=days)


def next_ease_factor(ease_factor: float, quality: Quality) -> float:
    """
    SM-2 ease update for a remembered card.

    EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)), q = quality + 2.
    """
    q = int(quality) + QUALITY_OFFSET
    distance = SM2_MAX_RESPONSE - q
    return max(MIN_EASE_FACTOR, ease_factor + (0.1 - distance * (0.08 + distance * 0.02)))


def compute_next_review(
    prior: SchedulingState,
    grade: Grade | Quality | str | int,
    now: datetime,
) -> ScheduleResult:
    """
    Compute the next scheduling state for a card.

    Args:
        prior: The card's current scheduling fields.
        grade: pass/fail, or a Quality for the finer-grained scale.
        now: Review time (timezone-aware); the due date is computed from it.

    Returns:
        ScheduleResult. Nothing is mutated, so this doubles as a preview.

    Raises:
        ValidationError: Malformed grade, state or reference time.
    """
    quality = to_quality(grade)
    validate_state(prior)
    _require_aware(now)

    if quality >= Quality.GOOD:
        repetitions = prior.repetition_count + 1
        if repetitions == 1:
            interval = FIRST_INTERVAL_DAYS
        elif repetitions == 2:
            interval = SECOND_INTERVAL_DAYS
        else:
            # Growth compounds on the prior interval and prior ease factor.
            interval = round_half_up(prior.interval * prior.ease_factor)
        ease_factor = next_ease_factor(prior.ease_factor, quality)
    else:
        repetitions = 0
        interval = (
            AGAIN_LAPSE_INTERVAL_DAYS if quality == Quality.AGAIN else HARD_LAPSE_INTERVAL_DAYS
        )
        ease_factor = max(MIN_EASE_FACTOR, prior.ease_factor - LAPSE_EASE_PENALTY)

    return ScheduleResult(
        interval=max(0, interval),
        ease_factor=ease_factor,
        repetition_count=repetitions,
        next_review_at=add_days(now, interval),
        quality=quality,
    )


def preview_intervals(prior: SchedulingState, now: datetime) -> dict[Quality, ScheduleResult]:
    """Outcome of every quality value, for "next review in N days" hints."""
    return {quality: compute_next_review(prior, quality, now) for quality in Quality}


def apply_schedule(
    card: Card,
    result: ScheduleResult,
    now: datetime,
    response_time_ms: int,
) -> Card:
    """
    Return a copy of card with the schedule and lifetime counters applied.

    last_reviewed_at is set to now so that next_review_at equals
    last_reviewed_at plus interval days.
    """
    passed = result.quality >= Quality.GOOD
    if card.average_response_time_ms:
        average = (card.average_response_time_ms + response_time_ms) / 2
    else:
        average = float(response_time_ms)

    return replace(
        card,
        ease_factor=result.ease_factor,
        interval=result.interval,
        repetition_count=result.repetition_count,
        last_reviewed_at=now,
        next_review_at=result.next_review_at,
        correct_count=card.correct_count + (1 if passed else 0),
        incorrect_count=card.incorrect_count + (0 if passed else 1),
        average_response_time_ms=average,
        updated_at=now,
    )
