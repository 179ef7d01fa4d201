import pytest

from recall.application.validation import (
    create_default_card,
    ensure_valid,
    sanitize_card,
    validate_card,
)
from recall.domain.errors import ValidationError


def fields(errors):
    return [e.field for e in errors]


def test_valid_card_has_no_errors(make_card):
    assert validate_card(make_card()) == []


def test_question_and_answer_required(make_card):
    errors = validate_card(make_card(question="  ", answer=""))
    assert fields(errors) == ["question", "answer"]


def test_question_length_limits(make_card):
    assert fields(validate_card(make_card(question="Hi"))) == ["question"]
    assert fields(validate_card(make_card(question="x" * 501))) == ["question"]


def test_tag_rules(make_card):
    assert "tags" in fields(validate_card(make_card(tags=("Geo", "geo"))))
    assert "tags" in fields(validate_card(make_card(tags=tuple(f"t{i}" for i in range(11)))))
    assert "tags" in fields(validate_card(make_card(tags=(" ",))))


def test_scheduling_bounds(make_card):
    errors = validate_card(make_card(ease_factor=5.5, interval=-1, repetition_count=-1))
    assert fields(errors) == ["ease_factor", "interval", "repetition_count"]


def test_sanitize_trims_and_drops_empty(make_card):
    card = sanitize_card(make_card(question="  Why?  ", notes="   ", tags=(" a ", " ")))
    assert card.question == "Why?"
    assert card.notes is None
    assert card.tags == ("a",)


def test_ensure_valid_raises_first_problem(make_card):
    with pytest.raises(ValidationError) as exc:
        ensure_valid(make_card(answer=" "))
    assert exc.value.field == "answer"


def test_create_default_card(now):
    card = create_default_card(" What is 2+2? ", " 4 ", now, tags=("math",))
    assert card.id.startswith("card_")
    assert card.question == "What is 2+2?"
    assert card.answer == "4"
    assert card.created_at == card.updated_at == now
    assert card.ease_factor == 2.5
    assert card.is_new
