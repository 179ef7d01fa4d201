"""Tests for CLI commands: cards, due, preview, review, history, stats, config and serve."""

import json
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from recall.application.review_service import ReviewService
from recall.infrastructure.adapters.memory_store import InMemoryCardStore, InMemoryReviewEventLog
from recall.interface.cli import app

runner = CliRunner()


@pytest.fixture
def service(make_card, clock, now):
    store = InMemoryCardStore(
        [
            make_card("new", question="Capital of France?", answer="Paris"),
            make_card("old", question="2 + 2?", answer="4", next_review_at=now - timedelta(days=1)),
            make_card("later", next_review_at=now + timedelta(days=3)),
        ]
    )
    return ReviewService(store, InMemoryReviewEventLog(), clock)


@pytest.fixture
def cli_service(service):
    with (
        patch("recall.interface.cli.resolve_config", return_value=MagicMock(verbose=1)),
        patch("recall.interface.cli.get_review_service", return_value=service),
    ):
        yield service


# --- Help ---


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "review" in result.stdout
    assert "due" in result.stdout


# --- Due ---


def test_due_json(cli_service):
    result = runner.invoke(app, ["due", "--json"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert [c["id"] for c in data] == ["old", "new"]


def test_due_text_with_limit(cli_service):
    result = runner.invoke(app, ["due", "--limit", "1"])
    assert result.exit_code == 0
    assert "Due cards: 1" in result.stdout
    assert "2 + 2?" in result.stdout


def test_due_nothing(cli_service):
    result = runner.invoke(app, ["due", "--category", "nope"])
    assert result.exit_code == 0
    assert "No cards due." in result.stdout


# --- Add / preview / stats ---


def test_add_card(cli_service):
    result = runner.invoke(app, ["add", "Capital of Peru?", "Lima", "--tag", "geo"])
    assert result.exit_code == 0
    assert "Added card_" in result.stdout


def test_add_duplicate_fails(cli_service):
    result = runner.invoke(app, ["add", "Capital of France?", "Paris"])
    assert result.exit_code == 1


def test_preview(cli_service):
    result = runner.invoke(app, ["preview", "old"])
    assert result.exit_code == 0
    assert "again" in result.stdout
    assert "good" in result.stdout


def test_preview_unknown_card(cli_service):
    result = runner.invoke(app, ["preview", "ghost"])
    assert result.exit_code == 1


def test_stats_overview(cli_service):
    result = runner.invoke(app, ["stats"])
    assert result.exit_code == 0
    assert "Total: 3" in result.stdout
    assert "Upcoming: 1" in result.stdout


def test_stats_for_card(cli_service):
    result = runner.invoke(app, ["stats", "new"])
    assert result.exit_code == 0
    assert "Reviews: 0" in result.stdout


# --- Card management ---


def test_edit_card(cli_service):
    result = runner.invoke(app, ["edit", "new", "--answer", "Paris, France", "--tag", "geo"])
    assert result.exit_code == 0, result.output
    assert "Updated new" in result.stdout

    result = runner.invoke(app, ["search", "france", "--json"])
    card = json.loads(result.stdout)[0]
    assert (card["answer"], card["tags"]) == ("Paris, France", ["geo"])


def test_edit_to_duplicate_question_fails(cli_service):
    result = runner.invoke(app, ["edit", "old", "--question", "capital of france?"])
    assert result.exit_code == 1


def test_delete_card(cli_service):
    result = runner.invoke(app, ["delete", "later", "--yes"])
    assert result.exit_code == 0
    assert "Deleted later" in result.stdout

    result = runner.invoke(app, ["delete", "later", "--yes"])
    assert result.exit_code == 1


def test_delete_needs_confirmation(cli_service):
    result = runner.invoke(app, ["delete", "later"], input="n\n")
    assert result.exit_code == 0
    assert "Aborted." in result.stdout
    assert "later" in runner.invoke(app, ["list"]).stdout


def test_list_cards(cli_service):
    result = runner.invoke(app, ["list", "--json"])
    assert result.exit_code == 0
    assert [c["id"] for c in json.loads(result.stdout)] == ["new", "old", "later"]

    result = runner.invoke(app, ["list", "--category", "nope"])
    assert "No cards found." in result.stdout


def test_search_cards(cli_service):
    result = runner.invoke(app, ["search", "2 +"])
    assert result.exit_code == 0
    assert "old" in result.stdout
    assert "Capital of France?" not in result.stdout


def test_due_marks_lapsed_cards(cli_service):
    # reveal, fail, reveal, quit
    runner.invoke(app, ["review"], input="\nf\n\nq\n")
    result = runner.invoke(app, ["due"])
    assert "[2024-03-15, lapsed]  2 + 2?" in result.stdout


# --- Review ---


def test_review_session(cli_service):
    # reveal, pass, reveal, fail
    result = runner.invoke(app, ["review"], input="\np\n\nf\n")
    assert result.exit_code == 0, result.output
    assert "2 + 2?" in result.stdout
    assert "Answer: Paris" in result.stdout
    assert "Reviewed 2/2: 1 passed, 1 failed, accuracy 50.0%" in result.stdout


def test_review_quit_early(cli_service):
    result = runner.invoke(app, ["review"], input="\nq\n")
    assert result.exit_code == 0
    assert "Reviewed 0/2" in result.stdout
    assert not cli_service.coordinator.is_active


def test_review_nothing_due(cli_service):
    result = runner.invoke(app, ["review", "--tag", "none"])
    assert result.exit_code == 0
    assert "Nothing to review" in result.stdout


def test_history_after_review(cli_service):
    runner.invoke(app, ["review"], input="\np\n\np\n")
    result = runner.invoke(app, ["history", "--json"])
    assert result.exit_code == 0
    events = json.loads(result.stdout)
    assert {e["card_id"] for e in events} == {"old", "new"}
    assert all(e["grade"] == "pass" for e in events)


# --- Config ---


@patch("recall.interface.cli.resolve_config")
def test_config_show_command(mock_resolve_config):
    mock_config = MagicMock()
    mock_config.model_dump.return_value = {"backend": "json", "session_size": 20}
    mock_resolve_config.return_value = mock_config

    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    output_data = json.loads(result.stdout)
    assert output_data["backend"] == "json"
    assert output_data["session_size"] == 20


# --- Server ---


@patch("uvicorn.run")
def test_serve_command(mock_run):
    result = runner.invoke(app, ["serve", "--port", "9000"])
    assert result.exit_code == 0
    mock_run.assert_called_with("recall.server:app", host="127.0.0.1", port=9000, reload=False)
