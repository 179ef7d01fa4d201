"""recall CLI: review sessions, due queue, history and configuration."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer

from recall.application.config import resolve_config
from recall.application.factory import get_review_service
from recall.application.review_service import ErrorInfo, ReviewService
from recall.domain.models import CardFilters, Grade, SessionType
from recall.infrastructure.serialization import card_to_record, event_to_record

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="recall: spaced-repetition flashcards in your terminal.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage recall configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


GRADE_KEYS = {"p": Grade.PASS, "pass": Grade.PASS, "f": Grade.FAIL, "fail": Grade.FAIL}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _service(ctx: typer.Context) -> ReviewService:
    obj = ctx.obj or {}
    config = resolve_config({"data_dir": obj.get("data_dir"), "verbose": obj.get("verbose")})
    if config.verbose > 1:
        logging.getLogger().setLevel(logging.DEBUG)
    return get_review_service(config)


def _filters(category: str | None, tags: list[str] | None, limit: int | None) -> CardFilters:
    return CardFilters(category_id=category, tag_ids=tuple(tags or ()), max_cards=limit)


def _fail(error: ErrorInfo | None) -> None:
    if error is None:
        raise typer.Exit(1)
    typer.secho(f"{error.user_message} [{error.code}]", fg="red", err=True)
    logger.debug(error.message)
    raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
    data_dir: Annotated[
        Path | None, typer.Option("--data-dir", help="Directory holding cards and reviews.")
    ] = None,
):
    """Global settings for recall."""
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = data_dir
    ctx.obj["verbose"] = 1 + verbose if verbose > 0 else None


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------


@app.command()
def add(
    ctx: typer.Context,
    question: Annotated[str, typer.Argument(help="Front of the card.")],
    answer: Annotated[str, typer.Argument(help="Back of the card.")],
    notes: Annotated[str | None, typer.Option(help="Extra notes shown after the answer.")] = None,
    category: Annotated[str | None, typer.Option(help="Category id.")] = None,
    tag: Annotated[list[str] | None, typer.Option("--tag", "-t", help="Tag (repeatable).")] = None,
):
    """[bold green]Add[/bold green] a new card."""
    service = _service(ctx)
    result = asyncio.run(
        service.add_card(
            question, answer, notes=notes, category_id=category, tags=tuple(tag or ())
        )
    )
    if not result.ok:
        _fail(result.error)
    typer.secho(f"Added {result.value.id}", fg="green")


@app.command()
def edit(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card to edit.")],
    question: Annotated[str | None, typer.Option(help="New front of the card.")] = None,
    answer: Annotated[str | None, typer.Option(help="New back of the card.")] = None,
    notes: Annotated[str | None, typer.Option(help="New notes; pass '' to clear.")] = None,
    category: Annotated[str | None, typer.Option(help="New category id; '' to clear.")] = None,
    tag: Annotated[
        list[str] | None, typer.Option("--tag", "-t", help="Replace tags (repeatable).")
    ] = None,
):
    """Change a card's content. Scheduling is left as it is."""
    service = _service(ctx)
    result = asyncio.run(
        service.update_card(
            card_id,
            question=question,
            answer=answer,
            notes=notes,
            category_id=category,
            tags=tuple(tag) if tag else None,
        )
    )
    if not result.ok:
        _fail(result.error)
    typer.secho(f"Updated {card_id}", fg="green")


@app.command()
def delete(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card to delete.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
):
    """[bold red]Delete[/bold red] a card. Its review history is kept."""
    if not yes and not typer.confirm(f"Delete {card_id}?"):
        typer.echo("Aborted.")
        raise typer.Exit(0)
    service = _service(ctx)
    result = asyncio.run(service.delete_card(card_id))
    if not result.ok:
        _fail(result.error)
    typer.secho(f"Deleted {card_id}", fg="green")


def _print_cards(cards, json_output: bool) -> None:
    if json_output:
        typer.echo(json.dumps([card_to_record(c) for c in cards], indent=2))
        return
    if not cards:
        typer.echo("No cards found.")
        return
    for card in cards:
        label = f" ({card.category_id})" if card.category_id else ""
        typer.echo(f"  {card.id}{label}  {card.question}")


@app.command("list")
def list_cards(
    ctx: typer.Context,
    category: Annotated[str | None, typer.Option(help="Only cards in this category.")] = None,
    tag: Annotated[
        list[str] | None, typer.Option("--tag", "-t", help="Cards with any of these tags.")
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List every card, due or not."""
    service = _service(ctx)
    result = asyncio.run(service.list_cards(_filters(category, tag, None)))
    if not result.ok:
        _fail(result.error)
    _print_cards(result.value, json_output)


@app.command()
def search(
    ctx: typer.Context,
    query: Annotated[str, typer.Argument(help="Text to look for in questions, answers and notes.")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Find cards by text."""
    service = _service(ctx)
    result = asyncio.run(service.search_cards(query))
    if not result.ok:
        _fail(result.error)
    _print_cards(result.value, json_output)


@app.command()
def due(
    ctx: typer.Context,
    category: Annotated[str | None, typer.Option(help="Only cards in this category.")] = None,
    tag: Annotated[
        list[str] | None, typer.Option("--tag", "-t", help="Cards with any of these tags.")
    ] = None,
    limit: Annotated[int | None, typer.Option(help="Maximum cards to list.")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List cards due for review, most overdue first."""
    service = _service(ctx)
    result = asyncio.run(service.get_due_cards(_filters(category, tag, limit)))
    if not result.ok:
        _fail(result.error)

    cards = result.value
    if json_output:
        typer.echo(json.dumps([card_to_record(c) for c in cards], indent=2))
        return

    if not cards:
        typer.secho("No cards due.", fg="green")
        return
    typer.echo(f"Due cards: {len(cards)}")
    for card in cards:
        when = card.next_review_at.date().isoformat() if card.next_review_at else "new"
        if card.is_lapsed:
            when += ", lapsed"
        typer.echo(f"  {card.id}  [{when}]  {card.question}")


@app.command()
def preview(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card to preview.")],
):
    """Show the interval each grade would give a card, without saving anything."""
    service = _service(ctx)
    result = asyncio.run(service.preview_next_intervals(card_id))
    if not result.ok:
        _fail(result.error)

    for quality, outcome in result.value.items():
        typer.echo(
            f"  {quality.name.lower():<6} {outcome.interval:>4} days  "
            f"ease {outcome.ease_factor:.2f}  due {outcome.next_review_at.date().isoformat()}"
        )


@app.command()
def history(
    ctx: typer.Context,
    card_id: Annotated[str | None, typer.Argument(help="Restrict to one card.")] = None,
    limit: Annotated[int, typer.Option(help="Maximum events to show.")] = 20,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show recent review events, newest first."""
    service = _service(ctx)
    result = asyncio.run(service.get_review_history(card_id, limit))
    if not result.ok:
        _fail(result.error)

    events = result.value
    if json_output:
        typer.echo(json.dumps([event_to_record(e) for e in events], indent=2))
        return
    if not events:
        typer.echo("No reviews recorded.")
        return
    for e in events:
        typer.echo(
            f"  {e.reviewed_at.isoformat(timespec='minutes')}  {e.card_id}  "
            f"{e.grade.value:<4}  {e.previous_interval}->{e.new_interval}d  "
            f"ease {e.new_ease_factor:.2f}"
        )


@app.command()
def stats(
    ctx: typer.Context,
    card_id: Annotated[
        str | None, typer.Argument(help="Card to inspect. Omit for a queue overview.")
    ] = None,
):
    """Queue overview, or metrics for a single card."""
    service = _service(ctx)

    if card_id is None:
        result = asyncio.run(service.get_queue_summary())
        if not result.ok:
            _fail(result.error)
        s = result.value
        typer.echo(
            f"Total: {s.total}  Due: {s.due} "
            f"(overdue {s.overdue}, today {s.due_today}, new {s.new})  Upcoming: {s.upcoming}"
        )
        return

    result = asyncio.run(service.get_card_metrics(card_id))
    if not result.ok:
        _fail(result.error)
    m = result.value
    accuracy = f"{m.accuracy:.0f}%" if m.accuracy is not None else "-"
    typer.echo(f"Reviews: {m.total_reviews}  Accuracy: {accuracy}  Difficulty: {m.difficulty}")
    typer.echo(f"Retention: {m.retention_rate}%  Average grade: {m.average_grade}")
    typer.echo(f"Days to mastery: {m.mastery_days}")


# ---------------------------------------------------------------------------
# Review session
# ---------------------------------------------------------------------------


@app.command()
def review(
    ctx: typer.Context,
    category: Annotated[str | None, typer.Option(help="Only cards in this category.")] = None,
    tag: Annotated[
        list[str] | None, typer.Option("--tag", "-t", help="Cards with any of these tags.")
    ] = None,
    limit: Annotated[int | None, typer.Option(help="Session size.")] = None,
    session_type: Annotated[
        SessionType | None, typer.Option("--type", help="Session type tag.")
    ] = None,
):
    """[bold green]Review[/bold green] due cards interactively."""
    service = _service(ctx)

    async def run() -> None:
        started = await service.start_review_session(_filters(category, tag, limit), session_type)
        if not started.ok:
            if started.error and started.error.code == "NO_CARDS_DUE":
                typer.secho(started.error.user_message, fg="green")
                return
            _fail(started.error)

        card = started.value.cards[0]
        total = len(started.value.cards)
        position = 1
        while card is not None:
            typer.echo(f"\n[{position}/{total}] {card.question}")
            typer.prompt("Press Enter to reveal", default="", show_default=False)
            typer.echo(f"Answer: {card.answer}")
            if card.notes:
                typer.echo(f"Notes: {card.notes}")

            choice = typer.prompt("Grade ([p]ass/[f]ail/[q]uit)").strip().lower()
            while choice not in GRADE_KEYS and choice not in ("q", "quit"):
                choice = typer.prompt("Please answer p, f or q").strip().lower()
            if choice in ("q", "quit"):
                break

            submitted = await service.submit_review(card.id, GRADE_KEYS[choice])
            if not submitted.ok:
                typer.secho(submitted.error.user_message, fg="red", err=True)
                if submitted.error.retryable and typer.confirm("Retry?", default=True):
                    continue
                break

            outcome = submitted.value
            typer.echo(f"Next review in {outcome.updated_card.interval} day(s).")
            card = outcome.next_card
            position += 1

        ended = await service.end_review_session()
        if not ended.ok:
            _fail(ended.error)
        s = ended.value
        typer.secho(
            f"\nReviewed {s.reviewed}/{s.total_cards}: {s.passed} passed, "
            f"{s.failed} failed, accuracy {s.accuracy:.1f}%",
            fg="green",
        )

    asyncio.run(run())


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@app.command()
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8787,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("recall.server:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    typer.echo(json.dumps(config.model_dump(mode="json"), indent=2))


def main() -> None:
    app()
