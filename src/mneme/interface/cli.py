"""mneme CLI: study sessions, queue previews and answer checks."""

import asyncio
import json
import logging
import os
import sys
from datetime import date
from pathlib import Path
from typing import Annotated, Any

import typer

from mneme.application.config import AppConfig, resolve_config
from mneme.domain.errors import MnemeError

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="mneme: spaced-repetition study sessions in the terminal.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage mneme configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

LOG_FILE_NAME = "mneme.log"
LOG_FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVELS = {0: logging.WARNING, 1: logging.INFO}

_file_handler: logging.FileHandler | None = None

GRADE_ALIASES = {
    "0": 0, "a": 0, "again": 0,
    "1": 1, "h": 1, "hard": 1,
    "2": 2, "g": 2, "good": 2,
    "3": 3, "e": 3, "easy": 3,
}  # fmt: skip


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity: -v for info, -vv for debug."
        ),
    ] = 0,
    store: Annotated[
        Path | None, typer.Option("--store", help="Path to the YAML study store.")
    ] = None,
):
    """Global settings for mneme."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["store_path"] = store


def _resolve(ctx: typer.Context, **overrides: Any) -> AppConfig:
    obj = ctx.obj or {}
    config = resolve_config(
        {
            "store_path": obj.get("store_path"),
            # No -v flag leaves env/TOML verbosity in charge
            "verbose": obj.get("verbose") or None,
            **overrides,
        }
    )
    _configure_logging(config)
    return config


def _configure_logging(config: AppConfig) -> None:
    """Apply the configured verbosity and mirror records to log_dir/mneme.log."""
    global _file_handler

    root = logging.getLogger()
    root.setLevel(LOG_LEVELS.get(config.verbose, logging.DEBUG))

    log_file = config.log_dir / LOG_FILE_NAME
    if _file_handler is not None:
        if _file_handler.baseFilename == os.path.abspath(log_file):
            return
        root.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None

    try:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as e:
        logger.warning(f"Cannot write log file {log_file}: {e}")
        return
    handler.setFormatter(logging.Formatter(LOG_FILE_FORMAT))
    root.addHandler(handler)
    _file_handler = handler


def _run(coro) -> Any:
    """Run a coroutine, turning domain errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except MnemeError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from None


def _parse_grade(text: str) -> int | None:
    return GRADE_ALIASES.get(text.strip().lower())


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def study(
    ctx: typer.Context,
    deck: Annotated[str | None, typer.Argument(help="Deck to study. Defaults to all decks.")] = None,
    count: Annotated[int | None, typer.Option("--count", "-n", help="Max questions.")] = None,
    adaptive: Annotated[
        bool | None,
        typer.Option("--adaptive/--no-adaptive", help="Order the queue by difficulty level."),
    ] = None,
):
    """[bold green]Study[/bold green] a deck interactively.

    Type your answer, then pick a grade: again (a/0), hard (h/1), good (g/2)
    or easy (e/3). Press Enter to accept the suggested grade. Type ':skip'
    to skip a question or ':quit' to stop.
    """
    from mneme.application.factory import build_controller
    from mneme.application.grading.grader import format_feedback, suggest_grade
    from mneme.application.scheduler import format_interval

    config = _resolve(ctx, adaptive_difficulty=adaptive)
    controller = build_controller(config)

    async def run():
        session = await controller.start_session(deck, count or config.session_size)
        if session.daily_limit_reached:
            typer.secho("Daily review limit reached; some due questions were held back.", fg="yellow")
        if session.is_complete:
            typer.secho("Nothing to study.", fg="yellow")
            return

        while session.current is not None:
            entry = session.current
            q = entry.question
            typer.echo("")
            typer.secho(
                f"[{session.index + 1}/{session.total}] ({entry.src.value}) {q.type.value}",
                fg="cyan",
            )
            typer.echo(q.prompt)

            raw = typer.prompt("Answer", default="", show_default=False)
            if raw.strip() == ":quit":
                controller.stop_session(session)
                break
            if raw.strip() == ":skip":
                controller.skip_question(session)
                continue

            result = await controller.submit_answer(session, raw)
            typer.secho("Correct" if result.correct else "Incorrect", fg="green" if result.correct else "red")
            feedback = format_feedback(result)
            if feedback:
                typer.echo(feedback)
            if q.explain:
                typer.echo(f"Explanation: {q.explain}")

            state = await controller.get_review_state(q.id)
            previews = controller.preview_all(state)
            today = date.today()
            typer.echo(
                "  ".join(
                    f"{g.name.lower()}: {format_interval((d - today).days)}"
                    for g, d in previews.items()
                )
            )

            suggested = suggest_grade(result)
            grade = None
            while grade is None:
                choice = typer.prompt("Grade", default=suggested.name.lower())
                grade = _parse_grade(choice)
                if grade is None:
                    typer.secho("Pick again, hard, good or easy.", fg="yellow")

            await controller.grade_answer(session, grade)

        summary = controller.summary(session)
        typer.echo("")
        typer.secho(
            f"Done: {summary.ok}/{summary.completed} correct ({summary.accuracy}%), "
            f"score {summary.score}",
            fg="green",
        )

    _run(run())


@app.command("queue")
def queue(
    ctx: typer.Context,
    deck: Annotated[str | None, typer.Argument(help="Deck to preview.")] = None,
    count: Annotated[int | None, typer.Option("--count", "-n", help="Max questions.")] = None,
    adaptive: Annotated[
        bool | None,
        typer.Option("--adaptive/--no-adaptive", help="Order the queue by difficulty level."),
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show the queue a study session would use, without studying."""
    from mneme.application.factory import build_controller

    config = _resolve(ctx, adaptive_difficulty=adaptive)
    controller = build_controller(config)

    # stop_session clears the queue, so snapshot it first
    async def snapshot():
        session = await controller.start_session(deck, count or config.session_size)
        entries = list(session.queue)
        limit_reached = session.daily_limit_reached
        remaining = session.daily_limit_remaining
        controller.stop_session(session)
        return entries, limit_reached, remaining

    entries, limit_reached, remaining = _run(snapshot())

    if json_output:
        typer.echo(
            json.dumps(
                {
                    "count": len(entries),
                    "daily_limit_reached": limit_reached,
                    "daily_limit_remaining": remaining,
                    "items": [
                        {"id": e.question.id, "src": e.src.value, "type": e.question.type.value}
                        for e in entries
                    ],
                },
                indent=2,
                ensure_ascii=False,
            )
        )
        return

    if not entries:
        typer.secho("No questions queued.", fg="yellow")
        return
    typer.echo(f"Queue: {len(entries)} question(s)")
    for e in entries:
        typer.echo(f"  {e.src.value:<4} {e.question.id}  {e.question.prompt}")
    if limit_reached:
        typer.secho("Daily review limit reached; some due questions were held back.", fg="yellow")


@app.command()
def check(
    ctx: typer.Context,
    question_id: Annotated[str, typer.Argument(help="Question id.")],
    answer: Annotated[str, typer.Argument(help="Answer to grade.")],
):
    """Grade one answer without recording a review."""
    from mneme.application.factory import get_grading_service, get_study_repository
    from mneme.application.grading.grader import format_feedback, suggest_grade

    config = _resolve(ctx)

    async def run():
        repo = get_study_repository(config)
        question = await repo.get_question(question_id)
        return await get_grading_service(config).grade(question, answer)

    result = _run(run())
    typer.secho(
        f"{'Correct' if result.correct else 'Incorrect'} (score {result.score:.2f}, {result.source})",
        fg="green" if result.correct else "red",
    )
    feedback = format_feedback(result)
    if feedback:
        typer.echo(feedback)
    typer.echo(f"Suggested grade: {suggest_grade(result).name.lower()}")


@app.command()
def preview(
    ctx: typer.Context,
    question_id: Annotated[str, typer.Argument(help="Question id.")],
):
    """Show when a question would next be due for each grade."""
    from mneme.application.difficulty import difficulty_stats
    from mneme.application.factory import build_controller, get_study_repository
    from mneme.application.scheduler import format_interval

    config = _resolve(ctx)
    repo = get_study_repository(config)
    controller = build_controller(config, repo=repo)

    async def run():
        await repo.get_question(question_id)
        return await repo.get_review_state(question_id)

    state = _run(run())
    today = date.today()
    if state is None:
        typer.echo(f"{question_id}: never reviewed")
    else:
        stats = difficulty_stats(state)
        typer.echo(
            f"{question_id}: due {state.due.isoformat()}, ease {state.ease:.2f}, "
            f"interval {format_interval(state.interval)}, "
            f"difficulty {stats.level_name} ({stats.trend})"
        )
    for g, d in controller.preview_all(state).items():
        typer.echo(f"  {g.name.lower():<5} -> {d.isoformat()} ({format_interval((d - today).days)})")


@app.command()
def due(
    ctx: typer.Context,
    deck: Annotated[str | None, typer.Option(help="Only show this deck.")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List questions due today."""
    from mneme.application.factory import build_controller

    config = _resolve(ctx)
    controller = build_controller(config)

    items = _run(controller.due_questions())
    if deck:
        items = [(q, s) for q, s in items if q.deck_id == deck]

    if json_output:
        typer.echo(
            json.dumps(
                [
                    {"id": q.id, "deck_id": q.deck_id, "due": s.due.isoformat(), "ease": s.ease}
                    for q, s in items
                ],
                indent=2,
                ensure_ascii=False,
            )
        )
        return

    if not items:
        typer.secho("Nothing due.", fg="green")
        return
    typer.echo(f"Due: {len(items)}")
    for q, s in items:
        typer.echo(f"  {q.id} [{q.deck_id}] due {s.due.isoformat()}  {q.prompt}")


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _resolve(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    if d.get("escalation_api_key"):
        d["escalation_api_key"] = "***"
    typer.echo(json.dumps(d, indent=2))


if __name__ == "__main__":
    app()
