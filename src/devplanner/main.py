"""CLI entrypoint for devplanner."""

import logging
import os
from pathlib import Path

import rich_click as click

from devplanner import __version__
from devplanner.assistant.controllers import (
    AskCommand,
    AssistantCliController,
    TasksListCommand,
    TasksStatsCommand,
)
from devplanner.planner.models import TaskCategory, TaskPriority, TaskStatus

click.rich_click.USE_MARKDOWN = True
ASSISTANT_CONTROLLER = AssistantCliController()
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@click.group()
@click.version_option(version=__version__, prog_name="devplanner")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Logging level. Defaults to DEVPLANNER_LOG_LEVEL or WARNING.",
)
def devplanner(log_level: str | None) -> None:
    """Developer task planner driven by natural-language commands."""

    level = (log_level or os.getenv("DEVPLANNER_LOG_LEVEL", "WARNING")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@devplanner.command("ask")
@click.argument("message")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--history-file",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    default=None,
    help="JSON file with prior conversation turns (`[{role, text}]`).",
)
@click.option("--user-id", default=None, help="Override DEVPLANNER_USER_ID.")
@click.option(
    "--json",
    "output_json",
    is_flag=True,
    default=False,
    help="Print the command response as JSON.",
)
@click.option(
    "--echo",
    "use_echo",
    is_flag=True,
    default=False,
    help="Use the offline echo gateway instead of Gemini.",
)
def ask(  # noqa: PLR0913
    message: str,
    db_path: Path | None,
    history_file: Path | None,
    user_id: str | None,
    output_json: bool,
    use_echo: bool,
) -> None:
    """Interpret one natural-language command and apply it to your planner."""

    try:
        result = ASSISTANT_CONTROLLER.ask(
            AskCommand(
                db_path=db_path,
                message=message,
                history_file=history_file,
                output_json=output_json,
                use_echo=use_echo,
                user_id=user_id,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(result.lines)
    if not result.success:
        click.get_current_context().exit(1)


@devplanner.group()
def tasks() -> None:
    """Task inspection commands."""


@tasks.command("list")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--user-id", default=None, help="Override DEVPLANNER_USER_ID.")
@click.option(
    "--status",
    type=click.Choice([status.value for status in TaskStatus]),
    default=None,
    help="Only tasks in this status.",
)
@click.option(
    "--category",
    type=click.Choice([category.value for category in TaskCategory]),
    default=None,
    help="Only tasks in this category.",
)
@click.option(
    "--priority",
    type=click.Choice([priority.value for priority in TaskPriority]),
    default=None,
    help="Only tasks with this priority.",
)
@click.option(
    "--due",
    type=click.Choice(["today", "week", "overdue"]),
    default=None,
    help="Due-date bucket.",
)
def tasks_list(  # noqa: PLR0913
    db_path: Path | None,
    user_id: str | None,
    status: str | None,
    category: str | None,
    priority: str | None,
    due: str | None,
) -> None:
    """List the newest matching tasks."""

    _emit_lines(
        ASSISTANT_CONTROLLER.list_tasks(
            TasksListCommand(
                db_path=db_path,
                status=status,
                category=category,
                priority=priority,
                due=due,
                user_id=user_id,
            ),
        ),
    )


@tasks.command("stats")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--user-id", default=None, help="Override DEVPLANNER_USER_ID.")
def tasks_stats(db_path: Path | None, user_id: str | None) -> None:
    """Show task totals, completion rate, today's progress and overdue count."""

    _emit_lines(
        ASSISTANT_CONTROLLER.stats(TasksStatsCommand(db_path=db_path, user_id=user_id)),
    )


@devplanner.command("backends")
def backends() -> None:
    """Show the configured model fallback chain."""

    _emit_lines(ASSISTANT_CONTROLLER.backends())


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    devplanner()
