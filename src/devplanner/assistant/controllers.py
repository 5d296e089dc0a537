"""Controllers for assistant and planner CLI commands."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from devplanner.assistant.backend import EchoGateway, GeminiGateway, ModelGateway
from devplanner.assistant.executor import (
    LIST_LIMIT,
    NO_TASKS_MESSAGE,
    ActionExecutor,
    render_task_line,
)
from devplanner.assistant.models import Action, ActionKind
from devplanner.assistant.retry import RetryController, RetryPolicy
from devplanner.assistant.service import AssistantService, CommandRequest, InvalidCommandError
from devplanner.config import Settings
from devplanner.storage.repository import SQLitePlannerStore


@dataclass(slots=True)
class AskCommand:
    """CLI input for one natural-language command."""

    db_path: Path | None
    message: str
    history_file: Path | None
    output_json: bool
    use_echo: bool
    user_id: str | None = None


@dataclass(slots=True)
class AskResult:
    """Command outcome to render in CLI."""

    lines: list[str]
    success: bool


@dataclass(slots=True)
class TasksListCommand:
    """CLI input for task listing."""

    db_path: Path | None
    status: str | None
    category: str | None
    priority: str | None
    due: str | None
    user_id: str | None = None


@dataclass(slots=True)
class TasksStatsCommand:
    """CLI input for the progress summary."""

    db_path: Path | None
    user_id: str | None = None


class AssistantCliController:
    """Coordinates assistant, task inspection, and backend listing CLI operations."""

    def ask(self, command: AskCommand) -> AskResult:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate_for_assistant(require_api_key=not command.use_echo)
        request = CommandRequest.from_payload(
            {
                "message": command.message,
                "history": _load_history(command.history_file),
            },
        )
        user_id = command.user_id or settings.user_context.user_id

        with _store(settings) as store, _gateway(settings, use_echo=command.use_echo) as gateway:
            service = AssistantService(
                controller=RetryController(gateway=gateway, policy=_retry_policy(settings)),
                executor=ActionExecutor(store=store),
                deadline_seconds=settings.assistant.command_deadline_seconds,
            )
            result = service.process_command(user_id, request.message, request.history)

        if command.output_json:
            lines = json.dumps(result.to_payload(), ensure_ascii=False, indent=2).splitlines()
        else:
            lines = result.message.splitlines() or [""]
            lines.append(f"[{result.action}] success={str(result.success).lower()}")
        return AskResult(lines=lines, success=result.success)

    def list_tasks(self, command: TasksListCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        user_id = command.user_id or settings.user_context.user_id
        with _store(settings) as store:
            executor = ActionExecutor(store=store)
            query = executor.build_list_query(
                {
                    "status": command.status,
                    "category": command.category,
                    "priority": command.priority,
                    "dueDate": command.due,
                },
            )
            tasks = store.find_tasks(user_id, query, limit=LIST_LIMIT, newest_first=True)

        if not tasks:
            return [NO_TASKS_MESSAGE]
        return [f"#{task.task_id} {render_task_line(task)}" for task in tasks]

    def stats(self, command: TasksStatsCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        user_id = command.user_id or settings.user_context.user_id
        with _store(settings) as store:
            result = ActionExecutor(store=store).execute(
                user_id,
                Action(kind=ActionKind.GET_STATS),
            )
        return result.message.rstrip().splitlines()

    def backends(self) -> list[str]:
        settings = Settings.from_env()
        policy = _retry_policy(settings)
        lines = [
            "Model chain: "
            f"max_retries={policy.max_retries} "
            f"base_delay_seconds={policy.base_delay_seconds:g}",
        ]
        for backend in policy.ordered_backends():
            lines.append(f"- {backend.priority}: {backend.identifier}")
        if not settings.assistant.api_key:
            lines.append("Gemini API key is not configured; only --echo runs are possible.")
        return lines


def _retry_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy.from_model_chain(
        settings.assistant.model_chain,
        max_retries=settings.assistant.max_retries,
        base_delay_seconds=settings.assistant.retry_base_delay_seconds,
    )


def _load_history(history_file: Path | None) -> list[object]:
    if history_file is None:
        return []
    try:
        payload = json.loads(history_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as error:
        raise InvalidCommandError(f"Cannot read history file {history_file}: {error}") from error
    if isinstance(payload, dict):
        payload = payload.get("history", [])
    if not isinstance(payload, list):
        raise InvalidCommandError("History file must contain a JSON list of turns.")
    return payload


@contextmanager
def _gateway(settings: Settings, *, use_echo: bool) -> Iterator[ModelGateway]:
    if use_echo:
        yield EchoGateway()
        return
    with GeminiGateway(
        api_key=settings.assistant.api_key,
        api_base_url=settings.assistant.api_base_url,
        timeout_seconds=settings.assistant.request_timeout_seconds,
    ) as gateway:
        yield gateway


@contextmanager
def _store(settings: Settings) -> Iterator[SQLitePlannerStore]:
    store = SQLitePlannerStore(
        db_path=settings.db_path,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    store.init_schema()
    try:
        yield store
    finally:
        store.close()
