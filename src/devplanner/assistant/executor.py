"""Execution of parsed actions against the planner store."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, TypeVar

from devplanner.assistant.models import Action, ActionKind, ExecutionResult
from devplanner.planner.dates import (
    UPCOMING_WINDOW_DAYS,
    format_short_date,
    parse_iso_date,
    week_start_for,
)
from devplanner.planner.models import (
    CLOSED_STATUSES,
    TITLE_MAX_CHARS,
    Goal,
    Subtask,
    Task,
    TaskCategory,
    TaskDraft,
    TaskPriority,
    TaskQuery,
    TaskStatus,
)
from devplanner.planner.store import PlannerStore, StoreError, TaskNotFoundError
from devplanner.storage.common import utc_now

logger = logging.getLogger(__name__)

LIST_LIMIT = 20
STORE_FAILURE_MESSAGE = "Something went wrong while saving your changes. Please try again."
NO_TASKS_MESSAGE = "No tasks found with these filters."
ESTIMATED_MINUTES_CAP = 10_000

STATUS_GLYPHS: dict[TaskStatus, str] = {
    TaskStatus.TODO: "⭕",
    TaskStatus.IN_PROGRESS: "🔄",
    TaskStatus.COMPLETED: "✅",
    TaskStatus.CANCELLED: "❌",
}
PRIORITY_GLYPHS: dict[TaskPriority, str] = {
    TaskPriority.LOW: "🔵",
    TaskPriority.MEDIUM: "🟡",
    TaskPriority.HIGH: "🟠",
    TaskPriority.URGENT: "🔴",
}

_EnumT = TypeVar("_EnumT", TaskCategory, TaskPriority, TaskStatus)
_Handler = Callable[[str, Action], ExecutionResult]


class ActionExecutor:
    """Validate and execute one action for one user.

    Payloads are never trusted to be complete: every field has an explicit
    default. Title lookups that find nothing return `success=False` without
    touching the store, and store failures become one generic failure result.
    """

    def __init__(
        self,
        *,
        store: PlannerStore,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self._now = now
        self._handlers: dict[ActionKind, _Handler] = {
            ActionKind.CREATE_TASK: self._create_task,
            ActionKind.CREATE_MULTIPLE_TASKS: self._create_multiple_tasks,
            ActionKind.COMPLETE_TASK: self._complete_task,
            ActionKind.DELETE_TASK: self._delete_task,
            ActionKind.UPDATE_TASK: self._update_task,
            ActionKind.LIST_TASKS: self._list_tasks,
            ActionKind.ADD_DAILY_GOAL: self._add_daily_goal,
            ActionKind.ADD_WEEKLY_GOAL: self._add_weekly_goal,
            ActionKind.GET_STATS: self._get_stats,
            ActionKind.CHAT: self._chat,
        }

    def execute(self, user_id: str, action: Action) -> ExecutionResult:
        handler = self._handlers.get(action.kind, self._chat)
        try:
            return handler(user_id, action)
        except StoreError as error:
            logger.error("Store failure while executing %s: %s", action.kind.value, error)
            return ExecutionResult(
                message=STORE_FAILURE_MESSAGE,
                action=action.kind.value,
                success=False,
            )

    def _create_task(self, user_id: str, action: Action) -> ExecutionResult:
        draft = build_task_draft(_data_dict(action))
        if draft is None:
            return ExecutionResult(
                message="I need a title to create a task. What should I call it?",
                action=action.kind.value,
                success=False,
            )
        task = self.store.create_task(user_id, draft)
        logger.info("Created task %s for user %s", task.task_id, user_id)
        return ExecutionResult(
            message=action.message,
            action=action.kind.value,
            success=True,
            task=task,
        )

    def _create_multiple_tasks(self, user_id: str, action: Action) -> ExecutionResult:
        raw_items: Any = action.data
        if isinstance(raw_items, dict):
            raw_items = raw_items.get("tasks")
        if not isinstance(raw_items, list):
            raw_items = []
        drafts = [
            draft
            for draft in (
                build_task_draft(item) for item in raw_items if isinstance(item, dict)
            )
            if draft is not None
        ]
        tasks = [self.store.create_task(user_id, draft) for draft in drafts]
        logger.info("Created %d tasks for user %s", len(tasks), user_id)
        return ExecutionResult(
            message=action.message,
            action=action.kind.value,
            success=True,
            tasks=tasks,
        )

    def _complete_task(self, user_id: str, action: Action) -> ExecutionResult:
        search_query = _search_query(action)
        task = self._resolve_task(
            user_id,
            search_query,
            exclude_statuses=(TaskStatus.COMPLETED,),
        )
        if task is None:
            return _not_found(action, search_query)
        task.status = TaskStatus.COMPLETED
        task.completed_at = self._now()
        try:
            saved = self.store.save_task(task)
        except TaskNotFoundError:
            return _not_found(action, search_query)
        return ExecutionResult(
            message=action.message,
            action=action.kind.value,
            success=True,
            task=saved,
        )

    def _delete_task(self, user_id: str, action: Action) -> ExecutionResult:
        search_query = _search_query(action)
        task = self._resolve_task(user_id, search_query)
        if task is None or not self.store.delete_task(user_id, task.task_id):
            return _not_found(action, search_query)
        return ExecutionResult(
            message=action.message,
            action=action.kind.value,
            success=True,
            deleted_task=task.title,
        )

    def _update_task(self, user_id: str, action: Action) -> ExecutionResult:
        search_query = _search_query(action)
        task = self._resolve_task(user_id, search_query)
        if task is None:
            return _not_found(action, search_query)
        updates = _data_dict(action).get("updates")
        apply_task_updates(task, updates if isinstance(updates, dict) else {}, now=self._now())
        try:
            saved = self.store.save_task(task)
        except TaskNotFoundError:
            return _not_found(action, search_query)
        return ExecutionResult(
            message=action.message,
            action=action.kind.value,
            success=True,
            task=saved,
        )

    def _list_tasks(self, user_id: str, action: Action) -> ExecutionResult:
        query = self.build_list_query(_data_dict(action))
        tasks = self.store.find_tasks(user_id, query, limit=LIST_LIMIT, newest_first=True)
        lines = [render_task_line(task) for task in tasks] or [NO_TASKS_MESSAGE]
        return ExecutionResult(
            message=f"{action.message}\n\n" + "\n".join(lines),
            action=action.kind.value,
            success=True,
            tasks=tasks,
        )

    def build_list_query(self, data: dict[str, Any]) -> TaskQuery:
        """Translate LIST_TASKS filters; unknown values are ignored."""

        today = self._now().date()
        query = TaskQuery(
            status=_coerce_enum(TaskStatus, data.get("status")),
            category=_coerce_enum(TaskCategory, data.get("category")),
            priority=_coerce_enum(TaskPriority, data.get("priority")),
        )
        bucket = data.get("dueDate")
        if bucket == "today":
            query.due_from = today
            query.due_to = today
        elif bucket == "week":
            query.due_from = today
            query.due_to = today + timedelta(days=UPCOMING_WINDOW_DAYS)
        elif bucket == "overdue":
            query.due_before = today
            query.exclude_statuses = CLOSED_STATUSES
        return query

    def _add_daily_goal(self, user_id: str, action: Action) -> ExecutionResult:
        data = _data_dict(action)
        goal_text = _clean_str(data.get("goal"))
        if not goal_text:
            return _missing_goal(action)
        plan_date = parse_iso_date(data.get("date")) or self._now().date()
        plan = self.store.get_or_create_daily_plan(user_id, plan_date)
        plan.goals.append(Goal(text=goal_text))
        self.store.save_daily_plan(plan)
        return ExecutionResult(message=action.message, action=action.kind.value, success=True)

    def _add_weekly_goal(self, user_id: str, action: Action) -> ExecutionResult:
        data = _data_dict(action)
        goal_text = _clean_str(data.get("goal"))
        if not goal_text:
            return _missing_goal(action)
        week_start = week_start_for(self._now().date())
        plan = self.store.get_or_create_weekly_plan(user_id, week_start)
        plan.goals.append(
            Goal(
                text=goal_text,
                category=_coerce_enum(TaskCategory, data.get("category")) or TaskCategory.OTHER,
            ),
        )
        self.store.save_weekly_plan(plan)
        return ExecutionResult(message=action.message, action=action.kind.value, success=True)

    def _get_stats(self, user_id: str, action: Action) -> ExecutionResult:
        today = self._now().date()
        total = self.store.count_tasks(user_id, TaskQuery())
        completed = self.store.count_tasks(user_id, TaskQuery(status=TaskStatus.COMPLETED))
        in_progress = self.store.count_tasks(user_id, TaskQuery(status=TaskStatus.IN_PROGRESS))
        today_total = self.store.count_tasks(user_id, TaskQuery(due_from=today, due_to=today))
        today_done = self.store.count_tasks(
            user_id,
            TaskQuery(due_from=today, due_to=today, status=TaskStatus.COMPLETED),
        )
        overdue = self.store.count_tasks(
            user_id,
            TaskQuery(due_before=today, exclude_statuses=CLOSED_STATUSES),
        )
        completion_rate = math.floor(completed / total * 100 + 0.5) if total > 0 else 0
        summary = (
            "📊 **Your Stats:**\n"
            f"• Total Tasks: {total}\n"
            f"• Completed: {completed} ({completion_rate}%)\n"
            f"• In Progress: {in_progress}\n"
            f"• Today: {today_done}/{today_total} done\n"
            f"• Overdue: {overdue}\n\n"
            f"{action.message}"
        )
        return ExecutionResult(message=summary, action=action.kind.value, success=True)

    def _chat(self, user_id: str, action: Action) -> ExecutionResult:
        del user_id
        return ExecutionResult(message=action.message, action=ActionKind.CHAT.value, success=True)

    def _resolve_task(
        self,
        user_id: str,
        search_query: str,
        *,
        exclude_statuses: tuple[TaskStatus, ...] = (),
    ) -> Task | None:
        if not search_query:
            return None
        return self.store.find_task(
            user_id,
            TaskQuery(title_contains=search_query, exclude_statuses=exclude_statuses),
        )


def build_task_draft(raw: dict[str, Any]) -> TaskDraft | None:
    """Build a fully defaulted task draft; None when the title is missing."""

    title = _clean_str(raw.get("title"))
    if not title:
        return None
    return TaskDraft(
        title=title[:TITLE_MAX_CHARS],
        description=_clean_str(raw.get("description")),
        category=_coerce_enum(TaskCategory, raw.get("category")) or TaskCategory.OTHER,
        priority=_coerce_enum(TaskPriority, raw.get("priority")) or TaskPriority.MEDIUM,
        status=TaskStatus.TODO,
        due_date=parse_iso_date(raw.get("dueDate")),
        due_time=_clean_str(raw.get("dueTime")) or None,
        tags=_string_list(raw.get("tags")),
        subtasks=_subtasks(raw.get("subtasks")),
        estimated_minutes=_positive_int(raw.get("estimatedMinutes")),
    )


def apply_task_updates(task: Task, updates: dict[str, Any], *, now: datetime) -> None:
    """Merge whitelisted fields into `task` and keep `completed_at` consistent."""

    previous_status = task.status
    title = _clean_str(updates.get("title"))
    if title:
        task.title = title[:TITLE_MAX_CHARS]
    if isinstance(updates.get("description"), str):
        task.description = updates["description"]
    if isinstance(updates.get("notes"), str):
        task.notes = updates["notes"]
    category = _coerce_enum(TaskCategory, updates.get("category"))
    if category is not None:
        task.category = category
    priority = _coerce_enum(TaskPriority, updates.get("priority"))
    if priority is not None:
        task.priority = priority
    status = _coerce_enum(TaskStatus, updates.get("status"))
    if status is not None:
        task.status = status
    if "dueDate" in updates:
        task.due_date = parse_iso_date(updates["dueDate"])
    if "dueTime" in updates:
        task.due_time = _clean_str(updates["dueTime"]) or None
    if "tags" in updates:
        task.tags = _string_list(updates["tags"])
    if "estimatedMinutes" in updates:
        task.estimated_minutes = _positive_int(updates["estimatedMinutes"])

    if task.status is TaskStatus.COMPLETED and previous_status is not TaskStatus.COMPLETED:
        task.completed_at = now
    elif task.status is not TaskStatus.COMPLETED and previous_status is TaskStatus.COMPLETED:
        task.completed_at = None


def render_task_line(task: Task) -> str:
    line = (
        f"{STATUS_GLYPHS.get(task.status, STATUS_GLYPHS[TaskStatus.TODO])} "
        f"{PRIORITY_GLYPHS.get(task.priority, '')} "
        f"**{task.title}** [{task.category.value}]"
    )
    if task.due_date is not None:
        line += f" - Due: {format_short_date(task.due_date)}"
    return line


def _not_found(action: Action, search_query: str) -> ExecutionResult:
    message = f"❌ Couldn't find a task matching \"{search_query}\"."
    if action.kind is not ActionKind.UPDATE_TASK:
        message += " Try being more specific!"
    return ExecutionResult(
        message=message,
        action=action.kind.value,
        success=False,
    )


def _missing_goal(action: Action) -> ExecutionResult:
    return ExecutionResult(
        message="I need the goal text to add it to your plan.",
        action=action.kind.value,
        success=False,
    )


def _data_dict(action: Action) -> dict[str, Any]:
    return action.data if isinstance(action.data, dict) else {}


def _search_query(action: Action) -> str:
    return _clean_str(_data_dict(action).get("searchQuery"))


def _clean_str(value: object) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()


def _coerce_enum(enum_type: type[_EnumT], value: object) -> _EnumT | None:
    if not isinstance(value, str):
        return None
    try:
        return enum_type(value.strip().lower())
    except ValueError:
        return None


def _string_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _subtasks(value: object) -> list[Subtask]:
    if not isinstance(value, list):
        return []
    subtasks: list[Subtask] = []
    for item in value:
        title = _clean_str(item.get("title")) if isinstance(item, dict) else _clean_str(item)
        if title:
            subtasks.append(Subtask(title=title, completed=False))
    return subtasks


def _positive_int(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    number = int(value)
    if number <= 0:
        return None
    return min(number, ESTIMATED_MINUTES_CAP)
