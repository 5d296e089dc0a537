"""Store interface consumed by the assistant executor."""

from __future__ import annotations

from datetime import date
from typing import Protocol

from devplanner.planner.models import DailyPlan, Task, TaskDraft, TaskQuery, WeeklyPlan


class StoreError(RuntimeError):
    """Raised by store implementations on connectivity or constraint failures."""


class TaskStore(Protocol):
    """Task persistence. Every call is scoped to `user_id`."""

    def create_task(self, user_id: str, draft: TaskDraft) -> Task:
        """Persist a new task."""

    def find_task(self, user_id: str, query: TaskQuery) -> Task | None:
        """Return the oldest task matching `query` (created_at, then id)."""

    def find_tasks(
        self,
        user_id: str,
        query: TaskQuery,
        *,
        limit: int,
        newest_first: bool = True,
    ) -> list[Task]:
        """Return up to `limit` matching tasks."""

    def count_tasks(self, user_id: str, query: TaskQuery) -> int:
        """Count matching tasks."""

    def save_task(self, task: Task) -> Task:
        """Persist a mutated task view."""

    def delete_task(self, user_id: str, task_id: int) -> bool:
        """Delete a task; False when it no longer exists."""


class PlanStore(Protocol):
    """Daily/weekly plan persistence."""

    def get_or_create_daily_plan(self, user_id: str, plan_date: date) -> DailyPlan:
        """Resolve the plan for one day, creating an empty one when missing."""

    def save_daily_plan(self, plan: DailyPlan) -> DailyPlan:
        """Persist goals; goals without id are appended, existing ones updated."""

    def get_or_create_weekly_plan(self, user_id: str, week_start: date) -> WeeklyPlan:
        """Resolve the plan for one Monday-start week, creating it when missing."""

    def save_weekly_plan(self, plan: WeeklyPlan) -> WeeklyPlan:
        """Persist goals; goals without id are appended, existing ones updated."""


class PlannerStore(TaskStore, PlanStore, Protocol):
    """Combined store used by the action executor."""


class TaskNotFoundError(StoreError):
    """Task vanished between resolution and write (for example a concurrent delete)."""
