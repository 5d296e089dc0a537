"""Planner store backed by SQLModel + SQLite."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any

from sqlalchemy import String, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from devplanner.planner.dates import week_end_for, week_number_for
from devplanner.planner.models import (
    DailyPlan,
    Goal,
    Subtask,
    Task,
    TaskCategory,
    TaskDraft,
    TaskPriority,
    TaskQuery,
    TaskStatus,
    WeeklyPlan,
)
from devplanner.planner.store import StoreError, TaskNotFoundError
from devplanner.storage.alembic_runner import upgrade_head
from devplanner.storage.common import (
    build_sqlite_engine,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
)
from devplanner.storage.sqlmodel_models import (
    DailyGoalRow,
    DailyPlanRow,
    TaskRow,
    WeeklyGoalRow,
    WeeklyPlanRow,
)

logger = logging.getLogger(__name__)


class SQLitePlannerStore:
    """Task and plan persistence facade; every query is scoped to one user."""

    def __init__(self, db_path: Path, *, sqlite_busy_timeout_ms: int = 5_000) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=sqlite_busy_timeout_ms)

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations."""

        upgrade_head(self.db_path)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with Session(self.engine) as session:
                yield session
        except SQLAlchemyError as error:
            logger.error("Planner store failure: %s", error)
            raise StoreError(str(error)) from error
        except (OverflowError, ValueError) as error:
            logger.error("Planner store rejected a value: %s", error)
            raise StoreError(str(error)) from error

    def create_task(self, user_id: str, draft: TaskDraft) -> Task:
        now = utc_now()
        with self._session() as session:
            row = TaskRow(
                user_id=user_id,
                title=draft.title,
                description=draft.description,
                category=draft.category.value,
                priority=draft.priority.value,
                status=draft.status.value,
                due_date=draft.due_date,
                due_time=draft.due_time,
                tags=list(draft.tags),
                subtasks=[_subtask_to_json(subtask) for subtask in draft.subtasks],
                completed_at=None,
                estimated_minutes=draft.estimated_minutes,
                notes=draft.notes,
                created_at=to_db_datetime(now),
                updated_at=to_db_datetime(now),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_task(row)

    def find_task(self, user_id: str, query: TaskQuery) -> Task | None:
        with self._session() as session:
            statement = _apply_query(select(TaskRow), user_id=user_id, query=query)
            row = session.exec(
                statement.order_by(col(TaskRow.created_at).asc(), col(TaskRow.id).asc()).limit(1),
            ).first()
            return _to_task(row) if row is not None else None

    def find_tasks(
        self,
        user_id: str,
        query: TaskQuery,
        *,
        limit: int,
        newest_first: bool = True,
    ) -> list[Task]:
        if newest_first:
            ordering = (col(TaskRow.created_at).desc(), col(TaskRow.id).desc())
        else:
            ordering = (col(TaskRow.created_at).asc(), col(TaskRow.id).asc())
        with self._session() as session:
            statement = _apply_query(select(TaskRow), user_id=user_id, query=query)
            rows = session.exec(statement.order_by(*ordering).limit(max(0, limit))).all()
            return [_to_task(row) for row in rows]

    def count_tasks(self, user_id: str, query: TaskQuery) -> int:
        with self._session() as session:
            statement = _apply_query(
                select(func.count()).select_from(TaskRow),
                user_id=user_id,
                query=query,
            )
            return int(session.exec(statement).one())

    def save_task(self, task: Task) -> Task:
        now = utc_now()
        with self._session() as session:
            row = session.exec(
                select(TaskRow).where(
                    TaskRow.id == task.task_id,
                    TaskRow.user_id == task.user_id,
                ),
            ).one_or_none()
            if row is None:
                raise TaskNotFoundError(f"Task not found: {task.task_id}")
            row.title = task.title
            row.description = task.description
            row.category = task.category.value
            row.priority = task.priority.value
            row.status = task.status.value
            row.due_date = task.due_date
            row.due_time = task.due_time
            row.tags = list(task.tags)
            row.subtasks = [_subtask_to_json(subtask) for subtask in task.subtasks]
            row.completed_at = (
                to_db_datetime(task.completed_at) if task.completed_at is not None else None
            )
            row.estimated_minutes = task.estimated_minutes
            row.notes = task.notes
            row.updated_at = to_db_datetime(now)
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_task(row)

    def delete_task(self, user_id: str, task_id: int) -> bool:
        with self._session() as session:
            row = session.exec(
                select(TaskRow).where(TaskRow.id == task_id, TaskRow.user_id == user_id),
            ).one_or_none()
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    def get_or_create_daily_plan(self, user_id: str, plan_date: date) -> DailyPlan:
        with self._session() as session:
            row = self._select_daily_plan(session, user_id=user_id, plan_date=plan_date)
            if row is None:
                now = to_db_datetime(utc_now())
                session.add(
                    DailyPlanRow(
                        user_id=user_id,
                        plan_date=plan_date,
                        created_at=now,
                        updated_at=now,
                    ),
                )
                try:
                    session.commit()
                except IntegrityError:
                    # Lost the creation race; the winner's row is reused.
                    session.rollback()
                row = self._select_daily_plan(session, user_id=user_id, plan_date=plan_date)
                if row is None:
                    raise StoreError(f"Daily plan for {plan_date} could not be created")
            return self._to_daily_plan(session, row)

    def save_daily_plan(self, plan: DailyPlan) -> DailyPlan:
        with self._session() as session:
            row = session.exec(
                select(DailyPlanRow).where(
                    DailyPlanRow.id == plan.plan_id,
                    DailyPlanRow.user_id == plan.user_id,
                ),
            ).one_or_none()
            if row is None:
                raise StoreError(f"Daily plan not found: {plan.plan_id}")
            for goal in plan.goals:
                if goal.goal_id is None:
                    session.add(
                        DailyGoalRow(plan_id=plan.plan_id, text=goal.text, completed=goal.completed),
                    )
                    continue
                goal_row = session.get(DailyGoalRow, goal.goal_id)
                if goal_row is None or goal_row.plan_id != plan.plan_id:
                    continue
                goal_row.text = goal.text
                goal_row.completed = goal.completed
                session.add(goal_row)
            row.updated_at = to_db_datetime(utc_now())
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_daily_plan(session, row)

    def get_or_create_weekly_plan(self, user_id: str, week_start: date) -> WeeklyPlan:
        with self._session() as session:
            row = self._select_weekly_plan(session, user_id=user_id, week_start=week_start)
            if row is None:
                now = to_db_datetime(utc_now())
                session.add(
                    WeeklyPlanRow(
                        user_id=user_id,
                        week_start=week_start,
                        week_end=week_end_for(week_start),
                        week_number=week_number_for(week_start),
                        created_at=now,
                        updated_at=now,
                    ),
                )
                try:
                    session.commit()
                except IntegrityError:
                    session.rollback()
                row = self._select_weekly_plan(session, user_id=user_id, week_start=week_start)
                if row is None:
                    raise StoreError(f"Weekly plan for {week_start} could not be created")
            return self._to_weekly_plan(session, row)

    def save_weekly_plan(self, plan: WeeklyPlan) -> WeeklyPlan:
        with self._session() as session:
            row = session.exec(
                select(WeeklyPlanRow).where(
                    WeeklyPlanRow.id == plan.plan_id,
                    WeeklyPlanRow.user_id == plan.user_id,
                ),
            ).one_or_none()
            if row is None:
                raise StoreError(f"Weekly plan not found: {plan.plan_id}")
            for goal in plan.goals:
                category = (goal.category or TaskCategory.OTHER).value
                if goal.goal_id is None:
                    session.add(
                        WeeklyGoalRow(
                            plan_id=plan.plan_id,
                            text=goal.text,
                            completed=goal.completed,
                            category=category,
                        ),
                    )
                    continue
                goal_row = session.get(WeeklyGoalRow, goal.goal_id)
                if goal_row is None or goal_row.plan_id != plan.plan_id:
                    continue
                goal_row.text = goal.text
                goal_row.completed = goal.completed
                goal_row.category = category
                session.add(goal_row)
            row.updated_at = to_db_datetime(utc_now())
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_weekly_plan(session, row)

    @staticmethod
    def _select_daily_plan(
        session: Session,
        *,
        user_id: str,
        plan_date: date,
    ) -> DailyPlanRow | None:
        return session.exec(
            select(DailyPlanRow).where(
                DailyPlanRow.user_id == user_id,
                DailyPlanRow.plan_date == plan_date,
            ),
        ).one_or_none()

    @staticmethod
    def _select_weekly_plan(
        session: Session,
        *,
        user_id: str,
        week_start: date,
    ) -> WeeklyPlanRow | None:
        return session.exec(
            select(WeeklyPlanRow).where(
                WeeklyPlanRow.user_id == user_id,
                WeeklyPlanRow.week_start == week_start,
            ),
        ).one_or_none()

    @staticmethod
    def _to_daily_plan(session: Session, row: DailyPlanRow) -> DailyPlan:
        goals = session.exec(
            select(DailyGoalRow)
            .where(DailyGoalRow.plan_id == row.id)
            .order_by(col(DailyGoalRow.id).asc()),
        ).all()
        return DailyPlan(
            plan_id=int(row.id or 0),
            user_id=row.user_id,
            plan_date=row.plan_date,
            goals=[
                Goal(text=goal.text, completed=goal.completed, goal_id=goal.id) for goal in goals
            ],
        )

    @staticmethod
    def _to_weekly_plan(session: Session, row: WeeklyPlanRow) -> WeeklyPlan:
        goals = session.exec(
            select(WeeklyGoalRow)
            .where(WeeklyGoalRow.plan_id == row.id)
            .order_by(col(WeeklyGoalRow.id).asc()),
        ).all()
        return WeeklyPlan(
            plan_id=int(row.id or 0),
            user_id=row.user_id,
            week_start=row.week_start,
            week_end=row.week_end,
            week_number=row.week_number,
            goals=[
                Goal(
                    text=goal.text,
                    completed=goal.completed,
                    category=_enum_or_default(TaskCategory, goal.category, TaskCategory.OTHER),
                    goal_id=goal.id,
                )
                for goal in goals
            ],
        )


def _apply_query(statement: Any, *, user_id: str, query: TaskQuery) -> Any:
    statement = statement.where(col(TaskRow.user_id) == user_id)
    if query.title_contains is not None:
        statement = statement.where(
            func.casefold(col(TaskRow.title), type_=String).contains(
                query.title_contains.casefold(),
                autoescape=True,
            ),
        )
    if query.status is not None:
        statement = statement.where(col(TaskRow.status) == query.status.value)
    if query.exclude_statuses:
        statement = statement.where(
            col(TaskRow.status).not_in([status.value for status in query.exclude_statuses]),
        )
    if query.category is not None:
        statement = statement.where(col(TaskRow.category) == query.category.value)
    if query.priority is not None:
        statement = statement.where(col(TaskRow.priority) == query.priority.value)
    if query.due_from is not None:
        statement = statement.where(col(TaskRow.due_date) >= query.due_from)
    if query.due_to is not None:
        statement = statement.where(col(TaskRow.due_date) <= query.due_to)
    if query.due_before is not None:
        statement = statement.where(col(TaskRow.due_date) < query.due_before)
    return statement


def _subtask_to_json(subtask: Subtask) -> dict[str, Any]:
    return {
        "title": subtask.title,
        "completed": subtask.completed,
        "completed_at": (
            to_utc_aware_datetime(subtask.completed_at).isoformat()
            if subtask.completed_at is not None
            else None
        ),
    }


def _subtask_from_json(raw: Any) -> Subtask | None:
    if not isinstance(raw, dict):
        return None
    title = raw.get("title")
    if not isinstance(title, str):
        return None
    completed_at_raw = raw.get("completed_at")
    completed_at = None
    if isinstance(completed_at_raw, str) and completed_at_raw:
        completed_at = to_utc_aware_datetime(datetime.fromisoformat(completed_at_raw))
    return Subtask(
        title=title,
        completed=bool(raw.get("completed", False)),
        completed_at=completed_at,
    )


def _enum_or_default(enum_type: Any, value: str, default: Any) -> Any:
    try:
        return enum_type(value)
    except ValueError:
        return default


def _to_task(row: TaskRow) -> Task:
    subtasks = [
        subtask
        for subtask in (_subtask_from_json(item) for item in (row.subtasks or []))
        if subtask is not None
    ]
    return Task(
        task_id=int(row.id or 0),
        user_id=row.user_id,
        title=row.title,
        description=row.description,
        category=_enum_or_default(TaskCategory, row.category, TaskCategory.OTHER),
        priority=_enum_or_default(TaskPriority, row.priority, TaskPriority.MEDIUM),
        status=_enum_or_default(TaskStatus, row.status, TaskStatus.TODO),
        due_date=row.due_date,
        due_time=row.due_time,
        tags=[str(tag) for tag in (row.tags or [])],
        subtasks=subtasks,
        completed_at=(
            to_utc_aware_datetime(row.completed_at) if row.completed_at is not None else None
        ),
        estimated_minutes=row.estimated_minutes,
        notes=row.notes,
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )
