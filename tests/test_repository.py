from __future__ import annotations

import sqlite3
from datetime import date
from pathlib import Path

import allure
import pytest

from devplanner.planner.models import (
    Goal,
    Subtask,
    TaskCategory,
    TaskDraft,
    TaskQuery,
    TaskStatus,
)
from devplanner.planner.store import StoreError, TaskNotFoundError
from devplanner.storage.repository import SQLitePlannerStore

pytestmark = [
    allure.epic("Planner Store"),
    allure.feature("Tasks & Plans Persistence"),
]


def test_alembic_schema_is_initialized_to_head(tmp_path: Path) -> None:
    db_path = tmp_path / "migrations.db"
    store = SQLitePlannerStore(db_path)
    store.init_schema()
    store.init_schema()
    store.close()

    with sqlite3.connect(db_path) as connection:
        version = connection.execute("SELECT version_num FROM alembic_version").fetchall()
        tables = connection.execute(
            """
            SELECT name
            FROM sqlite_master
            WHERE type = 'table' AND name != 'alembic_version'
            ORDER BY name
            """,
        ).fetchall()

    assert version == [("20261017_0001",)]
    assert [row[0] for row in tables] == [
        "daily_goals",
        "daily_plans",
        "tasks",
        "weekly_goals",
        "weekly_plans",
    ]


def test_task_round_trip_keeps_nested_fields(store: SQLitePlannerStore) -> None:
    created = store.create_task(
        "u1",
        TaskDraft(
            title="Build portfolio",
            category=TaskCategory.PROJECT,
            due_date=date(2026, 3, 7),
            due_time="18:00",
            tags=["web"],
            subtasks=[Subtask(title="Pick stack")],
            estimated_minutes=120,
        ),
    )

    loaded = store.find_task("u1", TaskQuery(title_contains="PORTFOLIO"))

    assert loaded == created
    assert loaded is not None
    assert loaded.subtasks == [Subtask(title="Pick stack", completed=False)]
    assert loaded.created_at.tzinfo is not None


def test_title_search_treats_wildcards_literally(store: SQLitePlannerStore) -> None:
    store.create_task("u1", TaskDraft(title="Finish 100% of course"))
    store.create_task("u1", TaskDraft(title="Finish chapter_2"))

    assert store.find_task("u1", TaskQuery(title_contains="%")) is not None
    assert store.count_tasks("u1", TaskQuery(title_contains="100%")) == 1
    assert store.count_tasks("u1", TaskQuery(title_contains="r_2")) == 1
    assert store.count_tasks("u1", TaskQuery(title_contains="h_c")) == 0


def test_title_search_folds_non_ascii_case(store: SQLitePlannerStore) -> None:
    store.create_task("u1", TaskDraft(title="Übung Mathe"))
    store.create_task("u1", TaskDraft(title="Straße bauen"))

    match = store.find_task("u1", TaskQuery(title_contains="übung"))

    assert match is not None
    assert match.title == "Übung Mathe"
    assert store.count_tasks("u1", TaskQuery(title_contains="ÜBUNG")) == 1
    assert store.count_tasks("u1", TaskQuery(title_contains="STRASSE")) == 1


def test_unstorable_integer_raises_store_error(store: SQLitePlannerStore) -> None:
    with pytest.raises(StoreError):
        store.create_task("u1", TaskDraft(title="Huge", estimated_minutes=10**23))

    assert store.count_tasks("u1", TaskQuery()) == 0


def test_find_task_tie_break_is_oldest_first(store: SQLitePlannerStore) -> None:
    first = store.create_task("u1", TaskDraft(title="review PR 1"))
    store.create_task("u1", TaskDraft(title="review PR 2"))

    match = store.find_task("u1", TaskQuery(title_contains="review"))

    assert match is not None
    assert match.task_id == first.task_id


def test_exclude_statuses_filter(store: SQLitePlannerStore) -> None:
    store.create_task("u1", TaskDraft(title="a", status=TaskStatus.COMPLETED))
    store.create_task("u1", TaskDraft(title="b", status=TaskStatus.CANCELLED))
    store.create_task("u1", TaskDraft(title="c"))

    remaining = store.find_tasks(
        "u1",
        TaskQuery(exclude_statuses=(TaskStatus.COMPLETED, TaskStatus.CANCELLED)),
        limit=10,
    )

    assert [task.title for task in remaining] == ["c"]


def test_find_tasks_respects_limit(store: SQLitePlannerStore) -> None:
    for index in range(5):
        store.create_task("u1", TaskDraft(title=f"t{index}"))

    newest = store.find_tasks("u1", TaskQuery(), limit=2)
    oldest = store.find_tasks("u1", TaskQuery(), limit=2, newest_first=False)

    assert [task.title for task in newest] == ["t4", "t3"]
    assert [task.title for task in oldest] == ["t0", "t1"]


def test_save_task_after_concurrent_delete_raises_not_found(store: SQLitePlannerStore) -> None:
    task = store.create_task("u1", TaskDraft(title="ephemeral"))
    assert store.delete_task("u1", task.task_id)
    assert not store.delete_task("u1", task.task_id)

    task.title = "renamed"
    with pytest.raises(TaskNotFoundError):
        store.save_task(task)


def test_daily_plan_is_unique_per_user_and_day(store: SQLitePlannerStore) -> None:
    plan = store.get_or_create_daily_plan("u1", date(2026, 3, 4))
    again = store.get_or_create_daily_plan("u1", date(2026, 3, 4))
    other_user = store.get_or_create_daily_plan("u2", date(2026, 3, 4))

    assert plan.plan_id == again.plan_id
    assert other_user.plan_id != plan.plan_id


def test_save_daily_plan_appends_new_and_updates_existing_goals(
    store: SQLitePlannerStore,
) -> None:
    plan = store.get_or_create_daily_plan("u1", date(2026, 3, 4))
    plan.goals.append(Goal(text="first"))
    saved = store.save_daily_plan(plan)

    saved.goals[0].completed = True
    saved.goals.append(Goal(text="second"))
    updated = store.save_daily_plan(saved)

    assert [(goal.text, goal.completed) for goal in updated.goals] == [
        ("first", True),
        ("second", False),
    ]
    assert all(goal.goal_id is not None for goal in updated.goals)


def test_weekly_plan_carries_period_metadata(store: SQLitePlannerStore) -> None:
    plan = store.get_or_create_weekly_plan("u1", date(2026, 3, 2))

    assert plan.week_start == date(2026, 3, 2)
    assert plan.week_end == date(2026, 3, 8)
    assert plan.week_number == 10
    assert plan.goals == []
