"""SQLModel ORM tables for task and plan storage."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlmodel import Field, SQLModel


class TaskRow(SQLModel, table=True):
    __tablename__ = "tasks"  # type: ignore[bad-override]

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    title: str
    description: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    category: str = Field(default="other", index=True)
    priority: str = Field(default="medium")
    status: str = Field(default="todo", index=True)
    due_date: date | None = Field(default=None, sa_column=Column(Date, nullable=True, index=True))
    due_time: str | None = None
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    subtasks: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    completed_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    estimated_minutes: int | None = None
    notes: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class DailyPlanRow(SQLModel, table=True):
    __tablename__ = "daily_plans"  # type: ignore[bad-override]
    __table_args__ = (
        UniqueConstraint("user_id", "plan_date", name="uq_daily_plans_user_date"),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    plan_date: date = Field(sa_column=Column(Date, nullable=False))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class DailyGoalRow(SQLModel, table=True):
    __tablename__ = "daily_goals"  # type: ignore[bad-override]

    id: int | None = Field(default=None, primary_key=True)
    plan_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("daily_plans.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    text: str
    completed: bool = False


class WeeklyPlanRow(SQLModel, table=True):
    __tablename__ = "weekly_plans"  # type: ignore[bad-override]
    __table_args__ = (
        UniqueConstraint("user_id", "week_start", name="uq_weekly_plans_user_week_start"),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    week_start: date = Field(sa_column=Column(Date, nullable=False))
    week_end: date = Field(sa_column=Column(Date, nullable=False))
    week_number: int
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class WeeklyGoalRow(SQLModel, table=True):
    __tablename__ = "weekly_goals"  # type: ignore[bad-override]

    id: int | None = Field(default=None, primary_key=True)
    plan_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("weekly_plans.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    text: str
    completed: bool = False
    category: str = "other"
