"""Domain models for tasks and daily/weekly plans."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class TaskStatus(str, Enum):
    """Task lifecycle states."""

    TODO = "todo"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskCategory(str, Enum):
    """Task categories understood by the assistant."""

    CODING = "coding"
    STUDY = "study"
    PROJECT = "project"
    PLACEMENT = "placement"
    PERSONAL = "personal"
    HEALTH = "health"
    OTHER = "other"


class TaskPriority(str, Enum):
    """Task priorities."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


CLOSED_STATUSES: tuple[TaskStatus, ...] = (TaskStatus.COMPLETED, TaskStatus.CANCELLED)
TITLE_MAX_CHARS = 200


@dataclass(slots=True)
class Subtask:
    """Checklist item embedded into a task."""

    title: str
    completed: bool = False
    completed_at: datetime | None = None


@dataclass(slots=True)
class TaskDraft:
    """Fully defaulted input for task creation."""

    title: str
    description: str = ""
    category: TaskCategory = TaskCategory.OTHER
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.TODO
    due_date: date | None = None
    due_time: str | None = None
    tags: list[str] = field(default_factory=list)
    subtasks: list[Subtask] = field(default_factory=list)
    estimated_minutes: int | None = None
    notes: str = ""


@dataclass(slots=True)
class Task:
    """Readable and mutable task view returned by the store."""

    task_id: int
    user_id: str
    title: str
    description: str
    category: TaskCategory
    priority: TaskPriority
    status: TaskStatus
    due_date: date | None
    due_time: str | None
    tags: list[str]
    subtasks: list[Subtask]
    completed_at: datetime | None
    estimated_minutes: int | None
    notes: str
    created_at: datetime
    updated_at: datetime

    def to_payload(self) -> dict[str, object]:
        """Serialize for command responses."""

        return {
            "id": self.task_id,
            "title": self.title,
            "description": self.description,
            "category": self.category.value,
            "priority": self.priority.value,
            "status": self.status.value,
            "dueDate": self.due_date.isoformat() if self.due_date is not None else None,
            "dueTime": self.due_time,
            "tags": list(self.tags),
            "subtasks": [
                {
                    "title": subtask.title,
                    "completed": subtask.completed,
                    "completedAt": (
                        subtask.completed_at.isoformat()
                        if subtask.completed_at is not None
                        else None
                    ),
                }
                for subtask in self.subtasks
            ],
            "completedAt": (
                self.completed_at.isoformat() if self.completed_at is not None else None
            ),
            "estimatedMinutes": self.estimated_minutes,
            "notes": self.notes,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass(slots=True)
class TaskQuery:
    """Task filter; the store always adds the user scope."""

    title_contains: str | None = None
    status: TaskStatus | None = None
    exclude_statuses: tuple[TaskStatus, ...] = ()
    category: TaskCategory | None = None
    priority: TaskPriority | None = None
    due_from: date | None = None
    due_to: date | None = None
    due_before: date | None = None


@dataclass(slots=True)
class Goal:
    """Goal attached to a daily or weekly plan. `goal_id` is None until saved."""

    text: str
    completed: bool = False
    category: TaskCategory | None = None
    goal_id: int | None = None


@dataclass(slots=True)
class DailyPlan:
    """Per-day plan container."""

    plan_id: int
    user_id: str
    plan_date: date
    goals: list[Goal] = field(default_factory=list)


@dataclass(slots=True)
class WeeklyPlan:
    """Per-week (Monday start) plan container."""

    plan_id: int
    user_id: str
    week_start: date
    week_end: date
    week_number: int
    goals: list[Goal] = field(default_factory=list)
