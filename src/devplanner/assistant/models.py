"""Domain models for the natural-language command orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from devplanner.planner.models import Task


class TurnRole(str, Enum):
    """Speaker of one conversation turn."""

    USER = "user"
    MODEL = "model"


class ActionKind(str, Enum):
    """Closed vocabulary of actions the model may propose."""

    CREATE_TASK = "CREATE_TASK"
    CREATE_MULTIPLE_TASKS = "CREATE_MULTIPLE_TASKS"
    COMPLETE_TASK = "COMPLETE_TASK"
    DELETE_TASK = "DELETE_TASK"
    UPDATE_TASK = "UPDATE_TASK"
    LIST_TASKS = "LIST_TASKS"
    ADD_DAILY_GOAL = "ADD_DAILY_GOAL"
    ADD_WEEKLY_GOAL = "ADD_WEEKLY_GOAL"
    GET_STATS = "GET_STATS"
    CHAT = "CHAT"


class ErrorClass(str, Enum):
    """Normalized model failure classes used by the retry controller."""

    RATE_LIMITED_PER_MINUTE = "rate_limited_per_minute"
    RATE_LIMITED_PER_DAY = "rate_limited_per_day"
    TRANSIENT = "transient"
    FATAL = "fatal"


RATE_LIMIT_CLASSES: frozenset[ErrorClass] = frozenset(
    {ErrorClass.RATE_LIMITED_PER_MINUTE, ErrorClass.RATE_LIMITED_PER_DAY},
)


@dataclass(slots=True, frozen=True)
class ConversationTurn:
    """One turn of the dialogue window sent to a model backend."""

    role: TurnRole
    text: str

    def to_provider_content(self) -> dict[str, object]:
        return {"role": self.role.value, "parts": [{"text": self.text}]}


@dataclass(slots=True)
class Action:
    """Structured command extracted from model output."""

    kind: ActionKind
    data: dict[str, Any] | list[Any] = field(default_factory=dict)
    message: str = ""
    raw_kind: str | None = None


@dataclass(slots=True, frozen=True)
class ModelBackend:
    """One candidate model endpoint in the fallback chain."""

    identifier: str
    priority: int


@dataclass(slots=True, frozen=True)
class AttemptOutcome:
    """Result of one gateway invocation."""

    backend: ModelBackend
    attempt_number: int
    error_class: ErrorClass | None = None
    error_message: str | None = None
    text: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error_class is None and self.text is not None


@dataclass(slots=True)
class ExecutionResult:
    """User-facing outcome of one command."""

    message: str
    action: str
    success: bool
    task: Task | None = None
    tasks: list[Task] | None = None
    deleted_task: str | None = None

    def to_payload(self) -> dict[str, object]:
        """Render the command response contract."""

        payload: dict[str, object] = {
            "message": self.message,
            "action": self.action,
            "success": self.success,
        }
        if self.task is not None:
            payload["task"] = self.task.to_payload()
        if self.tasks is not None:
            payload["tasks"] = [task.to_payload() for task in self.tasks]
        if self.deleted_task is not None:
            payload["deletedTask"] = self.deleted_task
        return payload
