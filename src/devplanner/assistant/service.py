"""One natural-language command end to end: context, model chain, parse, execute."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from devplanner.assistant.context import build_conversation, normalize_history
from devplanner.assistant.deadline import Deadline
from devplanner.assistant.executor import ActionExecutor
from devplanner.assistant.models import ActionKind, ConversationTurn, ExecutionResult
from devplanner.assistant.parser import parse_action
from devplanner.assistant.retry import RetryController, RetryResult
from devplanner.storage.common import utc_now

logger = logging.getLogger(__name__)

QUOTA_EXHAUSTED_MESSAGE = (
    "The AI service is temporarily rate-limited. Please try again later "
    "or use the manual task controls meanwhile."
)
DEADLINE_EXCEEDED_MESSAGE = (
    "The AI service took too long to respond. Please try again in a moment."
)


class InvalidCommandError(ValueError):
    """Inbound command payload violates the request contract."""


@dataclass(slots=True)
class CommandRequest:
    """Validated inbound command: message plus prior conversation turns."""

    message: str
    history: list[ConversationTurn] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: object) -> CommandRequest:
        if not isinstance(payload, dict):
            raise InvalidCommandError("Command payload must be a JSON object.")
        message = payload.get("message")
        if not isinstance(message, str) or not message.strip():
            raise InvalidCommandError("Message is required.")
        raw_history: Any = payload.get("history", [])
        if raw_history is None:
            raw_history = []
        if not isinstance(raw_history, list):
            raise InvalidCommandError("History must be a list of conversation turns.")
        return cls(message=message.strip(), history=normalize_history(raw_history))


class AssistantService:
    """Interpret one user message and apply the resulting action."""

    def __init__(
        self,
        *,
        controller: RetryController,
        executor: ActionExecutor,
        deadline_seconds: float | None = None,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.controller = controller
        self.executor = executor
        self._deadline_seconds = deadline_seconds or None
        self._now = now

    def process_command(
        self,
        user_id: str,
        message: str,
        history: Iterable[ConversationTurn] = (),
        *,
        deadline: Deadline | None = None,
    ) -> ExecutionResult:
        if not message or not message.strip():
            raise InvalidCommandError("Message is required.")

        conversation = build_conversation(
            list(history),
            message.strip(),
            today=self._now().date(),
        )
        if deadline is None and self._deadline_seconds is not None:
            deadline = Deadline(self._deadline_seconds)

        outcome = self.controller.run(conversation, deadline=deadline)
        if outcome.text is None:
            return _failure_result(outcome)

        action = parse_action(outcome.text)
        if action.raw_kind is not None and action.kind.value != action.raw_kind.upper():
            logger.info("Unknown action %r treated as CHAT", action.raw_kind)
        result = self.executor.execute(user_id, action)
        logger.info(
            "Command for user %s finished: action=%s success=%s attempts=%d",
            user_id,
            result.action,
            result.success,
            len(outcome.attempts),
        )
        return result


def _failure_result(outcome: RetryResult) -> ExecutionResult:
    if outcome.deadline_exceeded:
        message = DEADLINE_EXCEEDED_MESSAGE
    elif outcome.quota_exhausted:
        message = QUOTA_EXHAUSTED_MESSAGE
    else:
        reason = outcome.last_error.message if outcome.last_error is not None else "no model"
        message = f"AI error: {reason}. Please try again."
    return ExecutionResult(message=message, action=ActionKind.CHAT.value, success=False)
