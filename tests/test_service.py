from __future__ import annotations

import allure
import pytest
from conftest import FIXED_NOW, ScriptedGateway, action_json

from devplanner.assistant.deadline import Deadline
from devplanner.assistant.executor import ESTIMATED_MINUTES_CAP, ActionExecutor
from devplanner.assistant.models import ConversationTurn, ErrorClass, TurnRole
from devplanner.assistant.retry import RetryController, RetryPolicy
from devplanner.assistant.service import (
    DEADLINE_EXCEEDED_MESSAGE,
    QUOTA_EXHAUSTED_MESSAGE,
    AssistantService,
    CommandRequest,
    InvalidCommandError,
)
from devplanner.planner.models import TaskQuery
from devplanner.storage.repository import SQLitePlannerStore

pytestmark = [
    allure.epic("Assistant"),
    allure.feature("Command Processing"),
]

CHAIN = ("gemini-2.5-flash-lite", "gemini-2.5-flash", "gemini-3-flash-preview")


def _service(store: SQLitePlannerStore, gateway: ScriptedGateway) -> AssistantService:
    return AssistantService(
        controller=RetryController(
            gateway=gateway,
            policy=RetryPolicy.from_model_chain(CHAIN, max_retries=2, base_delay_seconds=0.0),
            sleep=lambda _: None,
        ),
        executor=ActionExecutor(store=store, now=lambda: FIXED_NOW),
        now=lambda: FIXED_NOW,
    )


def test_command_creates_task_from_fenced_model_output(store: SQLitePlannerStore) -> None:
    reply = "Sure!\n```json\n" + action_json(
        "CREATE_TASK",
        {"title": "Practice DP", "category": "coding", "dueDate": "2026-03-05"},
        "Added **Practice DP** for tomorrow.",
    ) + "\n```"
    gateway = ScriptedGateway({"default": [reply]})

    result = _service(store, gateway).process_command("u1", "add practice DP tomorrow")

    assert result.success
    assert result.action == "CREATE_TASK"
    assert result.message == "Added **Practice DP** for tomorrow."
    assert store.count_tasks("u1", TaskQuery()) == 1
    sent = gateway.conversations[0]
    assert sent[-1] == ConversationTurn(role=TurnRole.USER, text="add practice DP tomorrow")
    assert "2026-03-04" in sent[0].text


@pytest.mark.parametrize(
    ("minutes_literal", "expected"),
    [
        ("Infinity", None),
        ("NaN", None),
        ("1e400", None),
        ("100000000000000000000000", ESTIMATED_MINUTES_CAP),
    ],
)
def test_extreme_estimated_minutes_from_model_do_not_crash(
    store: SQLitePlannerStore,
    minutes_literal: str,
    expected: int | None,
) -> None:
    reply = (
        '{"action": "CREATE_TASK", "data": {"title": "Mock OA", "estimatedMinutes": '
        + minutes_literal
        + '}, "message": "Added"}'
    )
    gateway = ScriptedGateway({"default": [reply]})

    result = _service(store, gateway).process_command("u1", "add a mock OA")

    assert result.success
    assert result.task is not None
    assert result.task.estimated_minutes == expected
    assert store.count_tasks("u1", TaskQuery()) == 1


def test_history_is_sent_between_preamble_and_message(store: SQLitePlannerStore) -> None:
    gateway = ScriptedGateway({"default": [action_json("CHAT", message="sure")]})
    history = [
        ConversationTurn(role=TurnRole.USER, text="hi"),
        ConversationTurn(role=TurnRole.MODEL, text="hello!"),
    ]

    _service(store, gateway).process_command("u1", "what next?", history)

    assert [turn.text for turn in gateway.conversations[0][2:]] == ["hi", "hello!", "what next?"]


def test_all_backends_out_of_daily_quota(store: SQLitePlannerStore) -> None:
    gateway = ScriptedGateway({"default": [ErrorClass.RATE_LIMITED_PER_DAY]})

    result = _service(store, gateway).process_command("u1", "add gym")

    assert result.to_payload() == {
        "message": QUOTA_EXHAUSTED_MESSAGE,
        "action": "CHAT",
        "success": False,
    }
    assert gateway.calls == list(CHAIN)
    assert store.count_tasks("u1", TaskQuery()) == 0


def test_generic_failure_names_last_error(store: SQLitePlannerStore) -> None:
    gateway = ScriptedGateway({"default": [ErrorClass.FATAL]})

    result = _service(store, gateway).process_command("u1", "add gym")

    assert not result.success
    assert result.action == "CHAT"
    assert result.message.startswith("AI error: fatal on gemini-3-flash-preview")


def test_deadline_failure_message(store: SQLitePlannerStore) -> None:
    gateway = ScriptedGateway({"default": ["never"]})
    deadline = Deadline()
    deadline.cancel()

    result = _service(store, gateway).process_command("u1", "add gym", deadline=deadline)

    assert not result.success
    assert result.message == DEADLINE_EXCEEDED_MESSAGE
    assert gateway.calls == []


def test_plain_text_reply_is_returned_as_chat(store: SQLitePlannerStore) -> None:
    gateway = ScriptedGateway({"default": ["Happy to help with your study plan!"]})

    result = _service(store, gateway).process_command("u1", "hello")

    assert result.success
    assert result.action == "CHAT"
    assert result.message == "Happy to help with your study plan!"


def test_empty_message_is_rejected(store: SQLitePlannerStore) -> None:
    gateway = ScriptedGateway({"default": ["unused"]})

    with pytest.raises(InvalidCommandError):
        _service(store, gateway).process_command("u1", "   ")
    assert gateway.calls == []


def test_command_request_from_payload() -> None:
    request = CommandRequest.from_payload(
        {
            "message": "  list my tasks ",
            "history": [{"role": "user", "text": "hi"}, {"role": "assistant", "text": "yo"}],
        },
    )

    assert request.message == "list my tasks"
    assert [turn.role for turn in request.history] == [TurnRole.USER, TurnRole.MODEL]
    assert CommandRequest.from_payload({"message": "x"}).history == []


@pytest.mark.parametrize(
    "payload",
    [None, [], {}, {"message": ""}, {"message": 42}, {"message": "x", "history": "nope"}],
)
def test_command_request_rejects_invalid_payloads(payload: object) -> None:
    with pytest.raises(InvalidCommandError):
        CommandRequest.from_payload(payload)
