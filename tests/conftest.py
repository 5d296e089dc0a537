"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Iterator, Sequence
from datetime import UTC, datetime
from pathlib import Path

import pytest

from devplanner.assistant.backend import ModelInvocationError
from devplanner.assistant.deadline import Deadline
from devplanner.assistant.models import ConversationTurn, ErrorClass, ModelBackend
from devplanner.storage.repository import SQLitePlannerStore

FIXED_NOW = datetime(2026, 3, 4, 9, 30, tzinfo=UTC)


class ScriptedGateway:
    """Gateway double that replays a script of texts and classified errors.

    A script entry keyed by backend identifier is consumed per call; a
    `default` entry answers backends that have no script of their own.
    """

    def __init__(self, scripts: dict[str, list[str | ErrorClass]]) -> None:
        self.scripts = {key: list(value) for key, value in scripts.items()}
        self.calls: list[str] = []
        self.conversations: list[list[ConversationTurn]] = []

    def invoke(
        self,
        backend: ModelBackend,
        conversation: Sequence[ConversationTurn],
        *,
        deadline: Deadline | None = None,
    ) -> str:
        del deadline
        self.calls.append(backend.identifier)
        self.conversations.append(list(conversation))
        script = self.scripts.get(backend.identifier) or self.scripts.get("default") or []
        if not script:
            raise ModelInvocationError(
                ErrorClass.FATAL,
                "script exhausted",
                backend=backend.identifier,
            )
        step = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(step, ErrorClass):
            raise ModelInvocationError(
                step,
                f"{step.value} on {backend.identifier}",
                backend=backend.identifier,
            )
        return step


def action_json(kind: str, data: object = None, message: str = "ok") -> str:
    return json.dumps({"action": kind, "data": {} if data is None else data, "message": message})


@pytest.fixture()
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture()
def store(tmp_path: Path) -> Iterator[SQLitePlannerStore]:
    planner_store = SQLitePlannerStore(tmp_path / "planner.db")
    planner_store.init_schema()
    try:
        yield planner_store
    finally:
        planner_store.close()
