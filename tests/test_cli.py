from __future__ import annotations

import json
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from devplanner.main import devplanner

pytestmark = [
    allure.epic("Assistant"),
    allure.feature("CLI"),
]


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch) -> None:
    for name in (
        "DEVPLANNER_GEMINI_API_KEY",
        "GEMINI_API_KEY",
        "DEVPLANNER_MODEL_CHAIN",
        "DEVPLANNER_LOG_LEVEL",
        "DEVPLANNER_COMMAND_DEADLINE_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DEVPLANNER_USER_ID", "cli-user")


def _ask(runner: CliRunner, db_path: Path, *args: str):
    return runner.invoke(devplanner, ["ask", *args, "--db-path", str(db_path), "--echo"])


def test_ask_create_list_and_stats(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"
    runner = CliRunner()
    create = _ask(
        runner,
        db_path,
        json.dumps(
            {
                "action": "CREATE_MULTIPLE_TASKS",
                "data": [
                    {"title": "Mock interview", "category": "placement", "priority": "high"},
                    {"title": "Revise trees", "category": "study"},
                ],
                "message": "Created 2 tasks",
            },
        ),
        "--json",
    )
    assert create.exit_code == 0, create.output
    payload = json.loads(create.output)
    assert payload["action"] == "CREATE_MULTIPLE_TASKS"
    assert payload["success"] is True
    assert [task["title"] for task in payload["tasks"]] == ["Mock interview", "Revise trees"]

    listed = runner.invoke(devplanner, ["tasks", "list", "--db-path", str(db_path)])
    assert listed.exit_code == 0, listed.output
    assert "⭕ 🟡 **Revise trees** [study]" in listed.output
    assert "⭕ 🟠 **Mock interview** [placement]" in listed.output
    assert listed.output.index("Revise trees") < listed.output.index("Mock interview")

    filtered = runner.invoke(
        devplanner,
        ["tasks", "list", "--db-path", str(db_path), "--category", "placement"],
    )
    assert "Revise trees" not in filtered.output

    stats = runner.invoke(devplanner, ["tasks", "stats", "--db-path", str(db_path)])
    assert stats.exit_code == 0, stats.output
    assert "• Total Tasks: 2" in stats.output
    assert "• Completed: 0 (0%)" in stats.output


def test_ask_complete_by_partial_title(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"
    runner = CliRunner()
    _ask(
        runner,
        db_path,
        json.dumps({"action": "CREATE_TASK", "data": {"title": "LeetCode daily"}, "message": "ok"}),
    )

    complete = _ask(
        runner,
        db_path,
        json.dumps(
            {
                "action": "COMPLETE_TASK",
                "data": {"searchQuery": "leetcode"},
                "message": "Well done!",
            },
        ),
    )

    assert complete.exit_code == 0, complete.output
    assert complete.output.splitlines() == ["Well done!", "[COMPLETE_TASK] success=true"]
    stats = runner.invoke(devplanner, ["tasks", "stats", "--db-path", str(db_path)])
    assert "• Completed: 1 (100%)" in stats.output


def test_ask_not_found_exits_non_zero(tmp_path: Path) -> None:
    result = _ask(
        CliRunner(),
        tmp_path / "cli.db",
        json.dumps({"action": "DELETE_TASK", "data": {"searchQuery": "gym"}, "message": "x"}),
    )

    assert result.exit_code == 1
    assert 'Couldn\'t find a task matching "gym"' in result.output


def test_ask_plain_chat_with_history_file(tmp_path: Path) -> None:
    history_file = tmp_path / "history.json"
    history_file.write_text(
        json.dumps([{"role": "user", "text": "hi"}, {"role": "model", "text": "hello"}]),
        encoding="utf-8",
    )

    result = _ask(
        CliRunner(),
        tmp_path / "cli.db",
        "what should I study?",
        "--history-file",
        str(history_file),
    )

    assert result.exit_code == 0, result.output
    assert result.output.splitlines() == ["what should I study?", "[CHAT] success=true"]


def test_ask_rejects_malformed_history_file(tmp_path: Path) -> None:
    history_file = tmp_path / "history.json"
    history_file.write_text("{not json", encoding="utf-8")

    result = _ask(
        CliRunner(),
        tmp_path / "cli.db",
        "hello",
        "--history-file",
        str(history_file),
    )

    assert result.exit_code == 1
    assert "Cannot read history file" in result.output


def test_ask_without_api_key_fails_with_config_error(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        devplanner,
        ["ask", "hello", "--db-path", str(tmp_path / "cli.db")],
    )

    assert result.exit_code == 1
    assert "DEVPLANNER_GEMINI_API_KEY" in result.output


def test_backends_lists_model_chain(monkeypatch) -> None:
    monkeypatch.setenv("DEVPLANNER_MODEL_CHAIN", "model-a,model-b")

    result = CliRunner().invoke(devplanner, ["backends"])

    assert result.exit_code == 0, result.output
    assert result.output.splitlines()[1:3] == ["- 0: model-a", "- 1: model-b"]
    assert "only --echo runs are possible" in result.output
