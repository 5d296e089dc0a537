"""Dialogue window construction for model calls."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date

from devplanner.assistant.models import ConversationTurn, TurnRole
from devplanner.assistant.prompts import (
    ACKNOWLEDGEMENT_TEXT,
    SYSTEM_INSTRUCTIONS_PREFIX,
    build_system_prompt,
)
from devplanner.storage.common import utc_now


def build_conversation(
    prior_turns: Sequence[ConversationTurn],
    user_message: str,
    *,
    today: date | None = None,
) -> list[ConversationTurn]:
    """Return the ordered turns sent to the model for one command.

    The window always opens with the system instruction and a canned model
    acknowledgement so the output contract is established before any user
    content. Turns whose text is blank are dropped; the window is not capped.
    """

    current_day = today or utc_now().date()
    turns = [
        ConversationTurn(
            role=TurnRole.USER,
            text=SYSTEM_INSTRUCTIONS_PREFIX + build_system_prompt(current_day),
        ),
        ConversationTurn(role=TurnRole.MODEL, text=ACKNOWLEDGEMENT_TEXT),
    ]
    turns.extend(turn for turn in prior_turns if turn.text.strip())
    if user_message.strip():
        turns.append(ConversationTurn(role=TurnRole.USER, text=user_message))
    return turns


def normalize_history(raw_items: Iterable[object]) -> list[ConversationTurn]:
    """Convert inbound history entries into conversation turns.

    Accepts `{role, text}`, `{role, content}` and the provider shape
    `{role, parts: [{text}]}`. Any role other than `user` is treated as the
    model. Malformed and empty entries are skipped.
    """

    turns: list[ConversationTurn] = []
    for item in raw_items:
        if isinstance(item, ConversationTurn):
            if item.text.strip():
                turns.append(item)
            continue
        if not isinstance(item, dict):
            continue
        text = _extract_text(item)
        if not text.strip():
            continue
        role = TurnRole.USER if item.get("role") == TurnRole.USER.value else TurnRole.MODEL
        turns.append(ConversationTurn(role=role, text=text))
    return turns


def _extract_text(item: dict[object, object]) -> str:
    parts = item.get("parts")
    if isinstance(parts, list) and parts:
        first = parts[0]
        if isinstance(first, dict):
            text = first.get("text")
            if text:
                return str(text)
    for key in ("text", "content"):
        value = item.get(key)
        if value:
            return str(value)
    return ""
