"""Best-effort action recovery from raw model text."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from devplanner.assistant.models import Action, ActionKind

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```[\w+-]*[ \t]*\n?(.*?)```", re.DOTALL)
_DECODER = json.JSONDecoder()


def parse_action(raw_text: str) -> Action:
    """Extract an `Action` from model output. Never raises.

    Strategies, first success wins: the whole text as JSON, the first fenced
    code block, the first `{...}` span, and finally a CHAT action carrying the
    raw text unchanged.
    """

    text = raw_text.strip()
    payload = _parse_json_payload(text) if text else None
    if payload is not None:
        return _to_action(payload)
    logger.debug("Model output is not an action object; falling back to CHAT")
    return Action(kind=ActionKind.CHAT, data={}, message=raw_text)


def _parse_json_payload(text: str) -> dict[str, Any] | None:
    direct = _try_load_action_dict(text)
    if direct is not None:
        return direct

    fenced = _FENCED_BLOCK.search(text)
    if fenced is not None:
        payload = _try_load_action_dict(fenced.group(1).strip())
        if payload is not None:
            return payload

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    payload = _try_load_action_dict(text[start : end + 1])
    if payload is not None:
        return payload
    # Trailing prose may contain braces of its own; decode just the first object.
    try:
        parsed, _ = _DECODER.raw_decode(text, start)
    except (json.JSONDecodeError, RecursionError):
        return None
    return parsed if _is_action_dict(parsed) else None


def _try_load_action_dict(raw: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, RecursionError):
        return None
    if not _is_action_dict(parsed):
        return None
    return parsed


def _is_action_dict(parsed: object) -> bool:
    if not isinstance(parsed, dict):
        return False
    return isinstance(parsed.get("action"), str) or isinstance(parsed.get("message"), str)


def _to_action(payload: dict[str, Any]) -> Action:
    if not isinstance(payload.get("action"), str):
        # Message-only object: reply with the model's own text.
        return Action(kind=ActionKind.CHAT, data={}, message=payload["message"])
    raw_kind = payload["action"].strip()
    try:
        kind = ActionKind(raw_kind.upper())
    except ValueError:
        kind = ActionKind.CHAT

    message = payload.get("message")
    if not isinstance(message, str):
        message = "" if message is None else str(message)

    raw_data = payload.get("data")
    data: dict[str, Any] | list[Any]
    if isinstance(raw_data, dict):
        data = raw_data
    elif isinstance(raw_data, list) and kind is ActionKind.CREATE_MULTIPLE_TASKS:
        data = raw_data
    else:
        data = {}
    return Action(kind=kind, data=data, message=message, raw_kind=raw_kind)
