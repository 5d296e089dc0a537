"""Local deterministic gateway for offline runs and tests."""

from __future__ import annotations

import json
from collections.abc import Sequence

from devplanner.assistant.deadline import Deadline
from devplanner.assistant.models import ConversationTurn, ModelBackend, TurnRole


class EchoGateway:
    """Answer every conversation without network access.

    A last user turn that already is a JSON action object is returned
    verbatim, which lets operators drive the executor directly; anything else
    is echoed back inside a CHAT action.
    """

    def invoke(
        self,
        backend: ModelBackend,
        conversation: Sequence[ConversationTurn],
        *,
        deadline: Deadline | None = None,
    ) -> str:
        del backend, deadline
        last_user = next(
            (turn.text for turn in reversed(conversation) if turn.role is TurnRole.USER),
            "",
        ).strip()
        if last_user.startswith("{"):
            try:
                parsed = json.loads(last_user)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, dict) and isinstance(parsed.get("action"), str):
                return last_user
        return json.dumps({"action": "CHAT", "data": {}, "message": last_user})
