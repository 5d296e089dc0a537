"""Gateway interface for model backend invocation."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from devplanner.assistant.deadline import Deadline
from devplanner.assistant.failure_classifier import ModelFailureClassification
from devplanner.assistant.models import ConversationTurn, ErrorClass, ModelBackend


class ModelInvocationError(Exception):
    """Classified failure of one backend call."""

    def __init__(
        self,
        error_class: ErrorClass,
        message: str,
        *,
        backend: str = "",
        status_code: int | None = None,
        classification: ModelFailureClassification | None = None,
    ) -> None:
        super().__init__(message)
        self.error_class = error_class
        self.message = message
        self.backend = backend
        self.status_code = status_code
        self.classification = classification


class ModelGateway(Protocol):
    """Protocol implemented by model backends. No retry logic lives here."""

    def invoke(
        self,
        backend: ModelBackend,
        conversation: Sequence[ConversationTurn],
        *,
        deadline: Deadline | None = None,
    ) -> str:
        """Return the raw model text or raise `ModelInvocationError`."""
