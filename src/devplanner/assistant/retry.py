"""Backend fallback chain with bounded per-backend retries."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from devplanner.assistant.backend.base import ModelGateway, ModelInvocationError
from devplanner.assistant.deadline import Deadline
from devplanner.assistant.models import (
    RATE_LIMIT_CLASSES,
    AttemptOutcome,
    ConversationTurn,
    ErrorClass,
    ModelBackend,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Read-only retry configuration shared by all commands."""

    backends: tuple[ModelBackend, ...]
    max_retries: int = 2
    base_delay_seconds: float = 3.0

    @classmethod
    def from_model_chain(
        cls,
        model_chain: Sequence[str],
        *,
        max_retries: int,
        base_delay_seconds: float,
    ) -> RetryPolicy:
        return cls(
            backends=tuple(
                ModelBackend(identifier=identifier, priority=rank)
                for rank, identifier in enumerate(model_chain)
            ),
            max_retries=max_retries,
            base_delay_seconds=base_delay_seconds,
        )

    def ordered_backends(self) -> list[ModelBackend]:
        return sorted(self.backends, key=lambda backend: backend.priority)

    def delay_for(self, attempt: int) -> float:
        """Backoff before `attempt` (0-based); the first attempt never waits."""

        if attempt <= 0:
            return 0.0
        return self.base_delay_seconds * (2 ** (attempt - 1))


@dataclass(slots=True)
class RetryResult:
    """Outcome of driving the whole backend chain for one conversation."""

    text: str | None
    attempts: list[AttemptOutcome] = field(default_factory=list)
    last_error: ModelInvocationError | None = None
    deadline_exceeded: bool = False

    @property
    def succeeded(self) -> bool:
        return self.text is not None

    @property
    def quota_exhausted(self) -> bool:
        return self.last_error is not None and self.last_error.error_class in RATE_LIMIT_CLASSES


class RetryController:
    """Drive a gateway across priority-ordered backends.

    Per-day quota errors abandon a backend immediately, per-minute ones are
    retried with exponential backoff, and any other error moves on to the next
    backend. At most `(max_retries + 1) * len(backends)` invocations happen.
    """

    def __init__(
        self,
        *,
        gateway: ModelGateway,
        policy: RetryPolicy,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.gateway = gateway
        self.policy = policy
        self._sleep = sleep

    def run(
        self,
        conversation: Sequence[ConversationTurn],
        *,
        deadline: Deadline | None = None,
    ) -> RetryResult:
        result = RetryResult(text=None)
        for backend in self.policy.ordered_backends():
            for attempt in range(self.policy.max_retries + 1):
                if attempt > 0 and not self._pause(self.policy.delay_for(attempt), deadline):
                    return self._deadline_exceeded(result)
                if deadline is not None and deadline.expired:
                    return self._deadline_exceeded(result)

                try:
                    text = self.gateway.invoke(backend, conversation, deadline=deadline)
                except ModelInvocationError as error:
                    result.last_error = error
                    result.attempts.append(
                        AttemptOutcome(
                            backend=backend,
                            attempt_number=attempt,
                            error_class=error.error_class,
                            error_message=error.message,
                        ),
                    )
                    if error.error_class is ErrorClass.RATE_LIMITED_PER_MINUTE:
                        logger.warning(
                            "Rate limited on %s (attempt %d/%d)",
                            backend.identifier,
                            attempt + 1,
                            self.policy.max_retries + 1,
                        )
                        continue
                    if error.error_class is ErrorClass.RATE_LIMITED_PER_DAY:
                        logger.warning(
                            "Daily quota exhausted for %s, trying next backend",
                            backend.identifier,
                        )
                    else:
                        logger.info(
                            "Backend %s failed with %s: %s",
                            backend.identifier,
                            error.error_class.value,
                            error.message,
                        )
                    break

                result.attempts.append(
                    AttemptOutcome(backend=backend, attempt_number=attempt, text=text),
                )
                result.text = text
                return result

        logger.error(
            "All model backends failed after %d attempts: %s",
            len(result.attempts),
            result.last_error.message if result.last_error is not None else "no backends",
        )
        return result

    def _pause(self, seconds: float, deadline: Deadline | None) -> bool:
        """Back off before a retry; False means the deadline cannot accommodate it."""

        if deadline is not None:
            remaining = deadline.remaining()
            if deadline.expired or (remaining is not None and remaining <= seconds):
                return False
        if self._sleep is not None:
            self._sleep(seconds)
        elif deadline is not None:
            return deadline.wait(seconds)
        else:
            time.sleep(seconds)
        return deadline is None or not deadline.expired

    @staticmethod
    def _deadline_exceeded(result: RetryResult) -> RetryResult:
        logger.warning("Command deadline reached after %d model attempts", len(result.attempts))
        result.deadline_exceeded = True
        return result
