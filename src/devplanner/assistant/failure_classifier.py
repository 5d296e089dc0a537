"""Deterministic model failure classification for the retry controller.

Provider-specific error shapes (HTTP status, RPC status strings, nested quota
violation lists, free-form messages) are interpreted here and nowhere else.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from devplanner.assistant.models import ErrorClass

MODEL_FAILURE_CLASSIFIER_VERSION = 1

_RATE_LIMIT_STATUS_CODE = 429
_TRANSIENT_STATUS_CODES: frozenset[int] = frozenset({408, 500, 502, 503, 504})

_PER_DAY_PATTERNS: tuple[str, ...] = (
    "per day",
    "perday",
    "daily limit",
    "daily quota",
)
_RATE_LIMIT_PATTERNS: tuple[str, ...] = (
    "resource_exhausted",
    "too many requests",
    "rate limit",
    "quota",
)
_TRANSIENT_PATTERNS: tuple[str, ...] = (
    "temporarily unavailable",
    "unavailable",
    "overloaded",
    "deadline_exceeded",
    "connection reset",
    "network error",
    "timed out",
)


@dataclass(slots=True)
class ModelFailureClassification:
    """Normalized failure classification result."""

    error_class: ErrorClass
    reason_code: str
    matched_rule: str
    matched_pattern: str | None

    def to_log_details(self, *, backend: str) -> dict[str, object]:
        """Serialize classifier diagnostics for structured logs."""

        return {
            "classifier_version": MODEL_FAILURE_CLASSIFIER_VERSION,
            "backend": backend,
            "reason_code": self.reason_code,
            "matched_rule": self.matched_rule,
            "matched_pattern": self.matched_pattern,
        }


def classify_model_failure(
    *,
    status_code: int | None,
    message: str,
    status: str = "",
    details: Sequence[object] = (),
) -> ModelFailureClassification:
    """Classify one failed provider response into the four-way taxonomy."""

    haystack = f"{status}\n{message}".lower()

    rate_limited = status_code == _RATE_LIMIT_STATUS_CODE or (
        status_code is None and _first_match(haystack, _RATE_LIMIT_PATTERNS) is not None
    )
    if rate_limited:
        quota_id = _first_per_day_quota_id(details)
        if quota_id is not None:
            return ModelFailureClassification(
                error_class=ErrorClass.RATE_LIMITED_PER_DAY,
                reason_code="rate_limited_per_day",
                matched_rule="quota_violation_per_day",
                matched_pattern=quota_id,
            )
        pattern = _first_match(haystack, _PER_DAY_PATTERNS)
        if pattern is not None:
            return ModelFailureClassification(
                error_class=ErrorClass.RATE_LIMITED_PER_DAY,
                reason_code="rate_limited_per_day",
                matched_rule="message_per_day",
                matched_pattern=pattern,
            )
        return ModelFailureClassification(
            error_class=ErrorClass.RATE_LIMITED_PER_MINUTE,
            reason_code="rate_limited_per_minute",
            matched_rule=(
                "status_code_429"
                if status_code == _RATE_LIMIT_STATUS_CODE
                else "message_rate_limit"
            ),
            matched_pattern=_first_match(haystack, _RATE_LIMIT_PATTERNS),
        )

    if status_code in _TRANSIENT_STATUS_CODES:
        return ModelFailureClassification(
            error_class=ErrorClass.TRANSIENT,
            reason_code="backend_transient",
            matched_rule="transient_status_code",
            matched_pattern=None,
        )

    # Status-bearing responses other than the ones above are request-level
    # rejections (bad request, auth, unknown model).
    pattern = _first_match(haystack, _TRANSIENT_PATTERNS)
    if pattern is not None and status_code is None:
        return ModelFailureClassification(
            error_class=ErrorClass.TRANSIENT,
            reason_code="backend_transient",
            matched_rule="generic_transient",
            matched_pattern=pattern,
        )

    return ModelFailureClassification(
        error_class=ErrorClass.FATAL,
        reason_code="backend_fatal",
        matched_rule="fallback_fatal",
        matched_pattern=None,
    )


def _first_per_day_quota_id(details: Sequence[object]) -> str | None:
    for detail in details:
        if not isinstance(detail, dict):
            continue
        violations = detail.get("violations")
        if not isinstance(violations, list):
            continue
        for violation in violations:
            if not isinstance(violation, dict):
                continue
            quota_id = violation.get("quotaId")
            if isinstance(quota_id, str) and "PerDay" in quota_id:
                return quota_id
    return None


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
