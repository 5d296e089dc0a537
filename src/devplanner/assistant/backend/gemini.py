"""Gemini `generateContent` gateway over httpx."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from devplanner.assistant.backend.base import ModelInvocationError
from devplanner.assistant.deadline import Deadline
from devplanner.assistant.failure_classifier import classify_model_failure
from devplanner.assistant.models import ConversationTurn, ErrorClass, ModelBackend
from devplanner.config import DEFAULT_API_BASE_URL

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class GeminiGateway:
    """Single-call client for the Gemini REST API."""

    def __init__(
        self,
        *,
        api_key: str,
        api_base_url: str = DEFAULT_API_BASE_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._api_base_url = api_base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers={"x-goog-api-key": api_key, "Content-Type": "application/json"},
            transport=transport,
        )

    def invoke(
        self,
        backend: ModelBackend,
        conversation: Sequence[ConversationTurn],
        *,
        deadline: Deadline | None = None,
    ) -> str:
        """Send the conversation to one model and return the candidate text."""

        timeout = self._timeout_seconds
        if deadline is not None:
            if deadline.expired:
                raise ModelInvocationError(
                    ErrorClass.TRANSIENT,
                    "Deadline expired before request",
                    backend=backend.identifier,
                )
            remaining = deadline.remaining()
            if remaining is not None:
                timeout = min(timeout, remaining)

        url = f"{self._api_base_url}/models/{backend.identifier}:generateContent"
        payload = {"contents": [turn.to_provider_content() for turn in conversation]}
        try:
            response = self._client.post(url, json=payload, timeout=timeout)
        except httpx.TimeoutException as exc:
            logger.warning("Timeout calling model %s", backend.identifier)
            raise ModelInvocationError(
                ErrorClass.TRANSIENT,
                f"timeout: {exc}",
                backend=backend.identifier,
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("HTTP error calling model %s: %s", backend.identifier, exc)
            raise ModelInvocationError(
                ErrorClass.TRANSIENT,
                str(exc),
                backend=backend.identifier,
            ) from exc

        if not response.is_success:
            raise _error_from_response(backend=backend, response=response)

        try:
            body = response.json()
        except ValueError as exc:
            raise ModelInvocationError(
                ErrorClass.FATAL,
                "Model response is not valid JSON",
                backend=backend.identifier,
                status_code=response.status_code,
            ) from exc
        text = _candidate_text(body)
        if not text:
            raise ModelInvocationError(
                ErrorClass.FATAL,
                "Model response contained no candidate text",
                backend=backend.identifier,
                status_code=response.status_code,
            )
        return text

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GeminiGateway:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def _error_from_response(*, backend: ModelBackend, response: httpx.Response) -> ModelInvocationError:
    message = f"HTTP {response.status_code}"
    status = ""
    details: list[object] = []
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        error = body["error"]
        message = str(error.get("message") or message)
        status = str(error.get("status") or "")
        raw_details = error.get("details")
        if isinstance(raw_details, list):
            details = raw_details
    elif response.text:
        message = f"{message}: {response.text[:500]}"

    classification = classify_model_failure(
        status_code=response.status_code,
        message=message,
        status=status,
        details=details,
    )
    logger.debug(
        "Model call failed",
        extra=classification.to_log_details(backend=backend.identifier),
    )
    return ModelInvocationError(
        classification.error_class,
        message,
        backend=backend.identifier,
        status_code=response.status_code,
        classification=classification,
    )


def _candidate_text(body: Any) -> str:
    if not isinstance(body, dict):
        return ""
    candidates = body.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return ""
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    if not isinstance(content, dict):
        return ""
    parts = content.get("parts")
    if not isinstance(parts, list):
        return ""
    return "".join(
        str(part["text"]) for part in parts if isinstance(part, dict) and "text" in part
    )
