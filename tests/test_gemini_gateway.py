from __future__ import annotations

import json

import allure
import httpx
import pytest

from devplanner.assistant.backend import GeminiGateway, ModelInvocationError
from devplanner.assistant.deadline import Deadline
from devplanner.assistant.models import ConversationTurn, ErrorClass, ModelBackend, TurnRole

pytestmark = [
    allure.epic("Assistant"),
    allure.feature("Gemini Gateway"),
]

BACKEND = ModelBackend(identifier="gemini-2.5-flash", priority=0)
CONVERSATION = [
    ConversationTurn(role=TurnRole.USER, text="System Instructions: be useful"),
    ConversationTurn(role=TurnRole.MODEL, text='{"action": "CHAT"}'),
    ConversationTurn(role=TurnRole.USER, text="hello"),
]


def _gateway(handler) -> GeminiGateway:
    return GeminiGateway(
        api_key="test-key",
        api_base_url="https://gemini.test/v1beta/",
        transport=httpx.MockTransport(handler),
    )


def _error_body(code: int, message: str, status: str, details: list[object] | None = None):
    return {
        "error": {
            "code": code,
            "message": message,
            "status": status,
            "details": details or [],
        },
    }


def test_successful_call_posts_contents_and_joins_parts() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["api_key"] = request.headers.get("x-goog-api-key")
        captured["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "candidates": [
                    {
                        "content": {
                            "role": "model",
                            "parts": [{"text": "Hello "}, {"text": "there"}],
                        },
                    },
                ],
            },
        )

    with _gateway(handler) as gateway:
        text = gateway.invoke(BACKEND, CONVERSATION)

    assert text == "Hello there"
    assert captured["url"] == "https://gemini.test/v1beta/models/gemini-2.5-flash:generateContent"
    assert captured["api_key"] == "test-key"
    assert captured["body"] == {
        "contents": [turn.to_provider_content() for turn in CONVERSATION],
    }


def test_429_with_daily_quota_violation_is_per_day() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            429,
            json=_error_body(
                429,
                "You exceeded your current quota.",
                "RESOURCE_EXHAUSTED",
                [{"violations": [{"quotaId": "GenerateRequestsPerDayPerProjectPerModel"}]}],
            ),
        )

    with _gateway(handler) as gateway, pytest.raises(ModelInvocationError) as error:
        gateway.invoke(BACKEND, CONVERSATION)

    assert error.value.error_class is ErrorClass.RATE_LIMITED_PER_DAY
    assert error.value.status_code == 429
    assert error.value.backend == "gemini-2.5-flash"
    assert error.value.classification is not None
    assert error.value.classification.matched_rule == "quota_violation_per_day"


def test_plain_429_is_per_minute() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            429,
            json=_error_body(429, "Resource has been exhausted.", "RESOURCE_EXHAUSTED"),
        )

    with _gateway(handler) as gateway, pytest.raises(ModelInvocationError) as error:
        gateway.invoke(BACKEND, CONVERSATION)

    assert error.value.error_class is ErrorClass.RATE_LIMITED_PER_MINUTE
    assert error.value.message == "Resource has been exhausted."


def test_503_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="upstream overloaded")

    with _gateway(handler) as gateway, pytest.raises(ModelInvocationError) as error:
        gateway.invoke(BACKEND, CONVERSATION)

    assert error.value.error_class is ErrorClass.TRANSIENT
    assert "upstream overloaded" in error.value.message


def test_400_is_fatal() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json=_error_body(400, "API key not valid.", "INVALID_ARGUMENT"),
        )

    with _gateway(handler) as gateway, pytest.raises(ModelInvocationError) as error:
        gateway.invoke(BACKEND, CONVERSATION)

    assert error.value.error_class is ErrorClass.FATAL


def test_network_failure_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with _gateway(handler) as gateway, pytest.raises(ModelInvocationError) as error:
        gateway.invoke(BACKEND, CONVERSATION)

    assert error.value.error_class is ErrorClass.TRANSIENT


def test_empty_candidates_are_fatal() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"candidates": []})

    with _gateway(handler) as gateway, pytest.raises(ModelInvocationError) as error:
        gateway.invoke(BACKEND, CONVERSATION)

    assert error.value.error_class is ErrorClass.FATAL


def test_expired_deadline_skips_the_request() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    deadline = Deadline()
    deadline.cancel()
    with _gateway(handler) as gateway, pytest.raises(ModelInvocationError) as error:
        gateway.invoke(BACKEND, CONVERSATION, deadline=deadline)

    assert error.value.error_class is ErrorClass.TRANSIENT
    assert calls == []
