"""Tests for webhook delivery and the bounded-retry combinator."""

from __future__ import annotations

import httpx
import pytest

from conclave.webhooks.delivery import (
    WebhookDeliveryError,
    deliver_webhook,
    exponential_backoff,
    retry_async,
)

URL = "https://discord.com/api/webhooks/1/token"


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _scripted(*responses: httpx.Response) -> tuple[httpx.AsyncClient, list[httpx.Request]]:
    queue = list(responses)
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return queue.pop(0)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler)), seen


class TestDeliverWebhook:
    async def test_first_attempt(self):
        client, seen = _scripted(httpx.Response(204))
        sleep = SleepRecorder()
        async with client:
            result = await deliver_webhook(client, URL, {"content": "hi"}, sleep=sleep)
        assert result.attempt == 1
        assert result.status_code == 204
        assert len(seen) == 1
        assert sleep.delays == []

    async def test_429_then_200_succeeds_on_second_attempt(self):
        client, seen = _scripted(
            httpx.Response(429, headers={"Retry-After": "3"}, json={"retry_after": 3}),
            httpx.Response(200, json={}),
        )
        sleep = SleepRecorder()
        async with client:
            result = await deliver_webhook(client, URL, {"content": "hi"}, sleep=sleep)
        assert result.attempt == 2
        assert len(seen) == 2
        assert sleep.delays == [3.0]

    async def test_429_retry_after_from_body(self):
        client, _ = _scripted(
            httpx.Response(429, json={"retry_after": 0.5}),
            httpx.Response(204),
        )
        sleep = SleepRecorder()
        async with client:
            await deliver_webhook(client, URL, {}, sleep=sleep)
        assert sleep.delays == [0.5]

    async def test_server_errors_back_off_exponentially_then_raise(self):
        client, seen = _scripted(
            httpx.Response(500, text="oops"),
            httpx.Response(502, text="oops"),
            httpx.Response(503, text="oops"),
        )
        sleep = SleepRecorder()
        async with client:
            with pytest.raises(WebhookDeliveryError) as excinfo:
                await deliver_webhook(client, URL, {}, sleep=sleep)
        assert len(seen) == 3
        assert sleep.delays == [2.0, 4.0]
        assert excinfo.value.attempt == 3
        assert excinfo.value.status_code == 503

    async def test_client_error_fails_immediately(self):
        client, seen = _scripted(httpx.Response(404, json={"message": "Unknown Webhook"}))
        sleep = SleepRecorder()
        async with client:
            with pytest.raises(WebhookDeliveryError) as excinfo:
                await deliver_webhook(client, URL, {}, sleep=sleep)
        assert len(seen) == 1
        assert excinfo.value.status_code == 404
        assert sleep.delays == []

    async def test_transport_error_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(204)

        sleep = SleepRecorder()
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            result = await deliver_webhook(client, URL, {}, sleep=sleep)
        assert result.attempt == 2
        assert sleep.delays == [2.0]

    async def test_payload_posted_as_json(self):
        client, seen = _scripted(httpx.Response(204))
        async with client:
            await deliver_webhook(client, URL, {"embeds": [{"title": "x"}]}, sleep=SleepRecorder())
        assert seen[0].method == "POST"
        assert seen[0].headers["content-type"] == "application/json"


class TestRetryAsync:
    async def test_non_retryable_raises_immediately(self):
        attempts = []

        async def op(attempt: int) -> str:
            attempts.append(attempt)
            raise KeyError("nope")

        with pytest.raises(KeyError):
            await retry_async(op, retryable=lambda exc: False, sleep=SleepRecorder())
        assert attempts == [1]

    async def test_returns_value(self):
        async def op(attempt: int) -> int:
            if attempt < 3:
                raise RuntimeError("flaky")
            return attempt

        sleep = SleepRecorder()
        assert await retry_async(op, attempts=3, sleep=sleep) == 3
        assert sleep.delays == [exponential_backoff(1), exponential_backoff(2)]

    async def test_attempts_must_be_positive(self):
        async def op(attempt: int) -> None:
            return None

        with pytest.raises(ValueError):
            await retry_async(op, attempts=0)
