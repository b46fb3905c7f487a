"""Outbound delivery to Discord incoming webhooks.

``retry_async`` is the generic bounded-retry loop (attempt count, backoff
function, retryable predicate). ``deliver_webhook`` plugs Discord's rules
into it: honour ``Retry-After`` on 429, back off exponentially on 5xx and
transport errors, give up immediately on any other 4xx.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]

MAX_ATTEMPTS = 3
_DEFAULT_RETRY_AFTER = 1.0
_TIMEOUT = 10.0


class WebhookDeliveryError(Exception):
    """Delivery failed and will not be retried further."""

    def __init__(self, message: str, *, status_code: int = 0, attempt: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.attempt = attempt


class WebhookRateLimited(WebhookDeliveryError):
    """Discord returned 429; ``retry_after`` is the requested wait in seconds."""

    def __init__(self, retry_after: float, *, attempt: int = 0) -> None:
        super().__init__(
            f"Discord webhook rate limited, retry after {retry_after}s",
            status_code=429,
            attempt=attempt,
        )
        self.retry_after = retry_after


@dataclass(frozen=True)
class DeliveryResult:
    attempt: int
    status_code: int


def exponential_backoff(attempt: int) -> float:
    """2^attempt seconds: 2s after the first failure, 4s after the second."""
    return float(2**attempt)


async def retry_async(
    operation: Callable[[int], Awaitable[T]],
    *,
    attempts: int = MAX_ATTEMPTS,
    backoff: Callable[[int], float] = exponential_backoff,
    retryable: Callable[[BaseException], bool] = lambda exc: True,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run ``operation(attempt)`` until it returns or attempts run out.

    An exception carrying a ``retry_after`` attribute overrides the backoff
    delay for that attempt. The last exception is re-raised unchanged.
    """
    if attempts < 1:
        msg = "attempts must be >= 1"
        raise ValueError(msg)

    attempt = 1
    while True:
        try:
            return await operation(attempt)
        except Exception as exc:
            if attempt >= attempts or not retryable(exc):
                raise
            delay = getattr(exc, "retry_after", None)
            if delay is None:
                delay = backoff(attempt)
            logger.info("retry_scheduled attempt=%d delay=%.1fs error=%s", attempt, delay, exc)
            await sleep(delay)
            attempt += 1


def _retry_after_seconds(resp: httpx.Response) -> float:
    raw = resp.headers.get("retry-after")
    if raw is None:
        try:
            raw = resp.json().get("retry_after")
        except ValueError:
            raw = None
    try:
        value = float(raw) if raw is not None else _DEFAULT_RETRY_AFTER
    except (TypeError, ValueError):
        value = _DEFAULT_RETRY_AFTER
    return max(0.0, value)


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, WebhookRateLimited | httpx.TransportError):
        return True
    if isinstance(exc, WebhookDeliveryError):
        return exc.status_code >= 500 or exc.status_code == 0
    return False


async def deliver_webhook(
    client: httpx.AsyncClient,
    url: str,
    payload: dict[str, Any],
    *,
    max_attempts: int = MAX_ATTEMPTS,
    sleep: Sleep = asyncio.sleep,
) -> DeliveryResult:
    """POST *payload* to a Discord incoming webhook with bounded retries.

    Returns the attempt number that succeeded. Raises WebhookDeliveryError
    once attempts are exhausted or on a non-retryable response.
    """

    async def _post(attempt: int) -> DeliveryResult:
        try:
            resp = await client.post(url, json=payload, timeout=_TIMEOUT)
        except httpx.TransportError as exc:
            logger.warning("webhook_transport_error attempt=%d error=%s", attempt, exc)
            raise WebhookDeliveryError(
                f"Discord webhook unreachable: {exc}", attempt=attempt
            ) from exc

        if resp.is_success:
            return DeliveryResult(attempt=attempt, status_code=resp.status_code)

        if resp.status_code == 429:
            retry_after = _retry_after_seconds(resp)
            logger.warning("webhook_rate_limited attempt=%d retry_after=%.1f", attempt, retry_after)
            raise WebhookRateLimited(retry_after, attempt=attempt)

        logger.warning(
            "webhook_rejected attempt=%d status=%d body=%s",
            attempt,
            resp.status_code,
            resp.text[:300],
        )
        raise WebhookDeliveryError(
            f"Discord webhook failed: {resp.status_code} - {resp.text[:300]}",
            status_code=resp.status_code,
            attempt=attempt,
        )

    return await retry_async(
        _post,
        attempts=max_attempts,
        retryable=_is_transient,
        sleep=sleep,
    )
