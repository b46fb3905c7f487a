"""Public notification intake: one POST + health GET per notification kind."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from conclave.api.deps import HttpClientDep, RepoDep, SettingsDep
from conclave.webhooks.forms import FORMS
from conclave.webhooks.relay import WebhookRelay

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


def client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


def _require_kind(kind: str) -> None:
    if kind not in FORMS:
        raise HTTPException(status_code=404, detail=f"Unknown notification kind: {kind}")


@router.post("/{kind}")
async def submit_notification(
    kind: str,
    request: Request,
    repo: RepoDep,
    settings: SettingsDep,
    client: HttpClientDep,
) -> JSONResponse:
    """Validate a form submission and relay it to the kind's Discord channel.

    Responses:
        200: delivered and stored
        202: stored, Discord delivery failed after retries
        400: validation failed (itemised ``details``)
        429: per-IP rate limit hit (``Retry-After`` header)
        503: webhook not configured, or delivery and storage both failed
        500: unexpected error
    """
    _require_kind(kind)

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.debug("webhook_body_not_json kind=%s", kind)
        body = None

    relay = WebhookRelay(
        kind,
        settings=settings,
        client=client,
        repo=repo,
        limiter=request.app.state.rate_limiters[kind],
        sleep=request.app.state.sleep,
    )
    result = await relay.relay(body, client_ip(request))
    return JSONResponse(result.body, status_code=result.status_code, headers=result.headers)


@router.get("/{kind}")
async def notification_health(kind: str, settings: SettingsDep) -> dict:
    """Health check; ``configured`` reports whether the webhook URL is set."""
    _require_kind(kind)
    return {
        "status": "operational",
        "service": FORMS[kind].service_name,
        "timestamp": datetime.now(UTC).isoformat(),
        "configured": bool(settings.webhook_url(kind)),
    }
