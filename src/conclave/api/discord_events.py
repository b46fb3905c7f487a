"""Inbound bot-event webhook: ``/api/webhooks/discord``.

Registered before the notification intake router so the literal path wins
over ``/api/webhooks/{kind}``.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from conclave.api.deps import RepoDep, SettingsDep
from conclave.discord.events import (
    BotEvent,
    EventPayloadError,
    dispatch_event,
    timestamp_fresh,
    verify_signature,
)
from conclave.webhooks.relay import UNEXPECTED_ERROR

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


@router.post("/discord")
async def receive_bot_event(request: Request, repo: RepoDep, settings: SettingsDep) -> JSONResponse:
    """Apply one bot event to the user records and audit log.

    With an events secret configured, ``X-Signature`` and ``X-Timestamp``
    are mandatory and must verify. Without one, unsigned events are
    accepted; a supplied timestamp is still checked for freshness.
    """
    signature = request.headers.get("x-signature", "")
    timestamp = request.headers.get("x-timestamp", "")
    body = await request.body()

    secret = settings.events_secret()
    if secret and not (
        signature and timestamp and verify_signature(secret, signature, timestamp, body)
    ):
        logger.warning("bot_event_bad_signature signed=%s", bool(signature and timestamp))
        return JSONResponse({"success": False, "error": "Invalid signature"}, status_code=401)

    if timestamp and not timestamp_fresh(timestamp):
        logger.warning("bot_event_expired timestamp=%s", timestamp)
        return JSONResponse({"success": False, "error": "Request expired"}, status_code=401)

    try:
        raw = json.loads(body)
        if not isinstance(raw, dict):
            msg = "event body must be a JSON object"
            raise ValueError(msg)
        event = BotEvent.model_validate(raw)
    except (ValueError, ValidationError) as exc:
        logger.info("bot_event_invalid error=%s", exc)
        return JSONResponse({"success": False, "error": "Invalid event payload"}, status_code=400)

    try:
        result = await dispatch_event(repo, event, raw)
    except EventPayloadError as exc:
        logger.info("bot_event_invalid error=%s", exc)
        return JSONResponse({"success": False, "error": str(exc)}, status_code=400)
    except Exception as exc:
        logger.exception("bot_event_failed event_type=%s", event.event_type)
        await repo.session.rollback()
        payload = {"success": False, "error": UNEXPECTED_ERROR}
        if settings.is_development:
            payload["detail"] = str(exc)
        return JSONResponse(payload, status_code=500)
    return JSONResponse(result)


@router.get("/discord")
async def bot_event_health(repo: RepoDep) -> dict:
    """Health check with the time of the most recent sync-log entry."""
    recent = await repo.get_recent_sync_events(limit=1)
    last_sync = recent[0].synced_at.isoformat() if recent else None
    return {
        "status": "operational",
        "service": "Discord Events Webhook",
        "timestamp": datetime.now(UTC).isoformat(),
        "lastSync": last_sync,
    }
