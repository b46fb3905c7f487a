"""Webhook relay pipeline: rate limit → validate → deliver → persist → audit.

The relay never raises to its caller. Every path ends in a ``RelayResult``
the route turns into a JSON response, and every path except rate limiting
leaves one row in the sync log.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx
from pydantic import ValidationError

from conclave.config import Settings
from conclave.db.repository import Repository
from conclave.discord.embeds import build_notification_message
from conclave.webhooks.delivery import Sleep, WebhookDeliveryError, deliver_webhook
from conclave.webhooks.forms import FORMS, NotificationForm, generate_correlation_id
from conclave.webhooks.ratelimit import RateLimiter

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR = (
    "An unexpected error occurred. Please try again or contact us directly on Discord."
)
QUEUED_MESSAGE = (
    "Your submission was received and saved. Staff will be notified shortly."
)
DELIVERY_FAILED_MESSAGE = (
    "We could not deliver your submission right now. Please try again later."
)

# Audit event_type per notification kind.
AUDIT_EVENT_TYPES = {
    "contact": "contact_form",
    "appeals": "appeal",
    "submissions": "content_submission",
    "complaints": "complaint",
    "applications": "staff_application",
}


@dataclass(frozen=True)
class RelayResult:
    status_code: int
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)


def _describe_validation_error(exc: ValidationError) -> list[str]:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()))
        problems.append(f"{location}: {err.get('msg', 'invalid value')}" if location else err["msg"])
    return problems


class WebhookRelay:
    """Relays one notification kind's submissions to its Discord channel."""

    def __init__(
        self,
        kind: str,
        *,
        settings: Settings,
        client: httpx.AsyncClient,
        repo: Repository,
        limiter: RateLimiter,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if kind not in FORMS:
            msg = f"Unknown notification kind: {kind!r}"
            raise ValueError(msg)
        self.kind = kind
        self.form_cls: type[NotificationForm] = FORMS[kind]
        self.settings = settings
        self.client = client
        self.repo = repo
        self.limiter = limiter
        self.sleep = sleep

    @property
    def audit_event_type(self) -> str:
        return AUDIT_EVENT_TYPES[self.kind]

    async def relay(self, body: Any, client_ip: str) -> RelayResult:
        decision = self.limiter.allow(client_ip)
        if not decision.allowed:
            logger.info(
                "webhook_rate_limited kind=%s ip=%s retry_after=%d",
                self.kind,
                client_ip,
                decision.retry_after,
            )
            return RelayResult(
                429,
                {
                    "success": False,
                    "error": self.form_cls.rate_limit_message,
                    "retryAfter": decision.retry_after,
                },
                {"Retry-After": str(decision.retry_after)},
            )

        try:
            return await self._process(body, client_ip)
        except Exception as exc:
            logger.exception("webhook_relay_error kind=%s", self.kind)
            await self._reset_session()
            await self._audit("error", {"ip": client_ip}, error_message=str(exc))
            payload: dict[str, Any] = {"success": False, "error": UNEXPECTED_ERROR}
            if self.settings.is_development:
                payload["detail"] = str(exc)
            return RelayResult(500, payload)

    async def _process(self, body: Any, client_ip: str) -> RelayResult:
        form, problems = self._parse(body)
        if form is None or problems:
            logger.info("webhook_validation_failed kind=%s problems=%d", self.kind, len(problems))
            await self._audit("validation_failed", {"errors": problems, "ip": client_ip})
            return RelayResult(
                400,
                {"success": False, "error": "Validation failed", "details": problems},
            )

        url = self.settings.webhook_url(self.kind)
        if not url:
            logger.error("webhook_not_configured kind=%s", self.kind)
            await self._audit(
                "failed",
                {"ip": client_ip},
                error_message="Webhook URL not configured",
            )
            return RelayResult(503, {"success": False, "error": form.unavailable_message})

        correlation_id = generate_correlation_id(form.id_prefix)
        message = build_notification_message(
            form, correlation_id, site_url=self.settings.site_url
        )

        try:
            delivery = await deliver_webhook(self.client, url, message, sleep=self.sleep)
        except WebhookDeliveryError as exc:
            return await self._fallback(form, correlation_id, client_ip, exc)

        stored = await self._store(form, correlation_id, client_ip, delivered=True)
        await self._audit(
            "success",
            {
                **form.audit_details(),
                form.id_field: correlation_id,
                "attempt": delivery.attempt,
                "stored": stored,
                "ip": client_ip,
            },
        )
        logger.info(
            "webhook_delivered kind=%s id=%s attempt=%d",
            self.kind,
            correlation_id,
            delivery.attempt,
        )
        return RelayResult(
            200,
            {
                "success": True,
                "message": form.success_message,
                form.id_field: correlation_id,
                "attempt": delivery.attempt,
            },
        )

    def _parse(self, body: Any) -> tuple[NotificationForm | None, list[str]]:
        if not isinstance(body, dict):
            return None, ["Request body must be a JSON object"]
        try:
            form = self.form_cls.model_validate(body)
        except ValidationError as exc:
            return None, _describe_validation_error(exc)
        return form, form.problems()

    async def _fallback(
        self,
        form: NotificationForm,
        correlation_id: str,
        client_ip: str,
        exc: WebhookDeliveryError,
    ) -> RelayResult:
        """Delivery gave up: keep the record so staff can still see it."""
        logger.error(
            "webhook_delivery_failed kind=%s id=%s attempt=%d status=%d",
            self.kind,
            correlation_id,
            exc.attempt,
            exc.status_code,
        )
        stored = await self._store(form, correlation_id, client_ip, delivered=False)
        await self._audit(
            "failed",
            {
                **form.audit_details(),
                form.id_field: correlation_id,
                "attempt": exc.attempt,
                "stored": stored,
                "ip": client_ip,
            },
            error_message=str(exc),
        )
        if stored:
            return RelayResult(
                202,
                {
                    "success": True,
                    "delivered": False,
                    "message": QUEUED_MESSAGE,
                    form.id_field: correlation_id,
                },
            )

        payload: dict[str, Any] = {"success": False, "error": DELIVERY_FAILED_MESSAGE}
        if self.settings.is_development:
            payload["detail"] = str(exc)
        return RelayResult(503, payload)

    async def _store(
        self,
        form: NotificationForm,
        correlation_id: str,
        client_ip: str,
        *,
        delivered: bool,
    ) -> bool:
        try:
            await self.repo.store_submission(
                self.kind,
                correlation_id,
                form.record_fields(),
                ip_address=client_ip,
                delivered=delivered,
            )
            # The record must survive a rollback after a failed audit write.
            await self.repo.session.commit()
        except Exception:
            logger.exception("submission_store_failed kind=%s id=%s", self.kind, correlation_id)
            await self._reset_session()
            return False
        return True

    async def _audit(
        self,
        status: str,
        details: dict[str, Any] | None = None,
        *,
        error_message: str | None = None,
    ) -> None:
        """Append to the sync log. Failures here are logged, never raised."""
        entry = dict(details or {})
        entry.setdefault("timestamp", datetime.now(UTC).isoformat())
        try:
            await self.repo.log_sync_event(
                self.audit_event_type, status, entry, error_message=error_message
            )
        except Exception:
            logger.exception("audit_log_failed kind=%s status=%s", self.kind, status)
            await self._reset_session()

    async def _reset_session(self) -> None:
        try:
            await self.repo.session.rollback()
        except Exception:
            logger.exception("session_rollback_failed kind=%s", self.kind)
