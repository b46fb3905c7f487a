"""Staff review endpoints for relayed notification records."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from conclave.api.deps import RepoDep
from conclave.auth.deps import StaffSession
from conclave.db.models import SUBMISSION_MODELS, SubmissionMixin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])

# Never shown to reviewers.
_HIDDEN_COLUMNS = frozenset({"ip_address"})


class StatusUpdate(BaseModel):
    status: Literal["approved", "rejected"]


def _require_kind(kind: str) -> None:
    if kind not in SUBMISSION_MODELS:
        raise HTTPException(status_code=404, detail=f"Unknown submission kind: {kind}")


def _serialize(row: SubmissionMixin) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for column in row.__table__.columns:  # type: ignore[attr-defined]
        if column.key in _HIDDEN_COLUMNS:
            continue
        value = getattr(row, column.key)
        if isinstance(value, datetime):
            value = value.isoformat()
        data[to_camel(column.key)] = value
    return data


@router.get("/{kind}")
async def list_records(
    kind: str,
    repo: RepoDep,
    session: StaffSession,
    status: Literal["pending", "approved", "rejected"] | None = None,
    limit: int = Query(default=100, ge=1, le=500),
) -> dict:
    """List stored records of one kind, newest first. Staff only."""
    _require_kind(kind)
    rows = await repo.list_submissions(kind, status=status, limit=limit)
    return {"data": [_serialize(r) for r in rows], "count": len(rows)}


@router.patch("/{kind}/{correlation_id}")
async def review_record(
    kind: str,
    correlation_id: str,
    update: StatusUpdate,
    repo: RepoDep,
    session: StaffSession,
) -> dict:
    """Approve or reject a stored record. Staff only."""
    _require_kind(kind)
    reviewer = session.payload.username if session.payload else "unknown"
    row = await repo.set_submission_status(kind, correlation_id, update.status, reviewer)
    if row is None:
        raise HTTPException(status_code=404, detail="Record not found")

    await repo.log_sync_event(
        "submission_review",
        "success",
        {"kind": kind, "correlationId": correlation_id, "status": update.status, "reviewer": reviewer},
    )
    logger.info(
        "submission_reviewed kind=%s id=%s status=%s reviewer=%s",
        kind,
        correlation_id,
        update.status,
        reviewer,
    )
    return {"success": True, "data": _serialize(row)}
