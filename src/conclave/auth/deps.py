"""FastAPI dependencies for authentication: resolving the session cookie.

``get_session_check`` does the full check (cookie → payload → user row →
permissions). ``require_session`` and ``require_staff`` turn a failed check
into 401/403 so staff-only routes only ever see a valid session.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request

from conclave.api.deps import RepoDep
from conclave.auth.session import SESSION_COOKIE_NAME, SessionCheck, check_session_full
from conclave.config import Settings

logger = logging.getLogger(__name__)


async def get_session_check(request: Request, repo: RepoDep) -> SessionCheck:
    """Validate the session cookie against the database. Never raises."""
    settings: Settings = request.app.state.settings
    token = request.cookies.get(SESSION_COOKIE_NAME)
    return await check_session_full(token, settings.session_secret_key, repo)


SessionCheckDep = Annotated[SessionCheck, Depends(get_session_check)]


async def require_session(check: SessionCheckDep) -> SessionCheck:
    if not check.valid:
        raise HTTPException(
            status_code=401,
            detail=f"Authentication required ({check.reason}). Please log in via Discord.",
        )
    return check


async def require_staff(
    check: Annotated[SessionCheck, Depends(require_session)],
) -> SessionCheck:
    """Gate staff-only routes on the resolved permission flags."""
    if check.permissions is None or not check.permissions.is_staff:
        user_id = check.payload.user_id if check.payload else "?"
        logger.info("staff_access_denied user_id=%s", user_id)
        raise HTTPException(status_code=403, detail="Staff access required.")
    return check


AuthenticatedSession = Annotated[SessionCheck, Depends(require_session)]
StaffSession = Annotated[SessionCheck, Depends(require_staff)]
