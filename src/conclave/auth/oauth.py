"""Discord OAuth2 login, session refresh/validation and logout routes.

The flow:
1. ``/api/auth/discord/login``: redirects the browser to Discord's consent
   page (``/api/auth/discord/url`` returns the same URL as JSON).
2. ``/api/auth/discord/callback``: exchanges the code for tokens, fetches
   the profile, checks guild membership (auto-inviting non-members),
   upserts the ``UserRow``, sets the session cookie and redirects to the
   role-dependent landing page.
3. ``/api/auth/refresh``: trades the stored refresh token for new tokens,
   re-syncs roles and re-issues the cookie.
4. ``/api/auth/validate`` and ``/api/auth/me``: session introspection.
5. ``/api/auth/logout``: clears the cookies.

Every failure in the browser flow ends in a redirect to
``/gateway?error=<code>``, never a raw error page.
"""

from __future__ import annotations

import logging
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from conclave.api.deps import HttpClientDep, RepoDep, SettingsDep
from conclave.auth.deps import AuthenticatedSession
from conclave.auth.permissions import landing_page, permission_level
from conclave.auth.session import (
    SESSION_COOKIE_NAME,
    SESSION_LIFETIME_SECONDS,
    SessionPayload,
    as_utc,
    check_session,
    check_session_full,
    clear_session_cookie,
    encode_session,
    new_session,
    set_session_cookie,
)
from conclave.config import Settings
from conclave.db.models import UserRow
from conclave.db.repository import Repository
from conclave.discord.client import (
    DiscordAPIError,
    DiscordConfigError,
    TokenExchangeError,
    TokenSet,
    build_authorize_url,
    exchange_code,
    fetch_user,
    refresh_access_token,
)
from conclave.discord.membership import resolve_membership

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

OAUTH_STATE_COOKIE = "discord_oauth_state"
OAUTH_STATE_MAX_AGE = 600
GATEWAY_PATH = "/gateway"


def _gateway(error: str) -> RedirectResponse:
    response = RedirectResponse(url=f"{GATEWAY_PATH}?{urlencode({'error': error})}", status_code=302)
    response.delete_cookie(OAUTH_STATE_COOKIE, path="/")
    return response


def _set_state_cookie(response: Response, state: str, settings: Settings) -> None:
    response.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        max_age=OAUTH_STATE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
        path="/",
    )


def _user_json(user: UserRow) -> dict[str, Any]:
    return {
        "id": user.id,
        "discordId": user.discord_id,
        "username": user.username,
        "avatarUrl": user.avatar_url,
        "email": user.email,
        "isServerMember": user.is_server_member,
        "roles": list(user.roles or []),
        "permissionLevel": permission_level(
            user.roles or [], is_member=user.is_server_member
        ),
    }


async def _sync_user(
    client: httpx.AsyncClient,
    settings: Settings,
    repo: Repository,
    tokens: TokenSet,
) -> UserRow:
    """Fetch profile + membership for *tokens* and upsert the user record."""
    profile = await fetch_user(client, tokens.access_token)
    outcome = await resolve_membership(client, settings, profile.id, tokens.access_token)
    membership = outcome.membership

    token_expires_at = None
    if tokens.expires_in:
        token_expires_at = datetime.now(UTC) + timedelta(seconds=tokens.expires_in)

    user, created = await repo.upsert_user(
        profile.id,
        profile.username,
        discriminator=profile.discriminator,
        avatar_url=profile.avatar_url,
        email=profile.email,
        nickname=membership.nick,
        is_server_member=membership.is_member,
        roles=membership.roles,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_expires_at=token_expires_at,
    )

    if created:
        await repo.log_sync_event(
            "user_registered",
            "success",
            {
                "discordId": profile.id,
                "username": profile.username,
                "isServerMember": membership.is_member,
                "autoInvited": outcome.invited,
            },
        )
    await repo.log_sync_event(
        "role_sync",
        "success",
        {
            "discordId": profile.id,
            "roles": list(membership.roles),
            "isServerMember": membership.is_member,
            "autoInvited": outcome.invited,
            "inviteError": outcome.invite_error,
        },
    )
    logger.info(
        "user_synced discord_id=%s created=%s member=%s invited=%s roles=%d",
        profile.id,
        created,
        membership.is_member,
        outcome.invited,
        len(membership.roles),
    )
    return user


def _session_for(user: UserRow) -> SessionPayload:
    return new_session(
        user.id,
        user.discord_id,
        user.username,
        email=user.email,
        is_server_member=user.is_server_member,
        roles=list(user.roles or []),
    )


def _issue_session(response: Response, payload: SessionPayload, settings: Settings) -> None:
    set_session_cookie(
        response,
        encode_session(payload, settings.session_secret_key),
        secure=settings.is_production,
    )


# ---- Login ----------------------------------------------------------------


@router.get("/discord/login")
async def login(settings: SettingsDep) -> RedirectResponse:
    """Redirect to the Discord OAuth2 consent page."""
    if not settings.oauth_enabled():
        logger.error("oauth_not_configured")
        return _gateway("config_error")

    state = secrets.token_urlsafe(32)
    url = build_authorize_url(settings.discord_client_id, settings.discord_redirect_uri, state)
    response = RedirectResponse(url=url, status_code=302)
    _set_state_cookie(response, state, settings)
    return response


@router.get("/discord/url")
async def login_url(settings: SettingsDep) -> JSONResponse:
    """Same as ``/discord/login`` but returns the consent URL as JSON."""
    if not settings.oauth_enabled():
        logger.error("oauth_not_configured")
        return JSONResponse(
            {"success": False, "error": "Discord login is not configured."},
            status_code=503,
        )

    state = secrets.token_urlsafe(32)
    response = JSONResponse(
        {
            "success": True,
            "authUrl": build_authorize_url(
                settings.discord_client_id, settings.discord_redirect_uri, state
            ),
            "state": state,
            "expiresIn": OAUTH_STATE_MAX_AGE,
        }
    )
    _set_state_cookie(response, state, settings)
    return response


@router.get("/discord/callback")
async def callback(
    request: Request,
    repo: RepoDep,
    settings: SettingsDep,
    client: HttpClientDep,
    code: str = "",
    state: str = "",
    error: str = "",
) -> RedirectResponse:
    """Handle the OAuth2 callback from Discord."""
    if error:
        logger.info("oauth_denied error=%s", error)
        return _gateway(error)
    if not code:
        return _gateway("no_code")
    if not settings.oauth_enabled():
        logger.error("oauth_not_configured")
        return _gateway("config_error")

    expected_state = request.cookies.get(OAUTH_STATE_COOKIE, "")
    if not state or not expected_state or not secrets.compare_digest(state, expected_state):
        logger.warning("oauth_state_mismatch")
        return _gateway("invalid_state")

    try:
        tokens = await exchange_code(
            client,
            code=code,
            client_id=settings.discord_client_id,
            client_secret=settings.discord_client_secret,
            redirect_uri=settings.discord_redirect_uri,
        )
    except TokenExchangeError as exc:
        logger.warning("oauth_token_exchange_failed status=%s body=%s", exc.status_code, exc.body[:300])
        return _gateway("token_exchange_failed")
    except (DiscordConfigError, httpx.HTTPError, ValueError):
        logger.exception("oauth_token_exchange_error")
        return _gateway("server_error")

    try:
        user = await _sync_user(client, settings, repo, tokens)
    except (DiscordAPIError, httpx.HTTPError):
        logger.exception("oauth_profile_fetch_failed")
        return _gateway("server_error")
    except Exception:
        logger.exception("oauth_callback_failed")
        return _gateway("server_error")

    destination = landing_page(user.roles or [])
    response = RedirectResponse(url=destination, status_code=302)
    _issue_session(response, _session_for(user), settings)
    response.delete_cookie(OAUTH_STATE_COOKIE, path="/")
    logger.info("login_ok discord_id=%s redirect=%s", user.discord_id, destination)
    return response


# ---- Refresh --------------------------------------------------------------


@router.post("/refresh")
async def refresh(
    request: Request,
    repo: RepoDep,
    settings: SettingsDep,
    client: HttpClientDep,
) -> JSONResponse:
    """Refresh Discord tokens from the stored refresh token and re-issue the cookie."""
    check = await check_session_full(
        request.cookies.get(SESSION_COOKIE_NAME), settings.session_secret_key, repo
    )
    if not check.valid or check.user is None:
        return JSONResponse(
            {"success": False, "error": "Not authenticated", "reason": check.reason},
            status_code=401,
        )

    if not check.user.refresh_token:
        return JSONResponse({"success": False, "error": "Refresh token required"}, status_code=400)

    try:
        tokens = await refresh_access_token(
            client,
            refresh_token=check.user.refresh_token,
            client_id=settings.discord_client_id,
            client_secret=settings.discord_client_secret,
        )
    except DiscordConfigError:
        logger.error("oauth_not_configured")
        return JSONResponse(
            {"success": False, "error": "Discord login is not configured."}, status_code=503
        )
    except (TokenExchangeError, httpx.HTTPError) as exc:
        logger.warning("token_refresh_failed user_id=%s error=%s", check.user.id, exc)
        return JSONResponse({"success": False, "error": "Failed to refresh token"}, status_code=401)

    try:
        user = await _sync_user(client, settings, repo, tokens)
    except Exception as exc:
        logger.exception("token_refresh_sync_failed user_id=%s", check.user.id)
        body: dict[str, Any] = {"success": False, "error": "Internal server error"}
        if settings.is_development:
            body["detail"] = str(exc)
        return JSONResponse(body, status_code=500)

    payload = _session_for(user)
    response = JSONResponse(
        {
            "success": True,
            "expiresAt": payload.exp,
            "expiresIn": SESSION_LIFETIME_SECONDS,
            "discordExpiresIn": tokens.expires_in,
        }
    )
    _issue_session(response, payload, settings)
    return response


@router.get("/refresh")
async def refresh_status(request: Request, settings: SettingsDep) -> dict:
    """Report whether the current session is close to expiry. Mutates nothing."""
    check = check_session(request.cookies.get(SESSION_COOKIE_NAME), settings.session_secret_key)
    if not check.valid or check.payload is None:
        return {"needsRefresh": False, "authenticated": False, "expiresIn": 0}
    return {
        "needsRefresh": check.payload.needs_refresh(),
        "authenticated": True,
        "expiresIn": check.payload.expires_in(),
    }


# ---- Validate -------------------------------------------------------------


_INVALID_MESSAGES = {
    "no_token": "No session token provided",
    "expired": "Token is expired",
    "invalid_format": "Token is invalid_format",
    "parse_error": "Token is parse_error",
    "user_not_found": "User no longer exists",
    "server_error": "Failed to validate session",
}


@router.post("/validate")
async def validate(request: Request, repo: RepoDep, settings: SettingsDep) -> JSONResponse:
    """Full validation: cookie (or ``token`` in the body), expiry, user row, permissions."""
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        try:
            body = await request.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("token"), str):
            token = body["token"]

    check = await check_session_full(token, settings.session_secret_key, repo)
    if not check.valid or check.payload is None or check.user is None:
        status_code = 500 if check.reason == "server_error" else 200
        return JSONResponse(
            {
                "valid": False,
                "reason": check.reason,
                "message": _INVALID_MESSAGES.get(check.reason, "Invalid session"),
                "user": None,
            },
            status_code=status_code,
        )

    now = int(datetime.now(UTC).timestamp())
    discord_expiry = as_utc(check.user.token_expires_at)
    discord_expires_in = int(discord_expiry.timestamp()) - now if discord_expiry else None
    payload = check.payload
    return JSONResponse(
        {
            "valid": True,
            "reason": "valid",
            "message": "Session is valid",
            "user": _user_json(check.user),
            "permissions": check.permissions.model_dump(by_alias=True) if check.permissions else None,
            "token": {
                "issuedAt": payload.iat,
                "expiresAt": payload.exp,
                "expiresIn": payload.expires_in(now),
            },
            "discordToken": {
                "valid": discord_expires_in is not None and discord_expires_in > 0,
                "expiresAt": discord_expiry.isoformat() if discord_expiry else None,
                "expiresIn": discord_expires_in,
            },
        }
    )


@router.get("/validate")
async def validate_quick(request: Request, settings: SettingsDep) -> dict:
    """Quick validation: decode and expiry only, no database round-trip."""
    check = check_session(request.cookies.get(SESSION_COOKIE_NAME), settings.session_secret_key)
    if not check.valid or check.payload is None:
        return {"valid": False, "authenticated": False, "reason": check.reason}
    return {
        "valid": True,
        "authenticated": True,
        "reason": "valid",
        "userId": check.payload.user_id,
        "discordId": check.payload.discord_id,
        "username": check.payload.username,
        "permissions": check.permissions.model_dump(by_alias=True) if check.permissions else None,
    }


@router.get("/me")
async def me(session: AuthenticatedSession) -> dict:
    """The current user and permission flags, or 401."""
    return {
        "user": _user_json(session.user) if session.user else None,
        "permissions": session.permissions.model_dump(by_alias=True) if session.permissions else None,
    }


# ---- Logout ---------------------------------------------------------------


async def _record_logout(request: Request, repo: Repository, settings: Settings) -> None:
    check = check_session(request.cookies.get(SESSION_COOKIE_NAME), settings.session_secret_key)
    if not check.valid or check.payload is None:
        return
    try:
        await repo.mark_user_logout(check.payload.user_id)
        await repo.log_sync_event(
            "user_logout",
            "success",
            {"userId": check.payload.user_id, "discordId": check.payload.discord_id},
        )
    except Exception:
        logger.exception("logout_audit_failed user_id=%s", check.payload.user_id)
        await repo.session.rollback()


def _clear_auth_cookies(response: Response) -> None:
    clear_session_cookie(response)
    response.delete_cookie(OAUTH_STATE_COOKIE, path="/")


@router.post("/logout")
async def logout(request: Request, repo: RepoDep, settings: SettingsDep) -> JSONResponse:
    """Clear the session; always succeeds."""
    await _record_logout(request, repo, settings)
    response = JSONResponse({"success": True, "message": "Logged out successfully"})
    _clear_auth_cookies(response)
    return response


@router.get("/logout")
async def logout_redirect(request: Request, repo: RepoDep, settings: SettingsDep) -> RedirectResponse:
    """Clear the session and send the browser home."""
    await _record_logout(request, repo, settings)
    response = RedirectResponse(url="/", status_code=302)
    _clear_auth_cookies(response)
    return response
