"""Tests for session cookie issue/decode/validation."""

from __future__ import annotations

import pytest
from fastapi import Response
from itsdangerous import URLSafeSerializer

from conclave.auth.session import (
    REFRESH_THRESHOLD_SECONDS,
    SESSION_COOKIE_NAME,
    SESSION_LIFETIME_SECONDS,
    SESSION_SALT,
    SessionDecodeError,
    check_session,
    check_session_full,
    clear_session_cookie,
    decode_session,
    encode_session,
    new_session,
    set_session_cookie,
)
from conclave.db.repository import Repository

SECRET = "unit-test-secret"
NOW = 1_700_000_000


def _payload(**overrides):
    kwargs = {
        "email": "ann@example.com",
        "is_server_member": True,
        "roles": ["1408079849377107989", "42"],
        "now": NOW,
    }
    kwargs.update(overrides)
    return new_session("user-1", "111", "ann", **kwargs)


def _raw_token(data: object) -> str:
    return URLSafeSerializer(SECRET, salt=SESSION_SALT).dumps(data)


class TestIssue:
    def test_expiry_is_fixed_lifetime(self):
        payload = _payload()
        assert payload.iat == NOW
        assert payload.exp == NOW + SESSION_LIFETIME_SECONDS

    def test_round_trip(self):
        payload = _payload()
        decoded = decode_session(encode_session(payload, SECRET), SECRET, now=NOW + 10)
        assert decoded == payload

    def test_wire_format_is_camel_case(self):
        data = URLSafeSerializer(SECRET, salt=SESSION_SALT).loads(
            encode_session(_payload(), SECRET)
        )
        assert set(data) == {
            "userId",
            "discordId",
            "username",
            "email",
            "isServerMember",
            "roles",
            "iat",
            "exp",
        }

    def test_cookie_attributes(self):
        response = Response()
        set_session_cookie(response, "tok", secure=True)
        header = response.headers["set-cookie"]
        assert header.startswith(f"{SESSION_COOKIE_NAME}=tok")
        assert f"Max-Age={SESSION_LIFETIME_SECONDS}" in header
        assert "HttpOnly" in header
        assert "Secure" in header
        assert "SameSite=lax" in header
        assert "Path=/" in header

    def test_clear_cookie(self):
        response = Response()
        clear_session_cookie(response)
        assert 'conclave_session=""' in response.headers["set-cookie"]


class TestDecode:
    def test_expired(self):
        token = encode_session(_payload(), SECRET)
        with pytest.raises(SessionDecodeError) as excinfo:
            decode_session(token, SECRET, now=NOW + SESSION_LIFETIME_SECONDS)
        assert excinfo.value.reason == "expired"

    def test_expired_wins_over_missing_fields(self):
        token = _raw_token({"exp": NOW - 1})
        with pytest.raises(SessionDecodeError) as excinfo:
            decode_session(token, SECRET, now=NOW)
        assert excinfo.value.reason == "expired"

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c", "%%%%"])
    def test_corrupt_is_parse_error(self, token: str):
        with pytest.raises(SessionDecodeError) as excinfo:
            decode_session(token, SECRET, now=NOW)
        assert excinfo.value.reason == "parse_error"

    def test_truncated_is_parse_error(self):
        token = encode_session(_payload(), SECRET)
        with pytest.raises(SessionDecodeError) as excinfo:
            decode_session(token[:-5], SECRET, now=NOW)
        assert excinfo.value.reason == "parse_error"

    def test_wrong_secret_is_parse_error(self):
        token = encode_session(_payload(), "other-secret")
        with pytest.raises(SessionDecodeError) as excinfo:
            decode_session(token, SECRET, now=NOW)
        assert excinfo.value.reason == "parse_error"

    def test_non_object_is_parse_error(self):
        with pytest.raises(SessionDecodeError) as excinfo:
            decode_session(_raw_token(["not", "a", "dict"]), SECRET, now=NOW)
        assert excinfo.value.reason == "parse_error"

    def test_missing_identity_is_invalid_format(self):
        token = _raw_token({"username": "ann", "iat": NOW, "exp": NOW + 100})
        with pytest.raises(SessionDecodeError) as excinfo:
            decode_session(token, SECRET, now=NOW)
        assert excinfo.value.reason == "invalid_format"

    def test_wrong_shape_is_invalid_format(self):
        token = _raw_token(
            {"userId": "u", "discordId": "d", "username": "ann", "iat": NOW, "exp": "soon"}
        )
        with pytest.raises(SessionDecodeError) as excinfo:
            decode_session(token, SECRET, now=NOW)
        assert excinfo.value.reason == "invalid_format"


class TestQuickCheck:
    def test_no_token(self):
        check = check_session(None, SECRET)
        assert not check.valid
        assert check.reason == "no_token"

    def test_garbage_never_raises(self):
        check = check_session("definitely-not-a-token", SECRET)
        assert not check.valid
        assert check.reason == "parse_error"

    def test_valid_carries_permissions(self):
        token = encode_session(_payload(), SECRET)
        check = check_session(token, SECRET, now=NOW + 1)
        assert check.valid
        assert check.reason == "valid"
        assert check.payload is not None
        assert check.payload.discord_id == "111"
        assert check.permissions is not None
        assert check.permissions.is_moderator

    def test_needs_refresh_inside_threshold(self):
        payload = _payload()
        assert not payload.needs_refresh(now=NOW)
        late = payload.exp - REFRESH_THRESHOLD_SECONDS + 1
        assert payload.needs_refresh(now=late)
        assert payload.expires_in(now=payload.exp + 50) == 0


class TestFullCheck:
    async def test_user_not_found(self, repo: Repository):
        token = encode_session(_payload(now=None), SECRET)
        check = await check_session_full(token, SECRET, repo)
        assert not check.valid
        assert check.reason == "user_not_found"

    async def test_permissions_from_stored_roles(self, repo: Repository):
        user, _ = await repo.upsert_user("111", "ann", roles=["1370702703616856074"])
        payload = new_session(user.id, user.discord_id, user.username, roles=[])
        check = await check_session_full(encode_session(payload, SECRET), SECRET, repo)
        assert check.valid
        assert check.user is not None
        assert check.user.id == user.id
        assert check.permissions is not None
        assert check.permissions.is_admin

    async def test_lookup_failure_is_server_error(self, repo: Repository, monkeypatch):
        async def boom(user_id: str):
            raise RuntimeError("db down")

        monkeypatch.setattr(repo, "get_user", boom)
        token = encode_session(_payload(now=None), SECRET)
        check = await check_session_full(token, SECRET, repo)
        assert not check.valid
        assert check.reason == "server_error"
