"""Tests for admin API authentication."""

from unittest.mock import AsyncMock

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from reservation.auth import require_admin_token, require_admin_ws


# ── Fixture: mock settings for auth tests ──────────────────────────

class FakeSettings:
    def __init__(self, admin_api_key="", debug=False):
        self.admin_api_key = admin_api_key
        self.debug = debug


# ── HTTP bearer guard ──────────────────────────────────────────────

class TestRequireAdminToken:
    async def test_rejects_no_token_when_key_set(self, monkeypatch):
        monkeypatch.setattr("reservation.auth.settings", FakeSettings(admin_api_key="secret"))
        with pytest.raises(HTTPException) as exc_info:
            await require_admin_token(credentials=None)
        assert exc_info.value.status_code == 401

    async def test_rejects_wrong_token(self, monkeypatch):
        monkeypatch.setattr("reservation.auth.settings", FakeSettings(admin_api_key="secret"))
        creds = HTTPAuthorizationCredentials(scheme="Bearer", credentials="wrong")
        with pytest.raises(HTTPException) as exc_info:
            await require_admin_token(credentials=creds)
        assert exc_info.value.status_code == 401

    async def test_allows_correct_token(self, monkeypatch):
        monkeypatch.setattr("reservation.auth.settings", FakeSettings(admin_api_key="secret"))
        creds = HTTPAuthorizationCredentials(scheme="Bearer", credentials="secret")
        await require_admin_token(credentials=creds)

    async def test_allows_no_key_debug_mode(self, monkeypatch):
        monkeypatch.setattr("reservation.auth.settings", FakeSettings(admin_api_key="", debug=True))
        await require_admin_token(credentials=None)

    async def test_rejects_no_key_production(self, monkeypatch):
        monkeypatch.setattr("reservation.auth.settings", FakeSettings(admin_api_key="", debug=False))
        with pytest.raises(HTTPException) as exc_info:
            await require_admin_token(credentials=None)
        assert exc_info.value.status_code == 403


# ── WebSocket query-token guard ────────────────────────────────────

class TestRequireAdminWs:
    async def test_valid_token(self, monkeypatch):
        monkeypatch.setattr("reservation.auth.settings", FakeSettings(admin_api_key="secret"))
        ws = AsyncMock()
        assert await require_admin_ws(ws, token="secret") is True
        ws.close.assert_not_called()

    async def test_wrong_token_closes_4001(self, monkeypatch):
        monkeypatch.setattr("reservation.auth.settings", FakeSettings(admin_api_key="secret"))
        ws = AsyncMock()
        assert await require_admin_ws(ws, token="nope") is False
        ws.close.assert_awaited_once_with(code=4001, reason="Unauthorized")

    async def test_no_key_production_closes_4003(self, monkeypatch):
        monkeypatch.setattr("reservation.auth.settings", FakeSettings())
        ws = AsyncMock()
        assert await require_admin_ws(ws, token="") is False
        assert ws.close.await_args.kwargs["code"] == 4003

    async def test_no_key_debug(self, monkeypatch):
        monkeypatch.setattr("reservation.auth.settings", FakeSettings(debug=True))
        assert await require_admin_ws(AsyncMock(), token="") is True
