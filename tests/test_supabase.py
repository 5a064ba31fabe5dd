"""Tests for the Supabase auth and PostgREST clients."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from giftperch.errors import AuthenticationError, DownstreamError
from giftperch.services.supabase import Principal, SupabaseIdentity, SupabaseStore

URL = "https://proj.supabase.co"


def _response(status_code=200, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json = MagicMock(return_value=payload)
    resp.text = ""
    return resp


def _mock_client(response=None, error=None):
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    if error:
        mock_client.request = AsyncMock(side_effect=error)
    else:
        mock_client.request = AsyncMock(return_value=response)
    return mock_client


# ── Identity ────────────────────────────────────────────────────────────────

class TestVerify:
    @pytest.mark.asyncio
    async def test_valid_token(self):
        mock_client = _mock_client(_response(200, {"id": "u1", "email": "a@b.co"}))
        with patch("httpx.AsyncClient", return_value=mock_client):
            principal = await SupabaseIdentity(URL + "/", "service").verify("user-jwt")
        assert principal == Principal(id="u1", email="a@b.co")
        args, kwargs = mock_client.request.call_args
        assert args == ("GET", f"{URL}/auth/v1/user")
        assert kwargs["headers"]["Authorization"] == "Bearer user-jwt"
        assert kwargs["headers"]["apikey"] == "service"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("resp", [_response(401, {"msg": "invalid JWT"}), _response(200, {})])
    async def test_rejected(self, resp):
        with patch("httpx.AsyncClient", return_value=_mock_client(resp)):
            with pytest.raises(AuthenticationError):
                await SupabaseIdentity(URL, "service").verify("bad")

    @pytest.mark.asyncio
    async def test_transport_failure_is_unauthorized(self):
        with patch("httpx.AsyncClient", return_value=_mock_client(error=httpx.ConnectError("down"))):
            with pytest.raises(AuthenticationError):
                await SupabaseIdentity(URL, "service").verify("tok")

    @pytest.mark.asyncio
    async def test_non_json_body_is_unauthorized(self):
        resp = httpx.Response(200, text="<html>maintenance</html>")
        with patch("httpx.AsyncClient", return_value=_mock_client(resp)):
            with pytest.raises(AuthenticationError):
                await SupabaseIdentity(URL, "service").verify("tok")

    @pytest.mark.asyncio
    async def test_delete_user_failure(self):
        with patch("httpx.AsyncClient", return_value=_mock_client(_response(404, {"msg": "User not found"}))):
            with pytest.raises(DownstreamError, match="User not found"):
                await SupabaseIdentity(URL, "service").delete_user("u1")


# ── Store ───────────────────────────────────────────────────────────────────

class TestStore:
    @pytest.mark.asyncio
    async def test_upsert(self):
        mock_client = _mock_client(_response(201))
        with patch("httpx.AsyncClient", return_value=mock_client):
            await SupabaseStore(URL, "service").upsert("profiles", {"id": "u1", "display_name": None})
        args, kwargs = mock_client.request.call_args
        assert args == ("POST", f"{URL}/rest/v1/profiles")
        assert kwargs["params"] == {"on_conflict": "id"}
        assert kwargs["json"] == {"id": "u1", "display_name": None}
        assert "merge-duplicates" in kwargs["headers"]["Prefer"]

    @pytest.mark.asyncio
    async def test_select_filters_and_order(self):
        mock_client = _mock_client(_response(200, [{"id": "s1"}]))
        with patch("httpx.AsyncClient", return_value=mock_client):
            rows = await SupabaseStore(URL, "service").select(
                "recipient_saved_gift_ideas", {"user_id": "u1"}, order="created_at.desc",
            )
        assert rows == [{"id": "s1"}]
        params = mock_client.request.call_args.kwargs["params"]
        assert params == {"select": "*", "user_id": "eq.u1", "order": "created_at.desc"}

    @pytest.mark.asyncio
    async def test_exists(self):
        with patch("httpx.AsyncClient", return_value=_mock_client(_response(200, []))):
            assert await SupabaseStore(URL, "service").exists("recipient_profiles", {"id": "r1"}) is False

    @pytest.mark.asyncio
    async def test_insert_returns_row(self):
        with patch("httpx.AsyncClient", return_value=_mock_client(_response(201, [{"id": "s1", "title": "Mug"}]))):
            row = await SupabaseStore(URL, "service").insert("t", {"title": "Mug"})
        assert row == {"id": "s1", "title": "Mug"}

    @pytest.mark.asyncio
    async def test_error_carries_upstream_message(self):
        resp = _response(403, {"message": "permission denied for table profiles"})
        with patch("httpx.AsyncClient", return_value=_mock_client(resp)):
            with pytest.raises(DownstreamError, match="permission denied"):
                await SupabaseStore(URL, "service").delete("profiles", {"id": "u1"})

    @pytest.mark.asyncio
    async def test_transport_error(self):
        with patch("httpx.AsyncClient", return_value=_mock_client(error=httpx.ReadTimeout("slow"))):
            with pytest.raises(DownstreamError):
                await SupabaseStore(URL, "service").upsert("profiles", {"id": "u1"})

    @pytest.mark.asyncio
    async def test_select_list_filter(self):
        mock_client = _mock_client(_response(200, []))
        with patch("httpx.AsyncClient", return_value=mock_client):
            await SupabaseStore(URL, "service").select(
                "gift_suggestions", {"id": ["s1", "s2"]}, columns="id,suggestions",
            )
        params = mock_client.request.call_args.kwargs["params"]
        assert params == {"select": "id,suggestions", "id": "in.(s1,s2)"}

    @pytest.mark.asyncio
    async def test_upsert_returning_row(self):
        mock_client = _mock_client(_response(201, [{"id": "f1", "preference": "liked"}]))
        with patch("httpx.AsyncClient", return_value=mock_client):
            row = await SupabaseStore(URL, "service").upsert(
                "recipient_gift_feedback", {"preference": "liked"},
                on_conflict="user_id,recipient_id,suggestion_id", returning=True,
            )
        assert row == {"id": "f1", "preference": "liked"}
        assert "return=representation" in mock_client.request.call_args.kwargs["headers"]["Prefer"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,args", [
        ("select", ("recipient_saved_gift_ideas", {"user_id": "u1"})),
        ("insert", ("recipient_saved_gift_ideas", {"title": "Mug"})),
    ])
    async def test_non_json_body_is_downstream_error(self, method, args):
        resp = httpx.Response(200, text="<html>maintenance</html>")
        with patch("httpx.AsyncClient", return_value=_mock_client(resp)):
            with pytest.raises(DownstreamError, match="not JSON"):
                await getattr(SupabaseStore(URL, "service"), method)(*args)
