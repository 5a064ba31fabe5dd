"""Tests for /api/recipients/{recipient_id}/saved-gifts."""
from __future__ import annotations

import pytest

from tests.conftest import AUTH, USER_ID

URL = "/api/recipients/recipient-1/saved-gifts"
SUGGESTION_ID = "3f2b8c1e-6a4d-4e7b-9c2a-1d5e8f0a7b6c"


@pytest.mark.asyncio
async def test_requires_auth(client, services):
    resp = await client.get(URL)
    assert resp.status_code == 401
    assert services.store.calls == []


@pytest.mark.asyncio
async def test_foreign_recipient_forbidden(client, services):
    resp = await client.get("/api/recipients/someone-elses/saved-gifts", headers=AUTH)
    assert resp.status_code == 403
    assert resp.json() == {"error": "Forbidden"}
    assert [c[0] for c in services.store.calls] == ["exists"]


@pytest.mark.asyncio
async def test_ownership_lookup_failure_is_forbidden(client, services):
    services.store.fail_on = "exists"
    resp = await client.get(URL, headers=AUTH)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_blank_recipient_id(client, services):
    resp = await client.get("/api/recipients/%20/saved-gifts", headers=AUTH)
    assert resp.status_code == 400
    assert resp.json() == {"error": "recipientId is required"}


@pytest.mark.asyncio
async def test_list(client, services):
    services.store.rows = [{"id": "s2", "title": "Kindle"}, {"id": "s1", "title": "Socks"}]
    resp = await client.get(URL, headers=AUTH)
    assert resp.status_code == 200
    assert resp.json() == {"savedGifts": services.store.rows}
    assert ("select", "recipient_saved_gift_ideas", {"recipient_id": "recipient-1", "user_id": USER_ID}) \
        in services.store.calls


@pytest.mark.asyncio
async def test_list_failure(client, services):
    services.store.fail_on = "select"
    resp = await client.get(URL, headers=AUTH)
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to load saved gift ideas"}


@pytest.mark.asyncio
async def test_save_normalizes_fields(client, services):
    resp = await client.post(URL, headers=AUTH, json={
        "title": "  Pour-over kit ",
        "suggestionId": SUGGESTION_ID,
        "tier": " splurge ",
        "rationale": "   ",
        "estimated_price_min": 25,
        "estimated_price_max": "40",
        "product_url": "https://www.amazon.com/dp/B01",
    })
    assert resp.status_code == 200
    saved = resp.json()["savedGift"]
    assert saved["id"] == "saved-1"
    op, table, row = services.store.calls[-1]
    assert (op, table) == ("insert", "recipient_saved_gift_ideas")
    assert row == {
        "user_id": USER_ID,
        "recipient_id": "recipient-1",
        "suggestion_id": SUGGESTION_ID,
        "title": "Pour-over kit",
        "tier": "splurge",
        "rationale": None,
        "estimated_price_min": 25,
        "estimated_price_max": None,
        "product_url": "https://www.amazon.com/dp/B01",
        "image_url": None,
    }


@pytest.mark.asyncio
async def test_save_drops_malformed_suggestion_id(client, services):
    await client.post(URL, headers=AUTH, json={"title": "Mug", "suggestionId": "not-a-uuid"})
    assert services.store.calls[-1][2]["suggestion_id"] is None


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"title": "   "}, {"title": 7}])
async def test_save_requires_title(client, services, body):
    resp = await client.post(URL, headers=AUTH, json=body)
    assert resp.status_code == 400
    assert resp.json() == {"error": "title is required"}
    assert "insert" not in [c[0] for c in services.store.calls]


@pytest.mark.asyncio
async def test_save_failure(client, services):
    services.store.fail_on = "insert"
    resp = await client.post(URL, headers=AUTH, json={"title": "Mug"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to save gift idea"}


@pytest.mark.asyncio
async def test_delete_requires_selector(client, services):
    resp = await client.delete(URL, headers=AUTH)
    assert resp.status_code == 400
    assert resp.json() == {"error": "id or suggestionId query param is required"}
    assert services.store.calls == []


@pytest.mark.asyncio
async def test_delete_by_id(client, services):
    resp = await client.delete(URL, headers=AUTH, params={"id": "saved-9"})
    assert resp.status_code == 200
    assert resp.json() == {"success": True}
    assert services.store.calls[-1] == (
        "delete", "recipient_saved_gift_ideas",
        {"user_id": USER_ID, "recipient_id": "recipient-1", "id": "saved-9"},
    )


@pytest.mark.asyncio
async def test_delete_by_suggestion(client, services):
    await client.delete(URL, headers=AUTH, params={"suggestionId": SUGGESTION_ID})
    assert services.store.calls[-1][2]["suggestion_id"] == SUGGESTION_ID


@pytest.mark.asyncio
async def test_delete_foreign_recipient(client, services):
    resp = await client.delete("/api/recipients/other/saved-gifts", headers=AUTH, params={"id": "x"})
    assert resp.status_code == 403
    assert "delete" not in [c[0] for c in services.store.calls]
