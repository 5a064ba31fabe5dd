"""Shared test fixtures: fake collaborators wired onto the app."""
from __future__ import annotations

from typing import Any, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from giftperch.api.main import app
from giftperch.deps import Services
from giftperch.errors import AuthenticationError, DownstreamError
from giftperch.services.amazon_paapi import AmazonProduct
from giftperch.services.supabase import Principal

VALID_TOKEN = "good-token"
USER_ID = "user-123"
AUTH = {"Authorization": f"Bearer {VALID_TOKEN}"}


class FakeIdentity:
    def __init__(self):
        self.verified: list[str] = []
        self.deleted: list[str] = []
        self.fail_delete = False

    async def verify(self, token: str) -> Principal:
        self.verified.append(token)
        if token != VALID_TOKEN:
            raise AuthenticationError()
        return Principal(id=USER_ID, email="perch@example.com")

    async def delete_user(self, user_id: str) -> None:
        if self.fail_delete:
            raise DownstreamError("auth admin: user not found")
        self.deleted.append(user_id)


class FakeStore:
    """Records every call; ``fail_on`` makes the named operation raise."""

    def __init__(self):
        self.calls: list[tuple[str, str, Any]] = []
        self.owned_recipients: set[str] = {"recipient-1"}
        self.owned_suggestions: set[str] = {"suggestion-1"}
        self.rows: list[dict[str, Any]] = []
        self.rows_by_table: dict[str, list[dict[str, Any]]] = {}
        self.fail_on: Optional[str] = None

    def _record(self, op: str, table: str, arg: Any) -> None:
        self.calls.append((op, table, arg))
        if self.fail_on == op:
            raise DownstreamError(f"{table}: permission denied for table {table}")

    async def upsert(self, table, row, on_conflict="id", returning=False):
        self._record("upsert", table, row)
        if returning:
            return {"id": "row-1", **row}
        return None

    async def insert(self, table, row):
        self._record("insert", table, row)
        return {"id": "saved-1", **row}

    async def select(self, table, filters, columns="*", order=None):
        self._record("select", table, filters)
        return list(self.rows_by_table.get(table, self.rows))

    async def exists(self, table, filters):
        self.calls.append(("exists", table, filters))
        if self.fail_on == "exists":
            raise DownstreamError(f"{table}: timeout")
        owned = self.owned_suggestions if table == "gift_suggestions" else self.owned_recipients
        return filters.get("id") in owned and filters.get("user_id") == USER_ID

    async def delete(self, table, filters):
        self._record("delete", table, filters)


class FakeProductSearch:
    live = False

    def __init__(self):
        self.calls: list[dict[str, Any]] = []
        self.products = [
            AmazonProduct(asin="B01", title="LEGO Botanical Set", price_display="$49.99"),
            AmazonProduct(asin="B02", title="LEGO Bonsai Tree", price_display="$39.99"),
        ]
        self.error: Optional[Exception] = None

    async def search(self, query, budget_min=None, budget_max=None, max_results=None):
        self.calls.append({
            "query": query, "budget_min": budget_min,
            "budget_max": budget_max, "max_results": max_results,
        })
        if self.error:
            raise self.error
        return list(self.products)


@pytest.fixture
def services():
    svc = Services(identity=FakeIdentity(), store=FakeStore(), product_search=FakeProductSearch())
    previous = getattr(app.state, "services", None)
    app.state.services = svc
    yield svc
    app.state.services = previous


@pytest_asyncio.fixture
async def client(services):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
