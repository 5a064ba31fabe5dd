"""Supabase auth (GoTrue) and table (PostgREST) access over httpx.

All calls use the service-role key, so they bypass row-level security; the
route handlers scope every query to the verified principal themselves.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from giftperch.errors import AuthenticationError, DownstreamError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """A verified caller identity."""
    id: str
    email: Optional[str] = None


class SupabaseClient:
    """Shared base URL, service-role headers and error mapping."""

    def __init__(self, url: str, service_role_key: str, timeout: float = 10.0):
        self.url = url.rstrip("/")
        self.service_role_key = service_role_key
        self.timeout = timeout

    def _headers(self, bearer: Optional[str] = None, **extra: str) -> dict[str, str]:
        return {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {bearer or self.service_role_key}",
            **extra,
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(method, f"{self.url}{path}", **kwargs)
        except httpx.HTTPError as exc:
            raise DownstreamError(f"Supabase {method} {path} failed: {exc}", "Service unavailable") from exc

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            return resp.text or f"HTTP {resp.status_code}"
        if isinstance(data, dict):
            return str(data.get("message") or data.get("msg") or data.get("error") or resp.status_code)
        return str(data)


class SupabaseIdentity(SupabaseClient):
    """Token verification and account removal via the auth API."""

    async def verify(self, token: str) -> Principal:
        try:
            resp = await self._request("GET", "/auth/v1/user", headers=self._headers(bearer=token))
        except DownstreamError:
            logger.warning("Token verification unavailable", exc_info=True)
            raise AuthenticationError()
        if resp.status_code != 200:
            raise AuthenticationError()
        try:
            data = resp.json()
        except ValueError:
            logger.warning("Token verification returned a non-JSON body")
            raise AuthenticationError()
        if not isinstance(data, dict) or not data.get("id"):
            raise AuthenticationError()
        return Principal(id=data["id"], email=data.get("email"))

    async def delete_user(self, user_id: str) -> None:
        resp = await self._request("DELETE", f"/auth/v1/admin/users/{user_id}", headers=self._headers())
        if resp.status_code >= 400:
            raise DownstreamError(f"Auth user delete failed: {self._error_message(resp)}")


class SupabaseStore(SupabaseClient):
    """PostgREST table operations. Filters are equality matches."""

    @staticmethod
    def _filters(filters: dict[str, Any]) -> dict[str, str]:
        """Equality for scalars, ``in.(...)`` for lists."""
        params = {}
        for column, value in filters.items():
            if isinstance(value, (list, tuple, set)):
                params[column] = "in.(" + ",".join(str(v) for v in value) + ")"
            else:
                params[column] = f"eq.{value}"
        return params

    async def _checked(self, method: str, table: str, **kwargs: Any) -> httpx.Response:
        resp = await self._request(method, f"/rest/v1/{table}", **kwargs)
        if resp.status_code >= 400:
            raise DownstreamError(f"{table}: {self._error_message(resp)}")
        return resp

    @staticmethod
    def _rows(resp: httpx.Response, table: str) -> list[dict[str, Any]]:
        try:
            rows = resp.json()
        except ValueError as exc:
            raise DownstreamError(f"{table}: response was not JSON") from exc
        if not isinstance(rows, list):
            raise DownstreamError(f"{table}: expected a list of rows, got {type(rows).__name__}")
        return rows

    async def upsert(
        self,
        table: str,
        row: dict[str, Any],
        on_conflict: str = "id",
        returning: bool = False,
    ) -> Optional[dict[str, Any]]:
        """Insert or merge ``row``; with ``returning`` the stored row comes back."""
        resp = await self._checked(
            "POST", table,
            params={"on_conflict": on_conflict},
            json=row,
            headers=self._headers(
                Prefer="resolution=merge-duplicates,"
                + ("return=representation" if returning else "return=minimal"),
            ),
        )
        if not returning:
            return None
        rows = self._rows(resp, table)
        if not rows:
            raise DownstreamError(f"{table}: upsert returned no row")
        return rows[0]

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        resp = await self._checked(
            "POST", table,
            json=row,
            headers=self._headers(Prefer="return=representation"),
        )
        rows = self._rows(resp, table)
        if not rows:
            raise DownstreamError(f"{table}: insert returned no row")
        return rows[0]

    async def select(
        self,
        table: str,
        filters: dict[str, Any],
        columns: str = "*",
        order: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        params = {"select": columns, **self._filters(filters)}
        if order:
            params["order"] = order
        resp = await self._checked("GET", table, params=params, headers=self._headers())
        return self._rows(resp, table)

    async def exists(self, table: str, filters: dict[str, Any]) -> bool:
        rows = await self.select(table, filters, columns="id")
        return len(rows) > 0

    async def delete(self, table: str, filters: dict[str, Any]) -> None:
        await self._checked(
            "DELETE", table,
            params=self._filters(filters),
            headers=self._headers(Prefer="return=minimal"),
        )
