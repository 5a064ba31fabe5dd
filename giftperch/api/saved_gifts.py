"""Saved gift ideas per recipient.

Every operation re-checks that the recipient belongs to the caller.
"""
from __future__ import annotations

import math
import re
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request

from giftperch.deps import (
    Services,
    clean_str,
    get_services,
    read_json_body,
    require_owned_recipient,
    require_principal,
)
from giftperch.errors import DownstreamError, ValidationError
from giftperch.services.supabase import Principal

router = APIRouter(prefix="/api/recipients", tags=["saved-gifts"])

TABLE = "recipient_saved_gift_ideas"

_SUGGESTION_ID_RE = re.compile(r"^[0-9a-fA-F-]{32,36}$")


def _price(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def _suggestion_id(value: Any) -> Optional[str]:
    raw = clean_str(value)
    if raw and _SUGGESTION_ID_RE.match(raw):
        return raw
    return None


@router.get("/{recipient_id}/saved-gifts")
async def list_saved_gifts(
    recipient_id: str,
    user: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
):
    """Saved ideas for a recipient, newest first."""
    rid = await require_owned_recipient(recipient_id, user, services)
    try:
        rows = await services.store.select(
            TABLE, {"recipient_id": rid, "user_id": user.id}, order="created_at.desc",
        )
    except DownstreamError as exc:
        raise DownstreamError(str(exc), "Failed to load saved gift ideas") from exc
    return {"savedGifts": rows}


@router.post("/{recipient_id}/saved-gifts")
async def save_gift(
    recipient_id: str,
    request: Request,
    user: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
):
    rid = await require_owned_recipient(recipient_id, user, services)
    body = await read_json_body(request)

    title = clean_str(body.get("title"))
    if not title:
        raise ValidationError("title is required")

    row = {
        "user_id": user.id,
        "recipient_id": rid,
        "suggestion_id": _suggestion_id(body.get("suggestionId")),
        "title": title,
        "tier": clean_str(body.get("tier")),
        "rationale": clean_str(body.get("rationale")),
        "estimated_price_min": _price(body.get("estimated_price_min")),
        "estimated_price_max": _price(body.get("estimated_price_max")),
        "product_url": clean_str(body.get("product_url")),
        "image_url": clean_str(body.get("image_url")),
    }
    try:
        saved = await services.store.insert(TABLE, row)
    except DownstreamError as exc:
        raise DownstreamError(str(exc), "Failed to save gift idea") from exc
    return {"savedGift": saved}


@router.delete("/{recipient_id}/saved-gifts")
async def delete_saved_gift(
    recipient_id: str,
    user: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
    saved_id: Optional[str] = Query(None, alias="id"),
    suggestion_id: Optional[str] = Query(None, alias="suggestionId"),
):
    if not recipient_id.strip():
        raise ValidationError("recipientId is required")
    if not saved_id and not suggestion_id:
        raise ValidationError("id or suggestionId query param is required")
    rid = await require_owned_recipient(recipient_id, user, services)

    filters = {"user_id": user.id, "recipient_id": rid}
    if saved_id:
        filters["id"] = saved_id
    if suggestion_id:
        filters["suggestion_id"] = suggestion_id
    try:
        await services.store.delete(TABLE, filters)
    except DownstreamError as exc:
        raise DownstreamError(str(exc), "Failed to delete saved gift idea") from exc
    return {"success": True}
