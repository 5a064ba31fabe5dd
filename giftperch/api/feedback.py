"""Liked / disliked feedback on generated gift suggestions, per recipient."""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request

from giftperch.deps import (
    Services,
    get_services,
    read_json_body,
    require_owned_recipient,
    require_principal,
)
from giftperch.errors import DownstreamError, ForbiddenError, ValidationError
from giftperch.services.supabase import Principal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recipients", tags=["feedback"])

TABLE = "recipient_gift_feedback"
SUGGESTIONS_TABLE = "gift_suggestions"

PREFERENCES = ("liked", "disliked", "clear")


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _pick_suggestion(suggestions: list[Any], index: Any) -> dict[str, Any]:
    """The indexed suggestion from a run, else its first, else empty."""
    picked = None
    if isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(suggestions):
        picked = suggestions[index]
    if picked is None and suggestions:
        picked = suggestions[0]
    return picked if isinstance(picked, dict) else {}


def _feedback_idea(row: dict[str, Any], runs: dict[str, list[Any]]) -> dict[str, Any]:
    suggestion = _pick_suggestion(runs.get(row.get("suggestion_id") or "", []), row.get("suggestion_index"))
    return {
        "id": row.get("id"),
        "suggestion_id": row.get("suggestion_id") or "",
        "title": suggestion.get("title") or "Gift idea",
        "tier": suggestion.get("tier"),
        "rationale": suggestion.get("why_it_fits"),
        "estimated_price_min": _number(suggestion.get("price_min")),
        "estimated_price_max": _number(suggestion.get("price_max")),
        "product_url": suggestion.get("suggested_url"),
        "image_url": suggestion.get("image_url"),
        "preference": row.get("preference"),
        "created_at": row.get("created_at"),
    }


async def _suggestion_runs(services: Services, suggestion_ids: list[str]) -> dict[str, list[Any]]:
    if not suggestion_ids:
        return {}
    try:
        runs = await services.store.select(
            SUGGESTIONS_TABLE, {"id": suggestion_ids}, columns="id,suggestions",
        )
    except DownstreamError:
        # Ideas still render with placeholder titles
        logger.warning("Could not load suggestion runs for feedback summary", exc_info=True)
        return {}
    return {
        run["id"]: run.get("suggestions") if isinstance(run.get("suggestions"), list) else []
        for run in runs
        if run.get("id")
    }


@router.get("/{recipient_id}/feedback/summary")
async def feedback_summary(
    recipient_id: str,
    user: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
):
    """The caller's liked and disliked ideas for a recipient."""
    rid = await require_owned_recipient(recipient_id, user, services)
    try:
        rows = await services.store.select(
            TABLE,
            {"recipient_id": rid, "user_id": user.id},
            columns="id,preference,suggestion_id,suggestion_index,created_at",
        )
    except DownstreamError as exc:
        raise DownstreamError(str(exc), "Failed to load feedback") from exc

    suggestion_ids = list(dict.fromkeys(r["suggestion_id"] for r in rows if r.get("suggestion_id")))
    runs = await _suggestion_runs(services, suggestion_ids)

    liked, disliked = [], []
    for row in rows:
        if row.get("preference") == "liked":
            liked.append(_feedback_idea(row, runs))
        elif row.get("preference") == "disliked":
            disliked.append(_feedback_idea(row, runs))
    return {"liked": liked, "disliked": disliked}


@router.delete("/{recipient_id}/feedback")
async def delete_feedback(
    recipient_id: str,
    user: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
    feedback_id: Optional[str] = Query(None, alias="id"),
):
    rid = recipient_id.strip()
    if not rid:
        raise ValidationError("recipientId is required")
    if not feedback_id:
        raise ValidationError("id query param is required")

    try:
        rows = await services.store.select(
            TABLE, {"id": feedback_id}, columns="id,recipient_id,user_id",
        )
    except DownstreamError:
        rows = []
    if not rows or rows[0].get("user_id") != user.id or rows[0].get("recipient_id") != rid:
        raise ForbiddenError()

    try:
        await services.store.delete(TABLE, {"id": feedback_id, "user_id": user.id})
    except DownstreamError as exc:
        raise DownstreamError(str(exc), "Failed to remove feedback") from exc
    return {"success": True}


@router.post("/{recipient_id}/suggestions/{suggestion_id}/feedback")
async def set_feedback(
    recipient_id: str,
    suggestion_id: str,
    request: Request,
    user: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
):
    """Mark a suggestion liked or disliked, or clear the mark."""
    sid = suggestion_id.strip()
    if not recipient_id.strip() or not sid:
        raise ValidationError("recipientId and suggestionId are required")
    rid = await require_owned_recipient(recipient_id, user, services)
    try:
        owns_suggestion = await services.store.exists(
            SUGGESTIONS_TABLE, {"id": sid, "recipient_id": rid, "user_id": user.id},
        )
    except DownstreamError:
        owns_suggestion = False
    if not owns_suggestion:
        raise ForbiddenError()

    body = await read_json_body(request)
    preference = body.get("preference")
    if not isinstance(preference, str) or preference not in PREFERENCES:
        raise ValidationError("preference must be liked, disliked, or clear")

    key = {"user_id": user.id, "recipient_id": rid, "suggestion_id": sid}
    if preference == "clear":
        try:
            await services.store.delete(TABLE, key)
        except DownstreamError as exc:
            raise DownstreamError(str(exc), "Failed to clear feedback") from exc
        return {"feedback": None}

    try:
        saved = await services.store.upsert(
            TABLE,
            {**key, "preference": preference},
            on_conflict="user_id,recipient_id,suggestion_id",
            returning=True,
        )
    except DownstreamError as exc:
        raise DownstreamError(str(exc), "Failed to save feedback") from exc
    return {"feedback": {"id": saved.get("id"), "preference": saved.get("preference")}}
