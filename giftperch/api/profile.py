"""Profile and account routes. Every route acts on the verified caller only."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from giftperch.deps import Services, clean_str, get_services, read_json_body, require_principal
from giftperch.errors import DownstreamError
from giftperch.services.supabase import Principal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["profile"])

# Child tables first; cascades cover anything hanging off these.
ACCOUNT_DELETION_ORDER: list[tuple[str, str]] = [
    ("gift_guides", "user_id"),
    ("gift_suggestions", "user_id"),
    ("gift_history", "user_id"),
    ("ai_interactions", "user_id"),
    ("wishlists", "user_id"),
    ("recipient_profiles", "user_id"),
    ("user_settings", "user_id"),
    ("profiles", "id"),
]


@router.post("/profile")
async def update_profile(
    request: Request,
    user: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
):
    """Set (or clear) the caller's display name."""
    body = await read_json_body(request)
    display_name = clean_str(body.get("displayName"))

    try:
        await services.store.upsert(
            "profiles",
            {"id": user.id, "display_name": display_name},
            on_conflict="id",
        )
    except DownstreamError as exc:
        raise DownstreamError(str(exc), "Failed to update profile") from exc
    return {"success": True}


@router.post("/user/delete")
async def delete_account(
    user: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
):
    """Delete every row the caller owns, then the auth user itself."""
    try:
        for table, column in ACCOUNT_DELETION_ORDER:
            await services.store.delete(table, {column: user.id})
        await services.identity.delete_user(user.id)
    except DownstreamError as exc:
        raise DownstreamError(f"Account deletion failed for {user.id}: {exc}", "Unable to delete account") from exc

    logger.info("Deleted account %s", user.id)
    return {"success": True}
