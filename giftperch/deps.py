"""Composition root and FastAPI dependencies shared by the route modules."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config.settings import Settings
from giftperch.errors import (
    AuthenticationError,
    DownstreamError,
    ForbiddenError,
    MissingContextError,
    ValidationError,
)
from giftperch.services.affiliate import resolve_partner_tag
from giftperch.services.amazon_paapi import AmazonProductSearch
from giftperch.services.supabase import Principal, SupabaseIdentity, SupabaseStore


@dataclass
class Services:
    """External collaborators, built once per process."""
    identity: SupabaseIdentity
    store: SupabaseStore
    product_search: AmazonProductSearch


def build_services(settings: Settings) -> Services:
    supabase_url = settings.SUPABASE_URL or ""
    service_key = settings.SUPABASE_SERVICE_ROLE_KEY or ""
    timeout = settings.HTTP_TIMEOUT_SECONDS
    return Services(
        identity=SupabaseIdentity(supabase_url, service_key, timeout=timeout),
        store=SupabaseStore(supabase_url, service_key, timeout=timeout),
        product_search=AmazonProductSearch(
            access_key=settings.AMAZON_PA_ACCESS_KEY,
            secret_key=settings.AMAZON_PA_SECRET_KEY,
            region=settings.AMAZON_PA_REGION,
            partner_tag=resolve_partner_tag(),
            production=settings.is_production(),
            timeout=timeout,
        ),
    )


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise MissingContextError("Services not wired; the app lifespan did not run")
    return services


# ---- Auth ----

_bearer = HTTPBearer(auto_error=False)


async def require_principal(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    services: Services = Depends(get_services),
) -> Principal:
    """Verified caller, or 401 before any handler work happens."""
    if not creds or not creds.credentials:
        raise AuthenticationError()
    return await services.identity.verify(creds.credentials)


async def require_owned_recipient(recipient_id: str, user: Principal, services: Services) -> str:
    """Trimmed recipient ID after checking it belongs to ``user``.

    The store runs with the service-role key, so ownership is enforced here.
    A failed lookup counts as not owned.
    """
    trimmed = recipient_id.strip()
    if not trimmed:
        raise ValidationError("recipientId is required")
    try:
        owns = await services.store.exists("recipient_profiles", {"id": trimmed, "user_id": user.id})
    except DownstreamError:
        owns = False
    if not owns:
        raise ForbiddenError()
    return trimmed


# ---- Request bodies ----

async def read_json_body(request: Request, placeholder: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """Parse the body as a JSON object or raise a 400 carrying ``placeholder``."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON body", placeholder)
    if not isinstance(body, dict):
        raise ValidationError("Invalid JSON body", placeholder)
    return body


def clean_str(value: Any) -> Optional[str]:
    """Trimmed string, or None for non-strings and blanks."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
