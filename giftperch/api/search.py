"""Amazon product search + affiliate link routes."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from giftperch.deps import Services, get_services, read_json_body
from giftperch.errors import DownstreamError, ValidationError
from giftperch.services.affiliate import build_amazon_affiliate_url

router = APIRouter(prefix="/api", tags=["amazon"])


class SearchRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    query: Optional[str] = None
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    max_results: Optional[int] = None


@router.post("/amazon/search")
async def amazon_search(request: Request, services: Services = Depends(get_services)):
    """Search Amazon for gift products within an optional budget."""
    empty = {"products": []}
    body = await read_json_body(request, placeholder=empty)
    try:
        req = SearchRequest.model_validate(body)
    except PydanticValidationError:
        raise ValidationError("Invalid search request", empty)

    query = (req.query or "").strip()
    if not query:
        raise ValidationError("Query is required", empty)

    try:
        products = await services.product_search.search(
            query,
            budget_min=req.budget_min,
            budget_max=req.budget_max,
            max_results=req.max_results,
        )
    except Exception as exc:
        raise DownstreamError(f"Amazon search failed for {query!r}: {exc}", "Amazon search failed", empty) from exc

    return {"products": [p.model_dump(by_alias=True) for p in products]}


@router.get("/affiliate-link")
async def affiliate_link(
    product_url: Optional[str] = Query(None, alias="productUrl", max_length=2048),
    title: Optional[str] = Query(None, max_length=300),
):
    """Monetized outbound link for a gift: tagged product page or tagged search."""
    return {"url": build_amazon_affiliate_url(product_url, title)}
