"""
Amazon Product Advertising API (PA-API 5) product search.

Live requests are SigV4-signed SearchItems calls. Outside production, or when
credentials are missing, the search serves deterministic mock products so the
gift flows stay usable in development.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from giftperch.errors import DownstreamError
from giftperch.services.affiliate import ensure_amazon_affiliate_tag

logger = logging.getLogger(__name__)

SERVICE = "ProductAdvertisingAPI"
TARGET = "com.amazon.paapi5.v1.ProductAdvertisingAPIv1.SearchItems"
SEARCH_PATH = "/paapi5/searchitems"
CONTENT_TYPE = "application/json; charset=utf-8"
DEFAULT_REGION = "us-east-1"
DEFAULT_MAX_RESULTS = 6
MAX_ITEM_COUNT = 10

RESOURCES = [
    "Images.Primary.Medium",
    "ItemInfo.Title",
    "Offers.Listings.Price",
    "Offers.Listings.DeliveryInfo.IsPrimeEligible",
]


@dataclass(frozen=True)
class Marketplace:
    host: str
    marketplace: str


HOST_BY_REGION: dict[str, Marketplace] = {
    "us-east-1": Marketplace("webservices.amazon.com", "www.amazon.com"),
    "us-west-2": Marketplace("webservices.amazon.com", "www.amazon.com"),
    "eu-west-1": Marketplace("webservices.amazon.co.uk", "www.amazon.co.uk"),
    "eu-central-1": Marketplace("webservices.amazon.de", "www.amazon.de"),
    "ap-northeast-1": Marketplace("webservices.amazon.co.jp", "www.amazon.co.jp"),
    "ap-southeast-1": Marketplace("webservices.amazon.sg", "www.amazon.sg"),
}


class AmazonProduct(BaseModel):
    """A product card as returned to the web client (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    asin: str
    title: str
    image_url: Optional[str] = None
    detail_page_url: Optional[str] = None
    price_display: Optional[str] = None
    currency: Optional[str] = None
    prime_eligible: Optional[bool] = None


_MOCK_PRODUCTS: list[AmazonProduct] = [
    AmazonProduct(
        asin="MOCK-COFFEE-BOX", title="Coffee Sampler Box",
        image_url="/gift_placeholder_img.png", price_display="$42.00",
        currency="USD", prime_eligible=False,
    ),
    AmazonProduct(
        asin="MOCK-CANDLE", title="Hand-Poured Candle",
        image_url="/gift_placeholder_img.png", price_display="$28.50",
        currency="USD", prime_eligible=False,
    ),
    AmazonProduct(
        asin="MOCK-TEA-SET", title="Loose Leaf Tea Set",
        image_url="/gift_placeholder_img.png", price_display="$65.00",
        currency="USD", prime_eligible=False,
    ),
]


def build_mock_products(query: str) -> list[AmazonProduct]:
    prefix = f"{query} - " if query else ""
    return [
        product.model_copy(update={
            "title": f"{prefix}{product.title}",
            "asin": f"{product.asin}-{index}",
        })
        for index, product in enumerate(_MOCK_PRODUCTS)
    ]


def build_request_body(
    query: str,
    partner_tag: str,
    marketplace: str,
    budget_min: Optional[float] = None,
    budget_max: Optional[float] = None,
    max_results: int = DEFAULT_MAX_RESULTS,
) -> dict[str, Any]:
    """SearchItems payload. Budgets are dollars; PA-API wants cents."""
    body: dict[str, Any] = {
        "Keywords": query,
        "SearchIndex": "All",
        "PartnerTag": partner_tag,
        "PartnerType": "Associates",
        "Marketplace": marketplace,
        "ItemCount": min(max(max_results, 1), MAX_ITEM_COUNT),
        "Resources": RESOURCES,
    }
    if budget_min is not None:
        body["MinPrice"] = max(round(budget_min * 100), 0)
    if budget_max is not None:
        body["MaxPrice"] = max(round(budget_max * 100), 0)
    return body


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def map_item(item: dict[str, Any], partner_tag: Optional[str] = None) -> Optional[AmazonProduct]:
    """Convert one PA-API item to a product card; None when it has no ASIN."""
    if not isinstance(item, dict) or not item.get("ASIN"):
        return None
    title_info = (item.get("ItemInfo") or {}).get("Title") or {}
    primary = (item.get("Images") or {}).get("Primary") or {}
    listings = (item.get("Offers") or {}).get("Listings") or []
    listing = listings[0] if listings else {}
    price = listing.get("Price") or {}
    delivery = listing.get("DeliveryInfo") or {}

    return AmazonProduct(
        asin=item["ASIN"],
        title=_first(title_info.get("DisplayValue"), title_info.get("DisplayName"), "Amazon gift idea"),
        image_url=_first(
            (primary.get("Medium") or {}).get("URL"),
            (primary.get("Large") or {}).get("URL"),
            (primary.get("Small") or {}).get("URL"),
        ),
        detail_page_url=ensure_amazon_affiliate_tag(item.get("DetailPageURL"), partner_tag),
        price_display=price.get("DisplayAmount"),
        currency=price.get("Currency"),
        prime_eligible=delivery.get("IsPrimeEligible"),
    )


# ── SigV4 ────────────────────────────────────────────────────────────────────

def _sha256(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def signing_key(secret_key: str, date_stamp: str, region: str, service: str = SERVICE) -> bytes:
    k_date = _hmac(("AWS4" + secret_key).encode("utf-8"), date_stamp)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, "aws4_request")


def sign_request(
    body: str,
    host: str,
    region: str,
    access_key: str,
    secret_key: str,
    now: Optional[datetime] = None,
) -> dict[str, str]:
    """Headers for a SigV4-signed SearchItems POST."""
    now = now or datetime.now(timezone.utc)
    amz_date = now.strftime("%Y%m%dT%H%M%SZ")
    date_stamp = amz_date[:8]

    canonical_headers = (
        f"content-type:{CONTENT_TYPE}\n"
        f"host:{host}\n"
        f"x-amz-date:{amz_date}\n"
        f"x-amz-target:{TARGET}\n"
    )
    signed_headers = "content-type;host;x-amz-date;x-amz-target"
    canonical_request = "\n".join([
        "POST", SEARCH_PATH, "", canonical_headers, signed_headers, _sha256(body),
    ])
    scope = f"{date_stamp}/{region}/{SERVICE}/aws4_request"
    string_to_sign = "\n".join([
        "AWS4-HMAC-SHA256", amz_date, scope, _sha256(canonical_request),
    ])
    signature = hmac.new(
        signing_key(secret_key, date_stamp, region),
        string_to_sign.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()

    return {
        "Content-Type": CONTENT_TYPE,
        "X-Amz-Date": amz_date,
        "X-Amz-Target": TARGET,
        "Authorization": (
            f"AWS4-HMAC-SHA256 Credential={access_key}/{scope}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        ),
    }


# ── Search client ────────────────────────────────────────────────────────────

class AmazonProductSearch:
    """Product search against PA-API 5, degrading to mock products."""

    def __init__(
        self,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        region: Optional[str] = None,
        partner_tag: str = "giftperch-20",
        production: bool = False,
        timeout: float = 10.0,
    ):
        self.access_key = access_key
        self.secret_key = secret_key
        self.region = region
        self.partner_tag = partner_tag
        self.production = production
        self.timeout = timeout

    @property
    def live(self) -> bool:
        return bool(self.production and self.access_key and self.secret_key and self.region)

    async def search(
        self,
        query: str,
        budget_min: Optional[float] = None,
        budget_max: Optional[float] = None,
        max_results: Optional[int] = None,
    ) -> list[AmazonProduct]:
        query = (query or "").strip()
        if not query:
            return []
        if not self.live:
            return build_mock_products(query)

        config = HOST_BY_REGION.get(self.region, HOST_BY_REGION[DEFAULT_REGION])
        body = build_request_body(
            query,
            partner_tag=self.partner_tag,
            marketplace=config.marketplace,
            budget_min=budget_min,
            budget_max=budget_max,
            max_results=max_results if max_results is not None else DEFAULT_MAX_RESULTS,
        )
        try:
            response = await self._signed_request(body, host=config.host)
        except DownstreamError:
            logger.warning("Amazon search failed for %r, serving mock products", query, exc_info=True)
            return build_mock_products(query)

        items = (response.get("ItemsResult") or {}).get("Items") or []
        products = [p for p in (map_item(item, self.partner_tag) for item in items) if p is not None]
        return products or build_mock_products(query)

    async def _signed_request(self, body: dict[str, Any], host: str) -> dict[str, Any]:
        payload = json.dumps(body)
        headers = sign_request(
            payload, host=host, region=self.region,
            access_key=self.access_key, secret_key=self.secret_key,
        )
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(f"https://{host}{SEARCH_PATH}", content=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise DownstreamError(f"PA-API transport error: {exc}", "Amazon search failed") from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise DownstreamError("Unable to parse PA-API response JSON", "Amazon search failed") from exc

        errors = data.get("Errors") if isinstance(data, dict) else None
        if resp.status_code >= 400 or errors or not isinstance(data, dict):
            detail = (errors or [{}])[0].get("Message") or resp.status_code
            raise DownstreamError(f"PA-API error: {detail}", "Amazon search failed")
        return data
