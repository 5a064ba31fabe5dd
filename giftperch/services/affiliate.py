"""
Amazon Associates link builder for GiftPerch.

Every outbound product link the app renders goes through
``build_amazon_affiliate_url``: a recognizable Amazon URL keeps its path and
query and gets our partner tag; anything else becomes a tagged search for the
gift's title.
"""
from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import quote, unquote_plus, urlencode, urlsplit, urlunsplit

from config.settings import settings

logger = logging.getLogger(__name__)

# ── Affiliate Tags & Config ──────────────────────────────────────────────────

AFFILIATE_FALLBACK_TAG = "giftperch-20"
AMAZON_SEARCH_BASE = "https://www.amazon.com/s"
FALLBACK_TITLE = "gift ideas"

# Loose on purpose: matches amazon.com, amazon.co.uk, smile.amazon.de, and
# anything else that happens to contain the marker.
_AMAZON_MARKER = "amazon."

# encodeURIComponent's unreserved set, so search links match the web client's
_URI_COMPONENT_SAFE = "-_.!~*'()"

# Not allowed anywhere in the authority
_SPACE_OR_CONTROL = re.compile(r"[\x00-\x20\x7f]")

# Reserved characters and existing escapes pass through; spaces, controls and
# non-ASCII are percent-encoded the way browsers serialize them
_URL_SAFE = "/:@!$&'()*+,;=?%[]~"


def _encode(value: str) -> str:
    return quote(value, safe=_URL_SAFE)


_warned_missing_tag = False


def resolve_partner_tag() -> str:
    """Configured partner tag, or the fallback tag.

    Outside production, falling back logs a warning once per process.
    """
    global _warned_missing_tag

    tag = settings.AMAZON_PARTNER_TAG or AFFILIATE_FALLBACK_TAG
    if (
        tag == AFFILIATE_FALLBACK_TAG
        and not settings.is_production()
        and not _warned_missing_tag
    ):
        _warned_missing_tag = True
        logger.warning(
            "Amazon partner tag not configured; falling back to '%s'",
            AFFILIATE_FALLBACK_TAG,
        )
    return tag


# ── URL Helpers ──────────────────────────────────────────────────────────────

def _with_tag(url: str, tag: str) -> Optional[str]:
    """Return ``url`` with exactly one ``tag`` query param, or None if unparseable.

    Other query segments are kept byte for byte, bare flags included.
    """
    try:
        parts = urlsplit(url.strip())
        parts.port  # raises on a non-numeric or out-of-range port
    except ValueError:
        return None
    if not parts.scheme or not parts.hostname or _SPACE_OR_CONTROL.search(parts.netloc):
        return None

    segments = [
        seg for seg in parts.query.split("&")
        if seg and unquote_plus(seg.split("=", 1)[0]) != "tag"
    ]
    segments.append(urlencode({"tag": tag}))
    return urlunsplit((
        parts.scheme,
        parts.netloc,
        _encode(parts.path or "/"),
        _encode("&".join(segments)),
        _encode(parts.fragment),
    ))


def amazon_search_url(title: str, tag: str) -> str:
    return f"{AMAZON_SEARCH_BASE}?k={quote(title, safe=_URI_COMPONENT_SAFE)}&tag={tag}"


# ── Public API ───────────────────────────────────────────────────────────────

def build_amazon_affiliate_url(
    product_url: Optional[str] = None,
    title: Optional[str] = None,
) -> str:
    """Build a monetized Amazon link for a gift.

    Never raises: a product URL that fails to parse degrades to a search link.
    """
    partner_tag = resolve_partner_tag()
    safe_title = (title or "").strip() or FALLBACK_TITLE

    if isinstance(product_url, str) and _AMAZON_MARKER in product_url:
        tagged = _with_tag(product_url, partner_tag)
        if tagged is not None:
            return tagged
        logger.debug("Unparseable Amazon URL %r, using search link", product_url)

    return amazon_search_url(safe_title, partner_tag)


def ensure_amazon_affiliate_tag(url: Optional[str], tag: Optional[str] = None) -> Optional[str]:
    """Tag a provider-supplied detail page URL; unparseable URLs pass through."""
    if not url:
        return None
    return _with_tag(url, tag or resolve_partner_tag()) or url
