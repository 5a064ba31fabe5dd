"""robots.txt and sitemap.xml for the public marketing site."""
from __future__ import annotations

from datetime import datetime, timezone
from xml.sax.saxutils import escape

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse, Response

from config.settings import settings

router = APIRouter(tags=["seo"])

# Signed-in app areas; crawlers only get the marketing pages.
DISALLOWED_ROUTES = [
    "/dashboard",
    "/recipients",
    "/gifts",
    "/history",
    "/occasions",
    "/gift-guides",
    "/settings",
    "/profile",
    "/wishlist",
]

SITEMAP_ROUTES = ["/", "/about", "/blog"]


def render_robots(site_url: str) -> str:
    disallow = "\n".join(f"Disallow: {route}" for route in DISALLOWED_ROUTES)
    return f"User-agent: *\nAllow: /\n{disallow}\n\nSitemap: {site_url}/sitemap.xml\n"


def render_sitemap(site_url: str, last_modified: datetime) -> str:
    stamp = last_modified.isoformat()
    entries = []
    for route in SITEMAP_ROUTES:
        home = route == "/"
        entries.append(
            "  <url>\n"
            f"    <loc>{escape(site_url + route)}</loc>\n"
            f"    <lastmod>{stamp}</lastmod>\n"
            f"    <changefreq>{'daily' if home else 'weekly'}</changefreq>\n"
            f"    <priority>{'1.0' if home else '0.6'}</priority>\n"
            "  </url>"
        )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        + "\n".join(entries)
        + "\n</urlset>\n"
    )


@router.get("/robots.txt", response_class=PlainTextResponse)
async def robots_txt():
    return PlainTextResponse(render_robots(settings.SITE_URL))


@router.get("/sitemap.xml")
async def sitemap_xml():
    body = render_sitemap(settings.SITE_URL, datetime.now(timezone.utc))
    return Response(content=body, media_type="application/xml")
