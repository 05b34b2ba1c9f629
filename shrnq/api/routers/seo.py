# shrnq/api/routers/seo.py
"""robots.txt and sitemap.xml. Short-link redirects are never listed."""

from xml.sax.saxutils import escape

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response

from shrnq.core.request_context import get_public_url

router = APIRouter(tags=["SEO"])

SITEMAP_PATHS = ("/", "/login")


def _cache_headers(request: Request) -> dict[str, str]:
    max_age = request.app.state.settings.SEO_CACHE_MAX_AGE
    return {"Cache-Control": f"public, max-age={max_age}"}


@router.get("/robots.txt", include_in_schema=False)
async def robots_txt(request: Request) -> PlainTextResponse:
    body = "\n".join(
        [
            "User-agent: *",
            "Allow: /",
            f"Sitemap: {get_public_url(request)}/sitemap.xml",
        ]
    )
    return PlainTextResponse(body, headers=_cache_headers(request))


@router.get("/sitemap.xml", include_in_schema=False)
async def sitemap_xml(request: Request) -> Response:
    site_url = get_public_url(request)
    entries = "".join(
        f"<url><loc>{escape(site_url + path)}</loc></url>" for path in SITEMAP_PATHS
    )
    body = (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
        f"{entries}</urlset>"
    )
    return Response(content=body, media_type="application/xml", headers=_cache_headers(request))
