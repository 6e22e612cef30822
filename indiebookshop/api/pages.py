"""
Crawler-facing pages served outside /api: bookshop pages with injected
meta tags, sitemap.xml and robots.txt.
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from sqlalchemy.exc import SQLAlchemyError

from indiebookshop.api.deps import get_storage
from indiebookshop.core.config import get_settings
from indiebookshop.core.storage import BookshopStorage
from indiebookshop.seo.meta_tags import (
    CACHE_CONTROL,
    generate_bookshop_meta_tags,
    inject_meta_tags,
    load_html_shell,
)
from indiebookshop.seo.sitemap import render_robots, render_sitemap, sitemap_entries

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pages"])


@router.get("/bookshop/{slug}", response_class=HTMLResponse)
def bookshop_page(slug: str, storage: BookshopStorage = Depends(get_storage)) -> HTMLResponse:
    """
    App shell for a bookshop page with SEO tags for that bookshop.

    Unknown slugs get the plain shell with a 404 so the client can render
    its own not-found view.
    """
    settings = get_settings()
    shell = load_html_shell(settings.html_shell_path)

    try:
        bookshop = storage.get_bookshop_by_slug(slug)
    except SQLAlchemyError as e:
        logger.error(f"Failed to look up bookshop for slug '{slug}': {e}")
        return HTMLResponse(content=shell, status_code=200)

    if bookshop is None:
        return HTMLResponse(content=shell, status_code=404)

    meta_tags = generate_bookshop_meta_tags(bookshop, settings.site_base_url)
    return HTMLResponse(
        content=inject_meta_tags(shell, meta_tags),
        headers={"Cache-Control": CACHE_CONTROL},
    )


@router.get("/sitemap.xml")
def sitemap(storage: BookshopStorage = Depends(get_storage)) -> Response:
    settings = get_settings()
    try:
        entries = sitemap_entries(
            storage.list_bookshops(), storage.list_states(), settings.site_base_url
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to build sitemap: {e}")
        entries = sitemap_entries([], [], settings.site_base_url)
    return Response(content=render_sitemap(entries), media_type="application/xml")


@router.get("/robots.txt", response_class=PlainTextResponse)
def robots() -> PlainTextResponse:
    return PlainTextResponse(render_robots(get_settings().site_base_url))
