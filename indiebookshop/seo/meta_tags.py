"""
Server-side SEO tags for bookshop detail pages.

The single-page app shell has a generic <head>; crawlers that do not run
JavaScript get bookshop-specific title, description, canonical URL, Open
Graph/Twitter tags and a schema.org BookStore block injected into it.
"""
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from indiebookshop.core.models import Bookstore
from indiebookshop.core.utils import escape_html, generate_slug_from_name, truncate

logger = logging.getLogger(__name__)

SITE_NAME = "IndiebookShop.com"
TWITTER_HANDLE = "@indiebookshop"
MAX_DESCRIPTION_LENGTH = 160
DESCRIPTION_TEMPLATE = (
    "{name} is an independent bookshop in {city}, {state}. Discover events, "
    "specialty offerings, and more information about this local bookshop at IndiebookShop.com."
)
ROBOTS = "index, follow, max-image-preview:large, max-snippet:-1, max-video-preview:-1"
DEFAULT_IMAGE_PATH = "/images/default-bookshop.jpg"
CACHE_CONTROL = "public, s-maxage=3600, stale-while-revalidate=86400"

PACKAGED_SHELL = Path(__file__).resolve().parent.parent / "static" / "index.html"


def bookshop_description(bookshop: Bookstore) -> str:
    """Stored description, or the template when there is none; at most 160 chars."""
    description = bookshop.description or ""
    if not description.strip():
        description = DESCRIPTION_TEMPLATE.format(
            name=bookshop.name,
            city=bookshop.city or "",
            state=bookshop.state or "",
        )
    return truncate(description, MAX_DESCRIPTION_LENGTH)


def bookshop_keywords(bookshop: Bookstore) -> str:
    name, city, state = bookshop.name, bookshop.city or "", bookshop.state or ""
    keywords = [
        name,
        f"{name} bookshop",
        f"independent bookshop {city}",
        f"indie bookshop {city}",
        f"bookshops in {city}",
        f"{city} {state} bookshops",
        f"independent bookshops {state}",
    ]
    return ", ".join(k for k in keywords if k)


def _coordinate(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def bookshop_structured_data(bookshop: Bookstore, base_url: str) -> Dict[str, Any]:
    """schema.org BookStore object for a bookshop."""
    slug = bookshop.slug or generate_slug_from_name(bookshop.name)
    data: Dict[str, Any] = {
        "@context": "https://schema.org",
        "@type": "BookStore",
        "name": bookshop.name,
        "address": {
            "@type": "PostalAddress",
            "streetAddress": bookshop.street,
            "addressLocality": bookshop.city,
            "addressRegion": bookshop.state,
            "postalCode": bookshop.zip,
            "addressCountry": "US",
        },
        "url": f"{base_url}/bookshop/{slug}",
    }

    lat = _coordinate(bookshop.latitude)
    lng = _coordinate(bookshop.longitude)
    if lat is not None and lng is not None:
        data["geo"] = {"@type": "GeoCoordinates", "latitude": lat, "longitude": lng}

    telephone = bookshop.formatted_phone or bookshop.phone
    if telephone:
        data["telephone"] = telephone
    if bookshop.website:
        data["sameAs"] = bookshop.website

    description = bookshop.ai_generated_description or bookshop.description
    if description:
        data["description"] = description
    if bookshop.image_url:
        data["image"] = bookshop.image_url

    rating = _coordinate(bookshop.google_rating)
    if rating is not None:
        data["aggregateRating"] = {
            "@type": "AggregateRating",
            "ratingValue": rating,
            "bestRating": "5",
            "worstRating": "1",
            "ratingCount": bookshop.google_review_count or 1,
        }
    return data


def _json_ld(data: Dict[str, Any]) -> str:
    # keep "</script>" inside string values from closing the tag
    return json.dumps(data, ensure_ascii=False).replace("</", "<\\/")


def generate_bookshop_meta_tags(bookshop: Bookstore, base_url: str) -> str:
    """
    HTML fragment with every SEO tag for a bookshop page.

    All interpolated text is HTML-escaped. The canonical URL always uses
    the name-derived slug.
    """
    slug = generate_slug_from_name(bookshop.name)
    canonical_url = f"{base_url}/bookshop/{slug}"

    title = escape_html(
        f"{bookshop.name} | Independent Bookshop in {bookshop.city} | {SITE_NAME}"
    )
    description = escape_html(bookshop_description(bookshop))
    keywords = escape_html(bookshop_keywords(bookshop))
    image = escape_html(bookshop.image_url or f"{base_url}{DEFAULT_IMAGE_PATH}")
    image_alt = escape_html(
        f"{bookshop.name} - Independent bookshop in {bookshop.city}, {bookshop.state}"
    )
    canonical = escape_html(canonical_url)
    structured = _json_ld(bookshop_structured_data(bookshop, base_url))

    return f"""
    <!-- Server-side injected meta tags for SEO -->
    <title>{title}</title>
    <meta name="description" content="{description}" />
    <meta name="keywords" content="{keywords}" />
    <meta name="robots" content="{ROBOTS}" />
    <link rel="canonical" href="{canonical}" />
    <meta property="og:title" content="{title}" />
    <meta property="og:description" content="{description}" />
    <meta property="og:type" content="website" />
    <meta property="og:url" content="{canonical}" />
    <meta property="og:image" content="{image}" />
    <meta property="og:image:alt" content="{image_alt}" />
    <meta property="og:site_name" content="{SITE_NAME}" />
    <meta property="og:locale" content="en_US" />
    <meta name="twitter:card" content="summary_large_image" />
    <meta name="twitter:title" content="{title}" />
    <meta name="twitter:description" content="{description}" />
    <meta name="twitter:image" content="{image}" />
    <meta name="twitter:image:alt" content="{image_alt}" />
    <meta name="twitter:site" content="{TWITTER_HANDLE}" />
    <script type="application/ld+json">{structured}</script>
  """


def inject_meta_tags(html: str, meta_tags: str) -> str:
    """
    Insert tags into an HTML document.

    Before </head> if present, else right after <head>, else in a new
    <head> placed before <body>, else prepended to the document.
    """
    if "</head>" in html:
        return html.replace("</head>", f"{meta_tags}</head>", 1)
    if "<head>" in html:
        return html.replace("<head>", f"<head>{meta_tags}", 1)
    if "<body>" in html:
        return html.replace("<body>", f"<head>{meta_tags}</head><body>", 1)
    return f"{meta_tags}{html}"


@lru_cache(maxsize=4)
def _read_shell(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def load_html_shell(path: Optional[str] = None) -> str:
    """HTML shell from `path`, or the packaged shell when no path is configured."""
    shell_path = path or str(PACKAGED_SHELL)
    try:
        return _read_shell(shell_path)
    except OSError as e:
        logger.error(f"Could not read HTML shell at {shell_path}: {e}")
        if shell_path == str(PACKAGED_SHELL):
            raise
        return _read_shell(str(PACKAGED_SHELL))
