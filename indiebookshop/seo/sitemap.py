"""
sitemap.xml and robots.txt.
"""
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional
from urllib.parse import quote
from xml.sax.saxutils import escape

from indiebookshop.core.models import Bookstore
from indiebookshop.core.utils import generate_slug_from_name


@dataclass(frozen=True)
class SitemapEntry:
    loc: str
    changefreq: str
    priority: float


# (path, changefreq, priority)
STATIC_PAGES = [
    ("", "daily", 1.0),
    ("/directory", "daily", 0.9),
    ("/about", "monthly", 0.5),
    ("/contact", "monthly", 0.5),
    ("/events", "weekly", 0.6),
    ("/blog", "weekly", 0.6),
    ("/submit", "monthly", 0.4),
    ("/submit-event", "monthly", 0.4),
]


def sitemap_entries(
    bookshops: Iterable[Bookstore],
    states: Iterable[str],
    base_url: str,
) -> List[SitemapEntry]:
    """
    Static pages, one state-filtered directory page per state and one page
    per live bookshop (deduplicated by slug, first one wins).
    """
    entries = [SitemapEntry(f"{base_url}{path}", freq, prio) for path, freq, prio in STATIC_PAGES]

    for state in states:
        entries.append(
            SitemapEntry(f"{base_url}/directory?state={quote(state)}", "weekly", 0.75)
        )

    seen = set()
    for bookshop in bookshops:
        if not bookshop.live:
            continue
        slug = bookshop.slug or generate_slug_from_name(bookshop.name)
        if not slug or slug.lower() in seen:
            continue
        seen.add(slug.lower())
        entries.append(SitemapEntry(f"{base_url}/bookshop/{slug}", "monthly", 0.7))
    return entries


def render_sitemap(entries: Iterable[SitemapEntry], lastmod: Optional[date] = None) -> str:
    lastmod = (lastmod or date.today()).isoformat()
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
    ]
    for entry in entries:
        lines.append(
            f"  <url><loc>{escape(entry.loc)}</loc><lastmod>{lastmod}</lastmod>"
            f"<changefreq>{entry.changefreq}</changefreq>"
            f"<priority>{entry.priority:.2f}</priority></url>"
        )
    lines.append("</urlset>")
    return "\n".join(lines) + "\n"


def render_robots(base_url: str) -> str:
    return "\n".join([
        "User-agent: *",
        "Allow: /",
        "Disallow: /api/",
        "Disallow: /admin/",
        "",
        f"Sitemap: {base_url}/sitemap.xml",
        "",
    ])
