"""
Crawler-facing output: injected meta tags, sitemap and robots.txt.
"""

from indiebookshop.seo.meta_tags import generate_bookshop_meta_tags, inject_meta_tags, load_html_shell
from indiebookshop.seo.sitemap import render_robots, render_sitemap, sitemap_entries

__all__ = [
    "generate_bookshop_meta_tags",
    "inject_meta_tags",
    "load_html_shell",
    "render_robots",
    "render_sitemap",
    "sitemap_entries",
]
