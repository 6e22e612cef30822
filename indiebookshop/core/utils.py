"""
Text helpers shared by the API, the slug lookup and the SEO layer.

Slugs must be produced identically everywhere a bookshop URL is built,
so there is exactly one implementation.
"""
import html
import re

_NON_SLUG_CHARS = re.compile(r"[^\w\s-]", re.ASCII)
_WHITESPACE = re.compile(r"\s+")
_REPEATED_HYPHENS = re.compile(r"--+")
_EDGE_HYPHENS = re.compile(r"^-+|-+$")


def generate_slug_from_name(name) -> str:
    """
    Build the URL slug for a bookshop name.

    "Powell's Books" -> "powells-books". Non-string or empty input yields "".
    """
    if not name or not isinstance(name, str):
        return ""

    slug = name.lower()
    slug = _NON_SLUG_CHARS.sub("", slug)
    slug = _WHITESPACE.sub("-", slug)
    slug = _REPEATED_HYPHENS.sub("-", slug)
    slug = _EDGE_HYPHENS.sub("", slug)
    return slug.strip()


def escape_html(text) -> str:
    """Escape &, <, >, " and ' for safe interpolation into HTML."""
    if not text or not isinstance(text, str):
        return ""
    return html.escape(text, quote=True)


def truncate(text: str, max_length: int) -> str:
    """Cut text to max_length characters, ending in '...' when shortened."""
    if not text or len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."
