"""
Shared FastAPI dependencies for the v1 routers.
"""
from typing import Optional

from fastapi import Depends, Query, Request
from sqlalchemy.orm import Session

from indiebookshop.core.database import get_db
from indiebookshop.core.storage import BookshopStorage, SlugIndex
from indiebookshop.directory.filters import FilterState
from indiebookshop.directory.query_params import parse_query


def get_slug_index(request: Request) -> SlugIndex:
    """Process-wide slug map kept on app.state."""
    index = getattr(request.app.state, "slug_index", None)
    if index is None:
        index = SlugIndex()
        request.app.state.slug_index = index
    return index


def get_storage(
    db: Session = Depends(get_db),
    slug_index: SlugIndex = Depends(get_slug_index),
) -> BookshopStorage:
    return BookshopStorage(db, slug_index=slug_index)


def get_filter_state(
    state: Optional[str] = Query(None, description="State code, or 'all'"),
    city: Optional[str] = Query(None, description="City name, or 'all'"),
    county: Optional[str] = Query(None, description="County name, or 'all'"),
    features: Optional[str] = Query(None, description="Comma-separated feature ids"),
    search: Optional[str] = Query(None, description="Matches name, city or state"),
) -> FilterState:
    """Directory filters from the query string (same keys as the page URL)."""
    values = {
        "state": state,
        "city": city,
        "county": county,
        "features": features,
        "search": search,
    }
    return parse_query({k: v for k, v in values.items() if v is not None})
