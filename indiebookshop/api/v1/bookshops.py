"""
Bookshop endpoints.

List (filtered) and detail lookups over live bookshops, plus the events
hosted by one bookshop.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from indiebookshop.api.deps import get_filter_state, get_storage
from indiebookshop.core.schemas import (
    BookshopDetail,
    BookshopSummary,
    EventOut,
    bookshop_detail_from_record,
    bookshop_summary_from_record,
    event_from_record,
)
from indiebookshop.core.storage import BookshopStorage
from indiebookshop.directory.filters import FilterState, apply_filters

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookshops", tags=["bookshops"])


@router.get("", response_model=List[BookshopSummary])
def list_bookshops(
    filters: FilterState = Depends(get_filter_state),
    storage: BookshopStorage = Depends(get_storage),
) -> List[BookshopSummary]:
    """
    List live bookshops matching the filters.

    With no filters every live bookshop is returned, ordered by name.
    """
    try:
        records = storage.list_bookshops()
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch bookshops: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch bookshops")

    matches = apply_filters(records, filters)
    logger.debug(f"{len(matches)} of {len(records)} bookshops match {filters}")
    return [bookshop_summary_from_record(r) for r in matches]


@router.get("/{id_or_slug}", response_model=BookshopDetail)
def get_bookshop(
    id_or_slug: str,
    storage: BookshopStorage = Depends(get_storage),
) -> BookshopDetail:
    """Full record for one bookshop, by numeric id or URL slug."""
    try:
        record = storage.get_bookshop_by_id_or_slug(id_or_slug)
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch bookshop {id_or_slug}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch bookshop")

    if record is None:
        raise HTTPException(status_code=404, detail=f"Bookshop not found: {id_or_slug}")
    return bookshop_detail_from_record(record)


@router.get("/{bookshop_id}/events", response_model=List[EventOut])
def list_bookshop_events(
    bookshop_id: int,
    storage: BookshopStorage = Depends(get_storage),
) -> List[EventOut]:
    """Events hosted by a live bookshop, ordered by date."""
    try:
        if storage.get_bookshop(bookshop_id) is None:
            raise HTTPException(status_code=404, detail=f"Bookshop not found: {bookshop_id}")
        events = storage.list_events_for_bookshop(bookshop_id)
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch events for bookshop {bookshop_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch events")

    return [event_from_record(e) for e in events]
