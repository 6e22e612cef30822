"""
Reference data endpoints: features, events and location facets.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError

from indiebookshop.api.deps import get_storage
from indiebookshop.core.schemas import (
    EventOut,
    FeatureOut,
    LocationOption,
    event_from_record,
    feature_from_record,
)
from indiebookshop.core.storage import BookshopStorage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["catalog"])


@router.get("/features", response_model=List[FeatureOut])
def list_features(storage: BookshopStorage = Depends(get_storage)) -> List[FeatureOut]:
    try:
        return [feature_from_record(f) for f in storage.list_features()]
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch features: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch features")


@router.get("/events", response_model=List[EventOut])
def list_events(
    upcoming: bool = Query(False, description="Only events dated today or later"),
    storage: BookshopStorage = Depends(get_storage),
) -> List[EventOut]:
    try:
        return [event_from_record(e) for e in storage.list_events(upcoming=upcoming)]
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch events: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch events")


# =============================================================================
# Locations
# =============================================================================


@router.get("/states", response_model=List[str])
def list_states(storage: BookshopStorage = Depends(get_storage)) -> List[str]:
    """States that have at least one live bookshop."""
    try:
        return storage.list_states()
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch states: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch states")


@router.get("/states/{state}/cities", response_model=List[LocationOption])
def list_cities(state: str, storage: BookshopStorage = Depends(get_storage)) -> List[LocationOption]:
    try:
        return storage.list_cities(state)
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch cities for {state}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch cities")


@router.get("/states/{state}/counties", response_model=List[LocationOption])
def list_counties(state: str, storage: BookshopStorage = Depends(get_storage)) -> List[LocationOption]:
    try:
        return storage.list_counties(state)
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch counties for {state}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch counties")
