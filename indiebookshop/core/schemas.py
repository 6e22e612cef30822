"""
Pydantic view models for API responses, and the mapping from storage rows.

Storage columns are snake_case; the JSON the directory consumes is
camelCase. The conversion happens in exactly one place per view
(bookshop_summary_from_record / bookshop_detail_from_record) and lists
every field explicitly.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from indiebookshop.core.models import Bookstore, Event, Feature
from indiebookshop.core.utils import generate_slug_from_name


class CamelModel(BaseModel):
    """Base for view models: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BookshopSummary(CamelModel):
    """Fields needed by the directory list and map (small payload)."""
    id: int
    name: str
    slug: str
    street: str = ""
    city: str = ""
    state: str = ""
    county: Optional[str] = None
    zip: str = ""
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    image_url: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    live: bool = True
    google_rating: Optional[str] = None
    google_review_count: Optional[int] = None
    feature_ids: List[int] = Field(default_factory=list)
    description: str = ""


class BookshopDetail(BookshopSummary):
    """Full record for a single selected bookshop."""
    hours: Optional[Dict[str, Any]] = None
    google_place_id: Optional[str] = None
    google_description: Optional[str] = None
    google_photos: Optional[List[Dict[str, Any]]] = None
    google_reviews: Optional[List[Dict[str, Any]]] = None
    google_price_level: Optional[int] = None
    google_data_updated_at: Optional[datetime] = None
    formatted_phone: Optional[str] = None
    website_verified: Optional[str] = None
    opening_hours_json: Optional[Dict[str, Any]] = None
    google_maps_url: Optional[str] = None
    google_types: Optional[List[str]] = None
    formatted_address_google: Optional[str] = None
    business_status: Optional[str] = None
    contact_data_fetched_at: Optional[datetime] = None
    ai_generated_description: Optional[str] = None
    description_generated_at: Optional[datetime] = None
    description_validated: Optional[bool] = None


class FeatureOut(CamelModel):
    id: int
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)


class EventOut(CamelModel):
    id: int
    bookshop_id: int
    title: str
    description: str = ""
    date: str
    time: str = ""


class LocationOption(CamelModel):
    """A city or county, always carried together with its state."""
    name: str
    state: str


class MapConfig(CamelModel):
    mapbox_access_token: str = ""


# =============================================================================
# Storage row -> view model
# =============================================================================


def _int_list(value) -> List[int]:
    """Coerce a stored feature id array; anything unusable becomes []."""
    if not isinstance(value, (list, tuple)):
        return []
    result = []
    for item in value:
        try:
            result.append(int(item))
        except (TypeError, ValueError):
            continue
    return result


def bookshop_summary_from_record(record: Bookstore) -> BookshopSummary:
    """Map a bookstores row onto the list view model."""
    return BookshopSummary(
        id=record.id,
        name=record.name,
        slug=record.slug or generate_slug_from_name(record.name),
        street=record.street or "",
        city=record.city or "",
        state=record.state or "",
        county=record.county,
        zip=record.zip or "",
        latitude=record.latitude,
        longitude=record.longitude,
        image_url=record.image_url,
        website=record.website,
        phone=record.phone,
        live=bool(record.live),
        google_rating=record.google_rating,
        google_review_count=record.google_review_count,
        feature_ids=_int_list(record.feature_ids),
        description=record.description or "",
    )


def bookshop_detail_from_record(record: Bookstore) -> BookshopDetail:
    """Map a bookstores row onto the detail view model."""
    summary = bookshop_summary_from_record(record)
    return BookshopDetail(
        **summary.model_dump(),
        hours=record.hours if isinstance(record.hours, dict) else None,
        google_place_id=record.google_place_id,
        google_description=record.google_description,
        google_photos=record.google_photos if isinstance(record.google_photos, list) else None,
        google_reviews=record.google_reviews if isinstance(record.google_reviews, list) else None,
        google_price_level=record.google_price_level,
        google_data_updated_at=record.google_data_updated_at,
        formatted_phone=record.formatted_phone,
        website_verified=record.website_verified,
        opening_hours_json=record.opening_hours_json if isinstance(record.opening_hours_json, dict) else None,
        google_maps_url=record.google_maps_url,
        google_types=record.google_types if isinstance(record.google_types, list) else None,
        formatted_address_google=record.formatted_address_google,
        business_status=record.business_status,
        contact_data_fetched_at=record.contact_data_fetched_at,
        ai_generated_description=record.ai_generated_description,
        description_generated_at=record.description_generated_at,
        description_validated=record.description_validated,
    )


def feature_from_record(record: Feature) -> FeatureOut:
    return FeatureOut(
        id=record.id,
        name=record.name,
        slug=record.slug,
        description=record.description,
        keywords=[str(k) for k in record.keywords] if isinstance(record.keywords, list) else [],
    )


def event_from_record(record: Event) -> EventOut:
    return EventOut(
        id=record.id,
        bookshop_id=record.bookshop_id,
        title=record.title,
        description=record.description or "",
        date=record.date,
        time=record.time or "",
    )
