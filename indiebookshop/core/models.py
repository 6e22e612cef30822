"""
SQLAlchemy models for the directory tables.

Column names mirror the hosted Postgres schema (snake_case). View models
in app code never read these attributes directly; they go through the
mapping functions in indiebookshop.core.schemas.
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, Boolean, ForeignKey, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Feature(Base):
    """
    Small fixed lookup of bookshop features (cafe, used books, kids, ...).
    """
    __tablename__ = "features"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    slug = Column(String(100), nullable=True, index=True)
    description = Column(Text, nullable=True)
    keywords = Column(JSON, nullable=True)  # list[str], used for classification

    def __repr__(self) -> str:
        return f"<Feature(id={self.id}, name={self.name})>"


class Bookstore(Base):
    """
    A bookshop listing.

    Only rows with live=True are ever shown publicly. Soft delete flips
    live to False.
    """
    __tablename__ = "bookstores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(255), nullable=True, index=True)
    street = Column(String(300), nullable=False, default="")
    city = Column(String(100), nullable=False)
    state = Column(String(50), nullable=False, index=True)
    county = Column(String(100), nullable=True)
    zip = Column(String(10), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    image_url = Column(Text, nullable=True)
    website = Column(String(500), nullable=True)
    phone = Column(String(20), nullable=True)
    hours = Column(JSON, nullable=True)  # {"Monday": "10am-6pm", ...}

    # Decimal strings, may be missing or malformed in imported rows
    latitude = Column(String(32), nullable=True)
    longitude = Column(String(32), nullable=True)

    feature_ids = Column(JSON, nullable=True, default=list)
    live = Column(Boolean, nullable=False, default=True, index=True)

    # Google Places enrichment
    google_place_id = Column(String(255), nullable=True)
    google_rating = Column(String(10), nullable=True)  # text, same as coordinates
    google_review_count = Column(Integer, nullable=True)
    google_description = Column(Text, nullable=True)
    google_photos = Column(JSON, nullable=True)
    google_reviews = Column(JSON, nullable=True)
    google_price_level = Column(Integer, nullable=True)
    google_data_updated_at = Column(DateTime, nullable=True)

    # Google Places contact data
    formatted_phone = Column(String(50), nullable=True)
    website_verified = Column(String(500), nullable=True)
    opening_hours_json = Column(JSON, nullable=True)
    google_maps_url = Column(Text, nullable=True)
    google_types = Column(JSON, nullable=True)
    formatted_address_google = Column(Text, nullable=True)
    business_status = Column(String(50), nullable=True)
    contact_data_fetched_at = Column(DateTime, nullable=True)

    # AI description fields
    ai_generated_description = Column(Text, nullable=True)
    description_generated_at = Column(DateTime, nullable=True)
    description_validated = Column(Boolean, nullable=True, default=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_bookstores_live_state", "live", "state"),
    )

    def __repr__(self) -> str:
        return (
            f"<Bookstore(id={self.id}, name={self.name}, "
            f"city={self.city}, state={self.state}, live={self.live})>"
        )


class Event(Base):
    """An event hosted by exactly one bookshop. Display only."""
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bookshop_id = Column(Integer, ForeignKey("bookstores.id"), nullable=False, index=True)
    title = Column(String(300), nullable=False)
    description = Column(Text, nullable=False, default="")
    date = Column(String(10), nullable=False)  # YYYY-MM-DD
    time = Column(String(50), nullable=False, default="")

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, bookshop_id={self.bookshop_id}, date={self.date})>"
