"""
Read-side repository over the directory tables.

Every public read filters on live=True; a bookshop that is not live is
indistinguishable from one that does not exist.
"""
import logging
import threading
import time
from datetime import date
from typing import Callable, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from indiebookshop.core.models import Bookstore, Event, Feature
from indiebookshop.core.schemas import LocationOption
from indiebookshop.core.utils import generate_slug_from_name

logger = logging.getLogger(__name__)

MAX_BOOKSHOP_ID = 2**31 - 1
SLUG_REBUILD_INTERVAL_SECONDS = 30.0


class SlugIndex:
    """
    slug -> bookshop id map over live bookshops.

    Slugs are derived from names, so two bookshops can share one; the last
    row read wins and the collision is logged. A lookup miss rebuilds the
    map to pick up newly added bookshops, at most once per
    min_rebuild_interval seconds so unknown slugs from crawlers do not
    scan the table on every request.
    """

    def __init__(
        self,
        min_rebuild_interval: float = SLUG_REBUILD_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_rebuild_interval = min_rebuild_interval
        self._clock = clock
        self._ids: Dict[str, int] = {}
        self._built_at: Optional[float] = None
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._ids)

    def rebuild(self, db: Session) -> int:
        rows = (
            db.query(Bookstore.id, Bookstore.name)
            .filter(Bookstore.live.is_(True))
            .order_by(Bookstore.id)
            .all()
        )

        ids: Dict[str, int] = {}
        duplicates = 0
        for bookshop_id, name in rows:
            slug = generate_slug_from_name(name)
            if not slug:
                continue
            if slug in ids:
                duplicates += 1
                logger.info(
                    f"Duplicate slug '{slug}': replacing bookshop {ids[slug]} with {bookshop_id}"
                )
            ids[slug] = bookshop_id

        with self._lock:
            self._ids = ids
            self._built_at = self._clock()

        if duplicates:
            logger.warning(f"Found {duplicates} duplicate slugs; the last bookshop with each slug is used")
        logger.info(f"Built {len(ids)} slug mappings from {len(rows)} live bookshops")
        return len(ids)

    def get(self, slug: str) -> Optional[int]:
        with self._lock:
            return self._ids.get(slug)

    def _rebuild_due(self) -> bool:
        with self._lock:
            built_at = self._built_at
        if built_at is None:
            return True
        return self._clock() - built_at >= self.min_rebuild_interval

    def resolve(self, db: Session, slug: str) -> Optional[int]:
        bookshop_id = self.get(slug)
        if bookshop_id is None and self._rebuild_due():
            self.rebuild(db)
            bookshop_id = self.get(slug)
        return bookshop_id


class BookshopStorage:
    """Queries used by the read API, the SEO pages and the sitemap."""

    def __init__(self, db: Session, slug_index: Optional[SlugIndex] = None):
        self.db = db
        self.slug_index = slug_index or SlugIndex()

    def _live(self):
        return self.db.query(Bookstore).filter(Bookstore.live.is_(True))

    # =========================================================================
    # Bookshops
    # =========================================================================

    def list_bookshops(self) -> List[Bookstore]:
        """All live bookshops ordered by name."""
        return self._live().order_by(Bookstore.name, Bookstore.id).all()

    def get_bookshop(self, bookshop_id: int) -> Optional[Bookstore]:
        return self._live().filter(Bookstore.id == bookshop_id).first()

    def get_bookshop_by_slug(self, slug: str) -> Optional[Bookstore]:
        """
        Resolve a URL slug to a live bookshop.

        The stored slug column is tried first, then the name-derived slug map.
        """
        if not slug:
            return None
        slug = slug.lower()

        stored = self._live().filter(Bookstore.slug == slug).first()
        if stored is not None:
            return stored

        bookshop_id = self.slug_index.resolve(self.db, slug)
        if bookshop_id is None:
            logger.info(f"No live bookshop for slug '{slug}'")
            return None
        return self.get_bookshop(bookshop_id)

    def get_bookshop_by_id_or_slug(self, id_or_slug: str) -> Optional[Bookstore]:
        """ASCII digit strings are ids, anything else is a slug."""
        if id_or_slug.isascii() and id_or_slug.isdigit():
            bookshop_id = int(id_or_slug)
            if bookshop_id > MAX_BOOKSHOP_ID:
                return None
            return self.get_bookshop(bookshop_id)
        return self.get_bookshop_by_slug(id_or_slug)

    # =========================================================================
    # Reference data and events
    # =========================================================================

    def list_features(self) -> List[Feature]:
        return self.db.query(Feature).order_by(Feature.name).all()

    def list_events(self, upcoming: bool = False, today: Optional[date] = None) -> List[Event]:
        query = self.db.query(Event)
        if upcoming:
            today = today or date.today()
            query = query.filter(Event.date >= today.isoformat())
        return query.order_by(Event.date, Event.time, Event.id).all()

    def list_events_for_bookshop(self, bookshop_id: int) -> List[Event]:
        return (
            self.db.query(Event)
            .filter(Event.bookshop_id == bookshop_id)
            .order_by(Event.date, Event.time, Event.id)
            .all()
        )

    # =========================================================================
    # Locations
    # =========================================================================

    def list_states(self) -> List[str]:
        rows = (
            self.db.query(Bookstore.state)
            .filter(Bookstore.live.is_(True), Bookstore.state != "")
            .distinct()
            .order_by(Bookstore.state)
            .all()
        )
        return [state for (state,) in rows]

    def _locations(self, column, state: str) -> List[LocationOption]:
        rows = (
            self.db.query(column, Bookstore.state)
            .filter(
                Bookstore.live.is_(True),
                func.lower(Bookstore.state) == state.lower(),
                column.isnot(None),
                column != "",
            )
            .distinct()
            .order_by(column)
            .all()
        )
        return [LocationOption(name=name, state=st) for name, st in rows]

    def list_cities(self, state: str) -> List[LocationOption]:
        return self._locations(Bookstore.city, state)

    def list_counties(self, state: str) -> List[LocationOption]:
        return self._locations(Bookstore.county, state)
