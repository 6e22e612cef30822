"""
List/detail panel state for the directory.

The list shows the filtered set restricted to the visible map bounds.
Bookshops whose coordinates cannot be parsed never appear on the map, so
they are always kept in the list after the in-bounds entries.
"""
import enum
import logging
import math
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from indiebookshop.directory.filters import get_field, parse_coordinates
from indiebookshop.directory.viewport import Bounds

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
EMPTY_TITLE = "No bookshops found"
EMPTY_HINT = "Try adjusting your filters or search in a different area"


class LoadState(str, enum.Enum):
    """Fetch lifecycle for the filtered set and for the selected detail."""
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    EMPTY = "empty"
    ERROR = "error"


@dataclass
class Page:
    items: List[Any] = field(default_factory=list)
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    total: int = 0

    @property
    def pages(self) -> int:
        if self.total == 0:
            return 0
        return math.ceil(self.total / self.page_size)

    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1


def visible_bookshops(filtered: Sequence[Any], bounds: Optional[Bounds]) -> List[Any]:
    """
    Entries for the list: everything before bounds are known, otherwise the
    in-bounds bookshops followed by those without usable coordinates.
    """
    if bounds is None:
        return list(filtered)

    inside = []
    unmapped = []
    for record in filtered:
        coords = parse_coordinates(record)
        if coords is None:
            unmapped.append(record)
        elif bounds.contains(coords[0], coords[1]):
            inside.append(record)
    return inside + unmapped


class ListPanel:
    """
    Paginated list of the visible bookshops plus the shared selection.

    selected_id is the single piece of selection state used by both the
    list rows and the map markers.
    """

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE):
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.page_size = page_size
        self.page = 1
        self.collapsed = False
        self.selected_id: Optional[int] = None
        self.entries: List[Any] = []
        self.state = LoadState.IDLE

    def sync(self, filtered: Sequence[Any], bounds: Optional[Bounds]) -> None:
        """Recompute entries after a filter change or camera move."""
        self.entries = visible_bookshops(filtered, bounds)
        pages = max(1, math.ceil(len(self.entries) / self.page_size))
        if self.page > pages:
            self.page = pages

    def current_page(self) -> Page:
        start = (self.page - 1) * self.page_size
        return Page(
            items=self.entries[start:start + self.page_size],
            page=self.page,
            page_size=self.page_size,
            total=len(self.entries),
        )

    def go_to_page(self, page: int) -> Page:
        pages = max(1, math.ceil(len(self.entries) / self.page_size))
        self.page = max(1, min(page, pages))
        return self.current_page()

    def select(self, bookshop_id: Optional[int]) -> None:
        self.selected_id = bookshop_id

    def is_selected(self, record: Any) -> bool:
        return self.selected_id is not None and get_field(record, "id") == self.selected_id

    def page_of(self, bookshop_id: int) -> Optional[int]:
        """Page number holding a bookshop, or None when it is not listed."""
        for i, record in enumerate(self.entries):
            if get_field(record, "id") == bookshop_id:
                return i // self.page_size + 1
        return None

    def toggle_collapsed(self) -> bool:
        self.collapsed = not self.collapsed
        return self.collapsed

    @property
    def empty_message(self) -> Optional[str]:
        """Message for the Empty state; None while there are entries."""
        if self.entries:
            return None
        return f"{EMPTY_TITLE}. {EMPTY_HINT}."
