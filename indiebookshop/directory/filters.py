"""
Filter engine for the directory.

Pure functions over an in-memory list of bookshops. Records may be ORM
rows, BookshopSummary models or plain dicts (snake_case or camelCase
keys); anything missing or malformed is coerced rather than raised on.
"""
import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from indiebookshop.core.schemas import LocationOption

logger = logging.getLogger(__name__)

ALL = "all"


@dataclass(frozen=True)
class FilterState:
    """
    Active user-selected predicates.

    Location values are stored as given; "all" and "" both mean
    "no predicate". feature_ids is always a sorted, de-duplicated tuple.

    city and county match on name alone, so {city: "Portland"} without a
    state covers Portland OR and Portland ME. Picking a LocationOption
    should go through with_location(), which sets the state as well.
    """
    state: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    feature_ids: Tuple[int, ...] = field(default_factory=tuple)
    search: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "state", _clean_location(self.state))
        object.__setattr__(self, "city", _clean_location(self.city))
        object.__setattr__(self, "county", _clean_location(self.county))
        object.__setattr__(self, "feature_ids", _clean_feature_ids(self.feature_ids))
        search = self.search.strip() if isinstance(self.search, str) else None
        object.__setattr__(self, "search", search or None)

    @property
    def is_empty(self) -> bool:
        return not (self.state or self.city or self.county or self.feature_ids or self.search)

    def with_location(self, kind: str, option: Optional[LocationOption]) -> "FilterState":
        """
        Select a city or county option together with its state.

        Passing None clears that location (the state is kept).
        """
        if kind not in ("city", "county"):
            raise ValueError(f"Unknown location kind: {kind}")
        if option is None:
            return replace(self, **{kind: None})
        return replace(self, state=option.state, **{kind: option.name})


def _clean_location(value) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value or value.lower() == ALL:
        return None
    return value


def _clean_feature_ids(values) -> Tuple[int, ...]:
    if values is None or isinstance(values, (str, bytes)):
        return ()
    ids = set()
    for value in values:
        if isinstance(value, bool):
            continue
        try:
            ids.add(int(value))
        except (TypeError, ValueError):
            continue
    return tuple(sorted(ids))


# =============================================================================
# Record access
# =============================================================================


_CAMEL_KEYS = {
    "feature_ids": "featureIds",
    "image_url": "imageUrl",
}


def get_field(record: Any, name: str, default=None):
    """Read a field from an ORM row, pydantic model or dict."""
    if record is None:
        return default
    if isinstance(record, dict):
        if name in record:
            return record[name]
        camel = _CAMEL_KEYS.get(name)
        if camel and camel in record:
            return record[camel]
        return default
    return getattr(record, name, default)


def _text(record: Any, name: str) -> str:
    value = get_field(record, name)
    return value if isinstance(value, str) else ""


def record_feature_ids(record: Any) -> List[int]:
    """Feature ids of a record; missing or malformed arrays mean none."""
    return list(_clean_feature_ids(get_field(record, "feature_ids")))


def is_live(record: Any) -> bool:
    return get_field(record, "live") is True


def parse_coordinates(record: Any) -> Optional[Tuple[float, float]]:
    """
    Return (lng, lat) for a record, or None when its coordinates are
    missing, non-numeric, non-finite or outside the valid range.
    """
    try:
        lat = float(get_field(record, "latitude"))
        lng = float(get_field(record, "longitude"))
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
        return None
    return lng, lat


# =============================================================================
# Filtering
# =============================================================================


def _matches(record: Any, state: FilterState, wanted_features: frozenset) -> bool:
    if not is_live(record):
        return False

    if state.state and _text(record, "state").lower() != state.state.lower():
        return False
    if state.city and _text(record, "city").lower() != state.city.lower():
        return False
    if state.county and _text(record, "county").lower() != state.county.lower():
        return False

    if wanted_features and not wanted_features.intersection(record_feature_ids(record)):
        return False

    if state.search:
        needle = state.search.lower()
        haystacks = (_text(record, "name"), _text(record, "city"), _text(record, "state"))
        if not any(needle in h.lower() for h in haystacks):
            return False

    return True


def apply_filters(bookshops: Optional[Iterable[Any]], state: Optional[FilterState] = None) -> List[Any]:
    """
    Return the live bookshops matching every active predicate.

    Predicates combine with AND; the feature set matches when a bookshop
    has at least one of the selected ids. Input order is preserved.

    Args:
        bookshops: Records to filter (None is treated as empty)
        state: Active filters (None means no filters)

    Returns:
        Matching records, in input order
    """
    if not bookshops:
        return []
    state = state or FilterState()
    wanted = frozenset(state.feature_ids)
    return [b for b in bookshops if b is not None and _matches(b, state, wanted)]


def active_filter_count(state: FilterState) -> int:
    """Number of active location predicates (state, city, county)."""
    return sum(1 for value in (state.state, state.city, state.county) if value)


def list_states(bookshops: Optional[Iterable[Any]]) -> List[str]:
    """Sorted distinct states among live bookshops."""
    states = {_text(b, "state") for b in (bookshops or []) if is_live(b)}
    states.discard("")
    return sorted(states)


def location_options(
    bookshops: Optional[Iterable[Any]],
    kind: str,
    state: Optional[str] = None,
) -> List[LocationOption]:
    """
    Distinct (name, state) pairs for cities or counties of live bookshops.

    Args:
        bookshops: Records to scan
        kind: "city" or "county"
        state: Restrict to this state (case-insensitive); None or "all" for every state

    Returns:
        Options sorted by name, then state
    """
    if kind not in ("city", "county"):
        raise ValueError(f"Unknown location kind: {kind}")

    state = _clean_location(state)
    pairs = set()
    for record in bookshops or []:
        if not is_live(record):
            continue
        name = _text(record, kind).strip()
        record_state = _text(record, "state").strip()
        if not name or not record_state:
            continue
        if state and record_state.lower() != state.lower():
            continue
        pairs.add((name, record_state))

    return [LocationOption(name=name, state=st) for name, st in sorted(pairs)]


def points_from_bookshops(bookshops: Sequence[Any]) -> List[dict]:
    """
    Clusterer input for records with usable coordinates.

    Records whose coordinates do not parse are skipped here (they still
    appear in the list panel).
    """
    points = []
    skipped = 0
    for record in bookshops:
        coords = parse_coordinates(record)
        if coords is None:
            skipped += 1
            continue
        points.append({"id": get_field(record, "id"), "longitude": coords[0], "latitude": coords[1]})
    if skipped:
        logger.debug(f"Skipped {skipped} bookshops with unusable coordinates")
    return points
