"""
Round-trip FilterState through the URL query string.

Keys are emitted in a fixed order (state, city, county, features,
search). Unknown keys, empty values, the "all" sentinel and non-integer
feature ids are dropped, so serialize(parse(qs)) == normalize(qs).
"""
from typing import Dict, List, Mapping, Optional, Union
from urllib.parse import parse_qsl, urlencode

from indiebookshop.directory.filters import FilterState

QUERY_KEYS = ("state", "city", "county", "features", "search")

QueryInput = Union[str, Mapping[str, str], None]


def _pairs(query: QueryInput) -> Dict[str, str]:
    """First value per known key, from a raw query string or a mapping."""
    if query is None:
        return {}
    if isinstance(query, str):
        items = parse_qsl(query.lstrip("?"), keep_blank_values=True)
    else:
        items = list(query.items())

    values: Dict[str, str] = {}
    for key, value in items:
        if key in QUERY_KEYS and key not in values and isinstance(value, str):
            values[key] = value
    return values


def _parse_feature_list(raw: Optional[str]) -> List[int]:
    if not raw:
        return []
    ids = []
    for part in raw.split(","):
        try:
            ids.append(int(part.strip()))
        except ValueError:
            continue
    return ids


def parse_query(query: QueryInput) -> FilterState:
    """Build a FilterState from a query string ("?state=CA&features=3,1") or mapping."""
    values = _pairs(query)
    return FilterState(
        state=values.get("state"),
        city=values.get("city"),
        county=values.get("county"),
        feature_ids=_parse_feature_list(values.get("features")),
        search=values.get("search"),
    )


def to_query_params(state: FilterState) -> Dict[str, str]:
    """Active filters as an ordered dict of query parameters."""
    params: Dict[str, str] = {}
    if state.state:
        params["state"] = state.state
    if state.city:
        params["city"] = state.city
    if state.county:
        params["county"] = state.county
    if state.feature_ids:
        params["features"] = ",".join(str(i) for i in state.feature_ids)
    if state.search:
        params["search"] = state.search
    return params


def serialize_query(state: FilterState) -> str:
    """Query string (without the leading '?') for a FilterState."""
    return urlencode(to_query_params(state))


def normalize_query(query: QueryInput) -> str:
    """Canonical form of a query string."""
    return serialize_query(parse_query(query))
