"""
Unit tests for indiebookshop/directory/query_params.py
"""
import pytest

from indiebookshop.directory.filters import FilterState
from indiebookshop.directory.query_params import (
    normalize_query,
    parse_query,
    serialize_query,
    to_query_params,
)


class TestParseQuery:
    """Tests for reading filters from the URL."""

    @pytest.mark.unit
    def test_parses_every_key(self):
        state = parse_query("?state=CA&city=Oakland&county=Alameda&features=3,1&search=books")
        assert state == FilterState(
            state="CA", city="Oakland", county="Alameda", feature_ids=(1, 3), search="books"
        )

    @pytest.mark.unit
    def test_accepts_mapping(self):
        assert parse_query({"state": "OR", "features": "2"}) == FilterState(state="OR", feature_ids=[2])

    @pytest.mark.unit
    def test_none_and_empty_give_empty_state(self):
        assert parse_query(None).is_empty
        assert parse_query("").is_empty

    @pytest.mark.unit
    def test_unknown_keys_and_all_sentinel_dropped(self):
        state = parse_query("state=all&page=3&utm_source=x")
        assert state.is_empty

    @pytest.mark.unit
    def test_non_integer_features_skipped(self):
        state = parse_query("features=1,abc,,2.5, 4 ")
        assert state.feature_ids == (1, 4)

    @pytest.mark.unit
    def test_first_value_wins(self):
        assert parse_query("state=CA&state=OR").state == "CA"

    @pytest.mark.unit
    def test_percent_encoding_decoded(self):
        state = parse_query("city=San%20Francisco&search=caf%C3%A9")
        assert state.city == "San Francisco"
        assert state.search == "café"


class TestSerializeQuery:
    """Tests for writing filters back to the URL."""

    @pytest.mark.unit
    def test_fixed_key_order(self):
        state = FilterState(search="x", feature_ids=[2, 1], county="Marin", city="Corte Madera", state="CA")
        assert list(to_query_params(state)) == ["state", "city", "county", "features", "search"]
        assert serialize_query(state) == "state=CA&city=Corte+Madera&county=Marin&features=1%2C2&search=x"

    @pytest.mark.unit
    def test_empty_state_serializes_to_empty_string(self):
        assert serialize_query(FilterState()) == ""

    @pytest.mark.unit
    @pytest.mark.parametrize("raw,expected", [
        ("?features=3,1,3&state=CA", "state=CA&features=1%2C3"),
        ("state=all&city=&search=%20%20", ""),
        ("bogus=1&search=powell", "search=powell"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_query(raw) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", [
        "state=CA&city=Oakland",
        "features=2,1&search=used books&county=Multnomah",
        "state=all&zip=97201",
        "features=x,7",
        "",
    ])
    def test_parse_of_serialize_is_stable(self, raw):
        """serialize(parse(qs)) is already in normal form."""
        once = serialize_query(parse_query(raw))
        assert once == normalize_query(raw)
        assert serialize_query(parse_query(once)) == once
