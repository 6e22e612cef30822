"""
Unit tests for indiebookshop/core/http_client.py and the directory client.

Requests go through httpx.MockTransport; backoff sleeps are patched out.
"""
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from indiebookshop.core.api_errors import (
    ConfigurationError,
    FatalError,
    NotFoundError,
    RateLimitError,
    RetryableError,
    ValidationError,
    classify_http_error,
    error_message,
)
from indiebookshop.core.http_client import BaseAPIClient
from indiebookshop.directory.client import DirectoryAPIClient
from indiebookshop.directory.filters import FilterState

BASE_URL = "http://directory.test/api/v1"


def sequence_transport(*responses):
    """Transport returning the given responses (or raising exceptions) in order."""
    calls = []
    queue = list(responses)

    def handler(request):
        calls.append(request)
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    return httpx.MockTransport(handler), calls


# =============================================================================
# Error classification
# =============================================================================


class TestClassifyHttpError:
    """Tests for mapping status codes to error types."""

    @pytest.mark.unit
    @pytest.mark.parametrize("status,error_type,retryable", [
        (400, ValidationError, False),
        (404, NotFoundError, False),
        (403, FatalError, False),
        (422, ValidationError, False),
        (429, RateLimitError, True),
        (500, RetryableError, True),
        (503, RetryableError, True),
        (401, FatalError, False),
        (418, FatalError, False),
    ])
    def test_status_mapping(self, status, error_type, retryable):
        error = classify_http_error(status, "body")
        assert isinstance(error, error_type)
        assert error.retryable is retryable

    @pytest.mark.unit
    def test_not_found_names_the_resource(self):
        error = classify_http_error(404, '{"detail": "Bookshop not found"}', resource="bookshop 42")
        assert isinstance(error, NotFoundError)
        assert error.resource == "bookshop 42"
        assert str(error) == "bookshop 42: Bookshop not found (HTTP 404)"

    @pytest.mark.unit
    def test_rate_limiter_response(self):
        error = classify_http_error(
            429,
            '{"message": "Too many requests from this IP, please try again later."}',
            headers={"Retry-After": "42", "X-RateLimit-Limit": "300"},
        )
        assert isinstance(error, RateLimitError)
        assert error.retry_after == 42
        assert error.limit == 300
        assert error.message.startswith("Too many requests from this IP")

    @pytest.mark.unit
    def test_rate_limit_without_headers_uses_default(self):
        error = classify_http_error(429, "", headers={"Retry-After": "soon"})
        assert error.retry_after == RateLimitError.DEFAULT_RETRY_AFTER
        assert error.limit is None

    @pytest.mark.unit
    @pytest.mark.parametrize("body,message", [
        ('{"detail": "Bookshop not found"}', "Bookshop not found"),
        ('{"message": "slow down"}', "slow down"),
        (
            '{"detail": [{"loc": ["query", "width"], "msg": "Input should be greater than or equal to 1"}]}',
            "width: Input should be greater than or equal to 1",
        ),
        ("<html>Bad Gateway</html>", "<html>Bad Gateway</html>"),
        ("", ""),
    ])
    def test_error_message(self, body, message):
        assert error_message(body) == message


# =============================================================================
# BaseAPIClient
# =============================================================================


class TestBaseAPIClient:
    """Tests for retry and error handling."""

    @pytest.mark.unit
    def test_base_url_required(self):
        with pytest.raises(ConfigurationError):
            BaseAPIClient("")

    @pytest.mark.unit
    def test_backoff_grows_and_is_capped(self):
        client = BaseAPIClient(BASE_URL, base_delay=1.0, backoff_factor=2.0)
        with patch("indiebookshop.core.http_client.random.random", return_value=0.5):
            assert client._backoff_delay(0) == 1.0
            assert client._backoff_delay(3) == 8.0
            assert client._backoff_delay(20) == BaseAPIClient.DEFAULT_MAX_BACKOFF

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_server_error_is_retried(self):
        transport, calls = sequence_transport(
            httpx.Response(503, text="busy"),
            httpx.Response(200, json={"ok": True}),
        )
        client = BaseAPIClient(BASE_URL, max_retries=3, transport=transport)
        with patch.object(client, "_backoff", new_callable=AsyncMock) as backoff:
            assert await client.get("bookshops") == {"ok": True}
        assert len(calls) == 2
        backoff.assert_awaited_once_with(0)
        await client.close()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_network_error_exhausts_retries(self):
        transport, calls = sequence_transport(
            httpx.ConnectError("refused"),
            httpx.ConnectError("refused"),
        )
        client = BaseAPIClient(BASE_URL, max_retries=2, transport=transport)
        with patch.object(client, "_backoff", new_callable=AsyncMock):
            with pytest.raises(RetryableError):
                await client.get("bookshops")
        assert len(calls) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self):
        transport, calls = sequence_transport(httpx.Response(404, json={"detail": "nope"}))
        client = BaseAPIClient(BASE_URL, max_retries=3, transport=transport)
        with pytest.raises(NotFoundError):
            await client.get("bookshops/9")
        assert len(calls) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rate_limit_honours_retry_after(self):
        transport, calls = sequence_transport(
            httpx.Response(429, headers={"Retry-After": "7"}, json={"message": "slow down"}),
            httpx.Response(200, json=[]),
        )
        client = BaseAPIClient(BASE_URL, max_retries=2, transport=transport)
        with patch("indiebookshop.core.http_client.asyncio.sleep", new_callable=AsyncMock) as sleep:
            assert await client.get("bookshops") == []
        sleep.assert_awaited_once_with(7)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_json(self):
        transport, _ = sequence_transport(httpx.Response(200, text="<html>oops</html>"))
        client = BaseAPIClient(BASE_URL, transport=transport)
        with pytest.raises(ValidationError, match="Invalid JSON"):
            await client.get("bookshops")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_error_envelope_in_success_body(self):
        transport, _ = sequence_transport(httpx.Response(200, json={"error": {"message": "bad"}}))
        client = BaseAPIClient(BASE_URL, transport=transport)
        with pytest.raises(FatalError, match="bad"):
            await client.get("bookshops")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_none_params_dropped_and_url_joined(self):
        transport, calls = sequence_transport(httpx.Response(200, json=[]))
        client = BaseAPIClient(BASE_URL + "/", transport=transport)
        await client.get("/bookshops", params={"state": "CA", "city": None})
        assert str(calls[0].url) == "http://directory.test/api/v1/bookshops?state=CA"
        assert calls[0].headers["Accept"] == "application/json"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_context_manager_closes_client(self):
        transport, _ = sequence_transport(httpx.Response(200, json=[]))
        async with BaseAPIClient(BASE_URL, transport=transport) as client:
            await client.get("bookshops")
            assert client._client is not None
        assert client._client is None


# =============================================================================
# DirectoryAPIClient
# =============================================================================


class TestDirectoryAPIClient:
    """Tests for the typed directory client."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_list_bookshops_sends_filters(self, bookshop_factory):
        transport, calls = sequence_transport(
            httpx.Response(200, json=[bookshop_factory(id=1, state="CA")]),
        )
        client = DirectoryAPIClient(BASE_URL, transport=transport)
        shops = await client.list_bookshops(FilterState(state="CA", feature_ids=[2, 1]))

        assert [s.id for s in shops] == [1]
        assert calls[0].url.params["state"] == "CA"
        assert calls[0].url.params["features"] == "1,2"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_list_bookshops_rejects_non_array(self):
        transport, _ = sequence_transport(httpx.Response(200, json={"items": []}))
        client = DirectoryAPIClient(BASE_URL, transport=transport)
        with pytest.raises(ValidationError, match="JSON array"):
            await client.list_bookshops()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_get_bookshop_reads_camel_case(self, bookshop_factory):
        record = bookshop_factory(id=3, name="Book Passage")
        record["googleReviewCount"] = 420
        record["formattedPhone"] = "(415) 927-0960"
        transport, calls = sequence_transport(httpx.Response(200, json=record))
        client = DirectoryAPIClient(BASE_URL, transport=transport)

        detail = await client.get_bookshop("book-passage")
        assert calls[0].url.path == "/api/v1/bookshops/book-passage"
        assert detail.google_review_count == 420
        assert detail.formatted_phone == "(415) 927-0960"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_malformed_detail_is_a_validation_error(self):
        transport, _ = sequence_transport(httpx.Response(200, json={"id": "x"}))
        client = DirectoryAPIClient(BASE_URL, transport=transport)
        with pytest.raises(ValidationError, match="Malformed response"):
            await client.get_bookshop(1)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_map_config(self):
        transport, _ = sequence_transport(httpx.Response(200, json={"mapboxAccessToken": "pk.abc"}))
        client = DirectoryAPIClient(BASE_URL, transport=transport)
        config = await client.get_map_config()
        assert config.mapbox_access_token == "pk.abc"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_features_and_events(self):
        transport, calls = sequence_transport(
            httpx.Response(200, json=[{"id": 1, "name": "Cafe", "slug": "cafe", "keywords": ["coffee"]}]),
            httpx.Response(200, json=[{
                "id": 9, "bookshopId": 1, "title": "Poetry Night", "description": "",
                "date": "2030-05-01", "time": "7:00 PM",
            }]),
        )
        client = DirectoryAPIClient(BASE_URL, transport=transport)

        features = await client.list_features()
        events = await client.list_events(1)

        assert features[0].keywords == ["coffee"]
        assert events[0].bookshop_id == 1
        assert calls[1].url.path == "/api/v1/bookshops/1/events"
