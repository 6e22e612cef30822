"""
Client for the directory read API.

Used by the directory controller to fetch the bookshop list, a single
bookshop's detail record and the map configuration.
"""
import logging
from typing import Any, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from indiebookshop.core.api_errors import ValidationError
from indiebookshop.core.http_client import BaseAPIClient
from indiebookshop.core.schemas import (
    BookshopDetail,
    BookshopSummary,
    EventOut,
    FeatureOut,
    MapConfig,
)
from indiebookshop.directory.filters import FilterState
from indiebookshop.directory.query_params import to_query_params

logger = logging.getLogger(__name__)


class DirectoryAPIClient(BaseAPIClient):
    """
    Async client for /api/v1.

    Example:
        async with DirectoryAPIClient("http://localhost:8000/api/v1") as client:
            bookshops = await client.list_bookshops()
    """

    SOURCE_NAME = "directory"

    def _expect_list(self, data: Any, resource_id: str) -> List[Any]:
        if not isinstance(data, list):
            raise ValidationError(f"Expected a JSON array for {resource_id}")
        return data

    def _validate(self, model, data: Any, resource_id: str):
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Malformed response for {resource_id}: {e.error_count()} errors"
            ) from e

    async def list_bookshops(self, filters: Optional[FilterState] = None) -> List[BookshopSummary]:
        """
        Fetch live bookshops, optionally filtered server-side.

        Records that do not match the summary schema are skipped and logged.
        """
        params = to_query_params(filters) if filters else None
        data = self._expect_list(
            await self.get("bookshops", params=params, resource_id="bookshops"),
            "bookshops",
        )

        bookshops = []
        for item in data:
            try:
                bookshops.append(BookshopSummary.model_validate(item))
            except PydanticValidationError as e:
                logger.warning(f"Skipping malformed bookshop record: {e.error_count()} errors")
        logger.info(f"Fetched {len(bookshops)} bookshops")
        return bookshops

    async def get_bookshop(self, id_or_slug: Union[int, str]) -> BookshopDetail:
        """Fetch the full record for one bookshop (NotFoundError when absent)."""
        resource_id = f"bookshop {id_or_slug}"
        data = await self.get(f"bookshops/{id_or_slug}", resource_id=resource_id)
        return self._validate(BookshopDetail, data, resource_id)

    async def get_map_config(self) -> MapConfig:
        data = await self.get("config", resource_id="config")
        return self._validate(MapConfig, data, "config")

    async def list_features(self) -> List[FeatureOut]:
        data = self._expect_list(await self.get("features", resource_id="features"), "features")
        return [self._validate(FeatureOut, item, "features") for item in data]

    async def list_events(self, bookshop_id: int) -> List[EventOut]:
        resource_id = f"events for bookshop {bookshop_id}"
        data = self._expect_list(
            await self.get(f"bookshops/{bookshop_id}/events", resource_id=resource_id),
            resource_id,
        )
        return [self._validate(EventOut, item, resource_id) for item in data]
