"""
Directory session controller.

Wires the read API client, the filter engine, the map viewport (and its
cluster index) and the list panel into one object driven by asyncio.
Every async failure is caught where the call is made and turned into
state with a retry path; nothing is left to propagate.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from indiebookshop.core.api_errors import APIError
from indiebookshop.core.schemas import BookshopDetail, BookshopSummary, LocationOption
from indiebookshop.directory.client import DirectoryAPIClient
from indiebookshop.directory.filters import (
    FilterState,
    active_filter_count,
    apply_filters,
    get_field,
    parse_coordinates,
)
from indiebookshop.directory.list_panel import ListPanel, LoadState
from indiebookshop.directory.query_params import parse_query, serialize_query
from indiebookshop.directory.viewport import GEOLOCATION_ZOOM, MapViewportController, Viewport

logger = logging.getLogger(__name__)

MAPBOX_PUBLIC_TOKEN_PREFIX = "pk."
DEFAULT_GEOLOCATION_TIMEOUT = 10.0


class MapInitializationError(Exception):
    """The map cannot be shown (missing or unusable access token)."""
    pass


class GeolocationError(Exception):
    """
    A position request failed.

    reason is one of "denied", "unavailable" or "timeout".
    """

    def __init__(self, reason: str, message: Optional[str] = None):
        super().__init__(message or f"Geolocation failed: {reason}")
        self.reason = reason


# Returns (lng, lat) or raises GeolocationError
GeolocationProvider = Callable[[], Awaitable[Tuple[float, float]]]


@dataclass(frozen=True)
class Notification:
    type: str  # "success", "error" or "info"
    message: str


_GEOLOCATION_MESSAGES = {
    "denied": "Location access was denied. Enable it in your browser to find nearby bookshops.",
    "unavailable": "Your location is currently unavailable.",
    "timeout": "Finding your location took too long. Please try again.",
}


class DirectoryController:
    """
    State for one directory session.

    Attributes:
        state: Load state of the filtered set
        detail_state: Load state of the selected bookshop's detail record
        map_state: Load state of the map itself
        bookshops: Everything fetched from the API
        filtered: Result of the current filters
        query_string: Serialized filters, kept in sync on every change
    """

    def __init__(
        self,
        client: DirectoryAPIClient,
        viewport: Optional[MapViewportController] = None,
        list_panel: Optional[ListPanel] = None,
        filters: Optional[FilterState] = None,
    ):
        self.client = client
        self.viewport = viewport or MapViewportController()
        self.viewport.on_recompute = self._on_viewport_recompute
        self.list_panel = list_panel or ListPanel()

        self.filters = filters or FilterState()
        self.query_string = serialize_query(self.filters)

        self.bookshops: List[BookshopSummary] = []
        self.filtered: List[BookshopSummary] = []
        self.state = LoadState.IDLE
        self.error: Optional[str] = None

        self.selected_detail: Optional[BookshopDetail] = None
        self.detail_state = LoadState.IDLE
        self.detail_error: Optional[str] = None
        self._detail_request = 0

        self.map_state = LoadState.IDLE
        self.map_error: Optional[str] = None
        self.mapbox_token: Optional[str] = None

        self.notification: Optional[Notification] = None

    # =========================================================================
    # Loading
    # =========================================================================

    async def load(self) -> LoadState:
        """Fetch the bookshop list; ends in LOADED, EMPTY or ERROR."""
        self.state = LoadState.LOADING
        self.error = None
        try:
            self.bookshops = await self.client.list_bookshops()
        except APIError as e:
            logger.error(f"Failed to load bookshops: {e}")
            self.state = LoadState.ERROR
            self.error = "We couldn't load bookshops. Please try again."
            return self.state

        self._apply_filters()
        return self.state

    async def retry(self) -> LoadState:
        return await self.load()

    async def initialize_map(self) -> bool:
        """
        Fetch the map configuration and mark the map ready.

        A missing token or one that is not a public (pk.) token leaves the
        map in the ERROR state with a message; call again to retry.
        """
        self.map_state = LoadState.LOADING
        self.map_error = None
        try:
            config = await self.client.get_map_config()
            token = config.mapbox_access_token
            if not token:
                raise MapInitializationError("Map configuration is missing an access token")
            if not token.startswith(MAPBOX_PUBLIC_TOKEN_PREFIX):
                raise MapInitializationError("Map access token must be a public (pk.) token")
        except (APIError, MapInitializationError) as e:
            logger.error(f"Map initialization failed: {e}")
            self.map_state = LoadState.ERROR
            self.map_error = f"The map could not be loaded. {e}"
            return False

        self.mapbox_token = token
        self.map_state = LoadState.LOADED
        self.viewport.on_load()
        return True

    # =========================================================================
    # Filters
    # =========================================================================

    def _apply_filters(self) -> None:
        self.filtered = apply_filters(self.bookshops, self.filters)
        self.state = LoadState.LOADED if self.filtered else LoadState.EMPTY
        self.list_panel.state = self.state
        self.list_panel.page = 1

        self.viewport.on_filter_change(self.filtered)
        self.list_panel.sync(self.filtered, self.viewport.bounds)

        selected = self.list_panel.selected_id
        if selected is not None and not any(get_field(b, "id") == selected for b in self.filtered):
            logger.debug(f"Selected bookshop {selected} was filtered out")
            self.deselect()

    def _on_viewport_recompute(self, viewport: MapViewportController) -> None:
        self.list_panel.sync(self.filtered, viewport.bounds)

    def set_filters(self, filters: FilterState) -> None:
        self.filters = filters
        self.query_string = serialize_query(filters)
        if self.state not in (LoadState.IDLE, LoadState.LOADING, LoadState.ERROR):
            self._apply_filters()

    def set_filters_from_query(self, query: str) -> FilterState:
        filters = parse_query(query)
        self.set_filters(filters)
        return filters

    def select_location(self, kind: str, option: Optional[LocationOption]) -> FilterState:
        """Apply a city or county option; its state is selected with it."""
        filters = self.filters.with_location(kind, option)
        self.set_filters(filters)
        return filters

    def clear_filters(self) -> None:
        self.set_filters(FilterState())

    @property
    def active_filter_count(self) -> int:
        return active_filter_count(self.filters)

    @property
    def markers(self):
        return self.viewport.markers

    @property
    def empty_message(self) -> Optional[str]:
        if self.state != LoadState.EMPTY:
            return None
        return self.list_panel.empty_message

    # =========================================================================
    # Selection
    # =========================================================================

    def _find(self, bookshop_id: int) -> Optional[Any]:
        for record in self.filtered:
            if get_field(record, "id") == bookshop_id:
                return record
        return None

    async def select(self, bookshop_id: int) -> Optional[BookshopDetail]:
        """
        Select a bookshop, recenter the map on it and fetch its detail record.

        If the selection changes before the fetch resolves, the response is
        discarded and None is returned.
        """
        self.list_panel.select(bookshop_id)
        self._detail_request += 1
        request_id = self._detail_request

        record = self._find(bookshop_id)
        coords = parse_coordinates(record) if record is not None else None
        if coords is not None:
            self.viewport.center_on(coords[0], coords[1])

        self.selected_detail = None
        self.detail_error = None
        self.detail_state = LoadState.LOADING

        try:
            detail = await self.client.get_bookshop(bookshop_id)
        except APIError as e:
            if request_id != self._detail_request:
                return None
            logger.error(f"Failed to load bookshop {bookshop_id}: {e}")
            self.detail_state = LoadState.ERROR
            self.detail_error = "We couldn't load this bookshop. Please try again."
            return None

        if request_id != self._detail_request:
            logger.debug(f"Discarding stale detail response for bookshop {bookshop_id}")
            return None

        self.selected_detail = detail
        self.detail_state = LoadState.LOADED
        return detail

    async def select_from_map(self, bookshop_id: int) -> Optional[BookshopDetail]:
        """Marker click: expand the panel and page to the bookshop, then select."""
        if self.list_panel.collapsed:
            self.set_panel_collapsed(False)
        page = self.list_panel.page_of(bookshop_id)
        if page is not None:
            self.list_panel.go_to_page(page)
        return await self.select(bookshop_id)

    async def retry_detail(self) -> Optional[BookshopDetail]:
        if self.list_panel.selected_id is None:
            return None
        return await self.select(self.list_panel.selected_id)

    def deselect(self) -> None:
        self._detail_request += 1
        self.list_panel.select(None)
        self.selected_detail = None
        self.detail_error = None
        self.detail_state = LoadState.IDLE

    @property
    def selected_id(self) -> Optional[int]:
        return self.list_panel.selected_id

    # =========================================================================
    # Map interaction
    # =========================================================================

    def set_panel_collapsed(self, collapsed: bool) -> None:
        self.list_panel.collapsed = collapsed
        self.viewport.set_panel_collapsed(collapsed)

    def click_cluster(self, cluster_id: int) -> Optional[Viewport]:
        return self.viewport.click_cluster(cluster_id)

    async def locate(
        self,
        provider: GeolocationProvider,
        timeout: float = DEFAULT_GEOLOCATION_TIMEOUT,
    ) -> Optional[Viewport]:
        """
        Center the map on the user's position.

        Denial, unavailability and timeout all set an error notification.
        """
        self.notification = Notification(type="info", message="Finding your location...")
        try:
            lng, lat = await asyncio.wait_for(provider(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Geolocation timed out after {timeout}s")
            self.notification = Notification(type="error", message=_GEOLOCATION_MESSAGES["timeout"])
            return None
        except GeolocationError as e:
            logger.warning(f"Geolocation failed: {e.reason}")
            message = _GEOLOCATION_MESSAGES.get(e.reason, str(e))
            self.notification = Notification(type="error", message=message)
            return None

        self.notification = Notification(type="success", message="Showing bookshops near you")
        return self.viewport.center_on(lng, lat, zoom=GEOLOCATION_ZOOM)

    def dismiss_notification(self) -> None:
        self.notification = None
