"""
Map viewport controller.

Owns the camera (center, zoom) and the visible bounds for a viewport of
width x height pixels in Web Mercator with 512-px tiles. Camera updates
during a drag are recorded immediately while the expensive recompute
(re-clustering, list re-sync) goes through a debouncer; a move-end
recomputes at once.
"""
import asyncio
import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Sequence

from indiebookshop.directory.clustering import (
    EXTENT,
    ClusterIndex,
    ClusterNotFoundError,
    Marker,
    build_index,
    lat_y,
    lng_x,
    x_lng,
    y_lat,
)
from indiebookshop.directory.filters import points_from_bookshops

logger = logging.getLogger(__name__)

TILE_SIZE = EXTENT
DEFAULT_CENTER = (-98.5795, 39.8283)
DEFAULT_ZOOM = 4.0
TRANSITION_DURATION_MS = 1000
GEOLOCATION_ZOOM = 12
MAX_AUTO_ZOOM = 14
MIN_MAP_ZOOM = 0
MINIMUM_BOUNDS_SPAN = 0.5
BOUNDS_PADDING_PERCENT = 0.1
MAX_MERCATOR_LAT = 85.0511

PADDING_TOP = 100
PADDING_BOTTOM = 100
PADDING_RIGHT = 100
PADDING_LEFT_EXPANDED = 450
PADDING_LEFT_COLLAPSED = 100
# padding may take at most this share of each viewport axis
MAX_PADDING_SHARE = 0.5


@dataclass(frozen=True)
class Bounds:
    west: float
    south: float
    east: float
    north: float

    def contains(self, lng: float, lat: float) -> bool:
        if not (self.south <= lat <= self.north):
            return False
        if self.east - self.west >= 360:
            return True
        # the view may extend past +/-180 at low zoom
        return any(self.west <= lng + shift <= self.east for shift in (-360.0, 0.0, 360.0))

    def as_bbox(self):
        return (self.west, self.south, self.east, self.north)


@dataclass(frozen=True)
class Viewport:
    """Camera state plus the pixel size of the map element."""
    center_lng: float = DEFAULT_CENTER[0]
    center_lat: float = DEFAULT_CENTER[1]
    zoom: float = DEFAULT_ZOOM
    width: int = 1200
    height: int = 800
    transition_ms: int = 0

    @property
    def world_size(self) -> float:
        return TILE_SIZE * 2 ** self.zoom

    @property
    def bounds(self) -> Bounds:
        world = self.world_size
        cx = lng_x(self.center_lng) * world
        cy = lat_y(self.center_lat) * world
        half_w = self.width / 2.0
        half_h = self.height / 2.0
        return Bounds(
            west=x_lng((cx - half_w) / world),
            south=y_lat((cy + half_h) / world),
            east=x_lng((cx + half_w) / world),
            north=y_lat((cy - half_h) / world),
        )

    def to_dict(self) -> Dict[str, Any]:
        b = self.bounds
        return {
            "longitude": self.center_lng,
            "latitude": self.center_lat,
            "zoom": self.zoom,
            "transitionDuration": self.transition_ms,
            "bounds": {"west": b.west, "south": b.south, "east": b.east, "north": b.north},
        }


@dataclass(frozen=True)
class Padding:
    top: float
    bottom: float
    left: float
    right: float


def fit_padding(panel_collapsed: bool) -> Padding:
    return Padding(
        top=PADDING_TOP,
        bottom=PADDING_BOTTOM,
        left=PADDING_LEFT_COLLAPSED if panel_collapsed else PADDING_LEFT_EXPANDED,
        right=PADDING_RIGHT,
    )


def _scale_pair(first: float, second: float, size: float):
    limit = size * MAX_PADDING_SHARE
    if first + second <= limit:
        return first, second
    scale = limit / (first + second)
    return first * scale, second * scale


def padding_for_size(padding: Padding, width: float, height: float) -> Padding:
    """
    Shrink padding proportionally on any axis where it would take more
    than MAX_PADDING_SHARE of the viewport (phone-sized maps).
    """
    left, right = _scale_pair(padding.left, padding.right, width)
    top, bottom = _scale_pair(padding.top, padding.bottom, height)
    return Padding(top=top, bottom=bottom, left=left, right=right)


def _centering_offset(near: float, far: float, size: float, box: float) -> float:
    """Shift toward the padded area, never by more than the slack around the box."""
    slack = max(0.0, (size - box) / 2.0)
    return max(-slack, min(slack, (near - far) / 2.0))


def _clamp_lat(lat: float) -> float:
    return max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, lat))


def fit_bounds(
    coordinates: Sequence[Sequence[float]],
    width: int,
    height: int,
    panel_collapsed: bool = False,
    max_zoom: float = MAX_AUTO_ZOOM,
) -> Optional[Viewport]:
    """
    Viewport that shows every (lng, lat) pair inside the padded area.

    The bounding box is widened by BOUNDS_PADDING_PERCENT and then to at
    least MINIMUM_BOUNDS_SPAN degrees per axis, so one point (or several
    coincident points) yields a finite zoom.

    Returns:
        The fitted viewport, or None when there are no coordinates
    """
    if not coordinates:
        return None

    lngs = [c[0] for c in coordinates]
    lats = [c[1] for c in coordinates]
    west, east = min(lngs), max(lngs)
    south, north = min(lats), max(lats)

    pad_lng = (east - west) * BOUNDS_PADDING_PERCENT
    pad_lat = (north - south) * BOUNDS_PADDING_PERCENT
    west, east = west - pad_lng, east + pad_lng
    south, north = south - pad_lat, north + pad_lat

    if east - west < MINIMUM_BOUNDS_SPAN:
        mid = (east + west) / 2.0
        west, east = mid - MINIMUM_BOUNDS_SPAN / 2.0, mid + MINIMUM_BOUNDS_SPAN / 2.0
    if north - south < MINIMUM_BOUNDS_SPAN:
        mid = (north + south) / 2.0
        south, north = mid - MINIMUM_BOUNDS_SPAN / 2.0, mid + MINIMUM_BOUNDS_SPAN / 2.0
    south, north = _clamp_lat(south), _clamp_lat(north)

    padding = padding_for_size(fit_padding(panel_collapsed), width, height)
    avail_w = max(1.0, width - padding.left - padding.right)
    avail_h = max(1.0, height - padding.top - padding.bottom)

    # spans in unit mercator coordinates, never zero after the epsilon above
    dx = lng_x(east) - lng_x(west)
    dy = lat_y(south) - lat_y(north)
    zoom = min(
        math.log2(avail_w / (TILE_SIZE * dx)),
        math.log2(avail_h / (TILE_SIZE * dy)),
    )
    zoom = max(MIN_MAP_ZOOM, min(zoom, max_zoom))

    # place the box center at the center of the padded area
    world = TILE_SIZE * 2 ** zoom
    box_cx = (lng_x(west) + lng_x(east)) / 2.0 * world
    box_cy = (lat_y(north) + lat_y(south)) / 2.0 * world
    box_w = dx * world
    box_h = dy * world
    cx = box_cx - _centering_offset(padding.left, padding.right, width, box_w)
    cy = box_cy - _centering_offset(padding.top, padding.bottom, height, box_h)

    return Viewport(
        center_lng=x_lng(cx / world),
        center_lat=y_lat(cy / world),
        zoom=zoom,
        width=width,
        height=height,
        transition_ms=TRANSITION_DURATION_MS,
    )


# =============================================================================
# Debouncing
# =============================================================================


class Debouncer:
    """
    Run a callback once activity has paused for `delay` seconds.

    Each call() cancels the pending run. Outside a running event loop the
    callback runs immediately.
    """

    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def call(self) -> None:
        self.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.callback()
            return
        self._task = loop.create_task(self._run())

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        self._task = None
        self.callback()

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def flush(self) -> None:
        """Run a pending callback now."""
        if self.pending:
            self.cancel()
            self.callback()


# =============================================================================
# Controller
# =============================================================================


class MapViewportController:
    """
    Camera, cluster index and visible markers for the directory map.

    Bounds stay None until the map reports its first camera (on_load or a
    move); until then no markers are produced and the list shows the whole
    filtered set.
    """

    def __init__(
        self,
        width: int = 1200,
        height: int = 800,
        debounce_seconds: float = 0.15,
        on_recompute: Optional[Callable[["MapViewportController"], None]] = None,
    ):
        self.viewport = Viewport(width=width, height=height)
        self.bounds: Optional[Bounds] = None
        self.panel_collapsed = False
        self.index: Optional[ClusterIndex] = None
        self.markers: List[Marker] = []
        self.on_recompute = on_recompute
        self._debouncer = Debouncer(debounce_seconds, self._recompute)

    @property
    def recompute_pending(self) -> bool:
        return self._debouncer.pending

    def _recompute(self) -> None:
        self.bounds = self.viewport.bounds
        if self.index is None:
            self.markers = []
        else:
            self.markers = self.index.get_clusters(self.bounds.as_bbox(), self.viewport.zoom)
        if self.on_recompute is not None:
            self.on_recompute(self)

    def _move_camera(self, viewport: Viewport) -> Viewport:
        self.viewport = viewport
        if self.bounds is not None:
            self._debouncer.cancel()
            self._recompute()
        return viewport

    def on_load(self) -> None:
        """The map finished loading: bounds become known."""
        self._recompute()

    def resize(self, width: int, height: int) -> None:
        self.viewport = replace(self.viewport, width=width, height=height)
        if self.bounds is not None:
            self._recompute()

    def on_move(self, viewport: Viewport) -> None:
        """Record an intermediate camera; recompute once movement pauses."""
        self.viewport = viewport
        self._debouncer.call()

    def on_move_end(self, viewport: Viewport) -> None:
        """Record the final camera and recompute immediately."""
        self._debouncer.cancel()
        self.viewport = viewport
        self._recompute()

    def set_panel_collapsed(self, collapsed: bool) -> None:
        self.panel_collapsed = collapsed

    def on_filter_change(self, filtered: Sequence[Any]) -> Optional[Viewport]:
        """
        Re-index the clusterer for a new filtered set and fit the camera to it.

        Returns:
            The fitted viewport, or None when no bookshop has usable coordinates
        """
        points = points_from_bookshops(filtered)
        self.index = build_index(points)
        fitted = self.fit_to_results(points)
        if fitted is None and self.bounds is not None:
            self._recompute()
        return fitted

    def fit_to_results(self, points: Sequence[Dict[str, Any]]) -> Optional[Viewport]:
        """Move the camera so every point is visible; no change for an empty set."""
        coordinates = [(p["longitude"], p["latitude"]) for p in points]
        fitted = fit_bounds(
            coordinates,
            self.viewport.width,
            self.viewport.height,
            panel_collapsed=self.panel_collapsed,
        )
        if fitted is None:
            return None
        logger.debug(f"Fitting {len(coordinates)} points at zoom {fitted.zoom:.2f}")
        return self._move_camera(fitted)

    def click_cluster(self, cluster_id: int) -> Optional[Viewport]:
        """
        Zoom to the level where a cluster splits, centred on it.

        An id that is not part of the current index is logged and ignored.
        """
        if self.index is None:
            logger.warning(f"Cluster {cluster_id} clicked with no cluster index")
            return None
        try:
            zoom = self.index.get_cluster_expansion_zoom(cluster_id)
            cluster = self.index.get_cluster(cluster_id)
        except ClusterNotFoundError as e:
            logger.warning(f"Ignoring cluster click: {e}")
            return None
        return self.center_on(cluster.center_lng, cluster.center_lat, zoom=zoom)

    def center_on(self, lng: float, lat: float, zoom: Optional[float] = None) -> Viewport:
        """Animate the camera to a point, keeping the zoom unless one is given."""
        viewport = replace(
            self.viewport,
            center_lng=lng,
            center_lat=lat,
            zoom=self.viewport.zoom if zoom is None else zoom,
            transition_ms=TRANSITION_DURATION_MS,
        )
        return self._move_camera(viewport)
