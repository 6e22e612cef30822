"""
Hierarchical greedy point clustering for the directory map.

Points are projected to Web Mercator unit coordinates and clustered level
by level, from the leaf zoom down to MIN_ZOOM. At each level every
not-yet-claimed item absorbs its unclaimed neighbours within
RADIUS / (EXTENT * 2^zoom) into a cluster placed at their weighted
centroid. Neighbour lookups use a scipy cKDTree per level; viewport
range queries are numpy masks over the level's coordinate arrays.

Cluster ids encode where the cluster was created:
    id = (origin_index << 5) + origin_zoom + n_points
so they are only meaningful for the index that produced them.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.spatial import cKDTree

logger = logging.getLogger(__name__)

RADIUS = 60
EXTENT = 512
MIN_ZOOM = 0
MAX_ZOOM = 16  # at and above this zoom only leaves are shown
MIN_POINTS = 2
EXPANSION_MAX_ZOOM = 18


class ClusterNotFoundError(Exception):
    """Raised when a cluster id does not belong to the current index."""

    def __init__(self, cluster_id: int):
        super().__init__(f"No cluster with id {cluster_id}")
        self.cluster_id = cluster_id


@dataclass(frozen=True)
class ClusterMarker:
    cluster_id: int
    point_count: int
    center_lng: float
    center_lat: float
    is_cluster: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isCluster": True,
            "clusterId": self.cluster_id,
            "pointCount": self.point_count,
            "centerLng": self.center_lng,
            "centerLat": self.center_lat,
        }


@dataclass(frozen=True)
class LeafMarker:
    bookshop_id: Any
    lng: float
    lat: float
    is_cluster: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isCluster": False,
            "bookshopId": self.bookshop_id,
            "lng": self.lng,
            "lat": self.lat,
        }


Marker = Union[ClusterMarker, LeafMarker]


# =============================================================================
# Projection
# =============================================================================


def lng_x(lng: float) -> float:
    return lng / 360.0 + 0.5


def lat_y(lat: float) -> float:
    sin = math.sin(lat * math.pi / 180.0)
    if sin >= 1.0:
        return 0.0
    if sin <= -1.0:
        return 1.0
    y = 0.5 - 0.25 * math.log((1 + sin) / (1 - sin)) / math.pi
    return min(max(y, 0.0), 1.0)


def x_lng(x: float) -> float:
    return (x - 0.5) * 360.0


def y_lat(y: float) -> float:
    y2 = (180.0 - y * 360.0) * math.pi / 180.0
    return 360.0 * math.atan(math.exp(y2)) / math.pi - 90.0


# =============================================================================
# Index
# =============================================================================


class _Level:
    """Items present at one zoom level, as parallel numpy arrays."""

    def __init__(self, xs, ys, ids, counts):
        self.x = np.asarray(xs, dtype=np.float64)
        self.y = np.asarray(ys, dtype=np.float64)
        # point index for leaves, cluster id for clusters
        self.ids = np.asarray(ids, dtype=np.int64)
        self.counts = np.asarray(counts, dtype=np.int64)
        # filled in while the next lower level is built
        self.claimed_at = np.full(len(self.x), np.inf)
        self.parents = np.full(len(self.x), -1, dtype=np.int64)
        self.tree = cKDTree(np.column_stack((self.x, self.y))) if len(self.x) else None

    def __len__(self) -> int:
        return len(self.x)

    def within(self, x: float, y: float, r: float) -> List[int]:
        if self.tree is None:
            return []
        return self.tree.query_ball_point((x, y), r)

    def range(self, min_x: float, min_y: float, max_x: float, max_y: float) -> np.ndarray:
        mask = (self.x >= min_x) & (self.x <= max_x) & (self.y >= min_y) & (self.y <= max_y)
        return np.nonzero(mask)[0]


class ClusterIndex:
    """
    Cluster index over one set of points.

    Rebuilt from scratch whenever the point set changes; an empty point
    set is not indexed at all (callers keep None instead).

    Args:
        points: Items with "id", "longitude" and "latitude" keys
    """

    def __init__(
        self,
        points: Sequence[Dict[str, Any]],
        radius: int = RADIUS,
        extent: int = EXTENT,
        min_zoom: int = MIN_ZOOM,
        max_zoom: int = MAX_ZOOM,
        min_points: int = MIN_POINTS,
    ):
        if not points:
            raise ValueError("Cannot build a cluster index over an empty point set")

        self.radius = radius
        self.extent = extent
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.min_points = min_points

        self.point_ids = [p["id"] for p in points]
        self.lngs = np.array([float(p["longitude"]) for p in points])
        self.lats = np.array([float(p["latitude"]) for p in points])
        n = len(points)

        self.levels: Dict[int, _Level] = {}
        level = _Level(
            [lng_x(v) for v in self.lngs],
            [lat_y(v) for v in self.lats],
            np.arange(n),
            np.ones(n, dtype=np.int64),
        )
        self.levels[max_zoom] = level

        for zoom in range(max_zoom - 1, min_zoom - 1, -1):
            level = self._cluster(level, zoom)
            self.levels[zoom] = level

        logger.debug(
            f"Indexed {n} points: {len(self.levels[min_zoom])} markers at zoom {min_zoom}"
        )

    @property
    def num_points(self) -> int:
        return len(self.point_ids)

    def _cluster(self, level: _Level, zoom: int) -> _Level:
        r = self.radius / (self.extent * 2 ** zoom)
        n_points = self.num_points
        xs, ys, ids, counts = [], [], [], []

        for i in range(len(level)):
            if level.claimed_at[i] <= zoom:
                continue
            level.claimed_at[i] = zoom

            x, y = level.x[i], level.y[i]
            neighbors = level.within(x, y, r)
            origin_count = int(level.counts[i])
            total = origin_count
            for j in neighbors:
                if level.claimed_at[j] > zoom:
                    total += int(level.counts[j])

            if total > origin_count and total >= self.min_points:
                wx = x * origin_count
                wy = y * origin_count
                cluster_id = (i << 5) + (zoom + 1) + n_points
                for j in neighbors:
                    if level.claimed_at[j] <= zoom:
                        continue
                    level.claimed_at[j] = zoom
                    count = int(level.counts[j])
                    wx += level.x[j] * count
                    wy += level.y[j] * count
                    level.parents[j] = cluster_id
                level.parents[i] = cluster_id
                xs.append(wx / total)
                ys.append(wy / total)
                ids.append(cluster_id)
                counts.append(total)
            else:
                xs.append(x)
                ys.append(y)
                ids.append(level.ids[i])
                counts.append(origin_count)
                if total > 1:
                    # neighbours too few to form a cluster carry over unchanged
                    for j in neighbors:
                        if level.claimed_at[j] <= zoom:
                            continue
                        level.claimed_at[j] = zoom
                        xs.append(level.x[j])
                        ys.append(level.y[j])
                        ids.append(level.ids[j])
                        counts.append(level.counts[j])

        return _Level(xs, ys, ids, counts)

    def _limit_zoom(self, zoom: float) -> int:
        return max(self.min_zoom, min(int(math.floor(zoom)), self.max_zoom))

    def _marker(self, level: _Level, k: int) -> Marker:
        if level.counts[k] > 1:
            return ClusterMarker(
                cluster_id=int(level.ids[k]),
                point_count=int(level.counts[k]),
                center_lng=x_lng(level.x[k]),
                center_lat=y_lat(level.y[k]),
            )
        point = int(level.ids[k])
        return LeafMarker(
            bookshop_id=self.point_ids[point],
            lng=float(self.lngs[point]),
            lat=float(self.lats[point]),
        )

    def get_clusters(self, bbox: Tuple[float, float, float, float], zoom: float) -> List[Marker]:
        """
        Markers inside a bounding box at a zoom level.

        Args:
            bbox: (west, south, east, north) in degrees; may cross the antimeridian
            zoom: Map zoom (fractional zooms are floored)

        Returns:
            Cluster and leaf markers
        """
        west, south, east, north = bbox
        min_lng = ((west + 180) % 360 + 360) % 360 - 180
        min_lat = max(-90.0, min(90.0, south))
        max_lng = 180.0 if east == 180 else ((east + 180) % 360 + 360) % 360 - 180
        max_lat = max(-90.0, min(90.0, north))

        if east - west >= 360:
            min_lng, max_lng = -180.0, 180.0
        elif min_lng > max_lng:
            eastern = self.get_clusters((min_lng, min_lat, 180.0, max_lat), zoom)
            western = self.get_clusters((-180.0, min_lat, max_lng, max_lat), zoom)
            return eastern + western

        level = self.levels[self._limit_zoom(zoom)]
        hits = level.range(lng_x(min_lng), lat_y(max_lat), lng_x(max_lng), lat_y(min_lat))
        return [self._marker(level, int(k)) for k in hits]

    def _origin(self, cluster_id: int) -> Tuple[int, int]:
        offset = cluster_id - self.num_points
        return offset >> 5, offset % 32

    def get_cluster(self, cluster_id: int) -> ClusterMarker:
        """The marker for a cluster id at the zoom where it first appears."""
        origin_index, origin_zoom = self._origin(cluster_id)
        level = self.levels.get(origin_zoom - 1)
        if level is None or origin_index < 0:
            raise ClusterNotFoundError(cluster_id)
        hits = np.nonzero((level.ids == cluster_id) & (level.counts > 1))[0]
        if not len(hits):
            raise ClusterNotFoundError(cluster_id)
        return self._marker(level, int(hits[0]))

    def get_children(self, cluster_id: int) -> List[Marker]:
        """Markers one zoom level below a cluster (raises ClusterNotFoundError)."""
        origin_index, origin_zoom = self._origin(cluster_id)
        level = self.levels.get(origin_zoom)
        if level is None or origin_index < 0 or origin_index >= len(level):
            raise ClusterNotFoundError(cluster_id)

        r = self.radius / (self.extent * 2 ** (origin_zoom - 1))
        neighbors = level.within(level.x[origin_index], level.y[origin_index], r)
        children = [
            self._marker(level, j) for j in neighbors if level.parents[j] == cluster_id
        ]
        if not children:
            raise ClusterNotFoundError(cluster_id)
        return children

    def get_leaves(self, cluster_id: int, limit: Optional[int] = None, offset: int = 0) -> List[LeafMarker]:
        """All leaf markers under a cluster, paged by offset/limit."""
        leaves: List[LeafMarker] = []
        self._collect_leaves(cluster_id, leaves)
        end = None if limit is None else offset + limit
        return leaves[offset:end]

    def _collect_leaves(self, cluster_id: int, leaves: List[LeafMarker]) -> None:
        for child in self.get_children(cluster_id):
            if isinstance(child, ClusterMarker):
                self._collect_leaves(child.cluster_id, leaves)
            else:
                leaves.append(child)

    def get_cluster_expansion_zoom(self, cluster_id: int) -> int:
        """
        Lowest zoom at which a cluster breaks apart, capped at EXPANSION_MAX_ZOOM.

        Raises:
            ClusterNotFoundError: If the id is not a cluster of this index
        """
        self.get_cluster(cluster_id)
        expansion_zoom = self._origin(cluster_id)[1] - 1
        while expansion_zoom <= self.max_zoom:
            children = self.get_children(cluster_id)
            expansion_zoom += 1
            if len(children) != 1 or not isinstance(children[0], ClusterMarker):
                break
            cluster_id = children[0].cluster_id
        return min(expansion_zoom, EXPANSION_MAX_ZOOM)


def build_index(points: Sequence[Dict[str, Any]]) -> Optional[ClusterIndex]:
    """Cluster index for a point set, or None when there are no points."""
    if not points:
        return None
    return ClusterIndex(points)
