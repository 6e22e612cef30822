"""
Unit tests for indiebookshop/directory/clustering.py

Exercises the cluster index over small synthetic point sets: point
conservation at every zoom, the leaf-only zoom, cluster drill-down and
expansion zoom, antimeridian-crossing viewports and id validation.
"""
import pytest

from indiebookshop.directory.clustering import (
    EXPANSION_MAX_ZOOM,
    MAX_ZOOM,
    ClusterIndex,
    ClusterMarker,
    ClusterNotFoundError,
    LeafMarker,
    build_index,
    lat_y,
    lng_x,
    x_lng,
    y_lat,
)

WORLD = (-180.0, -90.0, 180.0, 90.0)


def grid_points(n_cols=4, n_rows=3, lng=-122.40, lat=37.75, step=0.05, start_id=1):
    """Points on a small regular grid, ids counting up from start_id."""
    points = []
    for r in range(n_rows):
        for c in range(n_cols):
            points.append({
                "id": start_id + len(points),
                "longitude": lng + c * step,
                "latitude": lat + r * step,
            })
    return points


def total_points(markers):
    return sum(m.point_count if m.is_cluster else 1 for m in markers)


@pytest.fixture
def twelve():
    return ClusterIndex(grid_points())


# =============================================================================
# Projection
# =============================================================================


class TestProjection:
    """Tests for the Web Mercator helpers."""

    @pytest.mark.unit
    @pytest.mark.parametrize("lng", [-180.0, -122.4, 0.0, 45.0, 179.9])
    def test_longitude_roundtrip(self, lng):
        assert x_lng(lng_x(lng)) == pytest.approx(lng)

    @pytest.mark.unit
    @pytest.mark.parametrize("lat", [-80.0, -33.9, 0.0, 37.75, 80.0])
    def test_latitude_roundtrip(self, lat):
        assert y_lat(lat_y(lat)) == pytest.approx(lat)

    @pytest.mark.unit
    def test_poles_clamped_to_unit_square(self):
        assert lat_y(90.0) == 0.0
        assert lat_y(-90.0) == 1.0


# =============================================================================
# Building and querying
# =============================================================================


class TestBuildIndex:
    """Tests for index construction."""

    @pytest.mark.unit
    def test_empty_point_set_has_no_index(self):
        assert build_index([]) is None
        with pytest.raises(ValueError):
            ClusterIndex([])

    @pytest.mark.unit
    def test_single_point_is_always_a_leaf(self):
        index = build_index([{"id": 7, "longitude": -122.68, "latitude": 45.52}])
        for zoom in (0, 4, 10, MAX_ZOOM):
            markers = index.get_clusters(WORLD, zoom)
            assert markers == [LeafMarker(bookshop_id=7, lng=-122.68, lat=45.52)]


class TestGetClusters:
    """Tests for viewport queries."""

    @pytest.mark.unit
    def test_twelve_close_points_form_one_cluster_at_zoom_4(self, twelve):
        markers = twelve.get_clusters(WORLD, 4)
        assert len(markers) == 1
        assert isinstance(markers[0], ClusterMarker)
        assert markers[0].point_count == 12

    @pytest.mark.unit
    def test_cluster_center_is_weighted_centroid(self, twelve):
        cluster = twelve.get_clusters(WORLD, 0)[0]
        assert cluster.center_lng == pytest.approx(-122.40 + 1.5 * 0.05, abs=1e-6)
        assert cluster.center_lat == pytest.approx(37.75 + 0.05, abs=1e-2)

    @pytest.mark.unit
    @pytest.mark.parametrize("zoom", range(0, MAX_ZOOM + 3))
    def test_every_point_counted_exactly_once(self, twelve, zoom):
        assert total_points(twelve.get_clusters(WORLD, zoom)) == 12

    @pytest.mark.unit
    @pytest.mark.parametrize("zoom", [MAX_ZOOM, MAX_ZOOM + 1, 22])
    def test_only_leaves_at_and_above_max_zoom(self, twelve, zoom):
        markers = twelve.get_clusters(WORLD, zoom)
        assert len(markers) == 12
        assert all(isinstance(m, LeafMarker) for m in markers)
        assert sorted(m.bookshop_id for m in markers) == list(range(1, 13))

    @pytest.mark.unit
    def test_coincident_points_stay_separate_leaves_at_max_zoom(self):
        points = [
            {"id": 1, "longitude": -73.99, "latitude": 40.73},
            {"id": 2, "longitude": -73.99, "latitude": 40.73},
        ]
        index = ClusterIndex(points)
        assert len(index.get_clusters(WORLD, MAX_ZOOM)) == 2
        assert index.get_clusters(WORLD, MAX_ZOOM - 1)[0].point_count == 2

    @pytest.mark.unit
    def test_fractional_and_negative_zooms(self, twelve):
        assert twelve.get_clusters(WORLD, 4.7) == twelve.get_clusters(WORLD, 4)
        assert twelve.get_clusters(WORLD, -3) == twelve.get_clusters(WORLD, 0)

    @pytest.mark.unit
    def test_bbox_excludes_points_outside(self):
        index = ClusterIndex([
            {"id": 1, "longitude": -122.4, "latitude": 37.7},
            {"id": 2, "longitude": -73.9, "latitude": 40.7},
        ])
        markers = index.get_clusters((-125.0, 30.0, -110.0, 45.0), MAX_ZOOM)
        assert [m.bookshop_id for m in markers] == [1]

    @pytest.mark.unit
    def test_viewport_crossing_antimeridian(self):
        index = ClusterIndex([
            {"id": 1, "longitude": 179.5, "latitude": 0.0},
            {"id": 2, "longitude": -179.5, "latitude": 0.0},
            {"id": 3, "longitude": 0.0, "latitude": 0.0},
        ])
        markers = index.get_clusters((170.0, -10.0, -170.0, 10.0), MAX_ZOOM)
        assert sorted(m.bookshop_id for m in markers) == [1, 2]

        # same view expressed with an east edge past 180
        markers = index.get_clusters((170.0, -10.0, 190.0, 10.0), MAX_ZOOM)
        assert sorted(m.bookshop_id for m in markers) == [1, 2]

    @pytest.mark.unit
    def test_view_wider_than_world_returns_everything(self, twelve):
        markers = twelve.get_clusters((-300.0, -90.0, 300.0, 90.0), MAX_ZOOM)
        assert len(markers) == 12

    @pytest.mark.unit
    def test_marker_dicts_are_camel_case(self, twelve):
        cluster = twelve.get_clusters(WORLD, 0)[0].to_dict()
        assert cluster["isCluster"] is True
        assert cluster["pointCount"] == 12
        assert set(cluster) == {"isCluster", "clusterId", "pointCount", "centerLng", "centerLat"}

        leaf = twelve.get_clusters(WORLD, MAX_ZOOM)[0].to_dict()
        assert leaf["isCluster"] is False
        assert set(leaf) == {"isCluster", "bookshopId", "lng", "lat"}


# =============================================================================
# Drill-down
# =============================================================================


class TestClusterDrillDown:
    """Tests for children, leaves and expansion zoom."""

    @pytest.mark.unit
    def test_children_partition_the_cluster(self, twelve):
        cluster = twelve.get_clusters(WORLD, 4)[0]
        children = twelve.get_children(cluster.cluster_id)
        assert total_points(children) == 12

    @pytest.mark.unit
    def test_leaves_cover_every_point(self, twelve):
        cluster = twelve.get_clusters(WORLD, 4)[0]
        leaves = twelve.get_leaves(cluster.cluster_id)
        assert sorted(leaf.bookshop_id for leaf in leaves) == list(range(1, 13))

    @pytest.mark.unit
    def test_leaves_are_paged(self, twelve):
        cluster_id = twelve.get_clusters(WORLD, 4)[0].cluster_id
        everything = twelve.get_leaves(cluster_id)
        assert twelve.get_leaves(cluster_id, limit=5) == everything[:5]
        assert twelve.get_leaves(cluster_id, limit=5, offset=10) == everything[10:]

    @pytest.mark.unit
    def test_expansion_zoom_breaks_the_cluster(self, twelve):
        """At the expansion zoom the area shows more than one marker, still 12 points."""
        cluster = twelve.get_clusters(WORLD, 4)[0]
        zoom = twelve.get_cluster_expansion_zoom(cluster.cluster_id)

        assert 4 < zoom <= EXPANSION_MAX_ZOOM
        markers = twelve.get_clusters(WORLD, zoom)
        assert len(markers) > 1
        assert total_points(markers) == 12

    @pytest.mark.unit
    def test_expansion_zoom_of_coincident_points_is_capped(self):
        index = ClusterIndex([
            {"id": 1, "longitude": 2.35, "latitude": 48.85},
            {"id": 2, "longitude": 2.35, "latitude": 48.85},
        ])
        cluster = index.get_clusters(WORLD, 0)[0]
        assert index.get_cluster_expansion_zoom(cluster.cluster_id) <= EXPANSION_MAX_ZOOM

    @pytest.mark.unit
    def test_get_cluster_returns_the_same_marker(self, twelve):
        cluster = twelve.get_clusters(WORLD, 4)[0]
        found = twelve.get_cluster(cluster.cluster_id)
        assert found.cluster_id == cluster.cluster_id
        assert found.point_count == 12

    @pytest.mark.unit
    @pytest.mark.parametrize("cluster_id", [0, 5, 999999, -40])
    def test_unknown_ids_raise(self, twelve, cluster_id):
        with pytest.raises(ClusterNotFoundError):
            twelve.get_children(cluster_id)
        with pytest.raises(ClusterNotFoundError):
            twelve.get_cluster_expansion_zoom(cluster_id)

    @pytest.mark.unit
    def test_ids_from_another_index_are_not_trusted(self, twelve):
        other = ClusterIndex(grid_points(n_cols=2, n_rows=1))
        stale_id = twelve.get_clusters(WORLD, 4)[0].cluster_id
        with pytest.raises(ClusterNotFoundError):
            other.get_cluster(stale_id)
