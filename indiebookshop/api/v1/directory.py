"""
Directory map endpoints.

Markers, cluster expansion and fitted viewports for the filtered set, so
a client without its own clustering can drive the map from the server.
The cluster index is rebuilt per request from the filtered bookshops;
cluster ids are therefore only valid together with the same filters.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError

from indiebookshop.api.deps import get_filter_state, get_storage
from indiebookshop.core.schemas import CamelModel
from indiebookshop.core.storage import BookshopStorage
from indiebookshop.directory.clustering import ClusterNotFoundError, build_index
from indiebookshop.directory.filters import FilterState, apply_filters, points_from_bookshops
from indiebookshop.directory.viewport import fit_bounds

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/directory", tags=["directory"])


class MarkersResponse(CamelModel):
    zoom: float
    point_count: int
    markers: List[Dict[str, Any]]


class ExpansionResponse(CamelModel):
    cluster_id: int
    expansion_zoom: int
    center_lng: float
    center_lat: float
    point_count: int


class FitResponse(CamelModel):
    point_count: int
    viewport: Optional[Dict[str, Any]] = None


def _filtered_points(storage: BookshopStorage, filters: FilterState) -> List[dict]:
    try:
        records = storage.list_bookshops()
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch bookshops for the map: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch bookshops")
    return points_from_bookshops(apply_filters(records, filters))


@router.get("/markers", response_model=MarkersResponse)
def get_markers(
    west: float = Query(..., ge=-540, le=540),
    south: float = Query(..., ge=-90, le=90),
    east: float = Query(..., ge=-540, le=540),
    north: float = Query(..., ge=-90, le=90),
    zoom: float = Query(..., ge=0, le=24),
    filters: FilterState = Depends(get_filter_state),
    storage: BookshopStorage = Depends(get_storage),
) -> MarkersResponse:
    """Cluster and leaf markers inside a bounding box at a zoom level."""
    if south > north:
        raise HTTPException(status_code=400, detail="south must not be greater than north")

    points = _filtered_points(storage, filters)
    index = build_index(points)
    markers = index.get_clusters((west, south, east, north), zoom) if index else []
    return MarkersResponse(
        zoom=zoom,
        point_count=len(points),
        markers=[m.to_dict() for m in markers],
    )


@router.get("/clusters/{cluster_id}/expansion", response_model=ExpansionResponse)
def get_cluster_expansion(
    cluster_id: int,
    filters: FilterState = Depends(get_filter_state),
    storage: BookshopStorage = Depends(get_storage),
) -> ExpansionResponse:
    """Zoom level at which a cluster splits, and where to center on it."""
    index = build_index(_filtered_points(storage, filters))
    if index is None:
        raise HTTPException(status_code=404, detail=f"Cluster not found: {cluster_id}")
    try:
        zoom = index.get_cluster_expansion_zoom(cluster_id)
        cluster = index.get_cluster(cluster_id)
    except ClusterNotFoundError:
        raise HTTPException(status_code=404, detail=f"Cluster not found: {cluster_id}")

    return ExpansionResponse(
        cluster_id=cluster_id,
        expansion_zoom=zoom,
        center_lng=cluster.center_lng,
        center_lat=cluster.center_lat,
        point_count=cluster.point_count,
    )


@router.get("/fit", response_model=FitResponse)
def get_fitted_viewport(
    width: int = Query(1200, ge=1, le=10000),
    height: int = Query(800, ge=1, le=10000),
    panel_collapsed: bool = Query(False),
    filters: FilterState = Depends(get_filter_state),
    storage: BookshopStorage = Depends(get_storage),
) -> FitResponse:
    """Camera that shows every filtered bookshop; viewport is null when none has coordinates."""
    points = _filtered_points(storage, filters)
    fitted = fit_bounds(
        [(p["longitude"], p["latitude"]) for p in points],
        width,
        height,
        panel_collapsed=panel_collapsed,
    )
    return FitResponse(
        point_count=len(points),
        viewport=fitted.to_dict() if fitted else None,
    )
