"""
Directory map view: filter engine, clustering, viewport, list panel and
the session controller that ties them together.
"""

from indiebookshop.directory.filters import FilterState, apply_filters
from indiebookshop.directory.clustering import ClusterIndex, ClusterNotFoundError
from indiebookshop.directory.viewport import MapViewportController, Viewport, Bounds
from indiebookshop.directory.list_panel import ListPanel, LoadState
from indiebookshop.directory.client import DirectoryAPIClient
from indiebookshop.directory.controller import (
    DirectoryController,
    GeolocationError,
    MapInitializationError,
    Notification,
)

__all__ = [
    "FilterState",
    "apply_filters",
    "ClusterIndex",
    "ClusterNotFoundError",
    "MapViewportController",
    "Viewport",
    "Bounds",
    "ListPanel",
    "LoadState",
    "DirectoryAPIClient",
    "DirectoryController",
    "GeolocationError",
    "MapInitializationError",
    "Notification",
]
