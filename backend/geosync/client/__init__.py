"""Client subpackage — viewport sync engine for the map front end."""

from geosync.client.api import FeatureApiClient, FeatureApiError
from geosync.client.clustering import Cluster, ClusterSize, cluster_layers
from geosync.client.debounce import CoalescingTimer
from geosync.client.geocode import ReverseGeocoder
from geosync.client.mutations import MutationOutcome, MutationProtocol
from geosync.client.reconciler import RenderReconciler
from geosync.client.session import MapSession
from geosync.client.state import Bounds, SyncStatus, ViewState, Viewport
from geosync.client.sync import SyncController
from geosync.client.view import (
    CameraTarget,
    MapView,
    NameDescription,
    NamePrompt,
    RenderedLayer,
)

__all__ = [
    "Bounds",
    "CameraTarget",
    "Cluster",
    "ClusterSize",
    "CoalescingTimer",
    "FeatureApiClient",
    "FeatureApiError",
    "MapSession",
    "MapView",
    "MutationOutcome",
    "MutationProtocol",
    "NameDescription",
    "NamePrompt",
    "RenderReconciler",
    "RenderedLayer",
    "ReverseGeocoder",
    "SyncController",
    "SyncStatus",
    "ViewState",
    "Viewport",
    "cluster_layers",
]
