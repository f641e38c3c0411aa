"""
Client view state.

``ViewState`` holds everything the map client knows between fetches:
the viewport, the cluster toggle, the last successfully fetched
FeatureCollection (the render cache), the last load error (for toast
de-duplication) and the single highlighted feature id.  It is owned by
the ``SyncController`` and shared by reference with the
``RenderReconciler``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Bounds:
    """Lon/lat rectangle: west, south, east, north."""

    west: float
    south: float
    east: float
    north: float

    def to_param(self) -> str:
        """``minLon,minLat,maxLon,maxLat`` for the ``bbox`` query param."""
        return f"{self.west},{self.south},{self.east},{self.north}"

    @property
    def center(self) -> tuple[float, float]:
        """(lon, lat)"""
        return ((self.west + self.east) / 2.0, (self.south + self.north) / 2.0)

    def pad(self, ratio: float) -> "Bounds":
        """Grow each side by ``ratio`` of the width / height."""
        dx = (self.east - self.west) * ratio
        dy = (self.north - self.south) * ratio
        return Bounds(self.west - dx, self.south - dy, self.east + dx, self.north + dy)


@dataclass(frozen=True, slots=True)
class Viewport:
    bounds: Bounds
    zoom: float


class SyncStatus(str, enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    ERROR = "error"  # idle, with ``last_error`` set


def empty_collection() -> dict:
    return {"type": "FeatureCollection", "features": []}


def feature_id(feature: dict) -> str | None:
    props = feature.get("properties") or {}
    value = props.get("id")
    return str(value) if value else None


@dataclass
class ViewState:
    viewport: Viewport | None = None
    cluster_mode: bool = True
    collection: dict = field(default_factory=empty_collection)
    last_error: str | None = None
    highlighted_id: str | None = None
    status: SyncStatus = SyncStatus.IDLE
    search: str = ""

    @property
    def features(self) -> list[dict]:
        return self.collection.get("features", [])

    def find_feature(self, fid: str) -> dict | None:
        for feature in self.features:
            if feature_id(feature) == fid:
                return feature
        return None
