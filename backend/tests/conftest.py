"""
Shared fixtures for the GeoSync test suite.

This conftest provides:
- An in-memory stand-in for ``SpatialStore`` (same interface, shapely predicates)
- A recording ``MapView`` and a scripted ``NamePrompt`` for client tests
- Reusable sample data factories
"""
from __future__ import annotations

import asyncio
import math
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from shapely.geometry import box

from geosync.client.api import FeatureApiClient
from geosync.client.view import NameDescription
from geosync.models.feature import is_valid_feature_id, new_feature_id
from geosync.schemas.feature import StoredFeature
from geosync.services.store import EmptyUpdate, InvalidFeatureId
from geosync.spatial.geometry import BBoxFilter, NearFilter, to_shape

# ---------------------------------------------------------------------------
# Sample data factories
# ---------------------------------------------------------------------------
SAMPLE_ID = "65f1a2b3c4d5e6f708192a3b"
OTHER_ID = "65f1a2b3c4d5e6f708192a3c"
THIRD_ID = "65f1a2b3c4d5e6f708192a3d"
SAMPLE_TS = datetime(2025, 1, 1, tzinfo=timezone.utc)

# Jakarta viewport: minLon,minLat,maxLon,maxLat
JAKARTA_BBOX = "106.7,-6.3,106.9,-6.1"
JAKARTA_INSIDE = [(106.8, -6.2), (106.75, -6.15), (106.85, -6.25)]
JAKARTA_OUTSIDE = [(107.5, -6.2), (106.8, -7.0)]


def point(lon: float, lat: float) -> dict:
    return {"type": "Point", "coordinates": [lon, lat]}


def point_feature(
    fid: str | None,
    lon: float,
    lat: float,
    name: str = "",
    description: str = "",
) -> dict:
    """A GeoJSON Feature as the API returns it."""
    properties = {"name": name, "description": description}
    if fid is not None:
        properties["id"] = fid
    return {"type": "Feature", "geometry": point(lon, lat), "properties": properties}


def collection(*features: dict) -> dict:
    return {"type": "FeatureCollection", "features": list(features)}


def make_stored(
    *,
    id: str = SAMPLE_ID,
    name: str = "Cafe",
    description: str = "",
    geometry: dict | None = None,
    properties: dict | None = None,
) -> StoredFeature:
    return StoredFeature(
        id=id,
        name=name,
        description=description,
        geometry=geometry or point(106.8272, -6.1754),
        properties=properties or {},
        created_at=SAMPLE_TS,
        updated_at=SAMPLE_TS,
    )


def make_feature_row(
    *,
    id: str = SAMPLE_ID,
    name: str = "Cafe",
    description: str = "",
    geojson: str = '{"type":"Point","coordinates":[106.8272,-6.1754]}',
    properties: dict | None = None,
) -> MagicMock:
    """Return a mock that behaves like a row of ``SpatialStore.query``'s select."""
    row = MagicMock()
    row.id = id
    row.name = name
    row.description = description
    row.geojson = geojson
    row.properties = properties or {}
    row.created_at = SAMPLE_TS
    row.updated_at = SAMPLE_TS
    return row


# ---------------------------------------------------------------------------
# In-memory spatial store
# ---------------------------------------------------------------------------
EARTH_RADIUS_M = 6_371_008.8


def haversine_m(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = phi2 - phi1
    dlmb = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


class InMemoryStore:
    """
    Same interface and error contract as ``SpatialStore``, kept in a dict.

    Bounding boxes use shapely ``covers`` (edges inclusive); radius
    queries measure the haversine distance to the geometry's
    representative point.
    """

    def __init__(self) -> None:
        self.records: dict[str, StoredFeature] = {}
        self.calls: list[tuple] = []

    async def create(self, name, description, geometry, properties=None) -> str:
        to_shape(geometry)
        fid = new_feature_id()
        now = datetime.now(timezone.utc)
        self.records[fid] = StoredFeature(
            id=fid,
            name=name or "",
            description=description or "",
            geometry=geometry,
            properties=dict(properties or {}),
            created_at=now,
            updated_at=now,
        )
        self.calls.append(("create", fid))
        return fid

    async def update(self, feature_id, *, name=None, description=None, geometry=None) -> bool:
        if not is_valid_feature_id(feature_id):
            raise InvalidFeatureId(feature_id)
        feature_id = feature_id.lower()
        if geometry is not None:
            to_shape(geometry)
        if name is None and description is None and geometry is None:
            raise EmptyUpdate()
        self.calls.append(("update", feature_id))
        record = self.records.get(feature_id)
        if record is None:
            return False
        changes = {"updated_at": datetime.now(timezone.utc)}
        if name is not None:
            changes["name"] = name
        if description is not None:
            changes["description"] = description
        if geometry is not None:
            changes["geometry"] = geometry
        self.records[feature_id] = record.model_copy(update=changes)
        return True

    async def delete(self, feature_id) -> bool:
        if not is_valid_feature_id(feature_id):
            raise InvalidFeatureId(feature_id)
        feature_id = feature_id.lower()
        self.calls.append(("delete", feature_id))
        return self.records.pop(feature_id, None) is not None

    async def query(self, spatial_filter) -> list[StoredFeature]:
        self.calls.append(("query", spatial_filter))
        records = list(self.records.values())
        if isinstance(spatial_filter, BBoxFilter):
            envelope = box(
                spatial_filter.west, spatial_filter.south,
                spatial_filter.east, spatial_filter.north,
            )
            return [r for r in records if envelope.covers(to_shape(r.geometry))]
        if isinstance(spatial_filter, NearFilter):
            scored = []
            for record in records:
                anchor = to_shape(record.geometry).representative_point()
                dist = haversine_m(spatial_filter.lon, spatial_filter.lat, anchor.x, anchor.y)
                if dist <= spatial_filter.max_distance_m:
                    scored.append((dist, record))
            scored.sort(key=lambda pair: pair[0])
            return [record for _, record in scored]
        return records


# ---------------------------------------------------------------------------
# Client collaborators
# ---------------------------------------------------------------------------
class RecordingView:
    """A ``MapView`` that records every call in order."""

    def __init__(self, camera_delay: float = 0.0) -> None:
        self.camera_delay = camera_delay
        self.events: list[tuple] = []
        self.toasts: list[tuple[str, float]] = []
        self.spinner: list[bool] = []
        self.feature_counts: list[int] = []
        self.map_renders: list[tuple[list, list]] = []
        self.list_renders: list[list[dict]] = []
        self.map_highlighted: set[str] = set()
        self.list_highlighted: set[str] = set()
        self.camera_moves: list = []
        self.popups: list[str] = []
        self.detached_popups: list[tuple] = []

    @property
    def toast_messages(self) -> list[str]:
        return [message for message, _ in self.toasts]

    @property
    def last_rendered_ids(self) -> set[str]:
        singles, clusters = self.map_renders[-1]
        ids = {layer.feature_id for layer in singles}
        for cluster in clusters:
            ids.update(layer.feature_id for layer in cluster.members)
        return ids

    def show_toast(self, message: str, duration: float = 2.5) -> None:
        self.events.append(("toast", message))
        self.toasts.append((message, duration))

    def set_spinner(self, visible: bool) -> None:
        self.events.append(("spinner", visible))
        self.spinner.append(visible)

    def set_feature_count(self, count: int) -> None:
        self.feature_counts.append(count)

    def render_map(self, layers, clusters) -> None:
        self.events.append(("render_map", len(layers), len(clusters)))
        self.map_renders.append((list(layers), list(clusters)))

    def render_list(self, features) -> None:
        self.list_renders.append(list(features))

    def set_map_highlight(self, feature_id: str, on: bool) -> bool:
        self.events.append(("map_highlight", feature_id, on))
        if on:
            self.map_highlighted.add(feature_id)
        else:
            self.map_highlighted.discard(feature_id)
        return True

    def set_list_highlight(self, feature_id: str, on: bool) -> bool:
        self.events.append(("list_highlight", feature_id, on))
        if on:
            self.list_highlighted.add(feature_id)
        else:
            self.list_highlighted.discard(feature_id)
        return True

    async def move_camera(self, target) -> None:
        self.events.append(("camera_start", target.kind))
        self.camera_moves.append(target)
        await asyncio.sleep(self.camera_delay)
        self.events.append(("camera_done", target.kind))

    def open_popup(self, feature_id: str) -> None:
        self.events.append(("popup", feature_id))
        self.popups.append(feature_id)

    def open_detached_popup(self, center, title: str, body: str) -> None:
        self.events.append(("detached_popup", title))
        self.detached_popups.append((center, title, body))


class ScriptedPrompt:
    """A ``NamePrompt`` answering from a queue; ``None`` means cancel."""

    def __init__(self, *answers: NameDescription | None) -> None:
        self.answers = list(answers)
        self.asked: list[tuple[str, str]] = []

    async def ask(self, name: str = "", description: str = "") -> NameDescription | None:
        self.asked.append((name, description))
        return self.answers.pop(0) if self.answers else None


def make_api() -> AsyncMock:
    """An ``AsyncMock`` shaped like ``FeatureApiClient``."""
    api = AsyncMock(spec=FeatureApiClient)
    api.fetch_bbox.return_value = collection()
    return api


@pytest.fixture()
def store():
    return InMemoryStore()


@pytest.fixture()
def view():
    return RecordingView()
