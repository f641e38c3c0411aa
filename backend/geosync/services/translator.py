"""
Query Translator
================
Turns the ``GET /features`` query string into a PostGIS filter and turns
stored rows back into a GeoJSON FeatureCollection.

Two query modes exist:

- **bbox** — ``bbox=minLon,minLat,maxLon,maxLat``.  Inclusive
  containment: a feature matches when the envelope *covers* it, so a
  point sitting exactly on the edge is returned.
- **near** — ``near=lat,lon&radius=meters``.  Geography distance on the
  WGS 84 spheroid, bounded by ``radius`` and ordered nearest first.

Filters that fail to parse never raise: the caller gets ``None`` and
runs the unfiltered query.  A ``bbox`` parameter that is present but
malformed does not fall back to ``near``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable

from geoalchemy2 import Geography
from geoalchemy2.functions import (
    ST_Covers,
    ST_Distance,
    ST_DWithin,
    ST_MakeEnvelope,
    ST_MakePoint,
    ST_SetSRID,
)
from sqlalchemy import Select, cast

from geosync.models.feature import Feature
from geosync.schemas.feature import FeatureCollection, GeoJSONFeature, StoredFeature
from geosync.spatial.geometry import WGS84_SRID, BBoxFilter, NearFilter, SpatialFilter

logger = logging.getLogger(__name__)

DEFAULT_NEAR_RADIUS_M = 5000


# ── Parsing ───────────────────────────────────────────────────────

def _parse_floats(raw: str, expected: int) -> list[float] | None:
    parts = raw.split(",")
    if len(parts) != expected:
        return None
    values: list[float] = []
    for part in parts:
        try:
            value = float(part.strip())
        except ValueError:
            return None
        if not math.isfinite(value):
            return None
        values.append(value)
    return values


def parse_bbox(raw: str | None) -> BBoxFilter | None:
    """Parse ``minLon,minLat,maxLon,maxLat``."""
    if not raw:
        return None
    values = _parse_floats(raw, 4)
    if values is None:
        return None
    west, south, east, north = values
    return BBoxFilter(west=west, south=south, east=east, north=north)


def parse_radius(raw: str | None, default: int = DEFAULT_NEAR_RADIUS_M) -> int:
    """
    Whole metres.  Only a missing or non-integer value gives ``default``;
    zero and negative radii pass through and simply match nothing.
    """
    if not raw:
        return default
    try:
        radius = int(raw.strip())
    except ValueError:
        return default
    return radius


def parse_near(
    raw: str | None,
    radius: str | None = None,
    default_radius: int = DEFAULT_NEAR_RADIUS_M,
) -> NearFilter | None:
    """Parse ``near=lat,lon``.  Note the latitude-first order of the wire format."""
    if not raw:
        return None
    values = _parse_floats(raw, 2)
    if values is None:
        return None
    lat, lon = values
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        return None
    return NearFilter(
        lon=lon,
        lat=lat,
        max_distance_m=parse_radius(radius, default_radius),
    )


def parse_filter(
    bbox: str | None = None,
    near: str | None = None,
    radius: str | None = None,
    default_radius: int = DEFAULT_NEAR_RADIUS_M,
) -> SpatialFilter | None:
    """Pick the query mode.  ``None`` means "all features"."""
    if bbox:
        spatial_filter = parse_bbox(bbox)
    elif near:
        spatial_filter = parse_near(near, radius, default_radius)
    else:
        return None

    if spatial_filter is None:
        logger.info(
            "Unparsable spatial filter (bbox=%r, near=%r), returning all features",
            bbox, near,
        )
    return spatial_filter


# ── SQL ───────────────────────────────────────────────────────────

def apply_filter(stmt: Select, spatial_filter: SpatialFilter | None) -> Select:
    """Attach the PostGIS predicate (and ordering, for near) to ``stmt``."""
    if spatial_filter is None:
        return stmt

    if isinstance(spatial_filter, BBoxFilter):
        envelope = ST_MakeEnvelope(*spatial_filter.envelope_args())
        return stmt.where(ST_Covers(envelope, Feature.geom))

    center = cast(
        ST_SetSRID(ST_MakePoint(*spatial_filter.point_args()), WGS84_SRID),
        Geography,
    )
    geog = cast(Feature.geom, Geography)
    return (
        stmt.where(ST_DWithin(geog, center, spatial_filter.max_distance_m))
        .order_by(ST_Distance(geog, center))
    )


# ── Output shaping ────────────────────────────────────────────────

def _isoformat(value) -> str | None:
    return value.isoformat() if value is not None else None


def to_properties(record: StoredFeature) -> dict:
    """
    Properties bag for one feature.  Stored extras come first so the
    computed ``id``/``name``/``description`` always win on collision.
    """
    props = dict(record.properties or {})
    if record.created_at is not None:
        props["createdAt"] = _isoformat(record.created_at)
    if record.updated_at is not None:
        props["updatedAt"] = _isoformat(record.updated_at)
    props["id"] = record.id
    props["name"] = record.name
    props["description"] = record.description
    return props


def to_feature_collection(records: Iterable[StoredFeature]) -> FeatureCollection:
    features = []
    for record in records:
        if not record.id:
            logger.warning("Skipping stored feature without an id")
            continue
        features.append(
            GeoJSONFeature(geometry=record.geometry, properties=to_properties(record))
        )
    return FeatureCollection(features=features)
