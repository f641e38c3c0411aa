"""
Geometry Normalisation & Spatial Filters
=========================================
Everything that crosses the wire is GeoJSON in WGS 84, and GeoJSON
(like PostGIS) orders coordinates as **[longitude, latitude]**.  The
HTTP API also accepts a bare ``{lat, lon}`` pair, which reads in the
opposite order, so the conversion lives in exactly one place:
``point_from_lat_lon``.

Accepted geometry types are Point, LineString and Polygon.  Every
coordinate must be finite and inside the WGS 84 envelope; a payload
that swaps latitude and longitude for a location with |lon| > 90 is
therefore rejected instead of silently stored on the wrong side of
the planet.  Shapes must also be valid in the OGC sense (no
self-intersecting rings), and a third (altitude) ordinate is dropped
since the stored column is 2-D.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Union

from shapely import force_2d
from shapely.errors import ShapelyError
from shapely.geometry import shape
from shapely.geometry.base import BaseGeometry
from shapely.validation import explain_validity

WGS84_SRID = 4326

ALLOWED_GEOMETRY_TYPES: frozenset[str] = frozenset({"Point", "LineString", "Polygon"})


class InvalidGeometry(ValueError):
    """Raised when a geometry payload cannot be stored."""


# ── Spatial filters ──────────────────────────────────────────────
@dataclass(frozen=True, slots=True)
class BBoxFilter:
    """An axis-aligned lon/lat rectangle (west, south, east, north)."""

    west: float
    south: float
    east: float
    north: float

    def envelope_args(self) -> tuple[float, float, float, float, int]:
        """Positional arguments for PostGIS ``ST_MakeEnvelope``."""
        return (self.west, self.south, self.east, self.north, WGS84_SRID)


@dataclass(frozen=True, slots=True)
class NearFilter:
    """A centre point plus a maximum great-circle distance in metres."""

    lon: float
    lat: float
    max_distance_m: int

    def point_args(self) -> tuple[float, float]:
        """Positional arguments for PostGIS ``ST_MakePoint`` (x=lon, y=lat)."""
        return (self.lon, self.lat)


SpatialFilter = Union[BBoxFilter, NearFilter]


# ── Normalisation ────────────────────────────────────────────────
def _coerce_float(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise InvalidGeometry(f"{field} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidGeometry(f"{field} must be a number") from None
    if not math.isfinite(number):
        raise InvalidGeometry(f"{field} must be finite")
    return number


def point_from_lat_lon(lat: Any, lon: Any) -> dict:
    """Build a GeoJSON Point from a latitude/longitude pair.

    The returned coordinates are ``[lon, lat]``.
    """
    lat_f = _coerce_float(lat, "lat")
    lon_f = _coerce_float(lon, "lon")
    if not -90.0 <= lat_f <= 90.0:
        raise InvalidGeometry(f"lat out of range: {lat_f}")
    if not -180.0 <= lon_f <= 180.0:
        raise InvalidGeometry(f"lon out of range: {lon_f}")
    return {"type": "Point", "coordinates": [lon_f, lat_f]}


def to_shape(geometry: dict) -> BaseGeometry:
    """Validate a GeoJSON geometry dict and return its Shapely shape."""
    if not isinstance(geometry, dict):
        raise InvalidGeometry("geojson must be an object")
    geom_type = geometry.get("type")
    if geom_type not in ALLOWED_GEOMETRY_TYPES:
        raise InvalidGeometry(
            f"unsupported geometry type {geom_type!r}; "
            f"expected one of {', '.join(sorted(ALLOWED_GEOMETRY_TYPES))}"
        )
    try:
        geom = shape(geometry)
    except (KeyError, TypeError, ValueError, IndexError, ShapelyError) as exc:
        raise InvalidGeometry(f"invalid {geom_type} coordinates: {exc}") from None

    if geom.is_empty:
        raise InvalidGeometry("geometry is empty")
    # Altitude is dropped; the column is 2-D.
    if geom.has_z:
        geom = force_2d(geom)
    min_x, min_y, max_x, max_y = geom.bounds
    if not all(math.isfinite(v) for v in (min_x, min_y, max_x, max_y)):
        raise InvalidGeometry("coordinates must be finite")
    if min_x < -180.0 or max_x > 180.0 or min_y < -90.0 or max_y > 90.0:
        raise InvalidGeometry(
            "coordinates outside WGS 84 range (expected [longitude, latitude])"
        )
    if not geom.is_valid:
        raise InvalidGeometry(f"invalid {geom_type}: {explain_validity(geom)}")
    return geom


def normalize_geometry(
    geojson: dict | None = None,
    lat: Any = None,
    lon: Any = None,
) -> dict | None:
    """
    Resolve the geometry of a create/update payload.

    ``geojson`` wins when present; otherwise a complete ``lat``/``lon``
    pair becomes a Point.  Returns ``None`` when the payload carries no
    geometry at all.
    """
    if geojson is not None:
        to_shape(geojson)
        return geojson
    if lat is not None and lon is not None:
        return point_from_lat_lon(lat, lon)
    return None
