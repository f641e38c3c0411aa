"""Spatial subpackage — GeoJSON normalisation and query filters."""

from geosync.spatial.geometry import (
    BBoxFilter,
    InvalidGeometry,
    NearFilter,
    SpatialFilter,
    normalize_geometry,
    point_from_lat_lon,
    to_shape,
)

__all__ = [
    "BBoxFilter",
    "InvalidGeometry",
    "NearFilter",
    "SpatialFilter",
    "normalize_geometry",
    "point_from_lat_lon",
    "to_shape",
]
