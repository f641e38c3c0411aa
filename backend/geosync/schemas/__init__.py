"""Schemas subpackage — Pydantic request/response models."""

from geosync.schemas.feature import (
    FeatureCollection,
    FeatureCreate,
    FeatureCreated,
    FeatureUpdate,
    GeoJSONFeature,
    OkResponse,
    StoredFeature,
)

__all__ = [
    "FeatureCollection",
    "FeatureCreate",
    "FeatureCreated",
    "FeatureUpdate",
    "GeoJSONFeature",
    "OkResponse",
    "StoredFeature",
]
