"""
Pydantic schemas for API request/response serialization.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


# ═══════════════════════════════════════════════════════════════════
# Mutation payloads
# ═══════════════════════════════════════════════════════════════════
class FeatureCreate(BaseModel):
    """
    Body of ``POST /features``.

    Geometry comes either as ``geojson`` or as a ``lat``/``lon`` pair.
    """

    name: str = ""
    description: str = ""
    geojson: dict[str, Any] | None = None
    lat: float | None = None
    lon: float | None = None
    properties: dict[str, Any] | None = Field(
        default=None,
        description="Extra properties merged into query output",
    )


class FeatureUpdate(BaseModel):
    """Body of ``PUT /features/{id}`` — every field is optional."""

    name: str | None = None
    description: str | None = None
    geojson: dict[str, Any] | None = None
    lat: float | None = None
    lon: float | None = None


class FeatureCreated(BaseModel):
    id: str


class OkResponse(BaseModel):
    ok: bool = True


# ═══════════════════════════════════════════════════════════════════
# Store records
# ═══════════════════════════════════════════════════════════════════
class StoredFeature(BaseModel):
    """One row of the ``features`` table with its geometry as GeoJSON."""

    id: str
    name: str = ""
    description: str = ""
    geometry: dict[str, Any]
    properties: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


# ═══════════════════════════════════════════════════════════════════
# GeoJSON output
# ═══════════════════════════════════════════════════════════════════
class GeoJSONFeature(BaseModel):
    type: Literal["Feature"] = "Feature"
    geometry: dict[str, Any]
    properties: dict[str, Any]


class FeatureCollection(BaseModel):
    type: Literal["FeatureCollection"] = "FeatureCollection"
    features: list[GeoJSONFeature] = Field(default_factory=list)
