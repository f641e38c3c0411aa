"""
Feature Endpoints
=================
Viewport / radius queries and create, update, delete for map features.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from geosync.config import get_settings
from geosync.models.database import get_db
from geosync.schemas.feature import (
    FeatureCollection,
    FeatureCreate,
    FeatureCreated,
    FeatureUpdate,
    OkResponse,
)
from geosync.services.store import (
    EmptyUpdate,
    InvalidFeatureId,
    SpatialStore,
    StoreUnavailable,
)
from geosync.services.translator import parse_filter, to_feature_collection
from geosync.spatial.geometry import InvalidGeometry, normalize_geometry

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/features", tags=["Features"])
settings = get_settings()


def get_store(db: AsyncSession = Depends(get_db)) -> SpatialStore:
    """FastAPI dependency — a store bound to the request's session."""
    return SpatialStore(db)


# ── Query by viewport or radius ───────────────────────────────────
@router.get("", response_model=FeatureCollection)
async def list_features(
    bbox: str | None = Query(default=None, description="minLon,minLat,maxLon,maxLat"),
    near: str | None = Query(default=None, description="lat,lon"),
    radius: str | None = Query(default=None, description="metres, used with near"),
    store: SpatialStore = Depends(get_store),
):
    """
    Return the features inside ``bbox`` or within ``radius`` of ``near``.

    An unparsable filter returns every feature instead of failing.
    """
    spatial_filter = parse_filter(
        bbox=bbox,
        near=near,
        radius=radius,
        default_radius=settings.default_near_radius_m,
    )
    try:
        records = await store.query(spatial_filter)
    except StoreUnavailable as exc:
        raise HTTPException(503, str(exc)) from exc
    return to_feature_collection(records)


# ── Create ────────────────────────────────────────────────────────
@router.post("", response_model=FeatureCreated)
async def create_feature(
    body: FeatureCreate,
    store: SpatialStore = Depends(get_store),
):
    """Create a feature from ``geojson`` or a ``lat``/``lon`` pair."""
    try:
        geometry = normalize_geometry(body.geojson, body.lat, body.lon)
    except InvalidGeometry as exc:
        raise HTTPException(400, str(exc)) from exc
    if geometry is None:
        raise HTTPException(400, "geometry (geojson) or lat+lon required")

    try:
        feature_id = await store.create(
            body.name, body.description, geometry, body.properties
        )
    except InvalidGeometry as exc:
        raise HTTPException(400, str(exc)) from exc
    except StoreUnavailable as exc:
        raise HTTPException(503, str(exc)) from exc
    return FeatureCreated(id=feature_id)


# ── Update ────────────────────────────────────────────────────────
@router.put("/{feature_id}", response_model=OkResponse)
async def update_feature(
    feature_id: str,
    body: FeatureUpdate,
    store: SpatialStore = Depends(get_store),
):
    """
    Partially update a feature.  Updating an id that no longer exists
    succeeds (idempotent).
    """
    try:
        geometry = normalize_geometry(body.geojson, body.lat, body.lon)
        await store.update(
            feature_id,
            name=body.name,
            description=body.description,
            geometry=geometry,
        )
    except (InvalidFeatureId, InvalidGeometry, EmptyUpdate) as exc:
        raise HTTPException(400, str(exc)) from exc
    except StoreUnavailable as exc:
        raise HTTPException(503, str(exc)) from exc
    return OkResponse()


# ── Delete ────────────────────────────────────────────────────────
@router.delete("/{feature_id}", response_model=OkResponse)
async def delete_feature(
    feature_id: str,
    store: SpatialStore = Depends(get_store),
):
    """Delete a feature.  Deleting an absent id succeeds (idempotent)."""
    try:
        await store.delete(feature_id)
    except InvalidFeatureId as exc:
        raise HTTPException(400, str(exc)) from exc
    except StoreUnavailable as exc:
        raise HTTPException(503, str(exc)) from exc
    return OkResponse()
