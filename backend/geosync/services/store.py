"""
Spatial Store
=============
PostGIS-backed persistence for map features.

Every mutation is its own transaction: ``create``, ``update`` and
``delete`` each commit before returning, and nothing groups several
features into one unit of work.  A batch of N edits issued by a
client can therefore leave fewer than N applied if it fails midway.

Idempotent writes
-----------------
``update`` and ``delete`` on an id that does not exist succeed
silently.  This deliberately departs from strict REST (which would
answer 404): a client retrying a delete after a lost response, or
deleting a feature another user already removed, sees success.

Error taxonomy
--------------
- ``InvalidFeatureId`` — malformed identifier, rejected before any SQL.
- ``InvalidGeometry`` — payload geometry failed validation.
- ``EmptyUpdate`` — an update carrying no recognised field.
- ``StoreUnavailable`` — database failure or statement timeout;
  retryable by the caller.
"""

from __future__ import annotations

import json
import logging

from geoalchemy2.functions import ST_AsGeoJSON
from geoalchemy2.shape import from_shape
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from geosync.models.feature import Feature, is_valid_feature_id, new_feature_id
from geosync.schemas.feature import StoredFeature
from geosync.services.translator import apply_filter
from geosync.spatial.geometry import WGS84_SRID, InvalidGeometry, SpatialFilter, to_shape

logger = logging.getLogger(__name__)

__all__ = [
    "EmptyUpdate",
    "InvalidFeatureId",
    "InvalidGeometry",
    "SpatialStore",
    "StoreError",
    "StoreUnavailable",
]


class StoreError(Exception):
    """Base class for spatial store failures."""


class InvalidFeatureId(StoreError):
    def __init__(self, feature_id: str) -> None:
        super().__init__("invalid id")
        self.feature_id = feature_id


class EmptyUpdate(StoreError):
    def __init__(self) -> None:
        super().__init__("nothing to update")


class StoreUnavailable(StoreError):
    """The database could not complete the operation."""

    def __init__(self, operation: str, detail: object) -> None:
        super().__init__(f"db {operation} error: {detail}")
        self.operation = operation


def _check_id(feature_id: str) -> str:
    """Validate ``feature_id`` and return it in stored (lowercase) form."""
    if not is_valid_feature_id(feature_id):
        raise InvalidFeatureId(feature_id)
    return feature_id.lower()


class SpatialStore:
    """
    Create / update / delete / query features.
    All methods are async and use the injected AsyncSession.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _commit(self, operation: str) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error("Store %s failed: %s", operation, exc, exc_info=True)
            raise StoreUnavailable(operation, exc) from exc

    # ── Mutations ─────────────────────────────────────────────

    async def create(
        self,
        name: str,
        description: str,
        geometry: dict,
        properties: dict | None = None,
    ) -> str:
        """Insert a feature and return its new identifier."""
        geom = to_shape(geometry)
        feature = Feature(
            id=new_feature_id(),
            name=name or "",
            description=description or "",
            geom=from_shape(geom, srid=WGS84_SRID),
            properties=dict(properties or {}),
        )
        self.session.add(feature)
        await self._commit("insert")
        logger.info("Created feature %s (%s)", feature.id, geometry.get("type"))
        return feature.id

    async def update(
        self,
        feature_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        geometry: dict | None = None,
    ) -> bool:
        """
        Apply a partial update.  Returns whether a row matched; a
        missing row is *not* an error.
        """
        feature_id = _check_id(feature_id)

        values: dict = {}
        if name is not None:
            values["name"] = name
        if description is not None:
            values["description"] = description
        if geometry is not None:
            values["geom"] = from_shape(to_shape(geometry), srid=WGS84_SRID)
        if not values:
            raise EmptyUpdate()
        values["updated_at"] = func.now()

        stmt = update(Feature).where(Feature.id == feature_id).values(**values)
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreUnavailable("update", exc) from exc
        await self._commit("update")

        matched = result.rowcount > 0
        if matched:
            logger.info("Updated feature %s (%s)", feature_id, ", ".join(sorted(values)))
        else:
            logger.info("Update of unknown feature %s ignored", feature_id)
        return matched

    async def delete(self, feature_id: str) -> bool:
        """Delete a feature.  Returns whether a row existed."""
        feature_id = _check_id(feature_id)

        stmt = delete(Feature).where(Feature.id == feature_id)
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreUnavailable("delete", exc) from exc
        await self._commit("delete")

        existed = result.rowcount > 0
        logger.info(
            "Deleted feature %s%s", feature_id, "" if existed else " (already absent)"
        )
        return existed

    # ── Queries ───────────────────────────────────────────────

    async def query(self, spatial_filter: SpatialFilter | None) -> list[StoredFeature]:
        """
        Fetch features matching ``spatial_filter`` (``None`` = all).

        Rows whose geometry cannot be decoded are logged and skipped.
        """
        stmt = apply_filter(
            select(
                Feature.id,
                Feature.name,
                Feature.description,
                Feature.properties,
                Feature.created_at,
                Feature.updated_at,
                ST_AsGeoJSON(Feature.geom).label("geojson"),
            ),
            spatial_filter,
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreUnavailable("find", exc) from exc

        records: list[StoredFeature] = []
        for row in result.all():
            try:
                geometry = json.loads(row.geojson)
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping feature %s: undecodable geometry (%s)", row.id, exc)
                continue
            records.append(
                StoredFeature(
                    id=row.id,
                    name=row.name or "",
                    description=row.description or "",
                    geometry=geometry,
                    properties=row.properties or {},
                    created_at=row.created_at,
                    updated_at=row.updated_at,
                )
            )
        return records
