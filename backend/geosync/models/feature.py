"""
SQLAlchemy ORM model for map features.

Geometries are stored in a single GeoAlchemy2 ``GEOMETRY`` column with
SRID 4326 (WGS 84, ``[longitude, latitude]`` axis order) and a GIST
index, so bounding-box and radius queries stay indexed.  PostGIS keeps
the index in step with the column on every INSERT / UPDATE.

Identifiers are 24 lowercase hex characters: the creation time in
seconds (4 bytes, big-endian) followed by 8 random bytes.  Hex case is
not significant on input; the store lowercases ids before lookup.
"""

from __future__ import annotations

import re
import secrets
import time
from datetime import datetime

from geoalchemy2 import Geometry
from sqlalchemy import DateTime, Index, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from geosync.models.database import Base

FEATURE_ID_PATTERN = re.compile(r"[0-9a-fA-F]{24}")


def new_feature_id() -> str:
    """Return a fresh, roughly time-ordered 24-hex identifier."""
    seconds = int(time.time()) & 0xFFFFFFFF
    return seconds.to_bytes(4, "big").hex() + secrets.token_hex(8)


def is_valid_feature_id(value: str) -> bool:
    return bool(FEATURE_ID_PATTERN.fullmatch(value or ""))


class Feature(Base):
    __tablename__ = "features"
    __table_args__ = (
        Index("idx_features_geom_gist", "geom", postgresql_using="gist"),
    )

    id: Mapped[str] = mapped_column(
        String(24), primary_key=True, default=new_feature_id
    )
    name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # WGS 84, coordinates are always [lon, lat]
    geom = mapped_column(
        Geometry(geometry_type="GEOMETRY", srid=4326, spatial_index=False),
        nullable=False,
    )
    # Free-form extras merged into query output
    properties: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
