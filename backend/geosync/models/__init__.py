"""Models subpackage."""

from geosync.models.database import (
    Base,
    async_session_factory,
    build_engine,
    check_postgis,
    engine,
    get_db,
    init_models,
)
from geosync.models.feature import Feature, is_valid_feature_id, new_feature_id

__all__ = [
    "Base",
    "async_session_factory",
    "build_engine",
    "check_postgis",
    "engine",
    "get_db",
    "init_models",
    "Feature",
    "is_valid_feature_id",
    "new_feature_id",
]
