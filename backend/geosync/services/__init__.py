"""Services subpackage — spatial store and query translation."""

from geosync.services.store import (
    EmptyUpdate,
    InvalidFeatureId,
    SpatialStore,
    StoreError,
    StoreUnavailable,
)
from geosync.services.translator import (
    apply_filter,
    parse_filter,
    to_feature_collection,
)

__all__ = [
    "EmptyUpdate",
    "InvalidFeatureId",
    "SpatialStore",
    "StoreError",
    "StoreUnavailable",
    "apply_filter",
    "parse_filter",
    "to_feature_collection",
]
