"""Routers subpackage — HTTP layer for all API endpoints."""

from geosync.routers import features

__all__ = ["features"]
