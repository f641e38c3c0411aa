"""
GeoJSON import / export and permalinks.

Both file operations are plain consumers of the HTTP API: export writes
whatever the current viewport query returns, import hands the parsed
features to ``MutationProtocol.import_features``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from urllib.parse import quote

from geosync.client.api import FeatureApiClient
from geosync.client.state import Viewport

logger = logging.getLogger(__name__)


def parse_collection(text: str) -> list[dict]:
    """Features of a FeatureCollection document; ``ValueError`` otherwise."""
    document = json.loads(text)
    if (
        not isinstance(document, dict)
        or document.get("type") != "FeatureCollection"
        or not isinstance(document.get("features"), list)
    ):
        raise ValueError("File is not a FeatureCollection")
    return [f for f in document["features"] if isinstance(f, dict)]


def load_collection(path: str | Path) -> list[dict]:
    return parse_collection(Path(path).read_text(encoding="utf-8"))


async def export_view(api: FeatureApiClient, viewport: Viewport, path: str | Path) -> int:
    """Write the viewport's features to ``path``; returns the feature count."""
    collection = await api.fetch_bbox(viewport.bounds)
    target = Path(path)
    target.write_text(json.dumps(collection, indent=2), encoding="utf-8")
    count = len(collection.get("features", []))
    logger.info("Exported %d features to %s", count, target)
    return count


def permalink(page_url: str, api_base: str, viewport: Viewport) -> str:
    """``<page>?api=<api>#<lat>,<lon>,<zoom>`` for the viewport centre."""
    lon, lat = viewport.bounds.center
    zoom = viewport.zoom
    zoom_text = str(int(zoom)) if float(zoom).is_integer() else str(zoom)
    return f"{page_url}?api={quote(api_base, safe='')}#{lat:.6f},{lon:.6f},{zoom_text}"


def parse_permalink_fragment(fragment: str) -> tuple[float, float, float] | None:
    """Inverse of the ``#lat,lon,zoom`` part; ``None`` if malformed."""
    parts = fragment.lstrip("#").split(",")
    if len(parts) != 3:
        return None
    try:
        lat, lon, zoom = (float(p) for p in parts)
    except ValueError:
        return None
    return lat, lon, zoom
