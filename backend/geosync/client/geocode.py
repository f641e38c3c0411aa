"""
Reverse geocoding for clicked map points (Nominatim).

Best effort only: ``label()`` always returns a string.  Any failure
(network, HTTP status, malformed JSON) yields the coordinate text
``"lat, lon"`` and never reaches the mutation path.
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)

# Most specific first.
ADDRESS_PRIORITY: tuple[str, ...] = (
    "attraction", "tourism", "building", "amenity", "leisure", "shop",
    "road", "pedestrian", "neighbourhood", "suburb", "village", "town",
    "city", "county", "state",
)


def coordinate_label(lat: float, lon: float) -> str:
    return f"{lat:.6f}, {lon:.6f}"


def _short_display_name(display_name: str) -> str | None:
    parts = [p.strip() for p in display_name.split(",") if p.strip()]
    return ", ".join(parts[:3]) if parts else None


def label_from_payload(payload: object) -> str | None:
    """Pick a human-readable name from a Nominatim ``jsonv2`` reply."""
    if not isinstance(payload, dict):
        return None
    name = payload.get("name")
    if isinstance(name, str) and name.strip():
        return name
    address = payload.get("address")
    if isinstance(address, dict):
        for key in ADDRESS_PRIORITY:
            if address.get(key):
                return str(address[key])
    display_name = payload.get("display_name")
    if isinstance(display_name, str) and display_name.strip():
        return _short_display_name(display_name)
    return None


class ReverseGeocoder:
    def __init__(
        self,
        url: str = "https://nominatim.openstreetmap.org/reverse",
        user_agent: str = "GeoSync/0.1",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.user_agent = user_agent
        self.timeout = timeout
        self._transport = transport

    async def label(self, lat: float, lon: float) -> str:
        fallback = coordinate_label(lat, lon)
        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            try:
                resp = await client.get(
                    self.url,
                    params={
                        "format": "jsonv2",
                        "lat": lat,
                        "lon": lon,
                        "zoom": 16,
                        "addressdetails": 1,
                    },
                    headers={"Accept": "application/json", "User-Agent": self.user_agent},
                )
                resp.raise_for_status()
                payload = resp.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.debug("Reverse geocode failed for %s: %s", fallback, exc)
                return fallback
        return label_from_payload(payload) or fallback
