"""
Feature API Client
==================
Thin async wrapper over the ``/features`` HTTP API using ``httpx``.

Every failure (non-2xx status, connection error, timeout) is raised as
``FeatureApiError`` whose message is what the map shows in a toast.
For HTTP errors the response body is included verbatim:

    HTTP 503 Service Unavailable: {"detail":"db find error: ..."}
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from geosync.client.state import Bounds

logger = logging.getLogger(__name__)


class FeatureApiError(Exception):
    """A request to the feature API failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _normalize_collection(payload: Any) -> dict:
    """Coerce a response body into ``{type, features: [...]}``."""
    if not isinstance(payload, dict):
        return {"type": "FeatureCollection", "features": []}
    features = payload.get("features")
    if not isinstance(features, list):
        features = []
    return {"type": "FeatureCollection", "features": features}


class FeatureApiClient:
    """
    Async client for the feature API.

    Parameters
    ----------
    base_url : str
        API root, e.g. ``http://localhost:3000``.
    timeout : float
        Per-request network timeout in seconds.
    transport : httpx.AsyncBaseTransport, optional
        Injected transport (``ASGITransport`` / ``MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Cache-Control": "no-store"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "FeatureApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ── Transport ─────────────────────────────────────────────

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise FeatureApiError(f"Request timed out: {method} {url}") from exc
        except httpx.HTTPError as exc:
            raise FeatureApiError(str(exc) or "Network error") from exc

        if response.is_error:
            text = response.text
            message = f"HTTP {response.status_code} {response.reason_phrase}"
            if text:
                message = f"{message}: {text}"
            logger.debug("%s %s failed: %s", method, url, message)
            raise FeatureApiError(message, status_code=response.status_code)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None

    # ── Queries ───────────────────────────────────────────────

    async def fetch_bbox(self, bounds: Bounds) -> dict:
        """Features inside ``bounds`` as a FeatureCollection dict."""
        response = await self._request(
            "GET", "/features", params={"bbox": bounds.to_param()}
        )
        return _normalize_collection(self._json(response))

    async def fetch_near(self, lat: float, lon: float, radius_m: int | None = None) -> dict:
        params = {"near": f"{lat},{lon}"}
        if radius_m is not None:
            params["radius"] = str(int(radius_m))
        response = await self._request("GET", "/features", params=params)
        return _normalize_collection(self._json(response))

    async def health(self) -> bool:
        response = await self._request("GET", "/healthz")
        return response.text.strip() == "ok"

    # ── Mutations ─────────────────────────────────────────────

    async def create(
        self,
        name: str,
        description: str,
        geometry: dict,
        properties: dict | None = None,
    ) -> str | None:
        """Create a feature; returns the server id (``None`` if absent)."""
        body: dict[str, Any] = {
            "name": name,
            "description": description,
            "geojson": geometry,
        }
        if properties:
            body["properties"] = properties
        response = await self._request("POST", "/features", json=body)
        payload = self._json(response)
        if isinstance(payload, dict) and payload.get("id"):
            return str(payload["id"])
        return None

    async def update(self, feature_id: str, **fields: Any) -> None:
        """PUT any subset of ``name``, ``description``, ``geojson``."""
        body = {k: v for k, v in fields.items() if v is not None}
        await self._request("PUT", f"/features/{feature_id}", json=body)

    async def delete(self, feature_id: str) -> None:
        await self._request("DELETE", f"/features/{feature_id}")
