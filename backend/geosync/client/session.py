"""
Wiring for a map client session.

``MapSession.from_settings`` builds the API client, view state, sync
controller, mutation protocol and geocoder from ``Settings`` around a
concrete view and prompt.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from geosync.client.api import FeatureApiClient
from geosync.client.geocode import ReverseGeocoder
from geosync.client.mutations import MutationProtocol
from geosync.client.state import ViewState
from geosync.client.sync import SyncController
from geosync.client.view import MapView, NamePrompt
from geosync.config import Settings, get_settings


@dataclass
class MapSession:
    api: FeatureApiClient
    sync: SyncController
    mutations: MutationProtocol

    @property
    def state(self) -> ViewState:
        return self.sync.state

    @classmethod
    def from_settings(
        cls,
        view: MapView,
        prompt: NamePrompt,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "MapSession":
        settings = settings or get_settings()
        api = FeatureApiClient(
            settings.api_base,
            timeout=settings.request_timeout_s,
            transport=transport,
        )
        sync = SyncController(
            api,
            view,
            debounce_s=settings.fetch_debounce_s,
            max_cluster_radius_px=settings.max_cluster_radius_px,
        )
        geocoder = ReverseGeocoder(
            url=settings.geocoder_url,
            user_agent=settings.geocoder_user_agent,
            timeout=settings.geocoder_timeout_s,
        )
        mutations = MutationProtocol(api, sync, prompt, geocoder=geocoder)
        return cls(api=api, sync=sync, mutations=mutations)

    async def aclose(self) -> None:
        self.sync.close()
        await self.api.aclose()
