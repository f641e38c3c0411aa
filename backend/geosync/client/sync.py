"""
Sync Controller
===============
Owns the viewport → fetch → render cycle.

State machine::

    idle ──fetch──▶ fetching ──ok──▶ idle
                       │
                       └──error──▶ error (idle, last_error set)

- The first usable viewport loads immediately (``start``).
- Later viewport changes go through a ``CoalescingTimer``: a burst of
  pan / zoom events yields one fetch after the map settles, and that
  fetch reads the viewport *at expiry*.
- The spinner is shown for the whole cycle and hidden in ``finally``,
  whatever happens.
- A successful fetch replaces the render cache outright.  A failed one
  leaves cache and layers untouched and toasts the error unless it
  repeats the previous one.

Ordering gap
------------
In-flight fetches are never cancelled and responses carry no viewport
generation.  If fetch A starts before fetch B but finishes after it,
A's result is what stays rendered: the last response to *complete*
wins.  The next viewport change corrects it.
"""

from __future__ import annotations

import logging

from geosync.client.api import FeatureApiClient, FeatureApiError
from geosync.client.debounce import CoalescingTimer
from geosync.client.reconciler import FOCUS_PADDING, RenderReconciler, extent_of
from geosync.client.state import SyncStatus, ViewState, Viewport
from geosync.client.view import CameraTarget, MapView

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_S = 0.4


class SyncController:
    def __init__(
        self,
        api: FeatureApiClient,
        view: MapView,
        state: ViewState | None = None,
        reconciler: RenderReconciler | None = None,
        debounce_s: float = DEFAULT_DEBOUNCE_S,
        max_cluster_radius_px: float = 120.0,
    ) -> None:
        self.api = api
        self.view = view
        self.state = state if state is not None else ViewState()
        self.reconciler = reconciler or RenderReconciler(
            view, self.state, max_cluster_radius_px=max_cluster_radius_px
        )
        self._timer = CoalescingTimer(debounce_s, self.refresh)

    # ── Triggers ──────────────────────────────────────────────

    async def start(self, viewport: Viewport) -> bool:
        """Initial load for the first usable viewport."""
        self.state.viewport = viewport
        return await self.refresh()

    def on_viewport_change(self, viewport: Viewport) -> None:
        """Record the new viewport and (re)arm the debounced fetch."""
        previous = self.state.viewport
        self.state.viewport = viewport
        if (
            self.state.cluster_mode
            and previous is not None
            and previous.zoom != viewport.zoom
        ):
            # Clusters depend on zoom; regroup the cached layers now.
            self.reconciler.render()
        self._timer.trigger()

    @property
    def fetch_pending(self) -> bool:
        return self._timer.pending

    async def drain(self) -> None:
        """Wait for debounced fetches that have already fired."""
        await self._timer.drain()

    def close(self) -> None:
        self._timer.cancel()

    # ── Fetch cycle ───────────────────────────────────────────

    async def refresh(self) -> bool:
        """Fetch the current viewport and re-render.  Returns success."""
        self.view.set_spinner(True)
        self.state.status = SyncStatus.FETCHING
        try:
            viewport = self.state.viewport
            if viewport is None:
                raise FeatureApiError("No viewport to load")
            collection = await self.api.fetch_bbox(viewport.bounds)
            self._apply(collection)
            return True
        except FeatureApiError as exc:
            self._report_error(str(exc))
            return False
        finally:
            self.view.set_spinner(False)
            if self.state.status is SyncStatus.FETCHING:
                self.state.status = SyncStatus.ERROR

    def _apply(self, collection: dict) -> None:
        hid = self.state.highlighted_id
        self.state.collection = collection
        if hid is not None and self.state.find_feature(hid) is None:
            self.reconciler.clear_highlight()
        self.reconciler.rebuild(collection)
        self.state.last_error = None
        self.state.status = SyncStatus.IDLE
        logger.debug("Rendered %d features", len(self.state.features))

    def _report_error(self, message: str) -> None:
        text = f"Load error: {message}"
        logger.warning("%s", text)
        if text != self.state.last_error:
            self.view.show_toast(text, 4.0)
        self.state.last_error = text
        self.state.status = SyncStatus.ERROR

    # ── Zoom to fit ───────────────────────────────────────────

    async def zoom_to_fit(self) -> bool:
        """Move the camera to the extent of the features in view."""
        self.view.set_spinner(True)
        try:
            viewport = self.state.viewport
            if viewport is None:
                raise FeatureApiError("No viewport to load")
            collection = await self.api.fetch_bbox(viewport.bounds)
            extent = extent_of(collection.get("features", []))
            if extent is None:
                self.view.show_toast("No features in view")
                return False
            await self.view.move_camera(
                CameraTarget("bounds", bounds=extent.pad(FOCUS_PADDING))
            )
            self.view.show_toast("Fit to view")
            return True
        except FeatureApiError as exc:
            self.view.show_toast(f"Error: {exc}")
            return False
        finally:
            self.view.set_spinner(False)
