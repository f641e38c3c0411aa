"""
Render Reconciler
=================
Turns the cached FeatureCollection into rendered layers and keeps three
pieces of client bookkeeping consistent:

Identity map
    ``dict[LayerHandle, str]`` from client-assigned layer handles to
    server ids.  It is the only thing consulted when the drawing tool
    reports an edit or delete for a layer; a handle without an entry is
    not server-backed.  Freshly drawn layers live outside the synced set
    until their create is acknowledged, then are tagged exactly once.

Synced set
    At most one layer per server id.  ``rebuild`` replaces it wholesale
    on every successful fetch.

Highlight
    One id at most, shared by map and list.  The previous highlight is
    removed from both views before a new one is applied.

Cluster mode only changes how the cached layers are drawn; switching it
never touches the network.
"""

from __future__ import annotations

import itertools
import logging

from shapely.errors import ShapelyError

from geosync.client.clustering import Cluster, cluster_layers
from geosync.client.state import Bounds, ViewState, feature_id
from geosync.client.view import CameraTarget, LayerHandle, MapView, RenderedLayer

logger = logging.getLogger(__name__)

FOCUS_MIN_ZOOM = 13
FOCUS_PADDING = 0.2


def extent_of(features: list[dict]) -> Bounds | None:
    """Union of the bounds of every feature geometry (``None`` if empty)."""
    boxes = []
    for feature in features:
        geometry = feature.get("geometry")
        if not isinstance(geometry, dict):
            continue
        try:
            boxes.append(RenderedLayer(handle=0, geometry=geometry).shape.bounds)
        except (ShapelyError, KeyError, TypeError, ValueError, IndexError):
            continue
    if not boxes:
        return None
    return Bounds(
        min(b[0] for b in boxes),
        min(b[1] for b in boxes),
        max(b[2] for b in boxes),
        max(b[3] for b in boxes),
    )


class RenderReconciler:
    def __init__(
        self,
        view: MapView,
        state: ViewState,
        max_cluster_radius_px: float = 120.0,
    ) -> None:
        self.view = view
        self.state = state
        self.max_cluster_radius_px = max_cluster_radius_px
        self._next_handle = itertools.count(1)
        self._synced: dict[str, RenderedLayer] = {}
        self._server_ids: dict[LayerHandle, str] = {}
        self._drawn: dict[LayerHandle, RenderedLayer] = {}
        self._clusters: list[Cluster] = []

    # ── Introspection ─────────────────────────────────────────

    @property
    def synced_layers(self) -> list[RenderedLayer]:
        return list(self._synced.values())

    @property
    def clusters(self) -> list[Cluster]:
        return list(self._clusters)

    def layer_for_id(self, fid: str) -> RenderedLayer | None:
        return self._synced.get(fid)

    def layer(self, handle: LayerHandle) -> RenderedLayer | None:
        fid = self._server_ids.get(handle)
        if fid is not None:
            return self._synced.get(fid)
        return self._drawn.get(handle)

    def server_id_for(self, handle: LayerHandle) -> str | None:
        return self._server_ids.get(handle)

    # ── Rebuild from a fetched collection ─────────────────────

    def rebuild(self, collection: dict) -> None:
        self._synced.clear()
        self._server_ids.clear()

        for feature in collection.get("features", []):
            fid = feature_id(feature)
            if fid is None:
                logger.warning("Feature without id in collection, skipped")
                continue
            if fid in self._synced:
                logger.warning("Duplicate feature id %s in collection, skipped", fid)
                continue
            geometry = feature.get("geometry")
            if not isinstance(geometry, dict):
                logger.warning("Feature %s has no geometry, skipped", fid)
                continue
            layer = RenderedLayer(
                handle=next(self._next_handle),
                geometry=geometry,
                properties=dict(feature.get("properties") or {}),
                feature_id=fid,
            )
            try:
                layer.shape
            except (ShapelyError, KeyError, TypeError, ValueError, IndexError) as exc:
                logger.warning("Feature %s has unreadable geometry (%s), skipped", fid, exc)
                continue
            self._synced[fid] = layer
            self._server_ids[layer.handle] = fid

        self.view.set_feature_count(len(collection.get("features", [])))
        self.render()
        self.render_list()

    def render(self) -> None:
        """Redraw the map from the synced set, clustered or not."""
        layers = list(self._synced.values())
        viewport = self.state.viewport
        if self.state.cluster_mode and viewport is not None:
            singles, clusters = cluster_layers(
                layers, viewport.zoom, self.max_cluster_radius_px
            )
        else:
            singles, clusters = layers, []
        self._clusters = clusters
        self.view.render_map(singles, clusters)
        if self.state.highlighted_id is not None:
            self.view.set_map_highlight(self.state.highlighted_id, True)

    # ── List panel ────────────────────────────────────────────

    def list_features(self) -> list[dict]:
        """Cached features filtered by the search text (name/description)."""
        query = self.state.search.strip().lower()
        if not query:
            return list(self.state.features)
        matches = []
        for feature in self.state.features:
            props = feature.get("properties") or {}
            name = str(props.get("name") or "").lower()
            desc = str(props.get("description") or "").lower()
            if query in name or query in desc:
                matches.append(feature)
        return matches

    def render_list(self) -> None:
        features = self.list_features()
        self.view.render_list(features)
        hid = self.state.highlighted_id
        if hid is not None and any(feature_id(f) == hid for f in features):
            self.view.set_list_highlight(hid, True)

    def set_search(self, text: str) -> None:
        self.state.search = text
        self.render_list()

    # ── Cluster mode ──────────────────────────────────────────

    def set_cluster_mode(self, enabled: bool) -> bool:
        """Returns ``True`` when the mode actually changed."""
        if self.state.cluster_mode == enabled:
            return False
        self.state.cluster_mode = enabled
        self.render()
        return True

    def toggle_cluster_mode(self) -> bool:
        enabled = not self.state.cluster_mode
        self.set_cluster_mode(enabled)
        self.view.show_toast("Clustering " + ("On" if enabled else "Off"))
        return enabled

    # ── Identity mapping ──────────────────────────────────────

    def register_drawn(self, geometry: dict) -> LayerHandle:
        """Track a newly drawn, not yet persisted geometry."""
        layer = RenderedLayer(handle=next(self._next_handle), geometry=geometry)
        self._drawn[layer.handle] = layer
        return layer.handle

    def discard(self, handle: LayerHandle) -> None:
        """Forget a drawn layer whose creation was cancelled or failed."""
        self._drawn.pop(handle, None)

    def adopt(self, handle: LayerHandle, fid: str) -> RenderedLayer:
        """
        Bind a drawn layer to the id the store just assigned and move it
        into the synced set.
        """
        layer = self._drawn.pop(handle)
        layer.tag(fid)
        previous = self._synced.get(fid)
        if previous is not None:
            self._server_ids.pop(previous.handle, None)
        self._synced[fid] = layer
        self._server_ids[handle] = fid
        self.render()
        return layer

    def forget(self, fid: str) -> None:
        """Drop the layer (and highlight) of a deleted feature."""
        if self.state.highlighted_id == fid:
            self.clear_highlight()
        layer = self._synced.pop(fid, None)
        if layer is not None:
            self._server_ids.pop(layer.handle, None)
            self.render()

    # ── Highlight ─────────────────────────────────────────────

    def clear_highlight(self) -> None:
        hid = self.state.highlighted_id
        if hid is None:
            return
        self.view.set_map_highlight(hid, False)
        self.view.set_list_highlight(hid, False)
        self.state.highlighted_id = None

    def highlight(self, fid: str) -> bool:
        """
        Make ``fid`` the single highlighted feature.  Ids that are not
        in the current collection leave nothing highlighted.
        """
        self.clear_highlight()
        if fid not in self._synced and self.state.find_feature(fid) is None:
            return False
        self.view.set_map_highlight(fid, True)
        self.view.set_list_highlight(fid, True)
        self.state.highlighted_id = fid
        return True

    # ── Focus (list → map) ────────────────────────────────────

    def camera_target(self, layer: RenderedLayer) -> CameraTarget:
        if self.state.cluster_mode and any(layer in c for c in self._clusters):
            return CameraTarget("expand_cluster", center=layer.anchor, handle=layer.handle)
        if layer.is_point:
            zoom = self.state.viewport.zoom if self.state.viewport else 0
            return CameraTarget(
                "center", center=layer.anchor, zoom=max(zoom, FOCUS_MIN_ZOOM)
            )
        return CameraTarget("bounds", bounds=layer.bounds.pad(FOCUS_PADDING))

    async def focus(self, fid: str) -> bool:
        """
        Select ``fid`` from the list: highlight it, bring it into view,
        and open its popup once the camera has stopped moving.
        """
        layer = self._synced.get(fid)
        if layer is not None:
            self.highlight(fid)
            await self.view.move_camera(self.camera_target(layer))
            self.view.open_popup(fid)
            return True

        feature = self.state.find_feature(fid)
        if feature is None or not isinstance(feature.get("geometry"), dict):
            return False
        # Not on the map: show a standalone popup at the feature.
        detached = RenderedLayer(handle=0, geometry=feature["geometry"])
        self.clear_highlight()
        await self.view.move_camera(self.camera_target(detached))
        props = feature.get("properties") or {}
        self.view.open_detached_popup(
            detached.anchor, str(props.get("name") or ""), str(props.get("description") or "")
        )
        return True
