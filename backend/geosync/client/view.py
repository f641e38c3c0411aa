"""
Interfaces of the map client's external collaborators.

The map canvas, its drawing tool, the list panel, toasts and the
spinner are all "the view"; the modal that asks for a name and a
description is the prompt.  Both are described here as protocols and
injected into the controller, reconciler and mutation protocol.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from typing import TYPE_CHECKING, NamedTuple, Protocol, Sequence

from shapely.geometry import shape
from shapely.geometry.base import BaseGeometry

from geosync.client.state import Bounds

if TYPE_CHECKING:
    from geosync.client.clustering import Cluster

LayerHandle = int


class LayerAlreadyTagged(RuntimeError):
    """A rendered layer may be bound to a server id only once."""


@dataclass(eq=False)
class RenderedLayer:
    """
    A drawable on the map: either a synced feature (``feature_id`` set)
    or a freshly drawn geometry awaiting its create acknowledgment.
    """

    handle: LayerHandle
    geometry: dict
    properties: dict = field(default_factory=dict)
    feature_id: str | None = None

    @property
    def tagged(self) -> bool:
        return self.feature_id is not None

    def tag(self, feature_id: str) -> None:
        if self.feature_id is not None:
            raise LayerAlreadyTagged(
                f"layer {self.handle} already bound to {self.feature_id}"
            )
        self.feature_id = feature_id

    @cached_property
    def shape(self) -> BaseGeometry:
        return shape(self.geometry)

    @property
    def is_point(self) -> bool:
        return self.geometry.get("type") == "Point"

    @property
    def anchor(self) -> tuple[float, float]:
        """(lon, lat) used for clustering and popups."""
        point = self.shape if self.is_point else self.shape.centroid
        return (point.x, point.y)

    @property
    def bounds(self) -> Bounds:
        return Bounds(*self.shape.bounds)


@dataclass(frozen=True)
class CameraTarget:
    """
    Where the camera should go before a popup opens.

    ``kind`` is ``"center"`` (``center`` + ``zoom``), ``"bounds"``
    (fit ``bounds``) or ``"expand_cluster"`` (zoom until ``handle`` is
    no longer inside a cluster).
    """

    kind: str
    center: tuple[float, float] | None = None
    zoom: float | None = None
    bounds: Bounds | None = None
    handle: LayerHandle | None = None


class NameDescription(NamedTuple):
    name: str
    description: str


class MapView(Protocol):
    def show_toast(self, message: str, duration: float = 2.5) -> None: ...

    def set_spinner(self, visible: bool) -> None: ...

    def set_feature_count(self, count: int) -> None: ...

    def render_map(
        self, layers: Sequence[RenderedLayer], clusters: Sequence["Cluster"]
    ) -> None: ...

    def render_list(self, features: Sequence[dict]) -> None: ...

    def set_map_highlight(self, feature_id: str, on: bool) -> bool:
        """Toggle the map highlight; ``False`` if no renderable exists."""
        ...

    def set_list_highlight(self, feature_id: str, on: bool) -> bool:
        """Toggle the list highlight; ``False`` if no list entry exists."""
        ...

    async def move_camera(self, target: CameraTarget) -> None:
        """Resolve once pan / zoom / cluster expansion has finished."""
        ...

    def open_popup(self, feature_id: str) -> None: ...

    def open_detached_popup(
        self, center: tuple[float, float], title: str, body: str
    ) -> None: ...


class NamePrompt(Protocol):
    async def ask(
        self, name: str = "", description: str = ""
    ) -> NameDescription | None:
        """Suspend until the user confirms (values) or cancels (``None``)."""
        ...
