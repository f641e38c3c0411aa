"""
Proximity Clustering
====================
Groups rendered layers whose anchors lie within ``max_radius_px`` of
each other *on screen* at the current zoom.

Screen distance is measured in Web-Mercator pixels (256 px tiles):

    x = (lon + 180) / 360 × 256 × 2^z
    y = (1 − ln(tan φ + sec φ) / π) / 2 × 256 × 2^z

Grouping is greedy in input order: each layer joins the nearest
existing group whose seed is within the radius, otherwise it seeds a
new group.  A uniform grid with cell size = radius limits the search to
the 3×3 neighbouring cells.  Groups of one are not clusters; their
layer renders on its own.
"""

from __future__ import annotations

import enum
import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Sequence

from geosync.client.state import Bounds
from geosync.client.view import RenderedLayer

TILE_SIZE = 256
MAX_MERCATOR_LAT = 85.0511287798


class ClusterSize(enum.Enum):
    """Icon tier by member count; the value is the icon size in px."""

    SMALL = 40
    MEDIUM = 48
    LARGE = 60

    @classmethod
    def for_count(cls, count: int) -> "ClusterSize":
        if count > 50:
            return cls.LARGE
        if count > 10:
            return cls.MEDIUM
        return cls.SMALL


def project(lon: float, lat: float, zoom: float) -> tuple[float, float]:
    """Lon/lat → Web-Mercator pixel coordinates at ``zoom``."""
    lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, lat))
    scale = TILE_SIZE * (2.0 ** zoom)
    phi = math.radians(lat)
    x = (lon + 180.0) / 360.0 * scale
    y = (1.0 - math.log(math.tan(phi) + 1.0 / math.cos(phi)) / math.pi) / 2.0 * scale
    return x, y


@dataclass(eq=False)
class Cluster:
    members: list[RenderedLayer] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.members)

    @property
    def size(self) -> ClusterSize:
        return ClusterSize.for_count(self.count)

    @property
    def center(self) -> tuple[float, float]:
        """Mean member anchor (lon, lat)."""
        anchors = [m.anchor for m in self.members]
        return (
            sum(a[0] for a in anchors) / len(anchors),
            sum(a[1] for a in anchors) / len(anchors),
        )

    @property
    def bounds(self) -> Bounds:
        anchors = [m.anchor for m in self.members]
        return Bounds(
            min(a[0] for a in anchors),
            min(a[1] for a in anchors),
            max(a[0] for a in anchors),
            max(a[1] for a in anchors),
        )

    def __contains__(self, layer: RenderedLayer) -> bool:
        return any(m is layer for m in self.members)


def cluster_layers(
    layers: Sequence[RenderedLayer],
    zoom: float,
    max_radius_px: float,
) -> tuple[list[RenderedLayer], list[Cluster]]:
    """Split ``layers`` into individually rendered layers and clusters."""
    if max_radius_px <= 0:
        return list(layers), []

    groups: list[list[RenderedLayer]] = []
    seeds: list[tuple[float, float]] = []
    grid: dict[tuple[int, int], list[int]] = defaultdict(list)
    radius_sq = max_radius_px * max_radius_px

    for layer in layers:
        px, py = project(*layer.anchor, zoom)
        cx, cy = int(px // max_radius_px), int(py // max_radius_px)

        best: int | None = None
        best_dist = radius_sq
        for gx in (cx - 1, cx, cx + 1):
            for gy in (cy - 1, cy, cy + 1):
                for idx in grid.get((gx, gy), ()):
                    sx, sy = seeds[idx]
                    dist = (sx - px) ** 2 + (sy - py) ** 2
                    if dist <= best_dist:
                        best, best_dist = idx, dist

        if best is None:
            grid[(cx, cy)].append(len(groups))
            groups.append([layer])
            seeds.append((px, py))
        else:
            groups[best].append(layer)

    singles: list[RenderedLayer] = []
    clusters: list[Cluster] = []
    for group in groups:
        if len(group) == 1:
            singles.append(group[0])
        else:
            clusters.append(Cluster(members=group))
    return singles, clusters
