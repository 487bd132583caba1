from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.types import RoutePoint, SpawnPoint
from ..utils.geo import haversine_m
from .registry import GeoAnchorRegistry

log = logging.getLogger(__name__)

DESTINATION_KEY = "__destination__"


class ProximitySpawner:
    """Spawns configured points when the viewer comes near and removes them when far away."""

    def __init__(
        self,
        registry: GeoAnchorRegistry,
        points: Sequence[SpawnPoint],
        spawn_within_m: float = 60.0,
        despawn_beyond_m: float = 120.0,
    ) -> None:
        if despawn_beyond_m <= spawn_within_m:
            log.warning(
                "despawn_beyond_m (%.1f) must exceed spawn_within_m (%.1f); using %.1f",
                despawn_beyond_m,
                spawn_within_m,
                spawn_within_m + 10.0,
            )
            despawn_beyond_m = spawn_within_m + 10.0
        self.registry = registry
        self.spawn_within_m = spawn_within_m
        self.despawn_beyond_m = despawn_beyond_m
        self.targets: Dict[str, SpawnPoint] = {f"point:{i}": p for i, p in enumerate(points) if p.enabled}
        self.active: Dict[str, int] = {}

    def set_destination(self, point: Optional[RoutePoint], name: str = "Destination") -> None:
        self._drop(DESTINATION_KEY)
        self.targets.pop(DESTINATION_KEY, None)
        if point is not None:
            self.targets[DESTINATION_KEY] = SpawnPoint(name=name, lat=point.lat, lon=point.lon)

    def _drop(self, key: str) -> None:
        anchor_id = self.active.pop(key, None)
        if anchor_id is not None and anchor_id in self.registry.anchors:
            self.registry.remove(anchor_id)

    def update(self, viewer: RoutePoint) -> Tuple[List[int], List[int]]:
        """Returns (spawned anchor ids, removed anchor ids) for this update."""
        spawned: List[int] = []
        removed: List[int] = []
        for key, p in self.targets.items():
            d = haversine_m(viewer, (p.lat, p.lon))
            if key not in self.active and d <= self.spawn_within_m:
                aid = self.registry.spawn(RoutePoint(p.lat, p.lon), p.name, p.height_offset_m, p.camera_relative)
                self.active[key] = aid
                spawned.append(aid)
                log.info("Proximity spawn %s at %.0f m", p.name or key, d)
            elif key in self.active and d > self.despawn_beyond_m:
                aid = self.active[key]
                self._drop(key)
                removed.append(aid)
                log.info("Proximity despawn %s at %.0f m", p.name or key, d)
        return spawned, removed

    def clear(self) -> None:
        for key in list(self.active):
            self._drop(key)
