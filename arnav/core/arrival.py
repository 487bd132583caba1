from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from .types import RoutePoint

log = logging.getLogger(__name__)

ARRIVED_TEXT = "You have reached your destination"


class ArrivalPhase(Enum):
    APPROACHING = 0
    PREVIEW_SHOWN = 1
    WORLD_MARKER_SPAWNED = 2
    ARRIVED = 3


class ArrivalTracker:
    """Destination preview, world marker and a one-shot arrival event for one route.

    The preview toggles with hysteresis (``preview_m`` / ``preview_hide_m``). The world
    marker is spawned once and stays. Arrival is terminal and fires ``on_arrived`` once.
    """

    def __init__(
        self,
        destination: Optional[RoutePoint],
        destination_name: str = "Destination",
        preview_m: float = 40.0,
        preview_hide_m: float = 55.0,
        arrival_m: float = 8.0,
        on_arrived: Optional[Callable[[str], None]] = None,
        on_preview: Optional[Callable[[bool], None]] = None,
        on_world_marker: Optional[Callable[[RoutePoint, str], None]] = None,
    ) -> None:
        if preview_hide_m <= preview_m:
            raise ValueError("preview_hide_m must be greater than preview_m")
        self.destination = destination
        self.destination_name = destination_name
        self.preview_m = preview_m
        self.preview_hide_m = preview_hide_m
        self.arrival_m = arrival_m
        self.on_arrived = on_arrived
        self.on_preview = on_preview
        self.on_world_marker = on_world_marker
        self.preview_shown = False
        self.world_marker_spawned = False
        self.arrived_fired = False

    @property
    def phase(self) -> ArrivalPhase:
        if self.arrived_fired:
            return ArrivalPhase.ARRIVED
        if self.preview_shown and self.world_marker_spawned:
            return ArrivalPhase.WORLD_MARKER_SPAWNED
        if self.preview_shown:
            return ArrivalPhase.PREVIEW_SHOWN
        return ArrivalPhase.APPROACHING

    def _notify(self, cb: Optional[Callable], *args) -> None:
        if cb is None:
            return
        try:
            cb(*args)
        except Exception as e:
            log.warning("Arrival callback %s failed: %s", getattr(cb, "__name__", cb), e)

    def update(self, distance_m: float) -> ArrivalPhase:
        if self.arrived_fired:
            return ArrivalPhase.ARRIVED

        if not self.preview_shown and distance_m <= self.preview_m:
            self.preview_shown = True
            self._notify(self.on_preview, True)
        elif self.preview_shown and distance_m > self.preview_hide_m:
            self.preview_shown = False
            self._notify(self.on_preview, False)

        if distance_m <= self.preview_m and not self.world_marker_spawned:
            self.world_marker_spawned = True
            if self.destination is not None:
                self._notify(self.on_world_marker, self.destination, self.destination_name)

        if distance_m <= self.arrival_m:
            self.arrived_fired = True
            log.info("Arrived at %s (%.1f m)", self.destination_name, distance_m)
            self._notify(self.on_arrived, self.destination_name)

        return self.phase
