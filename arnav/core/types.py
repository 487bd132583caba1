from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, NamedTuple, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict


class RoutePoint(NamedTuple):
    """Immutable geographic coordinate in decimal degrees."""

    lat: float
    lon: float


class LocationStatus(Enum):
    INITIALIZING = "initializing"
    RUNNING = "running"
    FAILED = "failed"
    STOPPED = "stopped"


class GpsData(BaseModel):
    """One sample of the location feed."""

    model_config = ConfigDict(allow_inf_nan=False)

    stamp: float
    lat: float
    lon: float
    alt: float = 0.0
    status: LocationStatus = LocationStatus.RUNNING

    @property
    def point(self) -> RoutePoint:
        return RoutePoint(self.lat, self.lon)


class Step(BaseModel):
    """Routing step as delivered by the directions service."""

    start: RoutePoint
    end: RoutePoint
    maneuver_hint: Optional[str] = None
    instruction_html: Optional[str] = None
    encoded_geometry: Optional[str] = None


class SpawnPoint(BaseModel):
    """Configured geographic spawn location for a virtual object."""

    name: str = ""
    lat: float
    lon: float
    height_offset_m: float = 0.0
    enabled: bool = True
    camera_relative: bool = False


@dataclass(frozen=True)
class StepRange:
    start_index: int
    end_index: int
    start_along: float
    end_along: float


@dataclass(frozen=True)
class PathTable:
    """Resampled route geometry with cumulative along-distance per point."""

    points: List[RoutePoint]
    cumulative: List[float]
    lats: np.ndarray = field(init=False, repr=False, compare=False)
    lons: np.ndarray = field(init=False, repr=False, compare=False)
    along: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if len(self.points) != len(self.cumulative):
            raise ValueError("points and cumulative must have the same length")
        object.__setattr__(self, "lats", np.array([p.lat for p in self.points], dtype=np.float64))
        object.__setattr__(self, "lons", np.array([p.lon for p in self.points], dtype=np.float64))
        object.__setattr__(self, "along", np.array(self.cumulative, dtype=np.float64))

    def __len__(self) -> int:
        return len(self.points)

    @property
    def length_m(self) -> float:
        return float(self.cumulative[-1]) if self.cumulative else 0.0


@dataclass(frozen=True)
class Route:
    """Path, steps and step ranges of one route. Always replaced as a unit."""

    path: PathTable
    steps: List[Step]
    ranges: List[StepRange]

    @property
    def is_empty(self) -> bool:
        return len(self.path) == 0

    @property
    def end_along(self) -> float:
        return self.path.length_m

    @property
    def destination(self) -> Optional[RoutePoint]:
        if self.steps:
            return self.steps[-1].end
        return self.path.points[-1] if self.path.points else None


class CourseEstimate(NamedTuple):
    has_course: bool
    course_deg: float


@dataclass
class GeoAnchor:
    """A virtual object anchored at a geographic coordinate."""

    id: int
    coordinate: RoutePoint
    name: str = ""
    height_offset_m: float = 0.0
    handle: Any = None
    visible: bool = False
    camera_relative: bool = False


@dataclass(slots=True)
class AnchorPlacement:
    """Per-tick placement of one anchor for the rendering collaborator.

    Attributes
    ----------
    position_enu:
        (east, north, up) metres from the geographic origin. ``up`` is relative to the origin altitude.
    facing_yaw_deg:
        Yaw (0 = north, clockwise) that turns the object's front towards the viewer.
    direction:
        "ahead", "on left", "on right" or "behind" relative to the viewer's heading.
    """

    anchor_id: int
    position_enu: Tuple[float, float, float]
    visible: bool
    facing_yaw_deg: float
    distance_m: float
    direction: str
    label: str


@dataclass(slots=True)
class NavigationFrame:
    """Everything the UI needs after one tick."""

    stamp: float
    along_m: float = 0.0
    step_index: int = 0
    course: CourseEstimate = CourseEstimate(False, 0.0)
    instruction: str = ""
    preview: str = ""
    threshold_turn: str = ""
    arrow_yaw_deg: float = 0.0
    ui_arrow_deg: float = 0.0
    distance_to_destination_m: Optional[float] = None
    destination_text: str = ""
    arrived: bool = False
    anchors: List[AnchorPlacement] = field(default_factory=list)
