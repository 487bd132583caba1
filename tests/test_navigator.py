from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import pytest
from pytest import CaptureFixture

from arnav.anchors.registry import Pose
from arnav.core.arrival import ARRIVED_TEXT
from arnav.core.config import NavConfig
from arnav.core.navigator import PROCEED_TEXT, Navigator, State
from arnav.core.progress import lookahead_point
from arnav.core.types import GpsData, LocationStatus, SpawnPoint

from conftest import BASE, make_step, offset


class RecordingRenderer:
    """AnchorRenderer that records the issued calls."""

    def __init__(self) -> None:
        self.history: List[Tuple[str, Tuple[Any, ...]]] = []
        self._next = 0

    def create_anchor(self, pose: Pose) -> Optional[int]:
        self._next += 1
        self.history.append(("create", (self._next, pose)))
        return self._next

    def place(self, handle: Any, pose: Pose, visible: bool, camera_relative: bool) -> None:
        self.history.append(("place", (handle, pose, visible, camera_relative)))

    def remove(self, handle: Any) -> None:
        self.history.append(("remove", (handle,)))

    def names(self) -> List[str]:
        return [name for name, _ in self.history]


@dataclass
class ScriptedGps:
    lat: float
    lon: float
    alt: float = 0.0
    stamp: float = 0.0
    status: LocationStatus = LocationStatus.RUNNING
    reads: List[GpsData] = field(default_factory=list)

    def set_position(self, lat: float, lon: float, stamp: float) -> None:
        self.lat = lat
        self.lon = lon
        self.stamp = stamp

    def read(self) -> GpsData:
        sample = GpsData(stamp=self.stamp, lat=self.lat, lon=self.lon, alt=self.alt, status=self.status)
        self.reads.append(sample)
        return sample

    def has_fix(self) -> bool:
        return self.status == LocationStatus.RUNNING


def test_skips_ticks_without_running_fix(three_step_route):
    nav = Navigator(NavConfig())
    nav.load_route(three_step_route)
    gps = ScriptedGps(BASE.lat, BASE.lon, status=LocationStatus.INITIALIZING)
    assert nav.tick(gps.read(), 0.1) is None
    assert nav.tick(None, 0.1) is None
    assert nav.origin is None
    assert nav.state == State.WAITING_FOR_FIX


def test_first_fix_sets_origin(three_step_route):
    nav = Navigator(NavConfig())
    nav.load_route(three_step_route)
    frame = nav.tick(ScriptedGps(BASE.lat, BASE.lon, alt=912.0).read(), 0.1)
    assert nav.origin == (BASE.lat, BASE.lon, 912.0)
    assert nav.state == State.NAVIGATING
    assert frame.instruction == "Go straight — 100 m"
    assert frame.step_index == 0
    assert frame.destination_text == "190 m"


def test_non_finite_fix_is_skipped_mid_walk(three_step_route):
    arrivals: List[str] = []
    nav = Navigator(NavConfig(), on_arrived=arrivals.append)
    route = nav.load_route(three_step_route, destination_name="Library")
    gps = ScriptedGps(BASE.lat, BASE.lon)
    for t in range(3):
        p = lookahead_point(route.path, 0.0, 1.4 * t)
        gps.set_position(p.lat, p.lon, float(t))
        before = nav.tick(gps.read(), 1.0)

    # validation normally rejects this, a custom feed may still hand it over
    broken = GpsData.model_construct(
        stamp=3.0, lat=float("nan"), lon=BASE.lon, alt=0.0, status=LocationStatus.RUNNING
    )
    assert nav.tick(broken, 1.0) is None
    assert arrivals == []
    assert not nav.arrival.arrived_fired
    assert nav.state == State.NAVIGATING
    assert nav.last_frame is before

    gps.set_position(p.lat, p.lon, 4.0)
    frame = nav.tick(gps.read(), 1.0)
    assert not frame.arrived
    assert frame.instruction.startswith("Go straight")
    assert frame.distance_to_destination_m == pytest.approx(before.distance_to_destination_m, abs=0.5)


def test_idle_without_route():
    nav = Navigator(NavConfig())
    route = nav.load_route([])
    assert route.is_empty
    assert nav.state == State.IDLE
    frame = nav.tick(ScriptedGps(BASE.lat, BASE.lon).read(), 0.1)
    assert frame.instruction == ""
    assert frame.along_m == 0.0


def test_new_route_replaces_everything(three_step_route):
    renderer = RecordingRenderer()
    point = offset(BASE, north_m=20.0, east_m=5.0)
    cfg = NavConfig(spawn_points=[SpawnPoint(name="Cafe", lat=point.lat, lon=point.lon)])
    nav = Navigator(cfg, renderer)
    nav.load_route(three_step_route)
    route = nav.route
    gps = ScriptedGps(BASE.lat, BASE.lon)
    for t in range(4):
        p = lookahead_point(route.path, 0.0, 1.4 * t)
        gps.set_position(p.lat, p.lon, float(t))
        nav.tick(gps.read(), 1.0)
    assert len(nav.registry) == 1
    old_tracker = nav.tracker

    second = [make_step(BASE, offset(BASE, east_m=70.0))]
    nav.load_route(second, destination_name="Shop")
    assert nav.tracker is not old_tracker
    assert nav.tracker.current_step_index == 0
    assert nav.route.path is not route.path
    assert len(nav.route.ranges) == len(nav.route.steps) == 1
    assert nav.destination_name == "Shop"
    assert ("remove", (1,)) in renderer.history

    # configured anchors come back on the next fix
    frame = nav.tick(gps.read(), 1.0)
    assert [a.label.split(" — ")[0] for a in frame.anchors] == ["Cafe"]


@pytest.mark.integration
def test_walk_route_to_arrival(three_step_route, capsys: CaptureFixture[str]) -> None:
    arrivals: List[str] = []
    renderer = RecordingRenderer()
    kiosk = offset(BASE, north_m=60.0, east_m=15.0)
    cfg = NavConfig(
        arrival_distance_m=1.0,
        spawn_points=[SpawnPoint(name="Kiosk", lat=kiosk.lat, lon=kiosk.lon)],
    )
    nav = Navigator(cfg, renderer, on_arrived=arrivals.append)
    route = nav.load_route(three_step_route, destination_name="Library")
    assert [len(route.steps), len(route.ranges)] == [3, 3]

    gps = ScriptedGps(BASE.lat, BASE.lon)
    frames = []
    t = 0.0
    along = 0.0
    while True:
        p = lookahead_point(route.path, 0.0, along)
        gps.set_position(p.lat, p.lon, t)
        frame = nav.tick(gps.read(), 1.0)
        assert frame is not None
        frames.append(frame)
        if along >= route.end_along:
            break
        along = min(route.end_along, along + 1.4)
        t += 1.0
    # linger at the destination
    for _ in range(5):
        t += 1.0
        gps.set_position(p.lat, p.lon, t)
        frames.append(nav.tick(gps.read(), 1.0))

    def announce(message: str) -> None:
        with capsys.disabled():
            print(f"[Walker] {message}")

    instructions = [f.instruction for f in frames]
    for text in dict.fromkeys(instructions):
        announce(text)

    assert instructions[0] == "Go straight — 100 m"
    turn_texts = [i for i in instructions if i.startswith("Turn left in")]
    assert turn_texts
    assert all(int(text.split()[3]) <= 50 for text in turn_texts)
    assert PROCEED_TEXT in instructions
    assert instructions[-1] == ARRIVED_TEXT

    # along and step index only ever move forward on a forward walk
    steps = [f.step_index for f in frames]
    assert steps == sorted(steps)
    assert steps[-1] == 3

    assert arrivals == ["Library"]
    assert nav.state == State.ARRIVED
    arrived_flags = [f.arrived for f in frames]
    assert arrived_flags == sorted(arrived_flags)
    assert sum(arrived_flags) >= 6

    # course appears once walking, pointing north on the first leg
    assert not frames[0].course.has_course
    assert frames[5].course.has_course
    assert frames[5].course.course_deg == pytest.approx(0.0, abs=1.0)

    # arrow swings left near the left turn
    near_turn = [f for f in frames if f.instruction.startswith("Turn left in")]
    assert near_turn[-1].arrow_yaw_deg < -45.0

    created = [args for name, args in renderer.history if name == "create"]
    assert len(created) == 2  # kiosk and destination marker
    names = sorted(nav.registry.anchors[i].name for i in nav.registry.anchors)
    assert names == ["Kiosk", "Library"]

    labels = frames[10].anchors[0].label
    assert labels.startswith("Kiosk — ")
    assert frames[-1].distance_to_destination_m == pytest.approx(0.0, abs=0.01)
