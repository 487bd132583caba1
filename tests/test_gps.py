from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from arnav.core.types import GpsData, LocationStatus
from arnav.sensors.gps import DummyGps, TracePlaybackGps


def test_trace_playback(tmp_path):
    path = tmp_path / "trace.json"
    path.write_text(
        json.dumps(
            {
                "trace": [
                    {"lat": 1.0, "lon": 2.0, "timestamp": 10.0, "status": "initializing"},
                    {"lat": 1.0001, "lon": 2.0, "alt": 5.0, "timestamp": 11.0},
                    {"lat": "north", "lon": 2.0},
                    {"lon": 2.0},
                    {"lat": 1.0, "lon": 2.0, "status": "teleporting"},
                ]
            }
        ),
        encoding="utf-8",
    )
    gps = TracePlaybackGps.from_file(str(path))
    assert len(gps.samples) == 2
    first = gps.read()
    assert first.status == LocationStatus.INITIALIZING
    second = gps.read()
    assert second.status == LocationStatus.RUNNING
    assert second.alt == 5.0 and second.stamp == 11.0
    assert gps.is_finished()
    assert not gps.has_fix()
    assert gps.read() is None


def test_trace_as_bare_list(tmp_path):
    path = tmp_path / "trace.json"
    path.write_text(json.dumps([{"lat": 1.0, "lon": 2.0, "stamp": 3.0}]), encoding="utf-8")
    gps = TracePlaybackGps.from_file(str(path))
    assert gps.read().point == (1.0, 2.0)


def test_dummy_gps():
    gps = DummyGps(lat=12.0, lon=77.0, alt=900.0)
    assert gps.has_fix()
    data = gps.read()
    assert (data.lat, data.lon, data.alt) == (12.0, 77.0, 900.0)


def test_trace_skips_non_object_entries(tmp_path):
    path = tmp_path / "trace.json"
    path.write_text(json.dumps({"trace": ["garbage", 7, None, {"lat": 1.0, "lon": 2.0}]}), encoding="utf-8")
    gps = TracePlaybackGps.from_file(str(path))
    assert len(gps.samples) == 1
    assert gps.read().point == (1.0, 2.0)


def test_trace_drops_non_finite_fixes(tmp_path):
    path = tmp_path / "trace.json"
    path.write_text('[{"lat": NaN, "lon": 2.0}, {"lat": 1.0, "lon": 2.0, "alt": Infinity}, {"lat": 1.0, "lon": 2.0}]')
    gps = TracePlaybackGps.from_file(str(path))
    assert len(gps.samples) == 1


@pytest.mark.parametrize("content", ["{not json", "42", '{"trace": "nope"}', ""])
def test_unreadable_trace_is_empty(tmp_path, content):
    path = tmp_path / "trace.json"
    path.write_text(content, encoding="utf-8")
    gps = TracePlaybackGps.from_file(str(path))
    assert gps.samples == []
    assert gps.is_finished()
    assert gps.read() is None


def test_missing_trace_file_is_empty(tmp_path):
    assert TracePlaybackGps.from_file(str(tmp_path / "missing.json")).samples == []


def test_gps_sample_rejects_non_finite_values():
    with pytest.raises(ValidationError):
        GpsData(stamp=0.0, lat=float("nan"), lon=2.0)
    with pytest.raises(ValidationError):
        GpsData(stamp=0.0, lat=1.0, lon=2.0, alt=float("inf"))
