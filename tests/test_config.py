from __future__ import annotations

import pytest

from arnav.core.config import NavConfig, load_config


def test_packaged_defaults():
    cfg = load_config()
    assert cfg.resample_interval_m == 5.0
    assert cfg.dedup_step_m == 12.0
    assert cfg.along_window_size == 4
    assert cfg.turn_announcement_m == 50.0
    assert cfg.show_radius_m < cfg.hide_radius_m
    assert cfg.destination_preview_m < cfg.destination_preview_hide_m
    assert cfg.arrival_distance_m == 8.0
    assert cfg.spawn_points == []


def test_yaml_override_and_spawn_points(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text(
        "turn_announcement_m: 30\n"
        "anchor_projection: geodesic\n"
        "spawn_points:\n"
        "  - name: Cafe\n"
        "    lat: 12.9716\n"
        "    lon: 77.5946\n"
        "    height_offset_m: 1.5\n",
        encoding="utf-8",
    )
    cfg = load_config(str(path))
    assert cfg.turn_announcement_m == 30.0
    assert cfg.anchor_projection == "geodesic"
    assert cfg.resample_interval_m == 5.0
    assert len(cfg.spawn_points) == 1
    sp = cfg.spawn_points[0]
    assert sp.name == "Cafe" and sp.enabled and not sp.camera_relative
    assert sp.height_offset_m == 1.5


def test_explicit_overrides_win(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("lookahead_m: 20\n", encoding="utf-8")
    cfg = load_config(str(path), overrides={"lookahead_m": 7.0})
    assert cfg.lookahead_m == 7.0


def test_empty_yaml_file(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(str(path)).model_dump() == NavConfig().model_dump()


@pytest.mark.parametrize(
    "overrides",
    [
        {"show_radius_m": 100.0, "hide_radius_m": 100.0},
        {"destination_preview_m": 60.0, "destination_preview_hide_m": 50.0},
        {"resample_interval_m": 0.0},
        {"along_window_size": 0},
        {"anchor_projection": "mercator"},
    ],
)
def test_invalid_config_rejected(overrides):
    with pytest.raises(ValueError):
        NavConfig(**overrides)
