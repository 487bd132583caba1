from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, model_validator

from .types import SpawnPoint

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "config", "default.yaml")


class NavConfig(BaseModel):
    """Every tunable of the navigation engine. Distances in metres, times in seconds."""

    # Route building
    resample_interval_m: float = Field(5.0, gt=0)
    dedup_step_m: float = 12.0

    # Progress tracking
    along_window_size: int = Field(4, ge=1)
    step_tolerance_m: float = 0.5
    step_advance_m: float = 8.0

    # Course estimation
    course_window_s: float = Field(5.0, gt=0)
    min_speed_for_course_mps: float = 0.5

    # Guidance
    turn_announcement_m: float = 50.0
    preview_segment_limit: int = Field(6, ge=1)
    guidance_smoothing_s: float = 0.15
    lookahead_m: float = 12.0
    arrow_smoothing: float = 4.0

    # Anchors
    show_radius_m: float = 120.0
    hide_radius_m: float = 140.0
    global_height_offset_m: float = 0.0
    max_vertical_delta_m: float = 20.0
    ahead_half_angle_deg: float = 25.0
    side_half_angle_deg: float = 110.0
    anchor_projection: Literal["equirectangular", "geodesic"] = "equirectangular"
    facing_extra_yaw_deg: float = 0.0
    facing_flip: bool = False
    spawn_on_route_ready: bool = True
    spawn_points: List[SpawnPoint] = Field(default_factory=list)

    # Proximity spawner
    proximity_enabled: bool = False
    spawn_within_m: float = 60.0
    despawn_beyond_m: float = 120.0
    proximity_include_destination: bool = False

    # Arrival
    destination_preview_m: float = 40.0
    destination_preview_hide_m: float = 55.0
    arrival_distance_m: float = 8.0

    # Loop
    nav_rate_hz: float = Field(10.0, gt=0)

    @model_validator(mode="after")
    def _check_hysteresis(self) -> "NavConfig":
        if self.hide_radius_m <= self.show_radius_m:
            raise ValueError("hide_radius_m must be greater than show_radius_m")
        if self.destination_preview_hide_m <= self.destination_preview_m:
            raise ValueError("destination_preview_hide_m must be greater than destination_preview_m")
        return self


def load_yaml(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_config(path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> NavConfig:
    """Packaged defaults, overlaid with an optional YAML file and explicit overrides."""
    data = load_yaml(DEFAULT_CONFIG_PATH) if os.path.exists(DEFAULT_CONFIG_PATH) else {}
    if path:
        user = load_yaml(path)
        log.info("Loaded config overrides from %s (%d keys)", path, len(user))
        data.update(user)
    if overrides:
        data.update(overrides)
    return NavConfig(**data)
