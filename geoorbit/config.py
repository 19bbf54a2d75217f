"""Configuration for the globe orbit controls.

Settings are explicit frozen dataclasses; callers construct them with
concrete values (or use the defaults) and pass them to the controls and the
clip plane adjuster. ``validate()`` is called at construction time so an
inconsistent configuration fails before the first frame.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
import math

import numpy as np

from geoorbit.coord_utils import lonlat_to_ecef
from geoorbit.ellipsoid import Ellipsoid, WGS84


@dataclass(frozen=True)
class ControlsConfig:
    """Orbit control limits and behavior flags.

    Angles are radians. Non-finite azimuth limits leave the azimuth free.
    """

    enable_damping: bool = False
    damping_factor: float = 0.05

    min_distance: float = 0.0
    max_distance: float = math.inf
    min_zoom: float = 0.0
    max_zoom: float = math.inf
    min_target_radius: float = 0.0
    max_target_radius: float = math.inf

    min_polar_angle: float = 0.0
    max_polar_angle: float = math.pi
    min_azimuth_angle: float = -math.inf
    max_azimuth_angle: float = math.inf

    auto_rotate: bool = False
    auto_rotate_speed: float = 2.0

    rotate_speed: float = 1.0
    zoom_speed: float = 1.0
    pan_speed: float = 1.0

    zoom_to_cursor: bool = False
    screen_space_panning: bool = False
    # cos of the tilt beyond which cursor zoom re-aims instead of sliding the target
    tilt_limit: float = math.cos(math.radians(70.0))

    near_margin: float = 0.25
    far_margin: float = 0.0

    def validate(self) -> "ControlsConfig":
        """Raise ValueError for inconsistent settings, return self otherwise."""
        if not 0.0 <= self.damping_factor < 1.0:
            raise ValueError(f"damping_factor must be in [0, 1), got {self.damping_factor}")
        pairs = (
            ("distance", self.min_distance, self.max_distance),
            ("zoom", self.min_zoom, self.max_zoom),
            ("target_radius", self.min_target_radius, self.max_target_radius),
        )
        for name, low, high in pairs:
            if math.isnan(low) or math.isnan(high):
                raise ValueError(f"min_{name}/max_{name} must not be NaN")
            if low < 0:
                raise ValueError(f"min_{name} must be non-negative, got {low}")
            if low > high:
                raise ValueError(f"min_{name} ({low}) exceeds max_{name} ({high})")

        # Non-finite polar limits mean unconstrained, like the azimuth ones
        low = self.min_polar_angle if math.isfinite(self.min_polar_angle) else 0.0
        high = self.max_polar_angle if math.isfinite(self.max_polar_angle) else math.pi
        if not 0.0 <= low <= high <= math.pi:
            raise ValueError(
                f"polar angle limits must satisfy 0 <= min <= max <= pi, got "
                f"{self.min_polar_angle}, {self.max_polar_angle}"
            )
        if self.near_margin < 0 or self.far_margin < 0:
            raise ValueError("near_margin and far_margin must be non-negative")
        if not 0.0 <= self.tilt_limit <= 1.0:
            raise ValueError(f"tilt_limit must be a cosine in [0, 1], got {self.tilt_limit}")
        return self

    def with_overrides(self, **changes) -> "ControlsConfig":
        """Return a validated copy with some fields replaced."""
        return replace(self, **changes).validate()


@dataclass(frozen=True)
class GeoPositionConfig:
    """Initial camera placement: a surface point plus heading/pitch/distance.

    Longitude, latitude, heading and pitch are degrees; distance is meters.
    """

    longitude: float = 0.0
    latitude: float = 0.0
    heading: float = 0.0
    pitch: float = 45.0
    distance: float = 20_000_000.0

    def target_ecef(self, ellipsoid: Ellipsoid = WGS84) -> np.ndarray:
        return lonlat_to_ecef(self.longitude, self.latitude, 0.0, ellipsoid)

    def to_pose(self):
        # Imported here, orbit_controls imports this module
        from geoorbit.orbit_controls import CameraTargetPose
        return CameraTargetPose(heading=self.heading, pitch=self.pitch, distance=self.distance)

    def as_dict(self) -> dict:
        return asdict(self)


__all__ = ["ControlsConfig", "GeoPositionConfig"]
