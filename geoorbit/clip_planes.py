from typing import NamedTuple
import math

import numpy as np

from geoorbit.camera import Camera, Orthographic, Perspective
from geoorbit.coord_utils import from_ecef
from geoorbit.ellipsoid import Ellipsoid, WGS84
from geoorbit.log_utils import get_logger
from geoorbit.math_utils import clamp, lerp

logger = get_logger(__name__)

# Floor for the horizon computation so the far plane does not collapse (or
# clip distant mountains) when the camera is at or below sea level
MIN_ELEVATION = 2550.0
FAR_EPSILON = 0.1
MIN_NEAR_LOW = 1.0
MIN_NEAR_HIGH = 1000.0
TARGET_NEAR_FRACTION = 0.05


class ClipPlanes(NamedTuple):
    near: float
    far: float


class GlobeClipPlaneAdjuster:
    """Per-frame near/far planes for a camera looking at the globe

    Attributes
    ----------
    ellipsoid : Ellipsoid
        Globe model, assumed centered at the ECEF origin
    near_margin : float
        Fraction of the maximum radius around the globe over which the near
        plane shrinks toward the surface
    far_margin : float
        Fraction of the maximum radius added beyond the horizon
    use_target_distance : bool
        Derive the near plane from the camera/target distance instead of the
        altitude, for scenes placed in a local frame rather than at ECEF
        scale
    """

    def __init__(self, ellipsoid: Ellipsoid = WGS84, near_margin: float = 0.25,
                 far_margin: float = 0.0, use_target_distance: bool = False):
        if not (math.isfinite(near_margin) and near_margin >= 0):
            raise ValueError(f'near_margin must be a non-negative number, got {near_margin}')
        if not (math.isfinite(far_margin) and far_margin >= 0):
            raise ValueError(f'far_margin must be a non-negative number, got {far_margin}')
        self.ellipsoid = ellipsoid
        self.near_margin = float(near_margin)
        self.far_margin = float(far_margin)
        self.use_target_distance = use_target_distance

    @classmethod
    def from_config(cls, config, ellipsoid: Ellipsoid = WGS84) -> 'GlobeClipPlaneAdjuster':
        return cls(ellipsoid, near_margin=config.near_margin, far_margin=config.far_margin)

    def adjust(self, camera: Camera, target: np.ndarray | None = None) -> ClipPlanes:
        """Set camera.near/camera.far for the current pose

        Parameters
        ----------
        camera : Camera
            Camera whose pose has been finalized for this frame
        target : np.ndarray | None
            Orbit target, only used with use_target_distance

        Returns
        -------
        planes : ClipPlanes
            The values written to the camera
        """
        match camera.projection:
            case Perspective():
                planes = self._perspective_planes(camera, target)
            case Orthographic():
                planes = self._orthographic_planes(camera)
            case _:
                logger.warning('Clip planes not adjusted for camera type %r',
                               type(camera.projection).__name__)
                return ClipPlanes(camera.near, camera.far)

        camera.near, camera.far = planes
        return planes

    def _perspective_planes(self, camera: Camera, target: np.ndarray | None) -> ClipPlanes:
        max_radius = self.ellipsoid.max_radius
        position = camera.position
        distance_to_center = float(np.linalg.norm(position))

        # Shrink the near plane only within the margin band around the globe,
        # high cameras keep a large near value to avoid z fighting
        margin = self.near_margin * max_radius
        if margin > 0:
            alpha = clamp((distance_to_center - max_radius) / margin, 0.0, 1.0)
        else:
            alpha = 1.0 if distance_to_center > max_radius else 0.0
        min_near = lerp(MIN_NEAR_LOW, MIN_NEAR_HIGH, alpha)

        if self.use_target_distance and target is not None:
            near = float(np.linalg.norm(position - target)) * TARGET_NEAR_FRACTION
        else:
            near = max(min_near, distance_to_center - max_radius - margin)

        # Far plane reaches the horizon
        geodetic = from_ecef(position, self.ellipsoid)
        elevation = max(geodetic.height, MIN_ELEVATION)
        horizon = self.ellipsoid.horizon_distance(geodetic.latitude, elevation)
        far = horizon + FAR_EPSILON + max_radius * self.far_margin
        return ClipPlanes(near, far)

    def _orthographic_planes(self, camera: Camera) -> ClipPlanes:
        max_radius = self.ellipsoid.max_radius

        # Globe center in camera space, the camera looks down -Z
        center_in_camera = camera.view_matrix @ np.array([0.0, 0.0, 0.0, 1.0])
        distance_to_center = -float(center_in_camera[2])

        near = distance_to_center - max_radius * (1.0 + self.near_margin)
        far = distance_to_center + FAR_EPSILON + max_radius * self.far_margin

        # Slide the camera forward so the near plane sits at 0
        camera.position = camera.position + camera.forward_vector() * near
        far -= near
        near = 0.0
        return ClipPlanes(near, far)
