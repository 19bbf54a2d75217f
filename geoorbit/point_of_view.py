from dataclasses import dataclass
import numpy as np

from geoorbit.camera import Camera
from geoorbit.coord_utils import Geodetic, from_ecef, local_frame, to_ecef
from geoorbit.ellipsoid import Ellipsoid, WGS84
from geoorbit.log_utils import get_logger
from geoorbit.math_utils import look_at_rotation, normalize, project_on_plane, quat_from_matrix

logger = get_logger(__name__)

# |cos| of the angle between view direction and up above which the camera
# is treated as looking straight up/down
_VERTICAL_COS = 1.0 - 1e-9


@dataclass
class PointOfView:
    """Camera placement relative to a target point on the globe

    The view direction (from camera to target) is

        h = east * cos(heading) + north * sin(heading)
        v = h * cos(pitch) - up * sin(pitch)

    in the local frame of the target, so positive pitch looks down and the
    camera sits at target - v * distance.

    Attributes
    ----------
    distance : float
        Meters from camera to target
    heading : float
        Radians
    pitch : float
        Radians
    """
    distance: float = 0.0
    heading: float = 0.0
    pitch: float = 0.0

    def direction(self, target: np.ndarray, ellipsoid: Ellipsoid = WGS84) -> np.ndarray:
        """Unit vector from the camera toward target"""
        east, north, up = local_frame(target, ellipsoid)
        horizontal = east * np.cos(self.heading) + north * np.sin(self.heading)
        return normalize(horizontal * np.cos(self.pitch) - up * np.sin(self.pitch))

    def decompose(self, target: np.ndarray, ellipsoid: Ellipsoid = WGS84,
                  frame_target: np.ndarray | None = None) -> tuple[np.ndarray, np.ndarray]:
        """Build a camera pose looking at target from this point of view

        Parameters
        ----------
        target : np.ndarray
            ECEF point the camera looks at
        ellipsoid : Ellipsoid
            Reference ellipsoid
        frame_target : np.ndarray | None
            Point whose local frame defines heading and pitch, defaults to
            target. The orbit controls pass the un-panned target here so the
            pose stays stable while panning.

        Returns
        -------
        (position, quaternion) : (np.ndarray, np.ndarray)
            ECEF camera position and orientation [x, y, z, w]
        """
        target = np.asarray(target, dtype=np.float64)
        anchor = target if frame_target is None else np.asarray(frame_target, dtype=np.float64)
        _, north, up = local_frame(anchor, ellipsoid)

        v = self.direction(anchor, ellipsoid)
        position = target - v * self.distance

        camera_up = north if abs(np.dot(v, up)) > _VERTICAL_COS else up
        rot = look_at_rotation(position, target, camera_up)
        return position, quat_from_matrix(rot)

    @classmethod
    def compose(cls, target: np.ndarray, position: np.ndarray, ellipsoid: Ellipsoid = WGS84,
                frame_target: np.ndarray | None = None) -> 'PointOfView':
        """Recover (distance, heading, pitch) from a camera position and target

        Exact inverse of decompose for distance > 0 and pitch inside
        (-pi/2, pi/2). Straight up/down views report heading 0.
        """
        target = np.asarray(target, dtype=np.float64)
        position = np.asarray(position, dtype=np.float64)
        anchor = target if frame_target is None else np.asarray(frame_target, dtype=np.float64)
        east, north, up = local_frame(anchor, ellipsoid)

        offset = target - position
        distance = float(np.linalg.norm(offset))
        if distance == 0.0:
            return cls(0.0, 0.0, 0.0)
        v = offset / distance

        horizontal = normalize(project_on_plane(v, up))
        heading = float(np.arctan2(np.dot(horizontal, north), np.dot(horizontal, east)))
        pitch = float(np.arcsin(np.clip(-np.dot(v, up), -1.0, 1.0)))
        return cls(distance, heading, pitch)

    @classmethod
    def from_camera(cls, camera: Camera, ellipsoid: Ellipsoid = WGS84,
                    target: np.ndarray | None = None) -> 'PointOfView | None':
        """Point of view of a camera

        When no target is given the camera's forward ray is intersected with
        the ellipsoid. Returns None if that ray misses the globe.
        """
        if target is None:
            target = ellipsoid.intersection(camera.position, camera.forward_vector())
            if target is None:
                return None
        return cls.compose(target, camera.position, ellipsoid)


def move_to(camera: Camera, distance: float, heading: float, pitch: float,
            longitude: float, latitude: float, ellipsoid: Ellipsoid = WGS84) -> None:
    """Place a camera looking at a surface point

    Parameters
    ----------
    camera : Camera
        Camera to move
    distance : float
        Meters from the surface point
    heading : float
        Degrees
    pitch : float
        Degrees, positive looking down
    longitude : float
        Degrees
    latitude : float
        Degrees
    """
    target = to_ecef(Geodetic.from_degrees(longitude, latitude), ellipsoid)
    pov = PointOfView(distance, np.radians(heading), np.radians(pitch))
    camera.position, camera.quaternion = pov.decompose(target, ellipsoid)
    camera.up = ellipsoid.surface_normal(target)


def get_camera_lonlat(camera: Camera, ellipsoid: Ellipsoid = WGS84) -> dict | None:
    """Where the center of the view lands on the globe

    Returns
    -------
    info : dict | None
        distance (m), heading, pitch, longitude, latitude (degrees), or None
        if the camera is not looking at the globe
    """
    target = ellipsoid.intersection(camera.position, camera.forward_vector())
    if target is None:
        logger.debug('View center does not intersect the ellipsoid')
        return None

    pov = PointOfView.compose(target, camera.position, ellipsoid)
    geodetic = from_ecef(target, ellipsoid)
    return {
        'distance': pov.distance,
        'heading': float(np.degrees(pov.heading)),
        'pitch': float(np.degrees(pov.pitch)),
        'longitude': float(np.degrees(geodetic.longitude)),
        'latitude': float(np.degrees(geodetic.latitude)),
    }
