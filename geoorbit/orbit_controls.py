# STDLIB Imports
from dataclasses import asdict, dataclass, field
from enum import Enum
import math

import numpy as np

# Pyside Imports
from PySide6.QtCore import QObject, Signal

# This Project Imports
from geoorbit.camera import Camera, Orthographic, Perspective
from geoorbit.config import ControlsConfig
from geoorbit.ellipsoid import Ellipsoid, WGS84
from geoorbit.log_utils import get_logger
from geoorbit.math_utils import (
    EPS, clamp_length, intersect_ray_plane, make_safe_phi, normalize,
    project_on_plane, quat_apply, quat_from_unit_vectors, quat_invert,
    spherical_from_vector, vector_from_spherical,
)
from geoorbit.point_of_view import PointOfView

logger = get_logger(__name__)

TWO_PI = 2.0 * math.pi
Y_UP = np.array([0.0, 1.0, 0.0])


class InteractionState(Enum):
    NONE = -1
    ROTATE = 0
    DOLLY = 1
    PAN = 2


class CameraKind(Enum):
    PERSPECTIVE = 'perspective'
    ORTHOGRAPHIC = 'orthographic'
    UNSUPPORTED = 'unsupported'


def camera_kind(camera: Camera) -> CameraKind:
    """Resolve the projection type of a camera"""
    match camera.projection:
        case Perspective():
            return CameraKind.PERSPECTIVE
        case Orthographic():
            return CameraKind.ORTHOGRAPHIC
        case _:
            return CameraKind.UNSUPPORTED


@dataclass
class CameraTargetPose:
    """Externally visible camera intent

    Attributes
    ----------
    heading : float
        Degrees, see PointOfView for the convention
    pitch : float
        Degrees, positive looking down
    distance : float
        Meters from the camera to the panned target
    x : float
        Sideways pan of the target in meters (positive moves it left)
    y : float
        Forward pan of the target in meters
    """
    heading: float = 0.0
    pitch: float = 0.0
    distance: float = 0.0
    x: float = 0.0
    y: float = 0.0

    def as_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'CameraTargetPose':
        return cls(heading=float(data['heading']), pitch=float(data['pitch']),
                   distance=float(data['distance']),
                   x=float(data.get('x', 0.0)), y=float(data.get('y', 0.0)))


@dataclass
class ZoomStrategy:
    """How zoom and the target react to dolly input

    Attributes
    ----------
    zoom_to_cursor : bool
        Keep the point under the pointer fixed while zooming
    screen_space_panning : bool
        After a cursor zoom, put the target straight ahead of the camera
        instead of sliding it along the plane through the old target
    tilt_limit : float
        Cosine of the view/up angle below which the target plane is not
        intersected (the ray would run off toward the horizon)
    """
    zoom_to_cursor: bool = False
    screen_space_panning: bool = False
    tilt_limit: float = math.cos(math.radians(70.0))


@dataclass
class OrbitState:
    """Transient integration state of one controller

    Pending deltas are filled by the input handlers and consumed by
    integrate_orbit once per frame. The persistent pan offset is only
    cleared explicitly.
    """
    config: ControlsConfig
    target: np.ndarray = field(default_factory=lambda: np.zeros(3))
    target_up: np.ndarray = field(default_factory=lambda: Y_UP.copy())
    up_quat: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 0.0, 1.0]))
    up_quat_inverse: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 0.0, 1.0]))

    delta_theta: float = 0.0
    delta_phi: float = 0.0
    scale: float = 1.0
    pan_offset: np.ndarray = field(default_factory=lambda: np.zeros(3))
    persistent_pan_offset: np.ndarray = field(default_factory=lambda: np.zeros(3))

    cursor: np.ndarray = field(default_factory=lambda: np.zeros(3))
    dolly_direction: np.ndarray = field(default_factory=lambda: np.zeros(3))
    mouse_ndc: np.ndarray = field(default_factory=lambda: np.zeros(2))
    perform_cursor_zoom: bool = False

    enable_damping: bool = False
    auto_rotate: bool = False
    interaction: InteractionState = InteractionState.NONE

    @classmethod
    def from_config(cls, config: ControlsConfig) -> 'OrbitState':
        return cls(config=config, enable_damping=config.enable_damping,
                   auto_rotate=config.auto_rotate)

    def panned_target(self) -> np.ndarray:
        return self.target + self.persistent_pan_offset

    def set_target_up(self, up: np.ndarray) -> None:
        self.target_up = normalize(np.asarray(up, dtype=np.float64))
        self.up_quat = quat_from_unit_vectors(self.target_up, Y_UP)
        self.up_quat_inverse = quat_invert(self.up_quat)

    def clamp_distance(self, distance: float) -> float:
        return max(self.config.min_distance, min(self.config.max_distance, distance))

    def clamp_zoom(self, zoom: float) -> float:
        return max(self.config.min_zoom, min(self.config.max_zoom, zoom))

    def polar_limits(self) -> tuple[float, float]:
        low = self.config.min_polar_angle
        high = self.config.max_polar_angle
        return (low if math.isfinite(low) else 0.0,
                high if math.isfinite(high) else math.pi)

    def auto_rotation_angle(self, delta_time: float | None) -> float:
        speed = self.config.auto_rotate_speed
        if delta_time is not None:
            return TWO_PI / 60.0 * speed * delta_time
        return TWO_PI / 60.0 / 60.0 * speed


def clamp_azimuth(theta: float, min_angle: float, max_angle: float) -> float:
    """Restrict an azimuth angle to [min_angle, max_angle]

    Limits are wrapped into [-pi, pi]. When min_angle > max_angle the
    allowed range crosses the +/-pi seam and theta snaps to whichever bound
    is closer. Non-finite limits leave theta alone.
    """
    if not (math.isfinite(min_angle) and math.isfinite(max_angle)):
        return theta

    if min_angle < -math.pi:
        min_angle += TWO_PI
    elif min_angle > math.pi:
        min_angle -= TWO_PI

    if max_angle < -math.pi:
        max_angle += TWO_PI
    elif max_angle > math.pi:
        max_angle -= TWO_PI

    if min_angle <= max_angle:
        return max(min_angle, min(max_angle, theta))
    if theta > (min_angle + max_angle) / 2.0:
        return max(min_angle, theta)
    return min(max_angle, theta)


def integrate_orbit(state: OrbitState, camera: Camera, strategy: ZoomStrategy,
                    delta_time: float | None = None) -> bool:
    """Apply one frame of pending orbit, pan and zoom input to the camera

    Parameters
    ----------
    state : OrbitState
        Controller state, consumed deltas are decayed or zeroed
    camera : Camera
        Camera to move
    strategy : ZoomStrategy
        Cursor zoom behavior, zoom_to_cursor is switched off for cameras
        that are neither perspective nor orthographic
    delta_time : float | None
        Seconds since the previous frame, used for auto rotation

    Returns
    -------
    zoom_changed : bool
        True if the distance or the orthographic zoom changed
    """
    cfg = state.config
    kind = camera_kind(camera)
    if kind is CameraKind.UNSUPPORTED and strategy.zoom_to_cursor:
        logger.warning('Unknown camera type %r, zoom to cursor disabled',
                       type(camera.projection).__name__)
        strategy.zoom_to_cursor = False
    cursor_zoom = strategy.zoom_to_cursor and state.perform_cursor_zoom

    # Offset from the target, in a frame where target_up is +Y
    target = state.panned_target()
    offset = quat_apply(state.up_quat, camera.position - target)
    radius, theta, phi = spherical_from_vector(offset)

    if state.auto_rotate and state.interaction is InteractionState.NONE:
        state.delta_theta -= state.auto_rotation_angle(delta_time)

    if state.enable_damping:
        theta += state.delta_theta * cfg.damping_factor
        phi += state.delta_phi * cfg.damping_factor
    else:
        theta += state.delta_theta
        phi += state.delta_phi

    theta = clamp_azimuth(theta, cfg.min_azimuth_angle, cfg.max_azimuth_angle)
    min_polar, max_polar = state.polar_limits()
    phi = make_safe_phi(max(min_polar, min(max_polar, phi)))

    # Move the target to the panned location
    if state.enable_damping:
        state.persistent_pan_offset = state.persistent_pan_offset + state.pan_offset * cfg.damping_factor
    else:
        state.persistent_pan_offset = state.persistent_pan_offset + state.pan_offset
    state.persistent_pan_offset = clamp_length(
        state.persistent_pan_offset - state.cursor,
        cfg.min_target_radius, cfg.max_target_radius,
    ) + state.cursor
    target = state.panned_target()

    zoom_changed = False
    # Cursor zoom and orthographic zoom are applied after the orbit below
    if cursor_zoom or kind is CameraKind.ORTHOGRAPHIC:
        radius = state.clamp_distance(radius)
    else:
        prev_radius = radius
        radius = state.clamp_distance(radius * state.scale)
        zoom_changed = prev_radius != radius

    offset = quat_apply(state.up_quat_inverse, vector_from_spherical(radius, theta, phi))
    camera.position = target + offset
    camera.look_at(target)

    if state.enable_damping:
        state.delta_theta *= 1.0 - cfg.damping_factor
        state.delta_phi *= 1.0 - cfg.damping_factor
        state.pan_offset = state.pan_offset * (1.0 - cfg.damping_factor)
    else:
        state.delta_theta = 0.0
        state.delta_phi = 0.0
        state.pan_offset = np.zeros(3)

    if cursor_zoom:
        new_radius = None
        if kind is CameraKind.PERSPECTIVE:
            # Slide along the pointer ray instead of rescaling the offset,
            # which keeps the point under the cursor fixed
            prev_radius = float(np.linalg.norm(offset))
            new_radius = state.clamp_distance(prev_radius * state.scale)
            radius_delta = prev_radius - new_radius
            camera.position = camera.position + state.dolly_direction * radius_delta
            zoom_changed = radius_delta != 0.0
        elif kind is CameraKind.ORTHOGRAPHIC:
            ndc_before = np.array([state.mouse_ndc[0], state.mouse_ndc[1], 0.0])
            mouse_before = camera.unproject(ndc_before)

            prev_zoom = camera.projection.zoom
            camera.projection.zoom = state.clamp_zoom(camera.projection.zoom / state.scale)
            zoom_changed = prev_zoom != camera.projection.zoom

            mouse_after = camera.unproject(ndc_before)
            camera.position = camera.position - mouse_after + mouse_before
            new_radius = float(np.linalg.norm(offset))

        if new_radius is not None:
            _retarget_after_cursor_zoom(state, camera, strategy, target, new_radius)

    elif kind is CameraKind.ORTHOGRAPHIC:
        prev_zoom = camera.projection.zoom
        camera.projection.zoom = state.clamp_zoom(camera.projection.zoom / state.scale)
        zoom_changed = prev_zoom != camera.projection.zoom

    state.scale = 1.0
    state.perform_cursor_zoom = False
    return zoom_changed


def _retarget_after_cursor_zoom(state: OrbitState, camera: Camera, strategy: ZoomStrategy,
                                old_target: np.ndarray, new_radius: float) -> None:
    """Place the orbit target after the camera moved along the cursor ray"""
    forward = camera.forward_vector()
    if strategy.screen_space_panning:
        new_target = camera.position + forward * new_radius
    elif abs(np.dot(camera.up, forward)) < strategy.tilt_limit:
        # Near-horizontal view, the plane hit would run off toward the
        # horizon so keep the old target
        camera.look_at(old_target)
        return
    else:
        new_target = intersect_ray_plane(camera.position, forward, camera.up, old_target)
        if new_target is None:
            camera.look_at(old_target)
            return
    state.target = new_target - state.persistent_pan_offset


class OrbitCameraController(QObject):
    '''Damped orbit controls for a camera looking at a point on the globe

    Input handlers only queue deltas; update() is called once per rendered
    frame to apply them to the camera.

    Signals
    -------
    sigStart
        An interaction began
    sigChange
        The camera moved during update()
    sigEnd
        An interaction finished
    sigTargetChange(CameraTargetPose)
        The derived camera pose was recomputed
    '''

    sigStart = Signal()
    sigChange = Signal()
    sigEnd = Signal()
    sigTargetChange = Signal(object)

    def __init__(self, camera: Camera, target: np.ndarray | None = None,
                 config: ControlsConfig | None = None, ellipsoid: Ellipsoid = WGS84,
                 target_up: np.ndarray | None = None, parent=None):
        '''
        Parameters
        ----------
        camera : Camera
            Camera to drive
        target : np.ndarray | None
            ECEF point to orbit, defaults to the origin
        config : ControlsConfig | None
            Limits and flags, validated here
        ellipsoid : Ellipsoid
            Reference ellipsoid for heading/pitch frames
        target_up : np.ndarray | None
            Orbit up vector, defaults to the surface normal at target
        '''
        super().__init__(parent)
        self.config = (config or ControlsConfig()).validate()
        self.camera = camera
        self.ellipsoid = ellipsoid
        self.enabled = True

        self.state = OrbitState.from_config(self.config)
        if target is not None:
            self.state.target = np.asarray(target, dtype=np.float64).copy()
        self.strategy = ZoomStrategy(
            zoom_to_cursor=self.config.zoom_to_cursor,
            screen_space_panning=self.config.screen_space_panning,
            tilt_limit=self.config.tilt_limit,
        )

        if target_up is None:
            if np.linalg.norm(self.state.target) > 0:
                target_up = ellipsoid.surface_normal(self.state.target)
            else:
                target_up = Y_UP
        self.state.set_target_up(target_up)
        self.camera.up = self.state.target_up.copy()

        self.target_pose = CameraTargetPose()
        self._snapshot()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def target(self) -> np.ndarray:
        return self.state.target

    @target.setter
    def target(self, value: np.ndarray) -> None:
        self.state.target = np.asarray(value, dtype=np.float64).copy()

    @property
    def target_up(self) -> np.ndarray:
        return self.state.target_up

    @property
    def persistent_pan_offset(self) -> np.ndarray:
        return self.state.persistent_pan_offset

    @property
    def enable_damping(self) -> bool:
        return self.state.enable_damping

    @enable_damping.setter
    def enable_damping(self, value: bool) -> None:
        self.state.enable_damping = bool(value)

    @property
    def auto_rotate(self) -> bool:
        return self.state.auto_rotate

    @auto_rotate.setter
    def auto_rotate(self, value: bool) -> None:
        self.state.auto_rotate = bool(value)

    @property
    def zoom_to_cursor(self) -> bool:
        return self.strategy.zoom_to_cursor

    @zoom_to_cursor.setter
    def zoom_to_cursor(self, value: bool) -> None:
        self.strategy.zoom_to_cursor = bool(value)

    # ------------------------------------------------------------------
    # Pose
    # ------------------------------------------------------------------
    def get_target(self) -> np.ndarray:
        """Orbit target including the persistent pan offset"""
        return self.state.panned_target()

    def reset_pan_offset(self) -> None:
        self.state.persistent_pan_offset = np.zeros(3)

    def _pan_axes(self) -> tuple[np.ndarray, np.ndarray]:
        """Unit sideways and forward pan directions for the current camera"""
        up = self.state.target_up
        right = self.camera.right_vector()
        side = normalize(project_on_plane(right, up))
        forward = normalize(np.cross(up, right))
        return side, forward

    def _pan_offset_from_xy(self, x: float = 0.0, y: float = 0.0) -> np.ndarray:
        side, forward = self._pan_axes()
        return side * -x + forward * y

    def set_camera_position(self, pose: CameraTargetPose) -> None:
        """Place the camera from a heading/pitch/distance/x/y pose

        Parameters
        ----------
        pose : CameraTargetPose
            Heading and pitch in degrees, distance and x/y in meters
        """
        self.target_pose = pose
        pov = PointOfView(pose.distance, math.radians(pose.heading), math.radians(pose.pitch))

        # Orient for the un-panned pose first so x/y use the final right vector
        self.camera.position, _ = pov.decompose(self.state.target, self.ellipsoid)
        self.camera.look_at(self.state.target)
        self.state.persistent_pan_offset = self._pan_offset_from_xy(pose.x, pose.y)

        target = self.get_target()
        self.camera.position, _ = pov.decompose(target, self.ellipsoid, frame_target=self.state.target)
        self.camera.look_at(target)

        logger.debug('Camera pose set: %s', pose)
        self._snapshot()

    def invert_camera_hpd(self) -> CameraTargetPose:
        """Derive the pose (heading/pitch/distance/x/y) of the current camera"""
        target = self.get_target()
        pov = PointOfView.compose(target, self.camera.position, self.ellipsoid,
                                  frame_target=self.state.target)

        x = 0.0
        y = 0.0
        offset = self.state.persistent_pan_offset
        if np.dot(offset, offset) > 0:
            side, forward = self._pan_axes()
            x = -float(np.dot(offset, side))
            y = float(np.dot(offset, forward))

        return CameraTargetPose(
            heading=math.degrees(pov.heading),
            pitch=math.degrees(pov.pitch),
            distance=pov.distance,
            x=x,
            y=y,
        )

    def update_up(self, target_up: np.ndarray) -> None:
        """Change the orbit up vector and re-apply the current pose"""
        self.state.set_target_up(target_up)
        self.camera.up = self.state.target_up.copy()
        logger.debug('Orbit up vector set to %s', self.state.target_up)
        self.set_camera_position(self.target_pose)

    # ------------------------------------------------------------------
    # Per-frame update
    # ------------------------------------------------------------------
    def _snapshot(self) -> None:
        self._last_position = self.camera.position.copy()
        self._last_quaternion = self.camera.quaternion.copy()
        self._last_target = self.get_target().copy()

    def update(self, delta_time: float | None = None) -> bool:
        """Apply pending input to the camera

        Parameters
        ----------
        delta_time : float | None
            Seconds since the previous frame

        Returns
        -------
        changed : bool
            True if the camera moved, rotated, zoomed or the target moved
            by more than floating point noise
        """
        zoom_changed = integrate_orbit(self.state, self.camera, self.strategy, delta_time)

        position_delta = self.camera.position - self._last_position
        target_delta = self.get_target() - self._last_target
        # Small-angle approximation: cos(x/2) = 1 - x^2/8
        rotation_delta = 8.0 * (1.0 - float(np.dot(self._last_quaternion, self.camera.quaternion)))

        changed = (
            zoom_changed
            or float(np.dot(position_delta, position_delta)) > EPS
            or rotation_delta > EPS
            or float(np.dot(target_delta, target_delta)) > EPS
        )
        if changed:
            self.sigChange.emit()
            self._snapshot()
            self.target_pose = self.invert_camera_hpd()
            self.sigTargetChange.emit(self.target_pose)
        return changed

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------
    def begin_interaction(self, interaction: InteractionState) -> None:
        self.state.interaction = interaction
        self.sigStart.emit()

    def end_interaction(self) -> None:
        self.state.interaction = InteractionState.NONE
        self.sigEnd.emit()

    def rotate_left(self, angle: float) -> None:
        self.state.delta_theta -= angle

    def rotate_up(self, angle: float) -> None:
        self.state.delta_phi -= angle

    def rotate(self, delta_x: float, delta_y: float, viewport_height: float) -> None:
        """Queue an orbit from a pointer drag in pixels"""
        if not self.enabled or viewport_height <= 0:
            return
        speed = self.config.rotate_speed
        self.rotate_left(TWO_PI * delta_x * speed / viewport_height)
        self.rotate_up(TWO_PI * delta_y * speed / viewport_height)

    def pan_left(self, distance: float) -> None:
        side = normalize(project_on_plane(self.camera.right_vector(), self.state.target_up))
        self.state.pan_offset = self.state.pan_offset + side * -distance

    def pan_up(self, distance: float) -> None:
        forward = np.cross(self.state.target_up, self.camera.right_vector())
        self.state.pan_offset = self.state.pan_offset + forward * distance

    def pan(self, delta_x: float, delta_y: float, viewport_width: float, viewport_height: float) -> None:
        """Queue a pan from a pointer drag in pixels

        The drag is scaled so the point under the pointer follows it at the
        target's depth.
        """
        if not self.enabled or viewport_width <= 0 or viewport_height <= 0:
            return
        delta_x *= self.config.pan_speed
        delta_y *= self.config.pan_speed

        kind = camera_kind(self.camera)
        if kind is CameraKind.PERSPECTIVE:
            offset = self.camera.position - self.get_target()
            target_distance = np.linalg.norm(offset) * math.tan(math.radians(self.camera.projection.fov / 2.0))
            self.pan_left(2.0 * delta_x * target_distance / viewport_height)
            self.pan_up(2.0 * delta_y * target_distance / viewport_height)
        elif kind is CameraKind.ORTHOGRAPHIC:
            proj = self.camera.projection
            self.pan_left(delta_x * (proj.right - proj.left) / proj.zoom / viewport_width)
            self.pan_up(delta_y * (proj.top - proj.bottom) / proj.zoom / viewport_height)
        else:
            logger.warning('Unknown camera type %r, pan ignored', type(self.camera.projection).__name__)

    def zoom_scale(self, delta: float) -> float:
        """Dolly scale factor for a wheel delta"""
        normalized = abs(delta * 0.01)
        return 0.95 ** (self.config.zoom_speed * normalized)

    def dolly_in(self, scale: float) -> None:
        self.state.scale *= scale

    def dolly_out(self, scale: float) -> None:
        self.state.scale /= scale

    def update_cursor(self, ndc_x: float, ndc_y: float) -> None:
        """Record the pointer position used to anchor the next zoom step"""
        self.state.perform_cursor_zoom = False
        if not self.strategy.zoom_to_cursor:
            return
        if camera_kind(self.camera) is CameraKind.UNSUPPORTED:
            # integrate_orbit switches zoom_to_cursor off on the next frame
            return
        self.state.perform_cursor_zoom = True
        self.state.mouse_ndc = np.array([ndc_x, ndc_y])
        _, direction = self.camera.ray_through(ndc_x, ndc_y)
        self.state.dolly_direction = direction

    def handle_wheel(self, delta_y: float, ndc: tuple[float, float] | None = None) -> None:
        """Queue a zoom step from a wheel event (negative delta zooms in)"""
        if not self.enabled or delta_y == 0:
            return
        if ndc is not None:
            self.update_cursor(*ndc)
        else:
            self.state.perform_cursor_zoom = False
        if delta_y < 0:
            self.dolly_in(self.zoom_scale(delta_y))
        else:
            self.dolly_out(self.zoom_scale(delta_y))
