# STDLIB Imports
import time
import numpy as np

# Pyside Imports
from PySide6.QtOpenGLWidgets import QOpenGLWidget
from PySide6.QtCore import Qt, QTimer, Signal, Slot

# OpenGL Imports
from OpenGL.GL import *
from OpenGL.GLU import *

# This Project Imports
from geoorbit.camera import perspective_camera
from geoorbit.clip_planes import GlobeClipPlaneAdjuster
from geoorbit.config import ControlsConfig, GeoPositionConfig
from geoorbit.coord_utils import Geodetic, to_ecef
from geoorbit.ellipsoid import Ellipsoid, WGS84
from geoorbit.log_utils import get_logger
from geoorbit.orbit_controls import CameraTargetPose, InteractionState, OrbitCameraController
from geoorbit.point_of_view import get_camera_lonlat

logger = get_logger(__name__)


def build_graticule(ellipsoid: Ellipsoid, step_deg: float = 15.0, samples: int = 96) -> list[np.ndarray]:
    """Meridians and parallels on the ellipsoid surface as ECEF polylines

    Parameters
    ----------
    ellipsoid : Ellipsoid
        Surface to draw on
    step_deg : float
        Spacing between lines in degrees
    samples : int
        Vertices per line

    Returns
    -------
    lines : list[np.ndarray]
        One (samples, 3) array per line
    """
    lines = []
    lons = np.radians(np.linspace(-180.0, 180.0, samples))
    lats = np.radians(np.linspace(-90.0, 90.0, samples))

    for lat in np.radians(np.arange(-90.0 + step_deg, 90.0, step_deg)):
        lines.append(np.array([to_ecef(Geodetic(lon, lat), ellipsoid) for lon in lons]))
    for lon in np.radians(np.arange(-180.0, 180.0, step_deg)):
        lines.append(np.array([to_ecef(Geodetic(lon, lat), ellipsoid) for lat in lats]))
    return lines


class GlobeWidget(QOpenGLWidget):
    '''PySide6 OpenGL Widget hosting the globe orbit controls

    Left drag orbits, right drag pans, the wheel zooms. Space toggles auto
    rotation and R returns to the home pose.
    '''

    poseChanged = Signal(object)
    infoSig = Signal(dict)

    def __init__(self, parent=None, home: GeoPositionConfig | None = None,
                 config: ControlsConfig | None = None, ellipsoid: Ellipsoid = WGS84):
        super().__init__(parent)
        self.setMinimumSize(1000, 600)
        self.setFocusPolicy(Qt.StrongFocus)

        self.ellipsoid = ellipsoid
        self.home = home or GeoPositionConfig()
        self.config = (config or ControlsConfig(
            enable_damping=True,
            min_distance=100.0,
            max_distance=ellipsoid.max_radius * 10,
            zoom_to_cursor=True,
        )).validate()

        self.camera = perspective_camera(fov=45.0, aspect=1.0)
        self.controls = OrbitCameraController(
            self.camera,
            target=self.home.target_ecef(ellipsoid),
            config=self.config,
            ellipsoid=ellipsoid,
        )
        self.controls.sigTargetChange.connect(self.on_target_change)
        self.controls.set_camera_position(self.home.to_pose())
        self.clip_planes = GlobeClipPlaneAdjuster.from_config(self.config, ellipsoid)

        self.graticule = build_graticule(ellipsoid)
        self.last_pos = None
        self.last_frame_time = None

        # Render loop
        self.frame_timer = QTimer(self)
        self.frame_timer.timeout.connect(self.on_frame)
        self.frame_timer.start(16)

        # Publish info to display on a timer
        self.info_timer = QTimer(self)
        self.info_timer.timeout.connect(self.publish_display_info)
        self.info_timer.start(1000)

    def initializeGL(self):
        glEnable(GL_DEPTH_TEST)
        glDisable(GL_LIGHTING)
        glClearColor(0.0, 0.0, 0.1, 1.0)
        logger.info('OpenGL %s', glGetString(GL_VERSION).decode(errors='replace'))

    def resizeGL(self, w, h):
        glViewport(0, 0, w, h)
        self.camera.projection.aspect = w / h if h > 0 else 1.0

    def paintGL(self):
        self.clip_planes.adjust(self.camera, self.controls.get_target())

        glClear(GL_COLOR_BUFFER_BIT | GL_DEPTH_BUFFER_BIT)

        glMatrixMode(GL_PROJECTION)
        glLoadMatrixd(self.camera.projection_matrix().T.flatten())
        glMatrixMode(GL_MODELVIEW)
        glLoadMatrixd(self.camera.view_matrix.T.flatten())

        self.draw_earth()
        self.draw_target()

    def draw_earth(self):
        '''Draw the ellipsoid graticule'''
        glColor3f(0.3, 0.6, 0.9)
        glLineWidth(1.0)
        for line in self.graticule:
            glBegin(GL_LINE_STRIP)
            for p in line:
                glVertex3d(*p)
            glEnd()

    def draw_target(self):
        '''Mark the current orbit target'''
        glColor3f(1.0, 0.2, 0.2)
        glPointSize(8.0)
        glBegin(GL_POINTS)
        glVertex3d(*self.controls.get_target())
        glEnd()

    #-------------------------------------------------------
    # FRAME LOOP
    #-------------------------------------------------------
    @Slot()
    def on_frame(self):
        now = time.perf_counter()
        delta_time = None if self.last_frame_time is None else now - self.last_frame_time
        self.last_frame_time = now
        if self.controls.update(delta_time):
            self.update()

    @Slot(object)
    def on_target_change(self, pose: CameraTargetPose):
        self.poseChanged.emit(pose)

    def publish_display_info(self) -> None:
        '''Emit pose and view center info'''
        info = {'pose': self.controls.target_pose.as_dict()}
        center = get_camera_lonlat(self.camera, self.ellipsoid)
        if center is not None:
            info['center'] = center
        self.infoSig.emit(info)

    #-------------------------------------------------------
    # EVENT HANDLERS
    #-------------------------------------------------------
    def to_ndc(self, x: float, y: float) -> tuple[float, float]:
        '''Widget coordinates to normalized device coordinates'''
        w = max(self.width(), 1)
        h = max(self.height(), 1)
        return (2.0 * x) / w - 1.0, 1.0 - (2.0 * y) / h

    def mousePressEvent(self, event):
        self.last_pos = event.position()
        if event.button() == Qt.LeftButton:
            self.controls.begin_interaction(InteractionState.ROTATE)
        elif event.button() == Qt.RightButton:
            self.controls.begin_interaction(InteractionState.PAN)

    def mouseMoveEvent(self, event):
        pos = event.position()
        if self.last_pos is None:
            self.last_pos = pos
            return

        dx = pos.x() - self.last_pos.x()
        dy = pos.y() - self.last_pos.y()

        if event.buttons() & Qt.LeftButton:
            self.controls.rotate(dx, dy, self.height())
        elif event.buttons() & Qt.RightButton:
            self.controls.pan(dx, dy, self.width(), self.height())

        self.last_pos = pos

    def mouseReleaseEvent(self, event):
        if event.button() in (Qt.LeftButton, Qt.RightButton):
            self.controls.end_interaction()
        self.last_pos = None

    def wheelEvent(self, event):
        delta = event.angleDelta().y()
        if delta == 0:
            return
        pos = event.position()
        self.controls.begin_interaction(InteractionState.DOLLY)
        # Qt reports wheel-away as positive, the controls zoom in on negative
        self.controls.handle_wheel(-delta, self.to_ndc(pos.x(), pos.y()))
        self.controls.end_interaction()

    def keyPressEvent(self, event):
        if event.key() == Qt.Key_Space:
            self.controls.auto_rotate = not self.controls.auto_rotate
            logger.debug('Auto rotate %s', 'on' if self.controls.auto_rotate else 'off')
        elif event.key() == Qt.Key_R:
            self.go_home()

    def go_home(self) -> None:
        '''Return to the home pose and drop any pan'''
        logger.info('Returning to home (lon %.4f, lat %.4f)', self.home.longitude, self.home.latitude)
        self.controls.target = self.home.target_ecef(self.ellipsoid)
        self.controls.reset_pan_offset()
        self.controls.update_up(self.ellipsoid.surface_normal(self.controls.target))
        self.controls.set_camera_position(self.home.to_pose())
        self.update()

    def close(self):
        self.frame_timer.stop()
        self.info_timer.stop()


# end class GlobeWidget
