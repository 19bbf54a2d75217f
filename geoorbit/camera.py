from dataclasses import dataclass
import numpy as np

from geoorbit.math_utils import (
    look_at_rotation, quat_from_matrix, quat_identity, quat_to_matrix,
)


@dataclass
class Perspective:
    """Perspective projection parameters

    Attributes
    ----------
    fov : float
        Vertical field of view in degrees
    aspect : float
        Width / height
    """
    fov: float = 45.0
    aspect: float = 1.0


@dataclass
class Orthographic:
    """Orthographic projection parameters (frustum bounds before zoom)"""
    left: float = -1.0
    right: float = 1.0
    top: float = 1.0
    bottom: float = -1.0
    zoom: float = 1.0


class Camera:
    """Camera handle shared between the controls and the renderer

    Follows the usual scene-graph convention: the camera looks down its
    local -Z axis with +Y up and +X right.

    Attributes
    ----------
    position : np.ndarray
        ECEF position in meters
    quaternion : np.ndarray
        Orientation [x, y, z, w]
    up : np.ndarray
        World up hint used by look_at
    near, far : float
        Clip plane distances
    projection : Perspective | Orthographic
        Projection parameters
    """

    def __init__(self, projection, near: float = 1.0, far: float = 1e8):
        self.projection = projection
        self.near = float(near)
        self.far = float(far)
        self.position = np.zeros(3)
        self.quaternion = quat_identity()
        self.up = np.array([0.0, 1.0, 0.0])

    def __repr__(self):
        return (f'{self.__class__.__name__}({self.projection}, '
                f'position={self.position.tolist()}, near={self.near:.3f}, far={self.far:.3f})')

    @property
    def rotation_matrix(self) -> np.ndarray:
        return quat_to_matrix(self.quaternion)

    @property
    def matrix(self) -> np.ndarray:
        """4x4 camera-to-world transform"""
        m = np.eye(4)
        m[:3, :3] = self.rotation_matrix
        m[:3, 3] = self.position
        return m

    @property
    def view_matrix(self) -> np.ndarray:
        """4x4 world-to-camera transform"""
        r = self.rotation_matrix
        m = np.eye(4)
        m[:3, :3] = r.T
        m[:3, 3] = -r.T @ self.position
        return m

    def right_vector(self) -> np.ndarray:
        return self.rotation_matrix[:, 0]

    def up_vector(self) -> np.ndarray:
        return self.rotation_matrix[:, 1]

    def forward_vector(self) -> np.ndarray:
        return -self.rotation_matrix[:, 2]

    def look_at(self, target: np.ndarray) -> None:
        """Orient the camera so its -Z axis points at target"""
        rot = look_at_rotation(self.position, np.asarray(target, dtype=np.float64), self.up)
        self.quaternion = quat_from_matrix(rot)

    def set_rotation_matrix(self, rot: np.ndarray) -> None:
        self.quaternion = quat_from_matrix(rot)

    def projection_matrix(self) -> np.ndarray:
        """4x4 OpenGL-style clip-space projection"""
        near, far = self.near, self.far
        proj = self.projection
        m = np.zeros((4, 4))
        if isinstance(proj, Perspective):
            f = 1.0 / np.tan(np.radians(proj.fov) / 2.0)
            m[0, 0] = f / proj.aspect
            m[1, 1] = f
            m[2, 2] = (far + near) / (near - far)
            m[2, 3] = (2.0 * far * near) / (near - far)
            m[3, 2] = -1.0
        elif isinstance(proj, Orthographic):
            left, right, top, bottom = self.ortho_bounds()
            m[0, 0] = 2.0 / (right - left)
            m[1, 1] = 2.0 / (top - bottom)
            m[2, 2] = -2.0 / (far - near)
            m[0, 3] = -(right + left) / (right - left)
            m[1, 3] = -(top + bottom) / (top - bottom)
            m[2, 3] = -(far + near) / (far - near)
            m[3, 3] = 1.0
        else:
            raise TypeError(f'Unsupported projection: {proj!r}')
        return m

    def ortho_bounds(self) -> tuple[float, float, float, float]:
        """Orthographic (left, right, top, bottom) after applying zoom"""
        proj = self.projection
        dx = (proj.right - proj.left) / (2.0 * proj.zoom)
        dy = (proj.top - proj.bottom) / (2.0 * proj.zoom)
        cx = (proj.right + proj.left) / 2.0
        cy = (proj.top + proj.bottom) / 2.0
        return cx - dx, cx + dx, cy + dy, cy - dy

    def unproject(self, ndc: np.ndarray) -> np.ndarray:
        """Map a normalized device coordinate [x, y, z] to world space"""
        inv = np.linalg.inv(self.projection_matrix())
        p = inv @ np.array([ndc[0], ndc[1], ndc[2], 1.0])
        view = p[:3] / p[3]
        return self.rotation_matrix @ view + self.position

    def project(self, point: np.ndarray) -> np.ndarray:
        """Map a world point to normalized device coordinates"""
        p = self.projection_matrix() @ self.view_matrix @ np.append(point, 1.0)
        return p[:3] / p[3]

    def ray_through(self, ndc_x: float, ndc_y: float) -> tuple[np.ndarray, np.ndarray]:
        """World-space ray through a point on screen

        Returns
        -------
        (ray_origin, ray_direction) : (np.ndarray, np.ndarray)
            Origin and normalized direction in ECEF
        """
        if isinstance(self.projection, Orthographic):
            origin = self.unproject(np.array([ndc_x, ndc_y, -1.0]))
            direction = self.forward_vector()
        else:
            origin = self.position.copy()
            far_point = self.unproject(np.array([ndc_x, ndc_y, 0.5]))
            direction = far_point - origin
            direction = direction / np.linalg.norm(direction)
        return origin, direction


def perspective_camera(fov: float = 45.0, aspect: float = 1.0,
                       near: float = 1.0, far: float = 1e8) -> Camera:
    return Camera(Perspective(fov, aspect), near, far)


def orthographic_camera(left: float, right: float, top: float, bottom: float,
                        near: float = 1.0, far: float = 1e8, zoom: float = 1.0) -> Camera:
    return Camera(Orthographic(left, right, top, bottom, zoom), near, far)
