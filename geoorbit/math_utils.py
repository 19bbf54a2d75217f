import numpy as np

EPS = 1e-6


def normalize(v: np.ndarray) -> np.ndarray:
    """Return v scaled to unit length (zero vector stays zero)"""
    n = np.linalg.norm(v)
    if n == 0.0:
        return np.zeros(3)
    return v / n


def project_on_plane(v: np.ndarray, normal: np.ndarray) -> np.ndarray:
    """Remove the component of v along a (unit) plane normal"""
    return v - normal * np.dot(v, normal)


def clamp_length(v: np.ndarray, min_length: float, max_length: float) -> np.ndarray:
    """Scale v so its length lies in [min_length, max_length]

    A zero vector is left alone since it has no direction to scale along.
    """
    length = np.linalg.norm(v)
    if length == 0.0:
        return v
    clamped = max(min_length, min(max_length, length))
    return v * (clamped / length)


def lerp(a: float, b: float, t: float) -> float:
    return a + t * (b - a)


def clamp(value: float, min_val: float, max_val: float) -> float:
    return max(min_val, min(max_val, value))


# -----------------------------------------------------------------------------
# Quaternions, stored as [x, y, z, w]
# -----------------------------------------------------------------------------

def quat_identity() -> np.ndarray:
    return np.array([0.0, 0.0, 0.0, 1.0])


def quat_invert(q: np.ndarray) -> np.ndarray:
    """Inverse of a unit quaternion (its conjugate)"""
    return np.array([-q[0], -q[1], -q[2], q[3]])


def quat_apply(q: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Rotate vector v by unit quaternion q"""
    x, y, z, w = q
    u = np.array([x, y, z])
    t = 2.0 * np.cross(u, v)
    return v + w * t + np.cross(u, t)


def quat_from_unit_vectors(v_from: np.ndarray, v_to: np.ndarray) -> np.ndarray:
    """Shortest-arc rotation taking unit vector v_from onto unit vector v_to

    Parameters
    ----------
    v_from : np.ndarray
        Normalized source direction
    v_to : np.ndarray
        Normalized destination direction

    Returns
    -------
    q : np.ndarray
        Unit quaternion [x, y, z, w]
    """
    r = np.dot(v_from, v_to) + 1.0
    if r < EPS:
        # Opposite vectors, rotate 180 degrees around any orthogonal axis
        if abs(v_from[0]) > abs(v_from[2]):
            q = np.array([-v_from[1], v_from[0], 0.0, 0.0])
        else:
            q = np.array([0.0, -v_from[2], v_from[1], 0.0])
    else:
        c = np.cross(v_from, v_to)
        q = np.array([c[0], c[1], c[2], r])
    return q / np.linalg.norm(q)


def quat_to_matrix(q: np.ndarray) -> np.ndarray:
    """Convert unit quaternion to a 3x3 rotation matrix"""
    x, y, z, w = q
    return np.array([
        [1.0 - 2.0 * (y * y + z * z), 2.0 * (x * y - w * z), 2.0 * (x * z + w * y)],
        [2.0 * (x * y + w * z), 1.0 - 2.0 * (x * x + z * z), 2.0 * (y * z - w * x)],
        [2.0 * (x * z - w * y), 2.0 * (y * z + w * x), 1.0 - 2.0 * (x * x + y * y)],
    ])


def quat_from_matrix(m: np.ndarray) -> np.ndarray:
    """Convert a 3x3 rotation matrix to a unit quaternion"""
    m00, m01, m02 = m[0]
    m10, m11, m12 = m[1]
    m20, m21, m22 = m[2]
    trace = m00 + m11 + m22

    if trace > 0:
        s = 0.5 / np.sqrt(trace + 1.0)
        q = np.array([(m21 - m12) * s, (m02 - m20) * s, (m10 - m01) * s, 0.25 / s])
    elif m00 > m11 and m00 > m22:
        s = 2.0 * np.sqrt(1.0 + m00 - m11 - m22)
        q = np.array([0.25 * s, (m01 + m10) / s, (m02 + m20) / s, (m21 - m12) / s])
    elif m11 > m22:
        s = 2.0 * np.sqrt(1.0 + m11 - m00 - m22)
        q = np.array([(m01 + m10) / s, 0.25 * s, (m12 + m21) / s, (m02 - m20) / s])
    else:
        s = 2.0 * np.sqrt(1.0 + m22 - m00 - m11)
        q = np.array([(m02 + m20) / s, (m12 + m21) / s, 0.25 * s, (m10 - m01) / s])
    return q / np.linalg.norm(q)


def look_at_rotation(eye: np.ndarray, target: np.ndarray, up: np.ndarray) -> np.ndarray:
    """Rotation matrix for an object at eye whose -Z axis points at target

    Columns are the object's right, up and backward axes in world space.
    """
    z = eye - target
    if np.linalg.norm(z) == 0.0:
        z = np.array([0.0, 0.0, 1.0])
    z = normalize(z)

    x = np.cross(up, z)
    if np.linalg.norm(x) < EPS:
        # up and view direction are parallel, nudge z the way three.js does
        if abs(up[2]) == 1.0:
            z = normalize(z + np.array([1e-4, 0.0, 0.0]))
        else:
            z = normalize(z + np.array([0.0, 0.0, 1e-4]))
        x = np.cross(up, z)
    x = normalize(x)
    y = np.cross(z, x)

    return np.column_stack([x, y, z])


# -----------------------------------------------------------------------------
# Spherical coordinates (y-up: radius, polar angle phi from +Y, theta around Y)
# -----------------------------------------------------------------------------

def spherical_from_vector(v: np.ndarray) -> tuple[float, float, float]:
    """Convert a y-up offset vector to (radius, theta, phi)"""
    radius = float(np.linalg.norm(v))
    if radius == 0.0:
        return 0.0, 0.0, 0.0
    theta = float(np.arctan2(v[0], v[2]))
    phi = float(np.arccos(np.clip(v[1] / radius, -1.0, 1.0)))
    return radius, theta, phi


def vector_from_spherical(radius: float, theta: float, phi: float) -> np.ndarray:
    sin_phi_radius = np.sin(phi) * radius
    return np.array([
        sin_phi_radius * np.sin(theta),
        np.cos(phi) * radius,
        sin_phi_radius * np.cos(theta),
    ])


def make_safe_phi(phi: float) -> float:
    """Keep phi strictly inside (0, pi) so the orbit basis never degenerates"""
    return max(EPS, min(np.pi - EPS, phi))


# -----------------------------------------------------------------------------
# Rays
# -----------------------------------------------------------------------------

def intersect_ray_plane(origin: np.ndarray, direction: np.ndarray,
                        normal: np.ndarray, point: np.ndarray) -> np.ndarray | None:
    """Intersect a ray with the plane through point with the given normal

    Returns
    -------
    hit : np.ndarray | None
        Intersection point, None if the ray is parallel to or points away
        from the plane
    """
    denom = np.dot(normal, direction)
    if abs(denom) < 1e-12:
        return None
    t = np.dot(point - origin, normal) / denom
    if t < 0:
        return None
    return origin + direction * t
