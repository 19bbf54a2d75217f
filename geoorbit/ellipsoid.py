import numpy as np


class Ellipsoid:
    """Oblate spheroid reference model with semi-axes (a, b, b)

    The z axis is the polar (short) axis, so the radii are stored as
    (a, a, b) in ECEF axis order.

    Attributes
    ----------
    a : float
        Equatorial semi-axis in meters
    b : float
        Polar semi-axis in meters
    """

    __slots__ = ('_a', '_b', '_radii', '_inv_radii_sq', '_e2')

    def __init__(self, a: float, b: float):
        '''
        Parameters
        ----------
        a : float
            Equatorial radius in meters
        b : float
            Polar radius in meters
        '''
        if not (np.isfinite(a) and np.isfinite(b)) or a <= 0 or b <= 0:
            raise ValueError(f'Ellipsoid semi-axes must be positive and finite, got a={a}, b={b}')
        if b > a:
            raise ValueError(f'Polar radius {b} exceeds equatorial radius {a}')
        self._a = float(a)
        self._b = float(b)
        self._radii = np.array([self._a, self._a, self._b])
        self._radii.setflags(write=False)
        self._inv_radii_sq = 1.0 / (self._radii * self._radii)
        self._inv_radii_sq.setflags(write=False)
        self._e2 = 1.0 - (self._b * self._b) / (self._a * self._a)

    @property
    def a(self) -> float:
        return self._a

    @property
    def b(self) -> float:
        return self._b

    @property
    def radii(self) -> np.ndarray:
        return self._radii

    @property
    def max_radius(self) -> float:
        return self._a

    @property
    def min_radius(self) -> float:
        return self._b

    @property
    def eccentricity_squared(self) -> float:
        return self._e2

    def __eq__(self, other):
        if not isinstance(other, Ellipsoid):
            return NotImplemented
        return self._a == other._a and self._b == other._b

    def __hash__(self):
        return hash((self._a, self._b))

    def __repr__(self):
        return f'Ellipsoid(a={self._a}, b={self._b})'

    def surface_normal(self, ecef: np.ndarray) -> np.ndarray:
        """Outward unit normal of the ellipsoid surface through ecef's direction

        The gradient of x²/a² + y²/a² + z²/b² is used, so for an oblate
        ellipsoid this differs from the geocentric radial direction
        everywhere except the equator and the poles.

        Parameters
        ----------
        ecef : np.ndarray
            ECEF position in meters

        Returns
        -------
        normal : np.ndarray
            Unit vector
        """
        n = np.asarray(ecef, dtype=np.float64) * self._inv_radii_sq
        length = np.linalg.norm(n)
        if length == 0.0:
            return np.array([0.0, 0.0, 1.0])
        return n / length

    def intersection(self, origin: np.ndarray, direction: np.ndarray) -> np.ndarray | None:
        """Nearest intersection of a ray with the ellipsoid surface

        Parameters
        ----------
        origin : np.ndarray
            Ray origin in ECEF meters
        direction : np.ndarray
            Ray direction (need not be normalized)

        Returns
        -------
        hit : np.ndarray | None
            ECEF point of the nearest non-negative root, None if the ray
            misses or the ellipsoid lies entirely behind the origin
        """
        origin = np.asarray(origin, dtype=np.float64)
        direction = np.asarray(direction, dtype=np.float64)

        # Scale into unit-sphere space and solve the quadratic there
        o = origin / self._radii
        d = direction / self._radii
        a = np.dot(d, d)
        if a == 0.0:
            return None
        b = 2.0 * np.dot(o, d)
        c = np.dot(o, o) - 1.0

        discriminant = b * b - 4.0 * a * c
        if discriminant < 0:
            return None

        sqrt_disc = np.sqrt(discriminant)
        t0 = (-b - sqrt_disc) / (2.0 * a)
        t1 = (-b + sqrt_disc) / (2.0 * a)
        if t0 >= 0:
            t = t0
        elif t1 >= 0:
            t = t1
        else:
            return None
        return origin + direction * t

    def elevation(self, ecef: np.ndarray) -> float:
        """Signed height of ecef above the surface along the local normal"""
        # Imported here, coord_utils depends on this module
        from geoorbit.coord_utils import from_ecef
        return from_ecef(ecef, self).height

    def radius_at(self, latitude: float) -> float:
        """Geocentric radius of the surface point at a geodetic latitude

        Parameters
        ----------
        latitude : float
            Geodetic latitude in radians

        Returns
        -------
        radius : float
            Distance from the center to the surface; a at the equator,
            b at the poles
        """
        cos_lat = np.cos(latitude)
        sin_lat = np.sin(latitude)
        a2c = self._a * self._a * cos_lat
        b2s = self._b * self._b * sin_lat
        ac = self._a * cos_lat
        bs = self._b * sin_lat
        return float(np.sqrt((a2c * a2c + b2s * b2s) / (ac * ac + bs * bs)))

    def horizon_distance(self, latitude: float, elevation: float) -> float:
        """Line-of-sight distance to the horizon for an observer

        Uses the tangent-line approximation sqrt(2Rh + h²) with R the local
        surface radius. Callers floor elevation at a small positive value;
        anything that would still produce a negative radicand yields 0.

        Parameters
        ----------
        latitude : float
            Geodetic latitude of the observer in radians
        elevation : float
            Observer height above the surface in meters

        Returns
        -------
        distance : float
            Horizon distance in meters
        """
        radius = self.radius_at(latitude)
        return float(np.sqrt(max(0.0, 2.0 * radius * elevation + elevation * elevation)))


WGS84 = Ellipsoid(6378137.0, 6356752.314245)
