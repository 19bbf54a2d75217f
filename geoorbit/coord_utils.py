from typing import NamedTuple
import numpy as np

from geoorbit.ellipsoid import Ellipsoid, WGS84

# Extra reduced-latitude refinements after Bowring's first estimate; one pass
# is already sub-millimeter on the surface, the rest covers orbital heights
BOWRING_ITERATIONS = 2


class Geodetic(NamedTuple):
    """Geodetic position relative to a reference ellipsoid

    Attributes
    ----------
    longitude : float
        Radians, east positive
    latitude : float
        Radians, north positive
    height : float
        Meters above the ellipsoid surface
    """
    longitude: float = 0.0
    latitude: float = 0.0
    height: float = 0.0

    def normalized(self) -> 'Geodetic':
        """Wrap longitude into [-pi, pi] and clamp latitude to [-pi/2, pi/2]"""
        lon = self.longitude
        if not -np.pi <= lon <= np.pi:
            lon = (lon + np.pi) % (2.0 * np.pi) - np.pi
        lat = float(np.clip(self.latitude, -np.pi / 2.0, np.pi / 2.0))
        return Geodetic(float(lon), lat, float(self.height))

    @classmethod
    def from_degrees(cls, longitude: float, latitude: float, height: float = 0.0) -> 'Geodetic':
        return cls(float(np.radians(longitude)), float(np.radians(latitude)), float(height))


class LocalFrame(NamedTuple):
    """East/north/up unit vectors at a point, expressed in ECEF"""
    east: np.ndarray
    north: np.ndarray
    up: np.ndarray

    def as_matrix(self) -> np.ndarray:
        """3x3 ENU to ECEF rotation (columns are east, north, up)"""
        return np.column_stack([self.east, self.north, self.up])


def to_ecef(geodetic: Geodetic, ellipsoid: Ellipsoid = WGS84) -> np.ndarray:
    """Convert a geodetic position to ECEF

    Parameters
    ----------
    geodetic : Geodetic
        (longitude, latitude, height) in radians, radians, meters
    ellipsoid : Ellipsoid
        Reference ellipsoid

    Returns
    -------
    ecef : np.ndarray
        [x, y, z] in meters
    """
    lon, lat, height = geodetic
    lat = np.clip(lat, -np.pi / 2.0, np.pi / 2.0)
    e2 = ellipsoid.eccentricity_squared

    sin_lat = np.sin(lat)
    cos_lat = np.cos(lat)
    n = ellipsoid.a / np.sqrt(1.0 - e2 * sin_lat * sin_lat)

    x = (n + height) * cos_lat * np.cos(lon)
    y = (n + height) * cos_lat * np.sin(lon)
    z = (n * (1.0 - e2) + height) * sin_lat
    return np.array([x, y, z], dtype=np.float64)


def from_ecef(ecef: np.ndarray, ellipsoid: Ellipsoid = WGS84) -> Geodetic:
    """Convert ECEF to a geodetic position with Bowring's method

    Parameters
    ----------
    ecef : np.ndarray
        [x, y, z] in meters
    ellipsoid : Ellipsoid
        Reference ellipsoid

    Returns
    -------
    geodetic : Geodetic
        (longitude, latitude, height) in radians, radians, meters
    """
    x, y, z = (float(c) for c in ecef)
    a = ellipsoid.a
    b = ellipsoid.b
    e2 = ellipsoid.eccentricity_squared
    ep2 = (a * a - b * b) / (b * b)

    lon = np.arctan2(y, x)
    p = np.hypot(x, y)

    if p == 0.0 and z == 0.0:
        return Geodetic(float(lon), 0.0, -b)

    # Reduced latitude guess, then Bowring's latitude formula
    beta = np.arctan2(a * z, b * p)
    for _ in range(BOWRING_ITERATIONS + 1):
        sin_beta = np.sin(beta)
        cos_beta = np.cos(beta)
        lat = np.arctan2(z + ep2 * b * sin_beta ** 3,
                         p - e2 * a * cos_beta ** 3)
        beta = np.arctan2(b * np.sin(lat), a * np.cos(lat))

    sin_lat = np.sin(lat)
    cos_lat = np.cos(lat)
    # Stable at every latitude, unlike p / cos(lat) - N
    height = p * cos_lat + z * sin_lat - a * np.sqrt(1.0 - e2 * sin_lat * sin_lat)

    return Geodetic(float(lon), float(lat), float(height)).normalized()


def local_frame(ecef: np.ndarray, ellipsoid: Ellipsoid = WGS84) -> LocalFrame:
    """East/north/up basis at an ECEF point

    The axes are the normalized partial derivatives of the geodetic
    parameterization: d/dlon gives east, d/dlat gives north, and up is the
    ellipsoid surface normal (not the geocentric radial direction).

    Parameters
    ----------
    ecef : np.ndarray
        [x, y, z] in meters
    ellipsoid : Ellipsoid
        Reference ellipsoid

    Returns
    -------
    frame : LocalFrame
        Orthonormal (east, north, up)
    """
    lon, lat, _ = from_ecef(ecef, ellipsoid)
    return local_frame_at(lon, lat)


def local_frame_at(lon: float, lat: float) -> LocalFrame:
    """East/north/up basis at a geodetic longitude/latitude (radians)"""
    sin_lon = np.sin(lon)
    cos_lon = np.cos(lon)
    sin_lat = np.sin(lat)
    cos_lat = np.cos(lat)

    east = np.array([-sin_lon, cos_lon, 0.0])
    north = np.array([-sin_lat * cos_lon, -sin_lat * sin_lon, cos_lat])
    up = np.array([cos_lat * cos_lon, cos_lat * sin_lon, sin_lat])
    return LocalFrame(east, north, up)


def lla_to_ecef(lat: float, lon: float, alt: float, ellipsoid: Ellipsoid = WGS84) -> np.ndarray:
    """Convert latitude, longitude, altitude to ECEF coordinates

    Parameters
    ----------
    lat : float
        Latitude in WGS84 Degrees
    lon : float
        Longitude in WGS84 Degrees
    alt : float
        Altitude above the ellipsoid surface in meters

    Returns
    -------
    ecef : np.ndarray
        [x, y, z] in meters
    """
    return to_ecef(Geodetic.from_degrees(lon, lat, alt), ellipsoid)


def lonlat_to_ecef(longitude: float, latitude: float, height: float = 0.0,
                   ellipsoid: Ellipsoid = WGS84) -> np.ndarray:
    """Same as lla_to_ecef with longitude first"""
    return lla_to_ecef(latitude, longitude, height, ellipsoid)


def ecef_to_lla(ecef: np.ndarray, ellipsoid: Ellipsoid = WGS84) -> tuple[float, float, float]:
    """Convert ECEF to (lat, lon, alt) in degrees, degrees, meters"""
    lon, lat, height = from_ecef(ecef, ellipsoid)
    return float(np.degrees(lat)), float(np.degrees(lon)), height


def get_enu_to_ecef_matrix(lat: float, lon: float) -> np.ndarray:
    """Get rotation matrix from local ENU to ECEF frame

    Parameters
    ----------
    lat : float
        Geodetic latitude in Degrees
    lon : float
        Longitude in Degrees

    Returns
    -------
    R : np.ndarray
        3x3 Rotation Matrix
    """
    return local_frame_at(np.radians(lon), np.radians(lat)).as_matrix()
