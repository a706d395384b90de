import numpy as np
import pint
import pyproj

# Create unit registry and ellipsoid once at module level
_ureg = pint.UnitRegistry()
_GEOD = pyproj.Geod(ellps="WGS84")


def knots_to_ms(speed_knots):
    """Convert speed from knots to meters per second."""
    speed_ms = (np.asarray(speed_knots, dtype=float) * _ureg.knot).to(
        _ureg.meter_per_second
    )
    return (
        float(speed_ms.magnitude)
        if np.ndim(speed_ms.magnitude) == 0
        else speed_ms.magnitude
    )


def ms_to_knots(speed_ms):
    """Convert speed from meters per second to knots."""
    speed_knots = (np.asarray(speed_ms, dtype=float) * _ureg.meter_per_second).to(
        _ureg.knot
    )
    return (
        float(speed_knots.magnitude)
        if np.ndim(speed_knots.magnitude) == 0
        else speed_knots.magnitude
    )


def move_fwd(
    lon=None,
    lat=None,
    azimuth_degrees=None,
    distance_meters=None,
) -> tuple:
    """Move forward from a point along a geodesic.

    All arguments may be scalars or numpy arrays of matching shape.

    Parameters
    ----------
    lon : float or array-like
        Starting longitude in degrees
    lat : float or array-like
        Starting latitude in degrees
    azimuth_degrees : float or array-like
        Forward azimuth in degrees
    distance_meters : float or array-like
        Distance to move in meters

    Returns
    -------
    tuple
        New (longitude, latitude) in degrees
    """
    lon_new, lat_new, _ = _GEOD.fwd(
        lons=lon, lats=lat, az=azimuth_degrees, dist=distance_meters, radians=False
    )
    return lon_new, lat_new


def get_distance_meters(
    lon_start=None,
    lon_end=None,
    lat_start=None,
    lat_end=None,
):
    """Calculate geodesic distance between two points.

    Parameters
    ----------
    lon_start : float or array-like
        Starting longitude in degrees
    lon_end : float or array-like
        Ending longitude in degrees
    lat_start : float or array-like
        Starting latitude in degrees
    lat_end : float or array-like
        Ending latitude in degrees

    Returns
    -------
    float or np.ndarray
        Distance in meters along geodesic
    """
    _, _, distance_meters = _GEOD.inv(
        lons1=lon_start,
        lons2=lon_end,
        lats1=lat_start,
        lats2=lat_end,
    )
    return distance_meters


def get_azimuth_and_distance(
    lon_start=None,
    lat_start=None,
    lon_end=None,
    lat_end=None,
) -> tuple:
    """Forward azimuth in degrees [0, 360) and geodesic distance in meters."""
    fwd_az, _, distance_meters = _GEOD.inv(
        lons1=lon_start,
        lons2=lon_end,
        lats1=lat_start,
        lats2=lat_end,
    )
    return normalize_angle_degrees(fwd_az), distance_meters


def get_length_meters(line_string) -> float:
    """Calculate geodesic length of a LineString geometry."""
    return _GEOD.geometry_length(line_string)


def normalize_angle_degrees(angle):
    """Map angles to [0, 360)."""
    return np.mod(angle, 360.0)


def signed_angle_difference(angle, reference):
    """Signed difference angle - reference mapped to [-180, 180)."""
    return np.mod(np.asarray(angle) - np.asarray(reference) + 180.0, 360.0) - 180.0


def direction_from_uv(u, v):
    """Direction (degrees from north, clockwise) a vector (u east, v north) points to."""
    return np.mod(np.degrees(np.arctan2(u, v)), 360.0)


def uv_from_direction(speed, azimuth_degrees):
    """Eastward and northward components of a vector pointing to azimuth_degrees."""
    azimuth_radians = np.radians(azimuth_degrees)
    return speed * np.sin(azimuth_radians), speed * np.cos(azimuth_radians)


def sample_along_geodesic(
    lon=None,
    lat=None,
    azimuth_degrees=None,
    distance_meters=None,
    num_samples: int = 4,
) -> tuple:
    """Points along geodesic segments starting at (lon, lat).

    Returns arrays of shape (n_segments, num_samples + 2) holding the start,
    ``num_samples`` equally spaced intermediate points and the end of each
    segment.
    """
    lon = np.atleast_1d(np.asarray(lon, dtype=float))
    lat = np.atleast_1d(np.asarray(lat, dtype=float))
    azimuth_degrees = np.atleast_1d(np.asarray(azimuth_degrees, dtype=float))
    distance_meters = np.atleast_1d(np.asarray(distance_meters, dtype=float))

    fractions = np.linspace(0.0, 1.0, num_samples + 2)
    shape = (lon.size, fractions.size)
    lons, lats = move_fwd(
        lon=np.repeat(lon, fractions.size),
        lat=np.repeat(lat, fractions.size),
        azimuth_degrees=np.repeat(azimuth_degrees, fractions.size),
        distance_meters=np.outer(distance_meters, fractions).ravel(),
    )
    return np.reshape(lons, shape), np.reshape(lats, shape)
