"""Local geographic-to-planar coordinate projection."""

import math
from collections import namedtuple

# WGS-84 equatorial radius in meters
EARTH_RADIUS = 6378137.0

PlanarPoint = namedtuple('PlanarPoint', ['x', 'z'])


def project(lat, lon, center_lat, center_lon):
    """
    Project a lat/lon pair to local planar meters around a center point.

    Equirectangular approximation, fine for the few-kilometre footprints
    this project prints. X grows east, Z grows south (north is -Z).

    Returns:
        PlanarPoint: (x, z) in meters
    """
    x = (lon - center_lon) * (math.pi / 180.0) * EARTH_RADIUS * math.cos(math.radians(center_lat))
    z = -(lat - center_lat) * (math.pi / 180.0) * EARTH_RADIUS
    return PlanarPoint(x, z)


def unproject(x, z, center_lat, center_lon):
    """Inverse of `project`: planar meters back to (lat, lon)."""
    lat = center_lat - math.degrees(z / EARTH_RADIUS)
    lon = center_lon + math.degrees(x / (EARTH_RADIUS * math.cos(math.radians(center_lat))))
    return lat, lon
