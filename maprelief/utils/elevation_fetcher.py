"""Elevation grid fetching from Terrarium RGB tiles with an SRTM fallback."""

import math
from io import BytesIO

import numpy as np
import requests
import srtm
from PIL import Image

from .elevation_grid import DEFAULT_GRID_SIZE, ElevationGrid
from .projection import unproject

# Public Terrarium-encoded terrain tiles hosted on AWS
AWS_TERRAIN_URL = "https://s3.amazonaws.com/elevation-tiles-prod/terrarium/{z}/{x}/{y}.png"
TILE_SIZE = 256
MAX_TILES = 25


def lat_lon_to_tile_fraction(lat, lon, zoom):
    """Fractional slippy-map tile coordinates of a lat/lon at a zoom level."""
    lat_rad = math.radians(lat)
    n = 2.0 ** zoom
    x = (lon + 180.0) / 360.0 * n
    y = (1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0 * n
    return x, y


def lat_lon_to_tile(lat, lon, zoom):
    """Integer slippy-map tile containing a lat/lon."""
    x, y = lat_lon_to_tile_fraction(lat, lon, zoom)
    return int(x), int(y)


def decode_terrarium(r, g, b):
    """Terrarium encoding: elevation = R * 256 + G + B / 256 - 32768 meters."""
    return (r * 256.0 + g + b / 256.0) - 32768.0


def choose_zoom(radius):
    """Tile zoom for a footprint half-extent in meters."""
    if radius > 20000:
        return 10
    if radius > 8000:
        return 11
    if radius > 3000:
        return 12
    if radius > 1000:
        return 13
    return 14


def sample_coordinates(center_lat, center_lon, radius, grid_size):
    """
    Lat/lon of each grid sample, row 0 at the northern edge.

    Returns:
        tuple: (lats, lons) 2D arrays of shape (grid_size, grid_size)
    """
    offsets = np.linspace(-radius, radius, grid_size)
    lats = np.zeros((grid_size, grid_size))
    lons = np.zeros((grid_size, grid_size))
    for row, z in enumerate(offsets):
        for col, x in enumerate(offsets):
            lats[row, col], lons[row, col] = unproject(x, z, center_lat, center_lon)
    return lats, lons


def fetch_tile(x, y, zoom):
    """Download and decode one Terrarium tile into a 256x256 elevation array."""
    url = AWS_TERRAIN_URL.format(z=zoom, x=x, y=y)
    response = requests.get(url, timeout=30)
    response.raise_for_status()
    rgb = np.asarray(Image.open(BytesIO(response.content)).convert('RGB'), dtype=np.float64)
    return decode_terrarium(rgb[:, :, 0], rgb[:, :, 1], rgb[:, :, 2])


def fetch_terrarium_grid(center_lat, center_lon, radius, grid_size=DEFAULT_GRID_SIZE):
    """
    Sample a grid_size x grid_size elevation grid from Terrarium tiles.

    Returns:
        numpy array or None when the area needs too many tiles
    """
    zoom = choose_zoom(radius)
    lats, lons = sample_coordinates(center_lat, center_lon, radius, grid_size)

    tile_coords = {}
    for row in range(grid_size):
        for col in range(grid_size):
            fx, fy = lat_lon_to_tile_fraction(lats[row, col], lons[row, col], zoom)
            tile_coords[(row, col)] = (fx, fy)

    needed = {(int(fx), int(fy)) for fx, fy in tile_coords.values()}
    if len(needed) > MAX_TILES:
        print(f"[WARN] Too many terrain tiles ({len(needed)}) at zoom {zoom}")
        return None

    print(f"[INFO] Fetching {len(needed)} terrain tile(s) at zoom {zoom}")
    tiles = {key: fetch_tile(key[0], key[1], zoom) for key in sorted(needed)}

    samples = np.zeros((grid_size, grid_size))
    for (row, col), (fx, fy) in tile_coords.items():
        tx, ty = int(fx), int(fy)
        px = min(int((fx - tx) * TILE_SIZE), TILE_SIZE - 1)
        py = min(int((fy - ty) * TILE_SIZE), TILE_SIZE - 1)
        samples[row, col] = tiles[(tx, ty)][py, px]
    return samples


def fetch_srtm_grid(center_lat, center_lon, radius, grid_size=DEFAULT_GRID_SIZE):
    """Sample the same grid from SRTM data (missing cells read as 0)."""
    try:
        elevation_data = srtm.get_data()
        lats, lons = sample_coordinates(center_lat, center_lon, radius, grid_size)

        samples = np.zeros((grid_size, grid_size))
        for row in range(grid_size):
            for col in range(grid_size):
                elev = elevation_data.get_elevation(lats[row, col], lons[row, col])
                samples[row, col] = elev if elev is not None else 0
        return samples

    except Exception as e:
        raise Exception(f"Error fetching SRTM elevation data: {str(e)}")


def fetch_elevation_grid(center_lat, center_lon, radius, grid_size=DEFAULT_GRID_SIZE, ground_level=None):
    """
    Fetch an ElevationGrid centered on a point.

    Tries Terrarium tiles first, then SRTM. Any failure of both yields None,
    which the mesh generator treats as flat terrain.

    Returns:
        ElevationGrid or None
    """
    grid_size = max(2, int(grid_size))
    samples = None
    try:
        samples = fetch_terrarium_grid(center_lat, center_lon, radius, grid_size)
    except (requests.exceptions.RequestException, OSError, ValueError) as e:
        print(f"[WARN] Terrain RGB tiles failed, falling back to SRTM: {e}")

    if samples is None:
        try:
            samples = fetch_srtm_grid(center_lat, center_lon, radius, grid_size)
        except Exception as e:
            print(f"[WARN] SRTM fallback failed, using flat terrain: {e}")
            return None

    grid = ElevationGrid(samples, center_lat, center_lon, radius, ground_level=ground_level)
    print(f"[INFO] Elevation grid {grid.rows}x{grid.cols}: "
          f"{grid.min_elevation:.1f}m to {grid.max_elevation:.1f}m")
    return grid
