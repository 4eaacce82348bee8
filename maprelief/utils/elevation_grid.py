"""Sparse terrain elevation grid with bilinear lookup."""

import numpy as np

DEFAULT_GRID_SIZE = 10


class ElevationGrid:
    """
    Raw elevation samples on an evenly spaced lat/lon grid.

    The grid spans [-radius, +radius] meters in both planar axes around the
    center used for projection. `samples[row, col]` has row 0 at the
    northern edge (z = -radius) and col 0 at the western edge (x = -radius).
    """

    def __init__(self, samples, center_lat, center_lon, radius, ground_level=None):
        """
        Args:
            samples: 2D array-like of elevations in meters
            center_lat: Latitude of the grid center
            center_lon: Longitude of the grid center
            radius: Half-extent of the grid in meters
            ground_level: Reference subtracted from every sample
                (None = lowest sample, so terrain starts at 0)
        """
        self.samples = np.atleast_2d(np.asarray(samples, dtype=np.float64))
        if self.samples.size == 0:
            raise ValueError("Elevation grid needs at least one sample")
        self.center_lat = float(center_lat)
        self.center_lon = float(center_lon)
        self.radius = float(radius)
        if ground_level is None:
            ground_level = float(np.min(self.samples))
        self.ground_level = float(ground_level)

    @property
    def rows(self):
        return self.samples.shape[0]

    @property
    def cols(self):
        return self.samples.shape[1]

    @property
    def min_elevation(self):
        return float(np.min(self.samples))

    @property
    def max_elevation(self):
        return float(np.max(self.samples))

    def sample(self, x, z, grid_radius=None):
        """Bilinear raw elevation at planar (x, z); scalars or numpy arrays."""
        radius = self.radius if grid_radius is None else float(grid_radius)
        x = np.asarray(x, dtype=np.float64)
        z = np.asarray(z, dtype=np.float64)
        grid = self.samples
        rows, cols = grid.shape

        # [-radius, radius] -> [0, size - 1], clamped
        u = np.clip((x + radius) / (2.0 * radius) * (cols - 1), 0, cols - 1)
        v = np.clip((z + radius) / (2.0 * radius) * (rows - 1), 0, rows - 1)

        col0 = np.minimum(np.floor(u).astype(int), max(cols - 2, 0))
        row0 = np.minimum(np.floor(v).astype(int), max(rows - 2, 0))
        col1 = np.minimum(col0 + 1, cols - 1)
        row1 = np.minimum(row0 + 1, rows - 1)
        s = u - col0
        t = v - row0

        z00 = grid[row0, col0]
        z01 = grid[row0, col1]
        z10 = grid[row1, col0]
        z11 = grid[row1, col1]

        top = z00 * (1 - s) + z01 * s
        bottom = z10 * (1 - s) + z11 * s
        result = top * (1 - t) + bottom * t
        if result.ndim == 0:
            return float(result)
        return result

    def elevation_at(self, x, z, grid_radius=None, ground_level=None):
        """Height above the ground reference, clamped to >= 0."""
        reference = self.ground_level if ground_level is None else float(ground_level)
        result = np.maximum(np.asarray(self.sample(x, z, grid_radius)) - reference, 0.0)
        if result.ndim == 0:
            return float(result)
        return result

    def to_dict(self):
        return {
            'grid': self.samples.tolist(),
            'center': {'lat': self.center_lat, 'lon': self.center_lon},
            'radius': self.radius,
            'ground_level': self.ground_level,
            'min_elevation': self.min_elevation,
            'max_elevation': self.max_elevation,
        }

    @classmethod
    def from_dict(cls, data):
        center = data.get('center', {})
        return cls(
            data['grid'],
            center.get('lat', 0.0),
            center.get('lon', 0.0),
            data['radius'],
            ground_level=data.get('ground_level'),
        )


def elevation_at(grid, x, z, grid_radius=None, ground_level=None):
    """
    Terrain height in meters above the ground reference at planar (x, z).

    A missing grid (elevation disabled or the fetch failed) yields flat
    terrain: 0 everywhere, with the same shape as the input.
    """
    if grid is None:
        zeros = np.zeros(np.broadcast(np.asarray(x), np.asarray(z)).shape)
        if zeros.ndim == 0:
            return 0.0
        return zeros
    return grid.elevation_at(x, z, grid_radius=grid_radius, ground_level=ground_level)
