import unittest

import numpy as np

from maprelief.utils.elevation_grid import ElevationGrid, elevation_at


class ElevationGridTests(unittest.TestCase):
    def setUp(self):
        # Row 0 is north (z = -100), col 0 is west (x = -100)
        self.grid = ElevationGrid([[10.0, 20.0], [30.0, 40.0]], 0.0, 0.0, 100.0)

    def test_corners_and_center(self):
        self.assertAlmostEqual(self.grid.sample(-100, -100), 10.0)
        self.assertAlmostEqual(self.grid.sample(100, -100), 20.0)
        self.assertAlmostEqual(self.grid.sample(-100, 100), 30.0)
        self.assertAlmostEqual(self.grid.sample(100, 100), 40.0)
        self.assertAlmostEqual(self.grid.sample(0, 0), 25.0)

    def test_lookup_outside_the_grid_is_clamped(self):
        self.assertAlmostEqual(self.grid.sample(-1000, -1000), 10.0)
        self.assertAlmostEqual(self.grid.sample(1000, 1000), 40.0)

    def test_dimensions(self):
        self.assertEqual((self.grid.rows, self.grid.cols), (2, 2))
        wide = ElevationGrid([[1.0, 2.0, 3.0]], 0.0, 0.0, 100.0)
        self.assertEqual((wide.rows, wide.cols), (1, 3))

    def test_ground_level_defaults_to_minimum(self):
        self.assertEqual(self.grid.ground_level, 10.0)
        self.assertAlmostEqual(elevation_at(self.grid, 0, 0), 15.0)

    def test_result_is_clamped_at_zero(self):
        self.assertEqual(elevation_at(self.grid, -100, -100, ground_level=35.0), 0.0)

    def test_explicit_grid_radius(self):
        self.assertAlmostEqual(self.grid.sample(50, 50, grid_radius=50), 40.0)

    def test_arrays(self):
        xs = np.array([-100.0, 0.0, 100.0])
        zs = np.array([-100.0, 0.0, 100.0])
        np.testing.assert_allclose(self.grid.elevation_at(xs, zs), [0.0, 15.0, 30.0])

    def test_interpolation_never_overshoots(self):
        rng = np.random.default_rng(7)
        grid = ElevationGrid(rng.uniform(0, 500, size=(10, 10)), 0.0, 0.0, 1000.0)
        xs = rng.uniform(-1000, 1000, size=500)
        zs = rng.uniform(-1000, 1000, size=500)
        values = grid.sample(xs, zs)
        self.assertTrue(np.all(values >= grid.min_elevation - 1e-9))
        self.assertTrue(np.all(values <= grid.max_elevation + 1e-9))

    def test_single_sample_grid_is_constant(self):
        grid = ElevationGrid([[42.0]], 0.0, 0.0, 100.0, ground_level=0.0)
        self.assertAlmostEqual(grid.elevation_at(37.0, -12.0), 42.0)

    def test_empty_grid_is_rejected(self):
        with self.assertRaises(ValueError):
            ElevationGrid([], 0.0, 0.0, 100.0)

    def test_dict_round_trip_keeps_reference(self):
        grid = ElevationGrid([[1.0, 2.0], [3.0, 4.0]], 47.0, 8.0, 250.0, ground_level=0.0)
        restored = ElevationGrid.from_dict(grid.to_dict())
        self.assertEqual(restored.ground_level, 0.0)
        self.assertEqual(restored.radius, 250.0)
        self.assertEqual(restored.center_lat, 47.0)
        np.testing.assert_array_equal(restored.samples, grid.samples)


class MissingGridTests(unittest.TestCase):
    def test_scalar_is_zero(self):
        self.assertEqual(elevation_at(None, 12.0, -40.0), 0.0)

    def test_array_keeps_shape(self):
        xs, zs = np.meshgrid(np.arange(3.0), np.arange(4.0))
        result = elevation_at(None, xs, zs)
        self.assertEqual(result.shape, (4, 3))
        self.assertFalse(result.any())


if __name__ == "__main__":
    unittest.main()
